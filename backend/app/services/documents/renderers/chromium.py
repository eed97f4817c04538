"""Local headless Chromium via Playwright."""

from __future__ import annotations

import logging
import time

from .base import BaseRenderer, PdfRenderError

logger = logging.getLogger(__name__)

LAUNCH_ARGS = ["--no-sandbox", "--disable-setuid-sandbox"]


class PlaywrightRenderer(BaseRenderer):
    name = "playwright"

    def __init__(self, *, timeout_seconds: float = 60.0) -> None:
        self._timeout_ms = int(timeout_seconds * 1000)

    async def render(self, html: str) -> bytes:
        # lazy import: only needed when the hosted renderer is unavailable or fails
        from playwright.async_api import Error as PlaywrightError
        from playwright.async_api import async_playwright

        t0 = time.monotonic()
        try:
            async with async_playwright() as p:
                browser = await p.chromium.launch(args=LAUNCH_ARGS)
                try:
                    page = await browser.new_page()
                    await page.set_content(html, wait_until="networkidle", timeout=self._timeout_ms)
                    content = await page.pdf(format="A4", print_background=True)
                finally:
                    await browser.close()
        except PlaywrightError as exc:
            raise PdfRenderError(f"Chromium render failed: {exc}") from exc

        logger.info(
            "PDF rendered with Chromium in %.0fms size=%s",
            (time.monotonic() - t0) * 1000,
            len(content),
        )
        return content
