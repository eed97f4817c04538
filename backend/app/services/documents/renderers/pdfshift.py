"""PDFShift hosted conversion."""

from __future__ import annotations

import logging
import time
from typing import Optional

import httpx

from .base import BaseRenderer, PdfRenderError

logger = logging.getLogger(__name__)


class PdfShiftRenderer(BaseRenderer):
    name = "pdfshift"

    def __init__(
        self,
        api_key: str,
        *,
        api_url: str = "https://api.pdfshift.io/v3/convert/pdf",
        margin: str = "20mm",
        timeout_seconds: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._api_key = (api_key or "").strip()
        self._api_url = api_url
        self._margin = margin
        self._timeout_seconds = timeout_seconds
        self._transport = transport

    def is_available(self) -> bool:
        return bool(self._api_key)

    async def render(self, html: str) -> bytes:
        if not self._api_key:
            raise PdfRenderError("PDFSHIFT_API_KEY is not configured")

        t0 = time.monotonic()
        try:
            async with httpx.AsyncClient(timeout=self._timeout_seconds, transport=self._transport) as client:
                resp = await client.post(
                    self._api_url,
                    headers={"X-API-Key": self._api_key, "Content-Type": "application/json"},
                    json={"source": html, "format": "A4", "margin": self._margin},
                )
        except httpx.HTTPError as exc:
            raise PdfRenderError(f"PDFShift request failed: {exc}") from exc

        if resp.status_code < 200 or resp.status_code >= 300:
            raise PdfRenderError(f"PDFShift error: {resp.status_code} - {resp.text[:300]}")

        content = resp.content
        logger.info(
            "PDF rendered with PDFShift in %.0fms size=%s",
            (time.monotonic() - t0) * 1000,
            len(content),
        )
        return content
