"""Renderer factory: the ordered chain used to turn HTML into PDF."""

from __future__ import annotations

import logging

from app.core.config import get_settings

from .base import BaseRenderer, PdfRenderError
from .chromium import PlaywrightRenderer
from .pdfshift import PdfShiftRenderer

logger = logging.getLogger(__name__)

__all__ = ["get_renderers", "BaseRenderer", "PdfRenderError", "PdfShiftRenderer", "PlaywrightRenderer"]


def get_renderers() -> list[BaseRenderer]:
    """Renderers in preference order: hosted PDFShift first, local Chromium second."""
    settings = get_settings()
    chain: list[BaseRenderer] = [
        PdfShiftRenderer(
            settings.pdfshift_api_key,
            api_url=settings.pdfshift_api_url,
            margin=settings.pdfshift_margin,
            timeout_seconds=settings.pdfshift_timeout_seconds,
        )
    ]
    if settings.playwright_enabled:
        chain.append(PlaywrightRenderer(timeout_seconds=settings.playwright_timeout_seconds))
    else:
        logger.info("Chromium renderer disabled by PLAYWRIGHT_ENABLED")
    return chain
