"""Abstract base for HTML -> PDF renderers."""

from __future__ import annotations

import abc


class PdfRenderError(RuntimeError):
    """A single renderer could not produce a document."""


class BaseRenderer(abc.ABC):
    """Contract that every PDF renderer must implement."""

    name: str = "base"

    def is_available(self) -> bool:
        """False when the renderer is not configured and should be skipped."""
        return True

    @abc.abstractmethod
    async def render(self, html: str) -> bytes:
        """Return the PDF bytes for *html* or raise ``PdfRenderError``."""
