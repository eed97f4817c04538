from __future__ import annotations

import logging
from typing import Optional, Sequence

from app.services.documents.renderers import BaseRenderer, get_renderers
from app.services.documents.template import OrderBundle, render_order_document, render_orders_document
from app.utils.alerting import alert_tracker

logger = logging.getLogger(__name__)


class PdfGenerationError(RuntimeError):
    """No renderer in the chain produced a document."""


async def render_pdf(html: str, renderers: Optional[Sequence[BaseRenderer]] = None) -> bytes:
    """Try each available renderer in order and return the first non-empty PDF.

    A failing renderer is logged and the next one is tried; there are no retries.
    """
    chain = list(renderers) if renderers is not None else get_renderers()
    errors: list[str] = []

    for renderer in chain:
        if not renderer.is_available():
            logger.info("PDF renderer %s not configured, skipping", renderer.name)
            continue
        try:
            content = await renderer.render(html)
        except Exception as exc:
            logger.warning("PDF renderer %s failed: %s", renderer.name, exc)
            alert_tracker.record("PDF_RENDERER_FAILED", {"renderer": renderer.name})
            errors.append(f"{renderer.name}: {exc}")
            continue
        if not content:
            logger.warning("PDF renderer %s returned an empty document", renderer.name)
            errors.append(f"{renderer.name}: empty document")
            continue
        return bytes(content)

    if not errors:
        errors.append("no renderer available")
    raise PdfGenerationError("PDF generation failed (" + "; ".join(errors) + ")")


async def render_order_pdf(bundle: OrderBundle, renderers: Optional[Sequence[BaseRenderer]] = None) -> bytes:
    return await render_pdf(render_order_document(bundle), renderers)


async def render_orders_pdf(
    bundles: Sequence[OrderBundle], renderers: Optional[Sequence[BaseRenderer]] = None
) -> bytes:
    if not bundles:
        raise PdfGenerationError("No orders to render")
    return await render_pdf(render_orders_document(bundles), renderers)
