"""HTML for work-order documents.

Every value taken from the database is escaped before it reaches the markup,
and optional blocks (logo, notes, materials, photos, signature) are plain
conditionals, so a field that contains template-like text renders literally.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timezone
from html import escape as html_escape
from typing import Any, Optional, Sequence

from app.core.config import get_settings
from app.services.transition_service import status_label

CLOUDINARY_HOST = "res.cloudinary.com"
CLOUDINARY_TRANSFORM = "w_600,q_60"
UPLOADS_PREFIX = "/uploads/"

NOT_AVAILABLE = "N/A"

DOCUMENT_CSS = """
  * { box-sizing: border-box; }
  body { font-family: Helvetica, Arial, sans-serif; color: #333; font-size: 12px; margin: 0; }
  .order { padding: 8px 0; }
  .header { display: flex; align-items: center; gap: 16px; background: #f8f9fa;
            border: 1px solid #dee2e6; padding: 12px 16px; }
  .header .logo { max-width: 120px; max-height: 70px; }
  .header h1 { font-size: 16px; margin: 0 0 4px 0; }
  .header p { margin: 0; color: #666; font-size: 10px; }
  h2.title { text-align: center; font-size: 16px; margin: 18px 0 4px 0; }
  p.folio { text-align: center; font-size: 14px; margin: 0 0 14px 0; }
  h3 { font-size: 12px; text-decoration: underline; margin: 14px 0 6px 0; }
  table.fields { width: 100%; border-collapse: collapse; }
  table.fields td { padding: 2px 4px; color: #555; vertical-align: top; width: 50%; }
  .text { white-space: pre-wrap; color: #555; }
  .photos img { max-width: 30%; margin: 4px; border: 1px solid #ddd; }
  .signatures { display: flex; justify-content: space-around; margin-top: 40px; }
  .signatures .box { width: 40%; text-align: center; }
  .signatures .signature { height: 60px; max-width: 100%; }
  .signatures .line { border-top: 1px solid #333; padding-top: 4px; }
  .footer { margin-top: 24px; border-top: 1px solid #ccc; padding-top: 6px;
            text-align: center; font-size: 9px; color: #999; }
  .page-break { page-break-after: always; break-after: page; }
"""


@dataclass
class OrderBundle:
    """An order with every related record the document needs, already resolved."""

    order: Any
    client: Any = None
    equipment: Any = None
    technician_name: Optional[str] = None
    company: Any = None


def _text(value: Any, default: str = NOT_AVAILABLE) -> str:
    if value is None:
        return html_escape(default)
    value = str(value).strip()
    return html_escape(value) if value else html_escape(default)


def _attr(obj: Any, name: str) -> Any:
    return getattr(obj, name, None) if obj is not None else None


def format_date(value: Any) -> str:
    if value is None or value == "":
        return NOT_AVAILABLE
    if isinstance(value, str):
        try:
            value = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return value
    if isinstance(value, (datetime, date)):
        return value.strftime("%d/%m/%Y")
    return str(value)


def format_cost(order: Any) -> str:
    if _attr(order, "status") == "warranty":
        return "Covered by warranty - no charge"
    cost = _attr(order, "cost")
    if not cost:
        return "Pending"
    return f"${float(cost):,.2f} {get_settings().currency_code}"


def resolve_asset_url(url: str) -> str:
    """Absolute URL for a stored image reference.

    ``/uploads/...`` paths are served by this backend and get the public base URL;
    Cloudinary delivery URLs get a downscaling transformation to keep PDFs small.
    """
    url = (url or "").strip()
    if not url:
        return ""
    if url.startswith(UPLOADS_PREFIX):
        return f"{get_settings().public_base_url.rstrip('/')}{url}"
    if CLOUDINARY_HOST in url and f"/upload/{CLOUDINARY_TRANSFORM}/" not in url:
        return url.replace("/upload/", f"/upload/{CLOUDINARY_TRANSFORM}/", 1)
    return url


def _fields_table(rows: Sequence[tuple[str, Any]]) -> str:
    cells = [f"<td><strong>{html_escape(label)}:</strong> {_text(value)}</td>" for label, value in rows]
    trs = []
    for idx in range(0, len(cells), 2):
        trs.append("<tr>" + "".join(cells[idx : idx + 2]) + "</tr>")
    return '<table class="fields">' + "".join(trs) + "</table>"


def render_header(company: Any) -> str:
    name = _attr(company, "name") or get_settings().company_display_name
    logo = resolve_asset_url(_attr(company, "logo_url") or "")
    lines = [f"<h1>{html_escape(name)}</h1>"]
    if _attr(company, "address"):
        lines.append(f"<p>{html_escape(company.address)}</p>")
    if _attr(company, "phone"):
        lines.append(f"<p>Tel: {html_escape(company.phone)}</p>")
    if _attr(company, "email"):
        lines.append(f"<p>Email: {html_escape(company.email)}</p>")

    logo_html = f'<img src="{html_escape(logo)}" class="logo" alt="" />' if logo else ""
    return f'<div class="header">{logo_html}<div>{"".join(lines)}</div></div>'


def render_footer(company: Any) -> str:
    name = _attr(company, "name") or get_settings().company_display_name
    year = datetime.now(timezone.utc).year
    contact = []
    if _attr(company, "phone"):
        contact.append(f"Tel: {company.phone}")
    if _attr(company, "email"):
        contact.append(f"Email: {company.email}")
    if _attr(company, "website"):
        contact.append(str(company.website))

    footer = f"<div>&copy; {year} {html_escape(name)} - All rights reserved</div>"
    if contact:
        footer += f"<div>{html_escape(' | '.join(contact))}</div>"
    return f'<div class="footer">{footer}</div>'


def render_photos(photos: Any) -> str:
    urls = [resolve_asset_url(str(photo)) for photo in (photos or [])]
    urls = [url for url in urls if url]
    if not urls:
        return ""
    images = "".join(f'<img src="{html_escape(url)}" alt="" />' for url in urls)
    return f'<h3>PHOTOS</h3><div class="photos">{images}</div>'


def render_signatures(order: Any) -> str:
    signature = (_attr(order, "client_signature") or "").strip()
    if signature:
        if not signature.startswith("data:"):
            signature = resolve_asset_url(signature)
        client_sig = f'<img src="{html_escape(signature)}" class="signature" alt="" />'
    else:
        client_sig = '<div class="signature"></div>'
    return (
        "<h3>SIGNATURES</h3>"
        '<div class="signatures">'
        '<div class="box"><div class="signature"></div><div class="line">Technician</div></div>'
        f'<div class="box">{client_sig}<div class="line">Client</div></div>'
        "</div>"
    )


def render_order_section(bundle: OrderBundle) -> str:
    """The body markup for one order, without the surrounding ``<html>`` document."""
    order, client, equipment, company = bundle.order, bundle.client, bundle.equipment, bundle.company

    parts = [
        render_header(company),
        '<h2 class="title">SERVICE ORDER</h2>',
        f'<p class="folio">Order number: {_text(order.order_number)}</p>',
        "<h3>CLIENT</h3>",
        _fields_table(
            [
                ("Name", _attr(client, "name")),
                ("Contact", _attr(client, "contact_name")),
                ("Phone", _attr(client, "phone")),
                ("Email", _attr(client, "email")),
                ("Address", _attr(client, "address")),
            ]
        ),
        "<h3>EQUIPMENT</h3>",
        _fields_table(
            [
                ("Type", _attr(equipment, "type")),
                ("Brand", _attr(equipment, "brand")),
                ("Model", _attr(equipment, "model")),
                ("S/N", _attr(equipment, "serial_number")),
            ]
        ),
        "<h3>SERVICE DETAILS</h3>",
        _fields_table(
            [
                ("Assigned technician", bundle.technician_name or "Not assigned"),
                ("Status", status_label(order.status or "pending")),
                ("Received", format_date(order.request_date)),
                ("Expected delivery", format_date(order.expected_delivery_date)),
            ]
            + ([("Delivered", format_date(order.completion_date))] if order.completion_date else [])
        ),
        "<h3>PROBLEM DESCRIPTION</h3>",
        f'<div class="text">{_text(order.description, "No description provided")}</div>',
    ]

    if order.notes:
        parts.append(f'<h3>ADDITIONAL NOTES</h3><div class="text">{_text(order.notes)}</div>')
    if order.materials_used:
        parts.append(f'<h3>MATERIALS USED</h3><div class="text">{_text(order.materials_used)}</div>')

    parts.append(f'<h3>SERVICE COST</h3><div class="text">{html_escape(format_cost(order))}</div>')
    parts.append(render_photos(order.photos))
    parts.append(render_signatures(order))
    parts.append(render_footer(company))

    return '<div class="order">' + "".join(part for part in parts if part) + "</div>"


def _document(title: str, body: str) -> str:
    return (
        "<!DOCTYPE html>"
        '<html lang="en"><head><meta charset="UTF-8" />'
        f"<title>{html_escape(title)}</title>"
        f"<style>{DOCUMENT_CSS}</style>"
        f"</head><body>{body}</body></html>"
    )


def render_order_document(bundle: OrderBundle) -> str:
    return _document(f"Service order {bundle.order.order_number}", render_order_section(bundle))


def render_orders_document(bundles: Sequence[OrderBundle]) -> str:
    """One document with every order, each starting on a new page."""
    sections = [render_order_section(bundle) for bundle in bundles]
    return _document("Service orders", '<div class="page-break"></div>'.join(sections))
