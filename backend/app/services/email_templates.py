from __future__ import annotations

from html import escape as html_escape
from typing import Any, Optional

from app.core.config import get_settings
from app.services.documents.template import resolve_asset_url
from app.services.email_html_base import render_branded_email, render_detail_rows, render_info_box

P_STYLE = 'style="margin:0 0 16px 0;font-size:15px;"'


def _company_name(company: Any) -> str:
    return (getattr(company, "name", None) or get_settings().company_display_name).strip()


def _company_footer(company: Any) -> str:
    if company is None:
        return ""
    parts = [getattr(company, "phone", None), getattr(company, "email", None), getattr(company, "website", None)]
    return " | ".join(str(part) for part in parts if part)


def _company_logo(company: Any) -> str:
    logo = getattr(company, "logo_url", None)
    return resolve_asset_url(logo) if logo else ""


def _html_paragraphs(text: str) -> str:
    lines = [line.strip() for line in (text or "").splitlines()]
    return "".join(f"<p {P_STYLE}>{html_escape(line)}</p>" for line in lines if line)


# ── Order created ──────────────────────────────────────────────


def build_order_created_email(
    *,
    order_number: str,
    client_name: str,
    equipment: str,
    description: str,
    company: Any = None,
) -> dict[str, str]:
    """Subject, HTML and plain-text body for the new-order notification."""
    company_name = _company_name(company)
    subject = f"New service order {order_number} - {company_name}"

    details = render_detail_rows(
        [
            ("Order number", order_number),
            ("Equipment", equipment),
            ("Description", description),
        ]
    )
    contact = render_detail_rows(
        [
            ("Phone", getattr(company, "phone", None) or ""),
            ("Email", getattr(company, "email", None) or ""),
            ("Address", getattr(company, "address", None) or ""),
        ]
    )

    body = (
        f"<p {P_STYLE}>Hello {html_escape(client_name or 'customer')},</p>"
        f"<p {P_STYLE}>A new service order has been registered for your equipment.</p>"
        f"{render_info_box(details)}"
    )
    if contact:
        body += f"<p {P_STYLE}>If you have any questions, please contact us:</p>{render_info_box(contact)}"
    body += f'<p style="margin:16px 0 0 0;font-size:15px;">Regards,<br/>{html_escape(company_name)}</p>'

    html = render_branded_email(
        title=subject,
        body_content=body,
        company_name=company_name,
        preheader=f"Service order {order_number} registered",
        logo_url=_company_logo(company),
        footer_text=_company_footer(company),
    )

    text = (
        f"Hello {client_name or 'customer'},\n"
        f"\n"
        f"A new service order has been registered for your equipment.\n"
        f"\n"
        f"Order number: {order_number}\n"
        f"Equipment: {equipment}\n"
        f"Description: {description}\n"
        f"\n"
        f"Regards,\n"
        f"{company_name}"
    )
    return {"subject": subject, "html": html, "text": text}


# ── Resend with PDF attached ───────────────────────────────────


def build_order_document_email(
    *,
    order_number: str,
    client_name: str,
    status_label: str,
    company: Any = None,
    subject: Optional[str] = None,
    message: Optional[str] = None,
) -> dict[str, str]:
    """Email that carries the work-order PDF. *message* replaces the default greeting text."""
    company_name = _company_name(company)
    subject = (subject or "").strip() or f"Service order {order_number} - {company_name}"

    intro = _html_paragraphs(message or "") or (
        f"<p {P_STYLE}>Please find attached the work order document for your service request.</p>"
    )
    body = (
        f"<p {P_STYLE}>Hello {html_escape(client_name or 'customer')},</p>"
        f"{intro}"
        f"{render_info_box(render_detail_rows([('Order number', order_number), ('Status', status_label)]))}"
        f'<p style="margin:16px 0 0 0;font-size:15px;">Regards,<br/>{html_escape(company_name)}</p>'
    )

    html = render_branded_email(
        title=subject,
        body_content=body,
        company_name=company_name,
        preheader=f"Work order {order_number}",
        logo_url=_company_logo(company),
        footer_text=_company_footer(company),
    )
    text = (
        f"Hello {client_name or 'customer'},\n\n"
        f"{(message or '').strip() or 'Please find attached the work order document for your service request.'}\n\n"
        f"Order number: {order_number}\n"
        f"Status: {status_label}\n\n"
        f"Regards,\n{company_name}"
    )
    return {"subject": subject, "html": html, "text": text}
