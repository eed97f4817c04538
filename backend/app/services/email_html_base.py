"""
Branded HTML email base layout.

Table-based, inline-CSS wrapper shared by every outgoing email.
Compatible with: Outlook, Gmail, Yahoo, Apple Mail.

Usage:
    from app.services.email_html_base import render_branded_email

    html = render_branded_email(
        title="New service order",
        body_content="<p>Order <strong>ORD-2024-1000</strong></p>",
        company_name="Sistemas RST",
    )

Callers escape their own interpolated values; the layout escapes the values
it receives as plain text (title, preheader, company name, footer).
"""

from __future__ import annotations

from datetime import datetime, timezone
from html import escape as html_escape

# ── Brand tokens ──────────────────────────────────────────────
COLOR_PRIMARY = "#1d4ed8"
COLOR_PRIMARY_DARK = "#1e3a8a"
COLOR_BG = "#f4f6fa"
COLOR_WHITE = "#ffffff"
COLOR_BORDER = "#dde3ec"
COLOR_TEXT = "#1a1a1a"
COLOR_MUTED = "#5a5a5a"
COLOR_HIGHLIGHT_BG = "#eef3fc"

FONT_STACK = "'Segoe UI', Roboto, 'Helvetica Neue', Arial, sans-serif"


def render_branded_email(
    *,
    title: str,
    body_content: str,
    company_name: str,
    preheader: str = "",
    logo_url: str = "",
    footer_text: str = "",
) -> str:
    """Render body_content inside the branded HTML email layout.

    Args:
        title: Email title (used in <title>).
        body_content: Inner HTML content for the specific template (already escaped).
        company_name: Shown in the header when there is no logo, and in the footer.
        preheader: Hidden preview text shown by email clients.
        logo_url: Absolute URL to the company logo. Text header when empty.
        footer_text: Footer line, usually the company contact details.

    Returns:
        Complete HTML string ready for email sending.
    """
    year = datetime.now(timezone.utc).year
    safe_company = html_escape(company_name)

    # Preheader trick: hidden text that shows in email client preview
    preheader_html = ""
    if preheader:
        preheader_html = (
            f'<div style="display:none;font-size:1px;color:{COLOR_BG};line-height:1px;'
            f'max-height:0;max-width:0;opacity:0;overflow:hidden;">'
            f"{html_escape(preheader)}"
            f"</div>"
        )

    if logo_url:
        header_html = (
            f'<img src="{html_escape(logo_url)}" alt="{safe_company}" width="140" '
            f'style="display:block;max-width:140px;height:auto;border:0;" />'
        )
    else:
        header_html = (
            f'<span style="font-family:{FONT_STACK};font-size:22px;font-weight:700;'
            f'color:{COLOR_PRIMARY_DARK};">{safe_company}</span>'
        )

    footer_line = f"{html_escape(footer_text)}<br />" if footer_text else ""

    return f"""\
<!DOCTYPE html>
<html lang="en" xmlns="http://www.w3.org/1999/xhtml">
<head>
  <meta charset="UTF-8" />
  <meta name="viewport" content="width=device-width, initial-scale=1.0" />
  <meta http-equiv="X-UA-Compatible" content="IE=edge" />
  <title>{html_escape(title)}</title>
</head>
<body style="margin:0;padding:0;background-color:{COLOR_BG};font-family:{FONT_STACK};-webkit-text-size-adjust:100%;-ms-text-size-adjust:100%;">
{preheader_html}

<!-- Outer wrapper -->
<table role="presentation" cellspacing="0" cellpadding="0" border="0" width="100%" style="background-color:{COLOR_BG};">
  <tr>
    <td align="center" style="padding:24px 16px;">

      <!-- Inner container (600px) -->
      <table role="presentation" cellspacing="0" cellpadding="0" border="0" width="600" style="max-width:600px;width:100%;background-color:{COLOR_WHITE};border:1px solid {COLOR_BORDER};border-radius:12px;overflow:hidden;">

        <tr>
          <td align="center" style="padding:28px 32px 20px 32px;border-bottom:3px solid {COLOR_PRIMARY};">
            {header_html}
          </td>
        </tr>

        <tr>
          <td style="padding:32px 32px 28px 32px;color:{COLOR_TEXT};font-family:{FONT_STACK};font-size:15px;line-height:1.6;">
{body_content}
          </td>
        </tr>

        <tr>
          <td style="padding:20px 32px;background-color:{COLOR_BG};border-top:1px solid {COLOR_BORDER};text-align:center;font-family:{FONT_STACK};font-size:12px;color:{COLOR_MUTED};line-height:1.5;">
            {footer_line}
            &copy; {year} {safe_company}. All rights reserved.
          </td>
        </tr>

      </table>

    </td>
  </tr>
</table>

</body>
</html>"""


def render_info_box(content: str, *, bg_color: str = COLOR_HIGHLIGHT_BG) -> str:
    """Render a highlighted info box for displaying key details."""
    return (
        f'<table role="presentation" cellspacing="0" cellpadding="0" border="0" width="100%"'
        f' style="margin:16px 0;">'
        f"<tr>"
        f'<td style="padding:16px 20px;background-color:{bg_color};border-radius:8px;'
        f"border:1px solid {COLOR_BORDER};font-family:{FONT_STACK};font-size:15px;"
        f'line-height:1.6;color:{COLOR_TEXT};">'
        f"{content}"
        f"</td>"
        f"</tr>"
        f"</table>"
    )


def render_detail_rows(rows: list[tuple[str, str]]) -> str:
    """Render label/value pairs as ``<strong>label:</strong> value`` lines. Values are escaped."""
    return "<br/>".join(
        f"<strong>{html_escape(label)}:</strong> {html_escape(value)}" for label, value in rows if value
    )
