"""Tests for the branded HTML email base layout."""

from __future__ import annotations

from app.services.email_html_base import render_branded_email, render_detail_rows, render_info_box


def test_render_branded_email_has_html_structure():
    html = render_branded_email(title="Test Email", body_content="<p>Hello</p>", company_name="Sistemas RST")
    assert '<html lang="en"' in html
    assert "<title>Test Email</title>" in html
    assert "<p>Hello</p>" in html
    assert "</html>" in html


def test_render_branded_email_text_header_without_logo():
    html = render_branded_email(title="T", body_content="<p>X</p>", company_name="Sistemas RST")
    assert "<img" not in html
    assert "Sistemas RST</span>" in html


def test_render_branded_email_custom_logo():
    html = render_branded_email(
        title="T",
        body_content="<p>X</p>",
        company_name="Acme",
        logo_url="https://cdn.example.com/custom-logo.png",
    )
    assert 'src="https://cdn.example.com/custom-logo.png"' in html


def test_render_branded_email_preheader():
    html = render_branded_email(title="T", body_content="<p>X</p>", company_name="A", preheader="Preview text here")
    assert "Preview text here" in html
    assert "display:none" in html  # preheader is hidden


def test_render_branded_email_no_preheader():
    html = render_branded_email(title="T", body_content="<p>X</p>", company_name="A")
    # Should not have preheader div when empty
    assert "max-height:0" not in html


def test_render_branded_email_escapes_plain_text_arguments():
    html = render_branded_email(
        title="<b>T</b>",
        body_content="<p>X</p>",
        company_name="Tom & Jerry <Repairs>",
        footer_text="Tel: <555>",
    )
    assert "&lt;b&gt;T&lt;/b&gt;" in html
    assert "Tom &amp; Jerry &lt;Repairs&gt;" in html
    assert "Tel: &lt;555&gt;" in html
    assert "<Repairs>" not in html


def test_render_info_box_wraps_content():
    box = render_info_box("<strong>Hi</strong>")
    assert box.startswith("<table")
    assert "<strong>Hi</strong>" in box


def test_render_detail_rows_skips_empty_and_escapes():
    rows = render_detail_rows([("Order", "ORD-2026-1000"), ("Notes", ""), ("Equipment", "<Dell>")])
    assert "<strong>Order:</strong> ORD-2026-1000" in rows
    assert "Notes" not in rows
    assert "&lt;Dell&gt;" in rows
