from datetime import datetime, timezone
from unittest.mock import MagicMock, patch

import pytest

from app.core.config import get_settings
from app.models.service_order import NotificationOutbox, ServiceOrder
from app.services.documents.renderers import BaseRenderer, PdfRenderError


class StaticRenderer(BaseRenderer):
    name = "static"

    def __init__(self, content=b"%PDF-1.4 test document", error=None):
        self.content = content
        self.error = error
        self.html = []

    async def render(self, html):
        self.html.append(html)
        if self.error is not None:
            raise self.error
        return self.content


def _order_body(catalog, **overrides):
    body = {
        "clientId": catalog["client_id"],
        "equipmentId": catalog["equipment_id"],
        "technicianId": catalog["technician_id"],
        "description": "Laptop does not boot",
    }
    body.update(overrides)
    return body


async def _create(client, catalog, **overrides):
    r = await client.post("/api/service-orders", json=_order_body(catalog, **overrides))
    assert r.status_code == 201, r.text
    return r.json()


def _configure_smtp(monkeypatch):
    # Applied after the order exists so the create-time notification stays offline.
    monkeypatch.setenv("SMTP_HOST", "smtp.example.com")
    monkeypatch.setenv("SMTP_PORT", "465")
    monkeypatch.setenv("SMTP_USER", "mailer@example.com")
    monkeypatch.setenv("SMTP_PASSWORD", "secret")
    monkeypatch.setenv("EMAIL_RETRY_BASE_SECONDS", "0")
    get_settings.cache_clear()


# ─── Create ──────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_create_order(client, catalog):
    data = await _create(client, catalog)
    year = datetime.now(timezone.utc).year
    assert data["orderNumber"] == f"ORD-{year}-1000"
    assert data["status"] == "pending"
    assert data["clientId"] == catalog["client_id"]
    assert data["photos"] == []
    assert data["requestDate"]

    second = await _create(client, catalog)
    assert second["orderNumber"] == f"ORD-{year}-1001"


@pytest.mark.asyncio
async def test_create_order_queues_notification(client, catalog, session_factory):
    data = await _create(client, catalog)

    with session_factory() as db:
        rows = db.query(NotificationOutbox).all()
        assert len(rows) == 1
        row = rows[0]
        assert row.entity_id == str(data["id"])
        assert row.template_key == "order_created"
        # No SMTP configured in tests: the immediate attempt fails and waits for the worker.
        assert row.status == "RETRY"
        assert row.attempt_count == 1
        assert "missing" in row.last_error


@pytest.mark.asyncio
async def test_create_order_unknown_client_writes_nothing(client, catalog, session_factory):
    r = await client.post("/api/service-orders", json=_order_body(catalog, clientId=999))
    assert r.status_code == 404
    assert r.json()["detail"] == "Client not found"

    listing = await client.get("/api/service-orders")
    assert listing.json() == []
    with session_factory() as db:
        assert db.query(NotificationOutbox).count() == 0


@pytest.mark.asyncio
async def test_create_order_unknown_technician(client, catalog):
    r = await client.post("/api/service-orders", json=_order_body(catalog, technicianId=999))
    assert r.status_code == 404
    assert r.json()["detail"] == "Technician not found"


@pytest.mark.asyncio
async def test_create_order_validation_error_shape(client, catalog):
    body = _order_body(catalog)
    del body["description"]
    r = await client.post("/api/service-orders", json=body)
    assert r.status_code == 400
    data = r.json()
    assert data["detail"] == "Invalid data"
    assert any(err["field"] == "description" for err in data["errors"])


@pytest.mark.asyncio
async def test_create_warranty_order_is_free(client, catalog):
    data = await _create(client, catalog, status="warranty", cost=1800)
    assert data["cost"] == 0


# ─── Read / list ─────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_get_order_and_not_found(client, catalog):
    created = await _create(client, catalog)
    r = await client.get(f"/api/service-orders/{created['id']}")
    assert r.status_code == 200
    assert r.json()["orderNumber"] == created["orderNumber"]

    missing = await client.get("/api/service-orders/9999")
    assert missing.status_code == 404
    assert missing.json()["detail"] == "Service order not found"


@pytest.mark.asyncio
async def test_list_filters(client, catalog):
    await _create(client, catalog)
    await _create(client, catalog, technicianId=None, status="in_progress")

    all_orders = (await client.get("/api/service-orders")).json()
    assert len(all_orders) == 2

    by_client = (await client.get(f"/api/service-orders/client/{catalog['client_id']}")).json()
    assert len(by_client) == 2

    by_tech = (await client.get(f"/api/service-orders/technician/{catalog['technician_id']}")).json()
    assert len(by_tech) == 1

    by_status = (await client.get("/api/service-orders/status/in_progress")).json()
    assert [o["status"] for o in by_status] == ["in_progress"]

    bad_status = await client.get("/api/service-orders/status/lost")
    assert bad_status.status_code == 400


# ─── Update / delete ─────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_update_to_completed_sets_completion_date(client, catalog):
    created = await _create(client, catalog, notes="original")
    r = await client.put(
        f"/api/service-orders/{created['id']}",
        json={"status": "completed", "orderNumber": "HACKED"},
    )
    assert r.status_code == 200
    data = r.json()
    assert data["status"] == "completed"
    assert data["completionDate"] is not None
    assert data["notes"] == "original"
    assert data["orderNumber"] == created["orderNumber"]


@pytest.mark.asyncio
async def test_update_illegal_transition_when_enforced(client, catalog, monkeypatch):
    created = await _create(client, catalog)
    monkeypatch.setenv("ENFORCE_STATUS_TRANSITIONS", "true")
    get_settings.cache_clear()

    r = await client.put(f"/api/service-orders/{created['id']}", json={"status": "completed"})
    assert r.status_code == 409

    ok = await client.put(f"/api/service-orders/{created['id']}", json={"status": "waiting_approval"})
    assert ok.status_code == 200


@pytest.mark.asyncio
async def test_delete_order(client, catalog, session_factory):
    created = await _create(client, catalog)
    r = await client.delete(f"/api/service-orders/{created['id']}")
    assert r.status_code == 204

    again = await client.get(f"/api/service-orders/{created['id']}")
    assert again.status_code == 404
    with session_factory() as db:
        assert db.get(ServiceOrder, created["id"]) is None


# ─── PDF ─────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_order_pdf_download(client, catalog):
    created = await _create(client, catalog)
    renderer = StaticRenderer()
    with patch("app.services.documents.service.get_renderers", return_value=[renderer]):
        r = await client.get(f"/api/service-orders/{created['id']}/pdf")

    assert r.status_code == 200
    assert r.headers["content-type"] == "application/pdf"
    assert f'filename="orden-{created["orderNumber"]}.pdf"' in r.headers["content-disposition"]
    assert r.content == b"%PDF-1.4 test document"
    assert "Acme SA" in renderer.html[0]


@pytest.mark.asyncio
async def test_order_pdf_failure_is_500(client, catalog):
    created = await _create(client, catalog)
    failing = StaticRenderer(error=PdfRenderError("browser missing"))
    with patch("app.services.documents.service.get_renderers", return_value=[failing]):
        r = await client.get(f"/api/service-orders/{created['id']}/pdf")

    assert r.status_code == 500
    assert r.json()["detail"] == "PDF generation failed"


@pytest.mark.asyncio
async def test_bulk_pdf(client, catalog):
    first = await _create(client, catalog)
    second = await _create(client, catalog)
    renderer = StaticRenderer()
    with patch("app.services.documents.service.get_renderers", return_value=[renderer]):
        r = await client.post(
            "/api/service-orders/bulk-pdf",
            json={"orderIds": [first["id"], second["id"]]},
        )

    assert r.status_code == 200
    assert r.headers["content-type"] == "application/pdf"
    assert 'filename="ordenes-servicio.pdf"' in r.headers["content-disposition"]
    html = renderer.html[0]
    assert html.count('<div class="page-break"></div>') == 1
    assert html.index(first["orderNumber"]) < html.index(second["orderNumber"])


@pytest.mark.asyncio
async def test_bulk_pdf_unknown_id_is_404(client, catalog):
    first = await _create(client, catalog)
    r = await client.post("/api/service-orders/bulk-pdf", json={"orderIds": [first["id"], 4242]})
    assert r.status_code == 404
    assert "4242" in r.json()["detail"]


@pytest.mark.asyncio
async def test_bulk_pdf_requires_ids(client, catalog):
    r = await client.post("/api/service-orders/bulk-pdf", json={"orderIds": []})
    assert r.status_code == 400


# ─── Send email ──────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_send_email_without_smtp_is_400(client, catalog):
    created = await _create(client, catalog)
    r = await client.post(f"/api/service-orders/{created['id']}/send-email")
    assert r.status_code == 400
    assert "smtp_host" in r.json()["detail"]


@pytest.mark.asyncio
async def test_send_email_attaches_pdf(client, catalog, monkeypatch):
    created = await _create(client, catalog)
    _configure_smtp(monkeypatch)
    server = MagicMock()
    server.noop.return_value = (250, b"OK")

    with patch("app.services.documents.service.get_renderers", return_value=[StaticRenderer()]), patch(
        "app.services.email_service.smtplib.SMTP_SSL", return_value=server
    ):
        r = await client.post(
            f"/api/service-orders/{created['id']}/send-email",
            json={"subject": "Your repair is ready", "message": "Pick it up any time."},
        )

    assert r.status_code == 200, r.text
    data = r.json()
    assert data == {
        "success": True,
        "recipient": "client@example.com",
        "orderNumber": created["orderNumber"],
        "message": "Email sent",
    }

    msg = server.send_message.call_args.args[0]
    assert msg["Subject"] == "Your repair is ready"
    attachments = list(msg.iter_attachments())
    assert [a.get_filename() for a in attachments] == [f"orden-{created['orderNumber']}.pdf"]
    assert attachments[0].get_content() == b"%PDF-1.4 test document"


@pytest.mark.asyncio
async def test_send_email_to_override_recipient(client, catalog, monkeypatch):
    created = await _create(client, catalog)
    _configure_smtp(monkeypatch)
    server = MagicMock()
    server.noop.return_value = (250, b"OK")

    with patch("app.services.documents.service.get_renderers", return_value=[StaticRenderer()]), patch(
        "app.services.email_service.smtplib.SMTP_SSL", return_value=server
    ):
        r = await client.post(
            f"/api/service-orders/{created['id']}/send-email",
            json={"to": "boss@acme.example"},
        )

    assert r.status_code == 200
    assert r.json()["recipient"] == "boss@acme.example"
    assert server.send_message.call_args.args[0]["To"] == "boss@acme.example"


@pytest.mark.asyncio
async def test_send_email_delivery_failure_is_502(client, catalog, monkeypatch):
    created = await _create(client, catalog)
    _configure_smtp(monkeypatch)

    with patch("app.services.documents.service.get_renderers", return_value=[StaticRenderer()]), patch(
        "app.services.email_service.smtplib.SMTP_SSL", side_effect=OSError("connection refused")
    ):
        r = await client.post(f"/api/service-orders/{created['id']}/send-email")

    assert r.status_code == 502
    assert r.json()["detail"] == "Email delivery failed"


@pytest.mark.asyncio
async def test_send_email_pdf_failure_is_500(client, catalog, monkeypatch):
    created = await _create(client, catalog)
    _configure_smtp(monkeypatch)
    failing = StaticRenderer(error=PdfRenderError("timeout"))

    with patch("app.services.documents.service.get_renderers", return_value=[failing]):
        r = await client.post(f"/api/service-orders/{created['id']}/send-email")

    assert r.status_code == 500
    assert r.json()["detail"] == "PDF generation failed"
