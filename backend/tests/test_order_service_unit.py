"""
Unit tests for order_service: numbering, reference checks, derived fields, notification hand-off.
"""

from __future__ import annotations

from datetime import datetime, timezone

import pytest
from fastapi import HTTPException
from sqlalchemy import func, select

import app.services.order_service as order_service
from app.models.service_order import (
    Client,
    NotificationOutbox,
    OrderNumberSequence,
    ServiceOrder,
)
from app.schemas.service_order import ServiceOrderCreate, ServiceOrderUpdate
from app.services.order_service import (
    build_order_bundles,
    create_service_order,
    delete_service_order,
    get_service_order,
    list_service_orders,
    next_order_number,
    update_service_order,
)


def _payload(catalog, **overrides):
    values = {
        "client_id": catalog["client_id"],
        "equipment_id": catalog["equipment_id"],
        "technician_id": catalog["technician_id"],
        "description": "Laptop does not boot",
    }
    values.update(overrides)
    return ServiceOrderCreate(**values)


def _count(db, model):
    return db.execute(select(func.count()).select_from(model)).scalar_one()


# ─── Numbering ───────────────────────────────────────────────────────


def test_order_numbers_start_at_1000_and_increment(db):
    assert next_order_number(db, year=2026) == "ORD-2026-1000"
    assert next_order_number(db, year=2026) == "ORD-2026-1001"
    assert next_order_number(db, year=2027) == "ORD-2027-1000"


def test_order_number_sequence_seeds_from_existing_orders(db, catalog):
    db.add(
        ServiceOrder(
            order_number="ORD-2026-1041",
            client_id=catalog["client_id"],
            equipment_id=catalog["equipment_id"],
            description="legacy",
            photos=[],
        )
    )
    db.flush()
    assert next_order_number(db, year=2026) == "ORD-2026-1042"


def test_year_seeded_concurrently_continues_from_other_row(db, session_factory, monkeypatch):
    real_lookup = order_service._locked_sequence
    lookups = []

    def racing_lookup(session, year):
        lookups.append(year)
        if len(lookups) == 1:
            # Another request seeds the year between this lookup and the insert.
            with session_factory() as other:
                other.add(OrderNumberSequence(year=year, last_value=1004))
                other.commit()
            return None
        return real_lookup(session, year)

    monkeypatch.setattr(order_service, "_locked_sequence", racing_lookup)
    monkeypatch.setattr(order_service, "_seed_in_savepoint", lambda session: True)

    assert next_order_number(db, year=2030) == "ORD-2030-1005"
    assert lookups == [2030, 2030]
    assert _count(db, OrderNumberSequence) == 1


def test_created_orders_get_current_year_numbers(db, catalog):
    year = datetime.now(timezone.utc).year
    first, _ = create_service_order(db, _payload(catalog))
    second, _ = create_service_order(db, _payload(catalog))
    assert first.order_number == f"ORD-{year}-1000"
    assert second.order_number == f"ORD-{year}-1001"
    assert first.status == "pending"
    assert first.request_date is not None


# ─── Reference checks ────────────────────────────────────────────────


@pytest.mark.parametrize(
    "overrides, message",
    [
        ({"client_id": 999, "equipment_id": 999}, "Client not found"),
        ({"equipment_id": 999, "technician_id": 999}, "Equipment not found"),
        ({"technician_id": 999}, "Technician not found"),
    ],
)
def test_unknown_references_raise_404_without_writing(db, catalog, overrides, message):
    with pytest.raises(HTTPException) as exc:
        create_service_order(db, _payload(catalog, **overrides))
    assert exc.value.status_code == 404
    assert exc.value.detail == message
    assert _count(db, ServiceOrder) == 0
    assert _count(db, OrderNumberSequence) == 0
    assert _count(db, NotificationOutbox) == 0


def test_technician_is_optional(db, catalog):
    order, _ = create_service_order(db, _payload(catalog, technician_id=None))
    assert order.technician_id is None


# ─── Derived fields ──────────────────────────────────────────────────


def test_warranty_order_has_zero_cost(db, catalog):
    order, _ = create_service_order(db, _payload(catalog, status="warranty", cost=2500))
    assert order.cost == 0


def test_completed_order_gets_completion_date(db, catalog):
    order, _ = create_service_order(db, _payload(catalog, status="completed"))
    assert order.completion_date is not None


def test_client_approval_is_stamped(db, catalog):
    order, _ = create_service_order(db, _payload(catalog, client_approval=True))
    assert order.client_approval_date is not None


# ─── Notification hand-off ───────────────────────────────────────────


def test_create_queues_order_created_email(db, catalog):
    order, outbox_id = create_service_order(db, _payload(catalog))
    assert outbox_id is not None

    row = db.get(NotificationOutbox, outbox_id)
    assert row.status == "PENDING"
    assert row.channel == "email"
    assert row.template_key == "order_created"
    assert row.entity_id == str(order.id)
    assert row.payload_json["to"] == "client@example.com"
    assert order.order_number in row.payload_json["subject"]
    assert "Dell Latitude 5420" in row.payload_json["html"]


def test_client_without_email_is_not_notified(db, catalog):
    silent = Client(name="No Mail Ltd", contact_name="Pedro", email="", phone="555-0101", address="Calle 2")
    db.add(silent)
    db.flush()

    order, outbox_id = create_service_order(db, _payload(catalog, client_id=silent.id))
    assert order.id is not None
    assert outbox_id is None
    assert _count(db, NotificationOutbox) == 0


# ─── Update / delete / list ──────────────────────────────────────────


def test_update_only_touches_provided_fields(db, catalog):
    order, _ = create_service_order(db, _payload(catalog, notes="keep me"))
    update_service_order(db, order.id, ServiceOrderUpdate(materials_used="Thermal paste"))
    assert order.notes == "keep me"
    assert order.materials_used == "Thermal paste"


def test_update_explicit_null_on_required_field_is_ignored(db, catalog):
    order, _ = create_service_order(db, _payload(catalog))
    update_service_order(db, order.id, ServiceOrderUpdate.model_validate({"description": None, "notes": None}))
    assert order.description == "Laptop does not boot"
    assert order.notes is None


def test_update_to_completed_sets_completion_date(db, catalog):
    order, _ = create_service_order(db, _payload(catalog, status="in_progress"))
    update_service_order(db, order.id, ServiceOrderUpdate(status="completed"))
    assert order.status == "completed"
    assert order.completion_date is not None


def test_update_to_warranty_zeroes_cost(db, catalog):
    order, _ = create_service_order(db, _payload(catalog, cost=1200))
    update_service_order(db, order.id, ServiceOrderUpdate(status="warranty", cost=800))
    assert order.status == "warranty"
    assert order.cost == 0


def test_update_unknown_order_or_reference_is_404(db, catalog):
    with pytest.raises(HTTPException) as exc:
        update_service_order(db, 404, ServiceOrderUpdate(notes="x"))
    assert exc.value.detail == "Service order not found"

    order, _ = create_service_order(db, _payload(catalog))
    with pytest.raises(HTTPException) as exc:
        update_service_order(db, order.id, ServiceOrderUpdate(technician_id=999))
    assert exc.value.detail == "Technician not found"


def test_delete_removes_order(db, catalog):
    order, _ = create_service_order(db, _payload(catalog))
    delete_service_order(db, order.id)
    with pytest.raises(HTTPException):
        get_service_order(db, order.id)


def test_list_filters(db, catalog):
    create_service_order(db, _payload(catalog, status="pending"))
    create_service_order(db, _payload(catalog, status="in_progress", technician_id=None))

    assert len(list_service_orders(db)) == 2
    assert len(list_service_orders(db, client_id=catalog["client_id"])) == 2
    assert len(list_service_orders(db, client_id=999)) == 0
    assert len(list_service_orders(db, technician_id=catalog["technician_id"])) == 1
    assert [o.status for o in list_service_orders(db, status="in_progress")] == ["in_progress"]


# ─── Bundles ─────────────────────────────────────────────────────────


def test_bundles_keep_requested_order_and_resolve_technician(db, catalog):
    first, _ = create_service_order(db, _payload(catalog))
    second, _ = create_service_order(db, _payload(catalog, technician_id=None))

    bundles = build_order_bundles(db, [second.id, first.id, second.id])
    assert [b.order.id for b in bundles] == [second.id, first.id]
    assert bundles[0].technician_name is None
    assert bundles[1].technician_name == "Juan Tecnico"
    assert bundles[1].client.name == "Acme SA"


def test_bundles_with_unknown_ids_is_404(db, catalog):
    order, _ = create_service_order(db, _payload(catalog))
    with pytest.raises(HTTPException) as exc:
        build_order_bundles(db, [order.id, 998, 999])
    assert exc.value.status_code == 404
    assert "998, 999" in exc.value.detail
