"""Service-order lifecycle: numbering, create/update/delete and side-effect hand-off.

Functions flush but never commit; the router owns the transaction so the
order row and its outbox notification land together.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Optional, Sequence

from fastapi import HTTPException
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.models.service_order import (
    Client,
    Equipment,
    OrderNumberSequence,
    ServiceOrder,
    Technician,
    User,
)
from app.schemas.service_order import OrderStatus, ServiceOrderCreate, ServiceOrderUpdate
from app.services.catalog_service import equipment_label, get_company_settings, list_entities
from app.services.documents.template import OrderBundle
from app.services.email_templates import build_order_created_email
from app.services.notification_outbox import CHANNEL_EMAIL, enqueue_notification
from app.services.transition_service import apply_status_change

logger = logging.getLogger(__name__)

ORDER_NUMBER_PREFIX = "ORD"
FIRST_ORDER_NUMBER = 1000
TEMPLATE_ORDER_CREATED = "order_created"

_REFERENCES = (
    ("client_id", Client, "Client not found"),
    ("equipment_id", Equipment, "Equipment not found"),
    ("technician_id", Technician, "Technician not found"),
)
# Required columns; an explicit null in an update leaves them untouched.
_NOT_NULLABLE = ("client_id", "equipment_id", "description", "photos", "client_approval")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _highest_existing_suffix(db: Session, year: int) -> int:
    prefix = f"{ORDER_NUMBER_PREFIX}-{year}-"
    numbers = db.execute(
        select(ServiceOrder.order_number).where(ServiceOrder.order_number.like(f"{prefix}%"))
    ).scalars()
    highest = FIRST_ORDER_NUMBER - 1
    for number in numbers:
        suffix = number[len(prefix):]
        if suffix.isdigit():
            highest = max(highest, int(suffix))
    return highest


def _locked_sequence(db: Session, year: int) -> Optional[OrderNumberSequence]:
    return db.execute(
        select(OrderNumberSequence).where(OrderNumberSequence.year == year).with_for_update()
    ).scalar_one_or_none()


def _seed_in_savepoint(db: Session) -> bool:
    # SQLite serialises writers, and pysqlite cannot open a SAVEPOINT outside a transaction.
    return db.get_bind().dialect.name != "sqlite"


def _seed_sequence(db: Session, year: int) -> OrderNumberSequence:
    seed = OrderNumberSequence(year=year, last_value=_highest_existing_suffix(db, year))
    if not _seed_in_savepoint(db):
        db.add(seed)
        return seed
    try:
        with db.begin_nested():
            db.add(seed)
        return seed
    except IntegrityError:
        # Another transaction seeded the year first; wait on its row instead.
        logger.info("Order number sequence for %s seeded concurrently", year)
        sequence = _locked_sequence(db, year)
        if sequence is None:
            raise
        return sequence


def next_order_number(db: Session, *, year: Optional[int] = None) -> str:
    """Reserve the next ``ORD-<year>-<n>`` number.

    The per-year counter row is locked for the rest of the transaction, so two
    concurrent creates cannot receive the same number. A year's first row is
    seeded from any orders already numbered for that year.
    """
    year = year or _utcnow().year
    sequence = _locked_sequence(db, year)
    if sequence is None:
        sequence = _seed_sequence(db, year)

    sequence.last_value = int(sequence.last_value) + 1
    db.flush()
    return f"{ORDER_NUMBER_PREFIX}-{year}-{sequence.last_value}"


def _check_references(db: Session, values: dict[str, Any]) -> dict[str, Any]:
    found: dict[str, Any] = {}
    for field, model, message in _REFERENCES:
        ref_id = values.get(field)
        if ref_id is None:
            continue
        entity = db.get(model, ref_id)
        if entity is None:
            raise HTTPException(404, message)
        found[field] = entity
    return found


def get_service_order(db: Session, order_id: int) -> ServiceOrder:
    order = db.get(ServiceOrder, order_id)
    if order is None:
        raise HTTPException(404, "Service order not found")
    return order


def list_service_orders(
    db: Session,
    *,
    client_id: Optional[int] = None,
    technician_id: Optional[int] = None,
    status: Optional[OrderStatus] = None,
) -> list[ServiceOrder]:
    criteria = []
    if client_id is not None:
        criteria.append(ServiceOrder.client_id == client_id)
    if technician_id is not None:
        criteria.append(ServiceOrder.technician_id == technician_id)
    if status is not None:
        criteria.append(ServiceOrder.status == OrderStatus(status).value)
    return list_entities(db, ServiceOrder, *criteria)


def _enqueue_order_created(db: Session, order: ServiceOrder, client: Client, equipment: Equipment) -> Optional[int]:
    email = build_order_created_email(
        order_number=order.order_number,
        client_name=client.contact_name or client.name,
        equipment=equipment_label(equipment),
        description=order.description,
        company=get_company_settings(db),
    )
    return enqueue_notification(
        db,
        entity_type="service_order",
        entity_id=str(order.id),
        channel=CHANNEL_EMAIL,
        template_key=TEMPLATE_ORDER_CREATED,
        payload_json={"to": client.email.strip(), **email},
    )


def create_service_order(db: Session, payload: ServiceOrderCreate) -> tuple[ServiceOrder, Optional[int]]:
    """Persist a new order and queue the client notification.

    Returns the order and the outbox row id (``None`` when the client has no
    email address). Unknown client, equipment or technician ids raise 404
    before anything is written.
    """
    values = payload.model_dump()
    refs = _check_references(db, values)
    client: Client = refs["client_id"]
    equipment: Equipment = refs["equipment_id"]

    status = OrderStatus(values.pop("status"))
    now = _utcnow()

    order = ServiceOrder(
        **values,
        order_number=next_order_number(db, year=now.year),
        status=status.value,
        request_date=now,
    )
    if status == OrderStatus.WARRANTY:
        order.cost = 0
    if status == OrderStatus.COMPLETED and order.completion_date is None:
        order.completion_date = now
    if order.client_approval and order.client_approval_date is None:
        order.client_approval_date = now

    db.add(order)
    db.flush()
    logger.info("Service order created order=%s id=%s client=%s", order.order_number, order.id, client.id)

    outbox_id = None
    if (client.email or "").strip():
        outbox_id = _enqueue_order_created(db, order, client, equipment)
    else:
        logger.info("Client %s has no email; skipping notification for %s", client.id, order.order_number)
    return order, outbox_id


def update_service_order(db: Session, order_id: int, payload: ServiceOrderUpdate) -> ServiceOrder:
    """Apply a partial update. Only fields present in the payload are considered,
    and only those whose value differs are written."""
    order = get_service_order(db, order_id)
    changes = payload.model_dump(exclude_unset=True)

    for key in _NOT_NULLABLE:
        if key in changes and changes[key] is None:
            changes.pop(key)

    _check_references(db, changes)

    new_status = changes.pop("status", None)
    changed = []
    for key, value in changes.items():
        if getattr(order, key) != value:
            setattr(order, key, value)
            changed.append(key)

    if new_status is not None and apply_status_change(
        order, OrderStatus(new_status), completion_date=changes.get("completion_date")
    ):
        changed.append("status")

    if order.status == OrderStatus.WARRANTY.value and order.cost != 0:
        order.cost = 0
        changed.append("cost")
    if changes.get("client_approval") is True and order.client_approval_date is None:
        order.client_approval_date = _utcnow()
        changed.append("client_approval_date")

    if changed:
        db.flush()
        logger.info("Service order updated order=%s fields=%s", order.order_number, ",".join(changed))
    return order


def delete_service_order(db: Session, order_id: int) -> None:
    order = get_service_order(db, order_id)
    db.delete(order)
    db.flush()
    logger.info("Service order deleted order=%s id=%s", order.order_number, order_id)


def build_order_bundle(db: Session, order: ServiceOrder, *, company: Any = None) -> OrderBundle:
    technician_name = None
    if order.technician_id is not None:
        technician = db.get(Technician, order.technician_id)
        user = db.get(User, technician.user_id) if technician else None
        technician_name = user.full_name if user else None

    return OrderBundle(
        order=order,
        client=db.get(Client, order.client_id),
        equipment=db.get(Equipment, order.equipment_id),
        technician_name=technician_name,
        company=company if company is not None else get_company_settings(db),
    )


def build_order_bundles(db: Session, order_ids: Sequence[int]) -> list[OrderBundle]:
    """Bundles in the requested order. Any unknown id is a 404 naming the missing ids."""
    orders = {
        order.id: order
        for order in db.execute(select(ServiceOrder).where(ServiceOrder.id.in_(set(order_ids)))).scalars()
    }
    missing = [order_id for order_id in order_ids if order_id not in orders]
    if missing:
        raise HTTPException(404, f"Service orders not found: {', '.join(str(i) for i in missing)}")

    company = get_company_settings(db)
    return [build_order_bundle(db, orders[order_id], company=company) for order_id in dict.fromkeys(order_ids)]
