"""Persistence gateway for master data.

Plain get/list/create/update/delete over the ORM. Lookups return ``None`` for
unknown ids; callers decide whether that is a 404.
"""

from __future__ import annotations

from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Iterator, Optional, TypeVar

from fastapi import HTTPException
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.models.service_order import (
    Client,
    CompanySettings,
    Equipment,
    ServiceOrder,
    Technician,
    User,
)

ModelT = TypeVar("ModelT")

ACTIVE_EXCLUDED_STATUSES = ("completed", "cancelled")
RECENT_ORDERS_LIMIT = 5
UNKNOWN_CLIENT = "Unknown client"
UNASSIGNED_TECHNICIAN = "Unassigned"
UNNAMED_TECHNICIAN = "Technician"


def get_entity(db: Session, model: type[ModelT], entity_id: int) -> Optional[ModelT]:
    return db.get(model, entity_id)


def list_entities(db: Session, model: type[ModelT], *criteria: Any) -> list[ModelT]:
    stmt = select(model)
    if criteria:
        stmt = stmt.where(*criteria)
    return list(db.execute(stmt.order_by(model.id.asc())).scalars().all())


def create_entity(db: Session, model: type[ModelT], values: dict[str, Any]) -> ModelT:
    entity = model(**values)
    db.add(entity)
    db.flush()
    return entity


def update_entity(db: Session, model: type[ModelT], entity_id: int, values: dict[str, Any]) -> Optional[ModelT]:
    entity = db.get(model, entity_id)
    if entity is None:
        return None
    for key, value in values.items():
        setattr(entity, key, value)
    db.flush()
    return entity


def delete_entity(db: Session, model: type[ModelT], entity_id: int) -> bool:
    entity = db.get(model, entity_id)
    if entity is None:
        return False
    db.delete(entity)
    db.flush()
    return True


@contextmanager
def committing(db: Session, conflict_detail: str) -> Iterator[None]:
    """Run the block and commit; unique or foreign-key violations become a 409."""
    try:
        yield
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise HTTPException(409, conflict_detail) from exc


def get_technician_by_user(db: Session, user_id: int) -> Optional[Technician]:
    return db.execute(select(Technician).where(Technician.user_id == user_id)).scalar_one_or_none()


def technician_display(db: Session, technician: Technician) -> dict[str, Any]:
    user = db.get(User, technician.user_id)
    return {
        "id": technician.id,
        "user_id": technician.user_id,
        "specialization": technician.specialization,
        "status": technician.status,
        "full_name": user.full_name if user else None,
        "email": user.email if user else None,
        "created_at": technician.created_at,
    }


def get_company_settings(db: Session) -> Optional[CompanySettings]:
    return db.execute(select(CompanySettings).order_by(CompanySettings.id.asc()).limit(1)).scalar_one_or_none()


def upsert_company_settings(db: Session, values: dict[str, Any]) -> CompanySettings:
    # An empty password in the form means "keep the current one".
    if not values.get("smtp_password"):
        values.pop("smtp_password", None)

    existing = get_company_settings(db)
    if existing is None:
        return create_entity(db, CompanySettings, values)
    for key, value in values.items():
        setattr(existing, key, value)
    existing.updated_at = datetime.now(timezone.utc)
    db.flush()
    return existing


def dashboard_stats(db: Session, *, now: Optional[datetime] = None) -> dict[str, Any]:
    now = now or datetime.now(timezone.utc)
    counts = dict(
        db.execute(select(ServiceOrder.status, func.count()).group_by(ServiceOrder.status)).all()
    )
    total = sum(counts.values())
    completed = counts.get("completed", 0)
    active = sum(count for status, count in counts.items() if status not in ACTIVE_EXCLUDED_STATUSES)

    month_start = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    if month_start.tzinfo is not None and db.get_bind().dialect.name == "sqlite":
        month_start = month_start.replace(tzinfo=None)
    new_clients = db.execute(
        select(func.count()).select_from(Client).where(Client.created_at >= month_start)
    ).scalar_one()

    return {
        "total_orders": total,
        "active_orders": active,
        "completed_orders": completed,
        "pending_orders": counts.get("pending", 0),
        "completed_percentage": round(completed * 100 / total) if total else 0,
        "orders_by_status": counts,
        "total_clients": db.execute(select(func.count()).select_from(Client)).scalar_one(),
        "new_clients_this_month": new_clients,
        "available_technicians": db.execute(
            select(func.count()).select_from(Technician).where(Technician.status == "available")
        ).scalar_one(),
    }


def recent_orders(db: Session, *, limit: int = RECENT_ORDERS_LIMIT) -> list[dict[str, Any]]:
    """Newest orders by request date, each with its client and technician names."""
    rows = db.execute(
        select(ServiceOrder, Client.name, User.full_name)
        .outerjoin(Client, Client.id == ServiceOrder.client_id)
        .outerjoin(Technician, Technician.id == ServiceOrder.technician_id)
        .outerjoin(User, User.id == Technician.user_id)
        .order_by(ServiceOrder.request_date.desc(), ServiceOrder.id.desc())
        .limit(limit)
    ).all()
    return [
        {
            "order": order,
            "client_name": client_name or UNKNOWN_CLIENT,
            "technician_name": technician_name or UNASSIGNED_TECHNICIAN,
        }
        for order, client_name, technician_name in rows
    ]


def technicians_status(db: Session) -> list[dict[str, Any]]:
    rows = db.execute(
        select(Technician, User.full_name)
        .outerjoin(User, User.id == Technician.user_id)
        .order_by(Technician.id.asc())
    ).all()
    return [
        {
            "id": technician.id,
            "name": full_name or UNNAMED_TECHNICIAN,
            "status": technician.status,
            "specialization": technician.specialization,
        }
        for technician, full_name in rows
    ]


def equipment_label(equipment: Optional[Equipment]) -> str:
    if equipment is None:
        return ""
    return " ".join(part for part in (equipment.brand, equipment.model) if part).strip()
