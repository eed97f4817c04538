import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import HTTPException

from app.core.config import get_settings
from app.models.service_order import ServiceOrder
from app.schemas.service_order import OrderStatus

logger = logging.getLogger(__name__)


TERMINAL_STATUSES = {OrderStatus.COMPLETED, OrderStatus.CANCELLED}

ALLOWED_TRANSITIONS = {
    OrderStatus.PENDING: [OrderStatus.WAITING_APPROVAL],
    OrderStatus.WAITING_APPROVAL: [OrderStatus.APPROVED],
    OrderStatus.APPROVED: [OrderStatus.IN_PROGRESS],
    OrderStatus.IN_PROGRESS: [OrderStatus.COMPLETED],
    OrderStatus.WARRANTY: [OrderStatus.IN_PROGRESS, OrderStatus.COMPLETED],
    OrderStatus.COMPLETED: [],
    OrderStatus.CANCELLED: [],
}

STATUS_LABELS = {
    OrderStatus.PENDING: "Pending",
    OrderStatus.WAITING_APPROVAL: "Waiting for approval",
    OrderStatus.APPROVED: "Approved",
    OrderStatus.IN_PROGRESS: "In progress",
    OrderStatus.COMPLETED: "Completed",
    OrderStatus.CANCELLED: "Cancelled",
    OrderStatus.WARRANTY: "Under warranty",
}


def status_label(status: str) -> str:
    try:
        return STATUS_LABELS[OrderStatus(status)]
    except ValueError:
        return status


def is_transition_allowed(current: OrderStatus, new: OrderStatus) -> bool:
    if current == new:
        return True
    if current in TERMINAL_STATUSES:
        return False
    # cancelled and warranty are reachable from every non-terminal state
    if new in {OrderStatus.CANCELLED, OrderStatus.WARRANTY}:
        return True
    return new in ALLOWED_TRANSITIONS.get(current, [])


def apply_status_change(
    order: ServiceOrder,
    new_status: OrderStatus,
    *,
    completion_date: Optional[datetime] = None,
    enforce: Optional[bool] = None,
) -> bool:
    """Move *order* to *new_status* and derive the fields that follow from it.

    Transition legality is only checked when ``ENFORCE_STATUS_TRANSITIONS`` is on
    (or *enforce* is passed); otherwise any status may be set at any time.
    Returns False when the status did not change.
    """
    current = OrderStatus(order.status)
    if new_status == current:
        return False

    if enforce is None:
        enforce = get_settings().enforce_status_transitions
    if enforce and not is_transition_allowed(current, new_status):
        raise HTTPException(409, f"Illegal status transition: {current.value} -> {new_status.value}")

    order.status = new_status.value

    if new_status == OrderStatus.WARRANTY:
        order.cost = 0

    if new_status == OrderStatus.COMPLETED and order.completion_date is None and completion_date is None:
        order.completion_date = datetime.now(timezone.utc)

    logger.info(
        "Service order status change order=%s %s -> %s",
        order.order_number,
        current.value,
        new_status.value,
    )
    return True
