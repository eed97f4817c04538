from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from app.services.order_fields import normalize_photos, normalize_signature, parse_timestamp


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class OrderStatus(str, Enum):
    PENDING = "pending"
    WAITING_APPROVAL = "waiting_approval"
    APPROVED = "approved"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    WARRANTY = "warranty"


_DATE_FIELDS = ("expected_delivery_date", "completion_date", "client_approval_date")


class _NormalizedOrderFields(CamelModel):
    @field_validator("photos", mode="before", check_fields=False)
    @classmethod
    def _normalize_photos(cls, value):
        return normalize_photos(value)

    @field_validator("client_signature", mode="before", check_fields=False)
    @classmethod
    def _normalize_signature(cls, value):
        return normalize_signature(value)

    @field_validator(*_DATE_FIELDS, mode="before", check_fields=False)
    @classmethod
    def _parse_dates(cls, value):
        return parse_timestamp(value)


class ServiceOrderCreate(_NormalizedOrderFields):
    client_id: int
    equipment_id: int
    technician_id: Optional[int] = None
    description: str = Field(min_length=1)
    status: OrderStatus = OrderStatus.PENDING
    expected_delivery_date: Optional[datetime] = None
    notes: Optional[str] = None
    materials_used: Optional[str] = None
    client_signature: Optional[str] = None
    photos: List[str] = Field(default_factory=list)
    client_approval: bool = False
    client_approval_date: Optional[datetime] = None
    cost: Optional[int] = Field(default=None, ge=0)


class ServiceOrderUpdate(_NormalizedOrderFields):
    """Partial update. ``orderNumber`` and ``requestDate`` are not accepted and are dropped."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    client_id: Optional[int] = None
    equipment_id: Optional[int] = None
    technician_id: Optional[int] = None
    description: Optional[str] = Field(default=None, min_length=1)
    status: Optional[OrderStatus] = None
    expected_delivery_date: Optional[datetime] = None
    completion_date: Optional[datetime] = None
    notes: Optional[str] = None
    materials_used: Optional[str] = None
    client_signature: Optional[str] = None
    photos: Optional[List[str]] = None
    client_approval: Optional[bool] = None
    client_approval_date: Optional[datetime] = None
    cost: Optional[int] = Field(default=None, ge=0)


class ServiceOrderOut(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

    id: int
    order_number: str
    client_id: int
    equipment_id: int
    technician_id: Optional[int] = None
    description: str
    status: OrderStatus
    request_date: datetime
    expected_delivery_date: Optional[datetime] = None
    completion_date: Optional[datetime] = None
    notes: Optional[str] = None
    materials_used: Optional[str] = None
    client_signature: Optional[str] = None
    photos: List[str] = Field(default_factory=list)
    client_approval: bool = False
    client_approval_date: Optional[datetime] = None
    cost: Optional[int] = None


class BulkPdfRequest(CamelModel):
    order_ids: List[int] = Field(min_length=1, max_length=200)


class SendEmailRequest(CamelModel):
    to: Optional[str] = None
    subject: Optional[str] = Field(default=None, max_length=200)
    message: Optional[str] = Field(default=None, max_length=5000)

    @field_validator("to")
    @classmethod
    def _check_recipient(cls, value):
        if value is None:
            return None
        value = value.strip()
        if not value:
            return None
        if "@" not in value or value.startswith("@") or value.endswith("@"):
            raise ValueError("invalid email address")
        return value


class SendEmailResponse(CamelModel):
    success: bool
    recipient: str
    order_number: str
    message: str
