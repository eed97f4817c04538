from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import declarative_base
from sqlalchemy.sql import func

Base = declarative_base()

JSON_TYPE = JSON().with_variant(JSONB, "postgresql")

ORDER_STATUSES = (
    "pending",
    "waiting_approval",
    "approved",
    "in_progress",
    "completed",
    "cancelled",
    "warranty",
)
USER_ROLES = ("admin", "manager", "technician", "user")
TECHNICIAN_STATUSES = ("available", "in_service", "unavailable")
EQUIPMENT_TYPES = ("desktop", "laptop", "server", "printer", "network", "other")


def _in_clause(column: str, values: tuple[str, ...]) -> str:
    quoted = ", ".join(f"'{value}'" for value in values)
    return f"{column} IN ({quoted})"


class User(Base):
    __tablename__ = "users"
    __table_args__ = (CheckConstraint(_in_clause("role", USER_ROLES), name="ck_users_role"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    username = Column(String(64), nullable=False, unique=True)
    full_name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=False, unique=True)
    role = Column(String(32), nullable=False, default="user", server_default=text("'user'"))
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)


class Client(Base):
    __tablename__ = "clients"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    contact_name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=False, default="", server_default=text("''"))
    phone = Column(String(64), nullable=False)
    address = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)


class Technician(Base):
    __tablename__ = "technicians"
    __table_args__ = (
        CheckConstraint(_in_clause("status", TECHNICIAN_STATUSES), name="ck_technicians_status"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, unique=True)
    specialization = Column(String(255), nullable=False)
    status = Column(String(32), nullable=False, default="available", server_default=text("'available'"))
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)


class Equipment(Base):
    __tablename__ = "equipment"
    __table_args__ = (CheckConstraint(_in_clause("type", EQUIPMENT_TYPES), name="ck_equipment_type"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    type = Column(String(32), nullable=False)
    brand = Column(String(255), nullable=False)
    model = Column(String(255), nullable=False)
    serial_number = Column(String(255), nullable=False)
    description = Column(Text)
    location = Column(String(255))
    company = Column(String(255))
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)


class ServiceOrder(Base):
    __tablename__ = "service_orders"
    __table_args__ = (
        CheckConstraint(_in_clause("status", ORDER_STATUSES), name="ck_service_orders_status"),
        Index("idx_service_orders_client", "client_id"),
        Index("idx_service_orders_technician", "technician_id"),
        Index("idx_service_orders_status", "status"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    order_number = Column(String(32), nullable=False, unique=True)
    client_id = Column(Integer, ForeignKey("clients.id"), nullable=False)
    equipment_id = Column(Integer, ForeignKey("equipment.id"), nullable=False)
    technician_id = Column(Integer, ForeignKey("technicians.id"))
    description = Column(Text, nullable=False)
    status = Column(String(32), nullable=False, default="pending", server_default=text("'pending'"))
    request_date = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    expected_delivery_date = Column(DateTime(timezone=True))
    completion_date = Column(DateTime(timezone=True))
    notes = Column(Text)
    materials_used = Column(Text)
    client_signature = Column(Text)
    photos = Column(JSON_TYPE, nullable=False, default=list)
    client_approval = Column(Boolean, nullable=False, default=False, server_default=text("false"))
    client_approval_date = Column(DateTime(timezone=True))
    cost = Column(Integer)


class OrderNumberSequence(Base):
    __tablename__ = "order_number_sequences"

    year = Column(Integer, primary_key=True, autoincrement=False)
    last_value = Column(Integer, nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )


class CompanySettings(Base):
    __tablename__ = "company_settings"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    logo_url = Column(Text)
    address = Column(Text, nullable=False)
    phone = Column(String(64), nullable=False)
    email = Column(String(255), nullable=False)
    website = Column(String(255))
    tax_id = Column(String(64))
    smtp_host = Column(String(255))
    smtp_port = Column(Integer)
    smtp_secure = Column(Boolean, default=True, server_default=text("true"))
    smtp_user = Column(String(255))
    smtp_password = Column(String(255))
    smtp_from_name = Column(String(255))
    smtp_from_email = Column(String(255))
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )


class NotificationOutbox(Base):
    __tablename__ = "notification_outbox"
    __table_args__ = (
        CheckConstraint(
            _in_clause("status", ("PENDING", "RETRY", "SENDING", "SENT", "FAILED")),
            name="ck_notification_outbox_status",
        ),
        Index("idx_notification_outbox_due", "status", "next_attempt_at"),
        Index("idx_notification_outbox_entity", "entity_type", "entity_id"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    entity_type = Column(String(50), nullable=False)
    entity_id = Column(String(64), nullable=False)
    channel = Column(String(32), nullable=False)
    template_key = Column(String(64), nullable=False)
    payload_json = Column(JSON_TYPE, nullable=False)
    dedupe_key = Column(String(255), nullable=False, unique=True)
    status = Column(String(16), nullable=False, default="PENDING", server_default=text("'PENDING'"))
    attempt_count = Column(Integer, nullable=False, default=0, server_default=text("0"))
    next_attempt_at = Column(DateTime(timezone=True), nullable=False)
    last_error = Column(Text)
    sent_at = Column(DateTime(timezone=True))
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
