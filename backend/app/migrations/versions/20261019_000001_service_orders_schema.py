"""service orders schema

Revision ID: 20261019_000001
Revises:
Create Date: 2026-10-19 09:00:00
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision = "20261019_000001"
down_revision = None
branch_labels = None
depends_on = None

JSON_TYPE = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("username", sa.String(length=64), nullable=False, unique=True),
        sa.Column("full_name", sa.String(length=255), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False, unique=True),
        sa.Column("role", sa.String(length=32), nullable=False, server_default=sa.text("'user'")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("role IN ('admin', 'manager', 'technician', 'user')", name="ck_users_role"),
    )

    op.create_table(
        "clients",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("contact_name", sa.String(length=255), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False, server_default=sa.text("''")),
        sa.Column("phone", sa.String(length=64), nullable=False),
        sa.Column("address", sa.Text(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )

    op.create_table(
        "technicians",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False, unique=True),
        sa.Column("specialization", sa.String(length=255), nullable=False),
        sa.Column("status", sa.String(length=32), nullable=False, server_default=sa.text("'available'")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint(
            "status IN ('available', 'in_service', 'unavailable')",
            name="ck_technicians_status",
        ),
    )

    op.create_table(
        "equipment",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("type", sa.String(length=32), nullable=False),
        sa.Column("brand", sa.String(length=255), nullable=False),
        sa.Column("model", sa.String(length=255), nullable=False),
        sa.Column("serial_number", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text()),
        sa.Column("location", sa.String(length=255)),
        sa.Column("company", sa.String(length=255)),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint(
            "type IN ('desktop', 'laptop', 'server', 'printer', 'network', 'other')",
            name="ck_equipment_type",
        ),
    )

    op.create_table(
        "service_orders",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("order_number", sa.String(length=32), nullable=False, unique=True),
        sa.Column("client_id", sa.Integer(), sa.ForeignKey("clients.id"), nullable=False),
        sa.Column("equipment_id", sa.Integer(), sa.ForeignKey("equipment.id"), nullable=False),
        sa.Column("technician_id", sa.Integer(), sa.ForeignKey("technicians.id")),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("status", sa.String(length=32), nullable=False, server_default=sa.text("'pending'")),
        sa.Column("request_date", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("expected_delivery_date", sa.DateTime(timezone=True)),
        sa.Column("completion_date", sa.DateTime(timezone=True)),
        sa.Column("notes", sa.Text()),
        sa.Column("materials_used", sa.Text()),
        sa.Column("client_signature", sa.Text()),
        sa.Column("photos", JSON_TYPE, nullable=False),
        sa.Column("client_approval", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("client_approval_date", sa.DateTime(timezone=True)),
        sa.Column("cost", sa.Integer()),
        sa.CheckConstraint(
            "status IN ('pending', 'waiting_approval', 'approved', 'in_progress', "
            "'completed', 'cancelled', 'warranty')",
            name="ck_service_orders_status",
        ),
    )
    op.create_index("idx_service_orders_client", "service_orders", ["client_id"])
    op.create_index("idx_service_orders_technician", "service_orders", ["technician_id"])
    op.create_index("idx_service_orders_status", "service_orders", ["status"])

    op.create_table(
        "order_number_sequences",
        sa.Column("year", sa.Integer(), primary_key=True, autoincrement=False),
        sa.Column("last_value", sa.Integer(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )

    op.create_table(
        "company_settings",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("logo_url", sa.Text()),
        sa.Column("address", sa.Text(), nullable=False),
        sa.Column("phone", sa.String(length=64), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("website", sa.String(length=255)),
        sa.Column("tax_id", sa.String(length=64)),
        sa.Column("smtp_host", sa.String(length=255)),
        sa.Column("smtp_port", sa.Integer()),
        sa.Column("smtp_secure", sa.Boolean(), server_default=sa.text("true")),
        sa.Column("smtp_user", sa.String(length=255)),
        sa.Column("smtp_password", sa.String(length=255)),
        sa.Column("smtp_from_name", sa.String(length=255)),
        sa.Column("smtp_from_email", sa.String(length=255)),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )

    op.create_table(
        "notification_outbox",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("entity_type", sa.String(length=50), nullable=False),
        sa.Column("entity_id", sa.String(length=64), nullable=False),
        sa.Column("channel", sa.String(length=32), nullable=False),
        sa.Column("template_key", sa.String(length=64), nullable=False),
        sa.Column("payload_json", JSON_TYPE, nullable=False),
        sa.Column("dedupe_key", sa.String(length=255), nullable=False, unique=True),
        sa.Column("status", sa.String(length=16), nullable=False, server_default=sa.text("'PENDING'")),
        sa.Column("attempt_count", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("next_attempt_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("last_error", sa.Text()),
        sa.Column("sent_at", sa.DateTime(timezone=True)),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint(
            "status IN ('PENDING', 'RETRY', 'SENDING', 'SENT', 'FAILED')",
            name="ck_notification_outbox_status",
        ),
    )
    op.create_index("idx_notification_outbox_due", "notification_outbox", ["status", "next_attempt_at"])
    op.create_index("idx_notification_outbox_entity", "notification_outbox", ["entity_type", "entity_id"])


def downgrade() -> None:
    op.drop_index("idx_notification_outbox_entity", table_name="notification_outbox")
    op.drop_index("idx_notification_outbox_due", table_name="notification_outbox")
    op.drop_table("notification_outbox")
    op.drop_table("company_settings")
    op.drop_table("order_number_sequences")
    op.drop_index("idx_service_orders_status", table_name="service_orders")
    op.drop_index("idx_service_orders_technician", table_name="service_orders")
    op.drop_index("idx_service_orders_client", table_name="service_orders")
    op.drop_table("service_orders")
    op.drop_table("equipment")
    op.drop_table("technicians")
    op.drop_table("clients")
    op.drop_table("users")
