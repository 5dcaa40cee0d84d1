"""Baseline migration - scheduling, availability and ticket hand-off tables.

Revision ID: 0001_scheduling_baseline
Revises:
Create Date: 2024-06-01

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "0001_scheduling_baseline"
down_revision = None
branch_labels = None
depends_on = None


def _uuid_pk() -> sa.Column:
    return sa.Column(
        "id",
        postgresql.UUID(as_uuid=True),
        primary_key=True,
        server_default=sa.text("gen_random_uuid()"),
    )


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
    ]


def upgrade() -> None:
    op.execute("CREATE EXTENSION IF NOT EXISTS pgcrypto")  # For gen_random_uuid()

    # ==========================================================================
    # Calendar rules
    # ==========================================================================
    op.create_table(
        "business_hours",
        sa.Column("day_of_week", sa.Integer(), primary_key=True, autoincrement=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("TRUE")),
        sa.Column("open_time", sa.Time(), nullable=False),
        sa.Column("close_time", sa.Time(), nullable=False),
        sa.Column("break_start", sa.Time(), nullable=True),
        sa.Column("break_end", sa.Time(), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("day_of_week >= 0 AND day_of_week <= 6", name="ck_business_hours_day"),
        sa.CheckConstraint("open_time < close_time", name="ck_business_hours_order"),
        sa.CheckConstraint(
            "(break_start IS NULL AND break_end IS NULL) OR "
            "(break_start > open_time AND break_end < close_time AND break_start < break_end)",
            name="ck_business_hours_break",
        ),
    )

    op.create_table(
        "special_dates",
        sa.Column("date", sa.Date(), primary_key=True),
        sa.Column("type", sa.String(20), nullable=False),
        sa.Column("name", sa.String(100), nullable=True),
        sa.Column("open_time", sa.Time(), nullable=True),
        sa.Column("close_time", sa.Time(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("type IN ('closure', 'special_hours')", name="ck_special_dates_type"),
        sa.CheckConstraint(
            "type = 'closure' OR "
            "(open_time IS NOT NULL AND close_time IS NOT NULL AND open_time < close_time)",
            name="ck_special_dates_hours",
        ),
    )

    # ==========================================================================
    # Slots
    # ==========================================================================
    op.create_table(
        "appointment_slots",
        _uuid_pk(),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("start_time", sa.Time(), nullable=False),
        sa.Column("end_time", sa.Time(), nullable=False),
        sa.Column("duration_minutes", sa.Integer(), nullable=False),
        sa.Column("staff_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("is_enabled", sa.Boolean(), nullable=False, server_default=sa.text("TRUE")),
        sa.Column("is_available", sa.Boolean(), nullable=False, server_default=sa.text("TRUE")),
        sa.Column("max_capacity", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("current_capacity", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("appointment_id", postgresql.UUID(as_uuid=True), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("date", "start_time", "staff_id", name="uq_appointment_slot"),
        sa.CheckConstraint("start_time < end_time", name="ck_appointment_slots_order"),
        sa.CheckConstraint("max_capacity >= 1", name="ck_appointment_slots_max_capacity"),
        sa.CheckConstraint(
            "current_capacity >= 0 AND current_capacity <= max_capacity",
            name="ck_appointment_slots_capacity",
        ),
    )
    op.create_index("idx_appointment_slots_date", "appointment_slots", ["date", "is_available"])

    # ==========================================================================
    # Customers, devices, services
    # ==========================================================================
    op.create_table(
        "customers",
        _uuid_pk(),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("phone", sa.String(50), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
    )
    op.create_index("idx_customers_email", "customers", ["email"])

    op.create_table(
        "devices",
        _uuid_pk(),
        sa.Column("manufacturer", sa.String(100), nullable=False),
        sa.Column("model_name", sa.String(200), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.UniqueConstraint("manufacturer", "model_name", name="uq_device_model"),
    )

    op.create_table(
        "customer_devices",
        _uuid_pk(),
        sa.Column("customer_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("customers.id", ondelete="CASCADE"), nullable=False),
        sa.Column("device_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("devices.id", ondelete="SET NULL"), nullable=True),
        sa.Column("serial_number", sa.String(100), nullable=True),
        sa.Column("imei", sa.String(20), nullable=True),
        sa.Column("color", sa.String(50), nullable=True),
        sa.Column("storage_size", sa.String(50), nullable=True),
        sa.Column("nickname", sa.String(100), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
    )
    op.create_index("idx_customer_devices_customer", "customer_devices", ["customer_id"])

    op.create_table(
        "services",
        _uuid_pk(),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("base_price", sa.Numeric(10, 2), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("TRUE")),
    )

    # ==========================================================================
    # Tickets
    # ==========================================================================
    op.create_table(
        "repair_tickets",
        _uuid_pk(),
        sa.Column("ticket_number", sa.String(30), nullable=False),
        sa.Column("customer_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("customers.id", ondelete="SET NULL"), nullable=True),
        sa.Column("device_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("devices.id", ondelete="SET NULL"), nullable=True),
        sa.Column("customer_device_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("customer_devices.id", ondelete="SET NULL"), nullable=True),
        sa.Column("device_brand", sa.String(100), nullable=False),
        sa.Column("device_model", sa.String(200), nullable=False),
        sa.Column("serial_number", sa.String(100), nullable=True),
        sa.Column("imei", sa.String(20), nullable=True),
        sa.Column("repair_issues", postgresql.JSONB(), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("estimated_cost", sa.Numeric(10, 2), nullable=True),
        sa.Column("assigned_to", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="new"),
        sa.Column("priority", sa.String(20), nullable=False, server_default="medium"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.UniqueConstraint("ticket_number", name="uq_ticket_number"),
    )

    op.create_table(
        "ticket_services",
        _uuid_pk(),
        sa.Column("ticket_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("repair_tickets.id", ondelete="CASCADE"), nullable=False),
        sa.Column("service_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("services.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("unit_price", sa.Numeric(10, 2), nullable=False),
    )

    # ==========================================================================
    # Appointments
    # ==========================================================================
    op.create_table(
        "appointments",
        _uuid_pk(),
        sa.Column("appointment_number", sa.String(30), nullable=False),
        sa.Column("customer_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("customers.id", ondelete="SET NULL"), nullable=True),
        sa.Column("device_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("devices.id", ondelete="SET NULL"), nullable=True),
        sa.Column("customer_device_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("customer_devices.id", ondelete="SET NULL"), nullable=True),
        sa.Column("slot_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("appointment_slots.id", ondelete="SET NULL"), nullable=True),
        sa.Column("scheduled_date", sa.Date(), nullable=False),
        sa.Column("scheduled_time", sa.Time(), nullable=False),
        sa.Column("duration_minutes", sa.Integer(), nullable=False, server_default="30"),
        sa.Column("service_ids", postgresql.JSONB(), nullable=True),
        sa.Column("estimated_cost", sa.Numeric(10, 2), nullable=True),
        sa.Column("issues", postgresql.JSONB(), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("urgency", sa.String(20), nullable=True),
        sa.Column("source", sa.String(20), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="scheduled"),
        sa.Column("confirmed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("confirmation_sent_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("reminder_sent_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("arrived_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancellation_reason", sa.Text(), nullable=True),
        sa.Column("converted_to_ticket_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("repair_tickets.id", ondelete="SET NULL"), nullable=True),
        sa.Column("created_by", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("assigned_to", postgresql.UUID(as_uuid=True), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("appointment_number", name="uq_appointment_number"),
        sa.CheckConstraint("duration_minutes > 0", name="ck_appointments_duration"),
    )
    op.create_index("idx_appointments_schedule", "appointments", ["scheduled_date", "status"])
    op.create_index("idx_appointments_customer", "appointments", ["customer_id"])

    # ==========================================================================
    # Notification outbox
    # ==========================================================================
    op.create_table(
        "notification_logs",
        _uuid_pk(),
        sa.Column("kind", sa.String(50), nullable=False),
        sa.Column("channel", sa.String(20), nullable=False, server_default="email"),
        sa.Column("recipient", sa.String(255), nullable=False),
        sa.Column("subject", sa.String(255), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("payload", postgresql.JSONB(), nullable=True),
        sa.Column("customer_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("appointment_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="queued"),
        sa.Column("error", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("sent_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("idx_notification_logs_status", "notification_logs", ["status", "created_at"])
    op.create_index("idx_notification_logs_appointment", "notification_logs", ["appointment_id"])


def downgrade() -> None:
    op.drop_table("notification_logs")
    op.drop_table("appointments")
    op.drop_table("ticket_services")
    op.drop_table("repair_tickets")
    op.drop_table("services")
    op.drop_table("customer_devices")
    op.drop_table("devices")
    op.drop_table("customers")
    op.drop_table("appointment_slots")
    op.drop_table("special_dates")
    op.drop_table("business_hours")
