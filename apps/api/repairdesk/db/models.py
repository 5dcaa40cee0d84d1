"""SQLAlchemy ORM models for scheduling, availability and the ticket hand-off."""

from __future__ import annotations

import datetime as dt
import uuid
from datetime import date, datetime, time
from decimal import Decimal

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Date,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    Time,
    UniqueConstraint,
    Uuid,
    func,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from repairdesk.db.base import Base
from repairdesk.db.enums import (
    DEFAULT_APPOINTMENT_STATUS,
    NotificationChannel,
    NotificationStatus,
    SpecialDateType,
    TicketPriority,
    TicketStatus,
)

# JSONB on PostgreSQL, plain JSON elsewhere (tests run on SQLite)
JsonType = JSON().with_variant(JSONB(), "postgresql")


# =============================================================================
# Calendar Rules
# =============================================================================

class BusinessHours(Base):
    """
    Recurring opening hours for one weekday.

    Uses Python weekday numbering: Monday=0, Sunday=6.
    One row per weekday; `is_active=False` means closed that day.
    """

    __tablename__ = "business_hours"
    __table_args__ = (
        CheckConstraint("day_of_week >= 0 AND day_of_week <= 6", name="ck_business_hours_day"),
        CheckConstraint("open_time < close_time", name="ck_business_hours_order"),
        CheckConstraint(
            "(break_start IS NULL AND break_end IS NULL) OR "
            "(break_start > open_time AND break_end < close_time AND break_start < break_end)",
            name="ck_business_hours_break",
        ),
    )

    day_of_week: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    is_active: Mapped[bool] = mapped_column(
        Boolean, default=True, server_default=text("TRUE"), nullable=False
    )
    open_time: Mapped[time] = mapped_column(Time, nullable=False)
    close_time: Mapped[time] = mapped_column(Time, nullable=False)
    break_start: Mapped[time | None] = mapped_column(Time, nullable=True)
    break_end: Mapped[time | None] = mapped_column(Time, nullable=True)

    created_at: Mapped[datetime] = mapped_column(server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        server_default=func.now(), onupdate=func.now(), nullable=False
    )


class SpecialDate(Base):
    """
    One-off calendar override (holiday closure or modified hours).

    A closure wins over the weekday's business hours; special hours replace
    them for that date only.
    """

    __tablename__ = "special_dates"
    __table_args__ = (
        CheckConstraint(
            f"type IN ('{SpecialDateType.CLOSURE.value}', '{SpecialDateType.SPECIAL_HOURS.value}')",
            name="ck_special_dates_type",
        ),
        CheckConstraint(
            f"type = '{SpecialDateType.CLOSURE.value}' OR "
            "(open_time IS NOT NULL AND close_time IS NOT NULL AND open_time < close_time)",
            name="ck_special_dates_hours",
        ),
    )

    date: Mapped[dt.date] = mapped_column(Date, primary_key=True)
    type: Mapped[str] = mapped_column(String(20), nullable=False)
    name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    open_time: Mapped[time | None] = mapped_column(Time, nullable=True)
    close_time: Mapped[time | None] = mapped_column(Time, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        server_default=func.now(), onupdate=func.now(), nullable=False
    )


# =============================================================================
# Slots
# =============================================================================

class AppointmentSlot(Base):
    """
    Discrete bookable time unit with finite capacity.

    `is_available` is kept equal to `is_enabled AND current_capacity < max_capacity`
    by the slot service; reservations use it as the guard of a conditional UPDATE.
    Slots are never deleted, only toggled through `is_enabled`.
    """

    __tablename__ = "appointment_slots"
    __table_args__ = (
        UniqueConstraint("date", "start_time", "staff_id", name="uq_appointment_slot"),
        Index("idx_appointment_slots_date", "date", "is_available"),
        CheckConstraint("start_time < end_time", name="ck_appointment_slots_order"),
        CheckConstraint("max_capacity >= 1", name="ck_appointment_slots_max_capacity"),
        CheckConstraint(
            "current_capacity >= 0 AND current_capacity <= max_capacity",
            name="ck_appointment_slots_capacity",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    date: Mapped[dt.date] = mapped_column(Date, nullable=False)
    start_time: Mapped[time] = mapped_column(Time, nullable=False)
    end_time: Mapped[time] = mapped_column(Time, nullable=False)
    duration_minutes: Mapped[int] = mapped_column(Integer, nullable=False)
    staff_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)

    is_enabled: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    is_available: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    max_capacity: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    current_capacity: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    # Most recent reservation (appointments keep their own slot_id)
    appointment_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)

    created_at: Mapped[datetime] = mapped_column(server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        server_default=func.now(), onupdate=func.now(), nullable=False
    )


# =============================================================================
# Customers & Devices (collaborators)
# =============================================================================

class Customer(Base):
    __tablename__ = "customers"
    __table_args__ = (Index("idx_customers_email", "email"),)

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)

    created_at: Mapped[datetime] = mapped_column(server_default=func.now(), nullable=False)


class Device(Base):
    """Device catalog entry (manufacturer + model)."""

    __tablename__ = "devices"
    __table_args__ = (
        UniqueConstraint("manufacturer", "model_name", name="uq_device_model"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    manufacturer: Mapped[str] = mapped_column(String(100), nullable=False)
    model_name: Mapped[str] = mapped_column(String(200), nullable=False)

    created_at: Mapped[datetime] = mapped_column(server_default=func.now(), nullable=False)


class CustomerDevice(Base):
    """A specific physical device owned by a customer."""

    __tablename__ = "customer_devices"
    __table_args__ = (Index("idx_customer_devices_customer", "customer_id"),)

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    customer_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("customers.id", ondelete="CASCADE"), nullable=False
    )
    device_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("devices.id", ondelete="SET NULL"), nullable=True
    )
    serial_number: Mapped[str | None] = mapped_column(String(100), nullable=True)
    imei: Mapped[str | None] = mapped_column(String(20), nullable=True)
    color: Mapped[str | None] = mapped_column(String(50), nullable=True)
    storage_size: Mapped[str | None] = mapped_column(String(50), nullable=True)
    nickname: Mapped[str | None] = mapped_column(String(100), nullable=True)

    created_at: Mapped[datetime] = mapped_column(server_default=func.now(), nullable=False)

    device: Mapped["Device | None"] = relationship()


class Service(Base):
    """Repair service catalog entry."""

    __tablename__ = "services"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    base_price: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)


# =============================================================================
# Appointments
# =============================================================================

class Appointment(Base):
    """
    Customer appointment at the shop.

    Never deleted: cancellation is a status. Lifecycle changes go through
    appointment_service only.
    """

    __tablename__ = "appointments"
    __table_args__ = (
        UniqueConstraint("appointment_number", name="uq_appointment_number"),
        Index("idx_appointments_schedule", "scheduled_date", "status"),
        Index("idx_appointments_customer", "customer_id"),
        CheckConstraint("duration_minutes > 0", name="ck_appointments_duration"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    appointment_number: Mapped[str] = mapped_column(String(30), nullable=False)

    customer_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("customers.id", ondelete="SET NULL"), nullable=True
    )
    device_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("devices.id", ondelete="SET NULL"), nullable=True
    )
    customer_device_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("customer_devices.id", ondelete="SET NULL"), nullable=True
    )
    slot_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("appointment_slots.id", ondelete="SET NULL"), nullable=True
    )

    # Schedule (shop-local wall clock)
    scheduled_date: Mapped[date] = mapped_column(Date, nullable=False)
    scheduled_time: Mapped[time] = mapped_column(Time, nullable=False)
    duration_minutes: Mapped[int] = mapped_column(Integer, default=30, nullable=False)

    # Work
    service_ids: Mapped[list | None] = mapped_column(JsonType, nullable=True)
    estimated_cost: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    issues: Mapped[list | None] = mapped_column(JsonType, nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    urgency: Mapped[str | None] = mapped_column(String(20), nullable=True)
    source: Mapped[str | None] = mapped_column(String(20), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Status
    status: Mapped[str] = mapped_column(
        String(20), default=DEFAULT_APPOINTMENT_STATUS.value, nullable=False
    )
    confirmed_at: Mapped[datetime | None] = mapped_column(nullable=True)
    confirmation_sent_at: Mapped[datetime | None] = mapped_column(nullable=True)
    reminder_sent_at: Mapped[datetime | None] = mapped_column(nullable=True)
    arrived_at: Mapped[datetime | None] = mapped_column(nullable=True)
    cancelled_at: Mapped[datetime | None] = mapped_column(nullable=True)
    cancellation_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    converted_to_ticket_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("repair_tickets.id", ondelete="SET NULL"), nullable=True
    )

    # Staff (users live outside this service)
    created_by: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)
    assigned_to: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)

    created_at: Mapped[datetime] = mapped_column(server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        server_default=func.now(), onupdate=func.now(), nullable=False
    )

    # Relationships
    customer: Mapped["Customer | None"] = relationship()
    device: Mapped["Device | None"] = relationship()
    customer_device: Mapped["CustomerDevice | None"] = relationship()


# =============================================================================
# Tickets (conversion target)
# =============================================================================

class RepairTicket(Base):
    __tablename__ = "repair_tickets"
    __table_args__ = (
        UniqueConstraint("ticket_number", name="uq_ticket_number"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    ticket_number: Mapped[str] = mapped_column(String(30), nullable=False)
    customer_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("customers.id", ondelete="SET NULL"), nullable=True
    )
    device_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("devices.id", ondelete="SET NULL"), nullable=True
    )
    customer_device_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("customer_devices.id", ondelete="SET NULL"), nullable=True
    )
    device_brand: Mapped[str] = mapped_column(String(100), nullable=False)
    device_model: Mapped[str] = mapped_column(String(200), nullable=False)
    serial_number: Mapped[str | None] = mapped_column(String(100), nullable=True)
    imei: Mapped[str | None] = mapped_column(String(20), nullable=True)
    repair_issues: Mapped[list | None] = mapped_column(JsonType, nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    estimated_cost: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    assigned_to: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)
    status: Mapped[str] = mapped_column(String(20), default=TicketStatus.NEW.value, nullable=False)
    priority: Mapped[str] = mapped_column(
        String(20), default=TicketPriority.MEDIUM.value, nullable=False
    )

    created_at: Mapped[datetime] = mapped_column(server_default=func.now(), nullable=False)

    services: Mapped[list["TicketService"]] = relationship(
        back_populates="ticket", cascade="all, delete-orphan"
    )


class TicketService(Base):
    """Service line item on a ticket; unit price is a snapshot."""

    __tablename__ = "ticket_services"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    ticket_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("repair_tickets.id", ondelete="CASCADE"), nullable=False
    )
    service_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("services.id", ondelete="RESTRICT"), nullable=False
    )
    quantity: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)

    ticket: Mapped["RepairTicket"] = relationship(back_populates="services")


# =============================================================================
# Notifications (outbox)
# =============================================================================

class NotificationLog(Base):
    """
    Queued customer notification.

    Rows are written with status=queued; delivery is done by the outbound
    email/SMS worker, which flips them to sent/failed.
    """

    __tablename__ = "notification_logs"
    __table_args__ = (
        Index("idx_notification_logs_status", "status", "created_at"),
        Index("idx_notification_logs_appointment", "appointment_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    kind: Mapped[str] = mapped_column(String(50), nullable=False)
    channel: Mapped[str] = mapped_column(
        String(20), default=NotificationChannel.EMAIL.value, nullable=False
    )
    recipient: Mapped[str] = mapped_column(String(255), nullable=False)
    subject: Mapped[str] = mapped_column(String(255), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    payload: Mapped[dict | None] = mapped_column(JsonType, nullable=True)
    customer_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)
    appointment_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)
    status: Mapped[str] = mapped_column(
        String(20), default=NotificationStatus.QUEUED.value, nullable=False
    )
    error: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(server_default=func.now(), nullable=False)
    sent_at: Mapped[datetime | None] = mapped_column(nullable=True)
