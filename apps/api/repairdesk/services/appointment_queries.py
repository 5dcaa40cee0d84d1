"""Appointment read paths - typed filters and DTO builders.

Filters are a closed set of small dataclasses; `apply_filters` turns each into
a WHERE clause. Every read path builds its own DTO instead of sharing one
over-fetched shape.
"""

from dataclasses import dataclass
from datetime import date, timedelta
from typing import Union
from uuid import UUID

from sqlalchemy.orm import Query, Session, joinedload

from repairdesk.core.config import settings
from repairdesk.db.enums import AppointmentStatus, BLOCKING_APPOINTMENT_STATUSES
from repairdesk.db.models import Appointment, CustomerDevice, RepairTicket
from repairdesk.schemas.appointment import (
    AppointmentDetail,
    AppointmentRead,
    AppointmentSummary,
    AppointmentWithCustomer,
    CustomerDeviceSummary,
    CustomerSummary,
    DeviceSummary,
)


# =============================================================================
# Filters
# =============================================================================

@dataclass(frozen=True)
class ByStatus:
    statuses: tuple[AppointmentStatus, ...]


@dataclass(frozen=True)
class ByDateRange:
    """Inclusive on both ends; either end may be open."""
    date_start: date | None = None
    date_end: date | None = None


@dataclass(frozen=True)
class ByCustomer:
    customer_id: UUID


@dataclass(frozen=True)
class ByAssignee:
    user_id: UUID


AppointmentFilter = Union[ByStatus, ByDateRange, ByCustomer, ByAssignee]


def apply_filters(query: Query, filters: list[AppointmentFilter]) -> Query:
    """Narrow an Appointment query; filters combine with AND."""
    for item in filters:
        if isinstance(item, ByStatus):
            query = query.filter(Appointment.status.in_([s.value for s in item.statuses]))
        elif isinstance(item, ByDateRange):
            if item.date_start:
                query = query.filter(Appointment.scheduled_date >= item.date_start)
            if item.date_end:
                query = query.filter(Appointment.scheduled_date <= item.date_end)
        elif isinstance(item, ByCustomer):
            query = query.filter(Appointment.customer_id == item.customer_id)
        elif isinstance(item, ByAssignee):
            query = query.filter(Appointment.assigned_to == item.user_id)
        else:
            raise TypeError(f"Unsupported appointment filter: {item!r}")
    return query


def _ordered(query: Query) -> Query:
    return query.order_by(Appointment.scheduled_date, Appointment.scheduled_time)


# =============================================================================
# Queries
# =============================================================================

def list_appointments(
    db: Session,
    filters: list[AppointmentFilter] | None = None,
    limit: int = 50,
    offset: int = 0,
) -> tuple[list[Appointment], int]:
    """Filtered page of appointments in schedule order, plus the total count."""
    query = apply_filters(db.query(Appointment), filters or [])
    total = query.count()
    appointments = (
        _ordered(query.options(joinedload(Appointment.customer)))
        .offset(offset)
        .limit(limit)
        .all()
    )
    return appointments, total


def get_todays_appointments(db: Session, today: date) -> list[Appointment]:
    """Every appointment on `today`, whatever its status."""
    query = apply_filters(db.query(Appointment), [ByDateRange(today, today)])
    return _ordered(query.options(joinedload(Appointment.customer))).all()


def get_upcoming_appointments(db: Session, today: date, days: int | None = None) -> list[Appointment]:
    """Active appointments from today through the upcoming window."""
    days = days or settings.UPCOMING_WINDOW_DAYS
    query = apply_filters(
        db.query(Appointment),
        [
            ByDateRange(today, today + timedelta(days=days)),
            ByStatus(BLOCKING_APPOINTMENT_STATUSES),
        ],
    )
    return _ordered(query.options(joinedload(Appointment.customer))).all()


# =============================================================================
# DTO Builders
# =============================================================================

def to_summary(appointment: Appointment) -> AppointmentSummary:
    return AppointmentSummary(
        id=appointment.id,
        appointment_number=appointment.appointment_number,
        scheduled_date=appointment.scheduled_date,
        scheduled_time=appointment.scheduled_time,
        duration_minutes=appointment.duration_minutes,
        status=appointment.status,
        urgency=appointment.urgency,
        customer_name=appointment.customer.name if appointment.customer else None,
    )


def to_read(appointment: Appointment) -> AppointmentRead:
    return AppointmentRead.model_validate(appointment)


def to_with_customer(appointment: Appointment) -> AppointmentWithCustomer:
    return AppointmentWithCustomer(
        **to_read(appointment).model_dump(),
        customer=(
            CustomerSummary.model_validate(appointment.customer)
            if appointment.customer
            else None
        ),
    )


def get_appointment_detail(db: Session, appointment_id: UUID) -> AppointmentDetail | None:
    """Appointment with customer, devices and ticket number loaded in one query."""
    appointment = (
        db.query(Appointment)
        .options(
            joinedload(Appointment.customer),
            joinedload(Appointment.device),
            joinedload(Appointment.customer_device).joinedload(CustomerDevice.device),
        )
        .filter(Appointment.id == appointment_id)
        .first()
    )
    if appointment is None:
        return None
    return to_detail(db, appointment)


def to_detail(db: Session, appointment: Appointment) -> AppointmentDetail:
    ticket_number = None
    if appointment.converted_to_ticket_id:
        ticket_number = db.query(RepairTicket.ticket_number).filter(
            RepairTicket.id == appointment.converted_to_ticket_id
        ).scalar()
    return AppointmentDetail(
        **to_with_customer(appointment).model_dump(),
        device=DeviceSummary.model_validate(appointment.device) if appointment.device else None,
        customer_device=(
            CustomerDeviceSummary.model_validate(appointment.customer_device)
            if appointment.customer_device
            else None
        ),
        ticket_number=ticket_number,
    )
