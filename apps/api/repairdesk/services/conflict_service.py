"""Conflict detection - keeps the calendar free of double bookings.

Appointments occupy the half-open interval [start, start + duration). Two
appointments conflict when their intervals intersect; back-to-back bookings
that only touch do not.
"""

import logging
from datetime import date, time
from uuid import UUID

from sqlalchemy import text
from sqlalchemy.orm import Session

from repairdesk.core.config import settings
from repairdesk.db.enums import BLOCKING_APPOINTMENT_STATUSES
from repairdesk.db.models import Appointment

logger = logging.getLogger(__name__)

# First key of the two-int advisory lock; the second key is the date ordinal
SCHEDULE_LOCK_NAMESPACE = 7231

MINUTES_PER_DAY = 24 * 60


# =============================================================================
# Time Helpers
# =============================================================================

def time_to_minutes(value: time) -> int:
    """Minutes since midnight."""
    return value.hour * 60 + value.minute


def minutes_to_time(minutes: int) -> time:
    """Inverse of time_to_minutes (minutes must fall within one day)."""
    if not 0 <= minutes < MINUTES_PER_DAY:
        raise ValueError(f"{minutes} minutes is outside a single day")
    return time(minutes // 60, minutes % 60)


def intervals_overlap(start_a: int, end_a: int, start_b: int, end_b: int) -> bool:
    """True if half-open intervals [start_a, end_a) and [start_b, end_b) intersect."""
    return start_a < end_b and start_b < end_a


def appointment_interval(appointment: Appointment) -> tuple[int, int]:
    """(start, end) in minutes; missing durations count as the default length."""
    start = time_to_minutes(appointment.scheduled_time)
    duration = appointment.duration_minutes or settings.DEFAULT_APPOINTMENT_DURATION_MINUTES
    return start, start + duration


# =============================================================================
# Conflict Check
# =============================================================================

def check_conflicts(
    db: Session,
    on_date: date,
    start_time: time,
    duration_minutes: int | None = None,
    exclude_appointment_id: UUID | None = None,
) -> list[Appointment]:
    """
    Find active appointments overlapping the proposed booking.

    Only scheduled and confirmed appointments take part; arrived, converted,
    cancelled and no-show appointments no longer hold their time.
    Returned in start-time order.
    """
    duration = duration_minutes or settings.DEFAULT_APPOINTMENT_DURATION_MINUTES
    start = time_to_minutes(start_time)
    end = start + duration

    query = db.query(Appointment).filter(
        Appointment.scheduled_date == on_date,
        Appointment.status.in_([s.value for s in BLOCKING_APPOINTMENT_STATUSES]),
    )
    if exclude_appointment_id:
        query = query.filter(Appointment.id != exclude_appointment_id)

    conflicts = []
    for existing in query.order_by(Appointment.scheduled_time).all():
        existing_start, existing_end = appointment_interval(existing)
        if intervals_overlap(start, end, existing_start, existing_end):
            conflicts.append(existing)
    return conflicts


# =============================================================================
# Booking Lock
# =============================================================================

def lock_schedule_date(db: Session, on_date: date) -> None:
    """
    Serialize booking writes for one date until the transaction ends.

    PostgreSQL: transaction-scoped advisory lock, released on commit/rollback,
    so lock -> conflict check -> insert cannot interleave with another writer
    for the same date. SQLite serializes writers on its own.
    """
    if db.get_bind().dialect.name != "postgresql":
        return
    db.execute(
        text("SELECT pg_advisory_xact_lock(:namespace, :key)"),
        {"namespace": SCHEDULE_LOCK_NAMESPACE, "key": on_date.toordinal()},
    )
    logger.debug("Acquired schedule lock for %s", on_date.isoformat())
