"""Slot store - generation, reservation and release of bookable slots.

Occupancy changes are single conditional UPDATE statements; the affected row
count tells whether the reservation won. Slots are never deleted.
"""

import logging
from datetime import date, time, timedelta
from uuid import UUID

from sqlalchemy import and_, case, null, update
from sqlalchemy.orm import Session

from repairdesk.core.config import settings
from repairdesk.db.models import Appointment, AppointmentSlot
from repairdesk.services import availability_service, conflict_service
from repairdesk.services.conflict_service import (
    intervals_overlap,
    minutes_to_time,
    time_to_minutes,
)
from repairdesk.services.scheduling_errors import NotFoundError, ValidationError

logger = logging.getLogger(__name__)


# =============================================================================
# Reads
# =============================================================================

def get_slot(db: Session, slot_id: UUID) -> AppointmentSlot | None:
    return db.get(AppointmentSlot, slot_id)


def find_slot(
    db: Session,
    on_date: date,
    start_time: time,
    staff_id: UUID | None = None,
) -> AppointmentSlot | None:
    """Slot starting exactly at date/time for a staff member (None = shared slot)."""
    query = db.query(AppointmentSlot).filter(
        AppointmentSlot.date == on_date,
        AppointmentSlot.start_time == start_time,
    )
    if staff_id is None:
        query = query.filter(AppointmentSlot.staff_id.is_(None))
    else:
        query = query.filter(AppointmentSlot.staff_id == staff_id)
    return query.first()


def list_slots(
    db: Session,
    on_date: date,
    available_only: bool = False,
) -> list[AppointmentSlot]:
    """All slots for a date, ordered by start time."""
    query = db.query(AppointmentSlot).filter(AppointmentSlot.date == on_date)
    if available_only:
        query = query.filter(
            AppointmentSlot.is_available == True,
            AppointmentSlot.current_capacity < AppointmentSlot.max_capacity,
        )
    return query.order_by(AppointmentSlot.start_time).all()


# =============================================================================
# Reservation
# =============================================================================

def reserve_slot(db: Session, slot_id: UUID, appointment_id: UUID) -> bool:
    """
    Take one unit of capacity on a slot.

    Returns False when the slot is full, disabled or missing. Does not commit:
    the caller's transaction decides whether the reservation sticks.
    """
    result = db.execute(
        update(AppointmentSlot)
        .where(
            AppointmentSlot.id == slot_id,
            AppointmentSlot.is_available == True,
            AppointmentSlot.current_capacity < AppointmentSlot.max_capacity,
        )
        .values(
            current_capacity=AppointmentSlot.current_capacity + 1,
            is_available=and_(
                AppointmentSlot.is_enabled == True,
                AppointmentSlot.current_capacity + 1 < AppointmentSlot.max_capacity,
            ),
            appointment_id=appointment_id,
        )
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


def release_slot(db: Session, slot_id: UUID, appointment_id: UUID | None = None) -> bool:
    """
    Give back one unit of capacity (never below zero).

    Availability falls back to the admin toggle. The slot's appointment link is
    cleared only if it points at `appointment_id`. Does not commit.
    """
    values = {
        "current_capacity": case(
            (AppointmentSlot.current_capacity > 0, AppointmentSlot.current_capacity - 1),
            else_=0,
        ),
        "is_available": AppointmentSlot.is_enabled,
    }
    if appointment_id is not None:
        values["appointment_id"] = case(
            (AppointmentSlot.appointment_id == appointment_id, null()),
            else_=AppointmentSlot.appointment_id,
        )
    result = db.execute(
        update(AppointmentSlot)
        .where(AppointmentSlot.id == slot_id)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


def release_slot_for_appointment(db: Session, appointment: Appointment) -> bool:
    """Release the slot an appointment holds, if any."""
    if not appointment.slot_id:
        return False
    released = release_slot(db, appointment.slot_id, appointment.id)
    if not released:
        logger.warning(
            "Slot %s for appointment %s no longer exists",
            appointment.slot_id,
            appointment.appointment_number,
        )
    return released


def set_slot_enabled(db: Session, slot_id: UUID, enabled: bool) -> AppointmentSlot:
    """Enable or disable a slot. Existing reservations are kept."""
    slot = db.get(AppointmentSlot, slot_id)
    if not slot:
        raise NotFoundError("Slot not found")
    slot.is_enabled = enabled
    slot.is_available = enabled and slot.current_capacity < slot.max_capacity
    db.commit()
    db.refresh(slot)
    return slot


# =============================================================================
# Generation
# =============================================================================

def slot_start_times(
    hours: availability_service.DayHours,
    slot_duration: int,
) -> list[time]:
    """
    Start times that fit the day's hours.

    Slots are laid back to back from opening; a slot overlapping the break is
    skipped and the last slot must end by closing time.
    """
    if not hours.is_open:
        return []
    open_minutes = time_to_minutes(hours.open_time)
    close_minutes = time_to_minutes(hours.close_time)
    break_window = None
    if hours.break_start and hours.break_end:
        break_window = (time_to_minutes(hours.break_start), time_to_minutes(hours.break_end))

    starts = []
    cursor = open_minutes
    while cursor + slot_duration <= close_minutes:
        end = cursor + slot_duration
        if break_window is None or not intervals_overlap(cursor, end, *break_window):
            starts.append(minutes_to_time(cursor))
        cursor = end
    return starts


def _end_time(start: time, slot_duration: int) -> time:
    return minutes_to_time(time_to_minutes(start) + slot_duration)


def generate_slots_for_date(
    db: Session,
    on_date: date,
    slot_duration: int | None = None,
    staff_id: UUID | None = None,
    max_capacity: int | None = None,
) -> int:
    """
    Create the missing slots for a date; returns how many were created.

    Safe to re-run: slots already present for (date, start_time, staff_id) are
    left untouched, including their occupancy.
    """
    slot_duration = slot_duration or settings.DEFAULT_SLOT_DURATION_MINUTES
    max_capacity = max_capacity or settings.DEFAULT_SLOT_CAPACITY
    if slot_duration <= 0:
        raise ValidationError("Slot duration must be positive")
    if max_capacity < 1:
        raise ValidationError("Slot capacity must be at least 1")

    starts = slot_start_times(availability_service.resolve_hours(db, on_date), slot_duration)
    if not starts:
        return 0

    # Generation shares the booking lock so two runs cannot insert the same slot
    conflict_service.lock_schedule_date(db, on_date)
    existing_query = db.query(AppointmentSlot.start_time).filter(AppointmentSlot.date == on_date)
    if staff_id is None:
        existing_query = existing_query.filter(AppointmentSlot.staff_id.is_(None))
    else:
        existing_query = existing_query.filter(AppointmentSlot.staff_id == staff_id)
    existing = {row.start_time for row in existing_query.all()}

    created = 0
    for start in starts:
        if start in existing:
            continue
        db.add(
            AppointmentSlot(
                date=on_date,
                start_time=start,
                end_time=_end_time(start, slot_duration),
                duration_minutes=slot_duration,
                staff_id=staff_id,
                is_enabled=True,
                is_available=True,
                max_capacity=max_capacity,
                current_capacity=0,
            )
        )
        created += 1

    db.commit()
    return created


def generate_slots_for_range(
    db: Session,
    date_start: date,
    date_end: date,
    slot_duration: int | None = None,
    staff_id: UUID | None = None,
    max_capacity: int | None = None,
) -> dict:
    """Generate slots for every date in [date_start, date_end] and summarize."""
    if date_start > date_end:
        raise ValidationError("Start date must not be after end date")
    total_days = (date_end - date_start).days + 1
    if total_days > settings.SLOT_GENERATION_MAX_DAYS:
        raise ValidationError(
            f"Cannot generate slots for more than {settings.SLOT_GENERATION_MAX_DAYS} days"
        )

    summary = {
        "total_days": total_days,
        "generated_days": 0,
        "skipped_days": 0,
        "slots_created": 0,
        "details": [],
    }
    for offset in range(total_days):
        current = date_start + timedelta(days=offset)
        created = generate_slots_for_date(
            db,
            current,
            slot_duration=slot_duration,
            staff_id=staff_id,
            max_capacity=max_capacity,
        )
        if created:
            summary["generated_days"] += 1
            summary["slots_created"] += created
        else:
            summary["skipped_days"] += 1
        summary["details"].append({"date": current.isoformat(), "slots_created": created})

    logger.info(
        "Generated %s slots across %s days (%s to %s)",
        summary["slots_created"],
        total_days,
        date_start.isoformat(),
        date_end.isoformat(),
    )
    return summary
