"""Calendar rule store - recurring business hours and one-off special dates."""

from datetime import date, time

from sqlalchemy.orm import Session

from repairdesk.db.enums import SpecialDateType
from repairdesk.db.models import BusinessHours, SpecialDate
from repairdesk.services.scheduling_errors import NotFoundError, ValidationError


# =============================================================================
# Business Hours
# =============================================================================

def list_business_hours(db: Session, active_only: bool = False) -> list[BusinessHours]:
    """Get business hours for all weekdays, Monday first."""
    query = db.query(BusinessHours)
    if active_only:
        query = query.filter(BusinessHours.is_active == True)
    return query.order_by(BusinessHours.day_of_week).all()


def get_business_hours(db: Session, day_of_week: int) -> BusinessHours | None:
    """Get the active business hours for a weekday (Monday=0), or None if closed."""
    return db.query(BusinessHours).filter(
        BusinessHours.day_of_week == day_of_week,
        BusinessHours.is_active == True,
    ).first()


def validate_hours(
    open_time: time,
    close_time: time,
    break_start: time | None = None,
    break_end: time | None = None,
) -> None:
    """Raise ValidationError unless open < close and the break sits strictly inside."""
    if open_time >= close_time:
        raise ValidationError("Opening time must be before closing time")
    if (break_start is None) != (break_end is None):
        raise ValidationError("Break needs both a start and an end")
    if break_start is not None and break_end is not None:
        if not (open_time < break_start < break_end < close_time):
            raise ValidationError("Break must fall strictly within opening hours")


def set_business_hours(
    db: Session,
    day_of_week: int,
    open_time: time,
    close_time: time,
    is_active: bool = True,
    break_start: time | None = None,
    break_end: time | None = None,
) -> BusinessHours:
    """Create or replace the business hours for one weekday."""
    if not 0 <= day_of_week <= 6:
        raise ValidationError("day_of_week must be between 0 (Monday) and 6 (Sunday)")
    validate_hours(open_time, close_time, break_start, break_end)

    hours = db.get(BusinessHours, day_of_week)
    if hours is None:
        hours = BusinessHours(day_of_week=day_of_week)
        db.add(hours)

    hours.is_active = is_active
    hours.open_time = open_time
    hours.close_time = close_time
    hours.break_start = break_start
    hours.break_end = break_end

    db.commit()
    db.refresh(hours)
    return hours


# =============================================================================
# Special Dates
# =============================================================================

def get_special_date(db: Session, on_date: date) -> SpecialDate | None:
    """Get the override for a date, if any."""
    return db.get(SpecialDate, on_date)


def list_special_dates(
    db: Session,
    date_start: date | None = None,
    date_end: date | None = None,
) -> list[SpecialDate]:
    """Get special dates, optionally bounded to [date_start, date_end]."""
    query = db.query(SpecialDate)
    if date_start:
        query = query.filter(SpecialDate.date >= date_start)
    if date_end:
        query = query.filter(SpecialDate.date <= date_end)
    return query.order_by(SpecialDate.date).all()


def set_special_date(
    db: Session,
    on_date: date,
    date_type: SpecialDateType,
    name: str | None = None,
    open_time: time | None = None,
    close_time: time | None = None,
    notes: str | None = None,
) -> SpecialDate:
    """
    Create or update the override for a date (one per date).

    Closures ignore any hours passed in; special hours require both.
    """
    if date_type == SpecialDateType.SPECIAL_HOURS:
        if open_time is None or close_time is None:
            raise ValidationError("Special hours need an opening and closing time")
        validate_hours(open_time, close_time)
    else:
        open_time = None
        close_time = None

    special = db.get(SpecialDate, on_date)
    if special is None:
        special = SpecialDate(date=on_date)
        db.add(special)

    special.type = date_type.value
    special.name = name
    special.open_time = open_time
    special.close_time = close_time
    special.notes = notes

    db.commit()
    db.refresh(special)
    return special


def remove_special_date(db: Session, on_date: date) -> None:
    """Delete the override for a date."""
    special = db.get(SpecialDate, on_date)
    if not special:
        raise NotFoundError(f"No special date on {on_date.isoformat()}")
    db.delete(special)
    db.commit()
