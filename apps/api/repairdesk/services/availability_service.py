"""Availability resolver - what is open and bookable on a given day.

Precedence for a date:
1. A closure special date closes the shop.
2. A special-hours date replaces that weekday's hours (no break).
3. Otherwise the active business hours for the weekday apply.
4. No active business hours means closed.

`resolve_range` reads business hours, special dates and slots once each for the
whole range and assembles every day with the same function `resolve_day` uses.
"""

import calendar
from collections import defaultdict
from datetime import date, datetime, time, timedelta
from typing import NamedTuple
from uuid import UUID
from zoneinfo import ZoneInfo

from sqlalchemy.orm import Session

from repairdesk.core.config import settings
from repairdesk.db.enums import AppointmentUrgency, SpecialDateType
from repairdesk.db.models import AppointmentSlot, BusinessHours, SpecialDate
from repairdesk.services.scheduling_errors import ValidationError


# =============================================================================
# Types
# =============================================================================

class DayHours(NamedTuple):
    """Effective opening hours for one date."""
    is_open: bool
    open_time: time | None = None
    close_time: time | None = None
    break_start: time | None = None
    break_end: time | None = None
    special_hours: bool = False


class DayAvailability(NamedTuple):
    """Resolved availability for one date."""
    date: date
    day_of_week: int
    is_open: bool
    open_time: time | None
    close_time: time | None
    break_start: time | None
    break_end: time | None
    special_hours: bool
    slots: list[AppointmentSlot]


class CalendarDay(NamedTuple):
    """Calendar cell for week/month views."""
    date: date
    day_of_week: int
    is_today: bool
    is_past: bool
    is_available: bool
    available_slots: int
    slots: list[AppointmentSlot] | None = None


class SuggestedTime(NamedTuple):
    date: date
    start_time: time
    end_time: time
    slot_id: UUID


CLOSED = DayHours(is_open=False)


def shop_now() -> datetime:
    """Current wall-clock time in the shop's timezone."""
    return datetime.now(ZoneInfo(settings.SHOP_TIMEZONE))


def shop_today() -> date:
    """Today's date in the shop's timezone."""
    return shop_now().date()


def _clock(today: date | None, now: time | None) -> tuple[date, time | None]:
    # An explicit `today` without `now` means whole days, no time-of-day cut
    if today is not None:
        return today, now
    current = shop_now()
    return current.date(), now if now is not None else current.time()


def drop_started_slots(day: DayAvailability, today: date, now: time | None) -> DayAvailability:
    """Remove slots on `today` that start before `now`."""
    if now is None or day.date != today:
        return day
    return day._replace(slots=[slot for slot in day.slots if slot.start_time >= now])


# =============================================================================
# Day Assembly
# =============================================================================

def effective_hours(
    business_hours: BusinessHours | None,
    special: SpecialDate | None,
) -> DayHours:
    """Apply closure > special hours > business hours precedence."""
    if special is not None:
        if special.type == SpecialDateType.CLOSURE.value:
            return CLOSED
        return DayHours(
            is_open=True,
            open_time=special.open_time,
            close_time=special.close_time,
            special_hours=True,
        )
    if business_hours is None or not business_hours.is_active:
        return CLOSED
    return DayHours(
        is_open=True,
        open_time=business_hours.open_time,
        close_time=business_hours.close_time,
        break_start=business_hours.break_start,
        break_end=business_hours.break_end,
    )


def _assemble_day(
    on_date: date,
    business_hours: BusinessHours | None,
    special: SpecialDate | None,
    slots: list[AppointmentSlot],
) -> DayAvailability:
    hours = effective_hours(business_hours, special)
    return DayAvailability(
        date=on_date,
        day_of_week=on_date.weekday(),
        is_open=hours.is_open,
        open_time=hours.open_time,
        close_time=hours.close_time,
        break_start=hours.break_start,
        break_end=hours.break_end,
        special_hours=hours.special_hours,
        # Closed days never list slots, even if stale ones exist
        slots=sorted(slots, key=lambda s: s.start_time) if hours.is_open else [],
    )


def _available_slots_query(db: Session):
    return db.query(AppointmentSlot).filter(
        AppointmentSlot.is_available == True,
        AppointmentSlot.current_capacity < AppointmentSlot.max_capacity,
    )


def resolve_hours(db: Session, on_date: date) -> DayHours:
    """Effective hours for a date, without slot lookup (used by slot generation)."""
    special = db.get(SpecialDate, on_date)
    business_hours = None
    if special is None:
        business_hours = db.query(BusinessHours).filter(
            BusinessHours.day_of_week == on_date.weekday(),
            BusinessHours.is_active == True,
        ).first()
    return effective_hours(business_hours, special)


# =============================================================================
# Day / Range
# =============================================================================

def resolve_day(db: Session, on_date: date) -> DayAvailability:
    """Resolve open hours and bookable slots for a single date."""
    special = db.get(SpecialDate, on_date)
    business_hours = db.query(BusinessHours).filter(
        BusinessHours.day_of_week == on_date.weekday(),
        BusinessHours.is_active == True,
    ).first()
    slots = []
    if effective_hours(business_hours, special).is_open:
        slots = _available_slots_query(db).filter(
            AppointmentSlot.date == on_date,
        ).order_by(AppointmentSlot.start_time).all()
    return _assemble_day(on_date, business_hours, special, slots)


def resolve_range(db: Session, date_start: date, date_end: date) -> dict[date, DayAvailability]:
    """
    Resolve every date in [date_start, date_end] with three queries total.

    Returns an insertion-ordered dict keyed by date.
    """
    if date_start > date_end:
        raise ValidationError("Start date must not be after end date")
    span = (date_end - date_start).days + 1
    if span > settings.AVAILABILITY_MAX_RANGE_DAYS:
        raise ValidationError(
            f"Date range cannot exceed {settings.AVAILABILITY_MAX_RANGE_DAYS} days"
        )

    hours_by_weekday = {
        row.day_of_week: row
        for row in db.query(BusinessHours).filter(BusinessHours.is_active == True).all()
    }
    specials_by_date = {
        row.date: row
        for row in db.query(SpecialDate).filter(
            SpecialDate.date >= date_start,
            SpecialDate.date <= date_end,
        ).all()
    }
    slots_by_date: dict[date, list[AppointmentSlot]] = defaultdict(list)
    for slot in _available_slots_query(db).filter(
        AppointmentSlot.date >= date_start,
        AppointmentSlot.date <= date_end,
    ).order_by(AppointmentSlot.date, AppointmentSlot.start_time).all():
        slots_by_date[slot.date].append(slot)

    days = {}
    for offset in range(span):
        current = date_start + timedelta(days=offset)
        days[current] = _assemble_day(
            current,
            hours_by_weekday.get(current.weekday()),
            specials_by_date.get(current),
            slots_by_date.get(current, []),
        )
    return days


def is_slot_available(db: Session, on_date: date, start_time: time) -> bool:
    """True if an open, bookable slot starts at this date/time."""
    day = resolve_day(db, on_date)
    return any(slot.start_time == start_time for slot in day.slots)


# =============================================================================
# Calendar Views
# =============================================================================

def _calendar_day(day: DayAvailability, today: date, include_slots: bool) -> CalendarDay:
    is_past = day.date < today
    available_slots = len(day.slots)
    return CalendarDay(
        date=day.date,
        day_of_week=day.day_of_week,
        is_today=day.date == today,
        is_past=is_past,
        is_available=day.is_open and not is_past and available_slots > 0,
        available_slots=available_slots,
        slots=list(day.slots) if include_slots else None,
    )


def get_week_availability(
    db: Session,
    any_date: date,
    today: date | None = None,
    now: time | None = None,
) -> list[CalendarDay]:
    """Monday-to-Sunday week containing any_date, with slot lists."""
    today, now = _clock(today, now)
    monday = any_date - timedelta(days=any_date.weekday())
    days = resolve_range(db, monday, monday + timedelta(days=6))
    return [
        _calendar_day(drop_started_slots(day, today, now), today, include_slots=True)
        for day in days.values()
    ]


def get_month_availability(
    db: Session,
    year: int,
    month: int,
    today: date | None = None,
    now: time | None = None,
) -> list[CalendarDay]:
    """Every day of a month with slot counts only."""
    if not 1 <= month <= 12:
        raise ValidationError("Month must be between 1 and 12")
    today, now = _clock(today, now)
    last_day = calendar.monthrange(year, month)[1]
    days = resolve_range(db, date(year, month, 1), date(year, month, last_day))
    return [
        _calendar_day(drop_started_slots(day, today, now), today, include_slots=False)
        for day in days.values()
    ]


def get_next_available_dates(
    db: Session,
    limit: int = 5,
    today: date | None = None,
    now: time | None = None,
) -> list[DayAvailability]:
    """Next `limit` open dates (from today) that still have a bookable slot."""
    today, now = _clock(today, now)
    horizon = min(settings.NEXT_AVAILABLE_SEARCH_DAYS, settings.AVAILABILITY_MAX_RANGE_DAYS)
    days = resolve_range(db, today, today + timedelta(days=horizon - 1))
    found = []
    for day in days.values():
        day = drop_started_slots(day, today, now)
        if day.is_open and day.slots:
            found.append(day)
            if len(found) >= limit:
                break
    return found


def _suggestions_from(day: DayAvailability, count: int) -> list[SuggestedTime]:
    return [
        SuggestedTime(
            date=day.date,
            start_time=slot.start_time,
            end_time=slot.end_time,
            slot_id=slot.id,
        )
        for slot in day.slots[:count]
    ]


def get_suggested_times(
    db: Session,
    urgency: AppointmentUrgency | None = None,
    preferred_date: date | None = None,
    today: date | None = None,
    now: time | None = None,
) -> list[SuggestedTime]:
    """
    Suggest bookable times.

    - emergency: first 3 slots today plus first 3 tomorrow
    - preferred date: first 5 slots on that date
    - otherwise: first 2 slots on each of the next 3 available dates

    Slots today that have already started are never suggested.
    """
    today, now = _clock(today, now)

    if urgency == AppointmentUrgency.EMERGENCY:
        days = resolve_range(db, today, today + timedelta(days=1))
        suggestions = []
        for day in days.values():
            suggestions.extend(_suggestions_from(drop_started_slots(day, today, now), 3))
        return suggestions

    if preferred_date:
        day = resolve_day(db, preferred_date)
        return _suggestions_from(drop_started_slots(day, today, now), 5)

    suggestions = []
    for day in get_next_available_dates(db, limit=3, today=today, now=now):
        suggestions.extend(_suggestions_from(day, 2))
    return suggestions
