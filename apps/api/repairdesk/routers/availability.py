"""Availability router - resolved calendar views and calendar rule management."""

from datetime import date, time

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from repairdesk.core.deps import get_db
from repairdesk.db.enums import AppointmentUrgency
from repairdesk.schemas.availability import (
    BusinessHoursRead,
    BusinessHoursSet,
    CalendarDayRead,
    DayAvailabilityRead,
    SlotCheckResponse,
    SpecialDateRead,
    SpecialDateSet,
    SuggestedTimeRead,
)
from repairdesk.services import availability_service, calendar_service

router = APIRouter()


def _day_to_read(day: availability_service.DayAvailability) -> DayAvailabilityRead:
    return DayAvailabilityRead.model_validate(day._asdict())


def _calendar_day_to_read(day: availability_service.CalendarDay) -> CalendarDayRead:
    return CalendarDayRead.model_validate(day._asdict())


# =============================================================================
# Resolved Availability
# =============================================================================

@router.get("/days/{on_date}", response_model=DayAvailabilityRead)
def get_day(on_date: date, db: Session = Depends(get_db)):
    """Open hours and bookable slots for one date."""
    return _day_to_read(availability_service.resolve_day(db, on_date))


@router.get("/range", response_model=list[DayAvailabilityRead])
def get_range(
    date_start: date,
    date_end: date,
    db: Session = Depends(get_db),
):
    """Every date in [date_start, date_end], resolved with batched reads."""
    days = availability_service.resolve_range(db, date_start, date_end)
    return [_day_to_read(day) for day in days.values()]


@router.get("/week", response_model=list[CalendarDayRead])
def get_week(
    on_date: date | None = Query(None, alias="date"),
    db: Session = Depends(get_db),
):
    """Monday-to-Sunday week containing `date` (default: this week)."""
    days = availability_service.get_week_availability(
        db, on_date or availability_service.shop_today()
    )
    return [_calendar_day_to_read(day) for day in days]


@router.get("/month", response_model=list[CalendarDayRead])
def get_month(
    year: int = Query(..., ge=2000, le=2100),
    month: int = Query(..., ge=1, le=12),
    db: Session = Depends(get_db),
):
    days = availability_service.get_month_availability(db, year, month)
    return [_calendar_day_to_read(day) for day in days]


@router.get("/next", response_model=list[DayAvailabilityRead])
def get_next_available(
    limit: int = Query(5, ge=1, le=30),
    db: Session = Depends(get_db),
):
    """Next open dates that still have a bookable slot."""
    days = availability_service.get_next_available_dates(db, limit=limit)
    return [_day_to_read(day) for day in days]


@router.get("/check", response_model=SlotCheckResponse)
def check_slot(
    on_date: date = Query(..., alias="date"),
    at_time: time = Query(..., alias="time"),
    db: Session = Depends(get_db),
):
    """Whether a bookable slot starts at this date and time."""
    return SlotCheckResponse(
        date=on_date,
        time=at_time,
        available=availability_service.is_slot_available(db, on_date, at_time),
    )


@router.get("/suggestions", response_model=list[SuggestedTimeRead])
def get_suggestions(
    urgency: AppointmentUrgency | None = None,
    preferred_date: date | None = None,
    db: Session = Depends(get_db),
):
    suggestions = availability_service.get_suggested_times(db, urgency, preferred_date)
    return [SuggestedTimeRead.model_validate(s._asdict()) for s in suggestions]


# =============================================================================
# Business Hours
# =============================================================================

@router.get("/business-hours", response_model=list[BusinessHoursRead])
def list_business_hours(db: Session = Depends(get_db)):
    return calendar_service.list_business_hours(db)


@router.put("/business-hours/{day_of_week}", response_model=BusinessHoursRead)
def set_business_hours(
    day_of_week: int,
    data: BusinessHoursSet,
    db: Session = Depends(get_db),
):
    """Create or replace one weekday's hours (Monday=0)."""
    return calendar_service.set_business_hours(
        db,
        day_of_week,
        open_time=data.open_time,
        close_time=data.close_time,
        is_active=data.is_active,
        break_start=data.break_start,
        break_end=data.break_end,
    )


# =============================================================================
# Special Dates
# =============================================================================

@router.get("/special-dates", response_model=list[SpecialDateRead])
def list_special_dates(
    date_start: date | None = None,
    date_end: date | None = None,
    db: Session = Depends(get_db),
):
    return calendar_service.list_special_dates(db, date_start, date_end)


@router.get("/special-dates/{on_date}", response_model=SpecialDateRead)
def get_special_date(on_date: date, db: Session = Depends(get_db)):
    special = calendar_service.get_special_date(db, on_date)
    if not special:
        raise HTTPException(status_code=404, detail="Special date not found")
    return special


@router.put("/special-dates/{on_date}", response_model=SpecialDateRead)
def set_special_date(
    on_date: date,
    data: SpecialDateSet,
    db: Session = Depends(get_db),
):
    """Close the shop or set special hours for one date."""
    return calendar_service.set_special_date(
        db,
        on_date,
        data.type,
        name=data.name,
        open_time=data.open_time,
        close_time=data.close_time,
        notes=data.notes,
    )


@router.delete("/special-dates/{on_date}", status_code=204)
def remove_special_date(on_date: date, db: Session = Depends(get_db)):
    calendar_service.remove_special_date(db, on_date)
