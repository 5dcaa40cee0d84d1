"""Public booking router - unauthenticated availability and booking form.

Rate limited per client IP. Responses never expose internal ids.
"""

from datetime import date, timedelta

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from repairdesk.core.config import settings
from repairdesk.core.deps import get_db
from repairdesk.core.rate_limit import PUBLIC_BOOKING_LIMIT, limiter
from repairdesk.db.enums import AppointmentSource
from repairdesk.schemas.appointment import (
    AppointmentCreate,
    PublicBookingCreate,
    PublicBookingRead,
)
from repairdesk.services import appointment_service, availability_service
from repairdesk.services.scheduling_errors import ValidationError

router = APIRouter()

DEFAULT_PUBLIC_WINDOW_DAYS = 14


@router.get("/availability")
@limiter.limit(PUBLIC_BOOKING_LIMIT)
def get_public_availability(
    request: Request,
    date_start: date | None = None,
    days: int = Query(DEFAULT_PUBLIC_WINDOW_DAYS, ge=1, le=31),
    db: Session = Depends(get_db),
):
    """Open days and bookable start times (past dates and started slots are dropped)."""
    now = availability_service.shop_now()
    today = now.date()
    start = max(date_start or today, today)
    resolved = availability_service.resolve_range(db, start, start + timedelta(days=days - 1))
    open_days = [
        availability_service.drop_started_slots(day, today, now.time())
        for day in resolved.values()
    ]
    return {
        "days": [
            {
                "date": day.date.isoformat(),
                "is_open": day.is_open,
                "open_time": day.open_time.strftime("%H:%M") if day.open_time else None,
                "close_time": day.close_time.strftime("%H:%M") if day.close_time else None,
                "times": [slot.start_time.strftime("%H:%M") for slot in day.slots],
            }
            for day in open_days
        ]
    }


@router.post("", response_model=PublicBookingRead, status_code=201)
@limiter.limit(PUBLIC_BOOKING_LIMIT)
def create_booking(
    request: Request,
    data: PublicBookingCreate,
    db: Session = Depends(get_db),
):
    """Book from the website. Only times on the generated slot grid are accepted."""
    now = availability_service.shop_now()
    if data.scheduled_date < now.date():
        raise ValidationError("Cannot book a date in the past")
    if data.scheduled_date == now.date() and data.scheduled_time < now.time():
        raise ValidationError("Requested time has already passed")
    if not availability_service.is_slot_available(db, data.scheduled_date, data.scheduled_time):
        raise ValidationError("Requested time is not available")

    appointment = appointment_service.create_appointment(
        db,
        AppointmentCreate(
            customer_name=data.customer_name,
            customer_email=data.customer_email,
            customer_phone=data.customer_phone,
            device_brand=data.device_brand,
            device_model=data.device_model,
            scheduled_date=data.scheduled_date,
            scheduled_time=data.scheduled_time,
            duration_minutes=settings.DEFAULT_APPOINTMENT_DURATION_MINUTES,
            issues=data.issues,
            description=data.description,
            urgency=data.urgency,
            source=AppointmentSource.WEBSITE,
        ),
    )
    return PublicBookingRead(
        appointment_number=appointment.appointment_number,
        scheduled_date=appointment.scheduled_date,
        scheduled_time=appointment.scheduled_time,
        duration_minutes=appointment.duration_minutes,
        status=appointment.status,
    )
