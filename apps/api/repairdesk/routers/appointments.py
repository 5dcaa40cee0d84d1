"""Appointments router - staff endpoints for booking and the appointment lifecycle.

Service errors (conflicts, bad transitions, missing rows) are translated to
HTTP responses by the exception handlers registered in main.py.
"""

from datetime import date, time
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from repairdesk.core.deps import get_db
from repairdesk.db.enums import AppointmentStatus
from repairdesk.schemas.appointment import (
    AppointmentCancel,
    AppointmentConvert,
    AppointmentCreate,
    AppointmentDetail,
    AppointmentListResponse,
    AppointmentRead,
    AppointmentSummary,
    AppointmentUpdate,
    AppointmentWithCustomer,
    ConflictCheckResponse,
    ConversionResult,
    TicketRead,
)
from repairdesk.services import appointment_queries, appointment_service, conflict_service
from repairdesk.services.appointment_queries import ByAssignee, ByCustomer, ByDateRange, ByStatus
from repairdesk.services.availability_service import shop_today
from repairdesk.utils.pagination import PaginatedResponse, PaginationParams, get_pagination

router = APIRouter()


# =============================================================================
# Lists
# =============================================================================

@router.get("", response_model=AppointmentListResponse)
def list_appointments(
    db: Session = Depends(get_db),
    pagination: PaginationParams = Depends(get_pagination),
    status: list[AppointmentStatus] | None = Query(None),
    date_start: date | None = None,
    date_end: date | None = None,
    customer_id: UUID | None = None,
    assigned_to: UUID | None = None,
):
    """List appointments in schedule order, with optional filters."""
    filters = []
    if status:
        filters.append(ByStatus(tuple(status)))
    if date_start or date_end:
        filters.append(ByDateRange(date_start, date_end))
    if customer_id:
        filters.append(ByCustomer(customer_id))
    if assigned_to:
        filters.append(ByAssignee(assigned_to))

    appointments, total = appointment_queries.list_appointments(
        db,
        filters,
        limit=pagination.per_page,
        offset=pagination.offset,
    )
    page = PaginatedResponse.create(
        [appointment_queries.to_summary(a) for a in appointments], total, pagination
    )
    return AppointmentListResponse(
        items=page.items,
        total=page.total,
        page=page.page,
        per_page=page.per_page,
        pages=page.pages,
    )


@router.get("/today", response_model=list[AppointmentWithCustomer])
def list_todays_appointments(db: Session = Depends(get_db)):
    """All of today's appointments (shop timezone)."""
    appointments = appointment_queries.get_todays_appointments(db, shop_today())
    return [appointment_queries.to_with_customer(a) for a in appointments]


@router.get("/upcoming", response_model=list[AppointmentSummary])
def list_upcoming_appointments(
    days: int | None = Query(None, ge=1, le=90),
    db: Session = Depends(get_db),
):
    """Active appointments from today through the upcoming window."""
    appointments = appointment_queries.get_upcoming_appointments(db, shop_today(), days)
    return [appointment_queries.to_summary(a) for a in appointments]


@router.get("/conflicts", response_model=ConflictCheckResponse)
def check_conflicts(
    scheduled_date: date,
    scheduled_time: time,
    duration_minutes: int | None = Query(None, ge=5, le=480),
    exclude_appointment_id: UUID | None = None,
    db: Session = Depends(get_db),
):
    """Preview which active appointments a proposed booking would collide with."""
    conflicts = conflict_service.check_conflicts(
        db, scheduled_date, scheduled_time, duration_minutes, exclude_appointment_id
    )
    return ConflictCheckResponse(
        has_conflict=bool(conflicts),
        conflicts=[appointment_queries.to_summary(a) for a in conflicts],
    )


@router.get("/by-number/{appointment_number}", response_model=AppointmentDetail)
def get_appointment_by_number(appointment_number: str, db: Session = Depends(get_db)):
    appointment = appointment_service.get_appointment_by_number(db, appointment_number)
    if not appointment:
        raise HTTPException(status_code=404, detail="Appointment not found")
    return appointment_queries.to_detail(db, appointment)


@router.get("/{appointment_id}", response_model=AppointmentDetail)
def get_appointment(appointment_id: UUID, db: Session = Depends(get_db)):
    """Get appointment with customer, device and ticket details."""
    detail = appointment_queries.get_appointment_detail(db, appointment_id)
    if not detail:
        raise HTTPException(status_code=404, detail="Appointment not found")
    return detail


# =============================================================================
# Booking & Edits
# =============================================================================

@router.post("", response_model=AppointmentRead, status_code=201)
def create_appointment(data: AppointmentCreate, db: Session = Depends(get_db)):
    """Book an appointment (409 if the time is taken)."""
    appointment = appointment_service.create_appointment(db, data)
    return appointment_queries.to_read(appointment)


@router.patch("/{appointment_id}", response_model=AppointmentRead)
def update_appointment(
    appointment_id: UUID,
    data: AppointmentUpdate,
    db: Session = Depends(get_db),
):
    """Edit details or reschedule."""
    appointment = appointment_service.update_appointment(db, appointment_id, data)
    return appointment_queries.to_read(appointment)


# =============================================================================
# Lifecycle
# =============================================================================

@router.post("/{appointment_id}/confirm", response_model=AppointmentRead)
def confirm_appointment(appointment_id: UUID, db: Session = Depends(get_db)):
    appointment = appointment_service.confirm_appointment(db, appointment_id)
    return appointment_queries.to_read(appointment)


@router.post("/{appointment_id}/arrive", response_model=AppointmentRead)
def mark_arrived(appointment_id: UUID, db: Session = Depends(get_db)):
    appointment = appointment_service.mark_arrived(db, appointment_id)
    return appointment_queries.to_read(appointment)


@router.post("/{appointment_id}/no-show", response_model=AppointmentRead)
def mark_no_show(appointment_id: UUID, db: Session = Depends(get_db)):
    appointment = appointment_service.mark_no_show(db, appointment_id)
    return appointment_queries.to_read(appointment)


@router.post("/{appointment_id}/cancel", response_model=AppointmentRead)
def cancel_appointment(
    appointment_id: UUID,
    data: AppointmentCancel,
    db: Session = Depends(get_db),
):
    """Cancel with a reason; frees the reserved slot."""
    appointment = appointment_service.cancel_appointment(db, appointment_id, data.reason)
    return appointment_queries.to_read(appointment)


@router.post("/{appointment_id}/convert", response_model=ConversionResult, status_code=201)
def convert_to_ticket(
    appointment_id: UUID,
    data: AppointmentConvert | None = None,
    db: Session = Depends(get_db),
):
    """Create a repair ticket from the appointment."""
    appointment, ticket = appointment_service.convert_to_ticket(db, appointment_id, data)
    return ConversionResult(
        appointment=appointment_queries.to_read(appointment),
        ticket=TicketRead.model_validate(ticket),
    )


@router.post("/{appointment_id}/remind", response_model=AppointmentRead)
def send_reminder(appointment_id: UUID, db: Session = Depends(get_db)):
    """Queue a reminder to the customer."""
    appointment = appointment_service.send_reminder(db, appointment_id)
    return appointment_queries.to_read(appointment)
