"""Appointment schemas - Pydantic models for appointments API."""

from datetime import date, datetime, time
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field, model_validator

from repairdesk.db.enums import AppointmentSource, AppointmentStatus, AppointmentUrgency


# =============================================================================
# Requests
# =============================================================================

class AppointmentCreate(BaseModel):
    """
    Schema for booking an appointment (staff or public).

    Either an existing customer_id or at least a customer name is required.
    Device can be a catalog device_id, an owned customer_device_id, or a free
    text brand/model resolved against the catalog.
    """
    customer_id: UUID | None = None
    customer_name: str | None = Field(None, min_length=1, max_length=255)
    customer_email: EmailStr | None = None
    customer_phone: str | None = Field(None, min_length=5, max_length=30)

    device_id: UUID | None = None
    customer_device_id: UUID | None = None
    device_brand: str | None = Field(None, max_length=100)
    device_model: str | None = Field(None, max_length=200)
    serial_number: str | None = Field(None, max_length=100)
    imei: str | None = Field(None, max_length=20)

    scheduled_date: date
    scheduled_time: time
    duration_minutes: int | None = Field(None, ge=5, le=480)

    service_ids: list[UUID] = Field(default_factory=list)
    estimated_cost: Decimal | None = Field(None, ge=0)
    issues: list[str] = Field(default_factory=list)
    description: str | None = Field(None, max_length=5000)
    urgency: AppointmentUrgency = AppointmentUrgency.SCHEDULED
    source: AppointmentSource = AppointmentSource.PHONE
    notes: str | None = Field(None, max_length=5000)

    created_by: UUID | None = None
    assigned_to: UUID | None = None

    @model_validator(mode="after")
    def require_customer(self) -> "AppointmentCreate":
        if self.customer_id is None and not (self.customer_name and self.customer_name.strip()):
            raise ValueError("customer_id or customer_name is required")
        if bool(self.device_brand) != bool(self.device_model):
            raise ValueError("device_brand and device_model must be given together")
        return self


class PublicBookingCreate(BaseModel):
    """Schema for the public booking form (customer must leave an email)."""
    customer_name: str = Field(..., min_length=1, max_length=255)
    customer_email: EmailStr
    customer_phone: str | None = Field(None, min_length=5, max_length=30)
    device_brand: str | None = Field(None, max_length=100)
    device_model: str | None = Field(None, max_length=200)
    scheduled_date: date
    scheduled_time: time
    issues: list[str] = Field(default_factory=list, max_length=20)
    description: str | None = Field(None, max_length=2000)
    urgency: AppointmentUrgency = AppointmentUrgency.SCHEDULED


class AppointmentUpdate(BaseModel):
    """
    Schema for editing an appointment.

    Changing scheduled_date, scheduled_time or duration_minutes reschedules.
    """
    scheduled_date: date | None = None
    scheduled_time: time | None = None
    duration_minutes: int | None = Field(None, ge=5, le=480)
    service_ids: list[UUID] | None = None
    estimated_cost: Decimal | None = Field(None, ge=0)
    issues: list[str] | None = None
    description: str | None = Field(None, max_length=5000)
    urgency: AppointmentUrgency | None = None
    notes: str | None = Field(None, max_length=5000)
    assigned_to: UUID | None = None


class AppointmentCancel(BaseModel):
    """Schema for cancelling an appointment (reason required, checked by the service)."""
    reason: str = Field("", max_length=1000)


class AppointmentConvert(BaseModel):
    """Staff overrides applied when an appointment becomes a repair ticket."""
    serial_number: str | None = Field(None, max_length=100)
    imei: str | None = Field(None, max_length=20)
    estimated_cost: Decimal | None = Field(None, ge=0)
    technician_notes: str | None = Field(None, max_length=5000)
    selected_services: list[UUID] | None = None
    assigned_to: UUID | None = None


# =============================================================================
# Read DTOs
# =============================================================================

class CustomerSummary(BaseModel):
    model_config = {"from_attributes": True}

    id: UUID
    name: str
    email: str | None
    phone: str | None


class DeviceSummary(BaseModel):
    model_config = {"from_attributes": True}

    id: UUID
    manufacturer: str
    model_name: str


class CustomerDeviceSummary(BaseModel):
    model_config = {"from_attributes": True}

    id: UUID
    device_id: UUID | None
    serial_number: str | None
    imei: str | None
    color: str | None
    storage_size: str | None
    nickname: str | None


class AppointmentSummary(BaseModel):
    """Compact row for lists and calendars."""
    id: UUID
    appointment_number: str
    scheduled_date: date
    scheduled_time: time
    duration_minutes: int
    status: AppointmentStatus
    urgency: str | None
    customer_name: str | None = None


class AppointmentRead(BaseModel):
    """Appointment columns only, no related rows."""
    model_config = {"from_attributes": True}

    id: UUID
    appointment_number: str
    customer_id: UUID | None
    device_id: UUID | None
    customer_device_id: UUID | None
    slot_id: UUID | None
    scheduled_date: date
    scheduled_time: time
    duration_minutes: int
    service_ids: list[UUID] | None
    estimated_cost: Decimal | None
    issues: list[str] | None
    description: str | None
    urgency: str | None
    source: str | None
    notes: str | None
    status: AppointmentStatus
    confirmed_at: datetime | None
    confirmation_sent_at: datetime | None
    reminder_sent_at: datetime | None
    arrived_at: datetime | None
    cancelled_at: datetime | None
    cancellation_reason: str | None
    converted_to_ticket_id: UUID | None
    created_by: UUID | None
    assigned_to: UUID | None
    created_at: datetime
    updated_at: datetime


class AppointmentWithCustomer(AppointmentRead):
    customer: CustomerSummary | None = None


class AppointmentDetail(AppointmentWithCustomer):
    """Full appointment view with device data and the ticket it became."""
    device: DeviceSummary | None = None
    customer_device: CustomerDeviceSummary | None = None
    ticket_number: str | None = None


class AppointmentListResponse(BaseModel):
    """Schema for appointment list response."""
    items: list[AppointmentSummary]
    total: int
    page: int
    per_page: int
    pages: int


class ConflictCheckResponse(BaseModel):
    has_conflict: bool
    conflicts: list[AppointmentSummary]


# =============================================================================
# Tickets
# =============================================================================

class TicketServiceRead(BaseModel):
    model_config = {"from_attributes": True}

    service_id: UUID
    quantity: int
    unit_price: Decimal


class TicketRead(BaseModel):
    """Ticket created by a conversion."""
    model_config = {"from_attributes": True}

    id: UUID
    ticket_number: str
    customer_id: UUID | None
    device_id: UUID | None
    customer_device_id: UUID | None
    device_brand: str
    device_model: str
    serial_number: str | None
    imei: str | None
    repair_issues: list[str] | None
    description: str | None
    estimated_cost: Decimal | None
    assigned_to: UUID | None
    status: str
    priority: str
    services: list[TicketServiceRead]


class ConversionResult(BaseModel):
    appointment: AppointmentRead
    ticket: TicketRead


class PublicBookingRead(BaseModel):
    """What the public booking form gets back (no internal ids)."""
    appointment_number: str
    scheduled_date: date
    scheduled_time: time
    duration_minutes: int
    status: AppointmentStatus
