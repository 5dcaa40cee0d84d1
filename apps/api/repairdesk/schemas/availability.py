"""Availability schemas - calendar rules, slots and resolved days."""

from datetime import date, time
from uuid import UUID

from pydantic import BaseModel, Field, model_validator

from repairdesk.db.enums import SpecialDateType


# =============================================================================
# Calendar Rules
# =============================================================================

class BusinessHoursSet(BaseModel):
    """Schema for setting one weekday's hours."""
    is_active: bool = True
    open_time: time
    close_time: time
    break_start: time | None = None
    break_end: time | None = None


class BusinessHoursRead(BaseModel):
    model_config = {"from_attributes": True}

    day_of_week: int = Field(..., description="Monday=0, Sunday=6")
    is_active: bool
    open_time: time
    close_time: time
    break_start: time | None
    break_end: time | None


class SpecialDateSet(BaseModel):
    """Schema for a closure or special-hours override."""
    type: SpecialDateType
    name: str | None = Field(None, max_length=100)
    open_time: time | None = None
    close_time: time | None = None
    notes: str | None = Field(None, max_length=2000)

    @model_validator(mode="after")
    def require_hours(self) -> "SpecialDateSet":
        if self.type == SpecialDateType.SPECIAL_HOURS and (
            self.open_time is None or self.close_time is None
        ):
            raise ValueError("special_hours requires open_time and close_time")
        return self


class SpecialDateRead(BaseModel):
    model_config = {"from_attributes": True}

    date: date
    type: SpecialDateType
    name: str | None
    open_time: time | None
    close_time: time | None
    notes: str | None


# =============================================================================
# Slots
# =============================================================================

class SlotRead(BaseModel):
    model_config = {"from_attributes": True}

    id: UUID
    date: date
    start_time: time
    end_time: time
    duration_minutes: int
    staff_id: UUID | None
    is_enabled: bool
    is_available: bool
    max_capacity: int
    current_capacity: int


class SlotUpdate(BaseModel):
    is_enabled: bool


class SlotGenerateRequest(BaseModel):
    """Generate slots for [date_start, date_end] (date_end defaults to date_start)."""
    date_start: date
    date_end: date | None = None
    slot_duration: int | None = Field(None, ge=5, le=480)
    max_capacity: int | None = Field(None, ge=1, le=50)
    staff_id: UUID | None = None


class SlotGenerationDay(BaseModel):
    date: date
    slots_created: int


class SlotGenerateResponse(BaseModel):
    total_days: int
    generated_days: int
    skipped_days: int
    slots_created: int
    details: list[SlotGenerationDay]


# =============================================================================
# Resolved Availability
# =============================================================================

class DayAvailabilityRead(BaseModel):
    model_config = {"from_attributes": True}

    date: date
    day_of_week: int
    is_open: bool
    open_time: time | None
    close_time: time | None
    break_start: time | None
    break_end: time | None
    special_hours: bool
    slots: list[SlotRead]


class CalendarDayRead(BaseModel):
    model_config = {"from_attributes": True}

    date: date
    day_of_week: int
    is_today: bool
    is_past: bool
    is_available: bool
    available_slots: int
    slots: list[SlotRead] | None = None


class SuggestedTimeRead(BaseModel):
    model_config = {"from_attributes": True}

    date: date
    start_time: time
    end_time: time
    slot_id: UUID


class SlotCheckResponse(BaseModel):
    date: date
    time: time
    available: bool
