"""Admin slot router - generate, inspect and toggle bookable slots."""

from datetime import date
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from repairdesk.core.deps import get_db
from repairdesk.schemas.availability import (
    SlotGenerateRequest,
    SlotGenerateResponse,
    SlotRead,
    SlotUpdate,
)
from repairdesk.services import slot_service

router = APIRouter()


@router.post("/generate", response_model=SlotGenerateResponse)
def generate_slots(data: SlotGenerateRequest, db: Session = Depends(get_db)):
    """Create missing slots for a date range; existing slots are untouched."""
    return slot_service.generate_slots_for_range(
        db,
        data.date_start,
        data.date_end or data.date_start,
        slot_duration=data.slot_duration,
        staff_id=data.staff_id,
        max_capacity=data.max_capacity,
    )


@router.get("", response_model=list[SlotRead])
def list_slots(
    on_date: date,
    available_only: bool = False,
    db: Session = Depends(get_db),
):
    return slot_service.list_slots(db, on_date, available_only=available_only)


@router.patch("/{slot_id}", response_model=SlotRead)
def update_slot(slot_id: UUID, data: SlotUpdate, db: Session = Depends(get_db)):
    """Enable or disable a slot."""
    return slot_service.set_slot_enabled(db, slot_id, data.is_enabled)
