"""
Two-session races on a file-backed SQLite database.

Each test lets session A pass its read/check step, then runs the competing
operation to completion on session B before A continues to its write. SQLite
has no row locks, so these exercise the conditional UPDATEs and the
post-insert conflict check directly.
"""

from datetime import date, time
from typing import Generator
from uuid import uuid4

import pytest
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from repairdesk.db.base import Base
from repairdesk.db.enums import AppointmentStatus
from repairdesk.db.models import Appointment, AppointmentSlot, RepairTicket
from repairdesk.schemas.appointment import AppointmentCreate
from repairdesk.services import (
    appointment_service,
    calendar_service,
    conflict_service,
    slot_service,
)
from repairdesk.services.scheduling_errors import ConflictError, InvalidTransitionError

# 2024-06-03 is a Monday
MONDAY = date(2024, 6, 3)


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def file_engine(tmp_path) -> Generator[Engine, None, None]:
    engine = create_engine(
        f"sqlite:///{tmp_path / 'shop.db'}",
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def sessions(file_engine: Engine) -> Generator[tuple[Session, Session], None, None]:
    """Two independent sessions (own connections) on the same database."""
    factory = sessionmaker(bind=file_engine, autocommit=False, autoflush=False)
    first, second = factory(), factory()
    yield first, second
    first.close()
    second.close()


def _booking(**overrides) -> AppointmentCreate:
    payload = {
        "customer_name": "Jamie Rivera",
        "customer_email": "jamie@example.com",
        "customer_phone": "555-123-4567",
        "scheduled_date": MONDAY,
        "scheduled_time": time(10, 0),
        "duration_minutes": 30,
    }
    payload.update(overrides)
    return AppointmentCreate(**payload)


def _run_after_first_call(monkeypatch, module, name, action) -> None:
    """Patch module.name so `action` runs once, right after the first call returns."""
    original = getattr(module, name)
    fired = []

    def wrapper(*args, **kwargs):
        result = original(*args, **kwargs)
        if not fired:
            fired.append(True)
            action()
        return result

    monkeypatch.setattr(module, name, wrapper)


def _open_monday(db: Session, capacity: int = 1) -> None:
    calendar_service.set_business_hours(db, 0, time(9, 0), time(17, 0))
    slot_service.generate_slots_for_date(db, MONDAY, 30, max_capacity=capacity)


def _slot_at(db: Session, start: time) -> AppointmentSlot:
    db.expire_all()
    return slot_service.find_slot(db, MONDAY, start)


# =============================================================================
# Slot Reservation
# =============================================================================

def test_stale_reads_cannot_overbook_a_slot(sessions):
    first, second = sessions
    _open_monday(first)
    slot_id = _slot_at(first, time(9, 0)).id

    # Both sessions see the slot as free
    assert slot_service.get_slot(first, slot_id).is_available is True
    assert slot_service.get_slot(second, slot_id).is_available is True

    assert slot_service.reserve_slot(first, slot_id, uuid4()) is True
    first.commit()
    assert slot_service.reserve_slot(second, slot_id, uuid4()) is False
    second.rollback()

    slot = _slot_at(first, time(9, 0))
    assert slot.current_capacity == 1
    assert slot.is_available is False


# =============================================================================
# Booking
# =============================================================================

def test_overlapping_bookings_one_wins(sessions, monkeypatch):
    first, second = sessions
    winners = []

    _run_after_first_call(
        monkeypatch,
        conflict_service,
        "check_conflicts",
        lambda: winners.append(
            appointment_service.create_appointment(
                second, _booking(scheduled_time=time(10, 15), customer_email="sam@example.com")
            )
        ),
    )

    with pytest.raises(ConflictError) as exc_info:
        appointment_service.create_appointment(first, _booking())

    assert exc_info.value.appointment_number == winners[0].appointment_number
    first.expire_all()
    assert first.query(Appointment).count() == 1


def test_racing_bookings_do_not_exceed_slot_capacity(sessions, monkeypatch):
    first, second = sessions
    _open_monday(first)

    _run_after_first_call(
        monkeypatch,
        conflict_service,
        "check_conflicts",
        lambda: appointment_service.create_appointment(
            second, _booking(customer_email="sam@example.com")
        ),
    )

    with pytest.raises(ConflictError):
        appointment_service.create_appointment(first, _booking())

    assert _slot_at(first, time(10, 0)).current_capacity == 1
    assert first.query(Appointment).count() == 1


# =============================================================================
# Transitions
# =============================================================================

def test_concurrent_conversion_creates_one_ticket(sessions, monkeypatch):
    first, second = sessions
    appointment = appointment_service.create_appointment(first, _booking())

    _run_after_first_call(
        monkeypatch,
        appointment_service,
        "_require_transition",
        lambda: appointment_service.convert_to_ticket(second, appointment.id),
    )

    with pytest.raises(InvalidTransitionError):
        appointment_service.convert_to_ticket(first, appointment.id)

    first.expire_all()
    assert first.query(RepairTicket).count() == 1
    stored = appointment_service.get_appointment(first, appointment.id)
    assert stored.status == AppointmentStatus.CONVERTED.value
    ticket = first.query(RepairTicket).one()
    assert stored.converted_to_ticket_id == ticket.id


def test_concurrent_cancel_releases_slot_once(sessions, monkeypatch):
    first, second = sessions
    _open_monday(first, capacity=2)

    checked_in = appointment_service.create_appointment(first, _booking())
    appointment_service.mark_arrived(first, checked_in.id)
    booked = appointment_service.create_appointment(
        first, _booking(customer_email="sam@example.com")
    )
    assert _slot_at(first, time(10, 0)).current_capacity == 2

    _run_after_first_call(
        monkeypatch,
        appointment_service,
        "_require_transition",
        lambda: appointment_service.cancel_appointment(second, booked.id, "Called to cancel"),
    )

    with pytest.raises(InvalidTransitionError):
        appointment_service.cancel_appointment(first, booked.id, "Duplicate click")

    # The arrived customer still holds one unit
    assert _slot_at(first, time(10, 0)).current_capacity == 1
    stored = appointment_service.get_appointment(first, booked.id)
    assert stored.cancellation_reason == "Called to cancel"


def test_confirm_after_concurrent_no_show_is_rejected(sessions, monkeypatch):
    first, second = sessions
    appointment = appointment_service.create_appointment(first, _booking())

    _run_after_first_call(
        monkeypatch,
        appointment_service,
        "_require_transition",
        lambda: appointment_service.mark_no_show(second, appointment.id),
    )

    with pytest.raises(InvalidTransitionError):
        appointment_service.confirm_appointment(first, appointment.id)

    first.expire_all()
    stored = appointment_service.get_appointment(first, appointment.id)
    assert stored.status == AppointmentStatus.NO_SHOW.value
    assert stored.confirmed_at is None
