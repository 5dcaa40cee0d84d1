"""Tests for slot generation, reservation and release."""

from datetime import date, time

import pytest

from repairdesk.db.models import AppointmentSlot
from repairdesk.services import calendar_service, slot_service
from repairdesk.services.availability_service import DayHours
from repairdesk.services.scheduling_errors import NotFoundError, ValidationError

# 2024-06-03 is a Monday
MONDAY = date(2024, 6, 3)
SATURDAY = date(2024, 6, 8)


# =============================================================================
# Start Time Layout
# =============================================================================

class TestSlotStartTimes:
    def test_back_to_back_from_opening(self):
        hours = DayHours(is_open=True, open_time=time(9, 0), close_time=time(11, 0))

        starts = slot_service.slot_start_times(hours, 30)

        assert starts == [time(9, 0), time(9, 30), time(10, 0), time(10, 30)]

    def test_last_slot_must_end_by_close(self):
        hours = DayHours(is_open=True, open_time=time(9, 0), close_time=time(10, 40))

        starts = slot_service.slot_start_times(hours, 30)

        assert starts[-1] == time(10, 0)

    def test_slots_overlapping_break_are_skipped(self):
        hours = DayHours(
            is_open=True,
            open_time=time(9, 0),
            close_time=time(14, 0),
            break_start=time(12, 0),
            break_end=time(13, 0),
        )

        starts = slot_service.slot_start_times(hours, 60)

        assert starts == [time(9, 0), time(10, 0), time(11, 0), time(13, 0)]

    def test_closed_day_has_no_slots(self):
        assert slot_service.slot_start_times(DayHours(is_open=False), 30) == []


# =============================================================================
# Generation
# =============================================================================

class TestGenerateSlots:
    def test_nine_to_five_gives_sixteen_half_hour_slots(self, db, weekday_hours):
        created = slot_service.generate_slots_for_date(db, MONDAY, 30)

        slots = slot_service.list_slots(db, MONDAY)
        assert created == 16
        assert slots[0].start_time == time(9, 0)
        assert slots[-1].start_time == time(16, 30)
        assert slots[-1].end_time == time(17, 0)
        assert all(s.max_capacity == 1 and s.current_capacity == 0 for s in slots)
        assert all(s.is_available and s.is_enabled for s in slots)

    def test_regeneration_is_idempotent(self, db, weekday_hours):
        slot_service.generate_slots_for_date(db, MONDAY, 30)

        assert slot_service.generate_slots_for_date(db, MONDAY, 30) == 0
        assert db.query(AppointmentSlot).count() == 16

    def test_regeneration_keeps_occupancy(self, db, monday_slots):
        from uuid import uuid4

        slot = monday_slots[0]
        assert slot_service.reserve_slot(db, slot.id, uuid4())
        db.commit()

        slot_service.generate_slots_for_date(db, MONDAY, 30)
        db.refresh(slot)

        assert slot.current_capacity == 1
        assert slot.is_available is False

    def test_closed_weekday_generates_nothing(self, db, weekday_hours):
        assert slot_service.generate_slots_for_date(db, SATURDAY, 30) == 0

    def test_closure_generates_nothing(self, db, weekday_hours):
        from repairdesk.db.enums import SpecialDateType

        calendar_service.set_special_date(db, MONDAY, SpecialDateType.CLOSURE, name="Inventory")

        assert slot_service.generate_slots_for_date(db, MONDAY, 30) == 0

    def test_special_hours_are_used(self, db, weekday_hours):
        from repairdesk.db.enums import SpecialDateType

        calendar_service.set_special_date(
            db, MONDAY, SpecialDateType.SPECIAL_HOURS,
            open_time=time(10, 0), close_time=time(12, 0),
        )

        assert slot_service.generate_slots_for_date(db, MONDAY, 30) == 4

    def test_capacity_and_duration_options(self, db, weekday_hours):
        slot_service.generate_slots_for_date(db, MONDAY, 60, max_capacity=3)

        slots = slot_service.list_slots(db, MONDAY)
        assert len(slots) == 8
        assert {s.max_capacity for s in slots} == {3}
        assert {s.duration_minutes for s in slots} == {60}

    @pytest.mark.parametrize("duration, capacity", [(-30, 1), (30, -1)])
    def test_invalid_generation_options_rejected(self, db, weekday_hours, duration, capacity):
        with pytest.raises(ValidationError):
            slot_service.generate_slots_for_date(db, MONDAY, duration, max_capacity=capacity)

    def test_range_summary(self, db, weekday_hours):
        summary = slot_service.generate_slots_for_range(db, MONDAY, date(2024, 6, 9), 30)

        assert summary["total_days"] == 7
        assert summary["generated_days"] == 5
        assert summary["skipped_days"] == 2
        assert summary["slots_created"] == 80
        assert summary["details"][5] == {"date": "2024-06-08", "slots_created": 0}

    def test_range_rejects_inverted_dates(self, db):
        with pytest.raises(ValidationError):
            slot_service.generate_slots_for_range(db, MONDAY, date(2024, 6, 1))

    def test_range_is_capped(self, db):
        from repairdesk.core.config import settings

        end = date.fromordinal(MONDAY.toordinal() + settings.SLOT_GENERATION_MAX_DAYS)
        with pytest.raises(ValidationError):
            slot_service.generate_slots_for_range(db, MONDAY, end)


# =============================================================================
# Reservation
# =============================================================================

class TestReserveSlot:
    def test_second_reservation_of_single_slot_fails(self, db, monday_slots):
        from uuid import uuid4

        slot = monday_slots[0]

        assert slot_service.reserve_slot(db, slot.id, uuid4()) is True
        assert slot_service.reserve_slot(db, slot.id, uuid4()) is False

        db.refresh(slot)
        assert slot.current_capacity == 1
        assert slot.is_available is False

    def test_multi_capacity_slot_fills_up(self, db, weekday_hours):
        from uuid import uuid4

        slot_service.generate_slots_for_date(db, MONDAY, 30, max_capacity=2)
        slot = slot_service.list_slots(db, MONDAY)[0]

        assert slot_service.reserve_slot(db, slot.id, uuid4())
        db.refresh(slot)
        assert slot.is_available is True
        assert slot.current_capacity == 1

        assert slot_service.reserve_slot(db, slot.id, uuid4())
        db.refresh(slot)
        assert slot.is_available is False
        assert slot.current_capacity == 2

    def test_disabled_slot_cannot_be_reserved(self, db, monday_slots):
        from uuid import uuid4

        slot = slot_service.set_slot_enabled(db, monday_slots[0].id, False)

        assert slot_service.reserve_slot(db, slot.id, uuid4()) is False

    def test_missing_slot_cannot_be_reserved(self, db):
        from uuid import uuid4

        assert slot_service.reserve_slot(db, uuid4(), uuid4()) is False

    def test_release_restores_availability(self, db, monday_slots):
        from uuid import uuid4

        slot = monday_slots[0]
        appointment_id = uuid4()
        slot_service.reserve_slot(db, slot.id, appointment_id)

        assert slot_service.release_slot(db, slot.id, appointment_id) is True
        db.refresh(slot)
        assert slot.current_capacity == 0
        assert slot.is_available is True
        assert slot.appointment_id is None

    def test_release_never_goes_below_zero(self, db, monday_slots):
        slot = monday_slots[0]

        slot_service.release_slot(db, slot.id)
        slot_service.release_slot(db, slot.id)
        db.refresh(slot)

        assert slot.current_capacity == 0

    def test_release_keeps_other_appointment_link(self, db, monday_slots):
        from uuid import uuid4

        slot = monday_slots[0]
        holder = uuid4()
        slot_service.reserve_slot(db, slot.id, holder)

        slot_service.release_slot(db, slot.id, uuid4())
        db.refresh(slot)

        assert slot.appointment_id == holder


# =============================================================================
# Admin Toggle
# =============================================================================

class TestSlotEnabled:
    def test_disable_then_enable(self, db, monday_slots):
        slot_id = monday_slots[0].id

        disabled = slot_service.set_slot_enabled(db, slot_id, False)
        assert disabled.is_enabled is False
        assert disabled.is_available is False

        enabled = slot_service.set_slot_enabled(db, slot_id, True)
        assert enabled.is_enabled is True
        assert enabled.is_available is True

    def test_enable_full_slot_stays_unavailable(self, db, monday_slots):
        from uuid import uuid4

        slot_id = monday_slots[0].id
        slot_service.reserve_slot(db, slot_id, uuid4())
        db.commit()
        db.expire_all()

        slot = slot_service.set_slot_enabled(db, slot_id, True)

        assert slot.is_available is False

    def test_unknown_slot(self, db):
        from uuid import uuid4

        with pytest.raises(NotFoundError):
            slot_service.set_slot_enabled(db, uuid4(), False)
