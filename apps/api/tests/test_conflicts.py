"""
Tests for conflict detection.

Coverage:
- Half-open interval arithmetic
- Which statuses block the calendar
- Reschedule exclusion
- Default duration for appointments without one
"""

from datetime import date, time

import pytest

from repairdesk.db.enums import AppointmentStatus
from repairdesk.services import conflict_service
from repairdesk.services.conflict_service import intervals_overlap, minutes_to_time, time_to_minutes

# 2024-06-03 is a Monday
MONDAY = date(2024, 6, 3)


# =============================================================================
# Interval Arithmetic
# =============================================================================

class TestIntervalOverlap:
    @pytest.mark.parametrize(
        "a, b, expected",
        [
            ((600, 630), (615, 645), True),  # partial overlap
            ((600, 630), (630, 660), False),  # touching, a first
            ((630, 660), (600, 630), False),  # touching, b first
            ((600, 720), (630, 645), True),  # containment
            ((600, 630), (600, 630), True),  # identical
            ((600, 630), (700, 730), False),  # disjoint
        ],
    )
    def test_half_open_overlap(self, a, b, expected):
        assert intervals_overlap(*a, *b) is expected
        assert intervals_overlap(*b, *a) is expected

    def test_overlap_matches_definition_exhaustively(self):
        """Overlap iff s1 < s2 + d2 and s2 < s1 + d1, for a grid of intervals."""
        for s1 in range(0, 120, 15):
            for d1 in (15, 30, 45):
                for s2 in range(0, 120, 15):
                    for d2 in (15, 30, 60):
                        expected = s1 < s2 + d2 and s2 < s1 + d1
                        assert intervals_overlap(s1, s1 + d1, s2, s2 + d2) is expected

    def test_time_minutes_conversion(self):
        assert time_to_minutes(time(10, 15)) == 615
        assert minutes_to_time(615) == time(10, 15)

    def test_minutes_outside_day_rejected(self):
        with pytest.raises(ValueError):
            minutes_to_time(24 * 60)


# =============================================================================
# Conflict Check
# =============================================================================

class TestCheckConflicts:
    def test_overlapping_booking_reports_existing(self, db, booking_factory):
        """A at 10:00 for 30m, B at 10:15 for 30m -> [A]."""
        a = booking_factory(scheduled_time=time(10, 0), duration_minutes=30)

        conflicts = conflict_service.check_conflicts(db, MONDAY, time(10, 15), 30)

        assert [c.id for c in conflicts] == [a.id]

    def test_touching_boundary_does_not_conflict(self, db, booking_factory):
        """A 10:00-10:30, B 10:30-11:00 -> no conflict."""
        booking_factory(scheduled_time=time(10, 0), duration_minutes=30)

        assert conflict_service.check_conflicts(db, MONDAY, time(10, 30), 30) == []
        assert conflict_service.check_conflicts(db, MONDAY, time(9, 30), 30) == []

    def test_returns_all_overlaps_in_start_order(self, db, booking_factory):
        late = booking_factory(scheduled_time=time(11, 0), customer_email="b@example.com")
        early = booking_factory(scheduled_time=time(10, 0), customer_email="a@example.com")

        conflicts = conflict_service.check_conflicts(db, MONDAY, time(10, 0), 90)

        assert [c.id for c in conflicts] == [early.id, late.id]

    def test_other_dates_ignored(self, db, booking_factory):
        booking_factory(scheduled_time=time(10, 0))
        other_day = MONDAY.replace(day=4)

        assert conflict_service.check_conflicts(db, other_day, time(10, 0), 30) == []

    @pytest.mark.parametrize(
        "status",
        [
            AppointmentStatus.CANCELLED,
            AppointmentStatus.NO_SHOW,
            AppointmentStatus.CONVERTED,
            AppointmentStatus.ARRIVED,
        ],
    )
    def test_inactive_statuses_never_conflict(self, db, booking_factory, status):
        appt = booking_factory(scheduled_time=time(10, 0))
        appt.status = status.value
        db.commit()

        assert conflict_service.check_conflicts(db, MONDAY, time(10, 0), 30) == []

    def test_confirmed_appointments_conflict(self, db, booking_factory):
        appt = booking_factory(scheduled_time=time(10, 0))
        appt.status = AppointmentStatus.CONFIRMED.value
        db.commit()

        assert len(conflict_service.check_conflicts(db, MONDAY, time(10, 0), 30)) == 1

    def test_exclude_self_for_reschedule(self, db, booking_factory):
        appt = booking_factory(scheduled_time=time(10, 0))

        conflicts = conflict_service.check_conflicts(
            db, MONDAY, time(10, 15), 30, exclude_appointment_id=appt.id
        )

        assert conflicts == []

    def test_missing_duration_defaults_to_thirty_minutes(self, db, booking_factory):
        booking_factory(scheduled_time=time(10, 0), duration_minutes=None)

        assert len(conflict_service.check_conflicts(db, MONDAY, time(10, 29), None)) == 1
        assert conflict_service.check_conflicts(db, MONDAY, time(10, 30), None) == []
