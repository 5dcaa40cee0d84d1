"""Scheduling error taxonomy.

Routers don't catch these one by one: main.py maps each class to an HTTP status.
"""

from uuid import UUID


class SchedulingError(Exception):
    """Base exception for scheduling service errors."""

    status_code = 400


class ValidationError(SchedulingError):
    """Malformed input (bad time range, blank cancellation reason, ...)."""

    status_code = 422


class NotFoundError(SchedulingError):
    """Unknown appointment, slot, business hours or special date."""

    status_code = 404


class ConflictError(SchedulingError):
    """Requested time overlaps an existing booking or the slot is full."""

    status_code = 409

    def __init__(
        self,
        message: str,
        appointment_number: str | None = None,
        slot_id: UUID | None = None,
    ):
        super().__init__(message)
        self.appointment_number = appointment_number
        self.slot_id = slot_id


class InvalidTransitionError(SchedulingError):
    """Status change not allowed from the appointment's current status."""

    status_code = 409

    def __init__(self, current_status: str, target_status: str, message: str | None = None):
        super().__init__(
            message or f"Cannot change appointment from {current_status} to {target_status}"
        )
        self.current_status = current_status
        self.target_status = target_status


class DependencyFailure(SchedulingError):
    """Customer, device or ticket creation failed mid-operation."""

    status_code = 502

    def __init__(self, dependency: str, message: str):
        super().__init__(f"{dependency}: {message}")
        self.dependency = dependency
