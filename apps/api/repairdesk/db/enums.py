"""Scheduling, ticket and notification enums."""

from enum import Enum


class AppointmentStatus(str, Enum):
    """
    Appointment lifecycle status.

    Flow: scheduled → confirmed → arrived → converted
              ↘ cancelled   ↘ cancelled
              ↘ no_show     ↘ no_show
    """

    SCHEDULED = "scheduled"  # Booked, not yet confirmed with the customer
    CONFIRMED = "confirmed"  # Customer confirmed
    ARRIVED = "arrived"  # Checked in at the counter
    NO_SHOW = "no_show"  # Customer didn't show up
    CANCELLED = "cancelled"  # Cancelled by customer or staff
    CONVERTED = "converted"  # Turned into a repair ticket


# Statuses that occupy the calendar and therefore take part in conflict checks
BLOCKING_APPOINTMENT_STATUSES = (
    AppointmentStatus.SCHEDULED,
    AppointmentStatus.CONFIRMED,
)

TERMINAL_APPOINTMENT_STATUSES = frozenset(
    {
        AppointmentStatus.CONVERTED,
        AppointmentStatus.CANCELLED,
        AppointmentStatus.NO_SHOW,
    }
)


class AppointmentUrgency(str, Enum):
    """How urgently the customer needs the repair."""

    WALK_IN = "walk-in"
    SCHEDULED = "scheduled"
    EMERGENCY = "emergency"


class AppointmentSource(str, Enum):
    """Channel the booking came in through."""

    WEBSITE = "website"
    PHONE = "phone"
    WALK_IN = "walk-in"
    EMAIL = "email"


class SpecialDateType(str, Enum):
    """Calendar override kind."""

    CLOSURE = "closure"  # Shop closed all day
    SPECIAL_HOURS = "special_hours"  # Open with different hours


class TicketStatus(str, Enum):
    NEW = "new"
    IN_PROGRESS = "in_progress"
    ON_HOLD = "on_hold"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class TicketPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class NotificationKind(str, Enum):
    """Customer notification templates for appointments."""

    APPOINTMENT_CONFIRMATION = "appointment_confirmation"
    APPOINTMENT_CANCELLED = "appointment_cancelled"
    APPOINTMENT_REMINDER = "appointment_reminder"


class NotificationChannel(str, Enum):
    EMAIL = "email"
    SMS = "sms"


class NotificationStatus(str, Enum):
    QUEUED = "queued"
    SENT = "sent"
    FAILED = "failed"


# Default appointment status
DEFAULT_APPOINTMENT_STATUS = AppointmentStatus.SCHEDULED
