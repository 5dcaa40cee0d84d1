"""Notification dispatcher - queues appointment messages for delivery.

Messages are rendered from templates and written to `notification_logs` with
status=queued. An outbound worker delivers them; nothing here talks to an
email or SMS provider.
"""

import logging
import re
from datetime import date, time
from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session

from repairdesk.core.config import settings
from repairdesk.db.enums import NotificationChannel, NotificationKind, NotificationStatus
from repairdesk.db.models import Appointment, NotificationLog

logger = logging.getLogger(__name__)

VARIABLE_PATTERN = re.compile(r"\{\{(\w+)\}\}")


class NotificationsDisabled(Exception):
    """Raised when NOTIFICATIONS_ENABLED is off."""
    pass


# =============================================================================
# Templates
# =============================================================================

TEMPLATES: dict[NotificationKind, dict[str, str]] = {
    NotificationKind.APPOINTMENT_CONFIRMATION: {
        "subject": "Appointment {{appointment_number}} confirmed for {{scheduled_date}}",
        "body": (
            "Hi {{customer_name}},\n\n"
            "Your repair appointment is booked for {{scheduled_date}} at {{scheduled_time}}.\n"
            "Reference: {{appointment_number}}\n\n"
            "Manage your appointment: {{appointment_url}}\n"
        ),
    },
    NotificationKind.APPOINTMENT_CANCELLED: {
        "subject": "Appointment {{appointment_number}} cancelled",
        "body": (
            "Hi {{customer_name}},\n\n"
            "Your appointment on {{scheduled_date}} at {{scheduled_time}} has been cancelled.\n"
            "Reason: {{cancellation_reason}}\n\n"
            "Book a new time: {{booking_url}}\n"
        ),
    },
    NotificationKind.APPOINTMENT_REMINDER: {
        "subject": "Reminder: appointment {{appointment_number}} on {{scheduled_date}}",
        "body": (
            "Hi {{customer_name}},\n\n"
            "This is a reminder of your repair appointment on {{scheduled_date}} "
            "at {{scheduled_time}}.\n"
            "Reference: {{appointment_number}}\n"
        ),
    },
}


def render_template(kind: NotificationKind, variables: dict[str, Any]) -> tuple[str, str]:
    """
    Render (subject, body) for a notification kind.

    Missing variables are replaced with an empty string.
    """
    template = TEMPLATES[kind]

    def replace_var(match: re.Match) -> str:
        value = variables.get(match.group(1))
        return "" if value is None else str(value)

    return (
        VARIABLE_PATTERN.sub(replace_var, template["subject"]),
        VARIABLE_PATTERN.sub(replace_var, template["body"]),
    )


def _json_safe(payload: dict[str, Any]) -> dict[str, Any]:
    safe = {}
    for key, value in payload.items():
        if isinstance(value, (date, time)):
            safe[key] = value.isoformat()
        elif isinstance(value, UUID):
            safe[key] = str(value)
        else:
            safe[key] = value
    return safe


# =============================================================================
# Dispatch
# =============================================================================

def send(
    db: Session,
    kind: NotificationKind,
    recipient: str,
    payload: dict[str, Any],
    channel: NotificationChannel = NotificationChannel.EMAIL,
    customer_id: UUID | None = None,
    appointment_id: UUID | None = None,
) -> NotificationLog:
    """
    Queue a notification. Flushes but does not commit.

    Raises NotificationsDisabled when notifications are switched off.
    """
    if not settings.NOTIFICATIONS_ENABLED:
        raise NotificationsDisabled("Notifications are disabled")
    if not recipient:
        raise ValueError("Notification recipient is required")

    subject, content = render_template(kind, payload)
    log = NotificationLog(
        kind=kind.value,
        channel=channel.value,
        recipient=recipient,
        subject=subject,
        content=content,
        payload=_json_safe(payload),
        customer_id=customer_id,
        appointment_id=appointment_id,
        status=NotificationStatus.QUEUED.value,
    )
    db.add(log)
    db.flush()
    return log


def appointment_payload(appointment: Appointment) -> dict[str, Any]:
    """Template variables for an appointment (customer must be loaded)."""
    base_url = settings.FRONTEND_URL.rstrip("/")
    customer = appointment.customer
    return {
        "appointment_number": appointment.appointment_number,
        "customer_name": customer.name if customer else "",
        "scheduled_date": appointment.scheduled_date,
        "scheduled_time": appointment.scheduled_time.strftime("%H:%M"),
        "duration_minutes": appointment.duration_minutes,
        "cancellation_reason": appointment.cancellation_reason,
        "appointment_url": f"{base_url}/appointments/{appointment.appointment_number}",
        "booking_url": f"{base_url}/book",
    }


def send_for_appointment(
    db: Session,
    appointment: Appointment,
    kind: NotificationKind,
) -> NotificationLog | None:
    """Queue an appointment email to its customer; None if there is no address."""
    customer = appointment.customer
    if customer is None or not customer.email:
        logger.info(
            "Skipping %s notification for %s: no customer email",
            kind.value,
            appointment.appointment_number,
        )
        return None
    return send(
        db,
        kind,
        customer.email,
        appointment_payload(appointment),
        customer_id=customer.id,
        appointment_id=appointment.id,
    )
