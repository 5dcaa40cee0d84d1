"""Structured logging helpers (PII-safe)."""

from datetime import date
from typing import Any
from uuid import UUID


def build_log_context(
    *,
    appointment_id: UUID | str | None = None,
    appointment_number: str | None = None,
    scheduled_date: date | None = None,
    slot_id: UUID | str | None = None,
    ticket_id: UUID | str | None = None,
    request_id: str | None = None,
    route: str | None = None,
    method: str | None = None,
) -> dict[str, Any]:
    """Return a PII-safe log context dict.

    Customer names, emails and phone numbers never go into log records;
    identifiers are enough to trace an appointment through the system.
    """
    context: dict[str, Any] = {}
    if appointment_id:
        context["appointment_id"] = str(appointment_id)
    if appointment_number:
        context["appointment_number"] = appointment_number
    if scheduled_date:
        context["scheduled_date"] = scheduled_date.isoformat()
    if slot_id:
        context["slot_id"] = str(slot_id)
    if ticket_id:
        context["ticket_id"] = str(ticket_id)
    if request_id:
        context["request_id"] = request_id
    if route:
        context["route"] = route
    if method:
        context["method"] = method
    return context
