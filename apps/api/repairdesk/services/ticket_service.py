"""Ticket store and the appointment-to-ticket conversion adapter.

Tickets belong to the repair subsystem; this module only creates them from an
appointment. Nothing here commits: conversion runs in the caller's transaction
so a failed ticket never leaves a converted appointment behind.
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy.orm import Session

from repairdesk.db.enums import AppointmentUrgency, TicketPriority, TicketStatus
from repairdesk.db.models import Appointment, RepairTicket, Service, TicketService
from repairdesk.schemas.appointment import AppointmentConvert
from repairdesk.services.availability_service import shop_today
from repairdesk.services.numbering import TICKET_PREFIX, generate_daily_number

UNKNOWN_DEVICE = "Unknown"


def get_ticket(db: Session, ticket_id: UUID) -> RepairTicket | None:
    return db.get(RepairTicket, ticket_id)


def priority_for_urgency(urgency: str | None) -> TicketPriority:
    """Emergency appointments become urgent tickets; everything else is medium."""
    if urgency == AppointmentUrgency.EMERGENCY.value:
        return TicketPriority.URGENT
    return TicketPriority.MEDIUM


def _device_labels(appointment: Appointment) -> tuple[str, str]:
    """(brand, model) from the booked catalog device, else the owned device's."""
    device = appointment.device
    if device is None and appointment.customer_device is not None:
        device = appointment.customer_device.device
    if device is None:
        return UNKNOWN_DEVICE, UNKNOWN_DEVICE
    return device.manufacturer or UNKNOWN_DEVICE, device.model_name or UNKNOWN_DEVICE


def _identifiers(appointment: Appointment, overrides: AppointmentConvert) -> tuple[str | None, str | None]:
    """Serial/IMEI: staff-entered values win over the registered customer device."""
    serial_number = overrides.serial_number
    imei = overrides.imei
    owned = appointment.customer_device
    if owned is not None:
        serial_number = serial_number or owned.serial_number
        imei = imei or owned.imei
    return serial_number, imei


def _line_items(db: Session, service_ids: list) -> list[TicketService]:
    """One line per active service, quantity 1, price snapshotted now."""
    if not service_ids:
        return []
    ids = [UUID(str(service_id)) for service_id in service_ids]
    services = db.query(Service).filter(
        Service.id.in_(ids),
        Service.is_active == True,
    ).all()
    return [
        TicketService(
            service_id=service.id,
            quantity=1,
            unit_price=service.base_price if service.base_price is not None else Decimal("0"),
        )
        for service in services
    ]


def create_ticket(
    db: Session,
    appointment: Appointment,
    overrides: AppointmentConvert | None = None,
) -> RepairTicket:
    """Build, add and flush a ticket carrying the appointment's details."""
    overrides = overrides or AppointmentConvert()
    brand, model = _device_labels(appointment)
    serial_number, imei = _identifiers(appointment, overrides)

    ticket = RepairTicket(
        ticket_number=generate_daily_number(
            db, RepairTicket.ticket_number, TICKET_PREFIX, shop_today()
        ),
        customer_id=appointment.customer_id,
        device_id=appointment.device_id,
        customer_device_id=appointment.customer_device_id,
        device_brand=brand,
        device_model=model,
        serial_number=serial_number,
        imei=imei,
        repair_issues=list(appointment.issues or []),
        description=appointment.description or overrides.technician_notes,
        estimated_cost=(
            overrides.estimated_cost
            if overrides.estimated_cost is not None
            else appointment.estimated_cost
        ),
        assigned_to=overrides.assigned_to or appointment.assigned_to,
        status=TicketStatus.NEW.value,
        priority=priority_for_urgency(appointment.urgency).value,
    )
    selected = (
        overrides.selected_services
        if overrides.selected_services is not None
        else appointment.service_ids
    )
    ticket.services = _line_items(db, selected or [])

    db.add(ticket)
    db.flush()
    return ticket
