"""Appointment service - booking and the appointment lifecycle.

Handles:
- Conflict-free booking (per-date lock, conflict check, insert, slot reservation)
- Status transitions (confirm, arrive, no-show, cancel)
- Rescheduling and edits
- Conversion into a repair ticket
- Best-effort customer notifications

State machine:
    scheduled → confirmed → arrived → converted
    scheduled|confirmed → cancelled | no_show
converted, cancelled and no_show are terminal.
"""

import logging
from datetime import datetime, timezone
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from repairdesk.core.config import settings
from repairdesk.core.structured_logging import build_log_context
from repairdesk.db.enums import (
    BLOCKING_APPOINTMENT_STATUSES,
    TERMINAL_APPOINTMENT_STATUSES,
    AppointmentStatus,
    NotificationKind,
)
from repairdesk.db.models import Appointment, RepairTicket
from repairdesk.schemas.appointment import (
    AppointmentConvert,
    AppointmentCreate,
    AppointmentUpdate,
)
from repairdesk.services import (
    conflict_service,
    customer_service,
    device_service,
    notification_service,
    slot_service,
    ticket_service,
)
from repairdesk.services.numbering import (
    APPOINTMENT_PREFIX,
    NUMBER_RETRY_ATTEMPTS,
    generate_daily_number,
    is_number_conflict,
)
from repairdesk.services.availability_service import shop_today
from repairdesk.services.scheduling_errors import (
    ConflictError,
    DependencyFailure,
    InvalidTransitionError,
    NotFoundError,
    SchedulingError,
    ValidationError,
)

logger = logging.getLogger(__name__)


# =============================================================================
# Transition Rules
# =============================================================================

ALLOWED_TRANSITIONS: dict[AppointmentStatus, frozenset[AppointmentStatus]] = {
    AppointmentStatus.SCHEDULED: frozenset({
        AppointmentStatus.CONFIRMED,
        AppointmentStatus.ARRIVED,
        AppointmentStatus.NO_SHOW,
        AppointmentStatus.CANCELLED,
    }),
    AppointmentStatus.CONFIRMED: frozenset({
        AppointmentStatus.ARRIVED,
        AppointmentStatus.NO_SHOW,
        AppointmentStatus.CANCELLED,
    }),
    AppointmentStatus.ARRIVED: frozenset(),
    AppointmentStatus.NO_SHOW: frozenset(),
    AppointmentStatus.CANCELLED: frozenset(),
    AppointmentStatus.CONVERTED: frozenset(),
}

# Which statuses may be converted into a ticket, by named policy
CONVERSION_POLICIES: dict[str, frozenset[AppointmentStatus]] = {
    # Walk-ins get converted straight from the booking
    "walk_in": frozenset({
        AppointmentStatus.SCHEDULED,
        AppointmentStatus.CONFIRMED,
        AppointmentStatus.ARRIVED,
    }),
    "arrived_only": frozenset({AppointmentStatus.ARRIVED}),
}


def conversion_source_statuses() -> frozenset[AppointmentStatus]:
    return CONVERSION_POLICIES[settings.APPOINTMENT_CONVERSION_POLICY]


def can_transition(current: AppointmentStatus, target: AppointmentStatus) -> bool:
    """True if `target` is reachable from `current` in one step."""
    if target == AppointmentStatus.CONVERTED:
        return current in conversion_source_statuses()
    return target in ALLOWED_TRANSITIONS.get(current, frozenset())


def _require_transition(appointment: Appointment, target: AppointmentStatus) -> None:
    current = AppointmentStatus(appointment.status)
    if current in TERMINAL_APPOINTMENT_STATUSES:
        raise InvalidTransitionError(
            current.value,
            target.value,
            f"Appointment {appointment.appointment_number} is already {current.value}",
        )
    if not can_transition(current, target):
        raise InvalidTransitionError(current.value, target.value)


def _source_statuses(target: AppointmentStatus) -> list[str]:
    return [status.value for status in AppointmentStatus if can_transition(status, target)]


def _update_if_status(
    db: Session,
    appointment: Appointment,
    statuses: list[str],
    **values,
) -> bool:
    """Compare-and-set on the appointment row; False if its status moved on. Does not commit."""
    result = db.execute(
        update(Appointment)
        .where(
            Appointment.id == appointment.id,
            Appointment.status.in_(statuses),
        )
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


def _apply_transition(
    db: Session,
    appointment: Appointment,
    target: AppointmentStatus,
    **values,
) -> None:
    """
    Move the row to `target` only if it is still in an allowed source status.

    Concurrent transitions of the same appointment race on this UPDATE; the
    loser sees rowcount 0, its transaction is rolled back and it gets
    InvalidTransitionError. Does not commit.
    """
    if _update_if_status(db, appointment, _source_statuses(target), status=target.value, **values):
        return
    db.rollback()
    db.refresh(appointment)
    raise InvalidTransitionError(
        appointment.status,
        target.value,
        f"Appointment {appointment.appointment_number} is already {appointment.status}",
    )


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _log_context(appointment: Appointment, **extra) -> dict:
    return build_log_context(
        appointment_id=appointment.id,
        appointment_number=appointment.appointment_number,
        scheduled_date=appointment.scheduled_date,
        **extra,
    )


# =============================================================================
# Reads
# =============================================================================

def get_appointment(db: Session, appointment_id: UUID) -> Appointment | None:
    return db.get(Appointment, appointment_id)


def get_appointment_by_number(db: Session, appointment_number: str) -> Appointment | None:
    return db.query(Appointment).filter(
        Appointment.appointment_number == appointment_number.strip().upper()
    ).first()


def _get_or_404(db: Session, appointment_id: UUID) -> Appointment:
    appointment = get_appointment(db, appointment_id)
    if not appointment:
        raise NotFoundError("Appointment not found")
    return appointment


def _get_for_update(db: Session, appointment_id: UUID) -> Appointment:
    """Load and row-lock an appointment, refreshing any copy already in the session."""
    appointment = db.execute(
        select(Appointment)
        .where(Appointment.id == appointment_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    ).scalar_one_or_none()
    if not appointment:
        raise NotFoundError("Appointment not found")
    return appointment


# =============================================================================
# Booking
# =============================================================================

def _raise_if_conflicting(
    db: Session,
    on_date,
    start_time,
    duration: int,
    exclude_appointment_id: UUID | None = None,
) -> None:
    conflicts = conflict_service.check_conflicts(
        db, on_date, start_time, duration, exclude_appointment_id
    )
    if conflicts:
        first = conflicts[0]
        raise ConflictError(
            f"Time slot conflicts with appointment {first.appointment_number}",
            appointment_number=first.appointment_number,
        )


def _reserve_matching_slot(db: Session, appointment: Appointment) -> None:
    """Reserve the shared slot starting at the appointment's time, if one exists."""
    slot = slot_service.find_slot(db, appointment.scheduled_date, appointment.scheduled_time)
    if slot is None:
        appointment.slot_id = None
        return
    if not slot_service.reserve_slot(db, slot.id, appointment.id):
        raise ConflictError(
            f"Slot at {appointment.scheduled_time.strftime('%H:%M')} on "
            f"{appointment.scheduled_date.isoformat()} is fully booked",
            slot_id=slot.id,
        )
    appointment.slot_id = slot.id


def _resolve_customer(db: Session, data: AppointmentCreate):
    if data.customer_id:
        customer = customer_service.get_customer(db, data.customer_id)
        if not customer:
            raise NotFoundError("Customer not found")
        return customer
    return customer_service.find_or_create(
        db,
        name=data.customer_name,
        email=data.customer_email,
        phone=data.customer_phone,
    )


def _resolve_device(db: Session, data: AppointmentCreate, customer_id: UUID):
    """(catalog device id, customer device) for the booking."""
    device_id = data.device_id
    if device_id is None and data.device_brand and data.device_model:
        device_id = device_service.find_or_create_device(db, data.device_brand, data.device_model).id
    customer_device = device_service.link_or_create(
        db,
        customer_id,
        device_id=device_id,
        customer_device_id=data.customer_device_id,
        serial_number=data.serial_number,
        imei=data.imei,
    )
    if device_id is None and customer_device is not None:
        device_id = customer_device.device_id
    return device_id, customer_device


def _insert_appointment(db: Session, data: AppointmentCreate) -> Appointment:
    """Lock, check, write. Leaves the transaction open for the caller to commit."""
    duration = data.duration_minutes or settings.DEFAULT_APPOINTMENT_DURATION_MINUTES

    conflict_service.lock_schedule_date(db, data.scheduled_date)
    _raise_if_conflicting(db, data.scheduled_date, data.scheduled_time, duration)

    try:
        customer = _resolve_customer(db, data)
        device_id, customer_device = _resolve_device(db, data, customer.id)
    except SchedulingError:
        raise
    except SQLAlchemyError as exc:
        raise DependencyFailure("customer", str(exc)) from exc

    appointment = Appointment(
        appointment_number=generate_daily_number(
            db, Appointment.appointment_number, APPOINTMENT_PREFIX, shop_today()
        ),
        customer_id=customer.id,
        device_id=device_id,
        customer_device_id=customer_device.id if customer_device else None,
        scheduled_date=data.scheduled_date,
        scheduled_time=data.scheduled_time,
        duration_minutes=duration,
        service_ids=[str(service_id) for service_id in data.service_ids],
        estimated_cost=data.estimated_cost,
        issues=list(data.issues),
        description=data.description,
        urgency=data.urgency.value,
        source=data.source.value,
        notes=data.notes,
        status=AppointmentStatus.SCHEDULED.value,
        created_by=data.created_by,
        assigned_to=data.assigned_to,
    )
    db.add(appointment)
    db.flush()

    # Second check with our row flushed: sees bookings committed since the first
    _raise_if_conflicting(
        db, data.scheduled_date, data.scheduled_time, duration, appointment.id
    )
    _reserve_matching_slot(db, appointment)
    return appointment


def create_appointment(db: Session, data: AppointmentCreate) -> Appointment:
    """
    Book an appointment.

    Nothing is written when the time conflicts with an active appointment or
    the matching slot is full. The confirmation notification is queued after
    commit and never undoes the booking.

    Raises:
        ConflictError: overlapping appointment or slot already full
        NotFoundError: unknown customer / device reference
        DependencyFailure: customer or device record could not be written
    """
    for attempt in range(NUMBER_RETRY_ATTEMPTS):
        try:
            appointment = _insert_appointment(db, data)
            db.commit()
            break
        except IntegrityError as exc:
            db.rollback()
            if is_number_conflict(exc, "uq_appointment_number", "appointment_number") and (
                attempt < NUMBER_RETRY_ATTEMPTS - 1
            ):
                continue
            raise DependencyFailure("appointment", "could not store appointment") from exc
        except Exception:
            db.rollback()
            raise

    db.refresh(appointment)
    logger.info("Appointment booked", extra=_log_context(appointment, slot_id=appointment.slot_id))

    _notify(db, appointment, NotificationKind.APPOINTMENT_CONFIRMATION)
    return appointment


# =============================================================================
# Edits & Rescheduling
# =============================================================================

def update_appointment(db: Session, appointment_id: UUID, data: AppointmentUpdate) -> Appointment:
    """
    Edit an appointment; date/time/duration changes reschedule it.

    Rescheduling is only possible while scheduled or confirmed. The old slot is
    released and the slot at the new time (if any) reserved in the same
    transaction.
    """
    appointment = _get_for_update(db, appointment_id)
    changes = data.model_dump(exclude_unset=True)

    new_date = changes.get("scheduled_date") or appointment.scheduled_date
    new_time = changes.get("scheduled_time") or appointment.scheduled_time
    new_duration = changes.get("duration_minutes") or appointment.duration_minutes
    reschedule = (
        new_date != appointment.scheduled_date
        or new_time != appointment.scheduled_time
        or new_duration != appointment.duration_minutes
    )

    if AppointmentStatus(appointment.status) in TERMINAL_APPOINTMENT_STATUSES:
        raise InvalidTransitionError(
            appointment.status,
            appointment.status,
            f"Appointment {appointment.appointment_number} is {appointment.status} and cannot be edited",
        )

    try:
        if reschedule:
            not_movable = InvalidTransitionError(
                appointment.status,
                appointment.status,
                "Only scheduled or confirmed appointments can be rescheduled",
            )
            if AppointmentStatus(appointment.status) not in BLOCKING_APPOINTMENT_STATUSES:
                raise not_movable
            conflict_service.lock_schedule_date(db, new_date)
            _raise_if_conflicting(db, new_date, new_time, new_duration, appointment.id)
            moved = _update_if_status(
                db,
                appointment,
                [status.value for status in BLOCKING_APPOINTMENT_STATUSES],
                scheduled_date=new_date,
                scheduled_time=new_time,
                duration_minutes=new_duration,
            )
            if not moved:
                raise not_movable
            slot_service.release_slot_for_appointment(db, appointment)
            appointment.scheduled_date = new_date
            appointment.scheduled_time = new_time
            appointment.duration_minutes = new_duration
            _reserve_matching_slot(db, appointment)

        if "service_ids" in changes and changes["service_ids"] is not None:
            appointment.service_ids = [str(service_id) for service_id in changes["service_ids"]]
        if "issues" in changes and changes["issues"] is not None:
            appointment.issues = list(changes["issues"])
        if "urgency" in changes and changes["urgency"] is not None:
            appointment.urgency = changes["urgency"].value
        for field in ("estimated_cost", "description", "notes", "assigned_to"):
            if field in changes:
                setattr(appointment, field, changes[field])

        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(appointment)
    if reschedule:
        logger.info("Appointment rescheduled", extra=_log_context(appointment))
    return appointment


# =============================================================================
# Status Transitions
# =============================================================================
# Each transition row-locks the appointment, checks the move, then writes it
# with a compare-and-set on the status column.

def confirm_appointment(db: Session, appointment_id: UUID) -> Appointment:
    """scheduled → confirmed; queues a confirmation to the customer."""
    appointment = _get_for_update(db, appointment_id)
    _require_transition(appointment, AppointmentStatus.CONFIRMED)

    _apply_transition(db, appointment, AppointmentStatus.CONFIRMED, confirmed_at=_now())
    db.commit()
    db.refresh(appointment)
    logger.info("Appointment confirmed", extra=_log_context(appointment))

    _notify(db, appointment, NotificationKind.APPOINTMENT_CONFIRMATION)
    return appointment


def mark_arrived(db: Session, appointment_id: UUID) -> Appointment:
    """scheduled|confirmed → arrived (customer checked in)."""
    appointment = _get_for_update(db, appointment_id)
    _require_transition(appointment, AppointmentStatus.ARRIVED)

    _apply_transition(db, appointment, AppointmentStatus.ARRIVED, arrived_at=_now())
    db.commit()
    db.refresh(appointment)
    logger.info("Customer arrived", extra=_log_context(appointment))
    return appointment


def mark_no_show(db: Session, appointment_id: UUID) -> Appointment:
    """scheduled|confirmed → no_show. The reserved slot stays consumed."""
    appointment = _get_for_update(db, appointment_id)
    _require_transition(appointment, AppointmentStatus.NO_SHOW)

    _apply_transition(db, appointment, AppointmentStatus.NO_SHOW)
    db.commit()
    db.refresh(appointment)
    logger.info("Appointment marked no-show", extra=_log_context(appointment))
    return appointment


def cancel_appointment(db: Session, appointment_id: UUID, reason: str) -> Appointment:
    """
    scheduled|confirmed → cancelled.

    A non-blank reason is required. The reserved slot is released in the same
    transaction, and only by the request whose status change won; the
    cancellation notice is best-effort.
    """
    reason = (reason or "").strip()
    if not reason:
        raise ValidationError("Cancellation reason is required")

    appointment = _get_for_update(db, appointment_id)
    _require_transition(appointment, AppointmentStatus.CANCELLED)

    try:
        _apply_transition(
            db,
            appointment,
            AppointmentStatus.CANCELLED,
            cancellation_reason=reason,
            cancelled_at=_now(),
        )
        slot_service.release_slot_for_appointment(db, appointment)
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(appointment)
    logger.info("Appointment cancelled", extra=_log_context(appointment, slot_id=appointment.slot_id))

    _notify(db, appointment, NotificationKind.APPOINTMENT_CANCELLED)
    return appointment


# =============================================================================
# Ticket Conversion
# =============================================================================

def convert_to_ticket(
    db: Session,
    appointment_id: UUID,
    overrides: AppointmentConvert | None = None,
) -> tuple[Appointment, RepairTicket]:
    """
    Turn an appointment into a repair ticket, atomically.

    The ticket, its service lines and the appointment's converted status are
    committed together. If anything fails the transaction is rolled back and
    the appointment keeps its previous status. Of two concurrent conversions
    only one commits a ticket; the other gets InvalidTransitionError.

    Raises:
        InvalidTransitionError: already converted, or status not allowed by
            APPOINTMENT_CONVERSION_POLICY
        DependencyFailure: ticket could not be created
    """
    appointment = _get_for_update(db, appointment_id)
    if appointment.status == AppointmentStatus.CONVERTED.value:
        raise InvalidTransitionError(
            appointment.status,
            AppointmentStatus.CONVERTED.value,
            f"Appointment {appointment.appointment_number} has already been converted",
        )
    _require_transition(appointment, AppointmentStatus.CONVERTED)

    for attempt in range(NUMBER_RETRY_ATTEMPTS):
        try:
            ticket = ticket_service.create_ticket(db, appointment, overrides)
            _apply_transition(
                db,
                appointment,
                AppointmentStatus.CONVERTED,
                converted_to_ticket_id=ticket.id,
            )
            db.commit()
            break
        except SchedulingError:
            db.rollback()
            raise
        except IntegrityError as exc:
            db.rollback()
            if is_number_conflict(exc, "uq_ticket_number", "ticket_number") and (
                attempt < NUMBER_RETRY_ATTEMPTS - 1
            ):
                appointment = _get_for_update(db, appointment_id)
                continue
            logger.exception("Ticket conversion failed", extra=_log_context(appointment))
            raise DependencyFailure("ticket", "could not create repair ticket") from exc
        except Exception as exc:
            db.rollback()
            logger.exception("Ticket conversion failed", extra=_log_context(appointment))
            raise DependencyFailure("ticket", str(exc) or "could not create repair ticket") from exc

    db.refresh(appointment)
    db.refresh(ticket)
    logger.info("Appointment converted", extra=_log_context(appointment, ticket_id=ticket.id))
    return appointment, ticket


# =============================================================================
# Notifications
# =============================================================================

def _notify(db: Session, appointment: Appointment, kind: NotificationKind) -> bool:
    """
    Queue a customer notification after the state change has committed.

    Failures are logged and swallowed; the appointment change stands.
    """
    try:
        log = notification_service.send_for_appointment(db, appointment, kind)
        if log is None:
            return False
        if kind == NotificationKind.APPOINTMENT_CONFIRMATION:
            appointment.confirmation_sent_at = _now()
        elif kind == NotificationKind.APPOINTMENT_REMINDER:
            appointment.reminder_sent_at = _now()
        db.commit()
        return True
    except Exception as exc:
        db.rollback()
        logger.warning(
            "Failed to queue %s notification: %s",
            kind.value,
            exc,
            extra=_log_context(appointment),
        )
        return False


def send_reminder(db: Session, appointment_id: UUID) -> Appointment:
    """Queue a reminder for an active appointment and stamp reminder_sent_at."""
    appointment = _get_or_404(db, appointment_id)
    if AppointmentStatus(appointment.status) not in BLOCKING_APPOINTMENT_STATUSES:
        raise InvalidTransitionError(
            appointment.status,
            appointment.status,
            "Reminders can only be sent for scheduled or confirmed appointments",
        )
    _notify(db, appointment, NotificationKind.APPOINTMENT_REMINDER)
    db.refresh(appointment)
    return appointment
