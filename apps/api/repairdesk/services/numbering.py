"""Human-readable daily sequence numbers (APT-20240603-001, TKT-20240603-001)."""

from datetime import date

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import InstrumentedAttribute, Session

APPOINTMENT_PREFIX = "APT"
TICKET_PREFIX = "TKT"

# Retries after a duplicate number lost a race with a concurrent insert
NUMBER_RETRY_ATTEMPTS = 3


def generate_daily_number(
    db: Session,
    column: InstrumentedAttribute,
    prefix: str,
    on_date: date,
) -> str:
    """
    Next number in the day's sequence for `column`.

    Numbers are never reused; a loser of a concurrent race hits the unique
    constraint and retries.
    """
    day_prefix = f"{prefix}-{on_date.strftime('%Y%m%d')}-"
    max_number = db.query(func.max(column)).filter(column.like(f"{day_prefix}%")).scalar()

    next_seq = 1
    if max_number:
        try:
            next_seq = int(max_number.rsplit("-", 1)[1]) + 1
        except (IndexError, ValueError):
            next_seq = 1
    return f"{day_prefix}{next_seq:03d}"


def is_number_conflict(error: IntegrityError, constraint_name: str, column_name: str) -> bool:
    """True if the IntegrityError came from the number's unique constraint."""
    constraint = getattr(getattr(error.orig, "diag", None), "constraint_name", None)
    if constraint == constraint_name:
        return True
    message = str(error.orig) if error.orig else str(error)
    # SQLite reports the column rather than the constraint name
    return constraint_name in message or f".{column_name}" in message
