"""CLI tools for scheduling administration."""

from datetime import date, datetime, timedelta

import click

from repairdesk.core.config import settings
from repairdesk.db.enums import SpecialDateType
from repairdesk.db.session import SessionLocal
from repairdesk.services import calendar_service, slot_service
from repairdesk.services.availability_service import shop_today
from repairdesk.services.scheduling_errors import SchedulingError


def _parse_time(value: str | None):
    if not value:
        return None
    return datetime.strptime(value, "%H:%M").time()


def _parse_days(value: str) -> list[int]:
    """'0-4' or '0,2,4' → weekday numbers (Monday=0)."""
    days: set[int] = set()
    for part in value.split(","):
        part = part.strip()
        if "-" in part:
            first, last = part.split("-", 1)
            days.update(range(int(first), int(last) + 1))
        elif part:
            days.add(int(part))
    if not days or min(days) < 0 or max(days) > 6:
        raise click.BadParameter("days must be between 0 (Monday) and 6 (Sunday)")
    return sorted(days)


@click.group()
def cli():
    """RepairDesk scheduling CLI tools."""
    pass


@cli.command()
@click.option("--days", default="0-4", show_default=True, help="Weekdays to open, Monday=0 (e.g. 0-4 or 0,2,5)")
@click.option("--open", "open_time", default="09:00", show_default=True, help="Opening time HH:MM")
@click.option("--close", "close_time", default="17:00", show_default=True, help="Closing time HH:MM")
@click.option("--break-start", default=None, help="Optional break start HH:MM")
@click.option("--break-end", default=None, help="Optional break end HH:MM")
def seed_business_hours(days: str, open_time: str, close_time: str, break_start: str | None, break_end: str | None):
    """
    Set the same opening hours for several weekdays.

    Example:
        python -m repairdesk.cli seed-business-hours --days 0-5 --open 10:00 --close 18:00
    """
    weekdays = _parse_days(days)
    db = SessionLocal()
    try:
        for day in weekdays:
            calendar_service.set_business_hours(
                db,
                day,
                open_time=_parse_time(open_time),
                close_time=_parse_time(close_time),
                break_start=_parse_time(break_start),
                break_end=_parse_time(break_end),
            )
        click.echo(f"✓ Business hours set for weekdays {', '.join(str(d) for d in weekdays)}")
    except (SchedulingError, ValueError) as e:
        db.rollback()
        click.echo(f"❌ Error: {e}")
    finally:
        db.close()


@cli.command()
@click.option("--start", "start", default=None, help="First date YYYY-MM-DD (default: today in the shop timezone)")
@click.option("--days", default=settings.SLOT_GENERATION_DAYS_AHEAD, show_default=True, help="Number of days")
@click.option("--duration", default=settings.DEFAULT_SLOT_DURATION_MINUTES, show_default=True, help="Slot length in minutes")
@click.option("--capacity", default=settings.DEFAULT_SLOT_CAPACITY, show_default=True, help="Bookings per slot")
def generate_slots(start: str | None, days: int, duration: int, capacity: int):
    """
    Generate missing slots from the calendar rules. Safe to re-run.

    Example:
        python -m repairdesk.cli generate-slots --days 30
    """
    first = date.fromisoformat(start) if start else shop_today()
    db = SessionLocal()
    try:
        summary = slot_service.generate_slots_for_range(
            db,
            first,
            first + timedelta(days=days - 1),
            slot_duration=duration,
            max_capacity=capacity,
        )
        click.echo(
            f"✓ Created {summary['slots_created']} slots on {summary['generated_days']} "
            f"of {summary['total_days']} days"
        )
    except SchedulingError as e:
        db.rollback()
        click.echo(f"❌ Error: {e}")
    finally:
        db.close()


@cli.command()
@click.option("--date", "on_date", required=True, help="Date YYYY-MM-DD")
@click.option("--name", default=None, help="Holiday or reason")
def add_closure(on_date: str, name: str | None):
    """
    Close the shop for a whole day.

    Example:
        python -m repairdesk.cli add-closure --date 2024-12-25 --name "Christmas"
    """
    db = SessionLocal()
    try:
        closed = calendar_service.set_special_date(
            db, date.fromisoformat(on_date), SpecialDateType.CLOSURE, name=name
        )
        click.echo(f"✓ Closed on {closed.date.isoformat()}" + (f" ({name})" if name else ""))
    except (SchedulingError, ValueError) as e:
        db.rollback()
        click.echo(f"❌ Error: {e}")
    finally:
        db.close()


if __name__ == "__main__":
    cli()
