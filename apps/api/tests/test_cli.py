"""Tests for the scheduling admin CLI."""

from datetime import date, time

import pytest
from click.testing import CliRunner

from repairdesk import cli as cli_module
from repairdesk.services import availability_service, calendar_service


@pytest.fixture
def runner(db, monkeypatch):
    """CliRunner whose commands use the test session."""
    monkeypatch.setattr(cli_module, "SessionLocal", lambda: db)
    return CliRunner()


def test_seed_business_hours(runner, db):
    result = runner.invoke(
        cli_module.cli,
        ["seed-business-hours", "--days", "0-2,5", "--open", "10:00", "--close", "18:00"],
    )

    assert result.exit_code == 0
    assert "✓" in result.output
    hours = calendar_service.list_business_hours(db)
    assert [h.day_of_week for h in hours] == [0, 1, 2, 5]
    assert hours[0].open_time == time(10, 0)


def test_seed_rejects_bad_days(runner):
    result = runner.invoke(cli_module.cli, ["seed-business-hours", "--days", "3-8"])

    assert result.exit_code != 0


def test_seed_reports_invalid_hours(runner, db):
    result = runner.invoke(
        cli_module.cli, ["seed-business-hours", "--open", "18:00", "--close", "09:00"]
    )

    assert "❌" in result.output
    assert calendar_service.list_business_hours(db) == []


def test_generate_slots(runner, db, weekday_hours):
    result = runner.invoke(
        cli_module.cli,
        ["generate-slots", "--start", "2024-06-03", "--days", "7", "--duration", "60"],
    )

    assert result.exit_code == 0
    assert "Created 40 slots on 5 of 7 days" in result.output


def test_add_closure(runner, db, weekday_hours):
    result = runner.invoke(
        cli_module.cli, ["add-closure", "--date", "2024-06-03", "--name", "Inventory"]
    )

    assert result.exit_code == 0
    assert "Inventory" in result.output
    assert availability_service.resolve_day(db, date(2024, 6, 3)).is_open is False


def test_generate_slots_defaults_to_shop_today(runner, db, weekday_hours, monkeypatch):
    monkeypatch.setattr(cli_module, "shop_today", lambda: date(2024, 6, 3))

    result = runner.invoke(cli_module.cli, ["generate-slots", "--days", "1"])

    assert result.exit_code == 0
    assert "Created 16 slots on 1 of 1 days" in result.output
    assert len(availability_service.resolve_day(db, date(2024, 6, 3)).slots) == 16
