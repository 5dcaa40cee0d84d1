"""Tests for availability, slot admin, public booking and health endpoints."""

from datetime import date, datetime, timedelta

import pytest
from httpx import AsyncClient

from repairdesk.services import availability_service, slot_service

# 2024-06-03 is a Monday
MONDAY = date(2024, 6, 3)


@pytest.fixture
def next_monday(db, weekday_hours):
    """A Monday strictly in the future with generated slots."""
    today = availability_service.shop_today()
    upcoming = today + timedelta(days=7 - today.weekday())
    slot_service.generate_slots_for_date(db, upcoming, 30)
    return upcoming


# =============================================================================
# Calendar Rules
# =============================================================================

@pytest.mark.asyncio
async def test_business_hours_roundtrip(client: AsyncClient):
    response = await client.put(
        "/availability/business-hours/0",
        json={"open_time": "09:00:00", "close_time": "17:00:00"},
    )
    assert response.status_code == 200
    assert response.json()["day_of_week"] == 0

    response = await client.get("/availability/business-hours")
    assert [h["day_of_week"] for h in response.json()] == [0]


@pytest.mark.asyncio
async def test_invalid_business_hours(client: AsyncClient):
    response = await client.put(
        "/availability/business-hours/0",
        json={"open_time": "17:00:00", "close_time": "09:00:00"},
    )
    assert response.status_code == 422

    response = await client.put(
        "/availability/business-hours/9",
        json={"open_time": "09:00:00", "close_time": "17:00:00"},
    )
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_special_date_crud(client: AsyncClient, monday_slots):
    url = f"/availability/special-dates/{MONDAY.isoformat()}"

    response = await client.put(url, json={"type": "closure", "name": "Staff training"})
    assert response.status_code == 200
    assert response.json()["type"] == "closure"

    day = (await client.get(f"/availability/days/{MONDAY.isoformat()}")).json()
    assert day["is_open"] is False
    assert day["slots"] == []

    response = await client.put(url, json={"type": "special_hours"})
    assert response.status_code == 422

    response = await client.delete(url)
    assert response.status_code == 204

    response = await client.get(url)
    assert response.status_code == 404

    response = await client.delete(url)
    assert response.status_code == 404


# =============================================================================
# Resolved Availability
# =============================================================================

@pytest.mark.asyncio
async def test_day_and_range(client: AsyncClient, monday_slots):
    day = (await client.get(f"/availability/days/{MONDAY.isoformat()}")).json()
    assert day["is_open"] is True
    assert day["open_time"] == "09:00:00"
    assert len(day["slots"]) == 16

    response = await client.get(
        "/availability/range",
        params={"date_start": MONDAY.isoformat(), "date_end": (MONDAY + timedelta(days=6)).isoformat()},
    )
    assert response.status_code == 200
    days = response.json()
    assert len(days) == 7
    assert days[0] == day
    assert days[5]["is_open"] is False


@pytest.mark.asyncio
async def test_inverted_range_is_422(client: AsyncClient):
    response = await client.get(
        "/availability/range",
        params={"date_start": "2024-06-10", "date_end": "2024-06-03"},
    )
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_week_month_and_check(client: AsyncClient, monday_slots):
    week = (await client.get("/availability/week", params={"date": "2024-06-05"})).json()
    assert week[0]["date"] == MONDAY.isoformat()
    assert week[0]["available_slots"] == 16

    month = (await client.get("/availability/month", params={"year": 2024, "month": 6})).json()
    assert len(month) == 30
    assert month[2]["slots"] is None

    check = (
        await client.get("/availability/check", params={"date": MONDAY.isoformat(), "time": "09:30"})
    ).json()
    assert check["available"] is True


@pytest.mark.asyncio
async def test_next_and_suggestions(client: AsyncClient, next_monday):
    response = await client.get("/availability/next", params={"limit": 1})
    assert [d["date"] for d in response.json()] == [next_monday.isoformat()]

    response = await client.get(
        "/availability/suggestions", params={"preferred_date": next_monday.isoformat()}
    )
    times = [s["start_time"] for s in response.json()]
    assert times == ["09:00:00", "09:30:00", "10:00:00", "10:30:00", "11:00:00"]


# =============================================================================
# Slot Admin
# =============================================================================

@pytest.mark.asyncio
async def test_generate_and_toggle_slots(client: AsyncClient, weekday_hours):
    response = await client.post(
        "/admin/slots/generate",
        json={"date_start": "2024-06-03", "date_end": "2024-06-09", "slot_duration": 60},
    )
    assert response.status_code == 200
    summary = response.json()
    assert summary["slots_created"] == 40
    assert summary["skipped_days"] == 2

    slots = (await client.get("/admin/slots", params={"on_date": "2024-06-03"})).json()
    assert len(slots) == 8

    response = await client.patch(f"/admin/slots/{slots[0]['id']}", json={"is_enabled": False})
    assert response.status_code == 200
    assert response.json()["is_available"] is False

    available = (
        await client.get("/admin/slots", params={"on_date": "2024-06-03", "available_only": True})
    ).json()
    assert len(available) == 7


# =============================================================================
# Public Booking
# =============================================================================

@pytest.mark.asyncio
async def test_public_booking(client: AsyncClient, next_monday):
    availability = (
        await client.get("/book/availability", params={"date_start": next_monday.isoformat(), "days": 1})
    ).json()
    assert availability["days"][0]["times"][0] == "09:00"

    response = await client.post(
        "/book",
        json={
            "customer_name": "Riley Chen",
            "customer_email": "riley@example.com",
            "scheduled_date": next_monday.isoformat(),
            "scheduled_time": "09:00",
            "device_brand": "Google",
            "device_model": "Pixel 8",
            "issues": ["charging port"],
        },
    )
    assert response.status_code == 201
    body = response.json()
    assert body["appointment_number"].startswith("APT-")
    assert body["status"] == "scheduled"
    assert "id" not in body

    availability = (
        await client.get("/book/availability", params={"date_start": next_monday.isoformat(), "days": 1})
    ).json()
    assert "09:00" not in availability["days"][0]["times"]


@pytest.mark.asyncio
async def test_public_booking_rejects_off_grid_and_past(client: AsyncClient, next_monday):
    base = {"customer_name": "Riley Chen", "customer_email": "riley@example.com"}

    response = await client.post(
        "/book",
        json={**base, "scheduled_date": next_monday.isoformat(), "scheduled_time": "09:10"},
    )
    assert response.status_code == 422

    yesterday = availability_service.shop_today() - timedelta(days=1)
    response = await client.post(
        "/book",
        json={**base, "scheduled_date": yesterday.isoformat(), "scheduled_time": "09:00"},
    )
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_public_booking_drops_started_slots(client: AsyncClient, monday_slots, monkeypatch):
    monkeypatch.setattr(
        availability_service, "shop_now", lambda: datetime(2024, 6, 3, 12, 10)
    )

    availability = (
        await client.get("/book/availability", params={"date_start": MONDAY.isoformat(), "days": 1})
    ).json()
    assert availability["days"][0]["times"][0] == "12:30"

    response = await client.post(
        "/book",
        json={
            "customer_name": "Riley Chen",
            "customer_email": "riley@example.com",
            "scheduled_date": MONDAY.isoformat(),
            "scheduled_time": "10:00",
        },
    )
    assert response.status_code == 422
    assert "already passed" in response.json()["detail"]


@pytest.mark.asyncio
async def test_health(client: AsyncClient):
    response = await client.get("/health")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ok"
    assert "env" in data
    assert "version" in data
