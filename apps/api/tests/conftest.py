"""
Test configuration and fixtures.

Provides:
- A fresh in-memory SQLite database per test, built from the model metadata
- Calendar fixtures (weekday business hours, a Monday with generated slots)
- HTTPX AsyncClient sharing the test session
"""
import os
from datetime import date, time
from typing import AsyncGenerator, Generator

# Must be set before repairdesk modules read settings
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["TESTING"] = "1"

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from repairdesk.core.deps import get_db
from repairdesk.db.base import Base
import repairdesk.db.models  # noqa: F401
from repairdesk.main import app

# 2024-06-03 is a Monday
MONDAY = date(2024, 6, 3)


# =============================================================================
# Database Fixtures
# =============================================================================

@pytest.fixture(scope="function")
def test_engine() -> Generator[Engine, None, None]:
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture(scope="function")
def db(test_engine: Engine) -> Generator[Session, None, None]:
    """Session on an empty database; services may commit freely."""
    TestingSession = sessionmaker(bind=test_engine, autocommit=False, autoflush=False)
    session = TestingSession()
    yield session
    session.close()


# =============================================================================
# Calendar Fixtures
# =============================================================================

@pytest.fixture
def weekday_hours(db: Session):
    """Monday-Friday 09:00-17:00, weekends closed."""
    from repairdesk.services import calendar_service

    return [
        calendar_service.set_business_hours(db, day, time(9, 0), time(17, 0))
        for day in range(5)
    ]


@pytest.fixture
def monday_slots(db: Session, weekday_hours):
    """Sixteen 30-minute slots on MONDAY."""
    from repairdesk.services import slot_service

    slot_service.generate_slots_for_date(db, MONDAY, 30)
    return slot_service.list_slots(db, MONDAY)


@pytest.fixture
def booking_factory(db: Session):
    """Book appointments through the service with sensible defaults."""
    from repairdesk.schemas.appointment import AppointmentCreate
    from repairdesk.services import appointment_service

    def _book(**overrides):
        payload = {
            "customer_name": "Jamie Rivera",
            "customer_email": "jamie@example.com",
            "customer_phone": "555-123-4567",
            "scheduled_date": MONDAY,
            "scheduled_time": time(10, 0),
            "duration_minutes": 30,
        }
        payload.update(overrides)
        return appointment_service.create_appointment(db, AppointmentCreate(**payload))

    return _book


# =============================================================================
# Client Fixtures
# =============================================================================

@pytest.fixture(scope="function")
async def client(db: Session) -> AsyncGenerator[AsyncClient, None]:
    """AsyncClient whose requests use the test session."""
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as c:
        yield c

    app.dependency_overrides.clear()
