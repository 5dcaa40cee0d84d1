"""Application configuration with environment variables."""

from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Environment
    ENV: str = "dev"

    # App Version (format: a.bc.de - major.feature.patch)
    VERSION: str = "0.01.00"

    # Database
    DATABASE_URL: str

    # CORS
    CORS_ORIGINS: str = "http://localhost:3000"

    # Frontend (used in notification links)
    FRONTEND_URL: str = "http://localhost:3000"

    # Shop timezone, used to decide what "today" means
    SHOP_TIMEZONE: str = "America/Los_Angeles"

    # Error Tracking (optional, set in production)
    SENTRY_DSN: str = ""

    # Rate Limiting (requests per minute)
    RATE_LIMIT_API: int = 60  # General API
    RATE_LIMIT_PUBLIC: int = 10  # Public booking form

    # Slots
    DEFAULT_SLOT_DURATION_MINUTES: int = 30
    DEFAULT_SLOT_CAPACITY: int = 1
    SLOT_GENERATION_DAYS_AHEAD: int = 30
    SLOT_GENERATION_MAX_DAYS: int = 90

    # Availability queries
    AVAILABILITY_MAX_RANGE_DAYS: int = 93
    NEXT_AVAILABLE_SEARCH_DAYS: int = 60
    UPCOMING_WINDOW_DAYS: int = 7

    # Appointments
    DEFAULT_APPOINTMENT_DURATION_MINUTES: int = 30
    # walk_in: scheduled/confirmed/arrived can be converted to a ticket
    # arrived_only: the customer must be checked in first
    APPOINTMENT_CONVERSION_POLICY: Literal["walk_in", "arrived_only"] = "walk_in"

    # Notifications (queued to the outbox; delivery happens elsewhere)
    NOTIFICATIONS_ENABLED: bool = True

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse CORS_ORIGINS into a list."""
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]


settings = Settings()
