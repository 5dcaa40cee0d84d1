"""FastAPI application entry point."""

import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text

from repairdesk.core.config import settings
from repairdesk.core.structured_logging import build_log_context
from repairdesk.db.session import engine
from repairdesk.services.scheduling_errors import ConflictError, SchedulingError

logger = logging.getLogger(__name__)


# ============================================================================
# Sentry Integration (optional, for production error tracking)
# ============================================================================

if settings.SENTRY_DSN and settings.ENV != "dev":
    import sentry_sdk
    from sentry_sdk.integrations.fastapi import FastApiIntegration
    from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration

    sentry_sdk.init(
        dsn=settings.SENTRY_DSN,
        environment=settings.ENV,
        integrations=[
            FastApiIntegration(transaction_style="endpoint"),
            SqlalchemyIntegration(),
        ],
        traces_sample_rate=0.1,
        send_default_pii=False,  # Customer contact details stay out of Sentry
    )
    logging.info("Sentry initialized for error tracking")


# ============================================================================
# Rate Limiting
# ============================================================================

from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from repairdesk.core.rate_limit import limiter


# ============================================================================
# FastAPI App
# ============================================================================

app = FastAPI(
    title="RepairDesk Scheduling API",
    description="Appointment scheduling and availability for a repair shop",
    version=settings.VERSION,
    docs_url="/docs" if settings.ENV == "dev" else None,
    redoc_url="/redoc" if settings.ENV == "dev" else None,
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "X-Requested-With"],
    expose_headers=["X-Request-ID"],
)


# ============================================================================
# Error Handling
# ============================================================================

@app.exception_handler(SchedulingError)
async def scheduling_error_handler(request: Request, exc: SchedulingError):
    """Map service-layer errors to HTTP responses."""
    body = {"detail": str(exc)}
    if isinstance(exc, ConflictError):
        if exc.appointment_number:
            body["appointment_number"] = exc.appointment_number
        if exc.slot_id:
            body["slot_id"] = str(exc.slot_id)
    if exc.status_code >= 500:
        logger.error(
            "Scheduling dependency failure: %s",
            exc,
            extra=build_log_context(
                request_id=request.headers.get("X-Request-ID"),
                route=request.url.path,
                method=request.method,
            ),
        )
    return JSONResponse(status_code=exc.status_code, content=body)


# ============================================================================
# Routers
# ============================================================================

from repairdesk.routers import admin_slots, appointments, availability, booking

# Appointments (staff)
app.include_router(appointments.router, prefix="/appointments", tags=["appointments"])

# Availability views and calendar rules
app.include_router(availability.router, prefix="/availability", tags=["availability"])

# Slot administration
app.include_router(admin_slots.router, prefix="/admin/slots", tags=["admin"])

# Public Booking (unauthenticated)
app.include_router(booking.router, prefix="/book", tags=["booking"])


# ============================================================================
# Health Check
# ============================================================================

@app.get("/health")
def health():
    """
    Health check endpoint.

    Verifies database connectivity and returns environment info.
    """
    with engine.connect() as conn:
        conn.execute(text("SELECT 1"))
    return {"status": "ok", "env": settings.ENV, "version": settings.VERSION}
