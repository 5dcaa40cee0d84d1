"""FastAPI dependencies for database access."""

from typing import Generator

from sqlalchemy.orm import Session

from repairdesk.db.session import SessionLocal


def get_db() -> Generator[Session, None, None]:
    """
    Database session dependency.

    Yields a request-scoped session and closes it when the request ends;
    anything not committed by the service layer is rolled back on close.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
