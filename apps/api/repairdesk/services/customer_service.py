"""Customer store - resolve a booking's customer by contact details."""

import logging
from uuid import UUID

from sqlalchemy.orm import Session

from repairdesk.db.models import Customer
from repairdesk.services.scheduling_errors import ValidationError
from repairdesk.utils.normalization import normalize_email, normalize_name, normalize_phone

logger = logging.getLogger(__name__)


def get_customer(db: Session, customer_id: UUID) -> Customer | None:
    return db.get(Customer, customer_id)


def find_or_create(
    db: Session,
    name: str,
    email: str | None = None,
    phone: str | None = None,
) -> Customer:
    """
    Find a customer by email (then phone) or create one.

    Missing contact details on an existing customer are filled in. Flushes but
    does not commit; the caller owns the transaction.
    """
    email = normalize_email(email)
    try:
        phone = normalize_phone(phone)
    except ValueError as exc:
        raise ValidationError(str(exc)) from exc
    name = normalize_name(name)
    if not name:
        raise ValidationError("Customer name is required")

    customer = None
    if email:
        customer = db.query(Customer).filter(Customer.email == email).first()
    if customer is None and phone:
        customer = db.query(Customer).filter(Customer.phone == phone).first()

    if customer is None:
        customer = Customer(name=name, email=email, phone=phone)
        db.add(customer)
        db.flush()
        logger.info("Created customer %s", customer.id)
        return customer

    if email and not customer.email:
        customer.email = email
    if phone and not customer.phone:
        customer.phone = phone
    db.flush()
    return customer
