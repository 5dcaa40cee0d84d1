"""Device registry - catalog devices and the physical devices customers own."""

from uuid import UUID

from sqlalchemy.orm import Session

from repairdesk.db.models import CustomerDevice, Device
from repairdesk.services.scheduling_errors import NotFoundError
from repairdesk.utils.normalization import normalize_imei, normalize_serial


def find_or_create_device(db: Session, manufacturer: str, model_name: str) -> Device:
    """Catalog entry by manufacturer + model (case-insensitive). Flushes only."""
    manufacturer = " ".join(manufacturer.split())
    model_name = " ".join(model_name.split())
    device = db.query(Device).filter(
        Device.manufacturer.ilike(manufacturer),
        Device.model_name.ilike(model_name),
    ).first()
    if device is None:
        device = Device(manufacturer=manufacturer, model_name=model_name)
        db.add(device)
        db.flush()
    return device


def link_or_create(
    db: Session,
    customer_id: UUID,
    device_id: UUID | None = None,
    customer_device_id: UUID | None = None,
    serial_number: str | None = None,
    imei: str | None = None,
) -> CustomerDevice | None:
    """
    Resolve the physical device a booking is about.

    - An explicit customer_device_id must belong to the customer.
    - Otherwise an owned device of the same catalog model (and serial, if
      given) is reused; failing that a new one is registered.
    - With no device information at all, nothing is linked.

    Returns None when there is nothing to link. Flushes but does not commit.
    """
    serial_number = normalize_serial(serial_number)
    imei = normalize_imei(imei)

    if customer_device_id:
        owned = db.get(CustomerDevice, customer_device_id)
        if owned is None or owned.customer_id != customer_id:
            raise NotFoundError("Customer device not found for this customer")
        _fill_identifiers(owned, serial_number, imei)
        db.flush()
        return owned

    if device_id is None and not serial_number and not imei:
        return None

    if device_id is not None and db.get(Device, device_id) is None:
        raise NotFoundError("Device not found")

    query = db.query(CustomerDevice).filter(CustomerDevice.customer_id == customer_id)
    if serial_number:
        query = query.filter(CustomerDevice.serial_number == serial_number)
    elif imei:
        query = query.filter(CustomerDevice.imei == imei)
    elif device_id is not None:
        query = query.filter(CustomerDevice.device_id == device_id)
    owned = query.first()

    if owned is None:
        owned = CustomerDevice(
            customer_id=customer_id,
            device_id=device_id,
            serial_number=serial_number,
            imei=imei,
        )
        db.add(owned)
    else:
        if device_id is not None and owned.device_id is None:
            owned.device_id = device_id
        _fill_identifiers(owned, serial_number, imei)
    db.flush()
    return owned


def _fill_identifiers(owned: CustomerDevice, serial_number: str | None, imei: str | None) -> None:
    if serial_number and not owned.serial_number:
        owned.serial_number = serial_number
    if imei and not owned.imei:
        owned.imei = imei
