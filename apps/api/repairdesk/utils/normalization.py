"""Data normalization utilities for customer and device input."""

import re
from typing import Optional


def normalize_phone(phone: Optional[str]) -> Optional[str]:
    """
    Normalize phone to E.164-style digits.

    Accepts:
    - 10 digits: 5551234567 → +15551234567
    - 11 digits starting with 1: 15551234567 → +15551234567
    - International with leading +: +44 20 7946 0958 → +442079460958

    Raises:
        ValueError: If fewer than 7 or more than 15 digits remain
    """
    if not phone:
        return None

    cleaned = phone.strip()
    digits = re.sub(r"\D", "", cleaned)
    if not 7 <= len(digits) <= 15:
        raise ValueError(f"Invalid phone number '{phone}'")

    if cleaned.startswith("+"):
        return f"+{digits}"
    if len(digits) == 10:
        return f"+1{digits}"
    if len(digits) == 11 and digits.startswith("1"):
        return f"+{digits}"
    return digits


def normalize_email(email: Optional[str]) -> Optional[str]:
    """Lowercased, trimmed email or None if empty."""
    if not email or not email.strip():
        return None
    return email.strip().lower()


def normalize_name(name: Optional[str]) -> Optional[str]:
    """
    Normalize name by stripping whitespace and collapsing multiple spaces.

    Returns:
        Cleaned name or None if empty
    """
    if not name:
        return None
    collapsed = " ".join(name.split())
    return collapsed or None


def normalize_serial(serial: Optional[str]) -> Optional[str]:
    """Uppercase serial number with whitespace removed."""
    if not serial:
        return None
    compact = re.sub(r"\s+", "", serial).upper()
    return compact or None


def normalize_imei(imei: Optional[str]) -> Optional[str]:
    """IMEI digits only (separators dropped); None if nothing numeric remains."""
    if not imei:
        return None
    digits = re.sub(r"\D", "", imei)
    return digits or None
