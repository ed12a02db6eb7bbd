"""
Input rules shared by both data-access backends.

The ``validate_*`` helpers return booleans; the ``require_*`` helpers raise
``errors.ValidationError`` with a message suitable for the API response.
"""
import re
from decimal import Decimal
from typing import Optional

from errors import ValidationError
from pricing import to_weight

CNIC_PATTERN = re.compile(r"^\d{5}-\d{7}-\d$")
PHONE_PATTERN = re.compile(r"^03\d{9}$")

MIN_WEIGHT_KG = Decimal("0.1")
MAX_WEIGHT_KG = Decimal("10000")


def validate_cnic(cnic: Optional[str]) -> bool:
    if not cnic or not cnic.strip():
        return False
    return CNIC_PATTERN.match(cnic) is not None


def normalize_phone(phone: str) -> str:
    return phone.replace("-", "").replace(" ", "")


def validate_phone(phone: Optional[str]) -> bool:
    if not phone or not phone.strip():
        return False
    return PHONE_PATTERN.match(normalize_phone(phone)) is not None


def validate_weight(weight: Decimal) -> bool:
    return MIN_WEIGHT_KG <= weight <= MAX_WEIGHT_KG


def sanitize(value: Optional[str]) -> str:
    """Trim and collapse runs of whitespace to a single space."""
    if not value or not value.strip():
        return ""
    return re.sub(r"\s+", " ", value.strip())


def require_cnic(cnic: Optional[str]) -> str:
    if not cnic or not cnic.strip():
        raise ValidationError("CNIC is required")
    if not validate_cnic(cnic):
        raise ValidationError("Invalid CNIC format. Expected 12345-1234567-1")
    return cnic


def require_phone(phone: Optional[str]) -> Optional[str]:
    """Phone numbers are optional; when present they must be 03XXXXXXXXX."""
    if phone is None or not phone.strip():
        return None
    if not validate_phone(phone):
        raise ValidationError("Phone must be in format: 03XXXXXXXXX")
    return normalize_phone(phone)


def require_text(value: Optional[str], field_name: str) -> str:
    cleaned = sanitize(value)
    if not cleaned:
        raise ValidationError(f"{field_name} is required")
    return cleaned


def require_weight(weight: Decimal) -> Decimal:
    """Returns the weight at the stored scale; the range applies to that value."""
    weight = to_weight(weight)
    if weight < MIN_WEIGHT_KG:
        raise ValidationError(f"Weight must be at least {MIN_WEIGHT_KG} kg")
    if weight > MAX_WEIGHT_KG:
        raise ValidationError(f"Weight cannot exceed {MAX_WEIGHT_KG} kg")
    return weight


def require_price(price: Decimal) -> Decimal:
    if price < 0:
        raise ValidationError("Price cannot be negative")
    return price


def require_status(status: Optional[str], allowed) -> str:
    if status not in allowed:
        raise ValidationError(f"Status must be one of: {', '.join(allowed)}")
    return status
