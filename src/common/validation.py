from __future__ import annotations

import re
from typing import Dict, Mapping, Optional


MAX_FIELD_LENGTH = 250

_PHONE_RE = re.compile(r"^\+?[0-9\s\-()]{7,}$")


def sanitize_field(value: Optional[str]) -> str:
    """Clip free-form user input to MAX_FIELD_LENGTH characters."""
    if not value:
        return ""
    return str(value)[:MAX_FIELD_LENGTH]


def validate_checkout_form(form: Mapping[str, Optional[str]]) -> Dict[str, str]:
    """Validate checkout fields and return {field: message} for each problem.

    Expects keys `customerName`, `customerPhone` and `deliveryAddress`;
    missing keys are treated as empty. An empty result means the form is valid.
    """
    errors: Dict[str, str] = {}

    name = form.get("customerName") or ""
    if not name.strip():
        errors["customerName"] = "Full name is required."
    elif len(name) < 2:
        errors["customerName"] = "Name must be at least 2 characters long."

    phone = form.get("customerPhone") or ""
    if not phone.strip():
        errors["customerPhone"] = "Phone number is required."
    elif not _PHONE_RE.match(phone):
        errors["customerPhone"] = "Please enter a valid phone number."

    address = form.get("deliveryAddress") or ""
    if not address.strip():
        errors["deliveryAddress"] = "Delivery address is required."
    elif len(address) < 10:
        errors["deliveryAddress"] = "Please provide a more detailed address."

    return errors


__all__ = ["MAX_FIELD_LENGTH", "sanitize_field", "validate_checkout_form"]
