"""Input normalization shared by schemas and services."""

import re

from gatekeeper.core.exceptions import InvalidPhoneError

SAUDI_PHONE_PATTERN = re.compile(r"^(\+966|0)?5\d{8}$")
OTP_CODE_PATTERN = r"^\d{6}$"


def normalize_email(email: str) -> str:
    return email.strip().lower()


def normalize_phone(phone: str) -> str:
    """Return a Saudi mobile number as ``+9665XXXXXXXX``.

    Accepts ``05XXXXXXXX``, ``5XXXXXXXX`` and ``+9665XXXXXXXX`` with any
    spaces or dashes.

    Raises:
        InvalidPhoneError: If the number is not a Saudi mobile number
    """
    compact = re.sub(r"[\s\-()]", "", phone)
    if not SAUDI_PHONE_PATTERN.match(compact):
        raise InvalidPhoneError()
    if compact.startswith("+966"):
        return compact
    if compact.startswith("0"):
        return "+966" + compact[1:]
    return "+966" + compact


def phone_validator(value: str | None) -> str | None:
    """Schema-side ``normalize_phone``: failures become field errors."""
    if not value:
        return None
    try:
        return normalize_phone(value)
    except InvalidPhoneError as e:
        raise ValueError(e.message) from e
