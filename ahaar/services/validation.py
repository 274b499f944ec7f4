"""Input rules shared by every resource handler.

Each helper either returns the normalized value or raises
:class:`ahaar.core.errors.ValidationError` with a message fit for the client.
"""
from __future__ import annotations

import math
import re
from typing import Any

from email_validator import EmailNotValidError, validate_email as _validate_email

from ahaar.core.errors import ValidationError

MOBILE_LENGTH = 11
PASSWORD_MIN_LENGTH = 8
PASSWORD_MAX_LENGTH = 30

_MOBILE_RE = re.compile(r"^\d{11}$")
_WHITESPACE_RE = re.compile(r"\s+")


def require_field(value: Any, message: str) -> None:
    if value is None or (isinstance(value, str) and not value.strip()):
        raise ValidationError(message)


def validate_string(value: Any, label: str, min_length: int, max_length: int) -> str:
    if not isinstance(value, str):
        raise ValidationError(f"{label} must be a string")
    trimmed = value.strip()
    if len(trimmed) < min_length or len(trimmed) > max_length:
        raise ValidationError(
            f"{label} must be at least {min_length} characters long and not more than {max_length} characters long"
        )
    return trimmed


def validate_mobile(value: Any) -> str:
    mobile = value.strip() if isinstance(value, str) else ""
    if len(mobile) != MOBILE_LENGTH:
        raise ValidationError("Mobile number must be 11 characters")
    if not _MOBILE_RE.match(mobile):
        raise ValidationError("Invalid mobile number")
    return mobile


def validate_email(value: Any) -> str:
    if not isinstance(value, str):
        raise ValidationError("Invalid email address")
    try:
        result = _validate_email(value.strip(), check_deliverability=False)
    except EmailNotValidError as exc:
        raise ValidationError("Invalid email address") from exc
    return result.normalized.lower()


def normalize_password(value: str) -> str:
    """Passwords are stored and compared with all whitespace removed."""
    return _WHITESPACE_RE.sub("", value)


def validate_password(value: Any, label: str = "Password") -> str:
    """Strip all whitespace, then enforce length and character classes."""
    if not isinstance(value, str):
        raise ValidationError(f"{label} is required")
    password = normalize_password(value)
    if len(password) < PASSWORD_MIN_LENGTH or len(password) > PASSWORD_MAX_LENGTH:
        raise ValidationError(
            f"{label} must be at least {PASSWORD_MIN_LENGTH} characters long "
            f"and not more than {PASSWORD_MAX_LENGTH} characters long"
        )
    if not re.search(r"[a-z]", password) or not re.search(r"\d", password):
        raise ValidationError(f"{label} must contain at least one letter (a-z) and one number")
    return password


def _as_number(value: Any, label: str) -> float:
    if isinstance(value, bool):
        raise ValidationError(f"{label} must be a number")
    try:
        number = float(value)
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"{label} must be a number") from exc
    if math.isnan(number) or math.isinf(number):
        raise ValidationError(f"{label} must be a number")
    return number


def validate_positive_number(value: Any, label: str) -> float:
    number = _as_number(value, label)
    if number <= 0:
        raise ValidationError(f"{label} must be a positive number")
    return number


def validate_non_negative_number(value: Any, label: str) -> float:
    number = _as_number(value, label)
    if number < 0:
        raise ValidationError(f"{label} must be a positive number")
    return number


def normalize_identifier(value: str) -> str:
    """Login identifier: trimmed, inner whitespace removed, lower-cased."""
    return _WHITESPACE_RE.sub("", value.strip()).lower()
