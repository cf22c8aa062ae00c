"""Input validation helpers."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, List

from flask import current_app, has_app_context

USERNAME_PATTERN = re.compile(r"^[a-zA-Z0-9_-]{3,30}$")
EMAIL_PATTERN = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")


@dataclass
class ValidationError(ValueError):
    message: str
    field: str | None = None
    invalid: List[Any] | None = None

    def __str__(self) -> str:  # pragma: no cover - trivial
        return self.message


def log_validation_error(err: ValidationError, *, context: str | None = None) -> None:
    if not has_app_context():
        return
    suffix = f" ({context})" if context else ""
    current_app.logger.warning(
        "Validation error%s: field=%s invalid=%s message=%s",
        suffix,
        err.field,
        err.invalid,
        err.message,
    )


def sanitize_string(value: Any, max_length: int = 255) -> str:
    """Strip control characters and surrounding whitespace, then truncate."""
    if not isinstance(value, str):
        value = str(value) if value is not None else ""
    value = re.sub(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]", "", value)
    return value.strip()[:max_length]


def validate_username(username: str) -> bool:
    if not username:
        return False
    return bool(USERNAME_PATTERN.match(username))


def validate_email(email: str) -> bool:
    if not email or len(email) > 254:
        return False
    return bool(EMAIL_PATTERN.match(email))


def parse_positive_int(value: Any, *, field: str = "id", min_value: int = 1) -> int:
    if value is None or (isinstance(value, str) and not value.strip()):
        raise ValidationError(f"Missing {field}.", field=field, invalid=[value])
    try:
        out = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid {field}.", field=field, invalid=[value])
    if out < min_value:
        raise ValidationError(f"Invalid {field}.", field=field, invalid=[value])
    return out


def parse_optional_positive_int(value: Any, *, field: str = "id", min_value: int = 1) -> int | None:
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    return parse_positive_int(value, field=field, min_value=min_value)

