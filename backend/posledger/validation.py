"""
Request-body coercion for the API layer.

Strict on integers: bools, floats and numeric strings with decimals or
exponents are rejected rather than silently truncated.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from .time_utils import parse_iso_datetime


class ValidationError(ValueError):
    """400-level input problem found before any service is called."""

    def __init__(self, message: str, field: str | None = None):
        super().__init__(message)
        self.field = field


def coerce_int(value: Any, field: str) -> int:
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer", field)
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{field} must be an integer", field)
        if "e" in stripped.lower():
            raise ValidationError(f"{field} must be a plain integer (scientific notation not allowed)", field)
        if "." in stripped:
            raise ValidationError(f"{field} must be an integer (no decimals)", field)
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{field} must be an integer", field)
    if isinstance(value, float):
        raise ValidationError(f"{field} must be an integer, not a decimal", field)
    raise ValidationError(f"{field} must be an integer", field)


def require_int(data: dict, field: str) -> int:
    if data.get(field) is None:
        raise ValidationError(f"{field} is required", field)
    return coerce_int(data[field], field)


def optional_int(data: dict, field: str) -> int | None:
    value = data.get(field)
    if value is None or value == "":
        return None
    return coerce_int(value, field)


def require_str(data: dict, field: str, max_length: int | None = None) -> str:
    value = data.get(field)
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{field} is required", field)
    value = value.strip()
    if max_length is not None and len(value) > max_length:
        raise ValidationError(f"{field} must be at most {max_length} characters", field)
    return value


def optional_str(data: dict, field: str, max_length: int | None = None) -> str | None:
    value = data.get(field)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a string", field)
    if max_length is not None and len(value) > max_length:
        raise ValidationError(f"{field} must be at most {max_length} characters", field)
    return value


def optional_bool(data: dict, field: str, default: bool = False) -> bool:
    value = data.get(field)
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.lower() in ("true", "1", "yes"):
        return True
    if isinstance(value, str) and value.lower() in ("false", "0", "no"):
        return False
    raise ValidationError(f"{field} must be a boolean", field)


def optional_datetime(data: dict, field: str) -> datetime | None:
    try:
        return parse_iso_datetime(data.get(field))
    except ValueError:
        raise ValidationError(f"{field} must be an ISO-8601 datetime", field)
