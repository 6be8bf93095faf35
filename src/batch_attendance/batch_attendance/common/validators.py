from __future__ import annotations

import math
from datetime import date, datetime
from enum import Enum
from typing import Optional, Type, TypeVar

from ..core.exceptions import ValidationError
from .datetime_utils import parse_iso_date, parse_iso_datetime

E = TypeVar("E", bound=Enum)


def require_non_empty(value: Optional[str], field_name: str) -> str:
    if not value or not str(value).strip():
        raise ValidationError(f"{field_name} is required")
    return str(value).strip()


def require_max_length(value: Optional[str], field_name: str, max_len: int) -> Optional[str]:
    if value is None:
        return None
    value = str(value).strip()
    if len(value) > max_len:
        raise ValidationError(f"{field_name} must be at most {max_len} characters")
    return value


def require_in_range(value, field_name: str, low: float, high: float):
    if value is None:
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field_name} must be a number")
    if not math.isfinite(number) or number < low or number > high:
        raise ValidationError(f"{field_name} must be between {low:g} and {high:g}")
    return value


def parse_enum(enum_cls: Type[E], value, field_name: str) -> E:
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(str(value).strip().upper())
    except ValueError:
        allowed = ", ".join(m.value for m in enum_cls)
        raise ValidationError(f"{field_name} must be one of: {allowed}")


def parse_int(value, field_name: str) -> int:
    if isinstance(value, bool):
        raise ValidationError(f"{field_name} must be an integer")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field_name} must be an integer")


def parse_optional_int(value, field_name: str) -> Optional[int]:
    if value in (None, ""):
        return None
    return parse_int(value, field_name)


def parse_date(value, field_name: str) -> date:
    if isinstance(value, date):
        return value
    try:
        return parse_iso_date(str(value).strip()[:10])
    except (TypeError, ValueError):
        raise ValidationError(f"{field_name} must be a date (YYYY-MM-DD)")


def parse_optional_date_field(value, field_name: str) -> Optional[date]:
    if value in (None, ""):
        return None
    return parse_date(value, field_name)


def parse_optional_datetime(value, field_name: str) -> Optional[datetime]:
    if value in (None, ""):
        return None
    try:
        parsed = parse_iso_datetime(str(value).replace("Z", "+00:00"))
    except ValueError:
        raise ValidationError(f"{field_name} must be an ISO-8601 timestamp")
    # Stored timestamps are naive local time.
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone().replace(tzinfo=None)
    return parsed
