from __future__ import annotations

import math
from datetime import date, datetime, timedelta
from typing import Optional

SECONDS_PER_DAY = 24 * 60 * 60


def parse_iso_date(value: str) -> date:
    """Parse YYYY-MM-DD string into date."""
    return datetime.strptime(value, "%Y-%m-%d").date()


def parse_iso_datetime(value: Optional[str]) -> Optional[datetime]:
    """Parse an ISO-8601 timestamp; empty input means "not provided"."""
    if not value:
        return None
    return datetime.fromisoformat(value)


def now_local() -> datetime:
    """Current local time.

    Note: Wrapped so tests can patch/mocked easier.
    """
    return datetime.now()


def ceil_days(delta: timedelta) -> int:
    return math.ceil(delta.total_seconds() / SECONDS_PER_DAY)


def hours_between(start: Optional[datetime], end: Optional[datetime]) -> float:
    if not start or not end:
        return 0.0
    return round((end - start).total_seconds() / 3600, 2)
