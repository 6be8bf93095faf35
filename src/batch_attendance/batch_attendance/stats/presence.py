"""The single definition of "present" used by every attendance figure.

Ledger counts, learner reports and batch statistics all go through these
helpers so the percentages agree with each other.
"""

from __future__ import annotations

import math
from decimal import ROUND_HALF_UP, Decimal

from ..core.enums import AttendanceStatus

PRESENT_STATUSES = frozenset({AttendanceStatus.PRESENT, AttendanceStatus.LATE, AttendanceStatus.HALF_DAY})


def counts_as_present(status: AttendanceStatus) -> bool:
    return status in PRESENT_STATUSES


def counts_as_absent(status: AttendanceStatus) -> bool:
    return status == AttendanceStatus.ABSENT


def rounded_percentage(part: int, total: int) -> int:
    """Whole-number percentage, halves rounded up; 0 when total is 0."""
    if total <= 0:
        return 0
    return int(math.floor(part / total * 100 + 0.5))


def percentage_2dp(part: float, total: float) -> str:
    """Percentage formatted with two decimals ("66.67"); "0.00" when total is 0."""
    if total <= 0:
        return "0.00"
    return format_2dp(part / total * 100)


def format_2dp(value: float) -> str:
    return str(Decimal(repr(value)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))
