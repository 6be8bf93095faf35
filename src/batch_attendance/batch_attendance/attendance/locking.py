"""Effective lock state of attendance records.

A record is locked either explicitly (an admin locked it) or implicitly once
``auto_lock_hours`` have passed since it was created. The implicit part is
never stored by reads; decision points call these functions with the current
time instead.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from typing import Optional

from ..core.constants import DEFAULT_AUTO_LOCK_HOURS
from .model import AttendanceRecord


@dataclass(frozen=True)
class LockState:
    is_locked: bool
    locked_at: Optional[datetime] = None
    locked_by: Optional[int] = None
    automatic: bool = False


def lock_deadline(record: AttendanceRecord, *, auto_lock_hours: int = DEFAULT_AUTO_LOCK_HOURS) -> datetime:
    return record.created_at + timedelta(hours=auto_lock_hours)


def effective_lock_state(
    record: AttendanceRecord,
    now: datetime,
    *,
    auto_lock_hours: int = DEFAULT_AUTO_LOCK_HOURS,
) -> LockState:
    if record.is_locked:
        return LockState(is_locked=True, locked_at=record.locked_at, locked_by=record.locked_by)
    if now > lock_deadline(record, auto_lock_hours=auto_lock_hours):
        return LockState(is_locked=True, locked_at=now, locked_by=None, automatic=True)
    return LockState(is_locked=False)


def is_locked(record: AttendanceRecord, now: datetime, *, auto_lock_hours: int = DEFAULT_AUTO_LOCK_HOURS) -> bool:
    return effective_lock_state(record, now, auto_lock_hours=auto_lock_hours).is_locked


def compute_auto_lock(
    record: AttendanceRecord,
    now: datetime,
    *,
    auto_lock_hours: int = DEFAULT_AUTO_LOCK_HOURS,
) -> AttendanceRecord:
    """Return ``record`` as it should be observed at ``now``.

    Past the threshold an unlocked record comes back locked with
    ``locked_at=now`` and no ``locked_by`` (system lock). Idempotent.
    """

    state = effective_lock_state(record, now, auto_lock_hours=auto_lock_hours)
    if not state.automatic:
        return record
    return replace(record, is_locked=True, locked_at=state.locked_at, locked_by=None)
