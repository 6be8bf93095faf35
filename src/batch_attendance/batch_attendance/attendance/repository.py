from __future__ import annotations

from datetime import date, datetime
from typing import Optional, Protocol, Sequence

from .model import AttendanceEntry, AttendanceQuery, AttendanceRecord, DailyDigest


class AttendanceRepository(Protocol):
    def get_by_id(self, attendance_id: int) -> Optional[AttendanceRecord]:
        raise NotImplementedError

    def get_for_batch_and_date(self, batch_id: int, work_date: date) -> Optional[AttendanceRecord]:
        raise NotImplementedError

    def create(
        self,
        *,
        batch_id: int,
        work_date: date,
        classroom_id: int,
        entries: Sequence[AttendanceEntry],
        digest: DailyDigest,
        session_start: Optional[datetime],
        session_end: Optional[datetime],
        created_by: int,
        created_at: datetime,
    ) -> int:
        """Insert a record.

        Must raise DuplicateError when (batch_id, work_date) already exists;
        the uniqueness is a storage constraint, not a pre-check.
        """

        raise NotImplementedError

    def save(self, record: AttendanceRecord) -> bool:
        """Persist entries, digest, session window, lock fields and updater."""

        raise NotImplementedError

    def update_digest(self, *, batch_id: int, work_date: date, digest: DailyDigest) -> bool:
        """Overwrite the embedded digest of the (batch, date) record, if any."""

        raise NotImplementedError

    def set_lock(self, *, attendance_id: int, locked_at: datetime, locked_by: Optional[int]) -> bool:
        raise NotImplementedError

    def list(self, query: AttendanceQuery) -> Sequence[AttendanceRecord]:
        """Records matching ``query``, newest date first."""

        raise NotImplementedError
