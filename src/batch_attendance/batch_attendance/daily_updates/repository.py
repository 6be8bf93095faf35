from __future__ import annotations

from datetime import date, datetime
from typing import Optional, Protocol, Sequence

from .model import DailyUpdate, DailyUpdateQuery, Feedback


class DailyUpdateRepository(Protocol):
    def get_by_id(self, update_id: int) -> Optional[DailyUpdate]:
        raise NotImplementedError

    def get_for_batch_and_date(self, batch_id: int, work_date: date) -> Optional[DailyUpdate]:
        raise NotImplementedError

    def create(self, update: DailyUpdate) -> int:
        """Insert ``update`` (its ``update_id`` is ignored).

        Must raise DuplicateError when (batch_id, work_date) already exists.
        """

        raise NotImplementedError

    def save(self, update: DailyUpdate) -> bool:
        """Persist every field except feedback, which is append-only."""

        raise NotImplementedError

    def add_feedback(self, *, update_id: int, feedback: Feedback, updated_at: datetime) -> bool:
        raise NotImplementedError

    def list(self, query: DailyUpdateQuery) -> Sequence[DailyUpdate]:
        """Updates matching ``query``, newest date first."""

        raise NotImplementedError
