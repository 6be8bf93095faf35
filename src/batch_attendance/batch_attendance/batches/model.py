from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import FrozenSet, Optional

from ..common.datetime_utils import ceil_days
from ..core.enums import BatchStatus

# Allowed lifecycle moves; staying in the same status is always allowed.
STATUS_TRANSITIONS = {
    BatchStatus.PLANNING: frozenset({BatchStatus.ONGOING, BatchStatus.CANCELLED}),
    BatchStatus.ONGOING: frozenset({BatchStatus.COMPLETED, BatchStatus.CANCELLED}),
    BatchStatus.COMPLETED: frozenset(),
    BatchStatus.CANCELLED: frozenset(),
}


@dataclass(frozen=True)
class Batch:
    """Domain entity: a cohort of learners trained over a date range."""

    batch_id: int
    code: str
    name: str
    client_name: str
    start_date: date
    end_date: date
    status: BatchStatus
    created_by: int
    learner_ids: FrozenSet[int] = field(default_factory=frozenset)
    description: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def duration_days(self) -> int:
        return ceil_days(abs(self.end_date - self.start_date))

    def days_passed(self, today: date) -> int:
        return ceil_days(today - self.start_date)

    def progress(self, today: date) -> int:
        if self.status == BatchStatus.COMPLETED:
            return 100
        if self.status == BatchStatus.CANCELLED:
            return 0

        total = self.duration_days
        passed = self.days_passed(today)
        if passed <= 0:
            return 0
        if passed >= total:
            return 100
        return round(passed / total * 100)

    def has_learner(self, user_id: int) -> bool:
        return int(user_id) in self.learner_ids

    def can_transition_to(self, status: BatchStatus) -> bool:
        return status == self.status or status in STATUS_TRANSITIONS[self.status]
