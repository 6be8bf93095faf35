from __future__ import annotations

from dataclasses import dataclass
from datetime import date

from ..access.policy import can_view_batch
from ..attendance.model import AttendanceQuery
from ..attendance.repository import AttendanceRepository
from ..batches.model import Batch
from ..batches.repository import BatchRepository
from ..common.datetime_utils import now_local
from ..core.enums import AttendanceStatus
from ..core.exceptions import AuthorizationError, NotFoundError
from ..core.principal import Principal
from .aggregator import LearnerPresence, average_attendance, learner_presence, status_histogram


@dataclass(frozen=True)
class BatchStats:
    batch: Batch
    duration_days: int
    days_completed: int
    progress: int
    status_counts: dict[AttendanceStatus, int]
    learners: tuple[LearnerPresence, ...]
    average_attendance: str
    total_learners: int
    total_records: int


class StatisticsService:
    def __init__(self, batches: BatchRepository, attendance: AttendanceRepository):
        self._batches = batches
        self._attendance = attendance

    def batch_stats(self, principal: Principal, batch_id: int, *, today: date | None = None) -> BatchStats:
        today = today or now_local().date()
        batch = self._batches.get_by_id(batch_id)
        if not batch:
            raise NotFoundError("Batch not found")
        if not can_view_batch(principal, batch):
            raise AuthorizationError("Not authorized to view this batch")

        records = list(self._attendance.list(AttendanceQuery(batch_ids=(batch.batch_id,))))
        return BatchStats(
            batch=batch,
            duration_days=batch.duration_days,
            days_completed=max(0, (today - batch.start_date).days),
            progress=batch.progress(today),
            status_counts=status_histogram(records),
            learners=tuple(learner_presence(records)),
            average_attendance=average_attendance(records),
            total_learners=len(batch.learner_ids),
            total_records=len(records),
        )
