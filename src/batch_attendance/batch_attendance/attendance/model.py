from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date, datetime
from typing import TYPE_CHECKING, Iterable, Optional, Tuple

from ..common.datetime_utils import hours_between
from ..core.enums import AttendanceStatus, LearnerPerformance
from ..stats.presence import counts_as_absent, counts_as_present, rounded_percentage

if TYPE_CHECKING:
    from ..daily_updates.model import DailyUpdateDraft


@dataclass(frozen=True)
class EntryInput:
    """One learner's status as submitted by the trainer (before stamping)."""

    learner_id: int
    status: AttendanceStatus = AttendanceStatus.ABSENT
    remarks: Optional[str] = None


@dataclass(frozen=True)
class AttendanceEntry:
    learner_id: int
    status: AttendanceStatus
    marked_by: int
    marked_at: datetime
    remarks: Optional[str] = None


@dataclass(frozen=True)
class CoveredTopic:
    topic: str
    description: Optional[str] = None
    duration_minutes: Optional[int] = None


@dataclass(frozen=True)
class Assignment:
    title: str
    due_date: Optional[date] = None
    description: Optional[str] = None


@dataclass(frozen=True)
class DailyDigest:
    """Condensed daily-update fields embedded in an attendance record.

    ``trainer_remarks``, ``covered_topics``, ``learner_performance`` and
    ``issues_description`` are a projection of the linked DailyUpdate (see
    ``daily_updates.projection``); ``assignments_given`` is owned here.
    """

    covered_topics: Tuple[CoveredTopic, ...] = ()
    trainer_remarks: Optional[str] = None
    assignments_given: Tuple[Assignment, ...] = ()
    learner_performance: LearnerPerformance = LearnerPerformance.AVERAGE
    issues_description: Optional[str] = None

    def merged(self, patch: "DigestPatch") -> "DailyDigest":
        """Field-wise merge: fields left as None in the patch are kept."""
        changes = {
            name: getattr(patch, name)
            for name in (
                "covered_topics",
                "trainer_remarks",
                "assignments_given",
                "learner_performance",
                "issues_description",
            )
            if getattr(patch, name) is not None
        }
        return replace(self, **changes)


@dataclass(frozen=True)
class DigestPatch:
    covered_topics: Optional[Tuple[CoveredTopic, ...]] = None
    trainer_remarks: Optional[str] = None
    assignments_given: Optional[Tuple[Assignment, ...]] = None
    learner_performance: Optional[LearnerPerformance] = None
    issues_description: Optional[str] = None
    # Narrative part routed to the DailyUpdate log, which then re-projects
    # into the digest fields above.
    daily_update: Optional["DailyUpdateDraft"] = None

    @property
    def daily_summary(self) -> Optional[str]:
        return self.daily_update.daily_summary if self.daily_update else None


@dataclass(frozen=True)
class AttendanceRecord:
    """Domain entity: the ledger entry for one batch on one calendar date."""

    attendance_id: int
    batch_id: int
    work_date: date
    classroom_id: int
    entries: Tuple[AttendanceEntry, ...]
    created_by: int
    created_at: datetime
    digest: DailyDigest = field(default_factory=DailyDigest)
    session_start: Optional[datetime] = None
    session_end: Optional[datetime] = None
    is_locked: bool = False
    locked_at: Optional[datetime] = None
    locked_by: Optional[int] = None
    updated_by: Optional[int] = None
    updated_at: Optional[datetime] = None

    @property
    def total_count(self) -> int:
        return len(self.entries)

    @property
    def present_count(self) -> int:
        return sum(1 for e in self.entries if counts_as_present(e.status))

    @property
    def absent_count(self) -> int:
        return sum(1 for e in self.entries if counts_as_absent(e.status))

    @property
    def attendance_percentage(self) -> int:
        return rounded_percentage(self.present_count, self.total_count)

    @property
    def session_duration_hours(self) -> float:
        return hours_between(self.session_start, self.session_end)

    def entry_for(self, learner_id: int) -> Optional[AttendanceEntry]:
        for e in self.entries:
            if e.learner_id == int(learner_id):
                return e
        return None

    def has_learner(self, learner_id: int) -> bool:
        return self.entry_for(learner_id) is not None


@dataclass(frozen=True)
class AttendanceQuery:
    """Storage-level filter. ``batch_ids=()`` means "no batch at all"."""

    batch_ids: Optional[Tuple[int, ...]] = None
    learner_id: Optional[int] = None
    on_date: Optional[date] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    limit: Optional[int] = None
    offset: int = 0


def stamp_entries(entries: Iterable[EntryInput], *, marked_by: int, marked_at: datetime) -> Tuple[AttendanceEntry, ...]:
    return tuple(
        AttendanceEntry(
            learner_id=int(e.learner_id),
            status=e.status,
            remarks=e.remarks,
            marked_by=int(marked_by),
            marked_at=marked_at,
        )
        for e in entries
    )
