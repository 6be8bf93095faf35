from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import FrozenSet, Optional, Tuple

from ..attendance.model import CoveredTopic
from ..core.enums import (
    DEFAULT_VISIBILITY,
    ChallengeStatus,
    ChallengeType,
    DailyUpdateStatus,
    Mood,
    Role,
    Severity,
)


@dataclass(frozen=True)
class LearnerHighlight:
    learner_id: Optional[int]
    achievement: Optional[str] = None
    improvement_area: Optional[str] = None
    remarks: Optional[str] = None


@dataclass(frozen=True)
class Challenge:
    type: ChallengeType = ChallengeType.OTHER
    description: Optional[str] = None
    severity: Optional[Severity] = None
    resolution: Optional[str] = None
    status: Optional[ChallengeStatus] = None


@dataclass(frozen=True)
class Feedback:
    given_by: int
    comment: str
    rating: int
    given_at: datetime
    suggestions: Tuple[str, ...] = ()


@dataclass(frozen=True)
class DailyUpdateDraft:
    """Narrative fields a trainer submits; shared by create, update and the
    attendance digest payload."""

    daily_summary: Optional[str] = None
    topics_covered: Optional[Tuple[CoveredTopic, ...]] = None
    learner_highlights: Optional[Tuple[LearnerHighlight, ...]] = None
    challenges: Optional[Tuple[Challenge, ...]] = None
    overall_mood: Optional[Mood] = None
    completion_percentage: Optional[float] = None
    visibility: Optional[FrozenSet[Role]] = None
    status: Optional[DailyUpdateStatus] = None


@dataclass(frozen=True)
class DailyUpdate:
    """Domain entity: the narrative log for one batch on one calendar date."""

    update_id: int
    batch_id: int
    work_date: date
    posted_by: int
    daily_summary: str
    created_at: datetime
    topics_covered: Tuple[CoveredTopic, ...] = ()
    learner_highlights: Tuple[LearnerHighlight, ...] = ()
    challenges: Tuple[Challenge, ...] = ()
    overall_mood: Mood = Mood.NEUTRAL
    completion_percentage: float = 0
    visibility: FrozenSet[Role] = field(default_factory=lambda: frozenset(DEFAULT_VISIBILITY))
    status: DailyUpdateStatus = DailyUpdateStatus.PUBLISHED
    feedback: Tuple[Feedback, ...] = ()
    updated_at: Optional[datetime] = None

    def is_visible_to(self, role: Role) -> bool:
        return role in self.visibility


@dataclass(frozen=True)
class DailyUpdateQuery:
    """Storage-level filter. ``batch_ids=()`` means "no batch at all"."""

    batch_ids: Optional[Tuple[int, ...]] = None
    status: Optional[DailyUpdateStatus] = None
    visible_to: Optional[Role] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    search: Optional[str] = None
    limit: Optional[int] = None
    offset: int = 0
