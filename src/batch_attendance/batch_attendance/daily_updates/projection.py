"""Log -> Ledger projection.

The DailyUpdate is the source of truth for the narrative of a day. The
attendance record carries a condensed copy in its digest, written only from
here. Sync direction is one way; the copy is refreshed in the same
transaction as every Log write that changes projected fields, so there is no
staleness window for writes going through the services.
"""

from __future__ import annotations

from dataclasses import replace

from ..attendance.model import DailyDigest
from ..core.enums import LearnerPerformance, Mood
from .model import DailyUpdate

MOOD_TO_PERFORMANCE = {
    Mood.EXCELLENT: LearnerPerformance.EXCELLENT,
    Mood.GOOD: LearnerPerformance.GOOD,
    Mood.NEUTRAL: LearnerPerformance.AVERAGE,
    Mood.CHALLENGING: LearnerPerformance.NEEDS_IMPROVEMENT,
    Mood.DIFFICULT: LearnerPerformance.POOR,
}


def issues_text(update: DailyUpdate) -> str:
    return ", ".join(c.description for c in update.challenges if c.description)


def project_into(digest: DailyDigest, update: DailyUpdate) -> DailyDigest:
    """Overlay the projected fields; ``assignments_given`` stays as it is."""
    return replace(
        digest,
        trainer_remarks=update.daily_summary,
        covered_topics=update.topics_covered,
        learner_performance=MOOD_TO_PERFORMANCE[update.overall_mood],
        issues_description=issues_text(update),
    )
