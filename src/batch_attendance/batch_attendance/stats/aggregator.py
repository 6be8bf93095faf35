"""Read-side attendance and daily-update figures.

Everything is recomputed from records on each request; nothing is cached or
stored.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from typing import Iterable, Sequence

from ..attendance.model import AttendanceRecord
from ..core.constants import RECENT_UPDATES_IN_SUMMARY
from ..core.enums import AttendanceStatus, ChallengeType, Mood
from ..daily_updates.model import DailyUpdate
from .presence import counts_as_absent, counts_as_present, format_2dp, percentage_2dp


@dataclass(frozen=True)
class LearnerStatistics:
    total_days: int
    present_days: int
    absent_days: int
    late_days: int
    half_days: int
    attendance_percentage: str


@dataclass(frozen=True)
class LearnerPresence:
    learner_id: int
    total_days: int
    present_days: int
    attendance_percentage: str


@dataclass(frozen=True)
class DailyUpdateSummary:
    total_updates: int
    mood_stats: dict
    challenge_types: dict
    average_completion: str
    recent_updates: tuple


def learner_statistics(statuses: Iterable[AttendanceStatus]) -> LearnerStatistics:
    counts = Counter(statuses)
    total = sum(counts.values())
    present = sum(n for s, n in counts.items() if counts_as_present(s))
    return LearnerStatistics(
        total_days=total,
        present_days=present,
        absent_days=sum(n for s, n in counts.items() if counts_as_absent(s)),
        late_days=counts[AttendanceStatus.LATE],
        half_days=counts[AttendanceStatus.HALF_DAY],
        attendance_percentage=percentage_2dp(present, total),
    )


def status_histogram(records: Iterable[AttendanceRecord]) -> dict[AttendanceStatus, int]:
    counts = Counter(e.status for r in records for e in r.entries)
    return {status: counts[status] for status in AttendanceStatus if counts[status]}


def learner_presence(records: Iterable[AttendanceRecord]) -> list[LearnerPresence]:
    totals: Counter[int] = Counter()
    present: Counter[int] = Counter()
    for r in records:
        for e in r.entries:
            totals[e.learner_id] += 1
            if counts_as_present(e.status):
                present[e.learner_id] += 1

    return [
        LearnerPresence(
            learner_id=learner_id,
            total_days=totals[learner_id],
            present_days=present[learner_id],
            attendance_percentage=percentage_2dp(present[learner_id], totals[learner_id]),
        )
        for learner_id in sorted(totals)
    ]


def average_attendance(records: Sequence[AttendanceRecord]) -> str:
    """Share of present entries over all entries of the given records."""
    total = sum(r.total_count for r in records)
    present = sum(r.present_count for r in records)
    return percentage_2dp(present, total)


def summarize_updates(updates: Sequence[DailyUpdate]) -> DailyUpdateSummary:
    moods = Counter(u.overall_mood for u in updates)
    challenges = Counter((c.type or ChallengeType.OTHER) for u in updates for c in u.challenges)
    total_completion = sum(float(u.completion_percentage or 0) for u in updates)
    average = total_completion / len(updates) if updates else 0.0

    return DailyUpdateSummary(
        total_updates=len(updates),
        mood_stats={m.value: moods[m] for m in Mood},
        challenge_types={t.value: n for t, n in challenges.items()},
        average_completion=format_2dp(average),
        recent_updates=tuple(updates[:RECENT_UPDATES_IN_SUMMARY]),
    )
