from datetime import date, datetime

import pytest

from src.batch_attendance.batch_attendance.attendance.model import Assignment, CoveredTopic, DailyDigest
from src.batch_attendance.batch_attendance.core.enums import (
    ChallengeType,
    DailyUpdateStatus,
    LearnerPerformance,
    Mood,
    Role,
)
from src.batch_attendance.batch_attendance.core.exceptions import ValidationError
from src.batch_attendance.batch_attendance.daily_updates.drafts import (
    apply_draft,
    changed_fields,
    new_update,
    touches_projection,
)
from src.batch_attendance.batch_attendance.daily_updates.model import Challenge, DailyUpdateDraft
from src.batch_attendance.batch_attendance.daily_updates.projection import project_into

NOW = datetime(2024, 1, 10, 9, 0, 0)


def _update(**draft_fields):
    return new_update(
        DailyUpdateDraft(daily_summary="Intro to SQL", **draft_fields),
        batch_id=100,
        work_date=date(2024, 1, 10),
        posted_by=5,
        now=NOW,
    )


def test_new_update_defaults():
    update = _update()

    assert update.overall_mood == Mood.NEUTRAL
    assert update.status == DailyUpdateStatus.PUBLISHED
    assert update.visibility == frozenset({Role.MANAGER, Role.TEAM_LEADER})
    assert update.completion_percentage == 0
    assert update.created_at == NOW


@pytest.mark.parametrize(
    "draft",
    [
        DailyUpdateDraft(daily_summary="   "),
        DailyUpdateDraft(daily_summary="ok", completion_percentage=101),
        DailyUpdateDraft(daily_summary="ok", completion_percentage=float("nan")),
        DailyUpdateDraft(daily_summary="ok", completion_percentage=float("inf")),
        DailyUpdateDraft(daily_summary="ok", visibility=frozenset({Role.LEARNER})),
    ],
)
def test_new_update_rejects_invalid_drafts(draft):
    with pytest.raises(ValidationError):
        new_update(draft, batch_id=100, work_date=date(2024, 1, 10), posted_by=5, now=NOW)


@pytest.mark.parametrize(
    "mood, performance",
    [
        (Mood.EXCELLENT, LearnerPerformance.EXCELLENT),
        (Mood.GOOD, LearnerPerformance.GOOD),
        (Mood.NEUTRAL, LearnerPerformance.AVERAGE),
        (Mood.CHALLENGING, LearnerPerformance.NEEDS_IMPROVEMENT),
        (Mood.DIFFICULT, LearnerPerformance.POOR),
    ],
)
def test_mood_maps_to_learner_performance(mood, performance):
    digest = project_into(DailyDigest(), _update(overall_mood=mood))
    assert digest.learner_performance == performance


def test_projection_overlays_narrative_and_keeps_assignments():
    digest = DailyDigest(assignments_given=(Assignment(title="HW1"),), trainer_remarks="old")
    update = _update(
        topics_covered=(CoveredTopic(topic="Joins"),),
        challenges=(
            Challenge(type=ChallengeType.CONTENT, description="Too fast"),
            Challenge(type=ChallengeType.OTHER),
            Challenge(type=ChallengeType.SCHEDULE, description="Started late"),
        ),
    )

    projected = project_into(digest, update)

    assert projected.trainer_remarks == "Intro to SQL"
    assert projected.covered_topics == (CoveredTopic(topic="Joins"),)
    assert projected.issues_description == "Too fast, Started late"
    assert projected.assignments_given == (Assignment(title="HW1"),)


def test_apply_draft_only_changes_given_fields():
    update = _update(overall_mood=Mood.GOOD, completion_percentage=30)
    later = datetime(2024, 1, 10, 18, 0, 0)

    patched = apply_draft(update, DailyUpdateDraft(completion_percentage=80), now=later)

    assert patched.daily_summary == "Intro to SQL"
    assert patched.overall_mood == Mood.GOOD
    assert patched.completion_percentage == 80.0
    assert patched.updated_at == later
    assert changed_fields(update, patched) == ["completion_percentage"]
    assert not touches_projection(update, patched)


def test_summary_or_mood_change_touches_projection():
    update = _update()

    assert touches_projection(update, apply_draft(update, DailyUpdateDraft(daily_summary="New"), now=NOW))
    assert touches_projection(update, apply_draft(update, DailyUpdateDraft(overall_mood=Mood.GOOD), now=NOW))
