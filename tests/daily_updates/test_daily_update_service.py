from __future__ import annotations

from dataclasses import replace
from datetime import date, timedelta

import pytest

from src.batch_attendance.batch_attendance.attendance.model import EntryInput
from src.batch_attendance.batch_attendance.core.enums import (
    AttendanceStatus,
    AuditAction,
    ChallengeType,
    DailyUpdateStatus,
    LearnerPerformance,
    Mood,
    Role,
)
from src.batch_attendance.batch_attendance.core.exceptions import (
    AuthorizationError,
    DuplicateError,
    NotFoundError,
    ValidationError,
)
from src.batch_attendance.batch_attendance.daily_updates.model import Challenge, DailyUpdateDraft
from src.batch_attendance.batch_attendance.daily_updates.service import DailyUpdateFilter


def _post(world, principal, batch_id, work_date, *, now, **draft_fields):
    draft_fields.setdefault("daily_summary", f"Day {work_date.isoformat()}")
    return world.container.daily_update_service.create_daily_update(
        principal,
        batch_id=batch_id,
        work_date=work_date,
        draft=DailyUpdateDraft(**draft_fields),
        now=now,
    )


def _mark(world, trainer, batch_id, work_date, *, now):
    return world.container.attendance_service.mark_attendance(
        trainer,
        batch_id=batch_id,
        work_date=work_date,
        classroom_id=1,
        entries=[EntryInput(learner_id=10, status=AttendanceStatus.PRESENT)],
        now=now,
    )


def test_trainer_posts_a_daily_update(world, trainer, batch, fixed_now):
    update = _post(world, trainer, batch.batch_id, date(2024, 1, 10), now=fixed_now, daily_summary="  Arrays  ")

    assert update.update_id > 0
    assert update.daily_summary == "Arrays"
    assert update.posted_by == trainer.user_id
    assert update.status == DailyUpdateStatus.PUBLISHED
    assert world.audit.entries[-1].action == AuditAction.DAILY_UPDATE_CREATE


def test_non_marker_cannot_post(world, manager, batch, fixed_now):
    with pytest.raises(AuthorizationError):
        _post(world, manager, batch.batch_id, date(2024, 1, 10), now=fixed_now)


def test_post_for_unknown_batch(world, trainer, fixed_now):
    with pytest.raises(NotFoundError):
        _post(world, trainer, 999, date(2024, 1, 10), now=fixed_now)


def test_one_update_per_batch_and_day(world, trainer, ta, batch, fixed_now):
    _post(world, trainer, batch.batch_id, date(2024, 1, 10), now=fixed_now)

    with pytest.raises(DuplicateError):
        _post(world, ta, batch.batch_id, date(2024, 1, 10), now=fixed_now)


def test_posting_refreshes_same_day_attendance_digest(world, trainer, batch, fixed_now):
    record = _mark(world, trainer, batch.batch_id, date(2024, 1, 10), now=fixed_now)

    _post(
        world,
        trainer,
        batch.batch_id,
        date(2024, 1, 10),
        now=fixed_now,
        daily_summary="Recursion",
        overall_mood=Mood.CHALLENGING,
        challenges=(Challenge(type=ChallengeType.LEARNER, description="Two learners lost"),),
    )

    digest = world.attendance.get_by_id(record.attendance_id).digest
    assert digest.trainer_remarks == "Recursion"
    assert digest.learner_performance == LearnerPerformance.NEEDS_IMPROVEMENT
    assert digest.issues_description == "Two learners lost"


def test_editing_the_summary_reprojects(world, trainer, batch, fixed_now):
    record = _mark(world, trainer, batch.batch_id, date(2024, 1, 10), now=fixed_now)
    update = _post(world, trainer, batch.batch_id, date(2024, 1, 10), now=fixed_now)

    edited = world.container.daily_update_service.update_daily_update(
        trainer, update.update_id, DailyUpdateDraft(daily_summary="Edited"), now=fixed_now
    )

    assert edited.daily_summary == "Edited"
    assert world.attendance.get_by_id(record.attendance_id).digest.trainer_remarks == "Edited"
    changes = world.audit.entries[-1].changes
    assert [c.field for c in changes] == ["dailySummary"]


def test_editing_unprojected_fields_leaves_digest_alone(world, trainer, batch, fixed_now):
    record = _mark(world, trainer, batch.batch_id, date(2024, 1, 10), now=fixed_now)
    update = _post(world, trainer, batch.batch_id, date(2024, 1, 10), now=fixed_now)
    stored = world.attendance.records[record.attendance_id]
    world.attendance.records[record.attendance_id] = replace(
        stored, digest=replace(stored.digest, trainer_remarks="out of band")
    )

    world.container.daily_update_service.update_daily_update(
        trainer, update.update_id, DailyUpdateDraft(completion_percentage=75), now=fixed_now
    )

    assert world.attendance.get_by_id(record.attendance_id).digest.trainer_remarks == "out of band"


def test_only_poster_or_admin_edits(world, trainer, ta, admin, batch, fixed_now):
    service = world.container.daily_update_service
    update = _post(world, trainer, batch.batch_id, date(2024, 1, 10), now=fixed_now)

    with pytest.raises(AuthorizationError):
        service.update_daily_update(ta, update.update_id, DailyUpdateDraft(daily_summary="x"), now=fixed_now)

    edited = service.update_daily_update(admin, update.update_id, DailyUpdateDraft(status=DailyUpdateStatus.ARCHIVED), now=fixed_now)
    assert edited.status == DailyUpdateStatus.ARCHIVED


def test_feedback_from_manager(world, trainer, manager, batch, fixed_now):
    service = world.container.daily_update_service
    update = _post(world, trainer, batch.batch_id, date(2024, 1, 10), now=fixed_now)

    result = service.add_feedback(
        manager,
        update.update_id,
        comment="Nice pacing",
        suggestions=["More labs", "  ", ""],
        now=fixed_now,
    )

    assert len(result.feedback) == 1
    feedback = result.feedback[0]
    assert feedback.given_by == manager.user_id
    assert feedback.rating == 5
    assert feedback.suggestions == ("More labs",)


@pytest.mark.parametrize("rating", [0, 6, "bad"])
def test_feedback_rating_must_be_one_to_five(world, trainer, manager, batch, fixed_now, rating):
    update = _post(world, trainer, batch.batch_id, date(2024, 1, 10), now=fixed_now)

    with pytest.raises(ValidationError):
        world.container.daily_update_service.add_feedback(
            manager, update.update_id, comment="ok", rating=rating, now=fixed_now
        )


def test_feedback_requires_a_comment(world, trainer, manager, batch, fixed_now):
    update = _post(world, trainer, batch.batch_id, date(2024, 1, 10), now=fixed_now)

    with pytest.raises(ValidationError):
        world.container.daily_update_service.add_feedback(manager, update.update_id, comment="  ", now=fixed_now)


def test_feedback_needs_role_and_visibility(world, trainer, team_leader, batch, fixed_now):
    service = world.container.daily_update_service
    update = _post(
        world,
        trainer,
        batch.batch_id,
        date(2024, 1, 10),
        now=fixed_now,
        visibility=frozenset({Role.MANAGER}),
    )

    with pytest.raises(AuthorizationError):
        service.add_feedback(trainer, update.update_id, comment="self review", now=fixed_now)
    with pytest.raises(AuthorizationError):
        service.add_feedback(team_leader, update.update_id, comment="hidden from me", now=fixed_now)


def test_get_daily_update_visibility(world, trainer, ta, learner, team_leader, batch, fixed_now):
    service = world.container.daily_update_service
    update = _post(world, trainer, batch.batch_id, date(2024, 1, 10), now=fixed_now)

    assert service.get_daily_update(trainer, update.update_id, now=fixed_now).update.update_id == update.update_id
    assert service.get_daily_update(team_leader, update.update_id, now=fixed_now).attendance is None
    with pytest.raises(AuthorizationError):
        service.get_daily_update(ta, update.update_id, now=fixed_now)
    with pytest.raises(AuthorizationError):
        service.get_daily_update(learner, update.update_id, now=fixed_now)


def test_get_daily_update_carries_attendance_as_of_now(world, trainer, admin, batch, fixed_now):
    _mark(world, trainer, batch.batch_id, date(2024, 1, 10), now=fixed_now)
    update = _post(world, trainer, batch.batch_id, date(2024, 1, 10), now=fixed_now)

    view = world.container.daily_update_service.get_daily_update(
        admin, update.update_id, now=fixed_now + timedelta(days=2)
    )

    assert view.attendance is not None
    assert view.attendance.is_locked
    assert view.attendance.locked_by is None


def test_list_daily_updates_scoping(
    world, trainer, admin, manager, team_leader, learner, batch, other_batch, fixed_now
):
    service = world.container.daily_update_service
    _post(world, trainer, batch.batch_id, date(2024, 1, 8), now=fixed_now, daily_summary="Visible to all")
    _post(
        world,
        trainer,
        batch.batch_id,
        date(2024, 1, 9),
        now=fixed_now,
        daily_summary="Managers only",
        visibility=frozenset({Role.MANAGER}),
    )
    _post(
        world,
        trainer,
        batch.batch_id,
        date(2024, 1, 10),
        now=fixed_now,
        daily_summary="Still a draft",
        status=DailyUpdateStatus.DRAFT,
    )
    _post(world, trainer, other_batch.batch_id, date(2024, 1, 10), now=fixed_now, daily_summary="Other batch")

    def summaries(principal, filters=None):
        return [u.daily_summary for u in service.list_daily_updates(principal, filters)]

    assert summaries(admin) == ["Other batch", "Managers only", "Visible to all"]
    assert summaries(manager) == ["Managers only", "Visible to all"]
    assert summaries(team_leader) == ["Other batch", "Visible to all"]
    assert summaries(learner) == ["Managers only", "Visible to all"]
    assert summaries(manager, DailyUpdateFilter(batch_id=other_batch.batch_id)) == []
    assert summaries(admin, DailyUpdateFilter(search="MANAGERS")) == ["Managers only"]


def test_batch_summary(world, trainer, manager, batch, fixed_now):
    service = world.container.daily_update_service
    _post(
        world,
        trainer,
        batch.batch_id,
        date(2024, 1, 8),
        now=fixed_now,
        overall_mood=Mood.GOOD,
        completion_percentage=40,
        challenges=(Challenge(type=ChallengeType.TECHNICAL, description="Laptops"),),
    )
    _post(
        world,
        trainer,
        batch.batch_id,
        date(2024, 1, 9),
        now=fixed_now,
        overall_mood=Mood.GOOD,
        completion_percentage=60,
        challenges=(
            Challenge(type=ChallengeType.TECHNICAL, description="Network"),
            Challenge(type=ChallengeType.SCHEDULE, description="Holiday"),
        ),
    )
    _post(world, trainer, batch.batch_id, date(2024, 1, 10), now=fixed_now, status=DailyUpdateStatus.DRAFT)

    summary = service.summarize_batch(manager, batch.batch_id)

    assert summary.total_updates == 2
    assert summary.mood_stats == {"EXCELLENT": 0, "GOOD": 2, "NEUTRAL": 0, "CHALLENGING": 0, "DIFFICULT": 0}
    assert summary.challenge_types == {"TECHNICAL": 2, "SCHEDULE": 1}
    assert summary.average_completion == "50.00"
    assert [u.work_date.day for u in summary.recent_updates] == [9, 8]


def test_batch_summary_requires_oversight(world, trainer, other_manager, batch):
    service = world.container.daily_update_service

    with pytest.raises(AuthorizationError):
        service.summarize_batch(other_manager, batch.batch_id)
    with pytest.raises(AuthorizationError):
        service.summarize_batch(trainer, batch.batch_id)


def test_empty_batch_summary(world, team_leader, batch):
    summary = world.container.daily_update_service.summarize_batch(team_leader, batch.batch_id)

    assert summary.total_updates == 0
    assert summary.average_completion == "0.00"
    assert summary.recent_updates == ()


def test_resync_repairs_a_drifted_digest(world, trainer, admin, batch, fixed_now):
    service = world.container.daily_update_service
    record = _mark(world, trainer, batch.batch_id, date(2024, 1, 10), now=fixed_now)
    update = _post(world, trainer, batch.batch_id, date(2024, 1, 10), now=fixed_now, daily_summary="Truth")
    stored = world.attendance.records[record.attendance_id]
    world.attendance.records[record.attendance_id] = replace(
        stored, digest=replace(stored.digest, trainer_remarks="drifted")
    )

    with pytest.raises(AuthorizationError):
        service.resync_attendance_digest(trainer, update.update_id)

    repaired = service.resync_attendance_digest(admin, update.update_id)
    assert repaired.digest.trainer_remarks == "Truth"


def test_resync_without_attendance_returns_none(world, trainer, admin, batch, fixed_now):
    update = _post(world, trainer, batch.batch_id, date(2024, 1, 10), now=fixed_now)

    assert world.container.daily_update_service.resync_attendance_digest(admin, update.update_id) is None
