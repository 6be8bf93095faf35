from datetime import date, datetime, timedelta

from src.batch_attendance.batch_attendance.access.policy import (
    ListScope,
    attendance_scope,
    can_access_daily_update,
    can_add_feedback,
    can_manage_batch,
    can_mutate_attendance,
    can_view_batch_attendance,
    daily_update_scope,
)
from src.batch_attendance.batch_attendance.attendance.model import AttendanceRecord
from src.batch_attendance.batch_attendance.batches.model import Batch
from src.batch_attendance.batch_attendance.core.enums import BatchStatus, Role
from src.batch_attendance.batch_attendance.core.principal import Principal
from src.batch_attendance.batch_attendance.daily_updates.model import DailyUpdate

NOW = datetime(2024, 1, 10, 9, 0, 0)

BATCH = Batch(
    batch_id=100,
    code="B1",
    name="Java",
    client_name="Acme",
    start_date=date(2024, 1, 1),
    end_date=date(2024, 3, 31),
    status=BatchStatus.ONGOING,
    created_by=2,
)


def _p(user_id, role):
    return Principal(user_id=user_id, role=role)


def _update(visibility):
    return DailyUpdate(
        update_id=1,
        batch_id=100,
        work_date=date(2024, 1, 10),
        posted_by=5,
        daily_summary="x",
        created_at=NOW,
        visibility=frozenset(visibility),
    )


def test_explicit_batch_filter_only_narrows():
    unrestricted = ListScope()
    assert unrestricted.narrowed_to(7).batch_ids == (7,)
    assert unrestricted.narrowed_to(None) is unrestricted

    owned = ListScope(batch_ids=(1, 2), visible_to=Role.MANAGER)
    assert owned.narrowed_to(2) == ListScope(batch_ids=(2,), visible_to=Role.MANAGER)
    assert owned.narrowed_to(3).batch_ids == ()


def test_attendance_scopes():
    assert attendance_scope(_p(10, Role.LEARNER)) == ListScope(learner_id=10)
    assert attendance_scope(_p(2, Role.MANAGER), [100]) == ListScope(batch_ids=(100,))
    assert attendance_scope(_p(2, Role.MANAGER), []) == ListScope(batch_ids=())
    assert attendance_scope(_p(5, Role.TRAINER)) == ListScope()


def test_daily_update_scopes():
    assert daily_update_scope(_p(4, Role.TEAM_LEADER)) == ListScope(visible_to=Role.TEAM_LEADER)
    assert daily_update_scope(_p(10, Role.LEARNER), enrolled_batch_ids=[100]) == ListScope(batch_ids=(100,))
    assert daily_update_scope(_p(5, Role.TA)) == ListScope()


def test_daily_update_access():
    update = _update({Role.MANAGER})

    assert can_access_daily_update(_p(1, Role.ADMIN), update)
    assert can_access_daily_update(_p(5, Role.TRAINER), update)
    assert can_access_daily_update(_p(2, Role.MANAGER), update)
    assert not can_access_daily_update(_p(4, Role.TEAM_LEADER), update)
    assert not can_access_daily_update(_p(6, Role.TA), update)


def test_feedback_rule():
    update = _update({Role.MANAGER, Role.TEAM_LEADER, Role.TRAINER})

    assert can_add_feedback(_p(4, Role.TEAM_LEADER), update)
    assert not can_add_feedback(_p(5, Role.TRAINER), update)
    assert not can_add_feedback(_p(1, Role.ADMIN), update)


def test_attendance_mutation_rule():
    record = AttendanceRecord(
        attendance_id=1,
        batch_id=100,
        work_date=date(2024, 1, 10),
        classroom_id=1,
        entries=(),
        created_by=5,
        created_at=NOW,
    )
    later = NOW + timedelta(hours=25)

    assert can_mutate_attendance(_p(5, Role.TRAINER), record, NOW)
    assert not can_mutate_attendance(_p(2, Role.MANAGER), record, NOW)
    assert not can_mutate_attendance(_p(5, Role.TRAINER), record, later)
    assert can_mutate_attendance(_p(1, Role.ADMIN), record, later)


def test_batch_management_and_oversight():
    assert can_manage_batch(_p(2, Role.MANAGER), BATCH)
    assert not can_manage_batch(_p(3, Role.MANAGER), BATCH)
    assert not can_manage_batch(_p(4, Role.TEAM_LEADER), BATCH)

    assert can_view_batch_attendance(_p(4, Role.TEAM_LEADER), BATCH)
    assert not can_view_batch_attendance(_p(3, Role.MANAGER), BATCH)
    assert not can_view_batch_attendance(_p(5, Role.TRAINER), BATCH)
