from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass, replace
from datetime import date, datetime
from typing import Iterable, Optional

import pytest

from src.batch_attendance.batch_attendance.attendance.model import (
    AttendanceQuery,
    AttendanceRecord,
    DailyDigest,
)
from src.batch_attendance.batch_attendance.audit.model import AuditEntry
from src.batch_attendance.batch_attendance.audit.sink import AuditTrail
from src.batch_attendance.batch_attendance.batches.model import Batch
from src.batch_attendance.batch_attendance.classrooms.model import Classroom
from src.batch_attendance.batch_attendance.container import Container, wire_services
from src.batch_attendance.batch_attendance.core.enums import BatchStatus, Role
from src.batch_attendance.batch_attendance.core.exceptions import DuplicateError
from src.batch_attendance.batch_attendance.core.principal import Principal
from src.batch_attendance.batch_attendance.daily_updates.model import DailyUpdate, DailyUpdateQuery, Feedback
from src.batch_attendance.batch_attendance.database.connection import TransactionManager
from src.batch_attendance.batch_attendance.users.model import User

ADMIN_ID = 1
MANAGER_ID = 2
OTHER_MANAGER_ID = 3
TEAM_LEADER_ID = 4
TRAINER_ID = 5
TA_ID = 6
LEARNER_ID = 10
LEARNER_2_ID = 11
OTHER_LEARNER_ID = 12

BATCH_ID = 100
OTHER_BATCH_ID = 200
CLASSROOM_ID = 1


class InMemoryUsers:
    def __init__(self, roster: set[tuple[int, int]]):
        self.users: dict[int, User] = {}
        self._roster = roster

    def add(self, user_id: int, role: Role, full_name: str = "") -> User:
        self.users[user_id] = User(user_id=user_id, full_name=full_name or f"user{user_id}", email=None, role=role)
        return self.users[user_id]

    def _with_batches(self, user: User) -> User:
        return replace(user, assigned_batch_ids=frozenset(b for b, u in self._roster if u == user.user_id))

    def get_by_id(self, user_id: int) -> Optional[User]:
        user = self.users.get(int(user_id))
        return self._with_batches(user) if user else None

    def get_many(self, user_ids: Iterable[int]):
        return [self._with_batches(self.users[int(u)]) for u in set(user_ids) if int(u) in self.users]

    def add_assigned_batch(self, *, user_ids: Iterable[int], batch_id: int) -> None:
        for u in user_ids:
            self._roster.add((int(batch_id), int(u)))

    def remove_assigned_batch(self, *, user_ids: Iterable[int], batch_id: int) -> None:
        for u in user_ids:
            self._roster.discard((int(batch_id), int(u)))


class InMemoryBatches:
    _UPDATABLE = ("name", "client_name", "description", "start_date", "end_date", "status")

    def __init__(self, roster: set[tuple[int, int]]):
        self.batches: dict[int, Batch] = {}
        self._roster = roster
        self._next_id = 500

    def add(self, batch: Batch, learner_ids: Iterable[int] = ()) -> Batch:
        self.batches[batch.batch_id] = batch
        for u in learner_ids:
            self._roster.add((batch.batch_id, int(u)))
        return batch

    def _with_roster(self, batch: Batch) -> Batch:
        return replace(batch, learner_ids=frozenset(u for b, u in self._roster if b == batch.batch_id))

    def get_by_id(self, batch_id: int) -> Optional[Batch]:
        batch = self.batches.get(int(batch_id))
        return self._with_roster(batch) if batch else None

    def get_by_code(self, code: str) -> Optional[Batch]:
        for b in self.batches.values():
            if b.code == code.strip().upper():
                return self._with_roster(b)
        return None

    def create(self, *, code, name, client_name, start_date, end_date, status, created_by, description=None) -> int:
        if any(b.code == code for b in self.batches.values()):
            raise DuplicateError(f"Batch code {code} already exists")
        self._next_id += 1
        self.batches[self._next_id] = Batch(
            batch_id=self._next_id,
            code=code,
            name=name,
            client_name=client_name,
            description=description,
            start_date=start_date,
            end_date=end_date,
            status=status,
            created_by=created_by,
        )
        return self._next_id

    def update(self, batch_id: int, **fields) -> bool:
        batch = self.batches.get(int(batch_id))
        if not batch:
            return False
        self.batches[batch.batch_id] = replace(batch, **{k: v for k, v in fields.items() if k in self._UPDATABLE})
        return True

    def list(self, *, created_by=None, batch_ids=None, status=None, search=None):
        out = [self._with_roster(b) for b in self.batches.values()]
        if created_by is not None:
            out = [b for b in out if b.created_by == created_by]
        if batch_ids is not None:
            ids = {int(i) for i in batch_ids}
            out = [b for b in out if b.batch_id in ids]
        if status is not None:
            out = [b for b in out if b.status == status]
        if search:
            needle = search.lower()
            out = [b for b in out if needle in b.name.lower() or needle in b.code.lower() or needle in b.client_name.lower()]
        return out

    def ids_created_by(self, manager_id: int):
        return [b.batch_id for b in self.batches.values() if b.created_by == int(manager_id)]


class InMemoryClassrooms:
    def __init__(self):
        self.classrooms: dict[int, Classroom] = {}

    def get_by_id(self, classroom_id: int) -> Optional[Classroom]:
        return self.classrooms.get(int(classroom_id))


class InMemoryAttendance:
    """Enforces the (batch, date) unique key like the MySQL table does."""

    def __init__(self):
        self.records: dict[int, AttendanceRecord] = {}
        self._next_id = 0

    def snapshot(self):
        return dict(self.records), self._next_id

    def restore(self, state) -> None:
        self.records, self._next_id = dict(state[0]), state[1]

    def get_by_id(self, attendance_id: int) -> Optional[AttendanceRecord]:
        return self.records.get(int(attendance_id))

    def get_for_batch_and_date(self, batch_id: int, work_date: date) -> Optional[AttendanceRecord]:
        for r in self.records.values():
            if r.batch_id == int(batch_id) and r.work_date == work_date:
                return r
        return None

    def create(self, *, batch_id, work_date, classroom_id, entries, digest, session_start, session_end, created_by, created_at) -> int:
        if self.get_for_batch_and_date(batch_id, work_date):
            raise DuplicateError("Attendance already marked for this date and batch")
        self._next_id += 1
        self.records[self._next_id] = AttendanceRecord(
            attendance_id=self._next_id,
            batch_id=int(batch_id),
            work_date=work_date,
            classroom_id=int(classroom_id),
            entries=tuple(entries),
            created_by=int(created_by),
            created_at=created_at,
            digest=digest,
            session_start=session_start,
            session_end=session_end,
            updated_at=created_at,
        )
        return self._next_id

    def save(self, record: AttendanceRecord) -> bool:
        if record.attendance_id not in self.records:
            return False
        self.records[record.attendance_id] = record
        return True

    def update_digest(self, *, batch_id: int, work_date: date, digest: DailyDigest) -> bool:
        record = self.get_for_batch_and_date(batch_id, work_date)
        if not record:
            return False
        self.records[record.attendance_id] = replace(record, digest=digest)
        return True

    def set_lock(self, *, attendance_id: int, locked_at: datetime, locked_by: Optional[int]) -> bool:
        record = self.records.get(int(attendance_id))
        if not record:
            return False
        self.records[record.attendance_id] = replace(record, is_locked=True, locked_at=locked_at, locked_by=locked_by)
        return True

    def list(self, query: AttendanceQuery):
        out = list(self.records.values())
        if query.batch_ids is not None:
            out = [r for r in out if r.batch_id in query.batch_ids]
        if query.learner_id is not None:
            out = [r for r in out if r.has_learner(query.learner_id)]
        if query.on_date is not None:
            out = [r for r in out if r.work_date == query.on_date]
        if query.start_date is not None:
            out = [r for r in out if r.work_date >= query.start_date]
        if query.end_date is not None:
            out = [r for r in out if r.work_date <= query.end_date]
        out.sort(key=lambda r: r.work_date, reverse=True)
        if query.limit is not None:
            out = out[query.offset : query.offset + query.limit]
        return out


class InMemoryDailyUpdates:
    def __init__(self):
        self.updates: dict[int, DailyUpdate] = {}
        self._next_id = 0

    def snapshot(self):
        return dict(self.updates), self._next_id

    def restore(self, state) -> None:
        self.updates, self._next_id = dict(state[0]), state[1]

    def get_by_id(self, update_id: int) -> Optional[DailyUpdate]:
        return self.updates.get(int(update_id))

    def get_for_batch_and_date(self, batch_id: int, work_date: date) -> Optional[DailyUpdate]:
        for u in self.updates.values():
            if u.batch_id == int(batch_id) and u.work_date == work_date:
                return u
        return None

    def create(self, update: DailyUpdate) -> int:
        if self.get_for_batch_and_date(update.batch_id, update.work_date):
            raise DuplicateError("Daily update already exists for this date and batch")
        self._next_id += 1
        self.updates[self._next_id] = replace(update, update_id=self._next_id, feedback=())
        return self._next_id

    def save(self, update: DailyUpdate) -> bool:
        stored = self.updates.get(update.update_id)
        if not stored:
            return False
        self.updates[update.update_id] = replace(update, feedback=stored.feedback)
        return True

    def add_feedback(self, *, update_id: int, feedback: Feedback, updated_at: datetime) -> bool:
        stored = self.updates.get(int(update_id))
        if not stored:
            return False
        self.updates[stored.update_id] = replace(stored, feedback=stored.feedback + (feedback,), updated_at=updated_at)
        return True

    def list(self, query: DailyUpdateQuery):
        out = list(self.updates.values())
        if query.batch_ids is not None:
            out = [u for u in out if u.batch_id in query.batch_ids]
        if query.status is not None:
            out = [u for u in out if u.status == query.status]
        if query.visible_to is not None:
            out = [u for u in out if u.is_visible_to(query.visible_to)]
        if query.start_date is not None:
            out = [u for u in out if u.work_date >= query.start_date]
        if query.end_date is not None:
            out = [u for u in out if u.work_date <= query.end_date]
        if query.search:
            out = [u for u in out if query.search.lower() in u.daily_summary.lower()]
        out.sort(key=lambda u: (u.work_date, u.created_at), reverse=True)
        if query.limit is not None:
            out = out[query.offset : query.offset + query.limit]
        return out


class RecordingAuditSink:
    def __init__(self):
        self.entries: list[AuditEntry] = []

    def record(self, entry: AuditEntry) -> None:
        self.entries.append(entry)


class SnapshotTransactions(TransactionManager):
    """Rolls the in-memory stores back when the block raises."""

    def __init__(self, *stores):
        super().__init__(None)
        self._stores = stores

    @contextmanager
    def atomic(self):
        saved = [s.snapshot() for s in self._stores]
        try:
            yield
        except Exception:
            for store, state in zip(self._stores, saved):
                store.restore(state)
            raise


@dataclass
class World:
    users: InMemoryUsers
    batches: InMemoryBatches
    classrooms: InMemoryClassrooms
    attendance: InMemoryAttendance
    daily_updates: InMemoryDailyUpdates
    audit: RecordingAuditSink
    container: Container


@pytest.fixture
def fixed_now() -> datetime:
    return datetime(2024, 1, 10, 9, 0, 0)


@pytest.fixture
def world() -> World:
    roster: set[tuple[int, int]] = set()
    users = InMemoryUsers(roster)
    batches = InMemoryBatches(roster)
    classrooms = InMemoryClassrooms()
    attendance = InMemoryAttendance()
    daily_updates = InMemoryDailyUpdates()
    audit = RecordingAuditSink()

    users.add(ADMIN_ID, Role.ADMIN)
    users.add(MANAGER_ID, Role.MANAGER)
    users.add(OTHER_MANAGER_ID, Role.MANAGER)
    users.add(TEAM_LEADER_ID, Role.TEAM_LEADER)
    users.add(TRAINER_ID, Role.TRAINER)
    users.add(TA_ID, Role.TA)
    users.add(LEARNER_ID, Role.LEARNER)
    users.add(LEARNER_2_ID, Role.LEARNER)
    users.add(OTHER_LEARNER_ID, Role.LEARNER)

    batches.add(
        Batch(
            batch_id=BATCH_ID,
            code="B1",
            name="Java Bootcamp",
            client_name="Acme",
            start_date=date(2024, 1, 1),
            end_date=date(2024, 3, 31),
            status=BatchStatus.ONGOING,
            created_by=MANAGER_ID,
        ),
        learner_ids=[LEARNER_ID, LEARNER_2_ID],
    )
    batches.add(
        Batch(
            batch_id=OTHER_BATCH_ID,
            code="B2",
            name="Data Track",
            client_name="Globex",
            start_date=date(2024, 1, 1),
            end_date=date(2024, 2, 29),
            status=BatchStatus.ONGOING,
            created_by=OTHER_MANAGER_ID,
        ),
        learner_ids=[OTHER_LEARNER_ID],
    )
    classrooms.classrooms[CLASSROOM_ID] = Classroom(classroom_id=CLASSROOM_ID, name="Room 1", code="R1")

    container = wire_services(
        users_repo=users,
        batches_repo=batches,
        classrooms_repo=classrooms,
        attendance_repo=attendance,
        daily_updates_repo=daily_updates,
        transactions=SnapshotTransactions(attendance, daily_updates),
        audit=AuditTrail(audit),
        auto_lock_hours=24,
    )
    return World(
        users=users,
        batches=batches,
        classrooms=classrooms,
        attendance=attendance,
        daily_updates=daily_updates,
        audit=audit,
        container=container,
    )


@pytest.fixture
def admin() -> Principal:
    return Principal(user_id=ADMIN_ID, role=Role.ADMIN)


@pytest.fixture
def manager() -> Principal:
    return Principal(user_id=MANAGER_ID, role=Role.MANAGER)


@pytest.fixture
def other_manager() -> Principal:
    return Principal(user_id=OTHER_MANAGER_ID, role=Role.MANAGER)


@pytest.fixture
def team_leader() -> Principal:
    return Principal(user_id=TEAM_LEADER_ID, role=Role.TEAM_LEADER)


@pytest.fixture
def trainer() -> Principal:
    return Principal(user_id=TRAINER_ID, role=Role.TRAINER)


@pytest.fixture
def ta() -> Principal:
    return Principal(user_id=TA_ID, role=Role.TA)


@pytest.fixture
def learner() -> Principal:
    return Principal(user_id=LEARNER_ID, role=Role.LEARNER)


@pytest.fixture
def other_learner() -> Principal:
    return Principal(user_id=OTHER_LEARNER_ID, role=Role.LEARNER)


@pytest.fixture
def learner_2() -> Principal:
    return Principal(user_id=LEARNER_2_ID, role=Role.LEARNER)


@pytest.fixture
def batch(world) -> Batch:
    return world.batches.get_by_id(BATCH_ID)


@pytest.fixture
def other_batch(world) -> Batch:
    return world.batches.get_by_id(OTHER_BATCH_ID)


@pytest.fixture
def classroom_id() -> int:
    return CLASSROOM_ID
