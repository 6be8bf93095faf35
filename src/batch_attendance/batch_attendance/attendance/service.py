from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import date, datetime
from typing import Optional, Sequence

from ..access.policy import (
    MARKER_ROLES,
    attendance_scope,
    can_access_attendance,
    can_edit_daily_update,
    can_mutate_attendance,
    can_view_learner_report,
)
from ..audit.model import FieldChange
from ..audit.sink import AuditTrail
from ..batches.model import Batch
from ..batches.repository import BatchRepository
from ..classrooms.repository import ClassroomRepository
from ..common.datetime_utils import now_local
from ..common.validators import require_max_length, require_non_empty
from ..core.constants import (
    DEFAULT_AUTO_LOCK_HOURS,
    DEFAULT_PAGE_LIMIT,
    MAX_ISSUES_LENGTH,
    MAX_PAGE_LIMIT,
    MAX_REMARKS_LENGTH,
    MAX_TRAINER_REMARKS_LENGTH,
)
from ..core.enums import AttendanceStatus, AuditAction, AuditEntity, Role
from ..core.exceptions import (
    AlreadyLockedError,
    AuthorizationError,
    DuplicateError,
    LockedError,
    NotFoundError,
    ValidationError,
)
from ..core.principal import Principal
from ..daily_updates.drafts import apply_draft, new_update
from ..daily_updates.model import DailyUpdate, DailyUpdateDraft
from ..daily_updates.projection import project_into
from ..daily_updates.repository import DailyUpdateRepository
from ..database.connection import TransactionManager
from ..stats.aggregator import LearnerStatistics, learner_statistics
from .codec import digest_to_dict, entry_to_dict
from .locking import compute_auto_lock, effective_lock_state
from .model import (
    AttendanceQuery,
    AttendanceRecord,
    DailyDigest,
    DigestPatch,
    EntryInput,
    stamp_entries,
)
from .repository import AttendanceRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AttendanceFilter:
    batch_id: Optional[int] = None
    on_date: Optional[date] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    limit: int = DEFAULT_PAGE_LIMIT
    offset: int = 0


@dataclass(frozen=True)
class LearnerAttendanceRow:
    work_date: date
    batch_id: int
    classroom_id: int
    status: AttendanceStatus
    recorded: bool
    digest: DailyDigest
    remarks: Optional[str] = None


@dataclass(frozen=True)
class LearnerAttendanceReport:
    learner_id: int
    rows: tuple[LearnerAttendanceRow, ...]
    statistics: LearnerStatistics


def _validate_entries(entries: Optional[Sequence[EntryInput]]) -> tuple[EntryInput, ...]:
    if entries is None:
        raise ValidationError("Attendance records must be a list")

    seen: set[int] = set()
    for e in entries:
        if e.learner_id in seen:
            raise ValidationError(f"Learner {e.learner_id} appears more than once")
        seen.add(e.learner_id)
        require_max_length(e.remarks, "Remarks", MAX_REMARKS_LENGTH)
    return tuple(entries)


def _validate_session(start: Optional[datetime], end: Optional[datetime]) -> None:
    if start and end and end < start:
        raise ValidationError("Session end time must be after start time")


def _validate_digest(patch: DigestPatch) -> None:
    require_max_length(patch.trainer_remarks, "Trainer remarks", MAX_TRAINER_REMARKS_LENGTH)
    require_max_length(patch.issues_description, "Issues description", MAX_ISSUES_LENGTH)
    for t in patch.covered_topics or ():
        require_non_empty(t.topic, "Topic")
    for a in patch.assignments_given or ():
        require_non_empty(a.title, "Assignment title")


def _narrative(patch: DigestPatch) -> DailyUpdateDraft:
    """The Log draft carried by a digest payload; topics fall back to the digest's."""
    draft = patch.daily_update or DailyUpdateDraft()
    if draft.topics_covered is None and patch.covered_topics is not None:
        draft = replace(draft, topics_covered=patch.covered_topics)
    return draft


class AttendanceService:
    def __init__(
        self,
        attendance: AttendanceRepository,
        daily_updates: DailyUpdateRepository,
        batches: BatchRepository,
        classrooms: ClassroomRepository,
        *,
        transactions: TransactionManager | None = None,
        audit: AuditTrail | None = None,
        auto_lock_hours: int = DEFAULT_AUTO_LOCK_HOURS,
    ):
        self._attendance = attendance
        self._daily_updates = daily_updates
        self._batches = batches
        self._classrooms = classrooms
        self._tx = transactions or TransactionManager(None)
        self._audit = audit or AuditTrail(None)
        self._auto_lock_hours = int(auto_lock_hours)

    def _require_batch(self, batch_id: int) -> Batch:
        batch = self._batches.get_by_id(batch_id)
        if not batch:
            raise NotFoundError("Batch not found")
        return batch

    def _require_record(self, attendance_id: int) -> AttendanceRecord:
        record = self._attendance.get_by_id(attendance_id)
        if not record:
            raise NotFoundError("Attendance not found")
        return record

    @staticmethod
    def _check_roster(batch: Batch, entries: Sequence[EntryInput]) -> None:
        outsiders = sorted(e.learner_id for e in entries if not batch.has_learner(e.learner_id))
        if outsiders:
            ids = ", ".join(str(i) for i in outsiders)
            raise ValidationError(f"Learners not enrolled in this batch: {ids}")

    def compute_auto_lock(self, record: AttendanceRecord, *, now: datetime | None = None) -> AttendanceRecord:
        return compute_auto_lock(record, now or now_local(), auto_lock_hours=self._auto_lock_hours)

    def mark_attendance(
        self,
        principal: Principal,
        *,
        batch_id: int,
        work_date: date,
        classroom_id: int,
        entries: Sequence[EntryInput],
        session_start: datetime | None = None,
        session_end: datetime | None = None,
        digest: DigestPatch | None = None,
        now: datetime | None = None,
    ) -> AttendanceRecord:
        now = now or now_local()
        if principal.role not in MARKER_ROLES:
            raise AuthorizationError("Not authorized to mark attendance")

        entries = _validate_entries(entries)
        _validate_session(session_start, session_end)
        patch = digest or DigestPatch()
        _validate_digest(patch)

        batch = self._require_batch(batch_id)
        if not self._classrooms.get_by_id(classroom_id):
            raise NotFoundError("Classroom not found")
        self._check_roster(batch, entries)

        if self._attendance.get_for_batch_and_date(batch.batch_id, work_date):
            raise DuplicateError("Attendance already marked for this date and batch")

        base = DailyDigest().merged(patch)
        stamped = stamp_entries(entries, marked_by=principal.user_id, marked_at=now)

        with self._tx.atomic():
            log: Optional[DailyUpdate]
            if patch.daily_summary:
                log = new_update(
                    _narrative(patch),
                    batch_id=batch.batch_id,
                    work_date=work_date,
                    posted_by=principal.user_id,
                    now=now,
                )
                log = replace(log, update_id=self._daily_updates.create(log))
            else:
                log = self._daily_updates.get_for_batch_and_date(batch.batch_id, work_date)

            if log is not None:
                base = project_into(base, log)

            attendance_id = self._attendance.create(
                batch_id=batch.batch_id,
                work_date=work_date,
                classroom_id=int(classroom_id),
                entries=stamped,
                digest=base,
                session_start=session_start,
                session_end=session_end,
                created_by=principal.user_id,
                created_at=now,
            )

        record = self._require_record(attendance_id)
        logger.info(
            "Attendance marked: batch=%s date=%s by user=%s (%s entries)",
            batch.batch_id,
            work_date,
            principal.user_id,
            len(stamped),
        )
        self._audit.log(
            principal=principal,
            action=AuditAction.ATTENDANCE_MARK,
            entity=AuditEntity.ATTENDANCE,
            entity_id=attendance_id,
            timestamp=now,
            new_values={
                "batch": batch.batch_id,
                "date": work_date.isoformat(),
                "attendanceRecords": [entry_to_dict(e) for e in record.entries],
            },
        )
        return record

    def update_attendance(
        self,
        principal: Principal,
        attendance_id: int,
        *,
        entries: Sequence[EntryInput] | None = None,
        digest_patch: DigestPatch | None = None,
        session_start: datetime | None = None,
        session_end: datetime | None = None,
        now: datetime | None = None,
    ) -> AttendanceRecord:
        now = now or now_local()
        record = self._require_record(attendance_id)

        lock = effective_lock_state(record, now, auto_lock_hours=self._auto_lock_hours)
        if not can_mutate_attendance(principal, record, now, auto_lock_hours=self._auto_lock_hours):
            if lock.is_locked:
                raise LockedError("Attendance is locked and cannot be modified")
            raise AuthorizationError("Not authorized to update attendance")

        changes: dict = {"updated_by": principal.user_id, "updated_at": now}
        audit_changes: list[FieldChange] = []

        if entries is not None:
            entries = _validate_entries(entries)
            self._check_roster(self._require_batch(record.batch_id), entries)
            changes["entries"] = stamp_entries(entries, marked_by=principal.user_id, marked_at=now)
            audit_changes.append(
                FieldChange(
                    field="attendanceRecords",
                    old_value=[entry_to_dict(e) for e in record.entries],
                    new_value=[entry_to_dict(e) for e in changes["entries"]],
                )
            )

        start = session_start if session_start is not None else record.session_start
        end = session_end if session_end is not None else record.session_end
        _validate_session(start, end)
        changes["session_start"] = start
        changes["session_end"] = end

        digest = record.digest
        if digest_patch is not None:
            _validate_digest(digest_patch)
            digest = digest.merged(digest_patch)

        if lock.automatic:
            changes.update(is_locked=True, locked_at=lock.locked_at, locked_by=None)

        with self._tx.atomic():
            if digest_patch is not None and digest_patch.daily_summary:
                log = self._sync_log(principal, record, _narrative(digest_patch), now=now)
                digest = project_into(digest, log)

            if digest != record.digest:
                audit_changes.append(
                    FieldChange(
                        field="dailyUpdate",
                        old_value=digest_to_dict(record.digest),
                        new_value=digest_to_dict(digest),
                    )
                )
            self._attendance.save(replace(record, digest=digest, **changes))

        logger.info("Attendance %s updated by user=%s", record.attendance_id, principal.user_id)
        self._audit.log(
            principal=principal,
            action=AuditAction.ATTENDANCE_UPDATE,
            entity=AuditEntity.ATTENDANCE,
            entity_id=record.attendance_id,
            timestamp=now,
            changes=audit_changes,
        )
        return self._require_record(record.attendance_id)

    def _sync_log(
        self,
        principal: Principal,
        record: AttendanceRecord,
        draft: DailyUpdateDraft,
        *,
        now: datetime,
    ) -> DailyUpdate:
        """Upsert the Log for the record's (batch, date) from a narrative draft."""

        log = self._daily_updates.get_for_batch_and_date(record.batch_id, record.work_date)
        if log is None:
            log = new_update(
                draft,
                batch_id=record.batch_id,
                work_date=record.work_date,
                posted_by=principal.user_id,
                now=now,
            )
            return replace(log, update_id=self._daily_updates.create(log))

        if not can_edit_daily_update(principal, log):
            raise AuthorizationError("Not authorized to update this daily update")
        log = apply_draft(log, draft, now=now)
        self._daily_updates.save(log)
        return log

    def lock_attendance(self, principal: Principal, attendance_id: int, *, now: datetime | None = None) -> AttendanceRecord:
        now = now or now_local()
        if not principal.is_admin:
            raise AuthorizationError("Only admins can lock attendance")

        record = self._require_record(attendance_id)
        if effective_lock_state(record, now, auto_lock_hours=self._auto_lock_hours).is_locked:
            raise AlreadyLockedError("Attendance is already locked")

        self._attendance.set_lock(attendance_id=record.attendance_id, locked_at=now, locked_by=principal.user_id)
        logger.info("Attendance %s locked by admin=%s", record.attendance_id, principal.user_id)
        self._audit.log(
            principal=principal,
            action=AuditAction.ATTENDANCE_LOCK,
            entity=AuditEntity.ATTENDANCE,
            entity_id=record.attendance_id,
            timestamp=now,
            new_values={"isLocked": True, "lockedAt": now.isoformat(), "lockedBy": principal.user_id},
        )
        return self._require_record(record.attendance_id)

    def get_attendance(self, principal: Principal, attendance_id: int, *, now: datetime | None = None) -> AttendanceRecord:
        record = self._require_record(attendance_id)
        batch = self._batches.get_by_id(record.batch_id)
        if not can_access_attendance(principal, record, batch):
            raise AuthorizationError("Not authorized to view this attendance")
        return self.compute_auto_lock(record, now=now)

    def list_attendance(
        self,
        principal: Principal,
        filters: AttendanceFilter | None = None,
        *,
        now: datetime | None = None,
    ) -> list[AttendanceRecord]:
        filters = filters or AttendanceFilter()
        owned = self._batches.ids_created_by(principal.user_id) if principal.role == Role.MANAGER else ()
        scope = attendance_scope(principal, owned).narrowed_to(filters.batch_id)

        query = AttendanceQuery(
            batch_ids=scope.batch_ids,
            learner_id=scope.learner_id,
            on_date=filters.on_date,
            start_date=filters.start_date,
            end_date=filters.end_date,
            limit=max(1, min(int(filters.limit), MAX_PAGE_LIMIT)),
            offset=max(0, int(filters.offset)),
        )
        return [self.compute_auto_lock(r, now=now) for r in self._attendance.list(query)]

    def get_learner_attendance(
        self,
        principal: Principal,
        learner_id: int,
        *,
        start_date: date | None = None,
        end_date: date | None = None,
        batch_id: int | None = None,
    ) -> LearnerAttendanceReport:
        learner_id = int(learner_id)
        if not can_view_learner_report(principal, learner_id):
            raise AuthorizationError("Not authorized to view other learners' attendance")

        # Unrecorded days are only reported for a batch the learner is enrolled in.
        query = AttendanceQuery(learner_id=learner_id, start_date=start_date, end_date=end_date)
        if batch_id is not None:
            batch = self._batches.get_by_id(int(batch_id))
            enrolled = batch is not None and batch.has_learner(learner_id)
            query = replace(query, batch_ids=(int(batch_id),), learner_id=None if enrolled else learner_id)

        rows = []
        for r in self._attendance.list(query):
            entry = r.entry_for(learner_id)
            rows.append(
                LearnerAttendanceRow(
                    work_date=r.work_date,
                    batch_id=r.batch_id,
                    classroom_id=r.classroom_id,
                    status=entry.status if entry else AttendanceStatus.ABSENT,
                    remarks=entry.remarks if entry else None,
                    recorded=entry is not None,
                    digest=r.digest,
                )
            )

        return LearnerAttendanceReport(
            learner_id=learner_id,
            rows=tuple(rows),
            statistics=learner_statistics(row.status for row in rows if row.recorded),
        )
