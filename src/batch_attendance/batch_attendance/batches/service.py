from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Iterable, Optional

from ..access.policy import (
    BATCH_CREATOR_ROLES,
    can_manage_batch,
    can_view_batch,
    can_view_batch_attendance,
)
from ..attendance.locking import compute_auto_lock
from ..attendance.model import AttendanceQuery, AttendanceRecord
from ..attendance.repository import AttendanceRepository
from ..audit.model import FieldChange
from ..audit.sink import AuditTrail
from ..common.datetime_utils import now_local
from ..common.validators import require_max_length, require_non_empty
from ..core.constants import DEFAULT_AUTO_LOCK_HOURS
from ..core.enums import AuditAction, AuditEntity, BatchStatus, Role
from ..core.exceptions import AuthorizationError, DuplicateError, NotFoundError, ValidationError
from ..core.principal import Principal
from ..database.connection import TransactionManager
from ..users.repository import UserRepository
from .model import Batch
from .repository import BatchRepository

logger = logging.getLogger(__name__)


class BatchService:
    """Batch registry: creation, lifecycle and learner roster."""

    def __init__(
        self,
        batches: BatchRepository,
        users: UserRepository,
        attendance: AttendanceRepository,
        *,
        transactions: TransactionManager | None = None,
        audit: AuditTrail | None = None,
        auto_lock_hours: int = DEFAULT_AUTO_LOCK_HOURS,
    ):
        self._batches = batches
        self._users = users
        self._attendance = attendance
        self._tx = transactions or TransactionManager(None)
        self._audit = audit or AuditTrail(None)
        self._auto_lock_hours = int(auto_lock_hours)

    def _require_batch(self, batch_id: int) -> Batch:
        batch = self._batches.get_by_id(batch_id)
        if not batch:
            raise NotFoundError("Batch not found")
        return batch

    def _validate_learners(self, learner_ids: Iterable[int]) -> frozenset[int]:
        ids = frozenset(int(i) for i in learner_ids)
        if not ids:
            return ids
        learners = [u for u in self._users.get_many(ids) if u.role == Role.LEARNER]
        if len(learners) != len(ids):
            raise ValidationError("One or more learners not found or not of LEARNER role")
        return ids

    @staticmethod
    def _validate_dates(start_date: date, end_date: date) -> None:
        if end_date < start_date:
            raise ValidationError("End date must be after start date")

    def create_batch(
        self,
        principal: Principal,
        *,
        code: str,
        name: str,
        client_name: str,
        start_date: date,
        end_date: date,
        learner_ids: Iterable[int] = (),
        description: str | None = None,
        status: BatchStatus = BatchStatus.PLANNING,
        now: datetime | None = None,
    ) -> Batch:
        now = now or now_local()
        if principal.role not in BATCH_CREATOR_ROLES:
            raise AuthorizationError("Not authorized to create batches")

        code = require_non_empty(code, "Batch code").upper()
        name = require_non_empty(name, "Batch name")
        client_name = require_non_empty(client_name, "Client name")
        description = require_max_length(description, "Description", 2000)
        if start_date is None or end_date is None:
            raise ValidationError("Start date and end date are required")
        self._validate_dates(start_date, end_date)
        learners = self._validate_learners(learner_ids)

        if self._batches.get_by_code(code):
            raise DuplicateError(f"Batch code {code} already exists")

        with self._tx.atomic():
            batch_id = self._batches.create(
                code=code,
                name=name,
                client_name=client_name,
                start_date=start_date,
                end_date=end_date,
                status=status,
                created_by=principal.user_id,
                description=description,
            )
            self._users.add_assigned_batch(user_ids=sorted(learners), batch_id=batch_id)

        logger.info("Batch %s (%s) created by user=%s with %s learners", batch_id, code, principal.user_id, len(learners))
        self._audit.log(
            principal=principal,
            action=AuditAction.CREATE,
            entity=AuditEntity.BATCH,
            entity_id=batch_id,
            timestamp=now,
            new_values={"code": code, "name": name, "learners": sorted(learners)},
        )
        return self._require_batch(batch_id)

    def update_batch(
        self,
        principal: Principal,
        batch_id: int,
        *,
        name: str | None = None,
        client_name: str | None = None,
        description: str | None = None,
        start_date: date | None = None,
        end_date: date | None = None,
        status: BatchStatus | None = None,
        learner_ids: Iterable[int] | None = None,
        now: datetime | None = None,
    ) -> Batch:
        now = now or now_local()
        batch = self._require_batch(batch_id)
        if not can_manage_batch(principal, batch):
            raise AuthorizationError("Not authorized to update this batch")

        fields: dict = {}
        if name is not None:
            fields["name"] = require_non_empty(name, "Batch name")
        if client_name is not None:
            fields["client_name"] = require_non_empty(client_name, "Client name")
        if description is not None:
            fields["description"] = require_max_length(description, "Description", 2000)
        if start_date is not None:
            fields["start_date"] = start_date
        if end_date is not None:
            fields["end_date"] = end_date
        self._validate_dates(fields.get("start_date", batch.start_date), fields.get("end_date", batch.end_date))

        if status is not None and status != batch.status:
            if not batch.can_transition_to(status):
                raise ValidationError(f"Cannot change batch status from {batch.status.value} to {status.value}")
            fields["status"] = status

        added: frozenset[int] = frozenset()
        removed: frozenset[int] = frozenset()
        if learner_ids is not None:
            learners = self._validate_learners(learner_ids)
            added = learners - batch.learner_ids
            removed = batch.learner_ids - learners

        with self._tx.atomic():
            if fields:
                self._batches.update(batch.batch_id, **fields)
            self._users.add_assigned_batch(user_ids=sorted(added), batch_id=batch.batch_id)
            self._users.remove_assigned_batch(user_ids=sorted(removed), batch_id=batch.batch_id)

        if fields:
            self._audit.log(
                principal=principal,
                action=AuditAction.UPDATE,
                entity=AuditEntity.BATCH,
                entity_id=batch.batch_id,
                timestamp=now,
                changes=[
                    FieldChange(field=k, old_value=_plain(getattr(batch, k)), new_value=_plain(v))
                    for k, v in fields.items()
                ],
            )
        if added or removed:
            logger.info(
                "Batch %s roster changed by user=%s: +%s -%s",
                batch.batch_id,
                principal.user_id,
                sorted(added),
                sorted(removed),
            )
            self._audit.log(
                principal=principal,
                action=AuditAction.BATCH_ASSIGNMENT,
                entity=AuditEntity.BATCH,
                entity_id=batch.batch_id,
                timestamp=now,
                old_values={"learners": sorted(batch.learner_ids)},
                new_values={"learners": sorted((batch.learner_ids | added) - removed)},
            )
        return self._require_batch(batch.batch_id)

    def get_batch(self, principal: Principal, batch_id: int) -> Batch:
        batch = self._require_batch(batch_id)
        if not can_view_batch(principal, batch):
            raise AuthorizationError("Not authorized to view this batch")
        return batch

    def list_batches(
        self,
        principal: Principal,
        *,
        status: BatchStatus | None = None,
        search: str | None = None,
    ) -> list[Batch]:
        created_by: Optional[int] = None
        batch_ids: Optional[Iterable[int]] = None
        if principal.role == Role.MANAGER:
            created_by = principal.user_id
        elif principal.role == Role.LEARNER:
            user = self._users.get_by_id(principal.user_id)
            batch_ids = sorted(user.assigned_batch_ids) if user else []

        search = (search or "").strip() or None
        return list(self._batches.list(created_by=created_by, batch_ids=batch_ids, status=status, search=search))

    def get_batch_attendance(
        self,
        principal: Principal,
        batch_id: int,
        *,
        start_date: date | None = None,
        end_date: date | None = None,
        now: datetime | None = None,
    ) -> list[AttendanceRecord]:
        now = now or now_local()
        batch = self._require_batch(batch_id)
        if not can_view_batch_attendance(principal, batch):
            raise AuthorizationError("Not authorized to view this batch's attendance")

        records = self._attendance.list(
            AttendanceQuery(batch_ids=(batch.batch_id,), start_date=start_date, end_date=end_date)
        )
        return [compute_auto_lock(r, now, auto_lock_hours=self._auto_lock_hours) for r in records]


def _plain(value):
    if isinstance(value, BatchStatus):
        return value.value
    if isinstance(value, date):
        return value.isoformat()
    return value
