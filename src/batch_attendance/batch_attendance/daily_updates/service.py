from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import date, datetime
from typing import Iterable, Optional

from ..access.policy import (
    MARKER_ROLES,
    can_access_daily_update,
    can_add_feedback,
    can_edit_daily_update,
    can_view_batch_updates,
    daily_update_scope,
)
from ..attendance.locking import compute_auto_lock
from ..attendance.model import AttendanceRecord
from ..attendance.repository import AttendanceRepository
from ..audit.model import FieldChange
from ..audit.sink import AuditTrail
from ..batches.model import Batch
from ..batches.repository import BatchRepository
from ..common.datetime_utils import now_local
from ..common.validators import require_non_empty
from ..core.constants import DEFAULT_AUTO_LOCK_HOURS, DEFAULT_FEEDBACK_RATING, DEFAULT_PAGE_LIMIT, MAX_PAGE_LIMIT
from ..core.enums import AuditAction, AuditEntity, DailyUpdateStatus, Role
from ..core.exceptions import AuthorizationError, NotFoundError, ValidationError
from ..core.principal import Principal
from ..database.connection import TransactionManager
from ..stats.aggregator import DailyUpdateSummary, summarize_updates
from ..users.repository import UserRepository
from .codec import feedback_to_dict, update_to_dict
from .drafts import apply_draft, changed_fields, new_update, touches_projection
from .model import DailyUpdate, DailyUpdateDraft, DailyUpdateQuery, Feedback
from .projection import project_into
from .repository import DailyUpdateRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DailyUpdateFilter:
    batch_id: Optional[int] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    search: Optional[str] = None
    limit: int = DEFAULT_PAGE_LIMIT
    offset: int = 0


@dataclass(frozen=True)
class DailyUpdateView:
    """A Log entry together with the Ledger record of the same day, if any."""

    update: DailyUpdate
    attendance: Optional[AttendanceRecord] = None


class DailyUpdateService:
    def __init__(
        self,
        daily_updates: DailyUpdateRepository,
        attendance: AttendanceRepository,
        batches: BatchRepository,
        users: UserRepository,
        *,
        transactions: TransactionManager | None = None,
        audit: AuditTrail | None = None,
        auto_lock_hours: int = DEFAULT_AUTO_LOCK_HOURS,
    ):
        self._daily_updates = daily_updates
        self._attendance = attendance
        self._batches = batches
        self._users = users
        self._tx = transactions or TransactionManager(None)
        self._audit = audit or AuditTrail(None)
        self._auto_lock_hours = int(auto_lock_hours)

    def _require_batch(self, batch_id: int) -> Batch:
        batch = self._batches.get_by_id(batch_id)
        if not batch:
            raise NotFoundError("Batch not found")
        return batch

    def _require_update(self, update_id: int) -> DailyUpdate:
        update = self._daily_updates.get_by_id(update_id)
        if not update:
            raise NotFoundError("Daily update not found")
        return update

    def _push_projection(self, update: DailyUpdate) -> bool:
        """Refresh the digest of the same-day attendance record; no record is fine."""

        record = self._attendance.get_for_batch_and_date(update.batch_id, update.work_date)
        if record is None:
            return False
        self._attendance.update_digest(
            batch_id=update.batch_id,
            work_date=update.work_date,
            digest=project_into(record.digest, update),
        )
        return True

    def create_daily_update(
        self,
        principal: Principal,
        *,
        batch_id: int,
        work_date: date,
        draft: DailyUpdateDraft,
        now: datetime | None = None,
    ) -> DailyUpdate:
        now = now or now_local()
        if principal.role not in MARKER_ROLES:
            raise AuthorizationError("Not authorized to post daily updates")

        update = new_update(draft, batch_id=batch_id, work_date=work_date, posted_by=principal.user_id, now=now)
        batch = self._require_batch(batch_id)

        with self._tx.atomic():
            update = replace(update, batch_id=batch.batch_id, update_id=self._daily_updates.create(update))
            synced = self._push_projection(update)

        logger.info(
            "Daily update %s posted: batch=%s date=%s by user=%s (attendance synced=%s)",
            update.update_id,
            batch.batch_id,
            work_date,
            principal.user_id,
            synced,
        )
        self._audit.log(
            principal=principal,
            action=AuditAction.DAILY_UPDATE_CREATE,
            entity=AuditEntity.DAILY_UPDATE,
            entity_id=update.update_id,
            timestamp=now,
            new_values=update_to_dict(update),
        )
        return self._require_update(update.update_id)

    def update_daily_update(
        self,
        principal: Principal,
        update_id: int,
        draft: DailyUpdateDraft,
        *,
        now: datetime | None = None,
    ) -> DailyUpdate:
        now = now or now_local()
        existing = self._require_update(update_id)
        if not can_edit_daily_update(principal, existing):
            raise AuthorizationError("Not authorized to update this daily update")

        updated = apply_draft(existing, draft, now=now)
        with self._tx.atomic():
            self._daily_updates.save(updated)
            if touches_projection(existing, updated):
                self._push_projection(updated)

        fields = changed_fields(existing, updated)
        logger.info("Daily update %s changed by user=%s: %s", existing.update_id, principal.user_id, fields)

        before, after = update_to_dict(existing), update_to_dict(updated)
        self._audit.log(
            principal=principal,
            action=AuditAction.DAILY_UPDATE_UPDATE,
            entity=AuditEntity.DAILY_UPDATE,
            entity_id=existing.update_id,
            timestamp=now,
            changes=[
                FieldChange(field=_AUDIT_KEYS[name], old_value=before[_AUDIT_KEYS[name]], new_value=after[_AUDIT_KEYS[name]])
                for name in fields
            ],
        )
        return self._require_update(existing.update_id)

    def add_feedback(
        self,
        principal: Principal,
        update_id: int,
        *,
        comment: str,
        suggestions: Iterable[str] | None = None,
        rating: int | None = None,
        now: datetime | None = None,
    ) -> DailyUpdate:
        now = now or now_local()
        comment = require_non_empty(comment, "Comment")
        if rating is None:
            rating = DEFAULT_FEEDBACK_RATING
        try:
            rating = int(rating)
        except (TypeError, ValueError):
            raise ValidationError("Rating must be between 1 and 5")
        if rating < 1 or rating > 5:
            raise ValidationError("Rating must be between 1 and 5")

        update = self._require_update(update_id)
        if not can_add_feedback(principal, update):
            raise AuthorizationError("Not authorized to add feedback to this daily update")

        feedback = Feedback(
            given_by=principal.user_id,
            comment=comment,
            suggestions=tuple(s.strip() for s in (suggestions or ()) if s and s.strip()),
            rating=rating,
            given_at=now,
        )
        self._daily_updates.add_feedback(update_id=update.update_id, feedback=feedback, updated_at=now)

        logger.info("Feedback on daily update %s by user=%s", update.update_id, principal.user_id)
        self._audit.log(
            principal=principal,
            action=AuditAction.DAILY_UPDATE_UPDATE,
            entity=AuditEntity.DAILY_UPDATE,
            entity_id=update.update_id,
            timestamp=now,
            new_values={"feedback": feedback_to_dict(feedback)},
        )
        return self._require_update(update.update_id)

    def get_daily_update(self, principal: Principal, update_id: int, *, now: datetime | None = None) -> DailyUpdateView:
        update = self._require_update(update_id)
        if not can_access_daily_update(principal, update):
            raise AuthorizationError("Not authorized to view this daily update")

        record = self._attendance.get_for_batch_and_date(update.batch_id, update.work_date)
        if record is not None:
            record = compute_auto_lock(record, now or now_local(), auto_lock_hours=self._auto_lock_hours)
        return DailyUpdateView(update=update, attendance=record)

    def _enrolled_batch_ids(self, principal: Principal) -> tuple[int, ...]:
        user = self._users.get_by_id(principal.user_id)
        return tuple(sorted(user.assigned_batch_ids)) if user else ()

    def list_daily_updates(self, principal: Principal, filters: DailyUpdateFilter | None = None) -> list[DailyUpdate]:
        filters = filters or DailyUpdateFilter()
        owned = self._batches.ids_created_by(principal.user_id) if principal.role == Role.MANAGER else ()
        enrolled = self._enrolled_batch_ids(principal) if principal.role == Role.LEARNER else ()
        scope = daily_update_scope(principal, owned, enrolled).narrowed_to(filters.batch_id)

        query = DailyUpdateQuery(
            batch_ids=scope.batch_ids,
            status=DailyUpdateStatus.PUBLISHED,
            visible_to=scope.visible_to,
            start_date=filters.start_date,
            end_date=filters.end_date,
            search=(filters.search or "").strip() or None,
            limit=max(1, min(int(filters.limit), MAX_PAGE_LIMIT)),
            offset=max(0, int(filters.offset)),
        )
        return list(self._daily_updates.list(query))

    def summarize_batch(
        self,
        principal: Principal,
        batch_id: int,
        *,
        start_date: date | None = None,
        end_date: date | None = None,
    ) -> DailyUpdateSummary:
        batch = self._require_batch(batch_id)
        if not can_view_batch_updates(principal, batch):
            raise AuthorizationError("Not authorized to view this batch's updates")

        updates = self._daily_updates.list(
            DailyUpdateQuery(
                batch_ids=(batch.batch_id,),
                status=DailyUpdateStatus.PUBLISHED,
                start_date=start_date,
                end_date=end_date,
            )
        )
        return summarize_updates(list(updates))

    def resync_attendance_digest(self, principal: Principal, update_id: int) -> Optional[AttendanceRecord]:
        """Re-apply a Log entry onto the same-day attendance digest.

        Repair path for rows written outside this service. Returns the
        refreshed record, or None when that day has no attendance.
        """

        if not principal.is_admin:
            raise AuthorizationError("Only admins can resync daily updates")
        update = self._require_update(update_id)

        with self._tx.atomic():
            synced = self._push_projection(update)
        if not synced:
            return None

        logger.warning("Attendance digest resynced from daily update %s by admin=%s", update.update_id, principal.user_id)
        return self._attendance.get_for_batch_and_date(update.batch_id, update.work_date)


_AUDIT_KEYS = {
    "daily_summary": "dailySummary",
    "topics_covered": "topicsCovered",
    "learner_highlights": "learnerHighlights",
    "challenges": "challenges",
    "overall_mood": "overallMood",
    "completion_percentage": "completionPercentage",
    "visibility": "visibility",
    "status": "status",
}
