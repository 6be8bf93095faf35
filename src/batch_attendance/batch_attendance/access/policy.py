"""Authorization rules for batches, attendance and daily updates.

Everything here is a pure function of the principal and the records it
touches; services load the records and call in. Route-level role gates are
expressed with the role sets below.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Optional, Tuple

from ..attendance.locking import is_locked
from ..attendance.model import AttendanceRecord
from ..batches.model import Batch
from ..core.constants import DEFAULT_AUTO_LOCK_HOURS
from ..core.enums import Role
from ..core.principal import Principal
from ..daily_updates.model import DailyUpdate

ALL_ROLES = frozenset(Role)
MARKER_ROLES = frozenset({Role.TRAINER, Role.TA})
ATTENDANCE_EDITOR_ROLES = MARKER_ROLES | {Role.ADMIN}
BATCH_CREATOR_ROLES = frozenset({Role.ADMIN, Role.MANAGER})
FEEDBACK_ROLES = frozenset({Role.MANAGER, Role.TEAM_LEADER})
BATCH_OVERSIGHT_ROLES = frozenset({Role.ADMIN, Role.MANAGER, Role.TEAM_LEADER})


@dataclass(frozen=True)
class ListScope:
    """Restrictions a principal's list queries must carry.

    ``batch_ids=None`` means unrestricted; an empty tuple matches nothing.
    """

    batch_ids: Optional[Tuple[int, ...]] = None
    learner_id: Optional[int] = None
    visible_to: Optional[Role] = None

    def narrowed_to(self, batch_id: Optional[int]) -> "ListScope":
        """Apply an explicit batch filter; it can only shrink the scope."""
        if batch_id is None:
            return self
        if self.batch_ids is not None and int(batch_id) not in self.batch_ids:
            return ListScope(batch_ids=(), learner_id=self.learner_id, visible_to=self.visible_to)
        return ListScope(batch_ids=(int(batch_id),), learner_id=self.learner_id, visible_to=self.visible_to)


def _owns(principal: Principal, batch: Optional[Batch]) -> bool:
    return batch is not None and batch.created_by == principal.user_id


# Attendance


def can_access_attendance(principal: Principal, record: AttendanceRecord, batch: Optional[Batch]) -> bool:
    if principal.role == Role.ADMIN:
        return True
    if principal.role == Role.LEARNER:
        return record.has_learner(principal.user_id)
    if principal.role == Role.MANAGER:
        return _owns(principal, batch)
    # TEAM_LEADER, TRAINER, TA are gated by role at the route.
    return True


def can_mutate_attendance(
    principal: Principal,
    record: AttendanceRecord,
    now: datetime,
    *,
    auto_lock_hours: int = DEFAULT_AUTO_LOCK_HOURS,
) -> bool:
    if is_locked(record, now, auto_lock_hours=auto_lock_hours) and principal.role != Role.ADMIN:
        return False
    return principal.role in ATTENDANCE_EDITOR_ROLES


def can_view_learner_report(principal: Principal, learner_id: int) -> bool:
    return not (principal.role == Role.LEARNER and principal.user_id != int(learner_id))


def attendance_scope(principal: Principal, owned_batch_ids: Iterable[int] = ()) -> ListScope:
    if principal.role == Role.LEARNER:
        return ListScope(learner_id=principal.user_id)
    if principal.role == Role.MANAGER:
        return ListScope(batch_ids=tuple(int(b) for b in owned_batch_ids))
    return ListScope()


# Daily updates


def can_access_daily_update(principal: Principal, update: DailyUpdate) -> bool:
    if principal.role == Role.ADMIN:
        return True
    if update.posted_by == principal.user_id:
        return True
    return update.is_visible_to(principal.role)


def can_edit_daily_update(principal: Principal, update: DailyUpdate) -> bool:
    return principal.role == Role.ADMIN or update.posted_by == principal.user_id


def can_add_feedback(principal: Principal, update: DailyUpdate) -> bool:
    return principal.role in FEEDBACK_ROLES and update.is_visible_to(principal.role)


def daily_update_scope(
    principal: Principal,
    owned_batch_ids: Iterable[int] = (),
    enrolled_batch_ids: Iterable[int] = (),
) -> ListScope:
    if principal.role == Role.MANAGER:
        return ListScope(batch_ids=tuple(int(b) for b in owned_batch_ids), visible_to=Role.MANAGER)
    if principal.role == Role.TEAM_LEADER:
        return ListScope(visible_to=Role.TEAM_LEADER)
    if principal.role == Role.LEARNER:
        # Learners see their batches' updates without the visibility check.
        return ListScope(batch_ids=tuple(int(b) for b in enrolled_batch_ids))
    return ListScope()


# Batches


def can_view_batch(principal: Principal, batch: Batch) -> bool:
    if principal.role == Role.ADMIN:
        return True
    if principal.role == Role.MANAGER:
        return _owns(principal, batch)
    if principal.role == Role.LEARNER:
        return batch.has_learner(principal.user_id)
    return True


def can_manage_batch(principal: Principal, batch: Batch) -> bool:
    if principal.role == Role.ADMIN:
        return True
    return principal.role == Role.MANAGER and _owns(principal, batch)


def _oversees(principal: Principal, batch: Batch) -> bool:
    if principal.role in (Role.ADMIN, Role.TEAM_LEADER):
        return True
    return principal.role == Role.MANAGER and _owns(principal, batch)


def can_view_batch_attendance(principal: Principal, batch: Batch) -> bool:
    """Batch-wide attendance listing and batch statistics."""
    return _oversees(principal, batch)


def can_view_batch_updates(principal: Principal, batch: Batch) -> bool:
    """Daily-update summaries of a batch."""
    return _oversees(principal, batch)
