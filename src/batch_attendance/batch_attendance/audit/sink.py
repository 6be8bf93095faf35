from __future__ import annotations

import logging
from datetime import datetime
from typing import Iterable, Optional, Protocol

from ..core.enums import AuditAction, AuditEntity
from ..core.principal import Principal
from .model import AuditEntry, FieldChange

logger = logging.getLogger(__name__)


class AuditSink(Protocol):
    """Write-only recorder of mutations."""

    def record(self, entry: AuditEntry) -> None:
        raise NotImplementedError


class AuditTrail:
    """Fire-and-forget front for an AuditSink.

    Services call ``log`` after their transaction commits. A failing sink is
    logged and never fails the request.
    """

    def __init__(self, sink: Optional[AuditSink]):
        self._sink = sink

    def log(
        self,
        *,
        principal: Principal,
        action: AuditAction,
        entity: AuditEntity,
        entity_id: int,
        timestamp: datetime,
        old_values: Optional[dict] = None,
        new_values: Optional[dict] = None,
        changes: Iterable[FieldChange] = (),
    ) -> None:
        if self._sink is None:
            return
        entry = AuditEntry(
            action=action,
            entity=entity,
            entity_id=int(entity_id),
            performed_by=principal.user_id,
            role=principal.role,
            timestamp=timestamp,
            old_values=old_values,
            new_values=new_values,
            changes=tuple(changes),
        )
        try:
            self._sink.record(entry)
        except Exception:
            logger.exception("Audit log error (%s %s #%s)", action.value, entity.value, entity_id)
