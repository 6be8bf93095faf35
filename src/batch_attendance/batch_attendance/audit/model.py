from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional, Tuple

from ..core.enums import AuditAction, AuditEntity, Role


@dataclass(frozen=True)
class FieldChange:
    field: str
    old_value: Any
    new_value: Any


@dataclass(frozen=True)
class AuditEntry:
    action: AuditAction
    entity: AuditEntity
    entity_id: int
    performed_by: int
    role: Role
    timestamp: datetime
    old_values: Optional[dict] = None
    new_values: Optional[dict] = None
    changes: Tuple[FieldChange, ...] = ()
