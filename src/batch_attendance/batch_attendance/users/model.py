from __future__ import annotations

from dataclasses import dataclass, field
from typing import FrozenSet, Optional

from ..core.enums import Role


@dataclass(frozen=True)
class User:
    """Domain entity: User.

    Note: only the fields the attendance core reads; credentials live with the
    authentication service.
    """

    user_id: int
    full_name: str
    email: Optional[str]
    role: Role
    is_active: bool = True
    assigned_batch_ids: FrozenSet[int] = field(default_factory=frozenset)
