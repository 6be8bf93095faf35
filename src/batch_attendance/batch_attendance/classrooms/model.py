from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class Classroom:
    classroom_id: int
    name: str
    code: str
    location: Optional[str] = None
    is_active: bool = True
