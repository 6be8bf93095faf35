from __future__ import annotations

from typing import Optional, Protocol

from .model import Classroom


class ClassroomRepository(Protocol):
    def get_by_id(self, classroom_id: int) -> Optional[Classroom]:
        raise NotImplementedError
