from __future__ import annotations

from datetime import date
from typing import Iterable, Optional, Protocol, Sequence

from ..core.enums import BatchStatus
from .model import Batch


class BatchRepository(Protocol):
    """Batch storage. The learner roster is read from the shared
    batch/learner link that ``UserRepository`` maintains."""

    def get_by_id(self, batch_id: int) -> Optional[Batch]:
        raise NotImplementedError

    def get_by_code(self, code: str) -> Optional[Batch]:
        raise NotImplementedError

    def create(
        self,
        *,
        code: str,
        name: str,
        client_name: str,
        start_date: date,
        end_date: date,
        status: BatchStatus,
        created_by: int,
        description: Optional[str] = None,
    ) -> int:
        """Insert a batch; raises DuplicateError when the code is taken."""

        raise NotImplementedError

    def update(self, batch_id: int, **fields) -> bool:
        raise NotImplementedError

    def list(
        self,
        *,
        created_by: Optional[int] = None,
        batch_ids: Optional[Iterable[int]] = None,
        status: Optional[BatchStatus] = None,
        search: Optional[str] = None,
    ) -> Sequence[Batch]:
        raise NotImplementedError

    def ids_created_by(self, manager_id: int) -> Sequence[int]:
        raise NotImplementedError
