from __future__ import annotations

from typing import Iterable, Optional, Protocol, Sequence

from .model import User


class UserRepository(Protocol):
    """Repository interface for User.

    Note (DIP): services depend on this interface, not on a concrete database.
    """

    def get_by_id(self, user_id: int) -> Optional[User]:
        raise NotImplementedError

    def get_many(self, user_ids: Iterable[int]) -> Sequence[User]:
        raise NotImplementedError

    def add_assigned_batch(self, *, user_ids: Iterable[int], batch_id: int) -> None:
        raise NotImplementedError

    def remove_assigned_batch(self, *, user_ids: Iterable[int], batch_id: int) -> None:
        raise NotImplementedError
