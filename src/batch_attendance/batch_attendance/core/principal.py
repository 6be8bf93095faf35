from __future__ import annotations

from dataclasses import dataclass

from .enums import Role


@dataclass(frozen=True)
class Principal:
    """The authenticated actor behind a request.

    Authentication itself happens elsewhere; services only ever see this pair.
    """

    user_id: int
    role: Role

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN
