from __future__ import annotations

from typing import Iterable, Optional, Sequence

from ..core.enums import Role
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone, in_clause
from .model import User
from .repository import UserRepository


class MySQLUserRepository(UserRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def _load_batches(self, cur, user_ids: list[int]) -> dict[int, set[int]]:
        out: dict[int, set[int]] = {uid: set() for uid in user_ids}
        if not user_ids:
            return out
        cur.execute(
            f"SELECT user_id, batch_id FROM batch_learners WHERE user_id IN ({in_clause(user_ids)})",
            tuple(user_ids),
        )
        for r in fetchall(cur):
            out[int(r["user_id"])].add(int(r["batch_id"]))
        return out

    @staticmethod
    def _to_user(row: dict, batch_ids: set[int]) -> User:
        return User(
            user_id=int(row["user_id"]),
            full_name=row["full_name"],
            email=row.get("email"),
            role=Role(row["role"]),
            is_active=bool(row.get("is_active", True)),
            assigned_batch_ids=frozenset(batch_ids),
        )

    def get_by_id(self, user_id: int) -> Optional[User]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT user_id, full_name, email, role, is_active
                FROM users
                WHERE user_id=%s
                """,
                (int(user_id),),
            )
            row = fetchone(cur)
            if not row:
                return None
            batches = self._load_batches(cur, [int(row["user_id"])])
            return self._to_user(row, batches[int(row["user_id"])])

    def get_many(self, user_ids: Iterable[int]) -> Sequence[User]:
        ids = sorted({int(u) for u in user_ids})
        if not ids:
            return []
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT user_id, full_name, email, role, is_active
                FROM users
                WHERE user_id IN ({in_clause(ids)})
                """,
                tuple(ids),
            )
            rows = fetchall(cur)
            batches = self._load_batches(cur, [int(r["user_id"]) for r in rows])
            return [self._to_user(r, batches[int(r["user_id"])]) for r in rows]

    def add_assigned_batch(self, *, user_ids: Iterable[int], batch_id: int) -> None:
        rows = [(int(u), int(batch_id)) for u in user_ids]
        if not rows:
            return
        with db_cursor(self._conn_factory) as (_, cur):
            cur.executemany(
                "INSERT IGNORE INTO batch_learners(user_id, batch_id) VALUES(%s,%s)",
                rows,
            )

    def remove_assigned_batch(self, *, user_ids: Iterable[int], batch_id: int) -> None:
        ids = [int(u) for u in user_ids]
        if not ids:
            return
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"DELETE FROM batch_learners WHERE batch_id=%s AND user_id IN ({in_clause(ids)})",
                (int(batch_id), *ids),
            )
