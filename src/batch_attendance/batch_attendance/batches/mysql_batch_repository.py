from __future__ import annotations

from datetime import date
from typing import Iterable, Optional, Sequence

from mysql.connector.errors import IntegrityError

from ..core.enums import BatchStatus
from ..core.exceptions import DuplicateError
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, in_clause, is_duplicate_key, like_contains
from .model import Batch
from .repository import BatchRepository

_COLUMNS = "batch_id, code, name, client_name, description, start_date, end_date, status, created_by, created_at, updated_at"

# Columns callers may change through update(); anything else is ignored.
_UPDATABLE = ("name", "client_name", "description", "start_date", "end_date", "status")


class MySQLBatchRepository(BatchRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def _rosters(self, cur, batch_ids: list[int]) -> dict[int, frozenset[int]]:
        out: dict[int, set[int]] = {bid: set() for bid in batch_ids}
        if batch_ids:
            cur.execute(
                f"SELECT batch_id, user_id FROM batch_learners WHERE batch_id IN ({in_clause(batch_ids)})",
                tuple(batch_ids),
            )
            for r in fetchall(cur):
                out[int(r["batch_id"])].add(int(r["user_id"]))
        return {bid: frozenset(ids) for bid, ids in out.items()}

    @staticmethod
    def _to_batch(r: dict, learners: frozenset[int]) -> Batch:
        return Batch(
            batch_id=int(r["batch_id"]),
            code=r["code"],
            name=r["name"],
            client_name=r["client_name"],
            description=r.get("description"),
            start_date=r["start_date"],
            end_date=r["end_date"],
            status=BatchStatus(r["status"]),
            created_by=int(r["created_by"]),
            learner_ids=learners,
            created_at=r.get("created_at"),
            updated_at=r.get("updated_at"),
        )

    def _fetch(self, where: str, params: tuple) -> list[Batch]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_COLUMNS} FROM batches {where}", params)
            rows = fetchall(cur)
            rosters = self._rosters(cur, [int(r["batch_id"]) for r in rows])
            return [self._to_batch(r, rosters[int(r["batch_id"])]) for r in rows]

    def get_by_id(self, batch_id: int) -> Optional[Batch]:
        found = self._fetch("WHERE batch_id=%s", (int(batch_id),))
        return found[0] if found else None

    def get_by_code(self, code: str) -> Optional[Batch]:
        found = self._fetch("WHERE code=%s", (code.strip().upper(),))
        return found[0] if found else None

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
        try:
            with db_cursor(self._conn_factory) as (_, cur):
                cur.execute(
                    """
                    INSERT INTO batches(code, name, client_name, description, start_date, end_date, status, created_by)
                    VALUES(%s,%s,%s,%s,%s,%s,%s,%s)
                    """,
                    (code, name, client_name, description, start_date, end_date, status.value, int(created_by)),
                )
                return int(cur.lastrowid)
        except IntegrityError as e:
            if is_duplicate_key(e):
                raise DuplicateError(f"Batch code {code} already exists") from e
            raise

    def update(self, batch_id: int, **fields) -> bool:
        sets: list[str] = []
        params: list[object] = []
        for name in _UPDATABLE:
            if name not in fields:
                continue
            value = fields[name]
            if isinstance(value, BatchStatus):
                value = value.value
            sets.append(f"{name}=%s")
            params.append(value)
        if not sets:
            return False

        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"UPDATE batches SET {', '.join(sets)} WHERE batch_id=%s",
                (*params, int(batch_id)),
            )
            return cur.rowcount > 0

    def list(
        self,
        *,
        created_by: Optional[int] = None,
        batch_ids: Optional[Iterable[int]] = None,
        status: Optional[BatchStatus] = None,
        search: Optional[str] = None,
    ) -> Sequence[Batch]:
        clauses: list[str] = []
        params: list[object] = []

        if created_by is not None:
            clauses.append("created_by=%s")
            params.append(int(created_by))
        if batch_ids is not None:
            ids = [int(b) for b in batch_ids]
            if not ids:
                return []
            clauses.append(f"batch_id IN ({in_clause(ids)})")
            params.extend(ids)
        if status is not None:
            clauses.append("status=%s")
            params.append(status.value)
        if search:
            clauses.append("(name LIKE %s OR code LIKE %s OR client_name LIKE %s)")
            like = like_contains(search)
            params.extend([like, like, like])

        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        return self._fetch(f"{where} ORDER BY created_at DESC", tuple(params))

    def ids_created_by(self, manager_id: int) -> Sequence[int]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("SELECT batch_id FROM batches WHERE created_by=%s", (int(manager_id),))
            return [int(r["batch_id"]) for r in fetchall(cur)]
