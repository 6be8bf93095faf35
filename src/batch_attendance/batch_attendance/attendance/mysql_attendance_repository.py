from __future__ import annotations

from datetime import date, datetime
from typing import Optional, Sequence

from mysql.connector.errors import IntegrityError

from ..core.enums import AttendanceStatus, LearnerPerformance
from ..core.exceptions import DuplicateError
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, dump_json, fetchall, in_clause, is_duplicate_key, load_json
from .codec import assignment_to_dict, assignments_from_list, topic_to_dict, topics_from_list
from .model import AttendanceEntry, AttendanceQuery, AttendanceRecord, DailyDigest
from .repository import AttendanceRepository

_COLUMNS = """
    ar.attendance_id, ar.batch_id, ar.work_date, ar.classroom_id,
    ar.session_start, ar.session_end,
    ar.covered_topics, ar.trainer_remarks, ar.assignments_given, ar.learner_performance, ar.issues_description,
    ar.is_locked, ar.locked_at, ar.locked_by,
    ar.created_by, ar.updated_by, ar.created_at, ar.updated_at
"""


def _digest_params(d: DailyDigest) -> tuple:
    return (
        dump_json([topic_to_dict(t) for t in d.covered_topics]),
        d.trainer_remarks,
        dump_json([assignment_to_dict(a) for a in d.assignments_given]),
        d.learner_performance.value,
        d.issues_description,
    )


class MySQLAttendanceRepository(AttendanceRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def _entries(self, cur, attendance_ids: list[int]) -> dict[int, tuple[AttendanceEntry, ...]]:
        out: dict[int, list[AttendanceEntry]] = {aid: [] for aid in attendance_ids}
        if attendance_ids:
            cur.execute(
                f"""
                SELECT attendance_id, learner_id, status, remarks, marked_by, marked_at
                FROM attendance_entries
                WHERE attendance_id IN ({in_clause(attendance_ids)})
                ORDER BY attendance_id, position
                """,
                tuple(attendance_ids),
            )
            for r in fetchall(cur):
                out[int(r["attendance_id"])].append(
                    AttendanceEntry(
                        learner_id=int(r["learner_id"]),
                        status=AttendanceStatus(r["status"]),
                        remarks=r.get("remarks"),
                        marked_by=int(r["marked_by"]),
                        marked_at=r["marked_at"],
                    )
                )
        return {aid: tuple(items) for aid, items in out.items()}

    @staticmethod
    def _to_record(r: dict, entries: tuple[AttendanceEntry, ...]) -> AttendanceRecord:
        return AttendanceRecord(
            attendance_id=int(r["attendance_id"]),
            batch_id=int(r["batch_id"]),
            work_date=r["work_date"],
            classroom_id=int(r["classroom_id"]),
            entries=entries,
            digest=DailyDigest(
                covered_topics=topics_from_list(load_json(r.get("covered_topics"), [])),
                trainer_remarks=r.get("trainer_remarks"),
                assignments_given=assignments_from_list(load_json(r.get("assignments_given"), [])),
                learner_performance=LearnerPerformance(r.get("learner_performance") or "AVERAGE"),
                issues_description=r.get("issues_description"),
            ),
            session_start=r.get("session_start"),
            session_end=r.get("session_end"),
            is_locked=bool(r.get("is_locked")),
            locked_at=r.get("locked_at"),
            locked_by=int(r["locked_by"]) if r.get("locked_by") is not None else None,
            created_by=int(r["created_by"]),
            updated_by=int(r["updated_by"]) if r.get("updated_by") is not None else None,
            created_at=r["created_at"],
            updated_at=r.get("updated_at"),
        )

    def _fetch(self, where: str, params: tuple, suffix: str = "") -> list[AttendanceRecord]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_COLUMNS} FROM attendance_records ar {where} {suffix}", params)
            rows = fetchall(cur)
            entries = self._entries(cur, [int(r["attendance_id"]) for r in rows])
            return [self._to_record(r, entries[int(r["attendance_id"])]) for r in rows]

    def get_by_id(self, attendance_id: int) -> Optional[AttendanceRecord]:
        found = self._fetch("WHERE ar.attendance_id=%s", (int(attendance_id),))
        return found[0] if found else None

    def get_for_batch_and_date(self, batch_id: int, work_date: date) -> Optional[AttendanceRecord]:
        found = self._fetch("WHERE ar.batch_id=%s AND ar.work_date=%s", (int(batch_id), work_date))
        return found[0] if found else None

    @staticmethod
    def _write_entries(cur, attendance_id: int, entries: Sequence[AttendanceEntry]) -> None:
        cur.execute("DELETE FROM attendance_entries WHERE attendance_id=%s", (attendance_id,))
        if not entries:
            return
        cur.executemany(
            """
            INSERT INTO attendance_entries(attendance_id, position, learner_id, status, remarks, marked_by, marked_at)
            VALUES(%s,%s,%s,%s,%s,%s,%s)
            """,
            [
                (attendance_id, pos, e.learner_id, e.status.value, e.remarks, e.marked_by, e.marked_at)
                for pos, e in enumerate(entries)
            ],
        )

    def create(
        self,
        *,
        batch_id: int,
        work_date: date,
        classroom_id: int,
        entries: Sequence[AttendanceEntry],
        digest: DailyDigest,
        session_start: Optional[datetime],
        session_end: Optional[datetime],
        created_by: int,
        created_at: datetime,
    ) -> int:
        try:
            with db_cursor(self._conn_factory) as (_, cur):
                cur.execute(
                    """
                    INSERT INTO attendance_records(
                        batch_id, work_date, classroom_id, session_start, session_end,
                        covered_topics, trainer_remarks, assignments_given, learner_performance, issues_description,
                        created_by, created_at, updated_at
                    )
                    VALUES(%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s)
                    """,
                    (
                        int(batch_id),
                        work_date,
                        int(classroom_id),
                        session_start,
                        session_end,
                        *_digest_params(digest),
                        int(created_by),
                        created_at,
                        created_at,
                    ),
                )
                attendance_id = int(cur.lastrowid)
                self._write_entries(cur, attendance_id, entries)
                return attendance_id
        except IntegrityError as e:
            if is_duplicate_key(e):
                raise DuplicateError("Attendance already marked for this date and batch") from e
            raise

    def save(self, record: AttendanceRecord) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                UPDATE attendance_records
                SET session_start=%s, session_end=%s,
                    covered_topics=%s, trainer_remarks=%s, assignments_given=%s,
                    learner_performance=%s, issues_description=%s,
                    is_locked=%s, locked_at=%s, locked_by=%s,
                    updated_by=%s, updated_at=%s
                WHERE attendance_id=%s
                """,
                (
                    record.session_start,
                    record.session_end,
                    *_digest_params(record.digest),
                    int(record.is_locked),
                    record.locked_at,
                    record.locked_by,
                    record.updated_by,
                    record.updated_at,
                    record.attendance_id,
                ),
            )
            found = cur.rowcount > 0
            self._write_entries(cur, record.attendance_id, record.entries)
            return found

    def update_digest(self, *, batch_id: int, work_date: date, digest: DailyDigest) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                UPDATE attendance_records
                SET covered_topics=%s, trainer_remarks=%s, assignments_given=%s,
                    learner_performance=%s, issues_description=%s
                WHERE batch_id=%s AND work_date=%s
                """,
                (*_digest_params(digest), int(batch_id), work_date),
            )
            return cur.rowcount > 0

    def set_lock(self, *, attendance_id: int, locked_at: datetime, locked_by: Optional[int]) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "UPDATE attendance_records SET is_locked=1, locked_at=%s, locked_by=%s WHERE attendance_id=%s",
                (locked_at, locked_by, int(attendance_id)),
            )
            return cur.rowcount > 0

    def list(self, query: AttendanceQuery) -> Sequence[AttendanceRecord]:
        clauses: list[str] = []
        params: list[object] = []

        if query.batch_ids is not None:
            if not query.batch_ids:
                return []
            clauses.append(f"ar.batch_id IN ({in_clause(query.batch_ids)})")
            params.extend(int(b) for b in query.batch_ids)
        if query.learner_id is not None:
            clauses.append(
                "EXISTS (SELECT 1 FROM attendance_entries ae "
                "WHERE ae.attendance_id = ar.attendance_id AND ae.learner_id=%s)"
            )
            params.append(int(query.learner_id))
        if query.on_date is not None:
            clauses.append("ar.work_date=%s")
            params.append(query.on_date)
        if query.start_date is not None:
            clauses.append("ar.work_date >= %s")
            params.append(query.start_date)
        if query.end_date is not None:
            clauses.append("ar.work_date <= %s")
            params.append(query.end_date)

        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        suffix = "ORDER BY ar.work_date DESC, ar.attendance_id DESC"
        if query.limit is not None:
            suffix += " LIMIT %s OFFSET %s"
            params.extend([int(query.limit), int(query.offset)])
        return self._fetch(where, tuple(params), suffix)
