from __future__ import annotations

from datetime import date, datetime
from typing import Optional, Sequence

from mysql.connector.errors import IntegrityError

from ..attendance.codec import topic_to_dict, topics_from_list
from ..core.enums import DailyUpdateStatus, Mood, Role
from ..core.exceptions import DuplicateError
from ..database.connection import DatabaseConnection
from ..database.mysql_base import (
    db_cursor,
    dump_json,
    fetchall,
    in_clause,
    is_duplicate_key,
    like_contains,
    load_json,
)
from .codec import challenge_to_dict, challenges_from_list, highlight_to_dict, highlights_from_list
from .model import DailyUpdate, DailyUpdateQuery, Feedback
from .repository import DailyUpdateRepository

_COLUMNS = """
    du.update_id, du.batch_id, du.work_date, du.posted_by, du.daily_summary,
    du.topics_covered, du.learner_highlights, du.challenges, du.overall_mood,
    du.completion_percentage, du.visibility, du.status, du.created_at, du.updated_at
"""


def _content_params(u: DailyUpdate) -> tuple:
    return (
        u.daily_summary,
        dump_json([topic_to_dict(t) for t in u.topics_covered]),
        dump_json([highlight_to_dict(h) for h in u.learner_highlights]),
        dump_json([challenge_to_dict(c) for c in u.challenges]),
        u.overall_mood.value,
        u.completion_percentage,
        dump_json(sorted(r.value for r in u.visibility)),
        u.status.value,
    )


class MySQLDailyUpdateRepository(DailyUpdateRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def _feedback(self, cur, update_ids: list[int]) -> dict[int, tuple[Feedback, ...]]:
        out: dict[int, list[Feedback]] = {uid: [] for uid in update_ids}
        if update_ids:
            cur.execute(
                f"""
                SELECT update_id, given_by, comment, suggestions, rating, given_at
                FROM daily_update_feedback
                WHERE update_id IN ({in_clause(update_ids)})
                ORDER BY feedback_id
                """,
                tuple(update_ids),
            )
            for r in fetchall(cur):
                out[int(r["update_id"])].append(
                    Feedback(
                        given_by=int(r["given_by"]),
                        comment=r["comment"],
                        suggestions=tuple(load_json(r.get("suggestions"), [])),
                        rating=int(r["rating"]),
                        given_at=r["given_at"],
                    )
                )
        return {uid: tuple(items) for uid, items in out.items()}

    @staticmethod
    def _to_update(r: dict, feedback: tuple[Feedback, ...]) -> DailyUpdate:
        completion = r.get("completion_percentage")
        return DailyUpdate(
            update_id=int(r["update_id"]),
            batch_id=int(r["batch_id"]),
            work_date=r["work_date"],
            posted_by=int(r["posted_by"]),
            daily_summary=r["daily_summary"],
            topics_covered=topics_from_list(load_json(r.get("topics_covered"), [])),
            learner_highlights=highlights_from_list(load_json(r.get("learner_highlights"), [])),
            challenges=challenges_from_list(load_json(r.get("challenges"), [])),
            overall_mood=Mood(r.get("overall_mood") or Mood.NEUTRAL.value),
            completion_percentage=float(completion) if completion is not None else 0,
            visibility=frozenset(Role(v) for v in load_json(r.get("visibility"), [])),
            status=DailyUpdateStatus(r["status"]),
            feedback=feedback,
            created_at=r["created_at"],
            updated_at=r.get("updated_at"),
        )

    def _fetch(self, where: str, params: tuple, suffix: str = "") -> list[DailyUpdate]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_COLUMNS} FROM daily_updates du {where} {suffix}", params)
            rows = fetchall(cur)
            feedback = self._feedback(cur, [int(r["update_id"]) for r in rows])
            return [self._to_update(r, feedback[int(r["update_id"])]) for r in rows]

    def get_by_id(self, update_id: int) -> Optional[DailyUpdate]:
        found = self._fetch("WHERE du.update_id=%s", (int(update_id),))
        return found[0] if found else None

    def get_for_batch_and_date(self, batch_id: int, work_date: date) -> Optional[DailyUpdate]:
        found = self._fetch("WHERE du.batch_id=%s AND du.work_date=%s", (int(batch_id), work_date))
        return found[0] if found else None

    def create(self, update: DailyUpdate) -> int:
        try:
            with db_cursor(self._conn_factory) as (_, cur):
                cur.execute(
                    """
                    INSERT INTO daily_updates(
                        batch_id, work_date, posted_by,
                        daily_summary, topics_covered, learner_highlights, challenges, overall_mood,
                        completion_percentage, visibility, status, created_at, updated_at
                    )
                    VALUES(%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s)
                    """,
                    (
                        update.batch_id,
                        update.work_date,
                        update.posted_by,
                        *_content_params(update),
                        update.created_at,
                        update.updated_at or update.created_at,
                    ),
                )
                return int(cur.lastrowid)
        except IntegrityError as e:
            if is_duplicate_key(e):
                raise DuplicateError("Daily update already exists for this date and batch") from e
            raise

    def save(self, update: DailyUpdate) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                UPDATE daily_updates
                SET daily_summary=%s, topics_covered=%s, learner_highlights=%s, challenges=%s, overall_mood=%s,
                    completion_percentage=%s, visibility=%s, status=%s, updated_at=%s
                WHERE update_id=%s
                """,
                (*_content_params(update), update.updated_at, update.update_id),
            )
            return cur.rowcount > 0

    def add_feedback(self, *, update_id: int, feedback: Feedback, updated_at: datetime) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("UPDATE daily_updates SET updated_at=%s WHERE update_id=%s", (updated_at, int(update_id)))
            if cur.rowcount == 0:
                return False
            cur.execute(
                """
                INSERT INTO daily_update_feedback(update_id, given_by, comment, suggestions, rating, given_at)
                VALUES(%s,%s,%s,%s,%s,%s)
                """,
                (
                    int(update_id),
                    feedback.given_by,
                    feedback.comment,
                    dump_json(list(feedback.suggestions)),
                    feedback.rating,
                    feedback.given_at,
                ),
            )
            return True

    def list(self, query: DailyUpdateQuery) -> Sequence[DailyUpdate]:
        clauses: list[str] = []
        params: list[object] = []

        if query.batch_ids is not None:
            if not query.batch_ids:
                return []
            clauses.append(f"du.batch_id IN ({in_clause(query.batch_ids)})")
            params.extend(int(b) for b in query.batch_ids)
        if query.status is not None:
            clauses.append("du.status=%s")
            params.append(query.status.value)
        if query.visible_to is not None:
            clauses.append("JSON_CONTAINS(du.visibility, JSON_QUOTE(%s))")
            params.append(query.visible_to.value)
        if query.start_date is not None:
            clauses.append("du.work_date >= %s")
            params.append(query.start_date)
        if query.end_date is not None:
            clauses.append("du.work_date <= %s")
            params.append(query.end_date)
        if query.search:
            clauses.append("du.daily_summary LIKE %s")
            params.append(like_contains(query.search))

        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        suffix = "ORDER BY du.work_date DESC, du.created_at DESC"
        if query.limit is not None:
            suffix += " LIMIT %s OFFSET %s"
            params.extend([int(query.limit), int(query.offset)])
        return self._fetch(where, tuple(params), suffix)
