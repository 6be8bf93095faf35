from __future__ import annotations

from typing import Optional

from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchone
from .model import Classroom
from .repository import ClassroomRepository


class MySQLClassroomRepository(ClassroomRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get_by_id(self, classroom_id: int) -> Optional[Classroom]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "SELECT classroom_id, name, code, location, is_active FROM classrooms WHERE classroom_id=%s",
                (int(classroom_id),),
            )
            r = fetchone(cur)
            if not r:
                return None
            return Classroom(
                classroom_id=int(r["classroom_id"]),
                name=r["name"],
                code=r["code"],
                location=r.get("location"),
                is_active=bool(r.get("is_active", True)),
            )
