from __future__ import annotations

from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, dump_json
from .model import AuditEntry
from .sink import AuditSink


class MySQLAuditSink(AuditSink):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def record(self, entry: AuditEntry) -> None:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO audit_logs(
                    action, entity, entity_id, performed_by, user_role,
                    old_values, new_values, changes, created_at
                )
                VALUES(%s,%s,%s,%s,%s,%s,%s,%s,%s)
                """,
                (
                    entry.action.value,
                    entry.entity.value,
                    entry.entity_id,
                    entry.performed_by,
                    entry.role.value,
                    dump_json(entry.old_values),
                    dump_json(entry.new_values),
                    dump_json(
                        [{"field": c.field, "oldValue": c.old_value, "newValue": c.new_value} for c in entry.changes]
                    ),
                    entry.timestamp,
                ),
            )
