from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator, Optional

import mysql.connector

logger = logging.getLogger(__name__)


@dataclass
class DBConfig:
    host: str
    port: int
    user: str
    password: str
    database: str


class DatabaseConnection:
    """DB connection factory handed to every repository.

    Note: We create short-lived connections per operation, except inside
    ``transaction()`` where all repository calls on the current thread share
    one connection and commit together.
    """

    def __init__(self, config: DBConfig):
        self._config = config
        self._local = threading.local()

    def connect(self):
        return mysql.connector.connect(
            host=self._config.host,
            port=int(self._config.port),
            user=self._config.user,
            password=self._config.password,
            database=self._config.database,
        )

    def active_connection(self):
        return getattr(self._local, "conn", None)

    @contextmanager
    def transaction(self) -> Iterator[None]:
        if self.active_connection() is not None:
            # Nested call joins the outer transaction.
            yield
            return

        conn = self.connect()
        self._local.conn = conn
        try:
            conn.start_transaction()
            yield
            conn.commit()
        except Exception:
            logger.debug("Rolling back transaction", exc_info=True)
            conn.rollback()
            raise
        finally:
            self._local.conn = None
            conn.close()


class TransactionManager:
    """Service-facing handle: ``with tx.atomic(): ...``."""

    def __init__(self, conn_factory: Optional[DatabaseConnection]):
        self._conn_factory = conn_factory

    @contextmanager
    def atomic(self) -> Iterator[None]:
        if self._conn_factory is None:
            yield
            return
        with self._conn_factory.transaction():
            yield
