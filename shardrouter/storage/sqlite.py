"""
SQLite Adapter

ExecutableConnection backed by a file-based sqlite3 database. Useful for
running the router locally without a PostgreSQL cluster, and used by the
test suite.

SQLiteConnector maps every server of a topology to <directory>/<database>.sqlite3.
A primary and a replica that name the same database share one file, which
behaves like a replica that is always caught up. Give a replica a different
database name to model a replica that has not received any writes yet.
"""

import logging
import sqlite3
import threading
from pathlib import Path
from typing import Any, Callable, List, Optional, Sequence

from ..config.topology import DatabaseConfig
from ..context import OperationContext, watch
from .connection import ExecutableConnection, raise_storage_error

logger = logging.getLogger(__name__)


class SQLiteConnection(ExecutableConnection):
    """
    Connection to one SQLite database file.

    sqlite3 connections are not safe for concurrent use, so calls are
    serialized with a lock.
    """

    dialect = "sqlite"

    def __init__(self, path, name: str = None, timeout: float = 5.0):
        """
        Args:
            path: Database file path (created if missing)
            name: Label for logs (defaults to the path)
            timeout: Seconds to wait on a locked database file

        Raises:
            StorageError: the file could not be opened
        """
        self.path = str(path)
        super().__init__(name or self.path)
        self._lock = threading.Lock()
        try:
            self._conn = sqlite3.connect(self.path, timeout=timeout, check_same_thread=False)
        except sqlite3.Error as e:
            raise_storage_error(self.name, None, e)

    @staticmethod
    def _translate(query: str) -> str:
        return query.replace("%s", "?")

    def _run(self, query: str, args: Sequence[Any],
             ctx: Optional[OperationContext], fetch: Callable):
        with self._lock:
            try:
                with watch(ctx, self._conn.interrupt):
                    cur = self._conn.execute(self._translate(query), tuple(args))
                    try:
                        result = fetch(cur)
                    finally:
                        cur.close()
                    self._conn.commit()
                return result
            except sqlite3.Error as e:
                try:
                    self._conn.rollback()
                except sqlite3.Error as rollback_error:
                    logger.debug(f"Rollback on {self.name} failed: {rollback_error}")
                raise_storage_error(self.name, ctx, e)

    def ping(self, ctx: Optional[OperationContext] = None) -> None:
        self._run("SELECT 1", (), ctx, lambda cur: cur.fetchone())

    def execute(self, query: str, args: Sequence[Any] = (),
                ctx: Optional[OperationContext] = None) -> int:
        return self._run(query, args, ctx, lambda cur: cur.rowcount)

    def query_row(self, query: str, args: Sequence[Any] = (),
                  ctx: Optional[OperationContext] = None) -> Optional[tuple]:
        # Drain the cursor so RETURNING statements are complete before commit
        def first(cur):
            rows = cur.fetchall()
            return rows[0] if rows else None
        return self._run(query, args, ctx, first)

    def query_rows(self, query: str, args: Sequence[Any] = (),
                   ctx: Optional[OperationContext] = None) -> List[tuple]:
        return self._run(query, args, ctx, lambda cur: cur.fetchall())

    def close(self) -> None:
        with self._lock:
            try:
                self._conn.close()
            except sqlite3.Error as e:
                raise_storage_error(self.name, None, e)


class SQLiteConnector:
    """
    Connector that stores each database of a topology in its own file.

    Usage:
        router = TopologyRouter(topology, connector=SQLiteConnector(tmp_dir))
    """

    def __init__(self, directory):
        self.directory = Path(directory)

    def path_for(self, config: DatabaseConfig) -> Path:
        return self.directory / f"{config.database}.sqlite3"

    def __call__(self, config: DatabaseConfig) -> SQLiteConnection:
        self.directory.mkdir(parents=True, exist_ok=True)
        path = self.path_for(config)
        logger.debug(f"Opening {config.address} as {path}")
        return SQLiteConnection(path, name=config.address)
