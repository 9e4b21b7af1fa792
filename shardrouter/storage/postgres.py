"""
PostgreSQL Adapter

ExecutableConnection backed by a psycopg2 ThreadedConnectionPool. Every call
borrows a dedicated connection from the pool, so one PostgresConnection can
serve any number of threads. When every pooled connection is busy, callers
wait for one to be returned (bounded by their context's deadline) instead of
failing.
"""

import logging
import threading
from typing import Any, Callable, List, Optional, Sequence

import psycopg2
from psycopg2 import pool as pg_pool

from ..config.settings import settings
from ..config.topology import DatabaseConfig
from ..context import OperationContext, watch
from .connection import ExecutableConnection, raise_storage_error

logger = logging.getLogger(__name__)


class PostgresConnection(ExecutableConnection):
    """
    Pooled connection to one PostgreSQL server.

    Usage:
        conn = PostgresConnection(DatabaseConfig("localhost", 5440, "postgres",
                                                 "postgres", "shard0"))
        conn.ping()
        conn.query_row("SELECT COUNT(*) FROM users")
    """

    dialect = "postgresql"

    def __init__(
            self,
            config: DatabaseConfig,
            min_connections: int = None,
            max_connections: int = None,
            connect_timeout: int = None,
    ):
        """
        Open the pool.

        Args:
            config: Server to connect to
            min_connections: Connections opened eagerly (default from settings)
            max_connections: Pool ceiling (default from settings)
            connect_timeout: Seconds to wait for a new connection (default from settings)

        Raises:
            StorageError: the pool could not be created
        """
        super().__init__(config.address)
        self.config = config
        minconn = min_connections if min_connections is not None else settings.POOL_MIN_CONNECTIONS
        maxconn = max_connections if max_connections is not None else settings.POOL_MAX_CONNECTIONS
        timeout = connect_timeout if connect_timeout is not None else settings.CONNECT_TIMEOUT

        # ThreadedConnectionPool raises PoolError instead of blocking when exhausted
        self._slots = threading.BoundedSemaphore(maxconn)

        try:
            self._pool = pg_pool.ThreadedConnectionPool(
                minconn,
                maxconn,
                dsn=config.connection_string(),
                connect_timeout=timeout,
            )
        except psycopg2.Error as e:
            raise_storage_error(self.name, None, e)

        logger.debug(f"Opened pool for {self.name} ({minconn}-{maxconn} connections)")

    def _acquire_slot(self, ctx: Optional[OperationContext]) -> None:
        """
        Wait until the pool has a connection to spare.

        Raises:
            OperationCancelledError / OperationTimeoutError: ctx finished first
        """
        if ctx is None:
            self._slots.acquire()
            return

        while True:
            ctx.check()
            remaining = ctx.remaining()
            step = 0.05 if remaining is None else min(0.05, remaining)
            if self._slots.acquire(timeout=step):
                return

    def _run(self, query: str, args: Sequence[Any],
             ctx: Optional[OperationContext], fetch: Callable):
        self._acquire_slot(ctx)
        try:
            try:
                conn = self._pool.getconn()
            except psycopg2.Error as e:
                raise_storage_error(self.name, ctx, e)

            discard = False
            try:
                with watch(ctx, conn.cancel):
                    with conn.cursor() as cur:
                        cur.execute(query, tuple(args))
                        result = fetch(cur)
                    conn.commit()
                return result
            except psycopg2.Error as e:
                discard = bool(conn.closed)
                if not discard:
                    try:
                        conn.rollback()
                    except psycopg2.Error:
                        discard = True
                raise_storage_error(self.name, ctx, e)
            finally:
                self._pool.putconn(conn, close=discard)
        finally:
            self._slots.release()

    def ping(self, ctx: Optional[OperationContext] = None) -> None:
        self._run("SELECT 1", (), ctx, lambda cur: cur.fetchone())

    def execute(self, query: str, args: Sequence[Any] = (),
                ctx: Optional[OperationContext] = None) -> int:
        return self._run(query, args, ctx, lambda cur: cur.rowcount)

    def query_row(self, query: str, args: Sequence[Any] = (),
                  ctx: Optional[OperationContext] = None) -> Optional[tuple]:
        return self._run(query, args, ctx, lambda cur: cur.fetchone())

    def query_rows(self, query: str, args: Sequence[Any] = (),
                   ctx: Optional[OperationContext] = None) -> List[tuple]:
        return self._run(query, args, ctx, lambda cur: cur.fetchall())

    def close(self) -> None:
        try:
            self._pool.closeall()
        except psycopg2.Error as e:
            raise_storage_error(self.name, None, e)
        logger.debug(f"Closed pool for {self.name}")


def postgres_connector(config: DatabaseConfig) -> PostgresConnection:
    """Default connector: a pooled PostgreSQL connection built from settings."""
    return PostgresConnection(config)
