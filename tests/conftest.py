"""
Pytest Configuration and Fixtures

This module provides shared fixtures and configuration for all tests.
"""

from typing import Callable, Generator, List, Optional

import pytest

from shardrouter.cluster.router import TopologyRouter
from shardrouter.cluster.selection import FirstReplicaSelector
from shardrouter.config.topology import DatabaseConfig, PartitionConfig, TopologyConfig
from shardrouter.errors import StorageError
from shardrouter.repository.schema import USERS_SCHEMA, ensure_schema
from shardrouter.repository.user_repository import UserRepository
from shardrouter.storage.connection import ExecutableConnection
from shardrouter.storage.sqlite import SQLiteConnector


def make_topology(num_partitions: int = 3, replicas: int = 1,
                  lagging: bool = False) -> TopologyConfig:
    """
    Build a localhost topology.

    Replicas share their primary's database name unless lagging is set, in
    which case each replica gets its own database.
    """
    partitions = []
    for pid in range(num_partitions):
        database = f"shard{pid}"
        primary = DatabaseConfig("localhost", 5440 + pid * 10, "postgres", "postgres", database)
        replica_cfgs = tuple(
            DatabaseConfig(
                "localhost",
                5441 + pid * 10 + j,
                "postgres",
                "postgres",
                f"{database}_replica{j}" if lagging else database,
            )
            for j in range(replicas)
        )
        partitions.append(PartitionConfig(pid, primary, replica_cfgs))
    return TopologyConfig(partitions=tuple(partitions))


# ============================================================================
# Fake Connections
# ============================================================================

class FakeConnection(ExecutableConnection):
    """
    In-memory stand-in for a database connection.

    Records every call and can be told to fail ping() or close().
    """

    dialect = "fake"

    def __init__(self, config: DatabaseConfig, fail_ping: bool = False,
                 fail_close: bool = False):
        super().__init__(config.address)
        self.config = config
        self.fail_ping = fail_ping
        self.fail_close = fail_close
        self.closed = False
        self.calls: List[str] = []
        self.row = (0,)
        self.rows: List[tuple] = []
        self.on_query: Optional[Callable] = None

    def _record(self, query: str, ctx) -> None:
        self.calls.append(query)
        if self.on_query is not None:
            self.on_query(self, query, ctx)

    def ping(self, ctx=None) -> None:
        if self.fail_ping:
            raise StorageError(f"{self.name}: connection refused")

    def execute(self, query, args=(), ctx=None) -> int:
        self._record(query, ctx)
        return 1

    def query_row(self, query, args=(), ctx=None):
        self._record(query, ctx)
        return self.row

    def query_rows(self, query, args=(), ctx=None):
        self._record(query, ctx)
        return list(self.rows)

    def close(self) -> None:
        if self.fail_close:
            raise StorageError(f"{self.name}: close failed")
        self.closed = True


class FakeConnector:
    """
    Connector producing FakeConnections.

    Args:
        fail_open: Addresses whose open raises
        fail_ping: Addresses whose ping raises
        fail_close: Addresses whose close raises
    """

    def __init__(self, fail_open=(), fail_ping=(), fail_close=()):
        self.fail_open = set(fail_open)
        self.fail_ping = set(fail_ping)
        self.fail_close = set(fail_close)
        self.opened: List[FakeConnection] = []

    def __call__(self, config: DatabaseConfig) -> FakeConnection:
        if config.address in self.fail_open:
            raise StorageError(f"{config.address}: could not connect")
        conn = FakeConnection(
            config,
            fail_ping=config.address in self.fail_ping,
            fail_close=config.address in self.fail_close,
        )
        self.opened.append(conn)
        return conn


# ============================================================================
# Topology Fixtures
# ============================================================================

@pytest.fixture
def topology() -> TopologyConfig:
    """Three partitions with one replica each."""
    return make_topology()


@pytest.fixture
def connector() -> FakeConnector:
    return FakeConnector()


@pytest.fixture
def router(topology: TopologyConfig, connector: FakeConnector) -> Generator[TopologyRouter, None, None]:
    """Router over fake connections with deterministic replica selection."""
    rt = TopologyRouter(topology, connector=connector, selector=FirstReplicaSelector())
    yield rt
    rt.shutdown()


# ============================================================================
# SQLite-Backed Fixtures
# ============================================================================

@pytest.fixture
def sqlite_router(tmp_path) -> Generator[TopologyRouter, None, None]:
    """
    Router over SQLite files where each replica shares its primary's file,
    i.e. replication has always caught up.
    """
    rt = TopologyRouter(make_topology(), connector=SQLiteConnector(tmp_path),
                        selector=FirstReplicaSelector())
    ensure_schema(rt)
    yield rt
    rt.shutdown()


@pytest.fixture
def lagging_router(tmp_path) -> Generator[TopologyRouter, None, None]:
    """
    Router over SQLite files where every replica has its own file that only
    changes when replicate() is called.
    """
    rt = TopologyRouter(make_topology(lagging=True), connector=SQLiteConnector(tmp_path),
                        selector=FirstReplicaSelector())
    ensure_schema(rt)
    for partition in rt.all_partitions():
        for replica in partition.replicas:
            for statement in USERS_SCHEMA["sqlite"]:
                replica.execute(statement)
    yield rt
    rt.shutdown()


def replicate(router: TopologyRouter) -> None:
    """Copy every primary's users table onto its replicas."""
    for partition in router.all_partitions():
        rows = partition.primary.query_rows(
            "SELECT id, user_id, name, email, created_at FROM users"
        )
        for replica in partition.replicas:
            replica.execute("DELETE FROM users")
            for row in rows:
                replica.execute(
                    "INSERT INTO users (id, user_id, name, email, created_at) "
                    "VALUES (%s, %s, %s, %s, %s)",
                    row,
                )


@pytest.fixture
def repo(sqlite_router: TopologyRouter) -> UserRepository:
    return UserRepository(sqlite_router)


@pytest.fixture
def lagging_repo(lagging_router: TopologyRouter) -> UserRepository:
    return UserRepository(lagging_router)


# ============================================================================
# Pytest Configuration
# ============================================================================

def pytest_configure(config):
    """Configure custom pytest markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests"
    )
