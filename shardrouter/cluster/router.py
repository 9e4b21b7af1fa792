"""
Topology Router Module

Owns every partition's primary and replica connections and decides which
one serves a request.

Responsibilities:
- Map a shard key to its partition (FNV-1a, see hashing.py)
- Hand out the primary for writes and a replica (or the primary) for reads
- Open and probe all connections at construction, close them at shutdown
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Tuple

from ..config.settings import settings
from ..config.topology import TopologyConfig
from ..errors import (
    ConnectivityError,
    OutOfRangeError,
    RouterClosedError,
    ShutdownError,
)
from ..storage.connection import Connector, ExecutableConnection
from ..storage.postgres import postgres_connector
from .hashing import partition_for_key
from .rwlock import ReadWriteLock
from .selection import ReplicaSelector, get_selector

logger = logging.getLogger(__name__)


class Intent(Enum):
    """What the caller is about to do with a connection."""
    WRITE = "write"
    READ = "read"


@dataclass(frozen=True)
class Partition:
    """
    One partition of the topology.

    Attributes:
        partition_id: Index in [0, N)
        primary: The writable connection
        replicas: Read-only connections, in declared order
    """
    partition_id: int
    primary: ExecutableConnection
    replicas: Tuple[ExecutableConnection, ...] = ()

    def connections(self) -> List[Tuple[str, ExecutableConnection]]:
        """(role, connection) pairs: primary first, then replicas."""
        pairs = [("primary", self.primary)]
        pairs.extend((f"replica {i}", replica) for i, replica in enumerate(self.replicas))
        return pairs


def _open_and_ping(connector: Connector, config, partition_id: int, role: str,
                   opened: List[Tuple[str, ExecutableConnection]]) -> ExecutableConnection:
    try:
        conn = connector(config)
    except Exception as e:
        raise ConnectivityError(partition_id, role, str(e)) from e

    # Tracked before the probe so a connection that fails ping is still released
    opened.append((f"partition {partition_id} {role}", conn))
    try:
        conn.ping()
    except Exception as e:
        raise ConnectivityError(partition_id, role, f"ping failed: {e}") from e

    logger.debug(f"Connected to {role} for partition {partition_id} ({config.address})")
    return conn


class TopologyRouter:
    """
    Routes shard keys to partition connections.

    The partition list is built once and never modified. Hashing needs no
    locking at all; reading the partition list takes the shared side of a
    reader-writer lock, which only shutdown() takes exclusively.

    shutdown() must not be called while other threads still have
    operations in flight.

    Usage:
        with TopologyRouter(default_topology()) as router:
            conn = router.primary_connection("user_42")
            conn.execute("UPDATE users SET name = %s WHERE user_id = %s", ("A", "user_42"))
    """

    def __init__(
            self,
            topology: TopologyConfig,
            connector: Optional[Connector] = None,
            selector: Optional[ReplicaSelector] = None,
    ):
        """
        Validate the topology and open every connection.

        Args:
            topology: Partition layout
            connector: Opens one server's connection (default: PostgreSQL pool)
            selector: Replica selection strategy (default from settings)

        Raises:
            ConfigurationError: invalid topology
            ConnectivityError: a connection could not be opened or probed;
                every connection opened before it has been closed
        """
        topology.validate()

        if connector is None:
            connector = postgres_connector

        self._selector = selector if selector is not None else get_selector(settings.REPLICA_SELECTION)
        self._lock = ReadWriteLock()
        self._closed = False

        opened: List[Tuple[str, ExecutableConnection]] = []
        partitions = []
        try:
            for cfg in topology.ordered():
                primary = _open_and_ping(connector, cfg.primary, cfg.partition_id, "primary", opened)
                replicas = tuple(
                    _open_and_ping(connector, replica_cfg, cfg.partition_id, f"replica {j}", opened)
                    for j, replica_cfg in enumerate(cfg.replicas)
                )
                partitions.append(Partition(cfg.partition_id, primary, replicas))
        except ConnectivityError as e:
            logger.error(f"Router construction failed: {e}")
            self._release(opened)
            raise

        self._partitions: Tuple[Partition, ...] = tuple(partitions)
        self._num_partitions = len(self._partitions)
        logger.info(f"Connected to {self._num_partitions} partitions "
                    f"({sum(len(p.replicas) for p in self._partitions)} replicas)")

    @staticmethod
    def _release(opened: List[Tuple[str, ExecutableConnection]]) -> None:
        for label, conn in reversed(opened):
            try:
                conn.close()
            except Exception as e:
                logger.error(f"Failed to close {label} during rollback: {e}")

    # ------------------------------------------------------------------
    # Routing
    # ------------------------------------------------------------------

    @property
    def num_partitions(self) -> int:
        return self._num_partitions

    def partition_count(self) -> int:
        """Number of partitions (N)."""
        return self._num_partitions

    def partition_for(self, key: str) -> int:
        """Get the partition ID for a key."""
        return partition_for_key(key, self._num_partitions)

    def _partition_for_key(self, key: str) -> Partition:
        if self._closed:
            raise RouterClosedError("router has been shut down")
        return self._partitions[self.partition_for(key)]

    def primary_connection(self, key: str) -> ExecutableConnection:
        """
        Get the primary connection for a key. All writes go here.

        Args:
            key: Shard key

        Returns:
            Primary connection of the key's partition
        """
        with self._lock.read_locked():
            partition = self._partition_for_key(key)
            logger.debug(f"Routing {key!r} to partition {partition.partition_id} primary")
            return partition.primary

    def replica_connection(self, key: str) -> ExecutableConnection:
        """
        Get a read connection for a key.

        Picks one of the partition's replicas through the selector, or the
        primary when the partition has no replicas.
        """
        with self._lock.read_locked():
            partition = self._partition_for_key(key)
            if not partition.replicas:
                logger.debug(f"Partition {partition.partition_id} has no replicas, "
                             f"reading {key!r} from primary")
                return partition.primary
            index = self._selector.select(partition.partition_id, partition.replicas)
            logger.debug(f"Routing {key!r} to partition {partition.partition_id} replica {index}")
            return partition.replicas[index]

    def connection_for(self, key: str, intent: Intent) -> ExecutableConnection:
        """Primary for Intent.WRITE, replica-or-primary for Intent.READ."""
        if intent is Intent.WRITE:
            return self.primary_connection(key)
        if intent is Intent.READ:
            return self.replica_connection(key)
        raise ValueError(f"Unknown intent: {intent!r}")

    def partition_by_id(self, partition_id: int) -> Partition:
        """
        Look up a partition directly.

        Raises:
            OutOfRangeError: partition_id is not in [0, N)
        """
        if isinstance(partition_id, bool) or not isinstance(partition_id, int):
            raise OutOfRangeError(partition_id, self._num_partitions)
        if partition_id < 0 or partition_id >= self._num_partitions:
            raise OutOfRangeError(partition_id, self._num_partitions)
        with self._lock.read_locked():
            if self._closed:
                raise RouterClosedError("router has been shut down")
            return self._partitions[partition_id]

    def all_partitions(self) -> Tuple[Partition, ...]:
        """Snapshot of every partition, ordered by partition ID."""
        with self._lock.read_locked():
            if self._closed:
                raise RouterClosedError("router has been shut down")
            return tuple(self._partitions)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def closed(self) -> bool:
        return self._closed

    def shutdown(self) -> None:
        """
        Close every primary and replica connection.

        All connections are attempted even when some fail. Calling this a
        second time does nothing.

        Raises:
            ShutdownError: one or more connections failed to close
        """
        with self._lock.write_locked():
            if self._closed:
                return
            self._closed = True

            errors = []
            details = []
            for partition in self._partitions:
                for role, conn in partition.connections():
                    try:
                        conn.close()
                    except Exception as e:
                        logger.error(f"Failed to close {role} for partition {partition.partition_id}: {e}")
                        errors.append(e)
                        details.append(f"{role} for partition {partition.partition_id}: {e}")

        if errors:
            raise ShutdownError(errors, "errors closing connections: " + "; ".join(details))
        logger.info("All partition connections closed")

    def __enter__(self) -> "TopologyRouter":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.shutdown()

    def __repr__(self) -> str:
        return (f"TopologyRouter(partitions={self._num_partitions}, "
                f"selector={self._selector.name!r}, closed={self._closed})")
