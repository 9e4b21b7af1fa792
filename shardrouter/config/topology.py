"""
Topology Configuration Module

Describes the static partition layout: for every partition, one primary
server and zero or more replica servers. The router is built from one of
these descriptions and never changes it afterwards.

Default Topology (matches the bundled docker setup):
- 3 Partitions (0, 1, 2)
- Each partition has 1 primary and 1 replica

Server Addresses:
- Partition 0: Primary=localhost:5440, Replica=localhost:5441 (db shard0)
- Partition 1: Primary=localhost:5442, Replica=localhost:5443 (db shard1)
- Partition 2: Primary=localhost:5444, Replica=localhost:5445 (db shard2)

Topology files are JSON:

    {"partitions": [
        {"partition_id": 0,
         "primary": {"host": "localhost", "port": 5440, "user": "postgres",
                     "password": "postgres", "database": "shard0"},
         "replicas": [...]}
    ]}
"""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Tuple

from ..errors import ConfigurationError

logger = logging.getLogger(__name__)


# Default topology constants
DEFAULT_NUM_PARTITIONS = 3
DEFAULT_HOST = "localhost"
DEFAULT_USER = "postgres"
DEFAULT_PASSWORD = "postgres"

# partition_id -> (primary_port, replica_port)
DEFAULT_PORTS: Dict[int, Tuple[int, int]] = {
    0: (5440, 5441),
    1: (5442, 5443),
    2: (5444, 5445),
}


@dataclass(frozen=True)
class DatabaseConfig:
    """Connection settings for a single database server."""
    host: str
    port: int
    user: str
    password: str
    database: str

    def connection_string(self) -> str:
        """Return a libpq keyword/value connection string."""
        return (f"host={self.host} port={self.port} user={self.user} "
                f"password={self.password} dbname={self.database} sslmode=disable")

    @property
    def address(self) -> str:
        return f"{self.host}:{self.port}/{self.database}"

    @classmethod
    def from_dict(cls, data: Dict[str, Any], where: str) -> "DatabaseConfig":
        if not isinstance(data, dict):
            raise ConfigurationError(f"{where}: expected an object, got {type(data).__name__}")
        missing = [k for k in ("host", "port", "user", "password", "database") if k not in data]
        if missing:
            raise ConfigurationError(f"{where}: missing field(s) {', '.join(missing)}")
        try:
            port = int(data["port"])
        except (TypeError, ValueError):
            raise ConfigurationError(f"{where}: invalid port {data['port']!r}") from None
        return cls(
            host=str(data["host"]),
            port=port,
            user=str(data["user"]),
            password=str(data["password"]),
            database=str(data["database"]),
        )


@dataclass(frozen=True)
class PartitionConfig:
    """One partition: a primary and its replicas, in declared order."""
    partition_id: int
    primary: DatabaseConfig
    replicas: Tuple[DatabaseConfig, ...] = ()


@dataclass(frozen=True)
class TopologyConfig:
    """
    Ordered list of partitions.

    Partition ids must be exactly 0..N-1 with no gaps or duplicates.
    Call validate() (the router does) before relying on that.
    """
    partitions: Tuple[PartitionConfig, ...] = field(default_factory=tuple)

    @property
    def num_partitions(self) -> int:
        return len(self.partitions)

    def validate(self) -> None:
        """
        Check the topology is usable.

        Raises:
            ConfigurationError: no partitions, bad ids, gaps or duplicates
        """
        if not self.partitions:
            raise ConfigurationError("topology must contain at least one partition")

        ids = []
        for partition in self.partitions:
            pid = partition.partition_id
            if isinstance(pid, bool) or not isinstance(pid, int):
                raise ConfigurationError(f"partition id must be an integer, got {pid!r}")
            if partition.primary is None:
                raise ConfigurationError(f"partition {pid} has no primary")
            ids.append(pid)

        duplicates = sorted({pid for pid in ids if ids.count(pid) > 1})
        if duplicates:
            raise ConfigurationError(f"duplicate partition id(s): {duplicates}")

        expected = list(range(len(ids)))
        if sorted(ids) != expected:
            raise ConfigurationError(
                f"partition ids must be exactly 0..{len(ids) - 1}, got {sorted(ids)}"
            )

    def ordered(self) -> Tuple[PartitionConfig, ...]:
        """Partitions sorted by id."""
        return tuple(sorted(self.partitions, key=lambda p: p.partition_id))

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TopologyConfig":
        """Build a topology from a parsed JSON document."""
        if not isinstance(data, dict) or not isinstance(data.get("partitions"), list):
            raise ConfigurationError("topology must be an object with a 'partitions' list")

        partitions = []
        for index, entry in enumerate(data["partitions"]):
            where = f"partitions[{index}]"
            if not isinstance(entry, dict):
                raise ConfigurationError(f"{where}: expected an object")
            if "partition_id" not in entry:
                raise ConfigurationError(f"{where}: missing partition_id")
            if "primary" not in entry:
                raise ConfigurationError(f"{where}: missing primary")
            replicas = entry.get("replicas", [])
            if not isinstance(replicas, list):
                raise ConfigurationError(f"{where}.replicas: expected a list")
            partitions.append(PartitionConfig(
                partition_id=entry["partition_id"],
                primary=DatabaseConfig.from_dict(entry["primary"], f"{where}.primary"),
                replicas=tuple(
                    DatabaseConfig.from_dict(r, f"{where}.replicas[{j}]")
                    for j, r in enumerate(replicas)
                ),
            ))
        return cls(partitions=tuple(partitions))


def default_topology() -> TopologyConfig:
    """Three partitions with one replica each on localhost."""
    partitions = []
    for partition_id in range(DEFAULT_NUM_PARTITIONS):
        primary_port, replica_port = DEFAULT_PORTS[partition_id]
        database = f"shard{partition_id}"
        partitions.append(PartitionConfig(
            partition_id=partition_id,
            primary=DatabaseConfig(DEFAULT_HOST, primary_port, DEFAULT_USER, DEFAULT_PASSWORD, database),
            replicas=(
                DatabaseConfig(DEFAULT_HOST, replica_port, DEFAULT_USER, DEFAULT_PASSWORD, database),
            ),
        ))
    return TopologyConfig(partitions=tuple(partitions))


def load_topology(path) -> TopologyConfig:
    """
    Read a topology description from a JSON file.

    Args:
        path: File path

    Returns:
        The parsed (and validated) topology

    Raises:
        ConfigurationError: unreadable file, invalid JSON or invalid layout
    """
    path = Path(path)
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except OSError as e:
        raise ConfigurationError(f"cannot read topology file {path}: {e}") from e
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"invalid JSON in topology file {path}: {e}") from e

    topology = TopologyConfig.from_dict(data)
    topology.validate()
    logger.debug(f"Loaded topology with {topology.num_partitions} partitions from {path}")
    return topology
