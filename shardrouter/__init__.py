"""
Shardrouter: Partitioned Database Routing

Deterministic key-based routing across statically partitioned PostgreSQL
clusters, each with one writable primary and any number of read replicas.
"""

__version__ = "1.0.0"

from .cluster import Intent, Partition, TopologyRouter, partition_for_key
from .config import DatabaseConfig, PartitionConfig, TopologyConfig, default_topology, load_topology
from .context import OperationContext
from .repository import User, UserRepository, ensure_schema

__all__ = [
    "Intent",
    "Partition",
    "TopologyRouter",
    "partition_for_key",
    "DatabaseConfig",
    "PartitionConfig",
    "TopologyConfig",
    "default_topology",
    "load_topology",
    "OperationContext",
    "User",
    "UserRepository",
    "ensure_schema",
]
