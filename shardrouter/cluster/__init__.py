"""
Cluster module for shardrouter.

This module provides the routing layer:
- Key hashing and partition assignment
- Replica selection strategies
- The TopologyRouter that owns every partition's connections
"""

from .hashing import fnv1a_32, partition_for_key
from .router import Intent, Partition, TopologyRouter
from .selection import (
    FirstReplicaSelector,
    RandomReplicaSelector,
    ReplicaSelector,
    RoundRobinReplicaSelector,
    get_selector,
)

__all__ = [
    'fnv1a_32',
    'partition_for_key',
    'Intent',
    'Partition',
    'TopologyRouter',
    'ReplicaSelector',
    'RandomReplicaSelector',
    'RoundRobinReplicaSelector',
    'FirstReplicaSelector',
    'get_selector',
]
