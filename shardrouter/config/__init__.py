"""Configuration module for shardrouter."""

from .settings import Settings, settings
from .topology import (
    DatabaseConfig,
    PartitionConfig,
    TopologyConfig,
    default_topology,
    load_topology,
)

__all__ = [
    "Settings",
    "settings",
    "DatabaseConfig",
    "PartitionConfig",
    "TopologyConfig",
    "default_topology",
    "load_topology",
]
