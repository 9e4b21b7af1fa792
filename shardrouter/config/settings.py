"""
Shardrouter Configuration Settings

This module contains the process-wide settings for shardrouter.
Every value can be overridden through an environment variable.
"""

import os
from dataclasses import dataclass


@dataclass
class Settings:
    """Router and storage settings."""

    # Topology
    TOPOLOGY_FILE: str = os.environ.get("SHARDROUTER_TOPOLOGY_FILE", "")
    REPLICA_SELECTION: str = os.environ.get("SHARDROUTER_REPLICA_SELECTION", "random")

    # Connection pool settings (per primary/replica)
    POOL_MIN_CONNECTIONS: int = int(os.environ.get("SHARDROUTER_POOL_MIN", "1"))
    POOL_MAX_CONNECTIONS: int = int(os.environ.get("SHARDROUTER_POOL_MAX", "10"))
    CONNECT_TIMEOUT: int = int(os.environ.get("SHARDROUTER_CONNECT_TIMEOUT", "5"))  # Seconds

    # Default per-operation timeout used by the CLI (0 = no deadline)
    QUERY_TIMEOUT: float = float(os.environ.get("SHARDROUTER_QUERY_TIMEOUT", "0"))

    # Logging settings
    DEBUG: bool = os.environ.get("SHARDROUTER_DEBUG", "false").lower() == "true"
    LOG_LEVEL: str = os.environ.get("SHARDROUTER_LOG_LEVEL", "INFO")


# Global settings instance
settings = Settings()
