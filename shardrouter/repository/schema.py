"""
Schema Bootstrap

Creates the users table on every partition primary. Replicas receive it
through replication like any other change.
"""

import logging
from typing import Dict, List

from ..cluster.router import TopologyRouter
from ..errors import StorageError, WriteFailedError

logger = logging.getLogger(__name__)


USERS_SCHEMA: Dict[str, List[str]] = {
    "postgresql": [
        """
        CREATE TABLE IF NOT EXISTS users (
            id SERIAL PRIMARY KEY,
            user_id VARCHAR(255) NOT NULL UNIQUE,
            name VARCHAR(255) NOT NULL,
            email VARCHAR(255) NOT NULL,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
        """,
        "CREATE INDEX IF NOT EXISTS idx_users_user_id ON users(user_id)",
    ],
    "sqlite": [
        """
        CREATE TABLE IF NOT EXISTS users (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            user_id TEXT NOT NULL UNIQUE,
            name TEXT NOT NULL,
            email TEXT NOT NULL,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
        """,
        "CREATE INDEX IF NOT EXISTS idx_users_user_id ON users(user_id)",
    ],
}


def ensure_schema(router: TopologyRouter) -> None:
    """
    Create the users table on each partition primary if it is missing.

    Raises:
        WriteFailedError: a statement failed (names the partition)
    """
    for partition in router.all_partitions():
        conn = partition.primary
        statements = USERS_SCHEMA.get(conn.dialect)
        if statements is None:
            raise WriteFailedError(
                f"no users schema for dialect {conn.dialect!r} on partition {partition.partition_id}"
            )
        try:
            for statement in statements:
                conn.execute(statement)
        except StorageError as e:
            logger.error(f"Schema setup failed on partition {partition.partition_id}: {e}")
            raise WriteFailedError(
                f"failed to create schema on partition {partition.partition_id}: {e}"
            ) from e
        logger.debug(f"Schema ready on partition {partition.partition_id}")
