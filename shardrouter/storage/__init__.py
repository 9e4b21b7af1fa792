"""Storage adapters for shardrouter."""

from .connection import Connector, ExecutableConnection
from .postgres import PostgresConnection, postgres_connector
from .sqlite import SQLiteConnection, SQLiteConnector

__all__ = [
    "Connector",
    "ExecutableConnection",
    "PostgresConnection",
    "postgres_connector",
    "SQLiteConnection",
    "SQLiteConnector",
]
