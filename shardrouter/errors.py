"""
Error Types

Every error raised by shardrouter derives from ShardRouterError, so callers
can catch the whole family at once or pick out a single kind.

"Not found" and "storage failed" live in separate branches of the hierarchy:
a caller can always tell an absent record apart from an unreachable server.
"""

from typing import List, Optional


class ShardRouterError(Exception):
    """Base class for all shardrouter errors."""


class ConfigurationError(ShardRouterError, ValueError):
    """The topology description or a setting is malformed."""


class ConnectivityError(ShardRouterError):
    """
    A connection could not be opened or failed its liveness probe.

    Attributes:
        partition_id: Partition whose connection failed
        role: "primary" or "replica <index>"
    """

    def __init__(self, partition_id: int, role: str, message: str = ""):
        self.partition_id = partition_id
        self.role = role
        detail = f": {message}" if message else ""
        super().__init__(f"failed to connect to {role} for partition {partition_id}{detail}")


class OutOfRangeError(ShardRouterError, IndexError):
    """A partition id outside [0, N) was requested."""

    def __init__(self, partition_id, num_partitions: int):
        self.partition_id = partition_id
        self.num_partitions = num_partitions
        super().__init__(
            f"invalid partition ID: {partition_id} (expected 0..{num_partitions - 1})"
        )


class NotFoundError(ShardRouterError, LookupError):
    """No record matches the requested shard key."""

    def __init__(self, key: str):
        self.key = key
        super().__init__(f"user not found: {key}")


class StorageError(ShardRouterError):
    """A driver call failed. The original exception is chained as __cause__."""


class WriteFailedError(ShardRouterError):
    """A write could not be executed on the partition primary."""


class ReadFailedError(ShardRouterError):
    """A read could not be executed."""


class CancellationError(ShardRouterError):
    """Base class for operations stopped by their caller's context."""


class OperationCancelledError(CancellationError):
    """The caller cancelled the operation."""


class OperationTimeoutError(CancellationError, TimeoutError):
    """The operation's deadline passed before it completed."""


class RouterClosedError(ShardRouterError):
    """The router was shut down and no longer hands out connections."""


class ShutdownError(ShardRouterError):
    """
    One or more connections failed to close during shutdown.

    Attributes:
        errors: Every individual close failure, in close order
    """

    def __init__(self, errors: List[Exception], message: Optional[str] = None):
        self.errors = list(errors)
        if message is None:
            message = "errors closing connections: " + "; ".join(str(e) for e in self.errors)
        super().__init__(message)
