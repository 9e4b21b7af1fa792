"""
Executable Connection Contract

The router and repository never talk to a database driver directly. They
use this small interface, which the PostgreSQL and SQLite adapters
implement.

Queries are written with %s placeholders. Adapters translate them when the
driver wants something else.
"""

from abc import ABC, abstractmethod
from typing import Any, Callable, List, Optional, Sequence

from ..config.topology import DatabaseConfig
from ..context import OperationContext
from ..errors import StorageError


class ExecutableConnection(ABC):
    """
    A handle to one database server, safe to share between threads.

    Attributes:
        name: Human-readable label used in logs and errors
        dialect: SQL dialect spoken by the server ("postgresql", "sqlite")
    """

    dialect: str = ""

    def __init__(self, name: str):
        self.name = name

    @abstractmethod
    def ping(self, ctx: Optional[OperationContext] = None) -> None:
        """Lightweight reachability probe. Raises StorageError on failure."""

    @abstractmethod
    def execute(self, query: str, args: Sequence[Any] = (),
                ctx: Optional[OperationContext] = None) -> int:
        """Run a statement and commit it. Returns the affected row count."""

    @abstractmethod
    def query_row(self, query: str, args: Sequence[Any] = (),
                  ctx: Optional[OperationContext] = None) -> Optional[tuple]:
        """Return the first row, or None when the query yields nothing."""

    @abstractmethod
    def query_rows(self, query: str, args: Sequence[Any] = (),
                   ctx: Optional[OperationContext] = None) -> List[tuple]:
        """Return every row, in the order the server produced them."""

    @abstractmethod
    def close(self) -> None:
        """Release the underlying resources."""

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.name!r})"


# Opens a connection for one server of the topology
Connector = Callable[[DatabaseConfig], ExecutableConnection]


def raise_storage_error(name: str, ctx: Optional[OperationContext], exc: Exception):
    """
    Convert a driver exception.

    If the caller's context is done, the driver error is the side effect of
    an interrupt and the cancellation error is raised instead.
    """
    if ctx is not None:
        cancel_error = ctx.error()
        if cancel_error is not None:
            raise cancel_error from exc
    raise StorageError(f"{name}: {exc}") from exc
