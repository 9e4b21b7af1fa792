"""
User Repository Module

CRUD for users with the routing rules built in. Callers never pick a
connection themselves:

- Writes (create, update, delete) go to the primary of the key's partition
- get() reads from a replica and may lag behind recent writes
- get_strong() reads from the primary and always sees the latest write
- get_all() and count_per_partition() visit every partition in ID order
  and stop at the first failure
"""

import logging
from typing import Dict, List, Optional

from ..cluster.router import TopologyRouter
from ..context import OperationContext
from ..errors import NotFoundError, ReadFailedError, StorageError, WriteFailedError
from ..storage.connection import ExecutableConnection
from .models import User, parse_timestamp

logger = logging.getLogger(__name__)


USER_COLUMNS = "id, user_id, name, email, created_at"

INSERT_USER = """
    INSERT INTO users (user_id, name, email, created_at)
    VALUES (%s, %s, %s, CURRENT_TIMESTAMP)
    RETURNING id, created_at
"""

SELECT_USER = f"""
    SELECT {USER_COLUMNS}
    FROM users
    WHERE user_id = %s
"""

UPDATE_USER = """
    UPDATE users
    SET name = %s, email = %s
    WHERE user_id = %s
"""

DELETE_USER = "DELETE FROM users WHERE user_id = %s"

SELECT_ALL_USERS = f"""
    SELECT {USER_COLUMNS}
    FROM users
    ORDER BY created_at DESC, id DESC
"""

COUNT_USERS = "SELECT COUNT(*) FROM users"


class UserRepository:
    """
    Partition-aware access to the users table.

    Every method takes an optional OperationContext carrying a deadline or
    cancel signal. A cancelled or expired context raises
    OperationCancelledError / OperationTimeoutError, never a storage error.

    Attributes:
        router: The TopologyRouter (not owned; the caller shuts it down)
    """

    def __init__(self, router: TopologyRouter):
        self.router = router

    def create(self, user: User, ctx: Optional[OperationContext] = None) -> User:
        """
        Insert a user on the primary of its partition.

        Fills in user.id and user.created_at.

        Raises:
            WriteFailedError: the insert failed (e.g. duplicate user_id)
        """
        conn = self.router.primary_connection(user.user_id)
        try:
            row = conn.query_row(INSERT_USER, (user.user_id, user.name, user.email), ctx=ctx)
        except StorageError as e:
            logger.error(f"Create {user.user_id!r} failed on {conn.name}: {e}")
            raise WriteFailedError(f"failed to create user: {e}") from e
        if row is None:
            raise WriteFailedError(f"failed to create user: insert of {user.user_id!r} returned no row")

        user.id, user.created_at = row[0], parse_timestamp(row[1])
        logger.debug(f"Created user {user.user_id!r} with id {user.id} on {conn.name}")
        return user

    def get(self, user_id: str, ctx: Optional[OperationContext] = None) -> User:
        """
        Read a user from a replica (or the primary if there is none).

        A user created moments ago may not be visible yet; NotFoundError
        shortly after a write is expected until replication catches up.

        Raises:
            NotFoundError: no such user on the chosen connection
            ReadFailedError: the query failed
        """
        return self._fetch_one(self.router.replica_connection(user_id), user_id, ctx)

    def get_strong(self, user_id: str, ctx: Optional[OperationContext] = None) -> User:
        """Same as get() but reads from the primary, so it sees the latest write."""
        return self._fetch_one(self.router.primary_connection(user_id), user_id, ctx)

    def _fetch_one(self, conn: ExecutableConnection, user_id: str,
                   ctx: Optional[OperationContext]) -> User:
        try:
            row = conn.query_row(SELECT_USER, (user_id,), ctx=ctx)
        except StorageError as e:
            logger.error(f"Get {user_id!r} failed on {conn.name}: {e}")
            raise ReadFailedError(f"failed to get user: {e}") from e
        if row is None:
            raise NotFoundError(user_id)
        return User.from_row(row)

    def update(self, user: User, ctx: Optional[OperationContext] = None) -> None:
        """
        Update name and email of an existing user.

        Raises:
            NotFoundError: no user with that user_id
            WriteFailedError: the update failed
        """
        self._write(user.user_id, UPDATE_USER, (user.name, user.email, user.user_id), "update", ctx)

    def delete(self, user_id: str, ctx: Optional[OperationContext] = None) -> None:
        """
        Delete a user.

        Raises:
            NotFoundError: no user with that user_id
            WriteFailedError: the delete failed
        """
        self._write(user_id, DELETE_USER, (user_id,), "delete", ctx)

    def _write(self, user_id: str, query: str, args: tuple, action: str,
               ctx: Optional[OperationContext]) -> None:
        conn = self.router.primary_connection(user_id)
        try:
            affected = conn.execute(query, args, ctx=ctx)
        except StorageError as e:
            logger.error(f"{action.capitalize()} {user_id!r} failed on {conn.name}: {e}")
            raise WriteFailedError(f"failed to {action} user: {e}") from e
        if affected == 0:
            raise NotFoundError(user_id)
        logger.debug(f"{action.capitalize()}d user {user_id!r} on {conn.name}")

    def get_all(self, ctx: Optional[OperationContext] = None) -> List[User]:
        """
        Read every user from every partition.

        Each partition is read from its first replica, or its primary if it
        has none. Results are concatenated in partition order, each
        partition's rows in the order it returned them (newest first).

        Raises:
            ReadFailedError: a partition failed; nothing is returned
        """
        users: List[User] = []
        for partition in self.router.all_partitions():
            if ctx is not None:
                ctx.check()
            conn = partition.replicas[0] if partition.replicas else partition.primary
            try:
                rows = conn.query_rows(SELECT_ALL_USERS, ctx=ctx)
            except StorageError as e:
                logger.error(f"Scan of partition {partition.partition_id} failed: {e}")
                raise ReadFailedError(
                    f"failed to query partition {partition.partition_id}: {e}"
                ) from e
            users.extend(User.from_row(row) for row in rows)
        return users

    def count_per_partition(self, ctx: Optional[OperationContext] = None) -> Dict[int, int]:
        """
        Count users on each partition's primary.

        Returns:
            partition_id -> number of users

        Raises:
            ReadFailedError: a partition failed; nothing is returned
        """
        counts: Dict[int, int] = {}
        for partition in self.router.all_partitions():
            if ctx is not None:
                ctx.check()
            try:
                row = partition.primary.query_row(COUNT_USERS, ctx=ctx)
            except StorageError as e:
                logger.error(f"Count on partition {partition.partition_id} failed: {e}")
                raise ReadFailedError(
                    f"failed to count users in partition {partition.partition_id}: {e}"
                ) from e
            counts[partition.partition_id] = int(row[0]) if row else 0
        return counts
