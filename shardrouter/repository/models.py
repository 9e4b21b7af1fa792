"""
Entity Definitions

The User record stored in every partition. user_id is the shard key.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional, Sequence


@dataclass
class User:
    """
    A user stored in the partition that owns its user_id.

    Attributes:
        user_id: Caller-chosen shard key, never changed after creation
        name: Display name
        email: Contact address
        id: Identifier assigned by the partition on insert
        created_at: Timestamp assigned by the partition on insert
    """
    user_id: str
    name: str = ""
    email: str = ""
    id: Optional[int] = None
    created_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, row: Sequence[Any]) -> "User":
        """Build a User from an (id, user_id, name, email, created_at) row."""
        record_id, user_id, name, email, created_at = row
        return cls(
            user_id=user_id,
            name=name,
            email=email,
            id=record_id,
            created_at=parse_timestamp(created_at),
        )

    def same_data(self, other: "User") -> bool:
        """True when both carry the same key, name and email."""
        return (self.user_id, self.name, self.email) == (other.user_id, other.name, other.email)


def parse_timestamp(value) -> Optional[datetime]:
    """Drivers return datetimes (psycopg2) or ISO strings (sqlite3)."""
    if value is None or isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value))
