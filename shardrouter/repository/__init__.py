"""Repository module for shardrouter."""

from .models import User
from .schema import ensure_schema
from .user_repository import UserRepository

__all__ = ["User", "UserRepository", "ensure_schema"]
