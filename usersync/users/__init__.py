"""User records and the stores that persist them."""

from usersync.users.models import User, UserCreate, UserUpdate
from usersync.users.store import InMemoryUserStore, PostgresUserStore, UserStore

__all__ = [
    "InMemoryUserStore",
    "PostgresUserStore",
    "User",
    "UserCreate",
    "UserStore",
    "UserUpdate",
]
