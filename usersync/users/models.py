"""User record and the projections written to it.

UserCreate and UserUpdate are the reshaped subsets of Clerk event data
that the persistence layer accepts. User is the stored record; its id is
ours, clerk_id is the identity provider's.
"""

from __future__ import annotations

import time
import uuid
from dataclasses import asdict, dataclass
from typing import Any


@dataclass(frozen=True)
class UserCreate:
    """Fields written when a Clerk user is created."""
    clerk_id: str
    email: str = ""
    username: str = ""
    first_name: str = ""
    last_name: str = ""
    photo: str = ""


@dataclass(frozen=True)
class UserUpdate:
    """Display fields written when a Clerk user changes. No email, no clerk_id."""
    first_name: str = ""
    last_name: str = ""
    username: str = ""
    photo: str = ""

    def to_dict(self) -> dict[str, str]:
        return asdict(self)


@dataclass
class User:
    """Stored user record."""
    id: str
    clerk_id: str
    email: str = ""
    username: str = ""
    first_name: str = ""
    last_name: str = ""
    photo: str = ""
    created_at: float = 0.0
    updated_at: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @staticmethod
    def from_dict(d: dict[str, Any]) -> User:
        return User(**{k: v for k, v in d.items() if k in User.__dataclass_fields__})

    @staticmethod
    def new_id() -> str:
        return uuid.uuid4().hex

    @classmethod
    def from_create(cls, projection: UserCreate) -> User:
        now = time.time()
        return cls(
            id=cls.new_id(),
            clerk_id=projection.clerk_id,
            email=projection.email,
            username=projection.username,
            first_name=projection.first_name,
            last_name=projection.last_name,
            photo=projection.photo,
            created_at=now,
            updated_at=now,
        )
