"""User persistence: the UserStore port plus in-memory and Postgres stores.

Both stores key records on clerk_id. create() refreshes an existing record
for the same clerk_id instead of failing, so a redelivered user.created
converges on one row.

Errors propagate to the caller; the webhook receiver maps them to 500.
"""

from __future__ import annotations

import dataclasses
import logging
import threading
import time
from typing import Protocol, runtime_checkable

import psycopg
from psycopg.rows import dict_row

from usersync.errors import UserNotFoundError
from usersync.users.models import User, UserCreate, UserUpdate

logger = logging.getLogger(__name__)


@runtime_checkable
class UserStore(Protocol):
    """Persistence port consumed by the webhook dispatcher."""

    def create(self, user: UserCreate) -> User | None:
        """Insert (or refresh) the record for user.clerk_id."""
        ...

    def update(self, clerk_id: str, user: UserUpdate) -> User:
        """Apply display-field changes. Raises UserNotFoundError."""
        ...

    def delete(self, clerk_id: str) -> User:
        """Remove and return the record. Raises UserNotFoundError."""
        ...

    def get_by_clerk_id(self, clerk_id: str) -> User | None:
        ...


# ── In-memory ─────────────────────────────────────────────────────────────


class InMemoryUserStore:
    """Dict-backed store for tests and local runs.

    Requests may be served from several threadpool workers, so every
    access goes through one lock.
    """

    def __init__(self):
        self._users: dict[str, User] = {}
        self._lock = threading.Lock()

    def create(self, user: UserCreate) -> User | None:
        with self._lock:
            existing = self._users.get(user.clerk_id)
            if existing is not None:
                record = dataclasses.replace(
                    existing,
                    email=user.email,
                    username=user.username,
                    first_name=user.first_name,
                    last_name=user.last_name,
                    photo=user.photo,
                    updated_at=time.time(),
                )
            else:
                record = User.from_create(user)
            self._users[user.clerk_id] = record
        logger.info("User stored: %s -> %s", record.clerk_id, record.id)
        return dataclasses.replace(record)

    def update(self, clerk_id: str, user: UserUpdate) -> User:
        with self._lock:
            existing = self._users.get(clerk_id)
            if existing is None:
                raise UserNotFoundError(clerk_id)
            record = dataclasses.replace(existing, **user.to_dict(), updated_at=time.time())
            self._users[clerk_id] = record
        return dataclasses.replace(record)

    def delete(self, clerk_id: str) -> User:
        with self._lock:
            record = self._users.pop(clerk_id, None)
        if record is None:
            raise UserNotFoundError(clerk_id)
        return record

    def get_by_clerk_id(self, clerk_id: str) -> User | None:
        with self._lock:
            record = self._users.get(clerk_id)
        return dataclasses.replace(record) if record else None

    def __len__(self) -> int:
        return len(self._users)


# ── Postgres ──────────────────────────────────────────────────────────────

_COLUMNS = "id, clerk_id, email, username, first_name, last_name, photo, created_at, updated_at"


class PostgresUserStore:
    """psycopg-backed store. One short-lived autocommit connection per call."""

    def __init__(self, database_url: str):
        self._database_url = database_url

    def _get_conn(self) -> psycopg.Connection:
        return psycopg.connect(self._database_url, autocommit=True, row_factory=dict_row)

    def init_tables(self) -> None:
        """Create the users table if it doesn't exist.  Idempotent."""
        with self._get_conn() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS users (
                    id          TEXT PRIMARY KEY,
                    clerk_id    TEXT NOT NULL UNIQUE,
                    email       TEXT NOT NULL DEFAULT '',
                    username    TEXT NOT NULL DEFAULT '',
                    first_name  TEXT NOT NULL DEFAULT '',
                    last_name   TEXT NOT NULL DEFAULT '',
                    photo       TEXT NOT NULL DEFAULT '',
                    created_at  DOUBLE PRECISION NOT NULL,
                    updated_at  DOUBLE PRECISION NOT NULL
                )
            """)
        logger.info("users table initialized")

    def create(self, user: UserCreate) -> User | None:
        record = User.from_create(user)
        with self._get_conn() as conn:
            row = conn.execute(
                f"""INSERT INTO users ({_COLUMNS})
                    VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s)
                    ON CONFLICT (clerk_id) DO UPDATE SET
                        email = EXCLUDED.email,
                        username = EXCLUDED.username,
                        first_name = EXCLUDED.first_name,
                        last_name = EXCLUDED.last_name,
                        photo = EXCLUDED.photo,
                        updated_at = EXCLUDED.updated_at
                    RETURNING {_COLUMNS}""",
                (
                    record.id,
                    record.clerk_id,
                    record.email,
                    record.username,
                    record.first_name,
                    record.last_name,
                    record.photo,
                    record.created_at,
                    record.updated_at,
                ),
            ).fetchone()
        if row is None:
            return None
        stored = User.from_dict(row)
        logger.info("User stored: %s -> %s", stored.clerk_id, stored.id)
        return stored

    def update(self, clerk_id: str, user: UserUpdate) -> User:
        with self._get_conn() as conn:
            row = conn.execute(
                f"""UPDATE users
                    SET first_name = %s, last_name = %s, username = %s, photo = %s,
                        updated_at = %s
                    WHERE clerk_id = %s
                    RETURNING {_COLUMNS}""",
                (user.first_name, user.last_name, user.username, user.photo, time.time(), clerk_id),
            ).fetchone()
        if row is None:
            raise UserNotFoundError(clerk_id)
        return User.from_dict(row)

    def delete(self, clerk_id: str) -> User:
        with self._get_conn() as conn:
            row = conn.execute(
                f"DELETE FROM users WHERE clerk_id = %s RETURNING {_COLUMNS}",
                (clerk_id,),
            ).fetchone()
        if row is None:
            raise UserNotFoundError(clerk_id)
        return User.from_dict(row)

    def get_by_clerk_id(self, clerk_id: str) -> User | None:
        with self._get_conn() as conn:
            row = conn.execute(
                f"SELECT {_COLUMNS} FROM users WHERE clerk_id = %s",
                (clerk_id,),
            ).fetchone()
        return User.from_dict(row) if row else None
