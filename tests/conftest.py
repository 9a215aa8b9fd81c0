"""Shared fixtures for the usersync test suite.

Tests sign payloads the way Svix does (HMAC-SHA256 over
"{svix-id}.{svix-timestamp}.{body}", base64, "v1," prefix) rather than
calling into the svix library, so the verifier is exercised end to end.
"""

from __future__ import annotations

import base64
import hashlib
import hmac
import json
import time
from typing import Any

import pytest

from usersync.users.store import InMemoryUserStore

TEST_SIGNING_KEY = b"usersync-test-signing-key-000000"
TEST_WEBHOOK_SECRET = "whsec_" + base64.b64encode(TEST_SIGNING_KEY).decode()


class FakeIdentityProvider:
    """Records set_metadata calls; raises `error` when given one."""

    def __init__(self, error: Exception | None = None):
        self.calls: list[tuple[str, dict[str, Any]]] = []
        self.error = error

    def set_metadata(self, clerk_id: str, metadata: dict[str, Any]) -> None:
        self.calls.append((clerk_id, metadata))
        if self.error is not None:
            raise self.error


@pytest.fixture()
def webhook_secret() -> str:
    return TEST_WEBHOOK_SECRET


@pytest.fixture()
def sign_headers():
    """Factory: body -> valid Svix headers."""

    def _sign(body: bytes, msg_id: str = "msg_test", timestamp: int | None = None) -> dict[str, str]:
        ts = str(timestamp if timestamp is not None else int(time.time()))
        to_sign = f"{msg_id}.{ts}.".encode() + body
        digest = hmac.new(TEST_SIGNING_KEY, to_sign, hashlib.sha256).digest()
        return {
            "svix-id": msg_id,
            "svix-timestamp": ts,
            "svix-signature": "v1," + base64.b64encode(digest).decode(),
        }

    return _sign


@pytest.fixture()
def make_envelope():
    """Factory: (event_type, data) -> JSON body bytes."""

    def _make(event_type: str, data: dict[str, Any] | None = None) -> bytes:
        return json.dumps({"type": event_type, "object": "event", "data": data or {}}).encode()

    return _make


@pytest.fixture()
def store() -> InMemoryUserStore:
    return InMemoryUserStore()


@pytest.fixture()
def identity() -> FakeIdentityProvider:
    return FakeIdentityProvider()
