"""HTTP-level fixtures for webhook security tests.

Responsibilities:
- Creates the FastAPI `app` fixture with a real Svix verifier, an in-memory
  store and a recording identity provider
- Wraps it in a TestClient that returns 500s instead of raising

The global tests/conftest.py provides the signing helpers and fakes.
"""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from usersync.config import Settings
from usersync.serve import create_app


@pytest.fixture
def settings(webhook_secret) -> Settings:
    return Settings(webhook_secret=webhook_secret, user_store="memory", testing=True)


@pytest.fixture
def app(settings, store, identity):
    return create_app(settings, store=store, identity=identity)


@pytest.fixture
def client(app):
    """Unauthenticated TestClient (attacker perspective)."""
    with TestClient(app, raise_server_exceptions=False) as c:
        yield c
