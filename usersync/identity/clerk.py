"""Clerk Backend API client.

Only the call the sync flow needs: writing public metadata back onto a
Clerk user after the application record is created. No retries; a
non-2xx response raises httpx.HTTPStatusError for the caller to handle.
"""

from __future__ import annotations

import logging
from typing import Any, Protocol, runtime_checkable
from urllib.parse import quote

import httpx

from usersync.config import DEFAULT_CLERK_API_URL
from usersync.errors import ConfigurationError

logger = logging.getLogger(__name__)


@runtime_checkable
class IdentityProvider(Protocol):
    """Identity provider port consumed by the webhook dispatcher."""

    def set_metadata(self, clerk_id: str, metadata: dict[str, Any]) -> None:
        """Merge metadata into the user's public metadata."""
        ...


class ClerkClient:
    """Thin httpx wrapper around the Clerk Backend REST API."""

    def __init__(
        self,
        secret_key: str,
        api_url: str = DEFAULT_CLERK_API_URL,
        timeout: float = 10.0,
        transport: httpx.BaseTransport | None = None,
    ):
        if not secret_key:
            raise ConfigurationError("CLERK_SECRET_KEY is not set")
        self._client = httpx.Client(
            base_url=api_url.rstrip("/"),
            headers={
                "Authorization": f"Bearer {secret_key}",
                "Content-Type": "application/json",
            },
            timeout=timeout,
            transport=transport,
        )

    def set_metadata(self, clerk_id: str, metadata: dict[str, Any]) -> None:
        """PATCH /users/{id}/metadata with the given public metadata."""
        response = self._client.patch(
            f"/users/{quote(clerk_id, safe='')}/metadata",
            json={"public_metadata": metadata},
        )
        response.raise_for_status()
        logger.info("Clerk metadata updated for %s (keys=%s)", clerk_id, sorted(metadata))

    def close(self) -> None:
        self._client.close()
