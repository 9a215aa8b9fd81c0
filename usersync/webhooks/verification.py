"""Webhook signature verification: Svix-signed Clerk deliveries.

Security contract:
- All three Svix headers (svix-id, svix-timestamp, svix-signature) must be present
- Signature check is delegated to the svix library (HMAC-SHA256, constant-time compare)
- Timestamps outside the svix tolerance (5 min) are rejected to prevent replay
- Verification failure -> 400 immediately, no payload processing
- Missing or malformed secret -> ConfigurationError at startup (fail-closed)
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from typing import Any, Protocol, runtime_checkable

from svix.webhooks import Webhook, WebhookVerificationError

from usersync.errors import (
    ConfigurationError,
    InvalidEnvelopeError,
    MissingHeadersError,
    SignatureVerificationError,
)

logger = logging.getLogger(__name__)

SVIX_HEADERS = ("svix-id", "svix-timestamp", "svix-signature")


def extract_svix_headers(headers: Mapping[str, str]) -> dict[str, str]:
    """Pull the three Svix headers out of a request header mapping.

    Lookup is case-insensitive.

    Raises:
        MissingHeadersError: any of the three is absent or empty.
    """
    lowered = {k.lower(): v for k, v in headers.items()}
    found = {name: lowered.get(name, "") for name in SVIX_HEADERS}
    missing = [name for name, value in found.items() if not value]
    if missing:
        raise MissingHeadersError(f"missing svix headers: {', '.join(missing)}")
    return found


@runtime_checkable
class SignatureVerifier(Protocol):
    """Verifies a raw webhook body and returns the decoded payload."""

    def verify(self, body: bytes, headers: Mapping[str, str]) -> Any:
        """Return the decoded JSON payload, or raise SignatureVerificationError."""
        ...


class SvixSignatureVerifier:
    """Verifier backed by svix.webhooks.Webhook.

    Args:
        secret: Signing secret from the Clerk dashboard (``whsec_...``).
    """

    def __init__(self, secret: str):
        try:
            self._webhook = Webhook(secret)
        except (RuntimeError, ValueError) as e:
            raise ConfigurationError(f"Invalid webhook signing secret: {e}") from e

    def verify(self, body: bytes, headers: Mapping[str, str]) -> Any:
        svix_headers = extract_svix_headers(headers)

        try:
            text = body.decode("utf-8")
        except UnicodeDecodeError as e:
            raise SignatureVerificationError("body is not valid UTF-8") from e

        # Newer svix releases return None from verify(); decode the body ourselves
        try:
            self._webhook.verify(text, svix_headers)
        except WebhookVerificationError as e:
            raise SignatureVerificationError(str(e)) from e

        try:
            return json.loads(text)
        except json.JSONDecodeError as e:
            raise InvalidEnvelopeError("signed body is not valid JSON") from e
