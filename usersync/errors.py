"""Exception taxonomy for the user sync service.

Every error maps to exactly one HTTP status in the webhook receiver:
- ConfigurationError        -> fatal at startup, never per request
- MissingHeadersError       -> 400
- SignatureVerificationError -> 400
- InvalidEnvelopeError      -> 400
- MissingUserIdError        -> 400
- UserNotFoundError         -> 500 (downstream failure)
"""

from __future__ import annotations


class UserSyncError(Exception):
    """Base class for all usersync errors."""


class ConfigurationError(UserSyncError):
    """Required configuration is missing or invalid."""


class MissingHeadersError(UserSyncError):
    """One or more Svix signature headers are absent."""


class SignatureVerificationError(UserSyncError):
    """The payload signature does not verify against the shared secret."""


class InvalidEnvelopeError(UserSyncError):
    """The verified payload is not a usable event envelope."""


class MissingUserIdError(UserSyncError):
    """The event data carries no external user id."""

    def __init__(self, event_type: str):
        super().__init__(f"{event_type}: missing user id")
        self.event_type = event_type


class UserNotFoundError(UserSyncError):
    """No stored user matches the given external id."""

    def __init__(self, clerk_id: str):
        super().__init__(f"User not found: {clerk_id}")
        self.clerk_id = clerk_id
