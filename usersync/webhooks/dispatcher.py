"""Webhook event dispatcher: routes verified Clerk events to the user store.

Maps event types to handlers that reshape Clerk user data into
projections and apply them through the UserStore port.

Contract:
- user.created -> store.create, then write our id into Clerk public metadata
- user.updated -> store.update (display fields only, never email or clerk_id)
- user.deleted -> store.delete
- Any other event type is accepted and ignored
- Every handler requires data.id; without it nothing is written
- Collaborator exceptions propagate; the receiver turns them into 500s
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from usersync.errors import InvalidEnvelopeError, MissingUserIdError
from usersync.identity.clerk import IdentityProvider
from usersync.users.models import User, UserCreate, UserUpdate
from usersync.users.store import UserStore

logger = logging.getLogger(__name__)

USER_CREATED = "user.created"
USER_UPDATED = "user.updated"
USER_DELETED = "user.deleted"

# Public metadata key holding our internal user id on the Clerk user
METADATA_USER_ID_KEY = "userId"


# ── Envelope models ───────────────────────────────────────────────────────


class WebhookEnvelope(BaseModel):
    """Clerk webhook envelope: a type tag plus event-specific data."""

    model_config = ConfigDict(extra="ignore")

    type: str
    data: dict[str, Any] = Field(default_factory=dict)


class EmailAddress(BaseModel):
    model_config = ConfigDict(extra="allow")

    email_address: str | None = None


class ClerkUserData(BaseModel):
    """The subset of a Clerk user object we read. Everything is optional."""

    model_config = ConfigDict(extra="allow")

    id: str | None = None
    email_addresses: list[EmailAddress] | None = None
    username: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    image_url: str | None = None


def parse_envelope(payload: Any) -> WebhookEnvelope:
    """Validate a verified payload as an event envelope.

    Raises:
        InvalidEnvelopeError: payload is not an object, has no type, or data is not an object.
    """
    if not isinstance(payload, dict):
        raise InvalidEnvelopeError("payload is not a JSON object")
    try:
        return WebhookEnvelope.model_validate(payload)
    except ValidationError as e:
        raise InvalidEnvelopeError(f"malformed envelope: {e.error_count()} error(s)") from e


def _parse_user_data(event_type: str, data: dict[str, Any]) -> ClerkUserData:
    try:
        user = ClerkUserData.model_validate(data)
    except ValidationError as e:
        raise InvalidEnvelopeError(f"{event_type}: malformed user data") from e
    if not user.id:
        raise MissingUserIdError(event_type)
    return user


# ── Projections ───────────────────────────────────────────────────────────


def _primary_email(user: ClerkUserData) -> str:
    """First listed email address, or empty string."""
    if not user.email_addresses:
        return ""
    return user.email_addresses[0].email_address or ""


def build_create_projection(data: dict[str, Any]) -> UserCreate:
    """Reshape user.created data into a UserCreate.

    Raises:
        MissingUserIdError: data has no id.
    """
    user = _parse_user_data(USER_CREATED, data)
    return UserCreate(
        clerk_id=user.id,
        email=_primary_email(user),
        username=user.username or "",
        first_name=user.first_name or "",
        last_name=user.last_name or "",
        photo=user.image_url or "",
    )


def build_update_projection(data: dict[str, Any]) -> tuple[str, UserUpdate]:
    """Reshape user.updated data into (clerk_id, UserUpdate).

    Raises:
        MissingUserIdError: data has no id.
    """
    user = _parse_user_data(USER_UPDATED, data)
    return user.id, UserUpdate(
        first_name=user.first_name or "",
        last_name=user.last_name or "",
        username=user.username or "",
        photo=user.image_url or "",
    )


def _redact_email(value: str) -> str:
    # Show only the domain
    if "@" in value:
        return "***@" + value.split("@", 1)[1]
    return "***"


def summarize_data(data: dict[str, Any]) -> dict[str, Any]:
    """Log-safe view of event data: known fields only, emails redacted."""
    emails = data.get("email_addresses")
    if not isinstance(emails, list):
        emails = []
    return {
        "id": data.get("id"),
        "username": data.get("username"),
        "emails": [
            _redact_email(str(e.get("email_address", "")))
            for e in emails
            if isinstance(e, dict)
        ],
        "keys": sorted(data),
    }


# ── Dispatch ──────────────────────────────────────────────────────────────


@dataclass
class DispatchResult:
    """Outcome of a dispatched event, ready to become an HTTP response."""

    status_code: int
    body: dict[str, Any] = field(default_factory=dict)


def _ok(user: User | None) -> DispatchResult:
    return DispatchResult(200, {"message": "OK", "user": user.to_dict() if user else None})


class UserSyncDispatcher:
    """Routes verified envelopes to store and identity-provider calls."""

    def __init__(self, store: UserStore, identity: IdentityProvider):
        self._store = store
        self._identity = identity
        self._handlers: dict[str, Callable[[dict[str, Any]], DispatchResult]] = {
            USER_CREATED: self.handle_user_created,
            USER_UPDATED: self.handle_user_updated,
            USER_DELETED: self.handle_user_deleted,
        }

    @property
    def supported_events(self) -> frozenset[str]:
        return frozenset(self._handlers)

    def dispatch(self, envelope: WebhookEnvelope) -> DispatchResult:
        """Run the handler for envelope.type, or accept and ignore it.

        Raises:
            MissingUserIdError: a handled event has no data.id.
            InvalidEnvelopeError: a handled event's data is malformed.
            Exception: whatever the store or identity provider raises.
        """
        handler = self._handlers.get(envelope.type)
        if handler is None:
            logger.info("Unhandled webhook event type: %s, skipping", envelope.type)
            return DispatchResult(200, {"message": "Event type not handled"})

        if logger.isEnabledFor(logging.DEBUG):
            logger.debug("Event data (%s): %s", envelope.type, summarize_data(envelope.data))
        return handler(envelope.data)

    def handle_user_created(self, data: dict[str, Any]) -> DispatchResult:
        projection = build_create_projection(data)
        user = self._store.create(projection)

        if user is not None:
            # Not rolled back on failure: a redelivery re-runs the upserting create
            self._identity.set_metadata(projection.clerk_id, {METADATA_USER_ID_KEY: user.id})

        return _ok(user)

    def handle_user_updated(self, data: dict[str, Any]) -> DispatchResult:
        clerk_id, projection = build_update_projection(data)
        return _ok(self._store.update(clerk_id, projection))

    def handle_user_deleted(self, data: dict[str, Any]) -> DispatchResult:
        user = _parse_user_data(USER_DELETED, data)
        return _ok(self._store.delete(user.id))
