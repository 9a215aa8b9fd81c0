"""Webhook HTTP handlers: FastAPI route for inbound Clerk webhooks.

Each request:
1. Reads raw body (needed for signature verification)
2. Checks the three Svix headers are present
3. Verifies the signature against the configured secret
4. Parses the envelope and dispatches on its type
5. Returns 200 on success or for unhandled event types

Security contract:
- Never return error details to webhook caller (info disclosure)
- 400 for missing headers, bad signatures, malformed envelopes, missing user id
- 500 for any downstream failure; nothing is rolled back
- Log all webhook activity for audit trail
"""

from __future__ import annotations

import logging
import time
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from fastapi import FastAPI, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse

from usersync.errors import (
    InvalidEnvelopeError,
    MissingHeadersError,
    MissingUserIdError,
    SignatureVerificationError,
)
from usersync.webhooks.dispatcher import UserSyncDispatcher, parse_envelope
from usersync.webhooks.verification import SignatureVerifier, extract_svix_headers

logger = logging.getLogger(__name__)

WEBHOOK_PATH = "/api/webhook/clerk"


@dataclass
class WebhookResponse:
    status_code: int
    body: dict[str, Any]


def _log_webhook(event_type: str, webhook_id: str, status: str) -> None:
    """Audit log for webhook activity."""
    logger.info(
        "WEBHOOK_AUDIT event=%s id=%s status=%s",
        event_type,
        webhook_id,
        status,
    )


class WebhookReceiver:
    """Validate -> verify -> parse -> dispatch, once per request.

    Holds no per-request state; safe to share across concurrent requests.
    """

    def __init__(self, verifier: SignatureVerifier, dispatcher: UserSyncDispatcher):
        self._verifier = verifier
        self._dispatcher = dispatcher

    def handle(self, body: bytes, headers: Mapping[str, str]) -> WebhookResponse:
        start = time.time()

        # 1. Required headers
        try:
            svix_headers = extract_svix_headers(headers)
        except MissingHeadersError:
            _log_webhook("unknown", "unknown", "missing_headers")
            return WebhookResponse(400, {"message": "Error occurred -- no svix headers"})

        webhook_id = svix_headers["svix-id"]

        # 2. Verify signature
        try:
            payload = self._verifier.verify(body, svix_headers)
        except SignatureVerificationError as e:
            logger.warning("Error verifying webhook %s: %s", webhook_id, e)
            _log_webhook("unknown", webhook_id, "signature_failed")
            return WebhookResponse(400, {"message": "Error occurred"})
        except InvalidEnvelopeError:
            _log_webhook("unknown", webhook_id, "invalid_json")
            return WebhookResponse(400, {"message": "Error occurred"})

        # 3. Parse envelope
        try:
            envelope = parse_envelope(payload)
        except InvalidEnvelopeError as e:
            logger.warning("Malformed webhook envelope %s: %s", webhook_id, e)
            _log_webhook("unknown", webhook_id, "invalid_envelope")
            return WebhookResponse(400, {"message": "Error occurred"})

        logger.info("Webhook received: %s (id=%s)", envelope.type, webhook_id)

        # 4. Dispatch
        try:
            result = self._dispatcher.dispatch(envelope)
        except MissingUserIdError as e:
            logger.error("%s", e)
            _log_webhook(envelope.type, webhook_id, "missing_id")
            return WebhookResponse(400, {"message": "Error occurred -- missing ID"})
        except InvalidEnvelopeError as e:
            logger.warning("Malformed %s data %s: %s", envelope.type, webhook_id, e)
            _log_webhook(envelope.type, webhook_id, "invalid_envelope")
            return WebhookResponse(400, {"message": "Error occurred"})
        except Exception:
            logger.exception("Error handling webhook event: %s (id=%s)", envelope.type, webhook_id)
            _log_webhook(envelope.type, webhook_id, "dispatch_failed")
            return WebhookResponse(500, {"message": "Error occurred"})

        status = "handled" if envelope.type in self._dispatcher.supported_events else "skipped"
        _log_webhook(envelope.type, webhook_id, status)

        elapsed_ms = (time.time() - start) * 1000
        logger.debug("Webhook processed in %.1fms: %s", elapsed_ms, envelope.type)

        return WebhookResponse(result.status_code, result.body)


def register_webhook_routes(app: FastAPI, receiver: WebhookReceiver) -> None:
    """Register the Clerk webhook endpoint on the FastAPI app."""

    @app.post(WEBHOOK_PATH)
    async def clerk_webhook(request: Request):
        """Receive Clerk user webhooks (Svix-signed)."""
        body = await request.body()
        headers = {k.lower(): v for k, v in request.headers.items()}

        # Store and Clerk calls block; keep them off the event loop
        response = await run_in_threadpool(receiver.handle, body, headers)
        return JSONResponse(response.body, status_code=response.status_code)

    logger.info("Webhook route registered: %s", WEBHOOK_PATH)
