"""FastAPI application factory and server entry point.

Collaborators are built once here from Settings and injected into the
webhook receiver. Run with ``usersync-serve`` or
``uvicorn usersync.serve:build_app_from_env --factory``.
"""

from __future__ import annotations

import argparse
import logging
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI

from usersync import __version__
from usersync.config import Settings
from usersync.identity.clerk import ClerkClient, IdentityProvider
from usersync.users.store import InMemoryUserStore, PostgresUserStore, UserStore
from usersync.webhooks.dispatcher import UserSyncDispatcher
from usersync.webhooks.handlers import WebhookReceiver, register_webhook_routes
from usersync.webhooks.verification import SignatureVerifier, SvixSignatureVerifier

logger = logging.getLogger(__name__)


def build_store(settings: Settings) -> UserStore:
    if settings.user_store == "memory":
        logger.warning("Using in-memory user store; records are lost on restart")
        return InMemoryUserStore()
    return PostgresUserStore(settings.database_url)


def create_app(
    settings: Settings,
    *,
    store: UserStore | None = None,
    identity: IdentityProvider | None = None,
    verifier: SignatureVerifier | None = None,
) -> FastAPI:
    """Build the app. Any collaborator not passed in is built from settings.

    Raises:
        ConfigurationError: the webhook secret or Clerk key is missing or invalid.
    """
    store = store if store is not None else build_store(settings)
    identity = identity if identity is not None else ClerkClient(
        settings.clerk_secret_key,
        api_url=settings.clerk_api_url,
        timeout=settings.clerk_timeout_seconds,
    )
    verifier = verifier if verifier is not None else SvixSignatureVerifier(settings.webhook_secret)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if isinstance(store, PostgresUserStore) and not settings.testing:
            store.init_tables()
        yield
        if isinstance(identity, ClerkClient):
            identity.close()

    app = FastAPI(title="usersync", version=__version__, lifespan=lifespan)

    receiver = WebhookReceiver(verifier, UserSyncDispatcher(store, identity))
    register_webhook_routes(app, receiver)

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    return app


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def build_app_from_env() -> FastAPI:
    """Uvicorn factory: settings from the environment (and .env)."""
    load_dotenv()
    settings = Settings.from_env()
    configure_logging(settings)
    return create_app(settings)


def main(argv: list[str] | None = None) -> None:
    import uvicorn

    parser = argparse.ArgumentParser(description="Clerk user sync webhook server")
    parser.add_argument("--host", default="0.0.0.0")
    parser.add_argument("--port", type=int, default=8000)
    args = parser.parse_args(argv)

    load_dotenv()
    settings = Settings.from_env()
    configure_logging(settings)

    uvicorn.run(create_app(settings), host=args.host, port=args.port)


if __name__ == "__main__":
    main()
