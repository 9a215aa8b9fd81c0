"""Identity provider integration (Clerk)."""

from usersync.identity.clerk import ClerkClient, IdentityProvider

__all__ = ["ClerkClient", "IdentityProvider"]
