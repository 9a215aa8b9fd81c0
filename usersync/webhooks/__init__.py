"""Clerk webhook inbound system.

Receives user lifecycle webhooks from Clerk (delivered via Svix).
Each webhook is signature-verified, parsed, and applied to the user store.
"""
