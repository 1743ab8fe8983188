"""Opaque credential generation for access keys and session tokens."""

from __future__ import annotations

import hashlib
import secrets

KEY_LENGTH = 32
TOKEN_BYTES = 64


def generate_key() -> str:
    """Return a 32-character hex access key.

    32 random bytes from the OS CSPRNG are hashed with SHA-256 and the digest
    is truncated.
    """
    random_part = secrets.token_hex(32)
    return hashlib.sha256(random_part.encode()).hexdigest()[:KEY_LENGTH]


def generate_token() -> str:
    """Return a 128-character hex session token (64 random bytes)."""
    return secrets.token_hex(TOKEN_BYTES)


def obfuscate(value: str | None) -> str | None:
    """Keep the first and last four characters of a secret, mask the rest."""
    if not value or len(value) <= 8:
        return value
    return f"{value[:4]}****{value[-4:]}"
