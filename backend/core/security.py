"""Password hashing and session token generation."""

from __future__ import annotations

import secrets

from passlib.context import CryptContext

SESSION_TOKEN_BYTES = 48

pwd_context = CryptContext(schemes=["argon2"], deprecated="auto")


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return pwd_context.verify(password, password_hash)
    except ValueError:
        # Unknown or malformed hash formats never authenticate.
        return False


def needs_rehash(password_hash: str) -> bool:
    return pwd_context.needs_update(password_hash)


def new_session_token() -> str:
    """Return an opaque random session token (hex encoded)."""
    return secrets.token_hex(SESSION_TOKEN_BYTES)
