"""Core configuration and security helpers."""

from .config import settings
from .security import hash_password, needs_rehash, new_session_token, verify_password

__all__ = [
    "settings",
    "hash_password",
    "needs_rehash",
    "verify_password",
    "new_session_token",
]
