"""Authentication domain services."""

from .cookies import (
    clear_session_cookie,
    session_cookie_name,
    set_session_cookie,
)
from .identity_resolution import (
    is_strong_password,
    is_valid_username,
    normalize_email,
    normalize_username,
    registration_conflict_exists,
    resolve_login_user,
)
from .session_store import (
    create_session,
    delete_session,
    delete_user_sessions,
    hash_session_token,
    resolve_session_user,
)

__all__ = [
    "clear_session_cookie",
    "session_cookie_name",
    "set_session_cookie",
    "is_strong_password",
    "is_valid_username",
    "normalize_email",
    "normalize_username",
    "registration_conflict_exists",
    "resolve_login_user",
    "create_session",
    "delete_session",
    "delete_user_sessions",
    "hash_session_token",
    "resolve_session_user",
]
