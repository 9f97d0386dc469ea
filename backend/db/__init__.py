"""Database helpers."""

from .errors import is_missing_relation, is_unique_violation
from .session import (
    AsyncSessionMaker,
    async_engine,
    enable_sqlite_foreign_keys,
    get_session,
    statement_scope,
)

__all__ = [
    "AsyncSessionMaker",
    "async_engine",
    "enable_sqlite_foreign_keys",
    "get_session",
    "is_missing_relation",
    "is_unique_violation",
    "statement_scope",
]
