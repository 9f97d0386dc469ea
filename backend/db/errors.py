"""Database error helpers."""

from __future__ import annotations

from sqlalchemy.exc import DBAPIError, IntegrityError

UNIQUE_VIOLATION_SQLSTATE = "23505"
UNDEFINED_TABLE_SQLSTATE = "42P01"


def _sqlstate(error: DBAPIError) -> str | None:
    original = getattr(error, "orig", None)
    return getattr(original, "sqlstate", None) or getattr(original, "pgcode", None)


def is_unique_violation(error: IntegrityError) -> bool:
    """Return True when the IntegrityError indicates a unique-constraint conflict."""
    if _sqlstate(error) == UNIQUE_VIOLATION_SQLSTATE:
        return True
    message = str(getattr(error, "orig", None) or error).lower()
    return "duplicate key" in message or "unique constraint" in message


def is_missing_relation(error: DBAPIError) -> bool:
    """Return True when the error says a table/relation does not exist."""
    if _sqlstate(error) == UNDEFINED_TABLE_SQLSTATE:
        return True
    message = str(getattr(error, "orig", None) or error).lower()
    if "no such table" in message:
        return True
    return "relation" in message and "does not exist" in message


__all__ = ["is_missing_relation", "is_unique_violation"]
