"""Tests for database error classification."""

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError, ProgrammingError

from db.errors import is_missing_relation, is_unique_violation


class PgError(Exception):
    def __init__(self, message: str, sqlstate: str) -> None:
        super().__init__(message)
        self.sqlstate = sqlstate


@pytest.mark.parametrize(
    "original, expected",
    [
        (PgError("duplicate key value violates unique constraint", "23505"), True),
        (Exception("UNIQUE constraint failed: post_likes.post_id, post_likes.user_id"), True),
        (PgError("insert or update violates foreign key constraint", "23503"), False),
        (Exception("FOREIGN KEY constraint failed"), False),
    ],
)
def test_is_unique_violation(original, expected):
    error = IntegrityError("INSERT", {}, original)
    assert is_unique_violation(error) is expected


@pytest.mark.parametrize(
    "error, expected",
    [
        (ProgrammingError("SELECT", {}, PgError('relation "posts" does not exist', "42P01")), True),
        (OperationalError("SELECT", {}, Exception("no such table: post_likes")), True),
        (OperationalError("SELECT", {}, Exception("database is locked")), False),
        (ProgrammingError("SELECT", {}, PgError("column missing", "42703")), False),
    ],
)
def test_is_missing_relation(error, expected):
    assert is_missing_relation(error) is expected
