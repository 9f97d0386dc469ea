"""Errors raised by the post subsystem."""

from __future__ import annotations


class PostError(Exception):
    """Base class for post subsystem failures surfaced to callers."""


class PostValidationError(PostError, ValueError):
    """Input was rejected before touching storage."""


class NotFoundError(PostError, LookupError):
    """A referenced record does not exist."""


class PostNotFoundError(NotFoundError):
    def __init__(self, post_id: str) -> None:
        super().__init__(f"Post {post_id} not found")
        self.post_id = post_id


class AuthorNotFoundError(NotFoundError):
    def __init__(self, user_id: str) -> None:
        super().__init__(f"User {user_id} not found")
        self.user_id = user_id
