"""Lazy provisioning of the fallback post tables."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from enum import Enum

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine

logger = logging.getLogger(__name__)

# Table and column names match the migrated schema so rows written through the
# fallback stay readable once migrations are applied.
FALLBACK_SCHEMA_STATEMENTS: tuple[str, ...] = (
    """
    CREATE TABLE IF NOT EXISTS posts (
        id VARCHAR(36) PRIMARY KEY,
        image_url TEXT NOT NULL,
        caption VARCHAR(1024),
        author_id VARCHAR(36) NOT NULL,
        created_at TIMESTAMP WITH TIME ZONE NOT NULL DEFAULT CURRENT_TIMESTAMP,
        CONSTRAINT fk_posts_author_id_users
            FOREIGN KEY (author_id) REFERENCES users (id) ON DELETE CASCADE
    )
    """,
    """
    CREATE INDEX IF NOT EXISTS ix_posts_author_id_created_at
        ON posts (author_id, created_at)
    """,
    """
    CREATE TABLE IF NOT EXISTS post_likes (
        id VARCHAR(36) PRIMARY KEY,
        post_id VARCHAR(36) NOT NULL,
        user_id VARCHAR(36) NOT NULL,
        created_at TIMESTAMP WITH TIME ZONE NOT NULL DEFAULT CURRENT_TIMESTAMP,
        CONSTRAINT fk_post_likes_post_id_posts
            FOREIGN KEY (post_id) REFERENCES posts (id) ON DELETE CASCADE,
        CONSTRAINT fk_post_likes_user_id_users
            FOREIGN KEY (user_id) REFERENCES users (id) ON DELETE CASCADE
    )
    """,
    """
    CREATE UNIQUE INDEX IF NOT EXISTS uq_post_likes_post_id_user_id
        ON post_likes (post_id, user_id)
    """,
    """
    CREATE TABLE IF NOT EXISTS post_comments (
        id VARCHAR(36) PRIMARY KEY,
        post_id VARCHAR(36) NOT NULL,
        user_id VARCHAR(36) NOT NULL,
        content VARCHAR(500) NOT NULL,
        created_at TIMESTAMP WITH TIME ZONE NOT NULL DEFAULT CURRENT_TIMESTAMP,
        CONSTRAINT fk_post_comments_post_id_posts
            FOREIGN KEY (post_id) REFERENCES posts (id) ON DELETE CASCADE,
        CONSTRAINT fk_post_comments_user_id_users
            FOREIGN KEY (user_id) REFERENCES users (id) ON DELETE CASCADE
    )
    """,
    """
    CREATE INDEX IF NOT EXISTS ix_post_comments_post_id_created_at
        ON post_comments (post_id, created_at)
    """,
)


class GuardState(str, Enum):
    NOT_STARTED = "not-started"
    IN_PROGRESS = "in-progress"
    DONE = "done"


class SchemaGuard:
    """Runs a DDL batch at most once per process.

    Concurrent callers attach to the same in-flight task instead of issuing
    duplicate DDL. A failed attempt is reported to every waiter and the guard
    returns to ``NOT_STARTED`` so the next call retries from scratch.
    Coordination across processes relies on ``IF NOT EXISTS``.
    """

    def __init__(self, statements: Sequence[str]) -> None:
        self.statements = tuple(statements)
        self._state = GuardState.NOT_STARTED
        self._pending: asyncio.Task[None] | None = None

    @property
    def state(self) -> GuardState:
        return self._state

    async def ensure(self, engine: AsyncEngine) -> None:
        if self._state is GuardState.DONE:
            return

        pending = self._pending
        if pending is None:
            self._state = GuardState.IN_PROGRESS
            pending = asyncio.ensure_future(self._provision(engine))
            self._pending = pending

        # Shielded so one waiter being cancelled does not abort the shared attempt.
        await asyncio.shield(pending)

    async def _provision(self, engine: AsyncEngine) -> None:
        try:
            async with engine.begin() as conn:
                for statement in self.statements:
                    await conn.execute(text(statement))
        except Exception:
            self._state = GuardState.NOT_STARTED
            logger.exception("Unable to provision fallback post schema")
            raise
        else:
            self._state = GuardState.DONE
            logger.info(
                "Provisioned fallback post schema",
                extra={"statements": len(self.statements)},
            )
        finally:
            self._pending = None

    def reset(self) -> None:
        """Forget a completed provisioning run (used when switching databases)."""
        if self._pending is not None and not self._pending.done():
            raise RuntimeError("Cannot reset while provisioning is in progress")
        self._state = GuardState.NOT_STARTED
        self._pending = None


post_schema_guard = SchemaGuard(FALLBACK_SCHEMA_STATEMENTS)


async def ensure_post_infrastructure(engine: AsyncEngine) -> None:
    await post_schema_guard.ensure(engine)
