"""Login session persistence."""

from __future__ import annotations

import hashlib
import logging
from datetime import timedelta
from typing import Any, cast

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import ColumnElement

from core import new_session_token, settings
from core.clock import ensure_aware, utc_now
from models import User, UserSession

logger = logging.getLogger(__name__)


def _eq(column: Any, value: Any) -> ColumnElement[bool]:
    return cast(ColumnElement[bool], column == value)


def hash_session_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def session_ttl() -> timedelta:
    return timedelta(seconds=settings.session_ttl_seconds)


async def create_session(session: AsyncSession, user_id: str) -> tuple[str, UserSession]:
    """Issue a new session for ``user_id``; the raw token is returned only once."""
    token = new_session_token()
    record = UserSession(
        user_id=user_id,
        token_hash=hash_session_token(token),
        expires_at=utc_now() + session_ttl(),
    )
    session.add(record)
    await session.commit()
    return token, record


async def resolve_session_user(session: AsyncSession, token: str | None) -> User | None:
    if not token:
        return None

    result = await session.execute(
        select(UserSession, User)
        .join(User, _eq(User.id, UserSession.user_id))
        .where(_eq(UserSession.token_hash, hash_session_token(token)))
        .limit(1)
    )
    row = result.first()
    if row is None:
        return None

    record, user = row
    if ensure_aware(record.expires_at) <= utc_now():
        await session.delete(record)
        await session.commit()
        logger.info("Expired session removed", extra={"user_id": user.id})
        return None
    return user


async def delete_session(session: AsyncSession, token: str | None) -> None:
    if not token:
        return
    await session.execute(
        delete(UserSession).where(_eq(UserSession.token_hash, hash_session_token(token)))
    )
    await session.commit()


async def delete_user_sessions(session: AsyncSession, user_id: str) -> None:
    await session.execute(delete(UserSession).where(_eq(UserSession.user_id, user_id)))
    await session.commit()
