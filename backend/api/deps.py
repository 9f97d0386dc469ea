"""Shared FastAPI dependencies."""

from __future__ import annotations

from collections.abc import AsyncIterator

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from db.session import get_session
from models import User
from services.auth import resolve_session_user, session_cookie_name


async def get_db() -> AsyncIterator[AsyncSession]:
    async for session in get_session():
        yield session


def get_session_token(request: Request) -> str | None:
    token = request.cookies.get(session_cookie_name())
    return token or None


async def get_optional_user(
    request: Request,
    session: AsyncSession = Depends(get_db),
) -> User | None:
    """Resolve the caller from the session cookie; anonymous callers get None."""
    return await resolve_session_user(session, get_session_token(request))


async def get_current_user(
    user: User | None = Depends(get_optional_user),
) -> User:
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
        )
    return user


async def require_admin(
    user: User = Depends(get_current_user),
) -> User:
    if not user.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Forbidden",
        )
    return user
