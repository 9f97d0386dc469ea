"""Shared user view models and follow-count helpers."""

from __future__ import annotations

from datetime import datetime
from typing import Any, cast

from pydantic import BaseModel, ConfigDict, field_serializer
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import ColumnElement

from core.clock import ensure_aware
from models import Follow, User


class SafeUserResponse(BaseModel):
    """Public profile fields; never includes credentials."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    email: str
    username: str
    display_name: str | None = None
    bio: str | None = None
    profile_image: str | None = None
    role: str
    is_verified: bool
    created_at: datetime

    @field_serializer("created_at", when_used="json")
    def _serialize_created_at(self, value: datetime) -> str:
        return ensure_aware(value).isoformat()


class UserWithCountsResponse(SafeUserResponse):
    follower_count: int = 0
    following_count: int = 0

    @classmethod
    def from_user(cls, user: User, counts: dict[str, tuple[int, int]]) -> "UserWithCountsResponse":
        followers, following = counts.get(user.id, (0, 0))
        return cls(
            **SafeUserResponse.model_validate(user).model_dump(),
            follower_count=followers,
            following_count=following,
        )


async def collect_follow_counts(
    session: AsyncSession,
    user_ids: list[str],
) -> dict[str, tuple[int, int]]:
    """Return ``{user_id: (follower_count, following_count)}`` in two grouped queries."""
    if not user_ids:
        return {}

    followee_column = cast(ColumnElement[str], Follow.followee_id)
    follower_column = cast(ColumnElement[str], Follow.follower_id)
    count_column = cast(Any, func.count())

    follower_result = await session.execute(
        select(followee_column, count_column)
        .where(followee_column.in_(user_ids))
        .group_by(followee_column)
    )
    follower_map = {user_id: int(total) for user_id, total in follower_result.all()}

    following_result = await session.execute(
        select(follower_column, count_column)
        .where(follower_column.in_(user_ids))
        .group_by(follower_column)
    )
    following_map = {user_id: int(total) for user_id, total in following_result.all()}

    return {
        user_id: (follower_map.get(user_id, 0), following_map.get(user_id, 0))
        for user_id in user_ids
    }


class UserProfileResponse(UserWithCountsResponse):
    post_count: int = 0
    viewer_follows: bool = False
    is_current_user: bool = False


async def viewer_follows_user(session: AsyncSession, viewer_id: str | None, user_id: str) -> bool:
    if viewer_id is None or viewer_id == user_id:
        return False
    result = await session.execute(
        select(Follow).where(
            cast(ColumnElement[str], Follow.follower_id) == viewer_id,
            cast(ColumnElement[str], Follow.followee_id) == user_id,
        )
    )
    return result.first() is not None
