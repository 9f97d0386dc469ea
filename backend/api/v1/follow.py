"""Follow graph endpoints."""

from __future__ import annotations

from typing import Any, Literal, cast

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel
from sqlalchemy import and_, delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import ColumnElement

from api.deps import get_current_user, get_db
from db.errors import is_unique_violation
from models import Follow, User
from .user_views import SafeUserResponse

router = APIRouter(prefix="/follow", tags=["follow"])

MAX_SUGGESTIONS = 10


def _eq(column: Any, value: Any) -> ColumnElement[bool]:
    return cast(ColumnElement[bool], column == value)


def _ne(column: Any, value: Any) -> ColumnElement[bool]:
    return cast(ColumnElement[bool], column != value)


def _desc(column: Any) -> Any:
    return cast(Any, column).desc()


class FollowOverviewResponse(BaseModel):
    following: list[SafeUserResponse]
    followers: list[SafeUserResponse]
    suggestions: list[SafeUserResponse]


class FollowToggleRequest(BaseModel):
    user_id: str


class FollowToggleResponse(BaseModel):
    message: str
    state: Literal["following", "none"]


@router.get("", response_model=FollowOverviewResponse)
async def get_follow_overview(
    session: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> FollowOverviewResponse:
    user_entity = cast(Any, User)
    following_result = await session.execute(
        select(user_entity)
        .join(Follow, _eq(Follow.followee_id, User.id))
        .where(_eq(Follow.follower_id, current_user.id))
        .order_by(_desc(Follow.created_at))
    )
    followers_result = await session.execute(
        select(user_entity)
        .join(Follow, _eq(Follow.follower_id, User.id))
        .where(_eq(Follow.followee_id, current_user.id))
        .order_by(_desc(Follow.created_at))
    )

    follow_followee = cast(ColumnElement[str], Follow.followee_id)
    already_followed = select(follow_followee).where(_eq(Follow.follower_id, current_user.id))
    suggestions_result = await session.execute(
        select(user_entity)
        .where(
            _ne(User.id, current_user.id),
            cast(ColumnElement[str], User.id).not_in(already_followed),
        )
        .order_by(_desc(User.created_at), _desc(User.id))
        .limit(MAX_SUGGESTIONS)
    )

    return FollowOverviewResponse(
        following=[SafeUserResponse.model_validate(user) for user in following_result.scalars()],
        followers=[SafeUserResponse.model_validate(user) for user in followers_result.scalars()],
        suggestions=[SafeUserResponse.model_validate(user) for user in suggestions_result.scalars()],
    )


@router.post("", response_model=FollowToggleResponse)
async def toggle_follow(
    payload: FollowToggleRequest,
    session: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> FollowToggleResponse:
    target_id = payload.user_id.strip()
    if target_id == current_user.id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="You cannot follow yourself.",
        )

    target = await session.get(User, target_id)
    if target is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found.")

    result = await session.execute(
        delete(Follow).where(
            cast(
                ColumnElement[bool],
                and_(
                    _eq(Follow.follower_id, current_user.id),
                    _eq(Follow.followee_id, target_id),
                ),
            )
        )
    )
    await session.commit()
    if int(cast(Any, result).rowcount or 0) > 0:
        return FollowToggleResponse(message="Unfollowed user.", state="none")

    session.add(Follow(follower_id=current_user.id, followee_id=target_id))
    try:
        await session.commit()
    except IntegrityError as exc:
        await session.rollback()
        if not is_unique_violation(exc):
            raise
    return FollowToggleResponse(message="Now following this user.", state="following")
