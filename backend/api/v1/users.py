"""User directory, public profile and profile image endpoints."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, cast

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile, status
from minio.error import S3Error
from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import get_current_user, get_db, get_optional_user
from core import settings
from models import User
from services import (
    UploadTooLargeError,
    build_object_key,
    delete_object,
    process_image_bytes,
    read_upload_file,
    upload_object,
)
from services.auth import normalize_username
from services.posts import count_posts_by_author, list_feed
from services.posts.serialization import PostResponse
from .user_views import (
    SafeUserResponse,
    UserProfileResponse,
    UserWithCountsResponse,
    collect_follow_counts,
    viewer_follows_user,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/users", tags=["users"])

DIRECTORY_SIZE = 25


def _desc(column: Any) -> Any:
    return cast(Any, column).desc()


class DirectoryUserResponse(UserWithCountsResponse):
    is_current_user: bool = False


class DirectoryResponse(BaseModel):
    users: list[DirectoryUserResponse]


class ProfileImageResponse(BaseModel):
    user: SafeUserResponse


class ProfileResponse(BaseModel):
    user: UserProfileResponse
    posts: list[PostResponse]


@router.get("", response_model=DirectoryResponse)
async def list_users(
    session: AsyncSession = Depends(get_db),
    viewer: User | None = Depends(get_optional_user),
) -> DirectoryResponse:
    result = await session.execute(
        select(User).order_by(_desc(User.created_at), _desc(User.id)).limit(DIRECTORY_SIZE)
    )
    users = list(result.scalars().all())
    counts = await collect_follow_counts(session, [user.id for user in users])
    viewer_id = viewer.id if viewer is not None else None
    return DirectoryResponse(
        users=[
            DirectoryUserResponse(
                **UserWithCountsResponse.from_user(user, counts).model_dump(),
                is_current_user=user.id == viewer_id,
            )
            for user in users
        ]
    )


@router.post("/profile-image", response_model=ProfileImageResponse)
async def upload_profile_image(
    image: UploadFile = File(...),
    session: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> ProfileImageResponse:
    if image.content_type and not image.content_type.startswith("image/"):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Please upload a valid image.",
        )

    try:
        data = await read_upload_file(image, settings.upload_max_bytes)
        processed_bytes, content_type = await asyncio.to_thread(process_image_bytes, data)
    except UploadTooLargeError as exc:
        raise HTTPException(
            status_code=status.HTTP_413_CONTENT_TOO_LARGE,
            detail=str(exc),
        ) from exc
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc

    object_key = build_object_key("avatars")
    await asyncio.to_thread(upload_object, object_key, processed_bytes, content_type)

    previous_key = current_user.profile_image
    current_user.profile_image = object_key
    session.add(current_user)
    try:
        await session.commit()
    except SQLAlchemyError as exc:
        await session.rollback()
        try:
            await asyncio.to_thread(delete_object, object_key)
        except S3Error as cleanup_error:
            logger.warning(
                "Failed to clean up uploaded avatar",
                extra={"object_key": object_key},
                exc_info=cleanup_error,
            )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Unable to update profile image.",
        ) from exc

    if previous_key and previous_key.startswith("avatars/"):
        try:
            await asyncio.to_thread(delete_object, previous_key)
        except S3Error as cleanup_error:
            logger.warning(
                "Failed to clean up replaced avatar",
                extra={"object_key": previous_key},
                exc_info=cleanup_error,
            )

    await session.refresh(current_user)
    return ProfileImageResponse(user=SafeUserResponse.model_validate(current_user))


@router.get("/{username}", response_model=ProfileResponse)
async def get_profile(
    username: str,
    session: AsyncSession = Depends(get_db),
    viewer: User | None = Depends(get_optional_user),
) -> ProfileResponse:
    result = await session.execute(
        select(User).where(User.username == normalize_username(username))
    )
    user = result.scalars().first()
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found.")

    viewer_id = viewer.id if viewer is not None else None
    counts = await collect_follow_counts(session, [user.id])
    post_count = await count_posts_by_author(session, user.id)
    follows = await viewer_follows_user(session, viewer_id, user.id)
    entries = await list_feed(
        session,
        settings.feed_page_size,
        author_id=user.id,
        viewer_id=viewer_id,
    )
    return ProfileResponse(
        user=UserProfileResponse(
            **UserWithCountsResponse.from_user(user, counts).model_dump(),
            post_count=post_count,
            viewer_follows=follows,
            is_current_user=user.id == viewer_id,
        ),
        posts=[PostResponse.from_entry(entry) for entry in entries],
    )
