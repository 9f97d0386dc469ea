"""Post feed, creation, like and comment endpoints."""

from __future__ import annotations

import asyncio
import logging
from typing import Annotated, Any

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from minio.error import S3Error
from pydantic import BaseModel, ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.datastructures import UploadFile

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
from services.posts import (
    NotFoundError,
    PostValidationError,
    add_comment,
    create_post as create_post_record,
    list_feed,
    normalize_caption,
    toggle_like,
)
from services.posts.serialization import (
    CommentCreateResponse,
    FeedResponse,
    LikeToggleResponse,
    PostCreateResponse,
    PostResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/posts", tags=["posts"])

MAX_FEED_PAGE_SIZE = 100
MISSING_IMAGE_DETAIL = "Please upload an image."
FORM_CONTENT_TYPES = ("multipart/form-data", "application/x-www-form-urlencoded")


class PostCreateRequest(BaseModel):
    image_url: str | None = None
    caption: str | None = None


class CommentCreateRequest(BaseModel):
    content: str


def _not_found(exc: NotFoundError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))


async def _store_uploaded_image(upload: UploadFile, author_id: str) -> str:
    try:
        data = await read_upload_file(upload, settings.upload_max_bytes)
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

    object_key = build_object_key(f"posts/{author_id}")
    await asyncio.to_thread(upload_object, object_key, processed_bytes, content_type)
    return object_key


async def _read_create_payload(request: Request) -> tuple[Any, str | None]:
    """Return ``(image, caption)`` from a multipart form or a JSON body."""
    content_type = request.headers.get("content-type", "")
    if content_type.startswith(FORM_CONTENT_TYPES):
        form = await request.form()
        caption = form.get("caption")
        return form.get("image"), caption if isinstance(caption, str) else None

    try:
        payload = PostCreateRequest.model_validate(await request.json())
    except (ValueError, ValidationError) as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid post payload",
        ) from exc
    return payload.image_url, payload.caption


@router.get("", response_model=FeedResponse)
async def get_feed(
    author_id: str | None = None,
    limit: Annotated[int | None, Query(ge=1, le=MAX_FEED_PAGE_SIZE)] = None,
    session: AsyncSession = Depends(get_db),
    viewer: User | None = Depends(get_optional_user),
) -> FeedResponse:
    entries = await list_feed(
        session,
        limit or settings.feed_page_size,
        author_id=author_id or None,
        viewer_id=viewer.id if viewer is not None else None,
    )
    return FeedResponse(posts=[PostResponse.from_entry(entry) for entry in entries])


@router.post("", status_code=status.HTTP_201_CREATED, response_model=PostCreateResponse)
async def create_post(
    request: Request,
    session: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> PostCreateResponse:
    author_id = current_user.id
    image, caption = await _read_create_payload(request)
    try:
        normalized_caption = normalize_caption(caption)
    except PostValidationError as exc:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_CONTENT,
            detail=str(exc),
        ) from exc

    uploaded_key: str | None = None
    if isinstance(image, UploadFile):
        uploaded_key = await _store_uploaded_image(image, author_id)
        image_ref = uploaded_key
    elif isinstance(image, str):
        image_ref = image.strip()
    else:
        image_ref = ""

    if not image_ref:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=MISSING_IMAGE_DETAIL,
        )

    try:
        entry = await create_post_record(
            session,
            author_id,
            image_ref,
            normalized_caption,
        )
    except PostValidationError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc
    except NotFoundError as exc:
        raise _not_found(exc) from exc
    except SQLAlchemyError as exc:
        await session.rollback()
        logger.exception("Post creation failed", extra={"author_id": author_id})
        if uploaded_key is not None:
            try:
                await asyncio.to_thread(delete_object, uploaded_key)
            except S3Error:
                logger.warning("Orphaned upload left behind", extra={"object_key": uploaded_key})
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Unable to share post.",
        ) from exc

    return PostCreateResponse(post=PostResponse.from_entry(entry))


@router.post("/{post_id}/like", response_model=LikeToggleResponse)
async def like_post(
    post_id: str,
    session: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> LikeToggleResponse:
    try:
        result = await toggle_like(session, post_id, current_user.id)
    except NotFoundError as exc:
        raise _not_found(exc) from exc
    except SQLAlchemyError as exc:
        await session.rollback()
        logger.exception("Like toggle failed", extra={"post_id": post_id})
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Unable to toggle like.",
        ) from exc
    return LikeToggleResponse.from_result(result)


@router.post(
    "/{post_id}/comments",
    status_code=status.HTTP_201_CREATED,
    response_model=CommentCreateResponse,
)
async def create_comment(
    post_id: str,
    payload: CommentCreateRequest,
    session: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> CommentCreateResponse:
    try:
        result = await add_comment(session, post_id, current_user.id, payload.content)
    except PostValidationError as exc:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_CONTENT,
            detail=str(exc),
        ) from exc
    except NotFoundError as exc:
        raise _not_found(exc) from exc
    except SQLAlchemyError as exc:
        await session.rollback()
        logger.exception("Comment creation failed", extra={"post_id": post_id})
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Unable to add comment.",
        ) from exc
    return CommentCreateResponse.from_result(result)
