"""Pre-signed media URL endpoint."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from pydantic import BaseModel

from api.deps import get_current_user
from models import User
from services import create_presigned_get_url

router = APIRouter(prefix="/media", tags=["media"])

SIGNED_MEDIA_URL_TTL_SECONDS = 120
MAX_OBJECT_KEY_LENGTH = 255
MEDIA_NO_STORE_CACHE_CONTROL = "no-store"
MEDIA_KEY_PREFIXES = ("posts/", "avatars/")


class MediaURLResponse(BaseModel):
    url: str


def _normalize_object_key(raw_key: str) -> str:
    normalized_key = raw_key.strip().lstrip("/")
    if not normalized_key:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_CONTENT,
            detail="Media key must not be empty",
        )
    if ".." in normalized_key or not normalized_key.startswith(MEDIA_KEY_PREFIXES):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Media not found")
    return normalized_key


@router.get("", response_model=MediaURLResponse)
async def get_media_url(
    key: Annotated[str, Query(min_length=1, max_length=MAX_OBJECT_KEY_LENGTH)],
    response: Response,
    _current_user: User = Depends(get_current_user),
) -> MediaURLResponse:
    response.headers["Cache-Control"] = MEDIA_NO_STORE_CACHE_CONTROL
    signed_url = create_presigned_get_url(
        _normalize_object_key(key),
        expires_seconds=SIGNED_MEDIA_URL_TTL_SECONDS,
    )
    return MediaURLResponse(url=signed_url)
