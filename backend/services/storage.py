"""MinIO object storage for uploaded images."""

from __future__ import annotations

import logging
from datetime import timedelta
from functools import lru_cache
from io import BytesIO
from uuid import uuid4

from minio import Minio
from minio.error import S3Error

from core import settings

logger = logging.getLogger(__name__)

MISSING_OBJECT_CODES = frozenset({"NoSuchKey", "NoSuchObject", "ResourceNotFound"})
EXISTING_BUCKET_CODES = frozenset({"BucketAlreadyOwnedByYou", "BucketAlreadyExists"})


@lru_cache
def get_minio_client() -> Minio:
    return Minio(
        settings.minio_endpoint,
        access_key=settings.minio_access_key,
        secret_key=settings.minio_secret_key,
        secure=settings.minio_secure,
    )


def ensure_bucket(client: Minio | None = None) -> None:
    client = client or get_minio_client()
    bucket_name = settings.minio_bucket
    if client.bucket_exists(bucket_name):  # pragma: no cover - network call
        return
    try:
        client.make_bucket(bucket_name)  # pragma: no cover - network call
    except S3Error as exc:  # pragma: no cover - bucket created concurrently
        if exc.code not in EXISTING_BUCKET_CODES:
            raise


def build_object_key(prefix: str, extension: str = "jpg") -> str:
    """Return a fresh key such as ``posts/<uuid>.jpg``."""
    return f"{prefix.strip('/')}/{uuid4().hex}.{extension}"


def upload_object(
    object_key: str,
    data: bytes,
    content_type: str,
    client: Minio | None = None,
) -> str:
    client = client or get_minio_client()
    ensure_bucket(client)
    client.put_object(
        settings.minio_bucket,
        object_key,
        data=BytesIO(data),
        length=len(data),
        content_type=content_type,
    )
    logger.info("Stored object", extra={"object_key": object_key, "size": len(data)})
    return object_key


def delete_object(object_key: str, client: Minio | None = None) -> None:
    """Delete an object; a key that is already gone is not an error."""
    client = client or get_minio_client()
    try:
        client.remove_object(settings.minio_bucket, object_key)  # pragma: no cover - network call
    except S3Error as exc:  # pragma: no cover - network call
        if exc.code not in MISSING_OBJECT_CODES:
            raise


def create_presigned_get_url(
    object_key: str,
    *,
    expires_seconds: int = 120,
    client: Minio | None = None,
) -> str:
    normalized_object_key = object_key.strip()
    if not normalized_object_key:
        raise ValueError("object_key must not be empty")
    if expires_seconds <= 0:
        raise ValueError("expires_seconds must be positive")

    client = client or get_minio_client()
    return client.presigned_get_object(
        settings.minio_bucket,
        normalized_object_key,
        expires=timedelta(seconds=expires_seconds),
    )
