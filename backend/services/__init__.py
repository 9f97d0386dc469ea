"""Business logic services."""

from .chatbot import FAILURE_REPLY, genz_response
from .images import (
    JPEG_CONTENT_TYPE,
    MAX_IMAGE_DIMENSION,
    UploadTooLargeError,
    process_image_bytes,
    read_upload_file,
)
from .rate_limiter import (
    RateLimitMiddleware,
    RateLimiter,
    get_rate_limiter,
    set_rate_limiter,
)
from .storage import (
    build_object_key,
    create_presigned_get_url,
    delete_object,
    ensure_bucket,
    get_minio_client,
    upload_object,
)

__all__ = [
    "FAILURE_REPLY",
    "genz_response",
    "get_minio_client",
    "ensure_bucket",
    "build_object_key",
    "upload_object",
    "delete_object",
    "create_presigned_get_url",
    "process_image_bytes",
    "read_upload_file",
    "MAX_IMAGE_DIMENSION",
    "JPEG_CONTENT_TYPE",
    "UploadTooLargeError",
    "RateLimiter",
    "RateLimitMiddleware",
    "get_rate_limiter",
    "set_rate_limiter",
]
