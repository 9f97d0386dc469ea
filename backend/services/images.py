"""Upload reading and image normalization."""

from __future__ import annotations

from io import BytesIO

from fastapi import UploadFile
from PIL import Image, ImageOps, UnidentifiedImageError

MAX_IMAGE_DIMENSION = 2048
JPEG_CONTENT_TYPE = "image/jpeg"
JPEG_QUALITY = 85
UPLOAD_CHUNK_SIZE = 64 * 1024


class UploadTooLargeError(ValueError):
    def __init__(self, max_bytes: int) -> None:
        super().__init__(f"File exceeds maximum size of {max_bytes} bytes")
        self.max_bytes = max_bytes


async def read_upload_file(upload: UploadFile, max_bytes: int) -> bytes:
    """Read an upload in chunks, stopping as soon as it exceeds ``max_bytes``."""
    buffer = bytearray()
    while True:
        chunk = await upload.read(UPLOAD_CHUNK_SIZE)
        if not chunk:
            break
        buffer.extend(chunk)
        if len(buffer) > max_bytes:
            raise UploadTooLargeError(max_bytes)
    if not buffer:
        raise ValueError("Please upload an image.")
    return bytes(buffer)


def process_image_bytes(data: bytes) -> tuple[bytes, str]:
    """Decode, auto-rotate, bound and re-encode an image as JPEG."""
    try:
        with Image.open(BytesIO(data)) as source:
            image = ImageOps.exif_transpose(source)
            image = image.convert("RGB")
    except (UnidentifiedImageError, OSError) as exc:
        raise ValueError("Unsupported image file") from exc

    image.thumbnail((MAX_IMAGE_DIMENSION, MAX_IMAGE_DIMENSION))
    output = BytesIO()
    image.save(output, format="JPEG", quality=JPEG_QUALITY, optimize=True)
    return output.getvalue(), JPEG_CONTENT_TYPE
