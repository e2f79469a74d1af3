"""
Raster decode/encode helpers for Canvas Studio.

Every engine loads its base image through decode_image and hands its
result back through encode_png, so decode failures and empty output are
reported the same way everywhere.

Functions:
    decode_image: Bytes (or an already-open PIL Image) to an RGBA PIL Image
    encode_png: PIL Image to PNG bytes
    validate_mime: Classify an uploaded MIME type as image or video
    fit_within: Largest size that fits a box without upscaling
"""

import io
import logging
from typing import Any, Tuple, Union

from PIL import Image, UnidentifiedImageError

from CS_Libs.constants import (
    IMAGE_MIME_PREFIX,
    OUTPUT_FORMAT,
    SUPPORTED_VIDEO_MIME_TYPES,
)
from CS_Libs.errors import ApplyFailed, DecodeError, UnsupportedMediaType

logger = logging.getLogger(__name__)

RgbaColor = Tuple[int, int, int, int]
RasterSource = Union[bytes, bytearray, Any]


def decode_image(source: RasterSource, label: str = "image") -> Any:
    """
    Decode raster bytes into an RGBA PIL Image.

    Args:
        source: Encoded image bytes, or a PIL Image (copied and converted)
        label: Name used in the error message ("base image", "overlay logo", ...)

    Returns:
        Fully loaded RGBA PIL Image

    Raises:
        DecodeError: If the bytes are empty, truncated, not an image or too large to open safely
    """
    if hasattr(source, "mode") and hasattr(source, "convert"):
        return source.convert("RGBA")

    if not isinstance(source, (bytes, bytearray)) or not source:
        raise DecodeError(f"Could not decode {label}: no image data")

    try:
        with Image.open(io.BytesIO(source)) as opened:
            opened.load()
            image = opened.convert("RGBA")
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as e:
        logger.warning(f"Failed to decode {label}: {e}")
        raise DecodeError(f"Could not decode {label}: {e}") from e

    return image


def encode_png(image: Any) -> bytes:
    """
    Encode a PIL Image as PNG bytes.

    Raises:
        ApplyFailed: If the image has zero area or encoding produced nothing
    """
    if image is None or image.width <= 0 or image.height <= 0:
        raise ApplyFailed("Rasterization produced an empty image")

    buffer = io.BytesIO()
    try:
        image.save(buffer, format=OUTPUT_FORMAT)
    except (OSError, ValueError) as e:
        raise ApplyFailed(f"Could not encode output: {e}") from e

    data = buffer.getvalue()
    if not data:
        raise ApplyFailed("Rasterization produced no bytes")
    return data


def validate_mime(mime_type: str) -> str:
    """
    Classify an upload by MIME type.

    Returns:
        "image" or "video"

    Raises:
        UnsupportedMediaType: For anything other than image/* or a whitelisted video type
    """
    mime = (mime_type or "").strip().lower()
    if mime.startswith(IMAGE_MIME_PREFIX) and len(mime) > len(IMAGE_MIME_PREFIX):
        return "image"
    if mime in SUPPORTED_VIDEO_MIME_TYPES:
        return "video"
    raise UnsupportedMediaType(f"Unsupported media type: {mime_type!r}")


def fit_within(width: int, height: int, max_w: int, max_h: int) -> Tuple[int, int]:
    """Scale (width, height) down to fit (max_w, max_h); never scales up."""
    if width <= 0 or height <= 0:
        return 0, 0
    scale = min(1.0, max_w / width, max_h / height)
    return max(1, round(width * scale)), max(1, round(height * scale))
