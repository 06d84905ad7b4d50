import base64
import binascii
import logging
import re
from io import BytesIO
from typing import Tuple

from PIL import Image, ImageOps, UnidentifiedImageError

logger = logging.getLogger("runner_checkin.image_utils")

DATA_URI_RE = re.compile(r"^data:(image/[\w.+-]+)?(;[\w-]+=[\w.-]+)*;base64,", re.IGNORECASE)

MAX_PHOTO_SIZE = (1600, 1600)


class InvalidImageError(ValueError):
    pass


def decode_data_uri(data_uri: str) -> Tuple[bytes, str]:
    """Split a ``data:image/...;base64,`` URI into raw bytes and its mime type."""
    match = DATA_URI_RE.match(data_uri or "")
    if not match:
        raise InvalidImageError("Expected a base64 data:image URI")
    try:
        raw = base64.b64decode(data_uri[match.end():], validate=True)
    except (binascii.Error, ValueError):
        raise InvalidImageError("Image data is not valid base64")
    if not raw:
        raise InvalidImageError("Image data is empty")
    return raw, (match.group(1) or "image/png").lower()


def _open_image(raw: bytes) -> Image.Image:
    try:
        img = Image.open(BytesIO(raw))
        img.load()
    except (UnidentifiedImageError, OSError) as e:
        raise InvalidImageError(f"Could not read image: {str(e)}")
    return img


def photo_to_jpeg(data_uri: str, quality: int = 85) -> bytes:
    raw, mime = decode_data_uri(data_uri)
    img = ImageOps.exif_transpose(_open_image(raw))
    if img.mode != 'RGB':
        img = img.convert('RGB')
    img.thumbnail(MAX_PHOTO_SIZE, Image.Resampling.LANCZOS)
    buffer = BytesIO()
    img.save(buffer, format="JPEG", quality=quality)
    logger.debug(f"Normalized {mime} photo ({len(raw)} bytes) to JPEG ({buffer.tell()} bytes)")
    return buffer.getvalue()


def signature_to_png(data_uri: str) -> bytes:
    raw, mime = decode_data_uri(data_uri)
    img = _open_image(raw)
    if mime == "image/png" and img.format == "PNG":
        return raw
    # Keep transparency
    if img.mode not in ('RGBA', 'LA', 'L'):
        img = img.convert('RGBA')
    buffer = BytesIO()
    img.save(buffer, format="PNG")
    logger.debug(f"Converted {mime} signature to PNG ({buffer.tell()} bytes)")
    return buffer.getvalue()
