"""Pillow helpers for decoding and encoding MatCap images."""
import io
import logging
from typing import Optional

from PIL import Image, UnidentifiedImageError

logger = logging.getLogger(__name__)


def decode_image(data: bytes) -> Optional[Image.Image]:
    """Decode image bytes fully into memory. Returns None if they are not an image."""
    if not data:
        return None
    try:
        image = Image.open(io.BytesIO(data))
        image.load()
        return image
    except (UnidentifiedImageError, OSError, ValueError) as e:
        logger.debug("Image decode failed: %s", e)
        return None


def placeholder_image(size: int = 64) -> Image.Image:
    """Flat grey square shown while a preview is missing."""
    return Image.new("RGB", (size, size), (60, 60, 60))
