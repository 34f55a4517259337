"""Dimension normalizer - resample images to exact target sizes."""

import asyncio
from io import BytesIO

from PIL import Image, UnidentifiedImageError

from ..errors import NormalizerFailure


def _open(image_data: bytes) -> Image.Image:
    if not image_data:
        raise NormalizerFailure("Failed to load image: empty payload")
    try:
        img = Image.open(BytesIO(image_data))
        img.load()
    except (UnidentifiedImageError, OSError, ValueError) as e:
        raise NormalizerFailure(f"Failed to load image: {e}") from e
    return img


def get_image_dimensions(image_data: bytes) -> tuple[int, int]:
    """Return (width, height) of encoded image bytes."""
    return _open(image_data).size


def resize_image(image_data: bytes, width: int, height: int) -> bytes:
    """
    Resample an image to exactly (width, height).

    Args:
        image_data: Encoded image bytes
        width: Target width in pixels
        height: Target height in pixels

    Returns:
        PNG bytes of the resized image

    Raises:
        NormalizerFailure: If the input cannot be decoded or re-encoded
    """
    if width <= 0 or height <= 0:
        raise ValueError(f"Invalid target dimensions: {width}x{height}")

    img = _open(image_data)

    if img.mode not in ("RGB", "RGBA"):
        img = img.convert("RGBA" if "A" in img.getbands() else "RGB")

    if img.size != (width, height):
        img = img.resize((width, height), Image.LANCZOS)

    output = BytesIO()
    try:
        img.save(output, format="PNG")
    except (OSError, ValueError) as e:
        raise NormalizerFailure(f"Failed to encode resized image: {e}") from e
    return output.getvalue()


async def normalize(image_data: bytes, width: int, height: int) -> bytes:
    """Run resize_image off the event loop."""
    return await asyncio.to_thread(resize_image, image_data, width, height)
