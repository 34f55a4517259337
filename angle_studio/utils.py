import base64
import re
from datetime import datetime, timezone

DATA_URL_HEADER = re.compile(r"^data:image/(png|jpeg|jpg|webp);base64,")


def strip_data_url_header(payload: str) -> str:
    """Remove a leading data-URL header, if any.

    Example: "data:image/png;base64,iVBOR..." -> "iVBOR..."
    """
    return DATA_URL_HEADER.sub("", payload.strip())


def decode_image_payload(payload: str | bytes) -> bytes:
    """Return raw image bytes from bytes, base64 text or a data URL."""
    if isinstance(payload, (bytes, bytearray)):
        return bytes(payload)
    try:
        return base64.b64decode(strip_data_url_header(payload), validate=True)
    except ValueError as e:
        raise ValueError(f"Invalid base64 image payload: {e}")


def to_data_url(image_bytes: bytes, mime_type: str = "image/png") -> str:
    """Encode image bytes as a data URL for the presentation layer."""
    if not image_bytes:
        return ""
    return f"data:{mime_type};base64,{base64.b64encode(image_bytes).decode('ascii')}"


def sanitize_filename(name: str) -> str:
    """Convert a label to a filename-safe slug.

    Example: "Side Profile (L)" -> "side-profile-l"
    """
    slug = re.sub(r"[^a-z0-9]+", "-", name.lower())
    return slug.strip("-")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)
