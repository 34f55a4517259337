"""Business logic services."""

from .edit_session import EditOutcome, EditSession, EditState
from .export import create_variations_zip
from .normalizer import get_image_dimensions, normalize, resize_image
from .orchestrator import Orchestrator
from .registry import VariationRegistry

__all__ = [
    "EditOutcome",
    "EditSession",
    "EditState",
    "Orchestrator",
    "VariationRegistry",
    "create_variations_zip",
    "get_image_dimensions",
    "normalize",
    "resize_image",
]
