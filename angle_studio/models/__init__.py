"""Data models."""

from .angle import ANGLES, NUM_IMAGES_TO_GENERATE, AngleConfig, get_angle
from .resolution import AspectClass, Resolution
from .variation import GeneratedVariation, VariationStatus

__all__ = [
    "ANGLES",
    "NUM_IMAGES_TO_GENERATE",
    "AngleConfig",
    "AspectClass",
    "GeneratedVariation",
    "Resolution",
    "VariationStatus",
    "get_angle",
]
