"""Studio engine."""

from .engine import StudioEngine

__all__ = ["StudioEngine"]
