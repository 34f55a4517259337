"""Nine-angle image variations and prompt edits on top of Gemini image models."""

__version__ = "0.1.0"
