"""Camera angle configurations."""

from dataclasses import dataclass


@dataclass(frozen=True)
class AngleConfig:
    """One requested camera perspective."""

    label: str        # Short display name, e.g. "Isometric"
    instruction: str  # Natural-language description sent to the model


# 9 fixed perspectives, in grid order
ANGLES: list[AngleConfig] = [
    AngleConfig("Isometric", "isometric view from top-right corner"),
    AngleConfig("Bird's Eye", "direct top-down bird's eye view"),
    AngleConfig("Worm's Eye", "low angle worm's eye view looking up"),
    AngleConfig("Wide Angle", "wide angle lens view capturing more context"),
    AngleConfig("Side Profile (L)", "profile view from the left side"),
    AngleConfig("Side Profile (R)", "profile view from the right side"),
    AngleConfig("Close Up", "detailed close-up shot of the main subject"),
    AngleConfig("Dutch Angle", "dramatic dutch angle (tilted horizon)"),
    AngleConfig("Cinematic", "cinematic establishing shot from a distance"),
]

NUM_IMAGES_TO_GENERATE = len(ANGLES)


def get_angle(index: int) -> AngleConfig:
    """Get angle by grid index."""
    if not 0 <= index < len(ANGLES):
        raise ValueError(f"Invalid angle index: {index}. Valid: 0-{len(ANGLES) - 1}")
    return ANGLES[index]
