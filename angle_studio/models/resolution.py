"""Resolution tiers, aspect classification and cost estimates."""

from dataclasses import dataclass
from enum import Enum

from .angle import NUM_IMAGES_TO_GENERATE

WIDE_ASPECT_RATIO = 16 / 9  # ~1.7778
ASPECT_TOLERANCE = 0.1


class Resolution(Enum):
    R1K = "1K"
    R2K = "2K"
    R4K = "4K"

    @classmethod
    def parse(cls, value: "str | Resolution") -> "Resolution":
        """Parse "1K", "2k", ... into a Resolution."""
        if isinstance(value, Resolution):
            return value
        normalized = str(value).strip().upper()
        for resolution in cls:
            if resolution.value == normalized:
                return resolution
        raise ValueError(f"Unknown resolution: {value}. Valid: {[r.value for r in cls]}")

    @property
    def label(self) -> str:
        width, height = RESOLUTION_DIMENSIONS[(self, AspectClass.SQUARE)]
        return f"{self.value} ({width}×{height})"


class AspectClass(Enum):
    SQUARE = "square"
    WIDE = "wide"

    @property
    def hint(self) -> str:
        """Aspect ratio hint understood by the image endpoint."""
        return "16:9" if self is AspectClass.WIDE else "1:1"


@dataclass(frozen=True)
class PricingConfig:
    cost_per_image: float  # USD


# (tier, aspect) -> (width, height)
RESOLUTION_DIMENSIONS: dict[tuple[Resolution, AspectClass], tuple[int, int]] = {
    (Resolution.R1K, AspectClass.SQUARE): (1024, 1024),
    (Resolution.R2K, AspectClass.SQUARE): (2048, 2048),
    (Resolution.R4K, AspectClass.SQUARE): (4096, 4096),
    (Resolution.R1K, AspectClass.WIDE): (1920, 1080),
    (Resolution.R2K, AspectClass.WIDE): (3840, 2160),
    (Resolution.R4K, AspectClass.WIDE): (5504, 3072),
}

RESOLUTION_PRICING: dict[Resolution, PricingConfig] = {
    Resolution.R1K: PricingConfig(0.0387),  # ~1,290 tokens at $30 per 1M tokens
    Resolution.R2K: PricingConfig(0.0387),
    Resolution.R4K: PricingConfig(0.06),    # ~2,000 tokens at $30 per 1M tokens
}


def is_wide_aspect(width: int, height: int, tolerance: float = ASPECT_TOLERANCE) -> bool:
    """True if width/height is within tolerance of 16:9 (strict comparison)."""
    if width <= 0 or height <= 0:
        raise ValueError(f"Invalid image dimensions: {width}x{height}")
    return abs(width / height - WIDE_ASPECT_RATIO) < tolerance


def classify_aspect(width: int, height: int) -> AspectClass:
    return AspectClass.WIDE if is_wide_aspect(width, height) else AspectClass.SQUARE


def target_dimensions(resolution: Resolution, aspect: AspectClass) -> tuple[int, int]:
    """Look up exact output (width, height) for a tier and aspect class."""
    return RESOLUTION_DIMENSIONS[(resolution, aspect)]


def cost_per_image(resolution: Resolution) -> float:
    return RESOLUTION_PRICING[resolution].cost_per_image


def calculate_generation_cost(
    resolution: Resolution, num_images: int = NUM_IMAGES_TO_GENERATE
) -> float:
    """Estimated USD cost of generating num_images at a tier."""
    return cost_per_image(resolution) * num_images


def format_cost(cost: float) -> str:
    """Format cost for display: "$0.54", or "$0.3483" when cents would hide detail."""
    rounded = round(cost * 100) / 100
    if abs(rounded - cost) < 0.001:
        return f"${rounded:.2f}"
    return f"${cost:.4f}"
