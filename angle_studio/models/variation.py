"""Generated variation model - one per camera angle."""

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from ..utils import utc_now
from .angle import AngleConfig


class VariationStatus(Enum):
    PENDING = "pending"
    LOADING = "loading"
    SUCCESS = "success"
    ERROR = "error"


def new_variation_id(index: int) -> str:
    return f"var-{uuid.uuid4().hex[:12]}-{index}"


@dataclass
class GeneratedVariation:
    """A generated result for one angle configuration."""

    id: str
    angle_label: str
    angle_instruction: str
    image_data: bytes = b""
    status: VariationStatus = VariationStatus.PENDING
    created_at: datetime = field(default_factory=utc_now)
    error: str | None = None
    version: int = 0  # slot version that produced this state

    @classmethod
    def for_angle(cls, angle: AngleConfig, index: int, version: int = 0) -> "GeneratedVariation":
        """Create an empty pending record for a grid slot."""
        return cls(
            id=new_variation_id(index),
            angle_label=angle.label,
            angle_instruction=angle.instruction,
            version=version,
        )

    @property
    def is_settled(self) -> bool:
        return self.status in (VariationStatus.SUCCESS, VariationStatus.ERROR)

    @property
    def has_image(self) -> bool:
        return self.status == VariationStatus.SUCCESS and bool(self.image_data)
