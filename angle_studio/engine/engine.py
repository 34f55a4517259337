"""Studio engine - holds the active upload, resolution and variation grid."""

import logging
from pathlib import Path

from ..clients.gemini import GeminiClient
from ..credentials import CredentialStore
from ..errors import NormalizerFailure
from ..models.angle import ANGLES, AngleConfig
from ..models.resolution import Resolution, calculate_generation_cost
from ..models.variation import GeneratedVariation
from ..services.edit_session import EditSession
from ..services.export import create_variations_zip
from ..services.normalizer import get_image_dimensions
from ..services.orchestrator import ClientFactory, Orchestrator
from ..services.registry import VariationRegistry
from ..utils import decode_image_payload

logger = logging.getLogger(__name__)


class StudioEngine:
    """Upload -> generate 9 angles -> retry / edit individual slots."""

    def __init__(
        self,
        credentials: CredentialStore,
        client_factory: ClientFactory = GeminiClient,
        angles: list[AngleConfig] = ANGLES,
        resolution: Resolution = Resolution.R1K,
        normalize_output: bool = True,
    ):
        self.credentials = credentials
        self.client_factory = client_factory
        self.normalize_output = normalize_output
        self.resolution = resolution
        self.source_image: bytes | None = None
        self.registry = VariationRegistry()
        self.orchestrator = Orchestrator(
            credentials=credentials,
            registry=self.registry,
            client_factory=client_factory,
            angles=angles,
            normalize_output=normalize_output,
        )

    @property
    def variations(self) -> list[GeneratedVariation]:
        return self.registry.records

    def upload(self, payload: str | bytes) -> tuple[int, int]:
        """Set a new base image, discarding all previous variations.

        Returns:
            (width, height) of the uploaded image
        """
        image_data = decode_image_payload(payload)
        try:
            dimensions = get_image_dimensions(image_data)
        except NormalizerFailure as e:
            raise ValueError(f"Uploaded file is not a valid image: {e}") from e

        self.source_image = image_data
        self.registry.clear()
        logger.info("Uploaded %dx%d source image (%d bytes)", *dimensions, len(image_data))
        return dimensions

    def reset(self):
        """Forget the upload and all variations."""
        self.source_image = None
        self.registry.clear()

    def set_resolution(self, resolution: str | Resolution):
        self.resolution = Resolution.parse(resolution)

    def estimated_cost(self) -> float:
        return calculate_generation_cost(self.resolution, len(self.orchestrator.angles))

    async def generate(self, on_complete=None) -> list[GeneratedVariation]:
        """Generate (or regenerate) all angles for the current upload."""
        return await self.orchestrator.run(self._require_source(), self.resolution, on_complete)

    async def retry(self, index: int) -> GeneratedVariation:
        return await self.orchestrator.retry(index, self._require_source(), self.resolution)

    def open_editor(self, index: int) -> EditSession:
        return EditSession(
            credentials=self.credentials,
            registry=self.registry,
            index=index,
            resolution=self.resolution,
            client_factory=self.client_factory,
            normalize_output=self.normalize_output,
        )

    def export_zip(self, output_dir: str | Path) -> Path:
        return create_variations_zip(self.registry.records, Path(output_dir))

    def _require_source(self) -> bytes:
        if not self.source_image:
            raise ValueError("No image uploaded")
        return self.source_image
