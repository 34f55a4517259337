"""Request orchestrator - fan out one generation call per camera angle."""

import asyncio
import logging
from typing import Callable

from ..clients.gemini import GeminiClient
from ..credentials import CredentialStore, require_api_key
from ..errors import NormalizerFailure
from ..models.angle import ANGLES, AngleConfig
from ..models.resolution import AspectClass, Resolution, classify_aspect, target_dimensions
from ..models.variation import GeneratedVariation, VariationStatus
from ..utils import decode_image_payload
from .normalizer import get_image_dimensions, normalize
from .registry import VariationRegistry

logger = logging.getLogger(__name__)

ClientFactory = Callable[[str], GeminiClient]


def detect_aspect(image_data: bytes) -> AspectClass:
    """Classify a source image as wide (~16:9) or square-ish.

    Undecodable images fall back to square; the endpoint call reports the real error.
    """
    try:
        width, height = get_image_dimensions(image_data)
    except NormalizerFailure as e:
        logger.warning("Could not read source dimensions, assuming square: %s", e)
        return AspectClass.SQUARE
    return classify_aspect(width, height)


async def normalize_or_keep(image_data: bytes, width: int, height: int) -> bytes:
    """Resample to (width, height); keep the unnormalized image if that fails."""
    try:
        return await normalize(image_data, width, height)
    except NormalizerFailure as e:
        logger.warning("Resize to %dx%d failed, keeping original output: %s", width, height, e)
        return image_data


class Orchestrator:
    """Issue N independent generation calls and settle each slot on its own."""

    def __init__(
        self,
        credentials: CredentialStore,
        registry: VariationRegistry,
        client_factory: ClientFactory = GeminiClient,
        angles: list[AngleConfig] = ANGLES,
        normalize_output: bool = True,
    ):
        self.credentials = credentials
        self.registry = registry
        self.client_factory = client_factory
        self.angles = angles
        self.normalize_output = normalize_output

    async def run(
        self,
        source_image: str | bytes,
        resolution: Resolution,
        on_complete: Callable[[list[GeneratedVariation]], None] | None = None,
    ) -> list[GeneratedVariation]:
        """
        Generate one variation per angle, concurrently.

        Args:
            source_image: Source image bytes, base64 text or data URL
            resolution: Resolution tier held for the whole run
            on_complete: Called with the final records once every call settled

        Returns:
            Final records, every one in success or error

        Raises:
            CredentialMissing: No API key; raised before any call is issued
            ValueError: Empty source image
        """
        api_key = require_api_key(self.credentials)
        image_data = decode_image_payload(source_image)
        if not image_data:
            raise ValueError("Source image is empty")

        aspect = detect_aspect(image_data)
        dimensions = target_dimensions(resolution, aspect)
        client = self.client_factory(api_key)

        # All slots go to loading before any call is issued
        self.registry.reset(self.angles)
        versions = [self.registry.begin(i) for i in range(len(self.angles))]

        logger.info(
            "Generating %d angles at %s (%s, %dx%d)",
            len(self.angles), resolution.value, aspect.value, *dimensions,
        )
        await asyncio.gather(*[
            self._generate_one(client, index, version, image_data, resolution, aspect, dimensions)
            for index, version in enumerate(versions)
        ])

        records = self.registry.records
        stats = self.registry.get_stats()
        logger.info("Run complete: %d success, %d failed", stats["success"], stats["error"])
        if on_complete:
            on_complete(records)
        return records

    async def retry(
        self,
        index: int,
        source_image: str | bytes,
        resolution: Resolution,
    ) -> GeneratedVariation:
        """Re-run the single-call procedure for one slot, leaving the others untouched."""
        record = self.registry[index]
        if record.status in (VariationStatus.PENDING, VariationStatus.LOADING):
            raise ValueError(f"Variation {index} is still {record.status.value}")

        api_key = require_api_key(self.credentials)
        image_data = decode_image_payload(source_image)
        if not image_data:
            raise ValueError("Source image is empty")

        aspect = detect_aspect(image_data)
        dimensions = target_dimensions(resolution, aspect)
        client = self.client_factory(api_key)

        version = self.registry.begin(index)
        logger.info("Retrying %s (slot %d)", record.angle_label, index)
        await self._generate_one(client, index, version, image_data, resolution, aspect, dimensions)
        return self.registry[index]

    async def _generate_one(
        self,
        client: GeminiClient,
        index: int,
        version: int,
        image_data: bytes,
        resolution: Resolution,
        aspect: AspectClass,
        dimensions: tuple[int, int],
    ):
        """One endpoint call. Every failure ends here as a status update for this slot only."""
        angle = self.angles[index]
        try:
            result = await client.generate_variation(
                image=image_data,
                angle_instruction=angle.instruction,
                aspect_ratio=aspect.hint,
                image_size=resolution.value,
            )
            if self.normalize_output:
                result = await normalize_or_keep(result, *dimensions)
        except Exception as e:
            logger.warning("Failed to generate %s: %s", angle.label, e)
            self.registry.fail(index, version, str(e) or type(e).__name__)
            return

        self.registry.succeed(index, version, result)
        logger.info("Generated %s (%d bytes)", angle.label, len(result))
