"""Edit session - sequential prompt edits on one variation before committing."""

import logging
from enum import Enum

from ..clients.gemini import GeminiClient
from ..credentials import CredentialStore, require_api_key
from ..errors import GenerationError
from ..models.resolution import Resolution, target_dimensions
from .orchestrator import ClientFactory, detect_aspect, normalize_or_keep
from .registry import VariationRegistry

logger = logging.getLogger(__name__)

EDIT_FAILED_MESSAGE = "Failed to edit image. Please try again."


class EditState(Enum):
    IDLE = "idle"
    EDITING = "editing"


class EditOutcome(Enum):
    APPLIED = "applied"
    FAILED = "failed"


class EditSession:
    """Scoped refinement loop on a copy of one variation's image.

    Each edit is applied to the latest accepted result, not to the base image.
    Nothing reaches the registry until save().
    """

    def __init__(
        self,
        credentials: CredentialStore,
        registry: VariationRegistry,
        index: int,
        resolution: Resolution,
        client_factory: ClientFactory = GeminiClient,
        normalize_output: bool = True,
    ):
        record = registry[index]
        if not record.has_image:
            raise ValueError(f"Variation {index} has no image to edit (status: {record.status.value})")

        self.credentials = credentials
        self.registry = registry
        self.index = index
        self.resolution = resolution
        self.client_factory = client_factory
        self.normalize_output = normalize_output

        self.variation_id = record.id
        self.version = registry.version(index)
        self.base_image: bytes = bytes(record.image_data)
        self.working_image: bytes = self.base_image
        self.history: list[str] = []
        self.state = EditState.IDLE
        self.error: str | None = None
        self.closed = False

    @property
    def is_modified(self) -> bool:
        return self.working_image != self.base_image

    async def apply(self, instruction: str) -> EditOutcome:
        """
        Run one edit against the current working image.

        Returns:
            APPLIED with working_image replaced, or FAILED with it unchanged
            and error set

        Raises:
            ValueError: Blank instruction
            RuntimeError: Session closed or an edit already in flight
            CredentialMissing: No API key
        """
        self._check_open()
        instruction = (instruction or "").strip()
        if not instruction:
            raise ValueError("Edit instruction must not be empty")
        if self.state is EditState.EDITING:
            raise RuntimeError("An edit is already in progress")

        api_key = require_api_key(self.credentials)
        client = self.client_factory(api_key)
        source = self.working_image
        aspect = detect_aspect(source)

        self.state = EditState.EDITING
        self.error = None
        try:
            result = await client.edit_image(
                image=source,
                prompt=instruction,
                aspect_ratio=aspect.hint,
                image_size=self.resolution.value,
            )
            if self.normalize_output:
                result = await normalize_or_keep(result, *target_dimensions(self.resolution, aspect))
        except GenerationError as e:
            logger.warning("Edit failed on slot %d: %s", self.index, e)
            self.error = EDIT_FAILED_MESSAGE
            return EditOutcome.FAILED
        finally:
            self.state = EditState.IDLE

        self.working_image = result
        self.history.append(instruction)
        logger.info("Applied edit %d on slot %d: %s", len(self.history), self.index, instruction)
        return EditOutcome.APPLIED

    def save(self) -> bool:
        """Commit the working image to the owning variation and close.

        Returns False if the slot was regenerated or saved by someone else meanwhile.
        """
        self._check_open()
        if self.state is EditState.EDITING:
            raise RuntimeError("Cannot save while an edit is in progress")
        self.closed = True
        saved = self.registry.commit_edit(self.index, self.version, self.working_image)
        if not saved:
            logger.warning("Edit on slot %d discarded: variation changed since the editor opened", self.index)
        return saved

    def discard(self):
        """Close without touching the owning variation."""
        self._check_open()
        self.closed = True

    def _check_open(self):
        if self.closed:
            raise RuntimeError("Edit session is closed")
