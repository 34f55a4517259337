"""Gemini Image Generation client (Nano Banana / Gemini image models)."""

import asyncio
import logging
from io import BytesIO

from google import genai
from google.genai import types
from PIL import Image, UnidentifiedImageError

from ..config import GEMINI_MODEL, MAX_RETRIES
from ..errors import (
    AbnormalCompletion,
    EndpointFailure,
    NoImageInResponse,
    SafetyBlocked,
)

logger = logging.getLogger(__name__)

# Finish reasons that mean the candidate is complete and usable
NORMAL_FINISH_REASONS = {"STOP", "FINISH_REASON_UNSPECIFIED"}
SAFETY_FINISH_REASONS = {
    "SAFETY",
    "IMAGE_SAFETY",
    "PROHIBITED_CONTENT",
    "IMAGE_PROHIBITED_CONTENT",
    "BLOCKLIST",
    "SPII",
}

VARIATION_PROMPT = (
    "Generate a new photorealistic image of this scene from a {instruction}. "
    "Keep the subject matter, lighting, and style consistent with the original. "
    "Return ONLY the image."
)
EDIT_PROMPT = "Edit this image: {prompt}. Maintain high quality and realism."


def _enum_name(value) -> str | None:
    """FinishReason/BlockedReason may arrive as enum members or plain strings."""
    if value is None:
        return None
    return getattr(value, "name", None) or str(value)


class GeminiClient:
    """Async client for camera-angle variations and prompt edits via Gemini."""

    def __init__(self, api_key: str, model: str = GEMINI_MODEL, max_retries: int = MAX_RETRIES):
        self.client = genai.Client(api_key=api_key)
        self.model = model
        self.max_retries = max_retries

    async def _call_with_retry(self, func, retry_codes=(503, 429)):
        """Retry API calls on transient errors with exponential backoff."""
        attempts = max(1, self.max_retries)
        for attempt in range(attempts):
            try:
                return await func()
            except Exception as e:
                error_str = str(e)
                is_retryable = any(str(code) in error_str for code in retry_codes)

                if not is_retryable or attempt == attempts - 1:
                    raise EndpointFailure(f"Gemini API error: {e}") from e

                wait_time = 2 ** attempt  # 1s, 2s, 4s
                logger.warning(
                    "Gemini API error (attempt %d/%d), retrying in %ds: %s",
                    attempt + 1, attempts, wait_time, e,
                )
                await asyncio.sleep(wait_time)

    async def generate_variation(
        self,
        image: bytes,
        angle_instruction: str,
        aspect_ratio: str | None = None,
        image_size: str | None = None,
    ) -> bytes:
        """
        Generate the scene in an image from a different camera angle.

        Args:
            image: Source image bytes (any format Pillow decodes)
            angle_instruction: Natural-language camera angle description
            aspect_ratio: Output aspect hint ("1:1", "16:9"), omitted if None
            image_size: Output size hint ("1K", "2K", "4K"), omitted if None

        Returns:
            Generated image bytes
        """
        prompt = VARIATION_PROMPT.format(instruction=angle_instruction)
        return await self._generate(image, prompt, aspect_ratio, image_size)

    async def edit_image(
        self,
        image: bytes,
        prompt: str,
        aspect_ratio: str | None = None,
        image_size: str | None = None,
    ) -> bytes:
        """
        Edit an image following a natural-language instruction.

        Args:
            image: Image bytes to edit
            prompt: User edit instruction
            aspect_ratio: Output aspect hint, omitted if None
            image_size: Output size hint, omitted if None

        Returns:
            Edited image bytes
        """
        return await self._generate(image, EDIT_PROMPT.format(prompt=prompt), aspect_ratio, image_size)

    async def _generate(
        self,
        image: bytes,
        prompt: str,
        aspect_ratio: str | None,
        image_size: str | None,
    ) -> bytes:
        try:
            img = Image.open(BytesIO(image))
            img.load()
        except (UnidentifiedImageError, OSError) as e:
            raise EndpointFailure(f"Source image could not be decoded: {e}") from e

        # Build multimodal content: image + instruction
        contents = [img, prompt]

        response = await self._call_with_retry(
            lambda: self.client.aio.models.generate_content(
                model=self.model,
                contents=contents,
                config=self._build_config(aspect_ratio, image_size),
            )
        )
        return self.extract_image(response)

    def _build_config(self, aspect_ratio: str | None, image_size: str | None) -> types.GenerateContentConfig:
        image_config = None
        if aspect_ratio or image_size:
            hints = {}
            if aspect_ratio:
                hints["aspect_ratio"] = aspect_ratio
            if image_size:
                hints["image_size"] = image_size
            image_config = types.ImageConfig(**hints)

        return types.GenerateContentConfig(
            response_modalities=["IMAGE", "TEXT"],
            image_config=image_config,
        )

    @staticmethod
    def extract_image(response) -> bytes:
        """Pull the first inline image out of a response, or raise the matching failure."""
        feedback = getattr(response, "prompt_feedback", None)
        block_reason = _enum_name(getattr(feedback, "block_reason", None))
        if block_reason and block_reason != "BLOCKED_REASON_UNSPECIFIED":
            raise SafetyBlocked(block_reason)

        candidates = getattr(response, "candidates", None) or []
        if not candidates:
            raise NoImageInResponse("No candidates in response")

        candidate = candidates[0]
        finish_reason = _enum_name(getattr(candidate, "finish_reason", None))
        if finish_reason in SAFETY_FINISH_REASONS:
            raise SafetyBlocked(finish_reason)
        if finish_reason and finish_reason not in NORMAL_FINISH_REASONS:
            raise AbnormalCompletion(finish_reason)

        content = getattr(candidate, "content", None)
        parts = getattr(content, "parts", None) or []
        texts = []
        for part in parts:
            inline_data = getattr(part, "inline_data", None)
            mime_type = getattr(inline_data, "mime_type", None) or ""
            if inline_data and inline_data.data and mime_type.startswith("image/"):
                return inline_data.data
            if getattr(part, "text", None):
                texts.append(part.text)

        refusal = " ".join(texts).strip() or None
        message = "No image generated in response"
        if refusal:
            message = f"{message}: {refusal[:200]}"
        raise NoImageInResponse(message, text=refusal)
