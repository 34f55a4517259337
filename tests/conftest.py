import asyncio
from io import BytesIO

import pytest
from PIL import Image

from angle_studio.credentials import StaticCredentials
from angle_studio.errors import EndpointFailure


def make_png(width: int = 64, height: int = 64, color=(200, 80, 40)) -> bytes:
    img = Image.new("RGB", (width, height), color)
    output = BytesIO()
    img.save(output, format="PNG")
    return output.getvalue()


def image_size(image_data: bytes) -> tuple[int, int]:
    return Image.open(BytesIO(image_data)).size


class FakeEndpoint:
    """Stands in for GeminiClient. Pass `endpoint.factory` as client_factory."""

    def __init__(self, output_size=(512, 512)):
        self.output_size = output_size
        self.api_keys: list[str] = []
        self.variation_calls: list[dict] = []
        self.edit_calls: list[dict] = []
        self.failures: dict[str, Exception] = {}     # angle instruction -> error
        self.gates: dict[str, asyncio.Event] = {}    # angle instruction -> release event
        self.edit_failures: dict[str, Exception] = {}  # prompt -> error
        self.outputs: dict[str, bytes] = {}          # angle instruction -> image

    def factory(self, api_key: str) -> "FakeEndpoint":
        self.api_keys.append(api_key)
        return self

    async def generate_variation(self, image, angle_instruction, aspect_ratio=None, image_size=None):
        self.variation_calls.append({
            "image": image,
            "instruction": angle_instruction,
            "aspect_ratio": aspect_ratio,
            "image_size": image_size,
        })
        gate = self.gates.get(angle_instruction)
        if gate is not None:
            await gate.wait()
        else:
            await asyncio.sleep(0)
        if angle_instruction in self.failures:
            raise self.failures[angle_instruction]
        if angle_instruction in self.outputs:
            return self.outputs[angle_instruction]
        return make_png(*self.output_size)

    async def edit_image(self, image, prompt, aspect_ratio=None, image_size=None):
        self.edit_calls.append({
            "image": image,
            "prompt": prompt,
            "aspect_ratio": aspect_ratio,
            "image_size": image_size,
        })
        await asyncio.sleep(0)
        if prompt in self.edit_failures:
            raise self.edit_failures[prompt]
        # Shade encodes how many edits produced this image
        shade = min(255, 10 * len(self.edit_calls))
        return make_png(*self.output_size, color=(shade, shade, shade))


@pytest.fixture
def endpoint() -> FakeEndpoint:
    return FakeEndpoint()


@pytest.fixture
def credentials() -> StaticCredentials:
    return StaticCredentials("test-key")


@pytest.fixture
def source_png() -> bytes:
    return make_png(200, 200)


@pytest.fixture
def endpoint_error() -> EndpointFailure:
    return EndpointFailure("Gemini API error: 500 INTERNAL")
