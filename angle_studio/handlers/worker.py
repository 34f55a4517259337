"""AWS Lambda handler for nine-angle generation."""

import asyncio
import base64
import json
import logging
from pathlib import Path

import requests

from ..config import DEFAULT_RESOLUTION, LOG_LEVEL
from ..credentials import FileCredentialStore, StaticCredentials
from ..engine import StudioEngine
from ..errors import CredentialMissing
from ..models.angle import NUM_IMAGES_TO_GENERATE
from ..models.resolution import format_cost
from ..models.variation import GeneratedVariation, VariationStatus
from ..utils import sanitize_filename, to_data_url

logger = logging.getLogger(__name__)


def download_image(url: str) -> bytes:
    """Download a source image from URL."""
    headers = {
        "User-Agent": "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    }
    try:
        response = requests.get(url, headers=headers, timeout=30)
        response.raise_for_status()
        return response.content
    except requests.RequestException as e:
        raise RuntimeError(f"Failed to download image from {url}: {e}")


def serialize_variation(index: int, variation: GeneratedVariation) -> dict:
    return {
        "index": index,
        "id": variation.id,
        "angle": variation.angle_label,
        "status": variation.status.value,
        "error": variation.error,
        "image": to_data_url(variation.image_data),
    }


def _response(status_code: int, body: dict) -> dict:
    return {
        "statusCode": status_code,
        "headers": {"Content-Type": "application/json"},
        "body": json.dumps(body),
    }


def handler(event, context, client_factory=None):
    """
    AWS Lambda handler - triggered by HTTP.

    Input payload:
    {
        "image": "data:image/png;base64,...",   (or "image_url": "https://...")
        "resolution": "1K",
        "api_key": "..."                         (optional, else configured key)
    }

    Output: one entry per angle with status and data-URL image.
    200 all succeeded, 207 partial, 500 none succeeded.
    """
    body = event.get("body") or "{}"
    try:
        if event.get("isBase64Encoded"):
            body = base64.b64decode(body, validate=True).decode("utf-8")
        body = json.loads(body)
    except ValueError as e:  # binascii.Error, UnicodeDecodeError, JSONDecodeError
        return _response(400, {"error": f"Invalid JSON body: {e}"})
    if not isinstance(body, dict):
        return _response(400, {"error": "Request body must be a JSON object"})

    if not body.get("image") and not body.get("image_url"):
        return _response(400, {"error": "Missing 'image' or 'image_url' field"})
    for field in ("image", "image_url", "api_key"):
        if body.get(field) is not None and not isinstance(body[field], str):
            return _response(400, {"error": f"'{field}' must be a string"})

    if body.get("api_key"):
        credentials = StaticCredentials(body["api_key"])
    else:
        credentials = FileCredentialStore()

    engine_kwargs = {"client_factory": client_factory} if client_factory else {}
    engine = StudioEngine(credentials, **engine_kwargs)

    try:
        engine.set_resolution(body.get("resolution", DEFAULT_RESOLUTION))
        image = body.get("image") or download_image(body["image_url"])
        engine.upload(image)
    except (ValueError, RuntimeError) as e:
        return _response(400, {"error": str(e)})

    try:
        variations = asyncio.run(engine.generate())
    except CredentialMissing as e:
        return _response(401, {"error": str(e)})
    except Exception as e:
        logger.exception("Generation run failed")
        return _response(500, {"error": str(e)})

    stats = engine.registry.get_stats()
    if stats["success"] == len(variations):
        status_code = 200
    elif stats["success"]:
        status_code = 207  # Multi-Status (partial success)
    else:
        status_code = 500

    return _response(status_code, {
        "resolution": engine.resolution.value,
        "estimated_cost": format_cost(engine.estimated_cost()),
        "succeeded": stats["success"],
        "failed": stats["error"],
        "variations": [serialize_variation(i, v) for i, v in enumerate(variations)],
    })


def print_update(index: int, variation: GeneratedVariation):
    status = variation.status.value.upper()
    line = f"[{index + 1}/{NUM_IMAGES_TO_GENERATE}] {variation.angle_label:<18} {status}"
    if variation.status == VariationStatus.ERROR and variation.error:
        line += f": {variation.error}"
    print(line, flush=True)


async def run_cli(image_path: str, resolution: str, output_dir: str) -> int:
    engine = StudioEngine(FileCredentialStore())
    engine.set_resolution(resolution)
    width, height = engine.upload(Path(image_path).read_bytes())
    print(f"Loaded {image_path} ({width}x{height})", flush=True)
    print(f"Resolution {engine.resolution.label}, estimated cost {format_cost(engine.estimated_cost())}", flush=True)

    engine.registry.subscribe(print_update)
    variations = await engine.generate()

    out = Path(output_dir)
    out.mkdir(parents=True, exist_ok=True)
    for variation in variations:
        if variation.has_image:
            (out / f"{sanitize_filename(variation.angle_label)}.png").write_bytes(variation.image_data)

    stats = engine.registry.get_stats()
    print(f"\nTotal: {stats['success']} success, {stats['error']} failed", flush=True)
    if stats["success"]:
        print(f"ZIP: {engine.export_zip(out)}", flush=True)
    return 0 if stats["success"] else 1


def print_usage():
    print("Usage: python -m angle_studio.handlers.worker <image_path> [resolution] [output_dir]")
    print()
    print("Arguments:")
    print("  image_path - Photo to generate angles from")
    print("  resolution - 1K | 2K | 4K (default: 1K)")
    print("  output_dir - Where PNGs and the ZIP go (default: ./angles)")


def main(argv: list[str]) -> int:
    if not argv:
        print_usage()
        return 1

    try:
        return asyncio.run(run_cli(
            argv[0],
            argv[1] if len(argv) > 1 else DEFAULT_RESOLUTION,
            argv[2] if len(argv) > 2 else "angles",
        ))
    except CredentialMissing as e:
        print(f"Error: {e} Set GEMINI_API_KEY in .env")
    except (ValueError, OSError) as e:
        print(f"Error: {e}")
        print()
        print_usage()
    return 1


# Local testing
if __name__ == "__main__":
    import sys

    logging.basicConfig(
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
        level=LOG_LEVEL,
    )
    sys.exit(main(sys.argv[1:]))
