"""Bundle successful variations into a ZIP file."""

import logging
import time
import zipfile
from pathlib import Path

from ..models.variation import GeneratedVariation
from ..utils import sanitize_filename

logger = logging.getLogger(__name__)


def create_variations_zip(variations: list[GeneratedVariation], output_dir: Path) -> Path:
    """
    Write every successful variation as <angle-label>.png into one ZIP.

    Args:
        variations: Registry records, any status
        output_dir: Directory to write the ZIP file

    Returns:
        Path to the created ZIP file

    Raises:
        ValueError: If no variation has an image
    """
    successful = [v for v in variations if v.has_image]
    if not successful:
        raise ValueError("No images available to download")

    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    zip_path = output_dir / f"angle-studio-images-{int(time.time() * 1000)}.zip"

    used: set[str] = set()
    with zipfile.ZipFile(zip_path, "w", zipfile.ZIP_DEFLATED) as zf:
        for variation in successful:
            name = sanitize_filename(variation.angle_label) or "variation"
            filename = f"{name}.png"
            suffix = 2
            while filename in used:
                filename = f"{name}-{suffix}.png"
                suffix += 1
            used.add(filename)
            zf.writestr(filename, variation.image_data)

    logger.info(f"ZIP created: {zip_path.name} ({len(successful)} images)")
    return zip_path
