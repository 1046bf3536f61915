from __future__ import annotations

import logging
from pathlib import Path

from PIL import Image, ImageDraw

LOGGER = logging.getLogger(__name__)

BASE_IMAGE_SIZE = (800, 600)
OVERLAY_SIZE = (200, 200)


def _base_image() -> Image.Image:
    width, height = BASE_IMAGE_SIZE
    image = Image.new("RGB", BASE_IMAGE_SIZE, color="#F4F4F4")
    draw = ImageDraw.Draw(image)
    for row in range(height):
        shade = 244 - int(row / height * 60)
        draw.line([(0, row), (width, row)], fill=(shade, shade, min(255, shade + 8)))
    return image


def _overlay_circle() -> Image.Image:
    image = Image.new("RGBA", OVERLAY_SIZE, color=(0, 0, 0, 0))
    draw = ImageDraw.Draw(image)
    draw.ellipse([(10, 10), (OVERLAY_SIZE[0] - 10, OVERLAY_SIZE[1] - 10)], fill="#C0392B", outline="#FFFFFF", width=6)
    return image


def _overlay_triangle() -> Image.Image:
    image = Image.new("RGBA", OVERLAY_SIZE, color=(0, 0, 0, 0))
    draw = ImageDraw.Draw(image)
    width, height = OVERLAY_SIZE
    draw.polygon([(width // 2, 10), (width - 10, height - 10), (10, height - 10)], fill="#2980B9")
    return image


def _overlay_text() -> Image.Image:
    image = Image.new("RGBA", OVERLAY_SIZE, color=(0, 0, 0, 0))
    draw = ImageDraw.Draw(image)
    draw.rounded_rectangle([(10, 60), (OVERLAY_SIZE[0] - 10, 140)], radius=16, fill="#27AE60")
    draw.text((72, 94), "SAMPLE", fill="#FFFFFF")
    return image


SAMPLE_ASSETS = {
    "base-image.jpg": _base_image,
    "overlay-circle.png": _overlay_circle,
    "overlay-triangle.png": _overlay_triangle,
    "overlay-text.png": _overlay_text,
}


def write_sample_assets(assets_dir: Path, force: bool = False) -> list[Path]:
    """Write placeholder base and overlay images; existing files are kept unless ``force``."""
    assets_dir.mkdir(parents=True, exist_ok=True)
    written: list[Path] = []
    for name, factory in SAMPLE_ASSETS.items():
        path = assets_dir / name
        if path.exists() and not force:
            continue
        image = factory()
        if path.suffix.lower() == ".jpg":
            image.convert("RGB").save(path, format="JPEG", quality=92)
        else:
            image.save(path, format="PNG", optimize=True)
        LOGGER.info("wrote sample asset %s", path)
        written.append(path)
    return written
