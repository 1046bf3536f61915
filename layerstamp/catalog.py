from __future__ import annotations

import logging
import threading
import time
from pathlib import Path

from layerstamp.constants import (
    IMAGE_EXTENSIONS,
    KNOWN_TEMPLATES,
    LAYER_TYPE_IMAGE,
    LAYER_TYPE_TEXT,
    SAMPLE_TEMPLATE_DATA,
    TEMPLATE_CACHE_TTL,
)
from layerstamp.errors import LayerstampError
from layerstamp.models import TemplateData, TemplateInfo
from layerstamp.template_loader import load_template

LOGGER = logging.getLogger(__name__)

_CacheKey = tuple[str, str]

_cache: dict[_CacheKey, tuple[float, TemplateData]] = {}
_cache_lock = threading.Lock()


def summarize_template(filename: str, templates_dir: Path | None = None) -> TemplateInfo:
    try:
        document = load_template(filename, templates_dir)
    except LayerstampError as exc:
        return TemplateInfo(filename=filename, success=False, error=exc.message)
    except OSError as exc:
        return TemplateInfo(filename=filename, success=False, error=str(exc))

    return TemplateInfo(
        filename=filename,
        template_name=document.name,
        template_id=document.id,
        layer_count=len(document.layers),
        image_layer_count=sum(1 for layer in document.layers if layer.type == LAYER_TYPE_IMAGE),
        text_layer_count=sum(1 for layer in document.layers if layer.type == LAYER_TYPE_TEXT),
    )


def list_available_images(assets_dir: Path) -> list[str]:
    if not assets_dir.is_dir():
        return []
    return sorted(
        item.name for item in assets_dir.iterdir() if item.is_file() and item.suffix.lower() in IMAGE_EXTENSIONS
    )


def build_template_data(templates_dir: Path | None, assets_dir: Path) -> TemplateData:
    return TemplateData(
        templates=[summarize_template(name, templates_dir) for name in KNOWN_TEMPLATES],
        default_template_data=dict(SAMPLE_TEMPLATE_DATA),
        available_images=list_available_images(assets_dir),
    )


def get_template_data(
    templates_dir: Path | None,
    assets_dir: Path,
    *,
    ttl: float = TEMPLATE_CACHE_TTL,
) -> TemplateData:
    """Return the template catalog, rebuilt at most once per ``ttl`` seconds.

    Concurrent callers may briefly see a catalog that is up to ``ttl`` old.
    """
    key: _CacheKey = (str(templates_dir or ""), str(assets_dir))
    now = time.monotonic()
    with _cache_lock:
        entry = _cache.get(key)
        if entry is not None and now - entry[0] < ttl:
            return entry[1]

    data = build_template_data(templates_dir, assets_dir)
    LOGGER.info("template catalog rebuilt: %s templates", len(data.templates))
    with _cache_lock:
        _cache[key] = (time.monotonic(), data)
    return data


def clear_cache() -> None:
    with _cache_lock:
        _cache.clear()
