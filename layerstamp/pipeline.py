from __future__ import annotations

import logging
from pathlib import Path
from typing import Mapping

from layerstamp.compiler import compile_template
from layerstamp.constants import DEFAULT_OUTPUT_FORMAT, DEFAULT_OUTPUT_HEIGHT, DEFAULT_OUTPUT_WIDTH
from layerstamp.models import RenderedImage, RenderRequest, RenderSettings
from layerstamp.render import magick
from layerstamp.render.command import build_command, normalize_output_format
from layerstamp.template_loader import load_template

LOGGER = logging.getLogger(__name__)


def render_overlays(request: RenderRequest, settings: RenderSettings) -> RenderedImage:
    argv = build_command(request, settings)
    LOGGER.debug("renderer argv: %s", argv)
    data = magick.run_magick(
        argv,
        max_output_bytes=settings.max_output_bytes,
        detail_limit=settings.detail_limit,
    )
    output_format = normalize_output_format(request.output_format)
    return RenderedImage(data=data, output_format=output_format, content_type=request.content_type)


def template_request(
    name: str,
    substitutions: Mapping[str, str] | None = None,
    *,
    templates_dir: Path | None = None,
    output_width: int = DEFAULT_OUTPUT_WIDTH,
    output_height: int = DEFAULT_OUTPUT_HEIGHT,
    output_format: str = DEFAULT_OUTPUT_FORMAT,
    strict: bool = False,
) -> RenderRequest:
    document = load_template(name, templates_dir)
    image_overlays, text_overlays = compile_template(document, substitutions, strict=strict)
    return RenderRequest(
        image_overlays=image_overlays,
        text_overlays=text_overlays,
        output_width=output_width,
        output_height=output_height,
        output_format=normalize_output_format(output_format),
    )


def render_template(
    name: str,
    substitutions: Mapping[str, str] | None,
    settings: RenderSettings,
    *,
    templates_dir: Path | None = None,
    output_width: int = DEFAULT_OUTPUT_WIDTH,
    output_height: int = DEFAULT_OUTPUT_HEIGHT,
    output_format: str = DEFAULT_OUTPUT_FORMAT,
    strict: bool = False,
) -> RenderedImage:
    request = template_request(
        name,
        substitutions,
        templates_dir=templates_dir,
        output_width=output_width,
        output_height=output_height,
        output_format=output_format,
        strict=strict,
    )
    return render_overlays(request, settings)
