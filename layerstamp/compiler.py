from __future__ import annotations

import logging
from typing import Iterable, Mapping

from layerstamp.arc_compat import extract_arc_angle
from layerstamp.constants import (
    DEFAULT_FONT_SIZE,
    DEFAULT_OPACITY,
    DEFAULT_OVERLAY_IMAGE,
    DEFAULT_TEXT,
    DEFAULT_TEXT_COLOR,
    LAYER_TYPE_IMAGE,
    LAYER_TYPE_TEXT,
    MIN_FONT_SIZE,
    UNIT_SCALE_X,
    UNIT_SCALE_Y,
)
from layerstamp.errors import UnknownLayerType
from layerstamp.models import ImageOverlay, LayerRecord, Overlay, TemplateDocument, TextOverlay
from layerstamp.template_loader import to_float

LOGGER = logging.getLogger(__name__)


def _substitute(value: str | None, substitutions: Mapping[str, str], default: str) -> str:
    if value is not None:
        replacement = substitutions.get(value)
        if replacement:
            return str(replacement)
    return value or default


def font_size_for_height(height: float | None) -> float:
    if height is None:
        return DEFAULT_FONT_SIZE
    return max(MIN_FONT_SIZE, height * 2)


def resolve_arc_distort(layer: LayerRecord) -> float | None:
    angle = extract_arc_angle(layer.arc) or 0.0
    if layer.arc_distort is not None:
        angle = layer.arc_distort
    return angle if angle != 0 else None


def compile_text_layer(layer: LayerRecord, substitutions: Mapping[str, str]) -> TextOverlay:
    background = layer.background_color
    if background == "transparent":
        background = None
    stroke_width = to_float(layer.stroke_width)
    return TextOverlay(
        text=_substitute(layer.text, substitutions, DEFAULT_TEXT),
        x=layer.x,
        y=layer.y,
        font_size=font_size_for_height(layer.height),
        font_family=layer.font,
        color=_substitute(layer.color, substitutions, DEFAULT_TEXT_COLOR),
        background_color=background,
        gravity=layer.gravity,
        stroke_color=layer.stroke_color,
        stroke_width=int(stroke_width) if stroke_width is not None else None,
        rotation=layer.rotation,
        arc_distort=resolve_arc_distort(layer),
    )


def compile_image_layer(
    layer: LayerRecord,
    substitutions: Mapping[str, str],
    unit_scale: tuple[float, float] = (UNIT_SCALE_X, UNIT_SCALE_Y),
) -> ImageOverlay:
    scale_x, scale_y = unit_scale
    return ImageOverlay(
        image=_substitute(layer.path, substitutions, DEFAULT_OVERLAY_IMAGE),
        x=layer.x,
        y=layer.y,
        width=layer.width * scale_x if layer.width is not None else None,
        height=layer.height * scale_y if layer.height is not None else None,
        rotation=layer.rotation,
        opacity=layer.opacity if layer.opacity is not None else DEFAULT_OPACITY,
        gravity=layer.gravity,
    )


def compile_layer(
    layer: LayerRecord,
    substitutions: Mapping[str, str] | None = None,
    *,
    strict: bool = False,
    unit_scale: tuple[float, float] = (UNIT_SCALE_X, UNIT_SCALE_Y),
) -> Overlay | None:
    substitutions = substitutions or {}
    if layer.type == LAYER_TYPE_TEXT:
        return compile_text_layer(layer, substitutions)
    if layer.type == LAYER_TYPE_IMAGE:
        return compile_image_layer(layer, substitutions, unit_scale)
    if strict:
        raise UnknownLayerType(layer.type)
    LOGGER.debug("dropping layer seq=%s with unsupported type %r", layer.sequence, layer.type)
    return None


def compile_layers(
    layers: Iterable[LayerRecord],
    substitutions: Mapping[str, str] | None = None,
    *,
    strict: bool = False,
    unit_scale: tuple[float, float] = (UNIT_SCALE_X, UNIT_SCALE_Y),
) -> tuple[list[ImageOverlay], list[TextOverlay]]:
    image_overlays: list[ImageOverlay] = []
    text_overlays: list[TextOverlay] = []
    for layer in layers:
        overlay = compile_layer(layer, substitutions, strict=strict, unit_scale=unit_scale)
        if isinstance(overlay, ImageOverlay):
            image_overlays.append(overlay)
        elif isinstance(overlay, TextOverlay):
            text_overlays.append(overlay)
    return image_overlays, text_overlays


def compile_template(
    document: TemplateDocument,
    substitutions: Mapping[str, str] | None = None,
    *,
    strict: bool = False,
) -> tuple[list[ImageOverlay], list[TextOverlay]]:
    return compile_layers(document.layers, substitutions, strict=strict, unit_scale=document.unit_scale)
