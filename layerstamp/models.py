from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Union

from layerstamp.constants import (
    CONTENT_TYPES,
    DEFAULT_OPACITY,
    DEFAULT_OUTPUT_FORMAT,
    DEFAULT_OUTPUT_HEIGHT,
    DEFAULT_OUTPUT_WIDTH,
    DETAIL_LIMIT,
    MAX_OUTPUT_BYTES,
    OUTPUT_FORMATS,
)


def normalize_output_format(value: Any) -> str:
    fmt = str(value or DEFAULT_OUTPUT_FORMAT).lower()
    if fmt == "jpeg":
        fmt = "jpg"
    return fmt if fmt in OUTPUT_FORMATS else DEFAULT_OUTPUT_FORMAT


@dataclass(slots=True)
class LayerRecord:
    """One layer of a parsed template, attributes and child text merged."""

    sequence: int
    type: str
    x: float = 0.0
    y: float = 0.0
    width: float | None = None
    height: float | None = None
    rotation: float | None = None
    gravity: str | None = None
    opacity: float | None = None
    text: str | None = None
    font: str | None = None
    color: str | None = None
    stroke_color: str | None = None
    stroke_width: str | None = None
    background_color: str | None = None
    arc: str | None = None
    arc_distort: float | None = None
    path: str | None = None
    raw: dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class TextOverlay:
    text: str
    x: float = 0.0
    y: float = 0.0
    font_size: float = 48.0
    font_family: str | None = None
    color: str = "black"
    background_color: str | None = None
    gravity: str | None = None
    stroke_color: str | None = None
    stroke_width: int | None = None
    rotation: float | None = None
    arc_distort: float | None = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "text": self.text,
            "x": self.x,
            "y": self.y,
            "fontSize": self.font_size,
            "fontFamily": self.font_family,
            "color": self.color,
            "backgroundColor": self.background_color,
            "gravity": self.gravity,
            "strokeColor": self.stroke_color,
            "strokeWidth": self.stroke_width,
            "rotation": self.rotation,
            "arcDistort": self.arc_distort,
        }
        return {key: value for key, value in payload.items() if value is not None}


@dataclass(slots=True)
class ImageOverlay:
    image: str
    x: float = 0.0
    y: float = 0.0
    width: float | None = None
    height: float | None = None
    rotation: float | None = None
    opacity: float = DEFAULT_OPACITY
    gravity: str | None = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "image": self.image,
            "x": self.x,
            "y": self.y,
            "width": self.width,
            "height": self.height,
            "rotation": self.rotation,
            "opacity": self.opacity,
            "gravity": self.gravity,
        }
        return {key: value for key, value in payload.items() if value is not None}


Overlay = Union[TextOverlay, ImageOverlay]


@dataclass(slots=True)
class RenderRequest:
    image_overlays: list[ImageOverlay] = field(default_factory=list)
    text_overlays: list[TextOverlay] = field(default_factory=list)
    output_width: int = DEFAULT_OUTPUT_WIDTH
    output_height: int = DEFAULT_OUTPUT_HEIGHT
    output_format: str = DEFAULT_OUTPUT_FORMAT

    @property
    def is_empty(self) -> bool:
        return not self.image_overlays and not self.text_overlays

    @property
    def content_type(self) -> str:
        return CONTENT_TYPES[normalize_output_format(self.output_format)]


@dataclass(slots=True)
class RenderSettings:
    assets_dir: Path
    base_image: str = "base-image.jpg"
    magick_bin: str = "convert"
    max_output_bytes: int = MAX_OUTPUT_BYTES
    detail_limit: int = DETAIL_LIMIT


@dataclass(slots=True)
class RenderedImage:
    data: bytes
    output_format: str
    content_type: str


@dataclass(slots=True)
class TemplateDocument:
    id: str
    name: str
    layers: list[LayerRecord]
    filename: str | None = None
    unit_scale: tuple[float, float] = (8.0, 6.0)


@dataclass(slots=True)
class TemplateInfo:
    filename: str
    template_name: str = "Unknown"
    template_id: str = "0"
    layer_count: int = 0
    image_layer_count: int = 0
    text_layer_count: int = 0
    success: bool = True
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "filename": self.filename,
            "templateName": self.template_name,
            "templateId": self.template_id,
            "layerCount": self.layer_count,
            "imageLayerCount": self.image_layer_count,
            "textLayerCount": self.text_layer_count,
            "success": self.success,
        }
        if self.error:
            payload["error"] = self.error
        return payload


@dataclass(slots=True)
class TemplateData:
    templates: list[TemplateInfo]
    default_template_data: dict[str, str]
    available_images: list[str]

    def to_dict(self) -> dict[str, Any]:
        return {
            "templates": [info.to_dict() for info in self.templates],
            "defaultTemplateData": dict(self.default_template_data),
            "availableImages": list(self.available_images),
        }


@dataclass(frozen=True, slots=True)
class BatchItemResult:
    id: int
    status: str  # success | error
    payload: bytes | str | None = None
    meta: dict[str, Any] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.status == "success"


@dataclass(slots=True)
class BatchSummary:
    results: list[BatchItemResult]
    total: int
    successful: int
    failed: int

    @property
    def success_rate(self) -> str:
        if self.total <= 0:
            return "0.0%"
        return f"{self.successful / self.total * 100:.1f}%"

    def statistics(self) -> dict[str, Any]:
        return {
            "total": self.total,
            "successful": self.successful,
            "failed": self.failed,
            "successRate": self.success_rate,
        }
