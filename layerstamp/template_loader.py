from __future__ import annotations

import logging
import re
import xml.etree.ElementTree as ET
from pathlib import Path
from typing import Any

from layerstamp.constants import UNIT_SCALE_X, UNIT_SCALE_Y
from layerstamp.errors import MalformedTemplate, TemplateNotFound
from layerstamp.models import LayerRecord, TemplateDocument
from layerstamp.paths import resolve_within

LOGGER = logging.getLogger(__name__)

TEXT_KEY = "_"


def builtin_templates_dir() -> Path:
    return Path(__file__).resolve().parent / "templates"


def list_builtin_templates() -> list[str]:
    root = builtin_templates_dir()
    if not root.is_dir():
        return []
    return sorted(item.name for item in root.iterdir() if item.is_file() and item.suffix.lower() == ".xml")


def _split_xml_tag(tag: str) -> str:
    if tag.startswith("{") and "}" in tag:
        return tag.split("}", 1)[1]
    return tag


def _merge_value(target: dict[str, Any], key: str, value: Any) -> None:
    if key not in target:
        target[key] = value
        return
    existing = target[key]
    if isinstance(existing, list):
        existing.append(value)
    else:
        target[key] = [existing, value]


def element_to_value(node: ET.Element) -> Any:
    """Convert an element the way the template tooling has always read XML.

    Attributes and child elements share one namespace; a repeated child turns
    into a list; a bare leaf collapses to its text; text next to attributes or
    children lands under ``"_"``.
    """
    children = list(node)
    text = (node.text or "").strip()
    if not node.attrib and not children:
        return text

    result: dict[str, Any] = {}
    for key, value in node.attrib.items():
        _merge_value(result, _split_xml_tag(key), value)
    for child in children:
        _merge_value(result, _split_xml_tag(child.tag), element_to_value(child))
    if text:
        result[TEXT_KEY] = text
    return result


def parse_xml_document(text: str | bytes) -> dict[str, Any]:
    try:
        root = ET.fromstring(text)
    except ET.ParseError as exc:
        raise MalformedTemplate("Failed to parse XML", details=str(exc)) from exc
    return {_split_xml_tag(root.tag): element_to_value(root)}


def scalar_text(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, dict):
        return scalar_text(value.get(TEXT_KEY))
    if isinstance(value, list):
        return scalar_text(value[0]) if value else None
    text = str(value).strip()
    return text or None


def to_float(value: Any) -> float | None:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)
    text = scalar_text(value)
    if text is None:
        return None
    match = re.match(r"\s*[-+]?(\d+(\.\d*)?|\.\d+)", text)
    if not match:
        return None
    return float(match.group(0))


def to_int(value: Any, default: int = 0) -> int:
    numeric = to_float(value)
    if numeric is None:
        return default
    return int(numeric)


def _as_mapping(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def layer_from_mapping(raw: dict[str, Any]) -> LayerRecord:
    position = _as_mapping(raw.get("position"))
    size = _as_mapping(raw.get("size"))
    background = raw.get("backgound_color")
    if background is None:
        background = raw.get("background_color")
    return LayerRecord(
        sequence=to_int(raw.get("sequence")),
        type=scalar_text(raw.get("type")) or "",
        x=to_float(position.get("x")) or 0.0,
        y=to_float(position.get("y")) or 0.0,
        width=to_float(size.get("width")),
        height=to_float(size.get("height")),
        rotation=to_float(raw.get("rotation")),
        gravity=scalar_text(raw.get("gravity")),
        opacity=to_float(raw.get("opacity")),
        text=scalar_text(raw.get("text")),
        font=scalar_text(raw.get("font")),
        color=scalar_text(raw.get("color")),
        stroke_color=scalar_text(raw.get("stroke_color")),
        stroke_width=scalar_text(raw.get("stroke_width")),
        background_color=scalar_text(background),
        arc=scalar_text(raw.get("arc")),
        arc_distort=to_float(raw.get("arcDistort")),
        path=scalar_text(raw.get("path")),
        raw=raw,
    )


def layers_from_document(document: dict[str, Any]) -> tuple[dict[str, Any], list[LayerRecord]]:
    template = _as_mapping(document.get("template"))
    layers_node = _as_mapping(template.get("layers"))
    layer_node = layers_node.get("layer")
    if not layer_node:
        raise MalformedTemplate()

    items = layer_node if isinstance(layer_node, list) else [layer_node]
    records = [layer_from_mapping(_as_mapping(item)) for item in items]
    records.sort(key=lambda record: record.sequence)
    return template, records


def parse_template_xml(text: str | bytes, filename: str | None = None) -> TemplateDocument:
    try:
        document = parse_xml_document(text)
    except MalformedTemplate as exc:
        raise MalformedTemplate() from exc

    template, layers = layers_from_document(document)
    scale_x = to_float(template.get("unitScaleX")) or UNIT_SCALE_X
    scale_y = to_float(template.get("unitScaleY")) or UNIT_SCALE_Y
    return TemplateDocument(
        id=scalar_text(template.get("id")) or "0",
        name=scalar_text(template.get("name")) or "Unknown",
        layers=layers,
        filename=filename,
        unit_scale=(scale_x, scale_y),
    )


def resolve_template_path(name: str, templates_dir: Path | None = None) -> Path:
    root = templates_dir or builtin_templates_dir()
    path = resolve_within(root, name)
    if not path.is_file():
        raise TemplateNotFound(name)
    return path


def read_template_text(name: str, templates_dir: Path | None = None) -> str:
    return resolve_template_path(name, templates_dir).read_text(encoding="utf-8")


def load_template(name: str, templates_dir: Path | None = None) -> TemplateDocument:
    text = read_template_text(name, templates_dir)
    document = parse_template_xml(text, filename=name)
    LOGGER.debug("loaded template %s (%s layers)", name, len(document.layers))
    return document
