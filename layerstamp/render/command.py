from __future__ import annotations

from pathlib import Path
from typing import Any, Mapping

from layerstamp.constants import (
    ARC_CANVAS_SIZE,
    DEFAULT_FONT_SIZE,
    DEFAULT_GRAVITY,
    DEFAULT_OPACITY,
    DEFAULT_OUTPUT_HEIGHT,
    DEFAULT_OUTPUT_WIDTH,
    DEFAULT_TEXT_COLOR,
)
from layerstamp.errors import BaseAssetNotFound, OverlayAssetNotFound, ValidationError
from layerstamp.models import ImageOverlay, RenderRequest, RenderSettings, TextOverlay, normalize_output_format
from layerstamp.paths import resolve_within
from layerstamp.template_loader import to_float


def format_number(value: float | int) -> str:
    number = float(value)
    if number.is_integer():
        return str(int(number))
    return repr(number)


def format_offset(x: float | int, y: float | int) -> str:
    def _signed(value: float | int) -> str:
        text = format_number(value)
        return text if text.startswith("-") else f"+{text}"

    return f"{_signed(x)}{_signed(y)}"


def escape_text(text: str) -> str:
    # a leading "@" makes the renderer read the rest as a file path
    if text.startswith("@"):
        return "\\" + text
    return text


def _resize_geometry(width: float | None, height: float | None) -> str | None:
    if not width and not height:
        return None
    if width and height:
        return f"{format_number(width)}x{format_number(height)}!"
    if width:
        return f"{format_number(width)}x"
    return f"x{format_number(height)}"


def _image_overlay_args(overlay: ImageOverlay, asset: Path) -> list[str]:
    args = ["(", str(asset)]
    resize = _resize_geometry(overlay.width, overlay.height)
    if resize:
        args += ["-resize", resize]
    if overlay.rotation:
        args += ["-rotate", format_number(overlay.rotation)]
    if overlay.opacity != DEFAULT_OPACITY:
        args += ["-alpha", "set", "-channel", "A", "-evaluate", "multiply", format_number(overlay.opacity / 100)]
    args.append(")")

    if overlay.gravity:
        args += ["-gravity", overlay.gravity, "-composite"]
    else:
        args += ["-geometry", format_offset(overlay.x, overlay.y), "-composite"]
    return args


def _text_style_args(overlay: TextOverlay) -> list[str]:
    args: list[str] = []
    if overlay.font_family:
        args += ["-font", overlay.font_family]
    args += ["-pointsize", format_number(overlay.font_size or DEFAULT_FONT_SIZE)]
    args += ["-fill", overlay.color or DEFAULT_TEXT_COLOR]
    if overlay.stroke_color and overlay.stroke_width:
        args += ["-stroke", overlay.stroke_color, "-strokewidth", str(overlay.stroke_width)]
    if overlay.background_color:
        args += ["-undercolor", overlay.background_color]
    return args


def _arc_text_args(overlay: TextOverlay) -> list[str]:
    args = ["(", "-background", "transparent", "-size", ARC_CANVAS_SIZE]
    args += _text_style_args(overlay)
    args.append("label:" + escape_text(overlay.text))
    args += ["-distort", "Arc", format_number(overlay.arc_distort or 0)]
    args.append(")")
    args += ["-gravity", overlay.gravity or DEFAULT_GRAVITY]
    args += ["-geometry", format_offset(overlay.x, overlay.y), "-composite"]
    return args


def _plain_text_args(overlay: TextOverlay) -> list[str]:
    args = _text_style_args(overlay)
    args += ["-gravity", overlay.gravity or DEFAULT_GRAVITY]
    args += ["-annotate", format_offset(overlay.x, overlay.y), escape_text(overlay.text)]
    return args


def resolve_base_asset(settings: RenderSettings) -> Path:
    path = resolve_within(settings.assets_dir, settings.base_image)
    if not path.is_file():
        raise BaseAssetNotFound(settings.base_image)
    return path


def resolve_overlay_asset(settings: RenderSettings, name: str) -> Path:
    path = resolve_within(settings.assets_dir, name)
    if not path.is_file():
        raise OverlayAssetNotFound(name)
    return path


def build_command(request: RenderRequest, settings: RenderSettings) -> list[str]:
    """Translate a render request into the renderer's argument list.

    Image overlays are composited first, then text overlays, each group in
    input order; the canvas is then forced to the output size and encoded to
    stdout. The output is a pure function of the request and the asset tree.
    """
    if request.is_empty:
        raise ValidationError("At least one overlay (image or text) is required")

    args = [settings.magick_bin, str(resolve_base_asset(settings))]

    for overlay in request.image_overlays:
        asset = resolve_overlay_asset(settings, overlay.image)
        args += _image_overlay_args(overlay, asset)

    for overlay in request.text_overlays:
        if overlay.arc_distort:
            args += _arc_text_args(overlay)
        else:
            args += _plain_text_args(overlay)

    args += ["-resize", f"{int(request.output_width)}x{int(request.output_height)}!"]
    args.append(f"{normalize_output_format(request.output_format)}:-")
    return args


def _opt_float(payload: Mapping[str, Any], key: str) -> float | None:
    return to_float(payload.get(key))


def _opt_text(payload: Mapping[str, Any], key: str) -> str | None:
    value = payload.get(key)
    if value is None or value == "":
        return None
    return str(value)


def _image_overlay_from_dict(payload: Mapping[str, Any]) -> ImageOverlay:
    image = _opt_text(payload, "image")
    if not image:
        raise ValidationError("Image overlay requires an 'image' field")
    opacity = _opt_float(payload, "opacity")
    return ImageOverlay(
        image=image,
        x=_opt_float(payload, "x") or 0.0,
        y=_opt_float(payload, "y") or 0.0,
        width=_opt_float(payload, "width"),
        height=_opt_float(payload, "height"),
        rotation=_opt_float(payload, "rotation"),
        opacity=DEFAULT_OPACITY if opacity is None else opacity,
        gravity=_opt_text(payload, "gravity"),
    )


def _text_overlay_from_dict(payload: Mapping[str, Any]) -> TextOverlay:
    text = _opt_text(payload, "text")
    if text is None:
        raise ValidationError("Text overlay requires a 'text' field")
    stroke_width = _opt_float(payload, "strokeWidth")
    arc = _opt_float(payload, "arcDistort")
    return TextOverlay(
        text=text,
        x=_opt_float(payload, "x") or 0.0,
        y=_opt_float(payload, "y") or 0.0,
        font_size=_opt_float(payload, "fontSize") or DEFAULT_FONT_SIZE,
        font_family=_opt_text(payload, "fontFamily"),
        color=_opt_text(payload, "color") or DEFAULT_TEXT_COLOR,
        background_color=_opt_text(payload, "backgroundColor"),
        gravity=_opt_text(payload, "gravity"),
        stroke_color=_opt_text(payload, "strokeColor"),
        stroke_width=int(stroke_width) if stroke_width is not None else None,
        rotation=_opt_float(payload, "rotation"),
        arc_distort=arc if arc else None,
    )


def _as_list(value: Any, field_name: str) -> list[Mapping[str, Any]]:
    if value is None:
        return []
    if not isinstance(value, list) or not all(isinstance(item, dict) for item in value):
        raise ValidationError(f"'{field_name}' must be a list of objects")
    return value


def _output_dimension(payload: Mapping[str, Any], key: str, default: int) -> int:
    value = payload.get(key)
    if value is None or value == "":
        return default
    numeric = to_float(value)
    if numeric is None or numeric <= 0:
        raise ValidationError(f"'{key}' must be a positive number")
    return int(numeric)


def request_from_payload(payload: Mapping[str, Any]) -> RenderRequest:
    """Build a render request from a generate-image JSON body.

    Besides the ``imageOverlays``/``textOverlays`` arrays, the flat single
    overlay fields older clients send are accepted and appended last.
    """
    if not isinstance(payload, Mapping):
        raise ValidationError("Request body must be a JSON object")

    image_overlays = [_image_overlay_from_dict(item) for item in _as_list(payload.get("imageOverlays"), "imageOverlays")]
    text_overlays = [_text_overlay_from_dict(item) for item in _as_list(payload.get("textOverlays"), "textOverlays")]

    if payload.get("overlayImage"):
        image_overlays.append(
            _image_overlay_from_dict(
                {
                    "image": payload.get("overlayImage"),
                    "x": payload.get("overlayX", 0),
                    "y": payload.get("overlayY", 0),
                    "width": payload.get("overlayWidth"),
                    "height": payload.get("overlayHeight"),
                    "rotation": payload.get("overlayRotation", 0),
                    "opacity": payload.get("overlayOpacity", DEFAULT_OPACITY),
                }
            )
        )
    if payload.get("text"):
        text_overlays.append(
            _text_overlay_from_dict(
                {
                    "text": payload.get("text"),
                    "x": payload.get("x", 0),
                    "y": payload.get("y", 0),
                    "fontSize": payload.get("fontSize", DEFAULT_FONT_SIZE),
                    "color": payload.get("color", DEFAULT_TEXT_COLOR),
                }
            )
        )

    return RenderRequest(
        image_overlays=image_overlays,
        text_overlays=text_overlays,
        output_width=_output_dimension(payload, "outputWidth", DEFAULT_OUTPUT_WIDTH),
        output_height=_output_dimension(payload, "outputHeight", DEFAULT_OUTPUT_HEIGHT),
        output_format=normalize_output_format(payload.get("outputFormat")),
    )
