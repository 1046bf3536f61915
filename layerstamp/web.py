from __future__ import annotations

import logging
import random
from typing import Any

from flask import Flask, Response, current_app, jsonify, request

from layerstamp import catalog
from layerstamp.batch import encode_data_url, run_school_batch, run_template_replay
from layerstamp.config import load_config, render_settings, templates_dir
from layerstamp.constants import CONTENT_TYPES, KNOWN_TEMPLATES, NO_CACHE_HEADERS
from layerstamp.errors import LayerstampError, ValidationError
from layerstamp.models import RenderedImage
from layerstamp.pipeline import render_overlays, render_template
from layerstamp.render.command import normalize_output_format, request_from_payload
from layerstamp.render.magick import is_magick_available
from layerstamp.template_loader import parse_xml_document, read_template_text, to_float

LOGGER = logging.getLogger(__name__)


def _cfg() -> dict[str, Any]:
    return current_app.config["LAYERSTAMP"]


def _json_body() -> dict[str, Any]:
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object")
    return payload


def _image_response(image: RenderedImage) -> Response:
    response = Response(image.data, status=200, mimetype=image.content_type)
    response.headers.update(NO_CACHE_HEADERS)
    return response


def _error_response(label: str, exc: Exception) -> tuple[Response, int]:
    if isinstance(exc, LayerstampError):
        return jsonify(exc.to_dict()), exc.status_code
    LOGGER.exception("%s", label)
    return jsonify({"error": label, "details": str(exc) or exc.__class__.__name__}), 500


def _int_arg(value: Any, default: int) -> int:
    numeric = to_float(value)
    if numeric is None or numeric <= 0:
        return default
    return int(numeric)


def create_app(config: dict[str, Any] | None = None) -> Flask:
    app = Flask(__name__)
    app.config["LAYERSTAMP"] = config if config is not None else load_config()

    @app.get("/health")
    def health():
        cfg = _cfg()
        return jsonify({"status": "ok", "magick": is_magick_available(str(cfg.get("magick_bin") or "convert"))})

    @app.post("/api/generate-image")
    def generate_image():
        try:
            render_request = request_from_payload(_json_body())
            image = render_overlays(render_request, render_settings(_cfg()))
        except Exception as exc:
            return _error_response("Failed to generate image", exc)
        return _image_response(image)

    @app.post("/api/generate-from-template")
    def generate_from_template():
        cfg = _cfg()
        try:
            body = _json_body()
            template_file = body.get("templateFile")
            if not template_file:
                raise ValidationError("Template file is required")
            template_data = body.get("templateData") or {}
            if not isinstance(template_data, dict):
                raise ValidationError("'templateData' must be an object")
            image = render_template(
                str(template_file),
                {str(key): str(value) for key, value in template_data.items()},
                render_settings(cfg),
                templates_dir=templates_dir(cfg),
                output_width=_int_arg(body.get("outputWidth"), int(cfg["output_width"])),
                output_height=_int_arg(body.get("outputHeight"), int(cfg["output_height"])),
                output_format=normalize_output_format(body.get("outputFormat") or cfg["output_format"]),
                strict=bool(cfg.get("strict_layers")),
            )
        except Exception as exc:
            return _error_response("Failed to generate image from template", exc)
        return _image_response(image)

    @app.get("/api/generate-from-template")
    def replay_templates():
        cfg = _cfg()
        try:
            summary = run_template_replay(
                render_settings(cfg),
                templates_dir=templates_dir(cfg),
                render=request.args.get("render", "").lower() in {"1", "true", "yes"},
                strict=bool(cfg.get("strict_layers")),
            )
        except Exception as exc:
            return _error_response("Failed to process templates", exc)

        results = []
        for item in summary.results:
            if item.ok:
                outcome = dict(item.payload)
                image = outcome.pop("image", None)
                if image is not None:
                    outcome["imageUrl"] = encode_data_url(image, CONTENT_TYPES["jpg"])
                results.append({**outcome, "success": True})
            else:
                results.append({**item.meta, "success": False, "error": item.payload})
        return jsonify(
            {
                "success": True,
                "processedTemplates": summary.total,
                "statistics": summary.statistics(),
                "results": results,
            }
        )

    @app.get("/api/parse-xml")
    def parse_xml_file():
        cfg = _cfg()
        filename = request.args.get("file")
        if not filename:
            return jsonify({"error": "File parameter is required"}), 400
        try:
            xml_content = read_template_text(filename, templates_dir(cfg))
            if request.args.get("format", "json") == "raw":
                return Response(xml_content, status=200, mimetype="application/xml")
            data = parse_xml_document(xml_content)
        except Exception as exc:
            return _error_response("Failed to parse XML", exc)
        return jsonify({"success": True, "filename": filename, "data": data, "message": "XML parsed successfully"})

    @app.post("/api/parse-xml")
    def parse_xml_content():
        try:
            body = _json_body()
            xml_content = body.get("xmlContent")
            if not xml_content:
                raise ValidationError("XML content is required")
            data = parse_xml_document(str(xml_content))
        except Exception as exc:
            return _error_response("Failed to parse XML", exc)
        return jsonify({"success": True, "data": data, "message": "XML parsed successfully"})

    @app.get("/api/templates")
    def template_catalog():
        cfg = _cfg()
        settings = render_settings(cfg)
        try:
            data = catalog.get_template_data(
                templates_dir(cfg),
                settings.assets_dir,
                ttl=float(cfg.get("cache_ttl") or 0),
            )
        except Exception as exc:
            return _error_response("Failed to load templates", exc)
        return jsonify(data.to_dict())

    @app.get("/api/bulk-generate-schools")
    def bulk_usage():
        return jsonify(
            {
                "message": "Bulk School Image Generator API",
                "usage": "POST with { count: number, template: string, seed?: number }",
                "availableTemplates": list(KNOWN_TEMPLATES),
                "defaultCount": 100,
                "defaultTemplate": _cfg().get("default_template"),
            }
        )

    @app.post("/api/bulk-generate-schools")
    def bulk_generate_schools():
        cfg = _cfg()
        try:
            body = request.get_json(silent=True) or {}
            if not isinstance(body, dict):
                raise ValidationError("Request body must be a JSON object")
            count = _int_arg(body.get("count"), 100)
            template = str(body.get("template") or cfg.get("default_template"))
            seed = body.get("seed")
            summary, schools = run_school_batch(
                count,
                render_settings(cfg),
                template=template,
                templates_dir=templates_dir(cfg),
                strict=bool(cfg.get("strict_layers")),
                rng=random.Random(seed) if seed is not None else None,
            )
        except Exception as exc:
            body = {"success": False, "error": str(exc)}
            if isinstance(exc, LayerstampError):
                return jsonify(body), exc.status_code
            LOGGER.exception("Bulk generation error")
            return jsonify(body), 500

        results = []
        for item in summary.results:
            entry = dict(item.meta)
            entry["status"] = item.status
            if item.ok:
                entry["imageUrl"] = encode_data_url(item.payload, CONTENT_TYPES["jpg"])
            else:
                entry["error"] = item.payload
            results.append(entry)

        return jsonify(
            {
                "success": True,
                "message": f"Generated images for {count} schools using template {template}",
                "statistics": summary.statistics(),
                "results": results,
                "schoolData": [school.to_dict() for school in schools],
            }
        )

    return app
