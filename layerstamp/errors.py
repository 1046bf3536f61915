"""
Error types raised by the compositing pipeline.

Each error carries the HTTP status it maps to, so the web layer can turn any of
them into the ``{"error": ..., "details": ...}`` shape without a lookup table.
"""
from __future__ import annotations

from typing import Any


class LayerstampError(Exception):
    status_code = 500

    def __init__(self, message: str, details: str | None = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"error": self.message}
        if self.details:
            payload["details"] = self.details
        return payload


class ValidationError(LayerstampError):
    """Request body is missing required fields or has no overlays."""

    status_code = 400


class MalformedTemplate(LayerstampError):
    """Template document does not have the template/layers/layer shape."""

    status_code = 400

    def __init__(self, message: str = "Invalid template format", details: str | None = None):
        super().__init__(message, details)


class UnknownLayerType(MalformedTemplate):
    def __init__(self, layer_type: str):
        super().__init__(f"Unknown layer type: {layer_type!r}")
        self.layer_type = layer_type


class AccessDenied(LayerstampError):
    status_code = 403

    def __init__(self, message: str = "Access denied", details: str | None = None):
        super().__init__(message, details)


class TemplateNotFound(LayerstampError):
    status_code = 404

    def __init__(self, name: str):
        super().__init__("Template file not found", details=name)
        self.name = name


class AssetNotFound(LayerstampError):
    status_code = 404


class BaseAssetNotFound(AssetNotFound):
    def __init__(self, name: str):
        super().__init__("Base image not found", details=name)
        self.name = name


class OverlayAssetNotFound(AssetNotFound):
    def __init__(self, name: str):
        super().__init__(f"Overlay image not found: {name}")
        self.name = name


class RenderFailed(LayerstampError):
    status_code = 500

    def __init__(self, message: str = "Failed to generate image", details: str | None = None):
        super().__init__(message, details)


class BatchItemFailed(LayerstampError):
    """Wraps the failure of one batch work item; recorded, never raised out of a batch."""

    def __init__(self, item_id: int, cause: BaseException):
        message = str(cause) or cause.__class__.__name__
        details = getattr(cause, "details", None)
        super().__init__(message, details)
        self.item_id = item_id
        self.cause = cause
