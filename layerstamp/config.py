from __future__ import annotations

import copy
import os
import platform
from pathlib import Path
from typing import Any

import yaml

from layerstamp.constants import (
    DEFAULT_OUTPUT_FORMAT,
    DEFAULT_OUTPUT_HEIGHT,
    DEFAULT_OUTPUT_WIDTH,
    DEFAULT_TEMPLATE,
    DETAIL_LIMIT,
    MAX_OUTPUT_BYTES,
    TEMPLATE_CACHE_TTL,
)
from layerstamp.models import RenderSettings

CONFIG_ENV = "LAYERSTAMP_CONFIG"
MAGICK_BIN_ENV = "LAYERSTAMP_MAGICK_BIN"


def get_app_dir() -> Path:
    # layerstamp/config.py -> layerstamp/ -> project_root/
    return Path(__file__).resolve().parent.parent


DEFAULT_CONFIG: dict[str, Any] = {
    "assets_dir": str(get_app_dir() / "public"),
    "base_image": "base-image.jpg",
    "templates_dir": None,
    "magick_bin": "convert",
    "max_output_bytes": MAX_OUTPUT_BYTES,
    "detail_limit": DETAIL_LIMIT,
    "strict_layers": False,
    "cache_ttl": TEMPLATE_CACHE_TTL,
    "batch_size": 10,
    "batch_pause": 0.1,
    "host": "127.0.0.1",
    "port": 5000,
    "log_level": "info",
    "default_template": DEFAULT_TEMPLATE,
    "output_width": DEFAULT_OUTPUT_WIDTH,
    "output_height": DEFAULT_OUTPUT_HEIGHT,
    "output_format": DEFAULT_OUTPUT_FORMAT,
}


def get_user_data_dir() -> Path:
    system_name = platform.system().lower()
    if system_name == "windows":
        base = (
            os.environ.get("APPDATA")
            or os.environ.get("LOCALAPPDATA")
            or str(Path.home() / "AppData" / "Roaming")
        )
        return Path(base) / "layerstamp"
    if system_name == "darwin":
        return Path.home() / "Library" / "Application Support" / "layerstamp"

    xdg_config_home = os.environ.get("XDG_CONFIG_HOME")
    if xdg_config_home:
        return Path(xdg_config_home) / "layerstamp"
    return Path.home() / ".config" / "layerstamp"


def get_config_path() -> Path:
    override = os.environ.get(CONFIG_ENV)
    if override:
        return Path(override)
    return get_user_data_dir() / "Config" / "config.yaml"


def _deep_merge(base: dict[str, Any], incoming: dict[str, Any]) -> dict[str, Any]:
    merged = copy.deepcopy(base)
    for key, value in incoming.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_config(path: Path | None = None) -> dict[str, Any]:
    cfg_path = path or get_config_path()
    if not cfg_path.exists():
        cfg = copy.deepcopy(DEFAULT_CONFIG)
    else:
        text = cfg_path.read_text(encoding="utf-8")
        loaded = yaml.safe_load(text) or {}
        if not isinstance(loaded, dict):
            loaded = {}
        cfg = _deep_merge(DEFAULT_CONFIG, loaded)

    magick_override = os.environ.get(MAGICK_BIN_ENV)
    if magick_override:
        cfg["magick_bin"] = magick_override
    return cfg


def write_default_config(path: Path | None = None, force: bool = False) -> Path:
    cfg_path = path or get_config_path()
    cfg_path.parent.mkdir(parents=True, exist_ok=True)
    if cfg_path.exists() and not force:
        return cfg_path
    cfg = copy.deepcopy(DEFAULT_CONFIG)
    cfg_path.write_text(yaml.safe_dump(cfg, sort_keys=False, allow_unicode=True), encoding="utf-8")
    return cfg_path


def templates_dir(cfg: dict[str, Any]) -> Path | None:
    value = cfg.get("templates_dir")
    return Path(value) if value else None


def render_settings(cfg: dict[str, Any]) -> RenderSettings:
    return RenderSettings(
        assets_dir=Path(cfg.get("assets_dir") or DEFAULT_CONFIG["assets_dir"]),
        base_image=str(cfg.get("base_image") or DEFAULT_CONFIG["base_image"]),
        magick_bin=str(cfg.get("magick_bin") or "convert"),
        max_output_bytes=max(1, int(cfg.get("max_output_bytes") or MAX_OUTPUT_BYTES)),
        detail_limit=max(0, int(cfg.get("detail_limit") or DETAIL_LIMIT)),
    )
