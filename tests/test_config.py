from pathlib import Path

import yaml

from layerstamp.config import (
    DEFAULT_CONFIG,
    _deep_merge,
    get_config_path,
    load_config,
    render_settings,
    templates_dir,
    write_default_config,
)


def test_load_config_without_file_returns_defaults(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.delenv("LAYERSTAMP_MAGICK_BIN", raising=False)
    cfg = load_config(tmp_path / "absent.yaml")

    assert cfg == DEFAULT_CONFIG
    assert cfg is not DEFAULT_CONFIG


def test_load_config_merges_file_over_defaults(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.delenv("LAYERSTAMP_MAGICK_BIN", raising=False)
    path = tmp_path / "config.yaml"
    path.write_text(yaml.safe_dump({"port": 8080, "magick_bin": "magick", "strict_layers": True}), encoding="utf-8")

    cfg = load_config(path)

    assert cfg["port"] == 8080
    assert cfg["magick_bin"] == "magick"
    assert cfg["strict_layers"] is True
    assert cfg["batch_size"] == DEFAULT_CONFIG["batch_size"]


def test_load_config_ignores_non_mapping_yaml(tmp_path: Path) -> None:
    path = tmp_path / "config.yaml"
    path.write_text("- just\n- a list\n", encoding="utf-8")
    assert load_config(path)["port"] == DEFAULT_CONFIG["port"]


def test_magick_bin_env_override(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.setenv("LAYERSTAMP_MAGICK_BIN", "/opt/im/bin/convert")
    assert load_config(tmp_path / "absent.yaml")["magick_bin"] == "/opt/im/bin/convert"


def test_config_path_env_override(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.setenv("LAYERSTAMP_CONFIG", str(tmp_path / "custom.yaml"))
    assert get_config_path() == tmp_path / "custom.yaml"


def test_deep_merge_nested() -> None:
    base = {"a": {"b": 1, "c": 2}, "d": 3}
    merged = _deep_merge(base, {"a": {"c": 5}, "e": 6})

    assert merged == {"a": {"b": 1, "c": 5}, "d": 3, "e": 6}
    assert base["a"]["c"] == 2


def test_write_default_config_respects_force(tmp_path: Path) -> None:
    path = tmp_path / "Config" / "config.yaml"

    assert write_default_config(path) == path
    assert yaml.safe_load(path.read_text(encoding="utf-8"))["port"] == DEFAULT_CONFIG["port"]

    path.write_text("port: 1\n", encoding="utf-8")
    write_default_config(path)
    assert path.read_text(encoding="utf-8") == "port: 1\n"
    write_default_config(path, force=True)
    assert yaml.safe_load(path.read_text(encoding="utf-8"))["port"] == DEFAULT_CONFIG["port"]


def test_render_settings_and_templates_dir(tmp_path: Path) -> None:
    cfg = dict(DEFAULT_CONFIG, assets_dir=str(tmp_path), max_output_bytes=2048, detail_limit=10)

    settings = render_settings(cfg)

    assert settings.assets_dir == tmp_path
    assert settings.max_output_bytes == 2048
    assert settings.detail_limit == 10
    assert templates_dir(cfg) is None
    assert templates_dir(dict(cfg, templates_dir=str(tmp_path))) == tmp_path
