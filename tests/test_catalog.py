from pathlib import Path

from layerstamp import catalog
from layerstamp.constants import KNOWN_TEMPLATES, SAMPLE_TEMPLATE_DATA


def test_summarize_template_counts_layers() -> None:
    info = catalog.summarize_template("12_light.xml")

    assert info.success
    assert info.template_id == "12"
    assert info.layer_count == 4
    assert info.image_layer_count == 1
    assert info.text_layer_count == 2


def test_summarize_template_reports_failure(tmp_path: Path) -> None:
    info = catalog.summarize_template("10_light.xml", tmp_path)

    assert not info.success
    assert info.error == "Template file not found"
    assert info.to_dict()["templateName"] == "Unknown"


def test_list_available_images(tmp_path: Path, assets_dir: Path) -> None:
    (assets_dir / "notes.txt").write_text("x", encoding="utf-8")

    assert catalog.list_available_images(assets_dir) == [
        "base-image.jpg",
        "overlay-circle.png",
        "overlay-text.png",
        "overlay-triangle.png",
    ]
    assert catalog.list_available_images(tmp_path / "missing") == []


def test_template_data_payload(assets_dir: Path) -> None:
    payload = catalog.get_template_data(None, assets_dir).to_dict()

    assert [item["filename"] for item in payload["templates"]] == list(KNOWN_TEMPLATES)
    assert payload["defaultTemplateData"] == SAMPLE_TEMPLATE_DATA
    assert "overlay-circle.png" in payload["availableImages"]


def test_template_data_is_cached_until_ttl(assets_dir: Path, monkeypatch) -> None:
    calls = []
    real_build = catalog.build_template_data

    def _build(templates_dir, assets):
        calls.append(assets)
        return real_build(templates_dir, assets)

    monkeypatch.setattr(catalog, "build_template_data", _build)

    first = catalog.get_template_data(None, assets_dir, ttl=3600)
    second = catalog.get_template_data(None, assets_dir, ttl=3600)
    assert first is second
    assert len(calls) == 1

    catalog.get_template_data(None, assets_dir, ttl=0)
    assert len(calls) == 2

    catalog.clear_cache()
    catalog.get_template_data(None, assets_dir, ttl=3600)
    assert len(calls) == 3
