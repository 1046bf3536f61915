from pathlib import Path

import pytest

from layerstamp import catalog
from layerstamp.models import RenderSettings

ASSET_NAMES = ("base-image.jpg", "overlay-circle.png", "overlay-triangle.png", "overlay-text.png")


def write_assets(root: Path, names=ASSET_NAMES) -> Path:
    root.mkdir(parents=True, exist_ok=True)
    for name in names:
        (root / name).write_bytes(b"asset:" + name.encode("utf-8"))
    return root


@pytest.fixture
def assets_dir(tmp_path: Path) -> Path:
    return write_assets(tmp_path / "public")


@pytest.fixture
def settings(assets_dir: Path) -> RenderSettings:
    return RenderSettings(assets_dir=assets_dir, magick_bin="convert", detail_limit=80)


@pytest.fixture
def fake_magick(monkeypatch):
    """Replace the renderer process with a recorder that returns fixed bytes."""
    from layerstamp.render import magick

    calls: list[list[str]] = []

    def _run(argv, *, max_output_bytes, detail_limit):
        calls.append(list(argv))
        return b"IMG:" + argv[-1].encode("ascii")

    monkeypatch.setattr(magick, "run_magick", _run)
    return calls


@pytest.fixture(autouse=True)
def _clear_template_cache():
    catalog.clear_cache()
    yield
    catalog.clear_cache()
