import base64
import random
import threading

from layerstamp.batch import (
    MASCOT_IMAGES,
    SCHOOL_NAMES,
    encode_data_url,
    generate_schools,
    random_overlay_payload,
    run_batch,
    run_interactive,
    run_school_batch,
    run_template_replay,
    school_substitutions,
    summarize,
)
from layerstamp.errors import RenderFailed
from layerstamp.models import BatchItemResult, BatchSummary, ImageOverlay, RenderRequest, RenderSettings
from layerstamp.pipeline import render_overlays


def test_batch_isolates_failures(settings: RenderSettings, fake_magick) -> None:
    missing = {5, 17, 23, 42, 61, 78, 99}
    names = [f"missing-{index}.png" if index in missing else "overlay-circle.png" for index in range(1, 101)]

    def _render(name: str) -> bytes:
        request = RenderRequest(image_overlays=[ImageOverlay(image=name)])
        return render_overlays(request, settings).data

    summary = run_batch(names, _render)

    assert summary.statistics() == {"total": 100, "successful": 93, "failed": 7, "successRate": "93.0%"}
    failures = [result for result in summary.results if not result.ok]
    assert {result.id for result in failures} == missing
    assert all(isinstance(result.payload, str) and result.payload for result in failures)
    assert failures[0].payload == "Overlay image not found: missing-5.png"
    assert len(fake_magick) == 93


def test_batch_records_unexpected_errors() -> None:
    def _worker(item: int) -> int:
        if item == 2:
            raise ZeroDivisionError()
        return item * 10

    summary = run_batch([1, 2, 3], _worker, describe=lambda item: {"item": item})

    assert [result.status for result in summary.results] == ["success", "error", "success"]
    assert summary.results[1].payload == "ZeroDivisionError"
    assert summary.results[1].meta == {"item": 2}
    assert summary.results[2].payload == 30


def test_batch_failure_keeps_renderer_diagnostic() -> None:
    def _worker(item: int) -> bytes:
        raise RenderFailed(details="convert: no decode delegate for this image format")

    summary = run_batch([1], _worker)

    assert summary.results[0].payload == "Failed to generate image: convert: no decode delegate for this image format"


def test_summary_success_rate_formatting() -> None:
    assert BatchSummary(results=[], total=0, successful=0, failed=0).success_rate == "0.0%"
    results = [BatchItemResult(id=1, status="success"), BatchItemResult(id=2, status="error")] + [
        BatchItemResult(id=3, status="error")
    ]
    assert summarize(results).success_rate == "33.3%"


def test_generate_schools_is_seedable() -> None:
    first = generate_schools(20, random.Random(7))
    second = generate_schools(20, random.Random(7))

    assert first == second
    assert [school.id for school in first] == list(range(1, 21))
    for school in first:
        assert school.school_name in SCHOOL_NAMES
        assert school.school_nick_name == school.school_name.split(" ")[0]
        assert 1900 <= school.school_year <= 2024
        assert school.school_mascot_image in MASCOT_IMAGES


def test_school_substitutions_keys() -> None:
    school = generate_schools(1, random.Random(1))[0]
    table = school_substitutions(school)

    assert table["SCHOOL_NAME"] == school.school_name
    assert table["SCHOOL_YEAR"] == str(school.school_year)
    assert table["SCHOOL_MASCOT_IMAGE"] == school.school_mascot_image
    assert school.to_dict()["schoolNickName"] == school.school_nick_name


def test_random_overlay_payload_ranges() -> None:
    rng = random.Random(3)
    for _ in range(50):
        payload = random_overlay_payload(rng)
        assert 20 <= payload["fontSize"] < 50
        assert -20 <= payload["x"] < 20
        assert -40 <= payload["overlayX"] < 40
        assert 50 <= payload["overlayWidth"] < 100
        assert payload["overlayWidth"] == payload["overlayHeight"]
        assert 50 <= payload["overlayOpacity"] < 100
        assert 1 <= len(payload["text"].split(" ")) <= 3
        assert payload["overlayImage"] in MASCOT_IMAGES
    assert random_overlay_payload(random.Random(9)) == random_overlay_payload(random.Random(9))


def test_school_batch_counts_missing_mascots(settings: RenderSettings, fake_magick) -> None:
    (settings.assets_dir / "overlay-text.png").unlink()

    summary, schools = run_school_batch(30, settings, rng=random.Random(11))

    expected_failures = sum(1 for school in schools if school.school_mascot_image == "overlay-text.png")
    assert summary.total == 30
    assert summary.failed == expected_failures
    assert summary.successful == 30 - expected_failures
    for result, school in zip(summary.results, schools):
        assert result.meta["schoolName"] == school.school_name
        if not result.ok:
            assert result.payload == "Overlay image not found: overlay-text.png"


def test_template_replay_compiles_known_templates(settings: RenderSettings, fake_magick) -> None:
    summary = run_template_replay(settings, templates=["10_light.xml", "missing.xml", "12_light.xml"])

    assert (summary.total, summary.successful, summary.failed) == (3, 2, 1)
    first = summary.results[0].payload
    assert first["templateName"] == "Mascot Arc Light"
    assert first["imageOverlays"] == 1
    assert first["overlays"]["textOverlays"][0]["text"] == "RIVERSIDE HIGH SCHOOL"
    assert "image" not in first
    assert summary.results[1].meta == {"template": "missing.xml"}
    assert summary.results[1].payload == "Template file not found: missing.xml"
    assert fake_magick == []


def test_template_replay_can_render(settings: RenderSettings, fake_magick) -> None:
    summary = run_template_replay(settings, templates=["11_light.xml"], render=True)

    assert summary.results[0].payload["image"] == b"IMG:jpg:-"
    assert len(fake_magick) == 1


def test_run_interactive_batches_all_requests() -> None:
    seen_batches = []

    summary = run_interactive(
        25,
        lambda payload: b"ok",
        batch_size=10,
        pause=0,
        rng=random.Random(5),
        on_batch=lambda number, results: seen_batches.append((number, len(results))),
    )

    assert seen_batches == [(1, 10), (2, 10), (3, 5)]
    assert summary.total == 25
    assert summary.successful == 25
    assert [result.id for result in summary.results] == list(range(1, 26))


def test_run_interactive_records_failures() -> None:
    def _submit(payload):
        if payload["overlayImage"] == "overlay-text.png":
            raise RuntimeError("HTTP 404: Overlay image not found: overlay-text.png")
        return b"ok"

    summary = run_interactive(40, _submit, batch_size=8, pause=0, rng=random.Random(2))

    assert summary.total == 40
    for result in summary.results:
        if not result.ok:
            assert result.meta["overlayImage"] == "overlay-text.png"
            assert result.payload.startswith("HTTP 404")


def test_run_interactive_stops_between_batches() -> None:
    cancel = threading.Event()

    summary = run_interactive(
        100,
        lambda payload: b"ok",
        batch_size=10,
        cancel=cancel,
        pause=0,
        on_batch=lambda number, results: cancel.set() if number == 2 else None,
    )

    assert summary.total == 20


def test_run_interactive_discards_batch_cancelled_in_flight() -> None:
    cancel = threading.Event()
    calls = []
    lock = threading.Lock()

    def _submit(payload):
        with lock:
            calls.append(payload)
            if len(calls) == 15:
                cancel.set()
        return b"ok"

    summary = run_interactive(100, _submit, batch_size=10, cancel=cancel, pause=0)

    assert summary.total == 10
    assert len(calls) == 20


def test_encode_data_url() -> None:
    url = encode_data_url(b"\x00\x01", "image/png")
    assert url == "data:image/png;base64," + base64.b64encode(b"\x00\x01").decode("ascii")
