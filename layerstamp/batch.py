"""
Batch rendering.

Every work item runs the whole pipeline on its own; a failing item is recorded
as an ``error`` result and the batch carries on. Three drivers share that
contract:

- ``run_school_batch``: synthesises N school records and renders one template
  per record.
- ``run_template_replay``: walks the known templates with the sample
  substitution table.
- ``run_interactive``: fires fixed-size groups of random requests through a
  ``submit`` callable (usually the HTTP client), waiting for each group to
  settle before starting the next, with cooperative cancellation between
  groups.
"""
from __future__ import annotations

import base64
import logging
import random
import threading
import time
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Iterable, Mapping, Sequence, TypeVar

from layerstamp.compiler import compile_template
from layerstamp.constants import DEFAULT_TEMPLATE, KNOWN_TEMPLATES, SAMPLE_TEMPLATE_DATA
from layerstamp.errors import BatchItemFailed
from layerstamp.models import BatchItemResult, BatchSummary, RenderRequest, RenderSettings
from layerstamp.pipeline import render_overlays, template_request
from layerstamp.template_loader import load_template

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")

SCHOOL_NAMES: tuple[str, ...] = (
    "Lincoln High School", "Washington Academy", "Roosevelt Institute", "Jefferson College",
    "Madison University", "Monroe Technical", "Adams Preparatory", "Jackson Institute",
    "Van Buren Academy", "Harrison College", "Tyler University", "Polk Technical",
    "Taylor High School", "Fillmore Academy", "Pierce Institute", "Buchanan College",
    "Lincoln Academy", "Johnson University", "Grant Technical", "Hayes Preparatory",
    "Garfield Institute", "Cleveland College", "McKinley University", "Roosevelt Technical",
    "Taft High School", "Wilson Academy", "Harding Institute", "Coolidge College",
    "Hoover University", "Truman Technical", "Eisenhower Preparatory", "Kennedy Institute",
    "Johnson College", "Nixon University", "Ford Technical", "Carter High School",
    "Reagan Academy", "Bush Institute", "Clinton College", "Obama University",
    "Central High School", "North Academy", "South Institute", "East College",
    "West University", "Riverside Technical", "Hillside Preparatory", "Valley Institute",
    "Mountain College", "Lakeside University", "Oceanview Technical", "Sunset High School",
)

MASCOTS: tuple[str, ...] = (
    "Eagles", "Lions", "Tigers", "Bears", "Wolves", "Hawks", "Falcons", "Panthers",
    "Bulldogs", "Wildcats", "Mustangs", "Stallions", "Knights", "Warriors", "Spartans",
    "Titans", "Giants", "Dragons", "Phoenix", "Thunder", "Lightning", "Storm",
    "Hurricanes", "Tornadoes", "Blazers", "Flames", "Rockets", "Comets", "Stars",
    "Meteors", "Sharks", "Dolphins", "Whales", "Rams", "Bulls", "Bison", "Broncos",
    "Colts", "Jaguars", "Leopards", "Cougars", "Bobcats", "Lynx", "Foxes", "Hounds",
    "Wolves", "Coyotes", "Badgers", "Wolverines", "Grizzlies", "Cardinals", "Ravens",
)

DARK_COLORS: tuple[str, ...] = (
    "#1a1a1a", "#2c3e50", "#34495e", "#7f8c8d", "#16a085", "#27ae60",
    "#2980b9", "#8e44ad", "#2c3e50", "#f39c12", "#e67e22", "#e74c3c",
    "#9b59b6", "#3498db", "#1abc9c", "#f1c40f", "#e67e22", "#e74c3c",
)

OTHER_COLORS: tuple[str, ...] = (
    "#ecf0f1", "#bdc3c7", "#95a5a6", "#7f8c8d", "#f39c12", "#e67e22",
    "#e74c3c", "#c0392b", "#9b59b6", "#8e44ad", "#3498db", "#2980b9",
    "#1abc9c", "#16a085", "#27ae60", "#229954", "#f1c40f", "#f39c12",
)

MASCOT_IMAGES: tuple[str, ...] = ("overlay-circle.png", "overlay-triangle.png", "overlay-text.png")

RANDOM_WORDS: tuple[str, ...] = (
    "Hello", "World", "Amazing", "Creative", "Design", "Awesome", "Cool", "Epic",
    "Fantastic", "Great", "Incredible", "Magic", "Perfect", "Super", "Wonder",
    "Brilliant", "Excellent", "Fabulous", "Gorgeous", "Happy", "Joy", "Love",
    "Peace", "Success", "Victory", "Winner", "Champion", "Star", "Hero", "Dream",
    "Hope", "Faith", "Trust", "Power", "Strong", "Bold", "Brave", "Smart", "Wise",
    "Art", "Beauty", "Color", "Light", "Shine", "Glow", "Spark", "Fire", "Energy",
)

TEXT_COLORS: tuple[str, ...] = (
    "red", "blue", "green", "purple", "orange", "pink", "yellow", "black", "white",
    "brown", "gray", "cyan", "magenta", "lime", "navy", "maroon", "olive", "teal",
)


@dataclass(frozen=True, slots=True)
class SchoolRecord:
    id: int
    school_name: str
    school_nick_name: str
    school_mascot: str
    school_year: int
    school_dark_color: str
    school_other_color: str
    school_mascot_image: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "schoolName": self.school_name,
            "schoolNickName": self.school_nick_name,
            "schoolMascot": self.school_mascot,
            "schoolYear": self.school_year,
            "schoolDarkColor": self.school_dark_color,
            "schoolOtherColor": self.school_other_color,
            "schoolMascotImage": self.school_mascot_image,
        }


def generate_schools(count: int, rng: random.Random | None = None) -> list[SchoolRecord]:
    rng = rng or random.Random()
    schools: list[SchoolRecord] = []
    for index in range(1, max(0, count) + 1):
        name = rng.choice(SCHOOL_NAMES)
        schools.append(
            SchoolRecord(
                id=index,
                school_name=name,
                school_nick_name=name.split(" ")[0],
                school_mascot=rng.choice(MASCOTS),
                school_year=1900 + rng.randrange(125),
                school_dark_color=rng.choice(DARK_COLORS),
                school_other_color=rng.choice(OTHER_COLORS),
                school_mascot_image=rng.choice(MASCOT_IMAGES),
            )
        )
    return schools


def school_substitutions(school: SchoolRecord) -> dict[str, str]:
    return {
        "SCHOOL_NAME": school.school_name,
        "SCHOOL_NICK_NAME": school.school_nick_name,
        "SCHOOL_MASCOT": school.school_mascot,
        "SCHOOL_YEAR": str(school.school_year),
        "SCHOOL_DARK_COLOR": school.school_dark_color,
        "SCHOOL_OTHER_COLOR": school.school_other_color,
        "SCHOOL_MASCOT_IMAGE": school.school_mascot_image,
    }


def random_text(rng: random.Random) -> str:
    return " ".join(rng.choice(RANDOM_WORDS) for _ in range(rng.randint(1, 3)))


def random_overlay_payload(rng: random.Random | None = None) -> dict[str, Any]:
    """One random generate-image body in the flat single-overlay shape."""
    rng = rng or random.Random()
    overlay_size = rng.randrange(50) + 50
    return {
        "text": random_text(rng),
        "fontSize": rng.randrange(30) + 20,
        "color": rng.choice(TEXT_COLORS),
        "x": rng.randrange(40) - 20,
        "y": rng.randrange(40) - 20,
        "overlayImage": rng.choice(MASCOT_IMAGES),
        "overlayX": rng.randrange(80) - 40,
        "overlayY": rng.randrange(80) - 40,
        "overlayWidth": overlay_size,
        "overlayHeight": overlay_size,
        "overlayRotation": rng.randrange(360),
        "overlayOpacity": rng.randrange(50) + 50,
        "outputWidth": 100,
        "outputHeight": 100,
    }


def summarize(results: Sequence[BatchItemResult]) -> BatchSummary:
    successful = sum(1 for result in results if result.ok)
    return BatchSummary(
        results=list(results),
        total=len(results),
        successful=successful,
        failed=len(results) - successful,
    )


def _run_item(item_id: int, item: T, worker: Callable[[T], Any], meta: dict[str, Any]) -> BatchItemResult:
    try:
        payload = worker(item)
    except Exception as exc:
        failure = BatchItemFailed(item_id, exc)
        message = f"{failure.message}: {failure.details}" if failure.details else failure.message
        LOGGER.error("FAIL item %s: %s", item_id, message)
        return BatchItemResult(id=item_id, status="error", payload=message, meta=meta)
    LOGGER.info("OK   item %s", item_id)
    return BatchItemResult(id=item_id, status="success", payload=payload, meta=meta)


def run_batch(
    items: Iterable[T],
    worker: Callable[[T], Any],
    *,
    describe: Callable[[T], Mapping[str, Any]] | None = None,
) -> BatchSummary:
    results: list[BatchItemResult] = []
    for index, item in enumerate(items, start=1):
        meta = dict(describe(item)) if describe else {}
        results.append(_run_item(index, item, worker, meta))
    summary = summarize(results)
    LOGGER.info(
        "batch done: total=%s successful=%s failed=%s",
        summary.total,
        summary.successful,
        summary.failed,
    )
    return summary


def run_school_batch(
    count: int,
    settings: RenderSettings,
    *,
    template: str = DEFAULT_TEMPLATE,
    templates_dir: Path | None = None,
    strict: bool = False,
    rng: random.Random | None = None,
) -> tuple[BatchSummary, list[SchoolRecord]]:
    schools = generate_schools(count, rng)

    def _render(school: SchoolRecord) -> bytes:
        request = template_request(
            template,
            school_substitutions(school),
            templates_dir=templates_dir,
            strict=strict,
        )
        return render_overlays(request, settings).data

    def _describe(school: SchoolRecord) -> dict[str, Any]:
        return {
            "schoolId": school.id,
            "schoolName": school.school_name,
            "mascot": school.school_mascot,
            "year": school.school_year,
            "colors": {"dark": school.school_dark_color, "other": school.school_other_color},
        }

    return run_batch(schools, _render, describe=_describe), schools


def run_template_replay(
    settings: RenderSettings,
    *,
    templates_dir: Path | None = None,
    templates: Sequence[str] = KNOWN_TEMPLATES,
    substitutions: Mapping[str, str] | None = None,
    render: bool = False,
    strict: bool = False,
) -> BatchSummary:
    table = dict(SAMPLE_TEMPLATE_DATA if substitutions is None else substitutions)

    def _replay(name: str) -> dict[str, Any]:
        document = load_template(name, templates_dir)
        image_overlays, text_overlays = compile_template(document, table, strict=strict)
        outcome: dict[str, Any] = {
            "template": name,
            "templateName": document.name,
            "templateId": document.id,
            "layersProcessed": len(document.layers),
            "imageOverlays": len(image_overlays),
            "textOverlays": len(text_overlays),
            "overlays": {
                "imageOverlays": [overlay.to_dict() for overlay in image_overlays],
                "textOverlays": [overlay.to_dict() for overlay in text_overlays],
            },
        }
        if render:
            request = RenderRequest(image_overlays=image_overlays, text_overlays=text_overlays)
            outcome["image"] = render_overlays(request, settings).data
        return outcome

    return run_batch(templates, _replay, describe=lambda name: {"template": name})


def run_interactive(
    total: int,
    submit: Callable[[dict[str, Any]], bytes],
    *,
    batch_size: int = 10,
    cancel: threading.Event | None = None,
    pause: float = 0.1,
    rng: random.Random | None = None,
    on_batch: Callable[[int, list[BatchItemResult]], None] | None = None,
) -> BatchSummary:
    """Submit ``total`` random requests in groups of ``batch_size``.

    Requests within a group run concurrently and the group is joined with
    every request settled. ``cancel`` is checked between groups; a group that
    finishes after cancellation is discarded, its requests are not killed.
    """
    rng = rng or random.Random()
    cancel = cancel or threading.Event()
    batch_size = max(1, batch_size)
    results: list[BatchItemResult] = []

    with ThreadPoolExecutor(max_workers=batch_size) as executor:
        for start in range(1, max(0, total) + 1, batch_size):
            if cancel.is_set():
                break
            ids = range(start, min(start + batch_size, total + 1))
            payloads = {item_id: random_overlay_payload(rng) for item_id in ids}
            futures = {
                item_id: executor.submit(
                    _run_item,
                    item_id,
                    payload,
                    submit,
                    {"text": payload["text"], "overlayImage": payload["overlayImage"], "timestamp": time.time()},
                )
                for item_id, payload in payloads.items()
            }
            wait(futures.values())
            if cancel.is_set():
                LOGGER.info("cancelled; discarding %s in-flight results", len(futures))
                break

            batch_results = [futures[item_id].result() for item_id in ids]
            results.extend(batch_results)
            if on_batch is not None:
                on_batch(start // batch_size + 1, batch_results)
            if pause > 0 and cancel.wait(pause):
                break

    return summarize(results)


def encode_data_url(data: bytes, content_type: str = "image/jpeg") -> str:
    return f"data:{content_type};base64,{base64.b64encode(data).decode('ascii')}"
