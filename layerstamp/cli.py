from __future__ import annotations

import json
import random
import threading
from pathlib import Path
from typing import Any, NoReturn

import typer

from layerstamp.assets import write_sample_assets
from layerstamp.batch import run_interactive, run_school_batch
from layerstamp.client import LayerstampClient
from layerstamp.compiler import compile_template
from layerstamp.config import load_config, render_settings, templates_dir, write_default_config
from layerstamp.errors import LayerstampError
from layerstamp.log import get_logger, setup_logging
from layerstamp.models import RenderRequest
from layerstamp.pipeline import render_overlays, render_template
from layerstamp.render.command import build_command, normalize_output_format, request_from_payload
from layerstamp.template_loader import load_template

app = typer.Typer(add_completion=False, no_args_is_help=True, help="layerstamp image compositing CLI.")
LOGGER = get_logger("layerstamp")


def _fail(message: str) -> NoReturn:
    typer.secho(message, err=True, fg=typer.colors.RED)
    raise typer.Exit(1)


def _parse_assignments(values: list[str]) -> dict[str, str]:
    table: dict[str, str] = {}
    for value in values:
        key, sep, literal = value.partition("=")
        key = key.strip()
        if not sep or not key:
            raise typer.BadParameter(f"expected KEY=VALUE, got {value!r}", param_hint="--set")
        table[key] = literal
    return table


def _load_substitutions(data_file: Path | None, assignments: list[str]) -> dict[str, str]:
    table: dict[str, str] = {}
    if data_file is not None:
        loaded = json.loads(data_file.read_text(encoding="utf-8"))
        if not isinstance(loaded, dict):
            raise typer.BadParameter("template data file must hold a JSON object", param_hint="--data")
        table.update({str(key): str(value) for key, value in loaded.items()})
    table.update(_parse_assignments(assignments))
    return table


def _write_output(path: Path, data: bytes) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(data)


@app.command()
def render(
    template: str = typer.Argument(..., help="Template file name, e.g. 10_light.xml"),
    out: Path = typer.Option(..., "--out", help="Output image path."),
    data: Path | None = typer.Option(None, "--data", exists=True, dir_okay=False, help="JSON file with template data."),
    assignments: list[str] = typer.Option([], "--set", help="Template data entry KEY=VALUE (repeatable)."),
    width: int | None = typer.Option(None, "--width", min=1),
    height: int | None = typer.Option(None, "--height", min=1),
    output_format: str | None = typer.Option(None, "--format", help="jpg|png"),
    log_level: str = typer.Option("info", "--log-level"),
) -> None:
    """Render one template with substitutions."""
    setup_logging(log_level)
    cfg = load_config()
    try:
        image = render_template(
            template,
            _load_substitutions(data, assignments),
            render_settings(cfg),
            templates_dir=templates_dir(cfg),
            output_width=width or int(cfg["output_width"]),
            output_height=height or int(cfg["output_height"]),
            output_format=normalize_output_format(output_format or cfg["output_format"]),
            strict=bool(cfg.get("strict_layers")),
        )
    except LayerstampError as exc:
        _fail(f"{exc.message}{': ' + exc.details if exc.details else ''}")
    _write_output(out, image.data)
    typer.echo(f"Wrote {out} ({len(image.data)} bytes)")


@app.command()
def compose(
    request_file: Path = typer.Argument(..., exists=True, dir_okay=False, help="generate-image JSON body."),
    out: Path = typer.Option(..., "--out", help="Output image path."),
    log_level: str = typer.Option("info", "--log-level"),
) -> None:
    """Render a raw overlay request."""
    setup_logging(log_level)
    cfg = load_config()
    try:
        payload = json.loads(request_file.read_text(encoding="utf-8"))
        image = render_overlays(request_from_payload(payload), render_settings(cfg))
    except json.JSONDecodeError as exc:
        _fail(f"Invalid JSON: {exc}")
    except LayerstampError as exc:
        _fail(f"{exc.message}{': ' + exc.details if exc.details else ''}")
    _write_output(out, image.data)
    typer.echo(f"Wrote {out} ({len(image.data)} bytes)")


@app.command()
def inspect(
    template: str = typer.Argument(...),
    data: Path | None = typer.Option(None, "--data", exists=True, dir_okay=False),
    assignments: list[str] = typer.Option([], "--set"),
) -> None:
    """Print a template's compiled overlays and the renderer command."""
    cfg = load_config()
    try:
        document = load_template(template, templates_dir(cfg))
        image_overlays, text_overlays = compile_template(
            document,
            _load_substitutions(data, assignments),
            strict=bool(cfg.get("strict_layers")),
        )
        request = RenderRequest(image_overlays=image_overlays, text_overlays=text_overlays)
        try:
            command: list[str] | None = build_command(request, render_settings(cfg))
        except LayerstampError as exc:
            LOGGER.warning("command not buildable: %s", exc.message)
            command = None
    except LayerstampError as exc:
        _fail(exc.message)

    payload: dict[str, Any] = {
        "template": template,
        "templateName": document.name,
        "templateId": document.id,
        "layers": len(document.layers),
        "imageOverlays": [overlay.to_dict() for overlay in image_overlays],
        "textOverlays": [overlay.to_dict() for overlay in text_overlays],
        "command": command,
    }
    typer.echo(json.dumps(payload, ensure_ascii=False, indent=2))


@app.command()
def batch(
    count: int = typer.Option(100, "--count", min=1),
    template: str | None = typer.Option(None, "--template"),
    seed: int | None = typer.Option(None, "--seed"),
    out: Path | None = typer.Option(None, "--out", help="Directory for rendered images."),
    log_level: str = typer.Option("info", "--log-level"),
) -> None:
    """Render a template for COUNT random schools."""
    setup_logging(log_level)
    cfg = load_config()
    summary, _ = run_school_batch(
        count,
        render_settings(cfg),
        template=template or str(cfg["default_template"]),
        templates_dir=templates_dir(cfg),
        strict=bool(cfg.get("strict_layers")),
        rng=random.Random(seed) if seed is not None else None,
    )

    if out is not None:
        for item in summary.results:
            if item.ok:
                _write_output(out / f"school_{item.id:04d}.jpg", item.payload)

    stats = summary.statistics()
    typer.echo(
        f"Done. total={stats['total']} successful={stats['successful']} "
        f"failed={stats['failed']} rate={stats['successRate']}"
    )
    failed = [item for item in summary.results if not item.ok]
    if failed:
        typer.secho("Failures:", fg=typer.colors.RED)
        for item in failed:
            typer.secho(f"  #{item.id} {item.meta.get('schoolName', '')}: {item.payload}", fg=typer.colors.RED)
        raise typer.Exit(1)


@app.command()
def bulk(
    url: str = typer.Option("http://127.0.0.1:5000", "--url", help="Base URL of a running server."),
    total: int = typer.Option(1000, "--total", min=1),
    batch_size: int | None = typer.Option(None, "--batch-size", min=1),
    seed: int | None = typer.Option(None, "--seed"),
    out: Path | None = typer.Option(None, "--out"),
    log_level: str = typer.Option("info", "--log-level"),
) -> None:
    """Fire random generate-image requests at a server in concurrent batches."""
    setup_logging(log_level)
    cfg = load_config()
    size = batch_size or int(cfg.get("batch_size") or 10)
    client = LayerstampClient(url, pool_size=size)
    cancel = threading.Event()

    def _progress(batch_no: int, results: list) -> None:
        ok = sum(1 for item in results if item.ok)
        typer.echo(f"batch {batch_no}: {ok}/{len(results)} ok")
        if out is not None:
            for item in results:
                if item.ok:
                    _write_output(out / f"image_{item.id:05d}.jpg", item.payload)

    try:
        summary = run_interactive(
            total,
            client.generate_image,
            batch_size=size,
            cancel=cancel,
            pause=float(cfg.get("batch_pause") or 0),
            rng=random.Random(seed) if seed is not None else None,
            on_batch=_progress,
        )
    except KeyboardInterrupt:
        cancel.set()
        _fail("Cancelled.")
    finally:
        client.close()

    stats = summary.statistics()
    typer.echo(f"Done. generated={stats['successful']} failed={stats['failed']} rate={stats['successRate']}")


@app.command("init-assets")
def init_assets(
    force: bool = typer.Option(False, "--force", help="Overwrite existing assets."),
) -> None:
    cfg = load_config()
    settings = render_settings(cfg)
    written = write_sample_assets(settings.assets_dir, force=force)
    typer.echo(f"Assets in {settings.assets_dir}: {len(written)} written")


@app.command("init-config")
def init_config(
    force: bool = typer.Option(False, "--force", help="Overwrite existing config file."),
) -> None:
    path = write_default_config(force=force)
    typer.echo(f"Config initialized: {path}")


@app.command()
def serve(
    host: str | None = typer.Option(None, "--host"),
    port: int | None = typer.Option(None, "--port"),
    debug: bool = typer.Option(False, "--debug"),
) -> None:
    """Run the HTTP API with the Flask development server."""
    cfg = load_config()
    setup_logging(str(cfg.get("log_level") or "info"))
    from layerstamp.web import create_app

    flask_app = create_app(cfg)
    flask_app.run(host=host or str(cfg["host"]), port=port or int(cfg["port"]), debug=debug)


def main() -> None:
    app()


if __name__ == "__main__":
    main()
