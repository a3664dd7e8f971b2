"""Typer based command line entry points for tablebot."""

from __future__ import annotations

import json
from dataclasses import replace
from pathlib import Path
from typing import Optional

import typer

from tablebot.config import BotSettings, load_settings
from tablebot.core.errors import ConfigError, RenderError, TableBotError, TableShapeError
from tablebot.core.logger import get_logger, parse_level, set_level
from tablebot.services.analytics import AnalyticsClient
from tablebot.services.render import RenderTarget, TableData, TableRenderer

TARGET_CHOICES = {"png", "pdf", "raster", "document"}

app = typer.Typer(help="WhatsApp table bot: render tables and serve the webhook.")


def _validate_target(value: str) -> str:
    value = value.lower()
    if value not in TARGET_CHOICES:
        raise typer.BadParameter("target must be one of png, pdf, raster, document")
    return value


def _load(ctx: typer.Context, settings_file: Optional[Path]) -> BotSettings:
    """Load settings; an explicit ``--log-level`` wins over the configured level."""

    settings = load_settings(settings_file)
    cli_level = (ctx.obj or {}).get("log_level")
    if cli_level:
        settings = replace(settings, log_level=cli_level)
    set_level(settings.log_level)
    return settings


@app.callback()
def main_callback(
    ctx: typer.Context,
    log_level: Optional[str] = typer.Option(
        None,
        "--log-level",
        help="Set global logging level (e.g. DEBUG/INFO/WARNING). Defaults to settings.",
    ),
) -> None:
    """Configure global CLI behaviour before executing commands."""

    if log_level is not None:
        try:
            parse_level(log_level)
        except ValueError as exc:
            raise typer.BadParameter(str(exc)) from exc
        log_level = log_level.upper()
    ctx.obj = {"log_level": log_level}


@app.command("render")
def render_table(
    ctx: typer.Context,
    input_file: Path = typer.Argument(..., exists=True, dir_okay=False, resolve_path=True, help="JSON file with columns and rows"),
    target: str = typer.Option("png", "--target", "-t", callback=_validate_target, help="png (raster) or pdf (A4 document)."),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Artifact path (default: <output_dir>/output.<ext>)."),
    title: Optional[str] = typer.Option(None, "--title", help="Caption shown above the table."),
    escape: Optional[bool] = typer.Option(None, "--escape/--no-escape", help="HTML-escape cell values."),
    settings_file: Optional[Path] = typer.Option(None, "--settings", resolve_path=True, help="Override settings YAML."),
) -> None:
    """Render a ``{"columns": [...], "rows": [...]}`` JSON file to PNG or PDF."""

    logger = get_logger()
    try:
        settings = _load(ctx, settings_file)
    except ConfigError as exc:
        typer.secho(f"Unable to load settings: {exc}", fg=typer.colors.RED)
        raise typer.Exit(code=2) from exc

    try:
        payload = json.loads(input_file.read_text(encoding="utf-8"))
        data = TableData.from_payload(payload)
    except (ValueError, TableShapeError) as exc:
        typer.secho(f"Invalid table file {input_file}: {exc}", fg=typer.colors.RED)
        raise typer.Exit(code=2) from exc

    render_settings = settings.render
    if escape is not None:
        render_settings = replace(render_settings, escape_values=escape)

    renderer = TableRenderer(render_settings, logger=logger)
    try:
        artifact = renderer.render_sync(data, RenderTarget.parse(target), destination=output, title=title)
    except RenderError as exc:
        logger.error("cli.render failed input=%s", input_file, exc_info=True)
        typer.secho(f"Render failed: {exc}", fg=typer.colors.RED)
        raise typer.Exit(code=1) from exc
    typer.echo(str(artifact))


@app.command("shops")
def list_shops(
    ctx: typer.Context,
    settings_file: Optional[Path] = typer.Option(None, "--settings", resolve_path=True, help="Override settings YAML."),
) -> None:
    """Print the shop identifiers known to the analytics API."""

    logger = get_logger()
    settings = _load(ctx, settings_file)
    client = AnalyticsClient(settings.analytics, retries=settings.retries, logger=logger)
    try:
        shops = client.list_shops()
    except TableBotError as exc:
        logger.error("cli.shops failed", exc_info=True)
        typer.secho(f"Unable to fetch shops: {exc}", fg=typer.colors.RED)
        raise typer.Exit(code=1) from exc
    finally:
        client.close()
    for shop_id in shops:
        typer.echo(shop_id)


@app.command("serve")
def serve(
    ctx: typer.Context,
    host: Optional[str] = typer.Option(None, "--host", help="Bind address (default from settings)."),
    port: Optional[int] = typer.Option(None, "--port", help="Bind port (default from settings or $PORT)."),
    settings_file: Optional[Path] = typer.Option(None, "--settings", resolve_path=True, help="Override settings YAML."),
) -> None:
    """Run the webhook server."""

    import uvicorn

    from tablebot.api import create_app

    settings = _load(ctx, settings_file)
    try:
        application = create_app(settings)
    except ConfigError as exc:
        typer.secho(f"Unable to start server: {exc}", fg=typer.colors.RED)
        raise typer.Exit(code=2) from exc
    uvicorn.run(application, host=host or settings.host, port=port or settings.port)


if __name__ == "__main__":
    app()
