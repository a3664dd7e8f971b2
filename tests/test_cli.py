"""CLI tests for the render and shops commands."""

from __future__ import annotations

import json
import logging
from pathlib import Path

import pytest
from typer.testing import CliRunner

from tablebot import cli
from tablebot.core.errors import CaptureError, ServiceRetryableError
from tablebot.core.logger import get_logger
from tablebot.services.render import RenderTarget


TABLE = {
    "columns": [{"key": "metric", "header": "Metric"}, {"key": "y2025", "header": "2025"}],
    "rows": [[{"value": "CA"}, {"value": 1500}]],
}


@pytest.fixture
def cli_runner() -> CliRunner:
    return CliRunner()


@pytest.fixture
def table_file(tmp_path: Path) -> Path:
    path = tmp_path / "table.json"
    path.write_text(json.dumps(TABLE), encoding="utf-8")
    return path


class RecordingRenderer:
    instances: list["RecordingRenderer"] = []
    error: Exception | None = None

    def __init__(self, settings, *, logger=None) -> None:
        self.settings = settings
        self.calls: list[dict] = []
        RecordingRenderer.instances.append(self)

    def render_sync(self, data, target, *, destination=None, title=None) -> Path:
        self.calls.append({"data": data, "target": target, "destination": destination, "title": title})
        if RecordingRenderer.error is not None:
            raise RecordingRenderer.error
        return Path(destination) if destination else Path(self.settings.output_dir) / f"output.{target.extension}"


@pytest.fixture
def restore_level():
    logger = get_logger()
    level = logger.level
    yield logger
    logger.setLevel(level)


@pytest.fixture
def renderer(monkeypatch: pytest.MonkeyPatch) -> type[RecordingRenderer]:
    RecordingRenderer.instances = []
    RecordingRenderer.error = None
    monkeypatch.setattr(cli, "TableRenderer", RecordingRenderer)
    return RecordingRenderer


def test_render_png_to_default_path(cli_runner: CliRunner, table_file: Path, renderer) -> None:
    result = cli_runner.invoke(cli.app, ["render", str(table_file)])

    assert result.exit_code == 0, result.output
    assert str(Path("output") / "output.png") in result.output.splitlines()
    call = renderer.instances[0].calls[0]
    assert call["target"] is RenderTarget.RASTER
    assert [column.key for column in call["data"].columns] == ["metric", "y2025"]


def test_render_pdf_with_options(cli_runner: CliRunner, table_file: Path, tmp_path: Path, renderer) -> None:
    output = tmp_path / "report.pdf"

    result = cli_runner.invoke(
        cli.app,
        ["render", str(table_file), "-t", "pdf", "-o", str(output), "--title", "Q1", "--escape"],
    )

    assert result.exit_code == 0, result.output
    assert str(output) in result.output.splitlines()
    instance = renderer.instances[0]
    assert instance.settings.escape_values is True
    assert instance.calls[0]["target"] is RenderTarget.DOCUMENT
    assert instance.calls[0]["title"] == "Q1"


def test_render_rejects_unknown_target(cli_runner: CliRunner, table_file: Path, renderer) -> None:
    result = cli_runner.invoke(cli.app, ["render", str(table_file), "--target", "gif"])

    assert result.exit_code == 2
    assert renderer.instances == []


@pytest.mark.parametrize("content", ["{not json", json.dumps({"columns": "metric", "rows": []})])
def test_render_rejects_invalid_table_file(cli_runner: CliRunner, tmp_path: Path, renderer, content: str) -> None:
    path = tmp_path / "bad.json"
    path.write_text(content, encoding="utf-8")

    result = cli_runner.invoke(cli.app, ["render", str(path)])

    assert result.exit_code == 2
    assert "Invalid table file" in result.output
    assert renderer.instances == []


def test_render_failure_exits_with_error(cli_runner: CliRunner, table_file: Path, renderer) -> None:
    renderer.error = CaptureError("screenshot failed")

    result = cli_runner.invoke(cli.app, ["render", str(table_file)])

    assert result.exit_code == 1
    assert "Render failed: screenshot failed" in result.output


class FakeAnalyticsClient:
    shops: list[str] | Exception = []
    closed = False

    def __init__(self, settings, *, retries=None, logger=None) -> None:
        self.settings = settings

    def list_shops(self) -> list[str]:
        if isinstance(FakeAnalyticsClient.shops, Exception):
            raise FakeAnalyticsClient.shops
        return list(FakeAnalyticsClient.shops)

    def close(self) -> None:
        FakeAnalyticsClient.closed = True


def test_shops_lists_identifiers(cli_runner: CliRunner, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(cli, "AnalyticsClient", FakeAnalyticsClient)
    monkeypatch.setattr(FakeAnalyticsClient, "shops", ["shopA", "shopB"])
    monkeypatch.setattr(FakeAnalyticsClient, "closed", False)

    result = cli_runner.invoke(cli.app, ["shops"])

    assert result.exit_code == 0, result.output
    assert result.output.splitlines()[-2:] == ["shopA", "shopB"]
    assert FakeAnalyticsClient.closed is True


def test_shops_failure_exits_with_error(cli_runner: CliRunner, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(cli, "AnalyticsClient", FakeAnalyticsClient)
    monkeypatch.setattr(FakeAnalyticsClient, "shops", ServiceRetryableError("down"))
    monkeypatch.setattr(FakeAnalyticsClient, "closed", False)

    result = cli_runner.invoke(cli.app, ["shops"])

    assert result.exit_code == 1
    assert "Unable to fetch shops" in result.output
    assert FakeAnalyticsClient.closed is True


def test_serve_requires_credentials(cli_runner: CliRunner) -> None:
    result = cli_runner.invoke(cli.app, ["serve"])

    assert result.exit_code == 2
    assert "WHATSAPP_ACCESS_TOKEN" in result.output


def test_log_level_option_overrides_settings(
    cli_runner: CliRunner,
    table_file: Path,
    renderer,
    restore_level,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    logger = restore_level
    monkeypatch.setenv("TABLEBOT_LOG_LEVEL", "ERROR")

    result = cli_runner.invoke(cli.app, ["--log-level", "debug", "render", str(table_file)])

    assert result.exit_code == 0, result.output
    assert logger.level == logging.DEBUG


def test_log_level_comes_from_settings(
    cli_runner: CliRunner,
    table_file: Path,
    renderer,
    restore_level,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    logger = restore_level
    monkeypatch.setenv("TABLEBOT_LOG_LEVEL", "warning")

    result = cli_runner.invoke(cli.app, ["render", str(table_file)])

    assert result.exit_code == 0, result.output
    assert logger.level == logging.WARNING


def test_unknown_log_level_is_rejected(cli_runner: CliRunner, table_file: Path, renderer) -> None:
    result = cli_runner.invoke(cli.app, ["--log-level", "chatty", "render", str(table_file)])

    assert result.exit_code == 2
    assert renderer.instances == []
