"""Fake async Playwright driver used by the renderer and engine tests."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any
from urllib.parse import unquote, urlparse

import pytest
from playwright.async_api import Error as PlaywrightError, TimeoutError as PlaywrightTimeoutError

from tablebot.config import RenderSettings
from tablebot.services.render import engine as engine_module


@dataclass
class FakeDriver:
    """Shared state and failure switches for every fake browser of a test."""

    fail_start: bool = False
    failing_channels: set[str] = field(default_factory=set)
    fail_goto: str | None = None  # "error" | "timeout"
    fail_capture: bool = False
    capture_delay: float = 0.0
    launches: list[dict[str, Any]] = field(default_factory=list)
    browsers: list["FakeBrowser"] = field(default_factory=list)
    playwrights: list["FakePlaywright"] = field(default_factory=list)
    loaded: list[tuple[Path, str]] = field(default_factory=list)
    captures: list[tuple[str, dict[str, Any]]] = field(default_factory=list)


class FakePage:
    def __init__(self, driver: FakeDriver) -> None:
        self._driver = driver
        self.default_timeout: float | None = None

    def set_default_timeout(self, timeout: float) -> None:
        self.default_timeout = timeout

    async def goto(self, url: str, *, wait_until: str | None = None, timeout: float | None = None) -> None:
        if self._driver.fail_goto == "timeout":
            raise PlaywrightTimeoutError(f"Timeout {timeout}ms exceeded")
        if self._driver.fail_goto == "error":
            raise PlaywrightError("net::ERR_FILE_NOT_FOUND")
        assert wait_until == "networkidle"
        path = Path(unquote(urlparse(url).path))
        self._driver.loaded.append((path, path.read_text(encoding="utf-8")))

    async def screenshot(self, *, path: str, full_page: bool = False) -> bytes:
        await self._capture("screenshot", path, full_page=full_page)
        return b""

    async def pdf(self, *, path: str, format: str | None = None) -> bytes:
        await self._capture("pdf", path, format=format)
        return b""

    async def _capture(self, kind: str, path: str, **options: Any) -> None:
        if self._driver.capture_delay:
            await asyncio.sleep(self._driver.capture_delay)
        if self._driver.fail_capture:
            raise PlaywrightError(f"{kind} failed")
        self._driver.captures.append((kind, {"path": path, **options}))
        Path(path).write_bytes(b"%PDF-fake" if kind == "pdf" else b"\x89PNG-fake")


class FakeBrowser:
    def __init__(self, driver: FakeDriver) -> None:
        self._driver = driver
        self.closed = False

    async def new_page(self) -> FakePage:
        return FakePage(self._driver)

    async def close(self) -> None:
        self.closed = True


class FakeChromium:
    def __init__(self, driver: FakeDriver) -> None:
        self._driver = driver

    async def launch(self, **kwargs: Any) -> FakeBrowser:
        self._driver.launches.append(kwargs)
        channel = kwargs.get("channel", "chromium")
        if channel in self._driver.failing_channels:
            raise PlaywrightError(f"Executable doesn't exist for {channel}")
        browser = FakeBrowser(self._driver)
        self._driver.browsers.append(browser)
        return browser


class FakePlaywright:
    def __init__(self, driver: FakeDriver) -> None:
        self.chromium = FakeChromium(driver)
        self.stopped = False

    async def stop(self) -> None:
        self.stopped = True


class FakeManager:
    def __init__(self, driver: FakeDriver) -> None:
        self._driver = driver

    async def start(self) -> FakePlaywright:
        if self._driver.fail_start:
            raise RuntimeError("Driver not installed")
        playwright = FakePlaywright(self._driver)
        self._driver.playwrights.append(playwright)
        return playwright


@pytest.fixture
def fake_driver(monkeypatch: pytest.MonkeyPatch) -> FakeDriver:
    driver = FakeDriver()
    monkeypatch.setattr(engine_module, "async_playwright", lambda: FakeManager(driver))
    return driver


@pytest.fixture
def render_settings(tmp_path: Path) -> RenderSettings:
    return RenderSettings(
        output_dir=tmp_path / "output",
        staging_dir=tmp_path / "staging",
        load_timeout_ms=1_000,
        capture_timeout_ms=1_000,
    )
