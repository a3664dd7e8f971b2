"""Headless Chromium lifecycle built on Playwright's async API.

The engine is an async context manager: entering it starts Playwright and
launches a browser, leaving it closes the browser and stops Playwright no
matter how the block exits.
"""

from __future__ import annotations

import logging

from playwright.async_api import (
    Browser,
    Error as PlaywrightError,
    Page,
    Playwright,
    async_playwright,
)

from tablebot.core.errors import EngineLaunchError
from tablebot.core.logger import get_logger


SANDBOX_ARGS = ("--no-sandbox", "--disable-setuid-sandbox")
DEFAULT_CHANNELS = ("chromium", "chrome", "msedge")


class HeadlessEngine:
    """Owns one Playwright driver and one browser process."""

    def __init__(
        self,
        *,
        headless: bool = True,
        executable_path: str | None = None,
        channels: tuple[str, ...] = DEFAULT_CHANNELS,
        launch_args: tuple[str, ...] = SANDBOX_ARGS,
        default_timeout_ms: int = 30_000,
        logger: logging.Logger | None = None,
    ) -> None:
        self.logger = logger or get_logger()
        self.headless = headless
        self.executable_path = executable_path
        self.channels = channels or DEFAULT_CHANNELS
        self.launch_args = launch_args
        self.default_timeout_ms = default_timeout_ms

        self._playwright: Playwright | None = None
        self._browser: Browser | None = None
        self.browser_channel: str | None = None

    # ------------------------------------------------------------------
    # Lifecycle helpers
    async def __aenter__(self) -> "HeadlessEngine":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, _tb) -> bool:
        await self.close()
        # Do not suppress exceptions
        return False

    @property
    def running(self) -> bool:
        return self._browser is not None

    async def start(self) -> Browser:
        """Start Playwright and launch the browser."""
        if self._browser is not None:
            return self._browser

        try:
            self._playwright = await async_playwright().start()
        except Exception as exc:  # noqa: BLE001
            raise EngineLaunchError(
                "Playwright failed to start; run `python -m playwright install chromium`"
            ) from exc

        try:
            self._browser = await self._launch_browser(self._playwright)
        except EngineLaunchError:
            await self._stop_playwright()
            raise
        self.logger.info("render.engine launched channel=%s", self.browser_channel)
        return self._browser

    async def new_page(self) -> Page:
        if self._browser is None:
            raise EngineLaunchError("Browser is not running")
        page = await self._browser.new_page()
        page.set_default_timeout(self.default_timeout_ms)
        return page

    async def close(self) -> None:
        """Release the browser and the Playwright driver."""
        if self._browser is not None:
            try:
                await self._browser.close()
            except Exception:  # noqa: BLE001
                self.logger.warning("render.engine browser_close_failed", exc_info=True)
            else:
                self.logger.info("render.engine closed")
        await self._stop_playwright()
        self._browser = None
        self.browser_channel = None

    # ------------------------------------------------------------------
    # Internal helpers
    async def _launch_browser(self, playwright: Playwright) -> Browser:
        options: dict[str, object] = {"headless": self.headless, "args": list(self.launch_args)}
        if self.executable_path:
            attempts: list[tuple[str | None, str]] = [(None, self.executable_path)]
        else:
            attempts = [(None if channel == "chromium" else channel, channel) for channel in self.channels]

        last_exc: PlaywrightError | None = None
        for channel, label in attempts:
            kwargs = dict(options)
            if self.executable_path:
                kwargs["executable_path"] = self.executable_path
            elif channel is not None:
                kwargs["channel"] = channel
            try:
                browser = await playwright.chromium.launch(**kwargs)
            except PlaywrightError as exc:
                self.logger.warning("render.engine launch_failed channel=%s error=%s", label, exc)
                last_exc = exc
                continue
            self.browser_channel = label
            return browser
        raise EngineLaunchError(
            "Unable to launch Chromium; run `python -m playwright install chromium` "
            "or set CHROME_EXECUTABLE_PATH"
        ) from last_exc

    async def _stop_playwright(self) -> None:
        if self._playwright is None:
            return
        try:
            await self._playwright.stop()
        except Exception:  # noqa: BLE001
            self.logger.warning("render.engine playwright_stop_failed", exc_info=True)
        self._playwright = None
