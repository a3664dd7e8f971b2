"""Render table data to a PNG screenshot or an A4 PDF through headless Chromium.

Stages of one render, in order:

1. normalise rows and build the HTML document (pure, never fails);
2. launch the engine (``EngineLaunchError``);
3. stage the document in a per-call file and load it until network idle
   (``PageLoadError``);
4. ensure the output directory exists (``OutputDirectoryError``);
5. capture the artifact (``CaptureError``);
6. remove the staged file, warning with ``CleanupWarning`` on failure.

The engine is released on every exit path by ``HeadlessEngine.__aexit__``.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
import warnings
from pathlib import Path
from typing import Callable

from playwright.async_api import (
    Error as PlaywrightError,
    Page,
    TimeoutError as PlaywrightTimeoutError,
)

from tablebot.config import RenderSettings
from tablebot.core.errors import CaptureError, CleanupWarning, OutputDirectoryError, PageLoadError
from tablebot.core.logger import get_logger
from tablebot.core.profiles import ensure_work_dirs

from .engine import HeadlessEngine
from .markup import build_document, normalize_rows
from .models import RenderTarget, TableData


ARTIFACT_STEM = "output"
PAGE_FORMAT = "A4"

EngineFactory = Callable[[], HeadlessEngine]


class TableRenderer:
    """Turns ``TableData`` into an image or PDF artifact on disk."""

    def __init__(
        self,
        settings: RenderSettings | None = None,
        *,
        engine_factory: EngineFactory | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.settings = settings or RenderSettings()
        self.logger = logger or get_logger()
        self._engine_factory = engine_factory or self._default_engine

    def output_path(self, target: RenderTarget | str = RenderTarget.RASTER) -> Path:
        """Default artifact location: ``<output_dir>/output.<png|pdf>``."""

        target = RenderTarget.parse(target)
        return Path(self.settings.output_dir) / f"{ARTIFACT_STEM}.{target.extension}"

    async def render(
        self,
        data: TableData,
        target: RenderTarget | str = RenderTarget.RASTER,
        *,
        destination: Path | str | None = None,
        title: str | None = None,
    ) -> Path:
        """Render ``data`` and return the artifact path.

        Args:
            data: Columns and rows to draw.
            target: ``raster`` (full-page PNG) or ``document`` (A4 PDF).
            destination: Explicit artifact path. Defaults to
                :meth:`output_path`, which is shared by every call with the
                same target (last writer wins).
            title: Caption override for this render.

        Raises:
            EngineLaunchError: The browser could not be started.
            PageLoadError: The document could not be staged or loaded in time.
            OutputDirectoryError: The output directory could not be created.
            CaptureError: Screenshot or PDF capture failed.
        """

        target = RenderTarget.parse(target)
        items = normalize_rows(data)
        document = build_document(
            data,
            title=title or self.settings.title,
            items=items,
            escape=self.settings.escape_values,
        )
        output_path = Path(destination) if destination else self.output_path(target)
        self.logger.info(
            "render.start columns=%d rows=%d target=%s path=%s",
            len(data.columns),
            len(items),
            target.value,
            output_path,
        )

        async with self._engine_factory() as engine:
            staged = self._staging_path()
            try:
                page = await self._load(engine, staged, document)
                self._ensure_output_dir(output_path.parent)
                await self._capture(page, target, output_path)
            finally:
                self._discard_staged(staged)

        self.logger.info("render.done path=%s", output_path)
        return output_path

    def render_sync(
        self,
        data: TableData,
        target: RenderTarget | str = RenderTarget.RASTER,
        *,
        destination: Path | str | None = None,
        title: str | None = None,
    ) -> Path:
        """Run :meth:`render` on a private event loop (threads without a running loop)."""

        return asyncio.run(self.render(data, target, destination=destination, title=title))

    # ------------------------------------------------------------------
    # Stages
    async def _load(self, engine: HeadlessEngine, staged: Path, document: str) -> Page:
        try:
            staged.parent.mkdir(parents=True, exist_ok=True)
            staged.write_text(document, encoding="utf-8")
        except (OSError, UnicodeError) as exc:
            raise PageLoadError(f"Unable to stage document at {staged}: {exc}") from exc
        self.logger.debug("render.staged path=%s", staged)

        timeout_ms = self.settings.load_timeout_ms
        try:
            page = await engine.new_page()
            await page.goto(staged.as_uri(), wait_until="networkidle", timeout=timeout_ms)
        except PlaywrightTimeoutError as exc:
            raise PageLoadError(f"Document did not reach network idle within {timeout_ms} ms") from exc
        except PlaywrightError as exc:
            raise PageLoadError(f"Failed to load staged document: {exc}") from exc
        self.logger.debug("render.loaded path=%s", staged)
        return page

    def _ensure_output_dir(self, output_dir: Path) -> None:
        try:
            if output_dir.is_dir():
                self.logger.debug("render.output_dir exists path=%s", output_dir)
                return
            self.logger.info("render.output_dir creating path=%s", output_dir)
            output_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise OutputDirectoryError(f"Unable to create output directory {output_dir}") from exc

    async def _capture(self, page: Page, target: RenderTarget, output_path: Path) -> None:
        timeout = self.settings.capture_timeout_ms / 1000
        try:
            if target is RenderTarget.DOCUMENT:
                await asyncio.wait_for(page.pdf(path=str(output_path), format=PAGE_FORMAT), timeout)
            else:
                await asyncio.wait_for(page.screenshot(path=str(output_path), full_page=True), timeout)
        except asyncio.TimeoutError as exc:
            self._discard_partial(output_path)
            raise CaptureError(f"{target.value} capture timed out after {timeout:g} s") from exc
        except (PlaywrightError, OSError) as exc:
            self._discard_partial(output_path)
            raise CaptureError(f"{target.value} capture failed: {exc}") from exc
        self.logger.info("render.capture target=%s path=%s", target.value, output_path)

    # ------------------------------------------------------------------
    # Internal helpers
    def _default_engine(self) -> HeadlessEngine:
        return HeadlessEngine(
            headless=self.settings.headless,
            executable_path=self.settings.executable_path,
            channels=self.settings.channels,
            default_timeout_ms=self.settings.load_timeout_ms,
            logger=self.logger,
        )

    def _staging_path(self) -> Path:
        base = self.settings.staging_dir or ensure_work_dirs()["render"]
        return (Path(base) / f"table_{uuid.uuid4().hex}.html").resolve()

    def _discard_staged(self, staged: Path) -> None:
        try:
            staged.unlink(missing_ok=True)
        except OSError as exc:
            self.logger.warning("render.cleanup_failed path=%s error=%s", staged, exc)
            warnings.warn(f"Could not delete staged document {staged}: {exc}", CleanupWarning, stacklevel=2)
        else:
            self.logger.debug("render.cleanup path=%s", staged)

    def _discard_partial(self, output_path: Path) -> None:
        try:
            output_path.unlink(missing_ok=True)
        except OSError:
            self.logger.warning("render.partial_cleanup_failed path=%s", output_path, exc_info=True)
