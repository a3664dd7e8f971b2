from __future__ import annotations

import re
import threading
import uuid
from pathlib import Path
from typing import Any, Iterator, Mapping, Protocol, Sequence

from tablebot.config import BotSettings
from tablebot.services.commands import EchoCommand, TableCommand, is_table_request, parse_command
from tablebot.services.render import RenderTarget, TableData, TableRenderer

from .errors import ConfigError, ServiceError, TableBotError
from .logger import get_logger


APOLOGY_TEXT = "Failed to fetch or generate table"
WEBHOOK_OBJECT = "whatsapp_business_account"
ARTIFACT_ROUTE = "/output"

_ARTIFACT_NAME = re.compile(r"^[0-9a-f]{32}\.png$")


class TableSource(Protocol):
    """What the bridge needs from the analytics API."""

    def list_shops(self) -> list[str]:
        """Return known shop identifiers."""

    def process_query(self, prompt: str, shop_id: str) -> TableData:
        """Answer a prompt for a shop with a table."""


class Messenger(Protocol):
    """What the bridge needs from the chat platform."""

    def send_text(self, to: str, body: str) -> Mapping[str, Any]:
        """Send a text message."""

    def send_image(self, to: str, link: str) -> Mapping[str, Any]:
        """Send an image by public link."""


class MessageBridge:
    """Coordinates webhook message -> command -> analytics -> render -> reply."""

    def __init__(
        self,
        settings: BotSettings,
        *,
        analytics: TableSource,
        messenger: Messenger,
        renderer: TableRenderer | None = None,
        logger=None,
    ) -> None:
        self.settings = settings
        self.logger = logger or get_logger()
        self.analytics = analytics
        self.messenger = messenger
        self.renderer = renderer or TableRenderer(settings.render, logger=self.logger)
        self._shop_ids: list[str] = []
        self._shops_lock = threading.Lock()

    @classmethod
    def from_settings(cls, settings: BotSettings) -> "MessageBridge":
        """Build a bridge talking to the real analytics and WhatsApp APIs."""

        from tablebot.services.analytics import AnalyticsClient
        from tablebot.services.whatsapp import WhatsAppClient

        return cls(
            settings,
            analytics=AnalyticsClient(settings.analytics, retries=settings.retries),
            messenger=WhatsAppClient(settings.whatsapp, retries=settings.retries),
        )

    @property
    def shop_ids(self) -> Sequence[str]:
        return tuple(self._shop_ids)

    def refresh_shops(self) -> list[str]:
        """Fetch the shop list; failures leave an empty list."""

        with self._shops_lock:
            try:
                shops = self.analytics.list_shops()
            except TableBotError as exc:
                self.logger.error("bridge.shops fetch_failed error=%s", exc)
                shops = []
            self._shop_ids = list(shops)
            self.logger.info("bridge.shops loaded=%s", ",".join(self._shop_ids) or "-")
            return list(self._shop_ids)

    def handle_webhook(self, payload: Mapping[str, Any]) -> int:
        """Process one webhook delivery and return the number of text messages handled."""

        if not isinstance(payload, Mapping):
            self.logger.warning("bridge.webhook ignored type=%s", type(payload).__name__)
            return 0
        if payload.get("object") != WEBHOOK_OBJECT:
            self.logger.info("bridge.webhook ignored object=%s", payload.get("object"))
            return 0

        handled = 0
        for change in self._message_changes(payload):
            value = change.get("value")
            if not isinstance(value, Mapping):
                continue
            if value.get("messages"):
                for message in value["messages"]:
                    if not isinstance(message, Mapping) or message.get("type") != "text":
                        kind = message.get("type") if isinstance(message, Mapping) else type(message).__name__
                        self.logger.info("bridge.webhook skip type=%s", kind)
                        continue
                    sender = str(message.get("from", ""))
                    body = message.get("text")
                    text = str(body.get("body") or "") if isinstance(body, Mapping) else ""
                    try:
                        self.handle_text_message(sender, text)
                    except Exception:  # noqa: BLE001 - one bad message must not drop the rest
                        self.logger.error("bridge.message failed from=%s", sender, exc_info=True)
                    handled += 1
            elif value.get("statuses"):
                for status in value["statuses"]:
                    if not isinstance(status, Mapping):
                        continue
                    self.logger.info(
                        "bridge.status status=%s id=%s recipient=%s",
                        status.get("status"),
                        status.get("id"),
                        status.get("recipient_id"),
                    )
        return handled

    def _message_changes(self, payload: Mapping[str, Any]) -> Iterator[Mapping[str, Any]]:
        for entry in payload.get("entry") or []:
            if not isinstance(entry, Mapping):
                self.logger.warning("bridge.webhook malformed entry type=%s", type(entry).__name__)
                continue
            for change in entry.get("changes") or []:
                if not isinstance(change, Mapping):
                    self.logger.warning("bridge.webhook malformed change type=%s", type(change).__name__)
                    continue
                if change.get("field") == "messages":
                    yield change

    def handle_text_message(self, sender: str, text: str) -> None:
        self.logger.info("bridge.message from=%s text=%r", sender, text)
        analytics_settings = self.settings.analytics
        if not self._shop_ids and is_table_request(text):
            self.refresh_shops()
        command = parse_command(
            text,
            self.shop_ids,
            default_prompt=analytics_settings.default_prompt,
            preferred_shop=analytics_settings.preferred_shop,
            default_shop=analytics_settings.default_shop,
        )
        if isinstance(command, EchoCommand):
            self.messenger.send_text(sender, command.reply)
            return
        self._send_table(sender, command)

    def image_url(self, artifact: Path) -> str:
        base = self.settings.public_base_url
        if not base:
            raise ConfigError("PUBLIC_BASE_URL is not configured; cannot publish rendered tables")
        return f"{base.rstrip('/')}{ARTIFACT_ROUTE}/{artifact.name}"

    def prune_artifacts(self, keep: int | None = None) -> list[Path]:
        """Delete the oldest per-message images so at most ``keep`` remain."""

        keep = self.settings.render.keep_artifacts if keep is None else keep
        output_dir = Path(self.settings.render.output_dir)
        if not output_dir.is_dir():
            return []
        try:
            artifacts = [path for path in output_dir.iterdir() if _ARTIFACT_NAME.match(path.name) and path.is_file()]
            artifacts.sort(key=lambda path: path.stat().st_mtime, reverse=True)
        except OSError as exc:
            self.logger.warning("bridge.prune_failed path=%s error=%s", output_dir, exc)
            return []
        removed = []
        for path in artifacts[max(0, keep):]:
            try:
                path.unlink(missing_ok=True)
            except OSError as exc:
                self.logger.warning("bridge.prune_failed path=%s error=%s", path, exc)
                continue
            removed.append(path)
        if removed:
            self.logger.info("bridge.prune removed=%d kept=%d", len(removed), len(artifacts) - len(removed))
        return removed

    def _send_table(self, sender: str, command: TableCommand) -> None:
        self.logger.info("bridge.table prompt=%r shop_id=%s", command.prompt, command.shop_id)
        try:
            table = self.analytics.process_query(command.prompt, command.shop_id)
            self.prune_artifacts(self.settings.render.keep_artifacts - 1)
            destination = Path(self.settings.render.output_dir) / f"{uuid.uuid4().hex}.{RenderTarget.RASTER.extension}"
            artifact = self.renderer.render_sync(table, RenderTarget.RASTER, destination=destination)
            link = self.image_url(artifact)
            self.messenger.send_image(sender, link)
        except TableBotError as exc:
            self.logger.error("bridge.table failed to=%s error=%s", sender, exc, exc_info=True)
            if isinstance(exc, ServiceError) and exc.payload:
                self.logger.error("bridge.table service_payload=%s", exc.payload)
            self.messenger.send_text(sender, APOLOGY_TEXT)
        except Exception:  # noqa: BLE001
            self.logger.error("bridge.table unexpected_error to=%s", sender, exc_info=True)
            self.messenger.send_text(sender, APOLOGY_TEXT)
