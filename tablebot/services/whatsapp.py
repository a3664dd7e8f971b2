"""WhatsApp Cloud API client for outbound messages."""

from __future__ import annotations

import logging
from typing import Any

import requests

from tablebot.config import RetryConfig, WhatsAppSettings
from tablebot.core.errors import ConfigError
from tablebot.core.logger import get_logger

from .http import JsonHttpClient

LOGGER = get_logger()

MESSAGING_PRODUCT = "whatsapp"


class WhatsAppClient:
    """Sends text, template and image messages through ``POST /messages``."""

    def __init__(
        self,
        settings: WhatsAppSettings,
        *,
        retries: RetryConfig | None = None,
        session: requests.Session | None = None,
        http_client: JsonHttpClient | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        if not settings.access_token or not settings.phone_number_id:
            token_hint = f"{settings.access_token[:10]}..." if settings.access_token else None
            raise ConfigError(
                "Missing or invalid WHATSAPP_ACCESS_TOKEN or WHATSAPP_PHONE_NUMBER_ID: "
                f"token={token_hint}, phoneId={settings.phone_number_id}"
            )
        self._logger = logger or LOGGER
        self._http = http_client or JsonHttpClient(
            settings.base_url,
            name="whatsapp",
            headers={
                "Authorization": f"Bearer {settings.access_token}",
                "Content-Type": "application/json",
            },
            timeout=settings.timeout_sec,
            retries=retries,
            session=session,
            logger=self._logger,
        )
        self._logger.info(
            "whatsapp.init phone_number_id=%s token=%s...",
            settings.phone_number_id,
            settings.access_token[:10],
        )

    def send_text(self, to: str, body: str) -> dict[str, Any]:
        return self._send(to, {"type": "text", "text": {"body": body}}, kind="text")

    def send_template(self, to: str, name: str, language_code: str = "en_US") -> dict[str, Any]:
        return self._send(
            to,
            {"type": "template", "template": {"name": name, "language": {"code": language_code}}},
            kind="template",
        )

    def send_image(self, to: str, link: str) -> dict[str, Any]:
        self._logger.info("whatsapp.send image to=%s link=%s", to, link)
        return self._send(to, {"type": "image", "image": {"link": link}}, kind="image")

    def close(self) -> None:
        self._http.close()

    def _send(self, to: str, content: dict[str, Any], *, kind: str) -> dict[str, Any]:
        payload = {"messaging_product": MESSAGING_PRODUCT, "to": to, **content}
        # Sends are not idempotent.
        response = self._http.request("POST", "/messages", json_body=payload, allow_retry=False)
        data = response if isinstance(response, dict) else {}
        messages = data.get("messages") or [{}]
        message_id = messages[0].get("id") if isinstance(messages[0], dict) else None
        self._logger.info("whatsapp.sent kind=%s to=%s id=%s", kind, to, message_id)
        return data


__all__ = ["WhatsAppClient"]
