"""Client for the analytics query API that answers table prompts."""

from __future__ import annotations

import logging
from typing import Any

import requests

from tablebot.config import AnalyticsSettings, RetryConfig
from tablebot.core.errors import ServiceRequestError, TableShapeError
from tablebot.core.logger import get_logger

from .http import JsonHttpClient
from .render.models import TableData

LOGGER = get_logger()


class AnalyticsClient:
    """Thin wrapper over ``GET /get_shops`` and ``POST /process_query``."""

    def __init__(
        self,
        settings: AnalyticsSettings,
        *,
        retries: RetryConfig | None = None,
        session: requests.Session | None = None,
        http_client: JsonHttpClient | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self._settings = settings
        self._logger = logger or LOGGER
        self._http = http_client or JsonHttpClient(
            settings.base_url,
            name="analytics",
            timeout=settings.timeout_sec,
            retries=retries,
            session=session,
            logger=self._logger,
        )

    def list_shops(self) -> list[str]:
        """Return the shop identifiers the API can answer for."""

        payload = self._http.request("GET", "/get_shops")
        if not isinstance(payload, list):
            self._logger.warning("analytics.shops unexpected_format type=%s", type(payload).__name__)
            return []
        shops = [str(item["customerId"]) for item in payload if isinstance(item, dict) and item.get("customerId")]
        self._logger.info("analytics.shops count=%d", len(shops))
        return shops

    def process_query(self, prompt: str, shop_id: str) -> TableData:
        """Run a natural language prompt for a shop and return the resulting table."""

        self._logger.info("analytics.query shop_id=%s prompt=%r", shop_id, prompt)
        payload: Any = self._http.request(
            "POST",
            "/process_query",
            json_body={"prompt": prompt, "shop_id": shop_id},
        )
        if not isinstance(payload, dict):
            raise ServiceRequestError("Analytics response is not an object", payload={"body": payload})
        try:
            table = TableData.from_payload(
                {"columns": payload.get("columns") or [], "rows": payload.get("rows") or []}
            )
        except TableShapeError:
            self._logger.error("analytics.query bad_shape keys=%s", sorted(payload))
            raise
        self._logger.info("analytics.query columns=%d rows=%d", len(table.columns), len(table.rows))
        return table

    def close(self) -> None:
        self._http.close()


__all__ = ["AnalyticsClient"]
