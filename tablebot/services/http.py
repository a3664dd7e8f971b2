"""JSON-over-HTTP helper shared by the analytics and WhatsApp clients."""

from __future__ import annotations

import logging
import random
import time
from typing import Any, Iterable, Mapping

import requests
from requests import Response
from requests.exceptions import ConnectionError, RequestException, Timeout

from tablebot.config import RetryConfig
from tablebot.core.errors import ServiceAuthError, ServiceRequestError, ServiceRetryableError
from tablebot.core.logger import get_logger

LOGGER = get_logger()

USER_AGENT = "tablebot/0.1"
RETRYABLE_STATUS = {429, 500, 502, 503, 504}


class JsonHttpClient:
    """Request helper wrapping retries, JSON decoding and diagnostics."""

    def __init__(
        self,
        base_url: str,
        *,
        name: str = "http",
        headers: Mapping[str, str] | None = None,
        timeout: float = 10.0,
        retries: RetryConfig | None = None,
        session: requests.Session | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._name = name
        self._timeout = timeout
        self._retry_config = retries or RetryConfig()
        self._session = session or requests.Session()
        self._session.headers.setdefault("User-Agent", USER_AGENT)
        if headers:
            self._session.headers.update(headers)
        self._logger = logger or LOGGER

    @property
    def session(self) -> requests.Session:
        return self._session

    def request(
        self,
        method: str,
        path: str,
        *,
        json_body: Mapping[str, object] | None = None,
        params: Mapping[str, str] | None = None,
        expected_status: Iterable[int] = (200,),
        allow_retry: bool = True,
    ) -> Any:
        """Perform a request and return the decoded JSON body (``{}`` when empty)."""

        url = self._compose_url(path)
        redacted = self._redact_url(url)
        attempts = self._retry_config.max_attempts if allow_retry else 1
        base_backoff = max(0.001, self._retry_config.backoff_ms / 1000.0)
        max_backoff = max(base_backoff, self._retry_config.max_backoff_ms / 1000.0)
        expected = tuple(expected_status)
        last_error: ServiceRetryableError | None = None

        for attempt in range(1, attempts + 1):
            try:
                response = self._session.request(
                    method,
                    url,
                    params=dict(params or {}),
                    json=json_body,
                    timeout=self._timeout,
                )
            except Timeout as exc:
                last_error = ServiceRetryableError("Request timed out", payload={"url": redacted})
                self._logger.warning(
                    "%s.http timeout method=%s url=%s attempt=%d",
                    self._name,
                    method,
                    redacted,
                    attempt,
                    exc_info=exc,
                )
            except (ConnectionError, RequestException) as exc:
                last_error = ServiceRetryableError("Request failed", payload={"url": redacted})
                self._logger.warning(
                    "%s.http connection_error method=%s url=%s attempt=%d error=%s",
                    self._name,
                    method,
                    redacted,
                    attempt,
                    type(exc).__name__,
                )
            else:
                status = response.status_code
                payload = self._safe_json(response)
                if status in expected:
                    return payload
                if status in (401, 403):
                    self._logger.error(
                        "%s.http unauthorized method=%s url=%s status=%d", self._name, method, redacted, status
                    )
                    raise ServiceAuthError("Unauthorized", status_code=status, payload=self._as_dict(payload))
                if allow_retry and status in RETRYABLE_STATUS:
                    self._logger.warning(
                        "%s.http retryable_status method=%s url=%s status=%d attempt=%d",
                        self._name,
                        method,
                        redacted,
                        status,
                        attempt,
                    )
                    last_error = ServiceRetryableError(
                        "Retryable response", status_code=status, payload=self._as_dict(payload)
                    )
                else:
                    self._logger.error(
                        "%s.http unexpected_status method=%s url=%s status=%d", self._name, method, redacted, status
                    )
                    raise ServiceRequestError(
                        f"Unexpected status {status}", status_code=status, payload=self._as_dict(payload)
                    )

            if attempt < attempts:
                self._sleep_with_backoff(base_backoff, max_backoff, attempt)

        if last_error is not None:
            raise last_error
        raise ServiceRetryableError("Exhausted retries", payload={"url": redacted})

    def close(self) -> None:
        self._session.close()

    # Internal helpers -------------------------------------------------

    def _compose_url(self, path: str) -> str:
        if path.startswith("http://") or path.startswith("https://"):
            return path
        if not path.startswith("/"):
            path = f"/{path}"
        return f"{self._base_url}{path}"

    def _redact_url(self, url: str) -> str:
        if "?" in url:
            return url.split("?")[0]
        return url

    def _sleep_with_backoff(self, base: float, maximum: float, attempt: int) -> None:
        delay = min(maximum, base * (2 ** (attempt - 1)))
        jitter = random.uniform(0, delay / 2)
        time.sleep(delay + jitter)

    def _safe_json(self, response: Response) -> Any:
        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError:
            text = response.text
            if len(text) > 200:
                text = text[:200] + "..."
            return {"body": text}

    @staticmethod
    def _as_dict(payload: Any) -> dict[str, Any]:
        if isinstance(payload, dict):
            return payload
        return {"body": payload}


__all__ = ["JsonHttpClient", "RETRYABLE_STATUS"]
