"""Custom exceptions used across tablebot."""

from __future__ import annotations

from typing import Any


class TableBotError(Exception):
    """Base error for the application."""


class ConfigError(TableBotError):
    """Configuration related error."""


class RenderError(TableBotError):
    """Raised when a table cannot be rendered to an artifact."""


class EngineLaunchError(RenderError):
    """The headless rendering engine failed to start."""


class PageLoadError(RenderError):
    """The staged document failed to load or never reached network idle."""


class OutputDirectoryError(RenderError):
    """The output directory could not be verified or created."""


class CaptureError(RenderError):
    """Raster or document capture failed."""


class CleanupWarning(UserWarning):
    """The staged markup file could not be removed after a render."""


class ServiceError(TableBotError):
    """Base error raised for remote API failures."""

    def __init__(self, message: str, *, status_code: int | None = None, payload: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.payload = payload or {}


class ServiceAuthError(ServiceError):
    """Raised when the remote API rejects our credentials."""


class ServiceRetryableError(ServiceError):
    """Raised for retryable I/O issues (network/server errors)."""


class ServiceRequestError(ServiceError):
    """Raised for non-retryable HTTP or protocol errors."""


class TableShapeError(TableBotError):
    """Raised when a payload does not have the columns/rows table shape."""
