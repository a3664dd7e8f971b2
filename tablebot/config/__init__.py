"""Runtime configuration for tablebot.

Defaults are read from ``settings.yaml`` next to this module; secrets and
deployment specific values are layered on top from environment variables
(``.env`` is honoured via python-dotenv when ``tablebot.core.profiles`` loads).
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Mapping

import yaml

from tablebot.core.errors import ConfigError
from tablebot.core.logger import parse_level
from tablebot.core.profiles import read_env, read_env_float, read_env_int, resolve_config_path


DEFAULT_SETTINGS_PATH = Path(__file__).resolve().parent / "settings.yaml"

WHATSAPP_ACCESS_TOKEN_ENV = "WHATSAPP_ACCESS_TOKEN"
WHATSAPP_PHONE_NUMBER_ID_ENV = "WHATSAPP_PHONE_NUMBER_ID"
WHATSAPP_API_VERSION_ENV = "WHATSAPP_API_VERSION"
VERIFY_TOKEN_ENV = "WEBHOOK_VERIFY_TOKEN"
PUBLIC_BASE_URL_ENV = "PUBLIC_BASE_URL"
ANALYTICS_BASE_URL_ENV = "ANALYTICS_BASE_URL"
ANALYTICS_TIMEOUT_ENV = "ANALYTICS_TIMEOUT_SEC"
CHROME_EXECUTABLE_ENV = "CHROME_EXECUTABLE_PATH"
OUTPUT_DIR_ENV = "TABLEBOT_OUTPUT_DIR"
PORT_ENV = "PORT"
LOG_LEVEL_ENV = "TABLEBOT_LOG_LEVEL"


@dataclass(frozen=True, slots=True)
class RetryConfig:
    """Retry parameters for outbound HTTP requests."""

    max_attempts: int = 3
    backoff_ms: int = 200
    max_backoff_ms: int = 2000

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any] | None) -> "RetryConfig":
        if not data:
            return cls()
        return cls(
            max_attempts=max(1, int(data.get("max_attempts", 3))),
            backoff_ms=int(data.get("backoff_ms", 200)),
            max_backoff_ms=int(data.get("max_backoff_ms", 2000)),
        )


@dataclass(frozen=True, slots=True)
class RenderSettings:
    """Options for the table renderer and its headless engine."""

    title: str = "Dilly Comparison Table"
    output_dir: Path = Path("output")
    staging_dir: Path | None = None
    headless: bool = True
    executable_path: str | None = None
    channels: tuple[str, ...] = ("chromium", "chrome", "msedge")
    load_timeout_ms: int = 30_000
    capture_timeout_ms: int = 30_000
    escape_values: bool = False
    keep_artifacts: int = 100

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any] | None) -> "RenderSettings":
        data = data or {}
        staging = data.get("staging_dir")
        channels = data.get("channels") or ("chromium", "chrome", "msedge")
        if isinstance(channels, str) or not isinstance(channels, (list, tuple)):
            raise ConfigError("render.channels must be a list of browser channel names")
        return cls(
            title=str(data.get("title", "Dilly Comparison Table")),
            output_dir=Path(_expand_env(data.get("output_dir", "output"))),
            staging_dir=Path(_expand_env(staging)) if staging else None,
            headless=bool(data.get("headless", True)),
            executable_path=_expand_env(data.get("executable_path")) or None,
            channels=tuple(str(channel) for channel in channels),
            load_timeout_ms=int(data.get("load_timeout_ms", 30_000)),
            capture_timeout_ms=int(data.get("capture_timeout_ms", 30_000)),
            escape_values=bool(data.get("escape_values", False)),
            keep_artifacts=max(1, int(data.get("keep_artifacts", 100))),
        )


@dataclass(frozen=True, slots=True)
class AnalyticsSettings:
    """Location of the analytics query API and command defaults."""

    base_url: str
    timeout_sec: float = 30.0
    preferred_shop: str | None = None
    default_shop: str = "default_shop"
    default_prompt: str = "compare CA janvier 2024 et 2025"

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any] | None) -> "AnalyticsSettings":
        data = data or {}
        base_url = _expand_env(data.get("base_url"))
        if not base_url:
            raise ConfigError("analytics.base_url is required")
        return cls(
            base_url=str(base_url),
            timeout_sec=float(data.get("timeout_sec", 30.0)),
            preferred_shop=data.get("preferred_shop") or None,
            default_shop=str(data.get("default_shop", "default_shop")),
            default_prompt=str(data.get("default_prompt", "compare CA janvier 2024 et 2025")),
        )


@dataclass(frozen=True, slots=True)
class WhatsAppSettings:
    """WhatsApp Cloud API credentials and endpoint."""

    access_token: str | None = None
    phone_number_id: str | None = None
    graph_url: str = "https://graph.facebook.com"
    api_version: str = "v22.0"
    timeout_sec: float = 10.0

    @property
    def base_url(self) -> str:
        return f"{self.graph_url.rstrip('/')}/{self.api_version}/{self.phone_number_id}"

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any] | None) -> "WhatsAppSettings":
        data = data or {}
        return cls(
            access_token=_expand_env(data.get("access_token")) or None,
            phone_number_id=_expand_env(data.get("phone_number_id")) or None,
            graph_url=str(data.get("graph_url", "https://graph.facebook.com")),
            api_version=str(data.get("api_version", "v22.0")),
            timeout_sec=float(data.get("timeout_sec", 10.0)),
        )


@dataclass(frozen=True, slots=True)
class BotSettings:
    """Resolved configuration for the whole bridge."""

    render: RenderSettings
    analytics: AnalyticsSettings
    whatsapp: WhatsAppSettings = field(default_factory=WhatsAppSettings)
    retries: RetryConfig = field(default_factory=RetryConfig)
    verify_token: str | None = None
    public_base_url: str | None = None
    host: str = "0.0.0.0"
    port: int = 3000
    log_level: str = "INFO"

    def require_messaging(self) -> None:
        """Fail fast when the webhook server lacks its credentials."""

        missing = []
        if not self.whatsapp.access_token:
            missing.append(WHATSAPP_ACCESS_TOKEN_ENV)
        if not self.whatsapp.phone_number_id:
            missing.append(WHATSAPP_PHONE_NUMBER_ID_ENV)
        if not self.verify_token:
            missing.append(VERIFY_TOKEN_ENV)
        if not self.public_base_url:
            missing.append(PUBLIC_BASE_URL_ENV)
        if missing:
            raise ConfigError(f"Missing required configuration: {', '.join(missing)}")


def load_settings(path: str | Path | None = None) -> BotSettings:
    """Load settings from YAML and apply environment overrides."""

    settings_path = resolve_config_path(path) if path else DEFAULT_SETTINGS_PATH
    raw = _load_yaml(settings_path)
    try:
        base = BotSettings(
            render=RenderSettings.from_mapping(_ensure_mapping(raw.get("render"))),
            analytics=AnalyticsSettings.from_mapping(_ensure_mapping(raw.get("analytics"))),
            whatsapp=WhatsAppSettings.from_mapping(_ensure_mapping(raw.get("whatsapp"))),
            retries=RetryConfig.from_mapping(_ensure_mapping(raw.get("retries"))),
            verify_token=_expand_env(raw.get("verify_token")) or None,
            public_base_url=_expand_env(raw.get("public_base_url")) or None,
            host=str(_ensure_mapping(raw.get("server")).get("host", "0.0.0.0")),
            port=int(_ensure_mapping(raw.get("server")).get("port", 3000)),
            log_level=str(_ensure_mapping(raw.get("logging")).get("level", "INFO")),
        )
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid settings in {settings_path}: {exc}") from exc
    return _apply_env(base)


def _apply_env(base: BotSettings) -> BotSettings:
    render = base.render
    output_dir = read_env(OUTPUT_DIR_ENV)
    executable = read_env(CHROME_EXECUTABLE_ENV)
    render = replace(
        render,
        output_dir=Path(output_dir) if output_dir else render.output_dir,
        executable_path=executable or render.executable_path,
    )

    analytics = base.analytics
    timeout = read_env_float(ANALYTICS_TIMEOUT_ENV)
    analytics = replace(
        analytics,
        base_url=read_env(ANALYTICS_BASE_URL_ENV) or analytics.base_url,
        timeout_sec=timeout if timeout is not None else analytics.timeout_sec,
    )

    whatsapp = base.whatsapp
    whatsapp = replace(
        whatsapp,
        access_token=read_env(WHATSAPP_ACCESS_TOKEN_ENV) or whatsapp.access_token,
        phone_number_id=read_env(WHATSAPP_PHONE_NUMBER_ID_ENV) or whatsapp.phone_number_id,
        api_version=read_env(WHATSAPP_API_VERSION_ENV) or whatsapp.api_version,
    )

    port = read_env_int(PORT_ENV)
    log_level = read_env(LOG_LEVEL_ENV) or base.log_level
    try:
        parse_level(log_level)
    except ValueError as exc:
        raise ConfigError(str(exc)) from exc
    public_base_url = read_env(PUBLIC_BASE_URL_ENV) or base.public_base_url
    return replace(
        base,
        render=render,
        analytics=analytics,
        whatsapp=whatsapp,
        verify_token=read_env(VERIFY_TOKEN_ENV) or base.verify_token,
        public_base_url=public_base_url.rstrip("/") if public_base_url else None,
        port=port if port is not None else base.port,
        log_level=log_level.upper(),
    )


def _load_yaml(path: Path) -> dict[str, Any]:
    if not path.exists():
        raise ConfigError(f"Settings file not found: {path}")
    with path.open("r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle) or {}
    if not isinstance(data, dict):
        raise ConfigError("Settings file must contain a mapping")
    return data


def _ensure_mapping(value: Any) -> Mapping[str, Any]:
    if isinstance(value, Mapping):
        return value
    return {}


def _expand_env(value: Any) -> Any:
    if isinstance(value, str):
        expanded = os.path.expandvars(value)
        if "${" in value and "}" in value and expanded == value:
            raise ConfigError(f"Environment variable not set for value: {value}")
        return expanded
    return value


__all__ = [
    "AnalyticsSettings",
    "BotSettings",
    "RenderSettings",
    "RetryConfig",
    "WhatsAppSettings",
    "load_settings",
]
