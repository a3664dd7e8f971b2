from __future__ import annotations

from pathlib import Path

import pytest

from tablebot.config import load_settings
from tablebot.core.errors import ConfigError


def test_defaults_from_bundled_yaml() -> None:
    settings = load_settings()

    assert settings.render.title == "Dilly Comparison Table"
    assert settings.render.output_dir == Path("output")
    assert settings.render.channels == ("chromium", "chrome", "msedge")
    assert settings.render.escape_values is False
    assert settings.analytics.base_url.startswith("https://")
    assert settings.analytics.preferred_shop == "dlabparism6BFF685A"
    assert settings.whatsapp.api_version == "v22.0"
    assert settings.retries.max_attempts == 3
    assert settings.port == 3000


def test_environment_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("WHATSAPP_ACCESS_TOKEN", "token")
    monkeypatch.setenv("WHATSAPP_PHONE_NUMBER_ID", "999")
    monkeypatch.setenv("WEBHOOK_VERIFY_TOKEN", "verify")
    monkeypatch.setenv("PUBLIC_BASE_URL", "https://bot.example.test/")
    monkeypatch.setenv("ANALYTICS_BASE_URL", "https://analytics.example.test")
    monkeypatch.setenv("CHROME_EXECUTABLE_PATH", "/usr/bin/google-chrome")
    monkeypatch.setenv("TABLEBOT_OUTPUT_DIR", "/srv/tablebot/output")
    monkeypatch.setenv("PORT", "8080")

    settings = load_settings()
    settings.require_messaging()

    assert settings.whatsapp.base_url == "https://graph.facebook.com/v22.0/999"
    assert settings.public_base_url == "https://bot.example.test"
    assert settings.analytics.base_url == "https://analytics.example.test"
    assert settings.render.executable_path == "/usr/bin/google-chrome"
    assert settings.render.output_dir == Path("/srv/tablebot/output")
    assert settings.port == 8080


def test_require_messaging_lists_missing_values() -> None:
    settings = load_settings()

    with pytest.raises(ConfigError) as excinfo:
        settings.require_messaging()

    message = str(excinfo.value)
    for name in ("WHATSAPP_ACCESS_TOKEN", "WHATSAPP_PHONE_NUMBER_ID", "WEBHOOK_VERIFY_TOKEN", "PUBLIC_BASE_URL"):
        assert name in message


def test_invalid_port_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("PORT", "eighty")

    with pytest.raises(ConfigError):
        load_settings()


def test_custom_file_with_env_reference(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    path = tmp_path / "settings.yaml"
    path.write_text(
        "render:\n  title: Ventes\n  staging_dir: ${STAGE_DIR}\n"
        "analytics:\n  base_url: https://a.example.test\n",
        encoding="utf-8",
    )
    monkeypatch.setenv("STAGE_DIR", str(tmp_path / "stage"))

    settings = load_settings(path)

    assert settings.render.title == "Ventes"
    assert settings.render.staging_dir == tmp_path / "stage"
    assert settings.analytics.default_prompt == "compare CA janvier 2024 et 2025"


def test_missing_env_reference_and_missing_file(tmp_path: Path) -> None:
    path = tmp_path / "settings.yaml"
    path.write_text("analytics:\n  base_url: ${TABLEBOT_UNSET_URL}\n", encoding="utf-8")

    with pytest.raises(ConfigError):
        load_settings(path)
    with pytest.raises(ConfigError):
        load_settings(tmp_path / "absent.yaml")


def test_log_level_from_yaml_and_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    assert load_settings().log_level == "INFO"
    assert load_settings().render.keep_artifacts == 100

    path = tmp_path / "settings.yaml"
    path.write_text(
        "analytics:\n  base_url: https://a.example.test\nlogging:\n  level: warning\n"
        "render:\n  keep_artifacts: 0\n",
        encoding="utf-8",
    )
    settings = load_settings(path)
    assert settings.log_level == "WARNING"
    assert settings.render.keep_artifacts == 1

    monkeypatch.setenv("TABLEBOT_LOG_LEVEL", "debug")
    assert load_settings(path).log_level == "DEBUG"


def test_invalid_log_level_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("TABLEBOT_LOG_LEVEL", "chatty")

    with pytest.raises(ConfigError, match="Unknown log level"):
        load_settings()
