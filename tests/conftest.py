from __future__ import annotations

import os
import sys
import tempfile
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

# Keep app.log and staged renders out of the working tree.
os.environ["TABLEBOT_WORK_DIR"] = tempfile.mkdtemp(prefix="tablebot-tests-")

SETTINGS_ENV_VARS = (
    "WHATSAPP_ACCESS_TOKEN",
    "WHATSAPP_PHONE_NUMBER_ID",
    "WHATSAPP_API_VERSION",
    "WEBHOOK_VERIFY_TOKEN",
    "PUBLIC_BASE_URL",
    "ANALYTICS_BASE_URL",
    "ANALYTICS_TIMEOUT_SEC",
    "CHROME_EXECUTABLE_PATH",
    "TABLEBOT_OUTPUT_DIR",
    "PORT",
    "TABLEBOT_LOG_LEVEL",
)


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Ignore deployment variables picked up from a developer's .env."""

    for key in SETTINGS_ENV_VARS:
        monkeypatch.delenv(key, raising=False)
