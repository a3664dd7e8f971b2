from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv

from .errors import ConfigError


load_dotenv(override=False)

WORK_DIR_ENV = "TABLEBOT_WORK_DIR"


def _project_root() -> Path:
    # In source layout, this file is under <root>/tablebot/core
    return Path(__file__).resolve().parents[2]


def _config_dir() -> Path:
    return _project_root() / "tablebot" / "config"


def _work_dir() -> Path:
    env = os.getenv(WORK_DIR_ENV)
    if env:
        return Path(env).expanduser()
    return Path.cwd() / "work"


def ensure_work_dirs() -> dict[str, Path]:
    """Create and return the runtime directories (logs, tmp, staged renders)."""
    base = _work_dir()
    tmp = base / "tmp"
    logs = base / "logs"
    render = tmp / "render"
    for p in (tmp, logs, render):
        p.mkdir(parents=True, exist_ok=True)
    return {"tmp": tmp, "logs": logs, "render": render}


def resolve_config_path(path: str | Path) -> Path:
    p = Path(path)
    if p.is_absolute():
        return p
    # Support paths with or without leading 'tablebot/'
    parts = p.parts
    if parts and parts[0] == "tablebot":
        return _project_root() / p
    return _config_dir() / p


def read_env(key: str) -> str | None:
    value = os.getenv(key)
    if value is None:
        return None
    value = value.strip()
    return value or None


def read_env_int(key: str) -> int | None:
    value = read_env(key)
    if value is None:
        return None
    try:
        return int(value)
    except ValueError as exc:
        raise ConfigError(f"Environment variable {key} must be an integer") from exc


def read_env_float(key: str) -> float | None:
    value = read_env(key)
    if value is None:
        return None
    try:
        return float(value)
    except ValueError as exc:
        raise ConfigError(f"Environment variable {key} must be a number") from exc
