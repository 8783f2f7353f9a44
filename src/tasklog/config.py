# src/tasklog/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole app.
- No secrets required at import time (the calendar token is optional).
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

ENV_PREFIX = "TASKLOG"


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


load_dotenv(override=False)


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _first_env(*names: str, default: str | None = None) -> str | None:
    for n in names:
        v = os.getenv(n)
        if v is not None and v.strip() != "":
            return v
    return default


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_path(name: str, default: Path) -> Path:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return Path(raw).expanduser()


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- App / logging ----
    app_name: str
    log_level: str
    console_enabled: bool

    # ---- Identity ----
    user_id: str | None

    # ---- Local data paths (ignored by git) ----
    data_dir: Path
    snapshot_db_path: Path

    # ---- Timers ----
    sync_debounce_seconds: float
    auto_stop_seconds: float
    tick_seconds: float
    clock_tick_seconds: float

    # ---- Calendar ----
    calendar_base_url: str
    calendar_id: str
    calendar_token: str | None
    calendar_timeout_seconds: float

    @staticmethod
    def from_env() -> "Settings":
        app_name = _env(_k("APP_NAME"), "tasklog") or "tasklog"
        log_level = _env(_k("LOG_LEVEL"), "INFO")
        console_enabled = _env_bool(_k("CONSOLE_ENABLED"), True)

        user_id = (_env(_k("USER_ID"), "") or "").strip() or None

        data_dir = _env_path(_k("DATA_DIR"), Path(".local/tasklog"))
        snapshot_db_path = _env_path(_k("SNAPSHOT_DB_PATH"), data_dir / "snapshots.sqlite3")

        sync_debounce_seconds = _env_float(_k("SYNC_DEBOUNCE_SECONDS"), 1.0)
        auto_stop_seconds = _env_float(_k("AUTO_STOP_SECONDS"), 35999.0)
        tick_seconds = _env_float(_k("TICK_SECONDS"), 1.0)
        clock_tick_seconds = _env_float(_k("CLOCK_TICK_SECONDS"), 60.0)

        calendar_base_url = _env(_k("CALENDAR_BASE_URL"), "https://www.googleapis.com/calendar/v3")
        calendar_id = _env(_k("CALENDAR_ID"), "primary") or "primary"
        # Accept a bare GOOGLE_OAUTH_TOKEN as well, handy when it is exported by another tool.
        calendar_token = _first_env(_k("CALENDAR_TOKEN"), "GOOGLE_OAUTH_TOKEN", default=None)
        calendar_timeout_seconds = _env_float(_k("CALENDAR_TIMEOUT_SECONDS"), 10.0)

        return Settings(
            app_name=app_name,
            log_level=log_level,
            console_enabled=console_enabled,
            user_id=user_id,
            data_dir=data_dir,
            snapshot_db_path=snapshot_db_path,
            sync_debounce_seconds=sync_debounce_seconds,
            auto_stop_seconds=auto_stop_seconds,
            tick_seconds=tick_seconds,
            clock_tick_seconds=clock_tick_seconds,
            calendar_base_url=calendar_base_url,
            calendar_id=calendar_id,
            calendar_token=calendar_token,
            calendar_timeout_seconds=calendar_timeout_seconds,
        )


SETTINGS = Settings.from_env()


def get_settings() -> Settings:
    return SETTINGS
