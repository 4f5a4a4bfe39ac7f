# src/tasknotes/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole app (normal "settings layer").
- Nothing is required at import time; every value has a default.
- The re-notify / ledger windows of the reminder engine are constants, not settings.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import List

from dotenv import load_dotenv

ENV_PREFIX = "TASKNOTES"

load_dotenv(override=False)


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_list(name: str, default: List[str]) -> List[str]:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return list(default)
    parts = [p.strip() for p in raw.replace(",", " ").split() if p.strip()]
    return parts


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

    # ---- Console client ----
    console_enabled: bool

    # ---- Local data paths ----
    data_dir: Path
    log_dir: Path

    # ---- Reminders ----
    check_interval_seconds: int
    default_lead_minutes: int
    notification_methods: List[str]

    @staticmethod
    def from_env() -> "Settings":
        app_name = _env(_k("APP_NAME"), "tasknotes") or "tasknotes"
        log_level = _env(_k("LOG_LEVEL"), "INFO")

        console_enabled = _env_bool(_k("CONSOLE_ENABLED"), True)

        data_dir = _env_path(_k("DATA_DIR"), Path("~/.tasknotes").expanduser())
        log_dir = _env_path(_k("LOG_DIR"), data_dir / "logs")

        check_interval_seconds = max(1, _env_int(_k("CHECK_INTERVAL_SECONDS"), 60))
        default_lead_minutes = max(0, _env_int(_k("DEFAULT_LEAD_MINUTES"), 60))
        notification_methods = _env_list(_k("NOTIFICATION_METHODS"), ["console"])

        return Settings(
            app_name=app_name,
            log_level=log_level,
            console_enabled=console_enabled,
            data_dir=data_dir,
            log_dir=log_dir,
            check_interval_seconds=check_interval_seconds,
            default_lead_minutes=default_lead_minutes,
            notification_methods=notification_methods,
        )

    def with_data_dir(self, data_dir: Path) -> "Settings":
        """Copy with another data dir (CLI --data-dir); log_dir follows unless set explicitly."""
        log_dir = self.log_dir
        if log_dir == self.data_dir / "logs":
            log_dir = data_dir / "logs"
        return replace(self, data_dir=data_dir, log_dir=log_dir)


SETTINGS = Settings.from_env()


def get_settings() -> Settings:
    return SETTINGS
