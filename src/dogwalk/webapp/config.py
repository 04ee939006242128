"""Configuration constants for the dogwalk web frontend."""
from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import timedelta
from pathlib import Path
from typing import Mapping, Optional

from dotenv import load_dotenv

from ..reducer import Settings

load_dotenv()

SESSION_SECRET = os.environ.get("SESSION_SECRET", "change-this-session-secret")
SQLITE_FILE_NAME = os.environ.get("DOGWALK_SQLITE", "dogwalk.db")
SNAPSHOT_DIR = os.environ.get("DOGWALK_SNAPSHOT_DIR", ".dogwalk-sessions")
LOG_FILE = os.environ.get("DOGWALK_LOG_FILE") or None
SESSION_COOKIE_NAME = "dogwalk_session"
REMEMBER_COOKIE_LIFETIME = timedelta(days=30)
REMEMBER_COOKIE_MAX_AGE = int(REMEMBER_COOKIE_LIFETIME.total_seconds())


def _int(environ: Mapping[str, str], key: str, default: int) -> int:
    raw = environ.get(key, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ValueError(f"{key} must be an integer, got {raw!r}") from exc


@dataclass(frozen=True, slots=True)
class WebConfig:
    """Everything the web app needs, resolved once at startup."""

    sqlite_file: str = SQLITE_FILE_NAME
    session_secret: str = SESSION_SECRET
    snapshot_dir: Optional[Path] = Path(SNAPSHOT_DIR)
    log_file: Optional[Path] = Path(LOG_FILE) if LOG_FILE else None
    settings: Settings = Settings()

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "WebConfig":
        env = os.environ if environ is None else environ
        defaults = Settings()
        lead_minutes = int(defaults.reminder_lead.total_seconds() // 60)
        grace_minutes = int(defaults.missed_grace.total_seconds() // 60)
        settings = Settings(
            seed_days=_int(env, "DOGWALK_SEED_DAYS", defaults.seed_days),
            morning_hour=_int(env, "DOGWALK_MORNING_HOUR", defaults.morning_hour),
            evening_hour=_int(env, "DOGWALK_EVENING_HOUR", defaults.evening_hour),
            retention_days=_int(env, "DOGWALK_NOTIFICATION_RETENTION_DAYS", defaults.retention_days),
            reminder_lead=timedelta(minutes=_int(env, "DOGWALK_REMINDER_LEAD_MINUTES", lead_minutes)),
            missed_grace=timedelta(minutes=_int(env, "DOGWALK_MISSED_GRACE_MINUTES", grace_minutes)),
        )
        snapshot_dir = env.get("DOGWALK_SNAPSHOT_DIR", SNAPSHOT_DIR)
        log_file = env.get("DOGWALK_LOG_FILE")
        return cls(
            sqlite_file=env.get("DOGWALK_SQLITE", "dogwalk.db"),
            session_secret=env.get("SESSION_SECRET", "change-this-session-secret"),
            snapshot_dir=Path(snapshot_dir) if snapshot_dir else None,
            log_file=Path(log_file) if log_file else None,
            settings=settings,
        )


__all__ = [
    "LOG_FILE",
    "REMEMBER_COOKIE_LIFETIME",
    "REMEMBER_COOKIE_MAX_AGE",
    "SESSION_COOKIE_NAME",
    "SESSION_SECRET",
    "SNAPSHOT_DIR",
    "SQLITE_FILE_NAME",
    "WebConfig",
]
