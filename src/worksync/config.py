# src/worksync/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole app.
- No secrets required at import time (the memory backends work offline).
- Every component also accepts injected settings, so tests never touch the env.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

ENV_PREFIX = "WORKSYNC"

REMOTE_BACKENDS = ("memory", "firestore")
AUTH_BACKENDS = ("memory", "firebase")


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


load_dotenv(override=False)


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


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


def _env_choice(name: str, choices: tuple[str, ...], default: str) -> str:
    raw = _env(name, default).strip().lower()
    return raw if raw in choices else default


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- App / logging ----
    app_name: str
    log_level: str

    # ---- Local data paths (ignored by git) ----
    data_dir: Path
    cache_db_path: Path

    # ---- Backends ----
    remote_backend: str  # memory | firestore
    auth_backend: str  # memory | firebase

    # ---- Firebase / Firestore ----
    firebase_project_id: str
    firebase_api_key: str | None
    firestore_database: str
    auth_timeout_seconds: float

    # ---- Background sync ----
    sync_interval_seconds: float  # 0 disables the loop

    # ---- Connector flags ----
    console_enabled: bool

    @staticmethod
    def from_env() -> "Settings":
        app_name = _env(_k("APP_NAME"), "worksync").strip() or "worksync"
        log_level = _env(_k("LOG_LEVEL"), "INFO")

        data_dir = _env_path(_k("DATA_DIR"), Path(".local/worksync"))
        cache_db_path = _env_path(_k("CACHE_DB_PATH"), data_dir / "cache.sqlite3")

        remote_backend = _env_choice(_k("REMOTE_BACKEND"), REMOTE_BACKENDS, "memory")
        auth_backend = _env_choice(_k("AUTH_BACKEND"), AUTH_BACKENDS, "memory")

        firebase_project_id = _env(_k("FIREBASE_PROJECT_ID"), "").strip()
        firebase_api_key = _env(_k("FIREBASE_API_KEY"), "").strip() or None
        firestore_database = _env(_k("FIRESTORE_DATABASE"), "(default)").strip() or "(default)"
        auth_timeout_seconds = max(1.0, _env_float(_k("AUTH_TIMEOUT_SECONDS"), 15.0))

        sync_interval_seconds = max(0.0, _env_float(_k("SYNC_INTERVAL_SECONDS"), 60.0))

        console_enabled = _env_bool(_k("CONSOLE_ENABLED"), True)

        return Settings(
            app_name=app_name,
            log_level=log_level,
            data_dir=data_dir,
            cache_db_path=cache_db_path,
            remote_backend=remote_backend,
            auth_backend=auth_backend,
            firebase_project_id=firebase_project_id,
            firebase_api_key=firebase_api_key,
            firestore_database=firestore_database,
            auth_timeout_seconds=auth_timeout_seconds,
            sync_interval_seconds=sync_interval_seconds,
            console_enabled=console_enabled,
        )


_SETTINGS: Settings | None = None


def get_settings() -> Settings:
    global _SETTINGS
    if _SETTINGS is None:
        _SETTINGS = Settings.from_env()
    return _SETTINGS
