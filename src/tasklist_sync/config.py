# src/tasklist_sync/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole app.
- No secrets required at import time.
- Backend selection is decided once, from these settings, at startup.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)

ENV_PREFIX = "TASKSYNC"


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


def _load_dotenv_if_available() -> None:
    """Load .env locally if python-dotenv is installed. Safe no-op otherwise."""
    try:
        from dotenv import load_dotenv  # type: ignore
    except Exception:
        return
    load_dotenv(override=False)


_load_dotenv_if_available()


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


# Keys that must all be present for the remote (Firestore + Firebase Auth) backend.
REQUIRED_REMOTE_KEYS = ("firebase_api_key", "firebase_project_id")


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- App / logging ----
    app_name: str
    log_level: str
    data_dir: Path

    # ---- Firebase ----
    firebase_api_key: str | None
    firebase_project_id: str | None
    firebase_auth_domain: str | None
    firebase_app_id: str | None
    tasks_collection: str

    # ---- Auth session ----
    persist_session: bool
    session_path: Path
    http_timeout_seconds: float

    @property
    def missing_remote_keys(self) -> list[str]:
        return [name for name in REQUIRED_REMOTE_KEYS if not getattr(self, name)]

    @property
    def remote_configured(self) -> bool:
        return not self.missing_remote_keys

    @staticmethod
    def from_env() -> "Settings":
        app_name = _env(_k("APP_NAME"), "tasklist-sync") or "tasklist-sync"
        log_level = _env(_k("LOG_LEVEL"), "INFO")
        data_dir = _env_path(_k("DATA_DIR"), Path(".local/tasklist-sync"))

        def _firebase(suffix: str) -> str | None:
            v = _first_env(_k(f"FIREBASE_{suffix}"), f"FIREBASE_{suffix}", default=None)
            return v.strip() if v else None

        tasks_collection = (_env(_k("TASKS_COLLECTION"), "tasks") or "tasks").strip()

        persist_session = _env_bool(_k("PERSIST_SESSION"), True)
        session_path = _env_path(_k("SESSION_PATH"), data_dir / "session.json")
        http_timeout_seconds = max(1.0, _env_float(_k("HTTP_TIMEOUT_SECONDS"), 10.0))

        return Settings(
            app_name=app_name,
            log_level=log_level,
            data_dir=data_dir,
            firebase_api_key=_firebase("API_KEY"),
            firebase_project_id=_firebase("PROJECT_ID"),
            firebase_auth_domain=_firebase("AUTH_DOMAIN"),
            firebase_app_id=_firebase("APP_ID"),
            tasks_collection=tasks_collection,
            persist_session=persist_session,
            session_path=session_path,
            http_timeout_seconds=http_timeout_seconds,
        )


_SETTINGS: Settings | None = None


def get_settings() -> Settings:
    global _SETTINGS
    if _SETTINGS is None:
        _SETTINGS = Settings.from_env()
    return _SETTINGS
