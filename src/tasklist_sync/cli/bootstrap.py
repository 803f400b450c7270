# src/tasklist_sync/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- picks the backend pair (store + identity provider) for the whole process,
- wires them into a TaskSyncEngine held by AppState.

The backend choice is never revisited at runtime.
"""

from __future__ import annotations

import logging

from ..config import REQUIRED_REMOTE_KEYS, get_settings
from ..core.engine import TaskSyncEngine
from ..core.ports import IdentityProvider, TaskStore
from ..core.state import AppState
from ..stores.local_store import LocalTaskStore

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.session_path.parent.mkdir(parents=True, exist_ok=True)


def select_backend(settings) -> tuple[TaskStore, IdentityProvider | None]:
    """Remote (Firestore + Firebase Auth) if fully configured, else the in-memory store."""
    missing = list(settings.missing_remote_keys)
    if missing:
        if len(missing) < len(REQUIRED_REMOTE_KEYS):
            logger.warning("Firebase config is missing: %s. Using local mode.", ", ".join(missing))
        else:
            logger.info("Firebase is not configured. Using local mode.")
        return LocalTaskStore(), None

    try:
        # Imported lazily: local mode must not need Google credentials.
        from ..auth.firebase_auth import FirebaseIdentityProvider
        from ..stores.firestore_store import FirestoreTaskStore

        store = FirestoreTaskStore.from_settings(settings)
        provider = FirebaseIdentityProvider(
            settings.firebase_api_key,
            session_path=settings.session_path if settings.persist_session else None,
            timeout_seconds=settings.http_timeout_seconds,
        )
    except Exception:
        logger.exception("Remote backend could not be initialised; falling back to local mode.")
        return LocalTaskStore(), None

    logger.info("Using Firestore backend (project=%s).", settings.firebase_project_id)
    return store, provider


def create_initial_state(*, settings=None) -> AppState:
    """
    Create AppState from the provided settings.

    If settings is None, falls back to get_settings().
    """
    if settings is None:
        settings = get_settings()

    _ensure_local_dirs(settings)

    store, provider = select_backend(settings)
    engine = TaskSyncEngine(store, provider)
    return AppState(settings=settings, store=store, engine=engine, identity_provider=provider)


async def start_state(state: AppState) -> None:
    """Restore a persisted auth session (cloud mode), then start the engine."""
    provider = state.identity_provider
    restore = getattr(provider, "restore_session", None)
    if callable(restore):
        try:
            await restore()
        except Exception:
            logger.exception("Session restore failed.")
    state.engine.start()


async def shutdown_state(state: AppState) -> None:
    """Best-effort shutdown (no exceptions should escape)."""
    try:
        state.engine.close()
    except Exception:
        logger.exception("Engine close failed.")

    aclose = getattr(state.identity_provider, "aclose", None)
    if callable(aclose):
        try:
            await aclose()
        except Exception:
            logger.debug("Identity provider close failed.", exc_info=True)
