# tests/conftest.py

from __future__ import annotations

import itertools
from pathlib import Path
from types import SimpleNamespace

import pytest

from tasklist_sync.core.engine import TaskSyncEngine
from tasklist_sync.core.models import Identity
from tasklist_sync.core.state import AppState
from tasklist_sync.stores.local_store import LocalTaskStore

from .fakes import FakeIdentityProvider, FakeTaskStore


@pytest.fixture()
def clock():
    """Strictly increasing millisecond clock so created_at never ties by accident."""
    counter = itertools.count(1_700_000_000_000, 1000)
    return lambda: next(counter)


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with AppState and bootstrap.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated from the developer's environment.
    """
    return SimpleNamespace(
        app_name="tasklist-sync-test",
        data_dir=tmp_path,
        session_path=tmp_path / "session.json",
        missing_remote_keys=["firebase_api_key", "firebase_project_id"],
        remote_configured=False,
    )


@pytest.fixture()
def local_store() -> LocalTaskStore:
    return LocalTaskStore()


@pytest.fixture()
def local_engine(local_store: LocalTaskStore, clock) -> TaskSyncEngine:
    engine = TaskSyncEngine(local_store, clock=clock)
    engine.start()
    return engine


@pytest.fixture()
def remote_store() -> FakeTaskStore:
    return FakeTaskStore()


@pytest.fixture()
def provider() -> FakeIdentityProvider:
    return FakeIdentityProvider()


@pytest.fixture()
def cloud_engine(remote_store: FakeTaskStore, provider: FakeIdentityProvider, clock) -> TaskSyncEngine:
    engine = TaskSyncEngine(remote_store, provider, clock=clock)
    engine.start()
    return engine


@pytest.fixture()
def alice() -> Identity:
    return Identity(uid="u1", email="alice@example.com")


@pytest.fixture()
def state(
    settings: SimpleNamespace, local_store: LocalTaskStore, local_engine: TaskSyncEngine
) -> AppState:
    return AppState(settings=settings, store=local_store, engine=local_engine)
