# src/tasklist_sync/core/state.py

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from .engine import TaskSyncEngine
from .ports import IdentityProvider, TaskStore


@dataclass
class AppState:
    # Store Settings on the state for easy access in connectors.
    settings: Any

    store: TaskStore
    engine: TaskSyncEngine
    identity_provider: IdentityProvider | None = None

    @property
    def mode(self) -> str:
        return "cloud" if self.identity_provider is not None else "local"
