# src/tasklist_sync/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the core.

The engine depends on Protocols instead of concrete implementations.
This keeps backends (in-memory list, Firestore) and identity providers swappable
and lets tests substitute scripted fakes for the live subscription.
"""

from collections.abc import Callable
from typing import Protocol

from .models import Identity, NewTask, Task

Unsubscribe = Callable[[], None]
IdentityCallback = Callable[[Identity | None], None]
SnapshotCallback = Callable[[list[Task]], None]
ErrorCallback = Callable[[Exception], None]


class IdentityProvider(Protocol):
    """
    Sign-in/sign-up/sign-out against an external auth service.

    observe_identity():
    - calls the callback once immediately with the current identity (or None),
    - then on every sign-in/sign-out,
    - until the returned handle is called.
    """

    def observe_identity(self, callback: IdentityCallback) -> Unsubscribe: ...

    async def sign_in(self, email: str, password: str) -> Identity: ...
    async def sign_up(self, email: str, password: str) -> Identity: ...
    async def sign_out(self) -> None: ...


class TaskStore(Protocol):
    """
    Uniform task backend.

    subscribe():
    - delivers complete replacement lists (never deltas) on the event loop,
    - owner_id=None means "no owner filter" (local backend ignores the filter anyway),
    - the returned handle cancels synchronously: no callback fires after it returns.

    Mutations raise StoreError on failure. Their return value is never used for
    display; the view changes only through the subscription.
    """

    def subscribe(
            self,
            owner_id: str | None,
            on_snapshot: SnapshotCallback,
            on_error: ErrorCallback,
    ) -> Unsubscribe: ...

    async def create(self, task: NewTask) -> None: ...

    async def update(
            self,
            task_id: str,
            *,
            title: str | None = None,
            description: str | None = None,
            due_date: str | None = None,
            completed: bool | None = None,
    ) -> None: ...

    async def delete(self, task_id: str) -> None: ...
