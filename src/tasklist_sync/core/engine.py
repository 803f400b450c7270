# src/tasklist_sync/core/engine.py

"""
Task synchronization engine.

TaskSyncEngine owns the one in-memory task view of a session and is the only
thing that writes to it. Connectors (console, UI) read derived state from it
and trigger mutations through its methods.

Key invariants:
- the view is always the last applied snapshot, replaced wholesale (never patched),
- mutations go to the TaskStore and come back through the subscription;
  the engine never edits the view optimistically (the local store notifies
  synchronously, which is what makes local mode feel immediate),
- in cloud mode every visible task has owner_id == identity.uid, even when a
  snapshot from a previous scope races an identity change,
- counts are recomputed from the view on every read.

All methods must be called from the event loop thread; stores are responsible
for delivering snapshots on that thread.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from enum import StrEnum

from .errors import (
    AUTH_UNAVAILABLE_MESSAGE,
    AuthError,
    AuthErrorKind,
    AuthRequired,
    ValidationError,
    auth_error_message,
)
from .models import (
    DialogMode,
    DialogState,
    Identity,
    NewTask,
    Task,
    TaskDraft,
    TaskFields,
    normalize_description,
    normalize_title,
)
from .ordering import count_completed, count_incomplete, sort_tasks
from .ports import IdentityProvider, TaskStore, Unsubscribe

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6


class AuthState(StrEnum):
    DISABLED = "disabled"  # local mode, no gate
    LOADING = "loading"  # waiting for the provider's first identity emission
    SIGNED_OUT = "signed_out"
    AUTHENTICATING = "authenticating"
    SIGNED_IN = "signed_in"


class AuthMode(StrEnum):
    SIGN_IN = "sign_in"
    SIGN_UP = "sign_up"


def is_auth_form_valid(email: str, password: str) -> bool:
    return bool((email or "").strip()) and len(password or "") >= MIN_PASSWORD_LENGTH


def _now_ms() -> int:
    return int(time.time() * 1000)


@dataclass(slots=True, eq=False)
class _Scope:
    """One subscription lifetime. Snapshots carry their scope; stale scopes are ignored."""

    owner_id: str | None
    unsubscribe: Unsubscribe | None = None
    closed: bool = False


class TaskSyncEngine:
    def __init__(
            self,
            store: TaskStore,
            identity_provider: IdentityProvider | None = None,
            *,
            clock: Callable[[], int] | None = None,
    ) -> None:
        self._store = store
        self._identity_provider = identity_provider
        self._clock = clock or _now_ms

        self._tasks: list[Task] = []
        self._scope: _Scope | None = None

        self._identity: Identity | None = None
        self._identity_unsub: Unsubscribe | None = None
        self._auth_loading = identity_provider is not None
        self._auth_submitting = False
        self._auth_error: str | None = None
        self._auth_email = ""
        self._auth_mode = AuthMode.SIGN_IN

        self._dialog = DialogState()

        self._listeners: dict[int, Callable[[], None]] = {}
        self._next_listener_id = 0
        self._started = False

    # ---- lifecycle ----

    def start(self) -> None:
        """Attach to the identity provider (cloud) or subscribe straight away (local)."""
        if self._started:
            return
        self._started = True

        if self._identity_provider is None:
            logger.info("Engine started in local mode.")
            self._open_scope(None)
            self._notify()
            return

        logger.info("Engine started in cloud mode; waiting for identity.")
        self._auth_loading = True
        self._identity_unsub = self._identity_provider.observe_identity(self._on_identity_changed)

    def close(self) -> None:
        if self._identity_unsub is not None:
            try:
                self._identity_unsub()
            except Exception:
                logger.debug("Identity unsubscribe failed.", exc_info=True)
            self._identity_unsub = None
        self._close_scope()
        self._started = False

    def add_listener(self, callback: Callable[[], None]) -> Unsubscribe:
        """Register a change callback (called after every state change)."""
        key = self._next_listener_id
        self._next_listener_id += 1
        self._listeners[key] = callback

        def _remove() -> None:
            self._listeners.pop(key, None)

        return _remove

    def _notify(self) -> None:
        for cb in list(self._listeners.values()):
            try:
                cb()
            except Exception:
                logger.exception("Engine listener failed.")

    # ---- subscription scope ----

    def _open_scope(self, owner_id: str | None) -> None:
        scope = _Scope(owner_id=owner_id)
        self._scope = scope
        logger.info("Subscribing to tasks (owner=%s)", owner_id or "-")
        try:
            scope.unsubscribe = self._store.subscribe(
                owner_id,
                lambda tasks: self._apply_snapshot(scope, tasks),
                lambda exc: self._on_snapshot_error(scope, exc),
            )
        except Exception:
            logger.exception("Failed to subscribe to tasks (owner=%s)", owner_id)

    def _close_scope(self) -> None:
        scope = self._scope
        if scope is None:
            return
        self._scope = None
        scope.closed = True
        if scope.unsubscribe is not None:
            try:
                scope.unsubscribe()
            except Exception:
                logger.exception("Failed to cancel task subscription (owner=%s)", scope.owner_id)
        logger.info("Task subscription closed (owner=%s)", scope.owner_id or "-")

    def _apply_snapshot(self, scope: _Scope, tasks: list[Task]) -> None:
        if scope.closed or scope is not self._scope:
            logger.debug("Dropping snapshot from a closed scope (owner=%s)", scope.owner_id)
            return

        view: dict[str, Task] = {}
        for task in tasks:
            if scope.owner_id is not None and task.owner_id != scope.owner_id:
                logger.warning(
                    "Dropping task %s: owner %s outside scope %s",
                    task.id,
                    task.owner_id,
                    scope.owner_id,
                )
                continue
            view[task.id] = task

        self._tasks = list(view.values())
        logger.debug("Snapshot applied: %d tasks", len(self._tasks))
        self._notify()

    def _on_snapshot_error(self, scope: _Scope, exc: Exception) -> None:
        if scope.closed or scope is not self._scope:
            return
        logger.error("Task subscription error (owner=%s): %r", scope.owner_id, exc)

    def _on_identity_changed(self, identity: Identity | None) -> None:
        self._identity = identity
        self._auth_loading = False
        self._auth_error = None

        uid = identity.uid if identity is not None else None
        if uid is not None and self._scope is not None and self._scope.owner_id == uid:
            self._notify()
            return

        # Old scope must be gone before the new one can deliver anything.
        self._close_scope()
        self._tasks = []
        if uid is not None:
            logger.info("Signed in as %s", identity.email or uid)
            self._open_scope(uid)
        else:
            logger.info("No identity; task view cleared.")
        self._notify()

    # ---- derived state ----

    @property
    def tasks(self) -> tuple[Task, ...]:
        return tuple(sort_tasks(self._tasks))

    @property
    def incomplete_count(self) -> int:
        return count_incomplete(self._tasks)

    @property
    def completed_count(self) -> int:
        return count_completed(self._tasks)

    @property
    def total_count(self) -> int:
        return len(self._tasks)

    @property
    def identity(self) -> Identity | None:
        return self._identity

    @property
    def is_remote(self) -> bool:
        return self._identity_provider is not None

    @property
    def auth_loading(self) -> bool:
        return self._auth_loading

    @property
    def auth_pending(self) -> bool:
        return self._auth_submitting

    @property
    def auth_error(self) -> str | None:
        return self._auth_error

    @property
    def auth_email(self) -> str:
        """Email of the last failed attempt, kept for retry (the password never is)."""
        return self._auth_email

    @property
    def auth_mode(self) -> AuthMode:
        return self._auth_mode

    @property
    def auth_state(self) -> AuthState:
        if self._identity_provider is None:
            return AuthState.DISABLED
        if self._auth_loading:
            return AuthState.LOADING
        if self._auth_submitting:
            return AuthState.AUTHENTICATING
        if self._identity is not None:
            return AuthState.SIGNED_IN
        return AuthState.SIGNED_OUT

    @property
    def dialog(self) -> DialogState:
        return self._dialog

    def get_task(self, task_id: str | None) -> Task | None:
        if not task_id:
            return None
        for task in self._tasks:
            if task.id == task_id:
                return task
        return None

    # ---- preconditions ----

    def _require_identity(self) -> Identity | None:
        """
        Cloud mode: the signed-in identity, or AuthRequired.
        Local mode: None (there is no gate).
        """
        if self._identity_provider is None:
            return None
        if self._identity is None:
            raise AuthRequired()
        return self._identity

    def _check_gate(self) -> bool:
        try:
            self._require_identity()
        except AuthRequired as e:
            self._report_auth_required(e)
            return False
        return True

    def _report_auth_required(self, err: AuthRequired) -> None:
        logger.info("Rejected task operation: not signed in.")
        self._auth_error = str(err)
        self._notify()

    @staticmethod
    def _validated_title(raw: str) -> str:
        title = normalize_title(raw)
        if not title:
            raise ValidationError("title is required")
        return title

    # ---- task mutations ----

    async def add_task(self, title: str) -> bool:
        if not self._check_gate():
            return False
        return await self._create(TaskDraft(title=title))

    async def _create(self, draft: TaskDraft) -> bool:
        try:
            title = self._validated_title(draft.title)
            owner = self._require_identity()
        except ValidationError:
            logger.debug("Rejected task create: empty title.")
            return False
        except AuthRequired as e:
            self._report_auth_required(e)
            return False

        new_task = NewTask(
            title=title,
            description=normalize_description(draft.description),
            due_date=draft.due_date or "",
            completed=bool(draft.completed),
            owner_id=owner.uid if owner is not None else None,
            created_at=self._clock(),
        )

        try:
            await self._store.create(new_task)
        except Exception:
            logger.exception("Failed to add task %r", title)
            return False
        return True

    async def toggle_task(self, task_id: str) -> None:
        if not self._check_gate():
            return
        # Read what we need before the first await; a newer snapshot may land meanwhile.
        task = self.get_task(task_id)
        if task is None:
            logger.debug("Toggle ignored: unknown task %s", task_id)
            return

        try:
            await self._store.update(task.id, completed=not task.completed)
        except Exception:
            logger.exception("Failed to toggle task %s", task.id)

    async def delete_task(self, task_id: str) -> None:
        if not task_id:
            return
        if not self._check_gate():
            return

        try:
            await self._store.delete(task_id)
        except Exception:
            logger.exception("Failed to delete task %s", task_id)

    async def submit_dialog(
            self,
            fields: TaskFields | None = None,
            mode: DialogMode | str | None = None,
    ) -> bool:
        """
        Create or edit from dialog values (defaults: the open dialog's values/mode).
        Closes the dialog on success.
        """
        if fields is None:
            fields = self._dialog.values
        mode = DialogMode(mode) if mode is not None else self._dialog.mode

        if mode is DialogMode.CREATE:
            ok = await self._create(
                TaskDraft(
                    title=fields.title,
                    description=fields.description,
                    due_date=fields.due_date,
                    completed=fields.completed,
                )
            )
            if ok:
                self.close_dialog()
            return ok

        title = normalize_title(fields.title)
        if not title or not fields.id:
            logger.debug("Rejected task edit: empty title or missing id.")
            return False
        if not self._check_gate():
            return False

        try:
            await self._store.update(
                fields.id,
                title=title,
                description=normalize_description(fields.description),
                due_date=fields.due_date or "",
                completed=bool(fields.completed),
            )
        except Exception:
            logger.exception("Failed to update task %s", fields.id)
            return False

        self.close_dialog()
        return True

    async def delete_from_dialog(self) -> None:
        task_id = self._dialog.values.id
        if not task_id:
            return
        await self.delete_task(task_id)
        self.close_dialog()

    # ---- dialog helpers ----

    def open_create_dialog(self) -> bool:
        if not self._check_gate():
            return False
        self._dialog = DialogState(open=True, mode=DialogMode.CREATE, values=TaskFields())
        self._notify()
        return True

    def open_edit_dialog(self, task_id: str) -> bool:
        if not self._check_gate():
            return False
        task = self.get_task(task_id)
        if task is None:
            return False
        self._dialog = DialogState(open=True, mode=DialogMode.EDIT, values=TaskFields.from_task(task))
        self._notify()
        return True

    def close_dialog(self) -> None:
        self._dialog = DialogState()
        self._notify()

    # ---- authentication ----

    def toggle_auth_mode(self) -> None:
        self._auth_mode = AuthMode.SIGN_UP if self._auth_mode is AuthMode.SIGN_IN else AuthMode.SIGN_IN
        self._auth_error = None
        self._notify()

    def dismiss_auth_error(self) -> None:
        self._auth_error = None
        self._notify()

    async def submit_auth(self, email: str, password: str) -> bool:
        return await self._authenticate(self._auth_mode, email, password)

    async def sign_in(self, email: str, password: str) -> bool:
        return await self._authenticate(AuthMode.SIGN_IN, email, password)

    async def sign_up(self, email: str, password: str) -> bool:
        return await self._authenticate(AuthMode.SIGN_UP, email, password)

    async def _authenticate(self, mode: AuthMode, email: str, password: str) -> bool:
        provider = self._identity_provider
        if provider is None:
            self._auth_error = AUTH_UNAVAILABLE_MESSAGE
            self._notify()
            return False
        if not is_auth_form_valid(email, password):
            logger.debug("Auth form rejected before submit (mode=%s).", mode.value)
            return False
        if self._auth_submitting:
            return False

        email = email.strip()
        self._auth_submitting = True
        self._auth_error = None
        self._notify()

        try:
            if mode is AuthMode.SIGN_UP:
                await provider.sign_up(email, password)
            else:
                await provider.sign_in(email, password)
        except AuthError as e:
            logger.info("Auth %s failed: %s", mode.value, e.kind.value)
            self._auth_error = auth_error_message(e.kind)
            self._auth_email = email
            return False
        except Exception:
            logger.exception("Auth %s crashed.", mode.value)
            self._auth_error = auth_error_message(AuthErrorKind.UNKNOWN)
            self._auth_email = email
            return False
        finally:
            self._auth_submitting = False
            self._notify()

        self._auth_email = ""
        return True

    async def sign_out(self) -> None:
        provider = self._identity_provider
        if provider is None:
            return
        try:
            await provider.sign_out()
        except Exception:
            logger.exception("Failed to sign out.")
            return
        # Tear down now; the provider's own notification becomes a no-op.
        if self._identity is not None or self._scope is not None:
            self._on_identity_changed(None)
