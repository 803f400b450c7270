# src/tasklist_sync/stores/local_store.py

from __future__ import annotations

import logging
import secrets
from dataclasses import replace

from ..core.errors import StoreError, StoreErrorKind
from ..core.models import LOCAL_OWNER_ID, NewTask, Task
from ..core.ports import ErrorCallback, SnapshotCallback, Unsubscribe

logger = logging.getLogger(__name__)


class LocalTaskStore:
    """
    In-memory task store used when no remote backend is configured.

    Every mutation is applied and pushed to subscribers before the coroutine
    returns (there is no await inside), so callers observe the new snapshot
    synchronously. The owner filter is ignored: local mode has a single user.
    """

    def __init__(self, tasks: list[Task] | None = None) -> None:
        self._tasks: list[Task] = list(tasks or [])
        self._subscribers: dict[int, SnapshotCallback] = {}
        self._next_sub_id = 0

    # ---- subscription ----

    def subscribe(
            self,
            owner_id: str | None,
            on_snapshot: SnapshotCallback,
            on_error: ErrorCallback,
    ) -> Unsubscribe:
        sub_id = self._next_sub_id
        self._next_sub_id += 1
        self._subscribers[sub_id] = on_snapshot
        logger.debug("Local subscriber %s attached (owner filter %s ignored)", sub_id, owner_id)

        on_snapshot(list(self._tasks))

        def _unsubscribe() -> None:
            self._subscribers.pop(sub_id, None)

        return _unsubscribe

    def _publish(self) -> None:
        snapshot = list(self._tasks)
        for cb in list(self._subscribers.values()):
            cb(list(snapshot))

    # ---- helpers ----

    def _new_id(self, created_at: int) -> str:
        existing = {t.id for t in self._tasks}
        while True:
            candidate = f"{created_at}-{secrets.token_hex(6)}"
            if candidate not in existing:
                return candidate

    def _index_of(self, task_id: str, op: str) -> int:
        for i, task in enumerate(self._tasks):
            if task.id == task_id:
                return i
        raise StoreError(StoreErrorKind.NOT_FOUND, op, f"task {task_id}")

    @property
    def tasks(self) -> list[Task]:
        return list(self._tasks)

    # ---- mutations ----

    async def create(self, task: NewTask) -> None:
        created = Task(
            id=self._new_id(task.created_at),
            title=task.title,
            description=task.description,
            due_date=task.due_date,
            completed=task.completed,
            created_at=task.created_at,
            owner_id=task.owner_id or LOCAL_OWNER_ID,
        )
        self._tasks.append(created)
        logger.debug("Local task added id=%s", created.id)
        self._publish()

    async def update(
            self,
            task_id: str,
            *,
            title: str | None = None,
            description: str | None = None,
            due_date: str | None = None,
            completed: bool | None = None,
    ) -> None:
        i = self._index_of(task_id, "update")
        t = self._tasks[i]
        self._tasks[i] = replace(
            t,
            title=t.title if title is None else title,
            description=t.description if description is None else description,
            due_date=t.due_date if due_date is None else due_date,
            completed=t.completed if completed is None else completed,
        )
        self._publish()

    async def delete(self, task_id: str) -> None:
        i = self._index_of(task_id, "delete")
        del self._tasks[i]
        logger.debug("Local task deleted id=%s", task_id)
        self._publish()
