# src/tasklist_sync/stores/firestore_store.py

"""
Cloud Firestore task store.

- subscribe(): live query `where ownerId == uid` via Query.on_snapshot.
  The watch runs its callbacks on a library thread; snapshots are handed to the
  subscriber's event loop with loop.call_soon_threadsafe and re-checked there,
  so nothing is delivered after unsubscribe() returns.
- create/update/delete: blocking client calls pushed to a worker thread.
  They do not touch the view; the change shows up in the next snapshot.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from dataclasses import dataclass
from typing import Any

from google.api_core import exceptions as gexc
from google.cloud import firestore
from google.cloud.firestore_v1.base_query import FieldFilter

from ..core.errors import StoreError, StoreErrorKind
from ..core.models import NewTask
from ..core.ports import ErrorCallback, SnapshotCallback, Unsubscribe
from .records import patch_to_document, task_from_document, task_to_document

logger = logging.getLogger(__name__)

DEFAULT_COLLECTION = "tasks"


def store_error_from(exc: Exception, op: str) -> StoreError:
    """Map google-api-core errors onto StoreErrorKind."""
    if isinstance(exc, StoreError):
        return exc
    if isinstance(exc, (gexc.PermissionDenied, gexc.Unauthenticated)):
        kind = StoreErrorKind.PERMISSION_DENIED
    elif isinstance(exc, gexc.NotFound):
        kind = StoreErrorKind.NOT_FOUND
    elif isinstance(exc, (gexc.ServiceUnavailable, gexc.DeadlineExceeded)):
        kind = StoreErrorKind.UNAVAILABLE
    else:
        kind = StoreErrorKind.UNKNOWN
    return StoreError(kind, op, str(exc) or exc.__class__.__name__)


@dataclass(slots=True, eq=False)
class _WatchHandle:
    watch: Any = None
    closed: bool = False


class FirestoreTaskStore:
    def __init__(
            self,
            client: Any,
            *,
            collection: str = DEFAULT_COLLECTION,
    ) -> None:
        self._client = client
        self._collection_name = collection
        self._collection = client.collection(collection)
        logger.info("FirestoreTaskStore ready collection=%s", collection)

    @classmethod
    def from_settings(cls, settings) -> FirestoreTaskStore:
        """Build a client for settings.firebase_project_id (Application Default Credentials)."""
        client = firestore.Client(project=settings.firebase_project_id)
        return cls(client, collection=getattr(settings, "tasks_collection", DEFAULT_COLLECTION))

    # ---- subscription ----

    def subscribe(
            self,
            owner_id: str | None,
            on_snapshot: SnapshotCallback,
            on_error: ErrorCallback,
    ) -> Unsubscribe:
        if not owner_id:
            # No identity: empty view, no backend call.
            on_snapshot([])
            return lambda: None

        loop = asyncio.get_running_loop()
        handle = _WatchHandle()

        def _deliver(tasks) -> None:
            if handle.closed:
                return
            on_snapshot(tasks)

        def _fail(exc: Exception) -> None:
            if handle.closed:
                return
            on_error(exc)

        def _on_docs(docs, _changes, _read_time) -> None:
            # Runs on the watch thread.
            if handle.closed:
                return
            try:
                now_ms = int(time.time() * 1000)
                tasks = [task_from_document(d.id, d.to_dict(), now_ms) for d in docs]
            except Exception as e:
                logger.exception("Failed to decode task snapshot (owner=%s)", owner_id)
                with contextlib.suppress(RuntimeError):
                    loop.call_soon_threadsafe(_fail, e)
                return
            # RuntimeError: loop already closed during shutdown.
            with contextlib.suppress(RuntimeError):
                loop.call_soon_threadsafe(_deliver, tasks)

        query = self._collection.where(filter=FieldFilter("ownerId", "==", owner_id))
        try:
            handle.watch = query.on_snapshot(_on_docs)
        except Exception as e:
            raise store_error_from(e, "subscribe") from e
        logger.debug("Firestore watch started (owner=%s)", owner_id)

        def _unsubscribe() -> None:
            if handle.closed:
                return
            handle.closed = True
            watch = handle.watch
            if watch is not None:
                try:
                    watch.unsubscribe()
                except Exception:
                    logger.debug("Firestore watch unsubscribe failed.", exc_info=True)
            logger.debug("Firestore watch stopped (owner=%s)", owner_id)

        return _unsubscribe

    # ---- mutations ----

    async def create(self, task: NewTask) -> None:
        data = task_to_document(task, firestore.SERVER_TIMESTAMP)
        try:
            await asyncio.to_thread(self._collection.add, data)
        except Exception as e:
            raise store_error_from(e, "create") from e
        logger.debug("Firestore task create sent (owner=%s)", task.owner_id)

    async def update(
            self,
            task_id: str,
            *,
            title: str | None = None,
            description: str | None = None,
            due_date: str | None = None,
            completed: bool | None = None,
    ) -> None:
        data = patch_to_document(
            {
                "title": title,
                "description": description,
                "due_date": due_date,
                "completed": completed,
            },
            firestore.SERVER_TIMESTAMP,
        )
        if not data:
            return
        ref = self._collection.document(task_id)
        try:
            await asyncio.to_thread(ref.update, data)
        except Exception as e:
            raise store_error_from(e, "update") from e

    async def delete(self, task_id: str) -> None:
        ref = self._collection.document(task_id)
        try:
            await asyncio.to_thread(ref.delete)
        except Exception as e:
            raise store_error_from(e, "delete") from e
