# src/tasklist_sync/stores/records.py

"""
Firestore record shape (one document per task):

    {title, description, dueDate, completed, ownerId,
     createdAt: server timestamp, createdAtMillis: client ms}

Ordering uses createdAtMillis (client clock). The server createdAt is only a
fallback for documents written without createdAtMillis; when both exist the
client value wins.
"""

from __future__ import annotations

import math
import time
from collections.abc import Mapping
from datetime import datetime
from typing import Any

from ..core.models import NewTask, Task

# camelCase document fields for the patchable Task attributes.
FIELD_NAMES: dict[str, str] = {
    "title": "title",
    "description": "description",
    "due_date": "dueDate",
    "completed": "completed",
}


def _str_field(data: Mapping[str, Any], key: str) -> str:
    val = data.get(key)
    return val if isinstance(val, str) else ""


def resolve_created_at(data: Mapping[str, Any], now_ms: int | None = None) -> int:
    """createdAtMillis if a finite number, else the server timestamp in ms, else now."""
    millis = data.get("createdAtMillis")
    if isinstance(millis, (int, float)) and not isinstance(millis, bool) and math.isfinite(millis):
        return int(millis)

    server_ts = data.get("createdAt")
    if isinstance(server_ts, datetime):
        return int(server_ts.timestamp() * 1000)

    return int(now_ms if now_ms is not None else time.time() * 1000)


def task_from_document(doc_id: str, data: Mapping[str, Any] | None, now_ms: int | None = None) -> Task:
    data = data or {}
    owner = data.get("ownerId")
    return Task(
        id=str(doc_id),
        title=_str_field(data, "title"),
        description=_str_field(data, "description"),
        due_date=_str_field(data, "dueDate"),
        completed=bool(data.get("completed")),
        created_at=resolve_created_at(data, now_ms),
        owner_id=owner if isinstance(owner, str) else None,
    )


def task_to_document(task: NewTask, server_timestamp: Any) -> dict[str, Any]:
    return {
        "title": task.title,
        "description": task.description,
        "dueDate": task.due_date,
        "completed": task.completed,
        "ownerId": task.owner_id,
        "createdAt": server_timestamp,
        "createdAtMillis": task.created_at,
    }


def patch_to_document(changes: Mapping[str, Any], server_timestamp: Any) -> dict[str, Any]:
    """Translate a Task-attribute patch into document fields (None values are skipped)."""
    out: dict[str, Any] = {}
    for attr, value in changes.items():
        if value is None:
            continue
        try:
            out[FIELD_NAMES[attr]] = value
        except KeyError:
            raise ValueError(f"field {attr!r} is not updatable") from None
    if out:
        out["updatedAt"] = server_timestamp
    return out
