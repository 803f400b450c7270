# src/tasklist_sync/core/models.py

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

LOCAL_OWNER_ID = "local-user"
# Owner stamped on tasks created by the local (in-memory) backend.


@dataclass(slots=True, frozen=True)
class Identity:
    """Authenticated principal returned by the identity provider."""

    uid: str
    email: str | None = None


@dataclass(slots=True, frozen=True)
class Task:
    id: str
    title: str
    description: str
    due_date: str
    completed: bool
    created_at: int  # ms since epoch, ordering only
    owner_id: str | None = None


@dataclass(slots=True, frozen=True)
class TaskDraft:
    """What the presentation layer submits for a new task (not validated yet)."""

    title: str
    description: Any = ""
    due_date: str = ""
    completed: bool = False


@dataclass(slots=True, frozen=True)
class NewTask:
    """
    Validated create request handed to a TaskStore.

    The store assigns the id (local: timestamp + random suffix, remote: document id).
    """

    title: str
    description: str
    due_date: str
    completed: bool
    owner_id: str | None
    created_at: int


class DialogMode(StrEnum):
    CREATE = "create"
    EDIT = "edit"


@dataclass(slots=True, frozen=True)
class TaskFields:
    """Values edited in the create/edit dialog."""

    id: str | None = None
    title: str = ""
    description: str = ""
    due_date: str = ""
    completed: bool = False

    @classmethod
    def from_task(cls, task: Task) -> TaskFields:
        return cls(
            id=task.id,
            title=task.title,
            description=task.description or "",
            due_date=task.due_date or "",
            completed=task.completed,
        )


@dataclass(slots=True, frozen=True)
class DialogState:
    open: bool = False
    mode: DialogMode = DialogMode.CREATE
    values: TaskFields = field(default_factory=TaskFields)


def normalize_title(raw: Any) -> str:
    return raw.strip() if isinstance(raw, str) else ""


def normalize_description(raw: Any) -> str:
    # Non-string descriptions (e.g. None from a half-filled form) become empty.
    return raw.strip() if isinstance(raw, str) else ""
