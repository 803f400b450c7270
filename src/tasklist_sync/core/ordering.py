# src/tasklist_sync/core/ordering.py

from __future__ import annotations

from collections.abc import Iterable

from .models import Task


def _sort_key(task: Task) -> tuple[bool, int]:
    return (bool(task.completed), int(task.created_at))


def sort_tasks(tasks: Iterable[Task]) -> list[Task]:
    """
    Display order: incomplete first, completed last; each group by ascending created_at.

    sorted() is stable, so exact created_at ties keep the backend's iteration order.
    """
    return sorted(tasks, key=_sort_key)


def count_incomplete(tasks: Iterable[Task]) -> int:
    return sum(1 for t in tasks if not t.completed)


def count_completed(tasks: Iterable[Task]) -> int:
    return sum(1 for t in tasks if t.completed)
