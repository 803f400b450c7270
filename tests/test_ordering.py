# tests/test_ordering.py

from __future__ import annotations

from tasklist_sync.core.ordering import count_completed, count_incomplete, sort_tasks

from .fakes import make_task


def test_open_tasks_first_then_by_creation_time() -> None:
    tasks = [
        make_task("done-old", completed=True, created_at=10),
        make_task("open-new", created_at=40),
        make_task("done-new", completed=True, created_at=30),
        make_task("open-old", created_at=20),
    ]

    ordered = [t.id for t in sort_tasks(tasks)]

    assert ordered == ["open-old", "open-new", "done-old", "done-new"]


def test_every_open_task_precedes_every_completed_task() -> None:
    tasks = [make_task(str(i), completed=(i % 3 == 0), created_at=(i * 7919) % 101) for i in range(30)]

    ordered = sort_tasks(tasks)
    flags = [t.completed for t in ordered]
    first_done = flags.index(True)

    assert all(not f for f in flags[:first_done])
    assert all(flags[first_done:])
    for group in (ordered[:first_done], ordered[first_done:]):
        stamps = [t.created_at for t in group]
        assert stamps == sorted(stamps)


def test_ties_keep_input_order() -> None:
    tasks = [make_task("x", created_at=5), make_task("y", created_at=5)]
    assert [t.id for t in sort_tasks(tasks)] == ["x", "y"]


def test_counts_partition_the_total() -> None:
    tasks = [make_task(str(i), completed=i in (1, 4)) for i in range(6)]

    assert count_incomplete(tasks) == 4
    assert count_completed(tasks) == 2
    assert count_incomplete(tasks) + count_completed(tasks) == len(tasks)
    assert count_incomplete([]) == 0
