# tests/test_commands.py

from __future__ import annotations

import pytest

from tasklist_sync.cli.commands import CommandRegistry, format_due_date, registry
from tasklist_sync.core.errors import AUTH_REQUIRED_MESSAGE, AUTH_UNAVAILABLE_MESSAGE
from tasklist_sync.core.state import AppState


@pytest.mark.asyncio
async def test_command_registry_routes_by_name_and_alias(state) -> None:
    reg = CommandRegistry()
    called: list[list[str]] = []

    async def h(state, args):
        called.append(args)
        return "ok"

    reg.register("Echo", h, "echo", aliases=["e"])

    assert await reg.handle(state, "/echo x y") == "ok"
    assert await reg.handle(state, "/E z") == "ok"
    assert called == [["x", "y"], ["z"]]
    assert "/echo - echo" in reg.build_help()


@pytest.mark.asyncio
async def test_command_registry_unknown_and_non_command(state) -> None:
    reg = CommandRegistry()
    assert await reg.handle(state, "hello") is None
    assert "Unknown command" in (await reg.handle(state, "/nope") or "")
    assert "Empty command" in (await reg.handle(state, "/") or "")


@pytest.mark.asyncio
async def test_add_list_toggle_and_delete(state) -> None:
    assert await registry.handle(state, "/add Buy milk") == "Task added."
    assert await registry.handle(state, "/add   ") == "Title is required."

    listing = await registry.handle(state, "/ls")
    assert "1. [ ] Buy milk" in listing
    assert "1 open / 1 total" in listing

    assert await registry.handle(state, "/done 1") == "Toggled: Buy milk"
    assert state.engine.tasks[0].completed is True
    assert await registry.handle(state, "/toggle 7") == "No task 7."

    assert await registry.handle(state, "/rm 1") == "Deleted: Buy milk"
    assert state.engine.tasks == ()
    assert "No tasks yet" in await registry.handle(state, "/list")


@pytest.mark.asyncio
async def test_new_and_edit_with_details(state) -> None:
    reply = await registry.handle(state, "/new Plan trip | book hotel | 2024-03-05")
    assert reply == "Task added."

    listing = await registry.handle(state, "/list")
    assert "Plan trip  (due 2024/3/5)" in listing
    assert "book hotel" in listing

    assert await registry.handle(state, "/edit 1 Plan holiday") == "Task updated."
    (task,) = state.engine.tasks
    assert task.title == "Plan holiday"
    assert task.description == "book hotel"
    assert task.due_date == "2024-03-05"
    assert state.engine.dialog.open is False


@pytest.mark.asyncio
async def test_auth_commands_in_local_mode(state) -> None:
    assert await registry.handle(state, "/signin a@b.c secret1") == AUTH_UNAVAILABLE_MESSAGE
    assert await registry.handle(state, "/signout") == "Nothing to sign out of in local mode."
    assert "Mode: local" in await registry.handle(state, "/status")


@pytest.mark.asyncio
async def test_cloud_commands_ask_for_sign_in(settings, remote_store, provider, cloud_engine) -> None:
    state = AppState(settings=settings, store=remote_store, engine=cloud_engine, identity_provider=provider)

    assert await registry.handle(state, "/add Buy milk") == AUTH_REQUIRED_MESSAGE
    assert remote_store.mutations == []
    assert await registry.handle(state, "/toggle 1") == AUTH_REQUIRED_MESSAGE
    assert await registry.handle(state, "/rm 1") == AUTH_REQUIRED_MESSAGE
    assert await registry.handle(state, "/edit 1 New title") == AUTH_REQUIRED_MESSAGE
    assert remote_store.mutations == []

    assert await registry.handle(state, "/signin alice@example.com secret1") == "Signed in as alice@example.com."
    assert "Mode: cloud" in await registry.handle(state, "/status")
    assert await registry.handle(state, "/signout") == "Signed out."


def test_format_due_date() -> None:
    assert format_due_date("2024-01-09") == "2024/1/9"
    assert format_due_date("next week") == "next week"
    assert format_due_date("") == ""
