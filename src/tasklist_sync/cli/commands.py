# src/tasklist_sync/cli/commands.py

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import replace
from datetime import date, datetime

from ..core.engine import TaskSyncEngine
from ..core.errors import AUTH_REQUIRED_MESSAGE
from ..core.models import DialogMode, Task, TaskFields
from ..core.state import AppState

CommandHandler = Callable[[AppState, list[str]], Awaitable[str]]

logger = logging.getLogger(__name__)


class CommandRegistry:
    """Simple slash-command registry used by connectors (/help, /add, ...)."""

    def __init__(self) -> None:
        self._handlers: dict[str, CommandHandler] = {}
        self._help: dict[str, str] = {}

    def register(
        self,
        name: str,
        handler: CommandHandler,
        help_text: str,
        aliases: list[str] | None = None,
    ) -> None:
        aliases = aliases or []
        key = name.lower()
        self._handlers[key] = handler
        self._help[key] = help_text
        for alias in aliases:
            self._handlers[alias.lower()] = handler

    async def handle(self, state: AppState, line: str) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.
        """
        if not line.startswith("/"):
            return None

        parts = line[1:].split()
        if not parts:
            return "Empty command. Use /help to list available commands."

        name = parts[0].lower()
        args = parts[1:]

        handler = self._handlers.get(name)
        if not handler:
            return f"Unknown command: /{name}. Use /help to list available commands."

        logger.debug("Command /%s args=%d", name, len(args))
        return await handler(state, args)

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


# ---- rendering helpers ----

def format_due_date(value: str | None) -> str:
    """YYYY/M/D for ISO dates; anything unparseable is shown as-is."""
    if not value:
        return ""
    try:
        d: date = datetime.fromisoformat(value).date()
    except ValueError:
        return value
    return f"{d.year}/{d.month}/{d.day}"


def render_tasks(engine: TaskSyncEngine) -> str:
    tasks = engine.tasks
    if not tasks:
        return "No tasks yet. Type a title to add one."

    lines = [f"Tasks: {engine.incomplete_count} open / {engine.total_count} total"]
    for i, task in enumerate(tasks, start=1):
        mark = "x" if task.completed else " "
        line = f"{i:>3}. [{mark}] {task.title}"
        due = format_due_date(task.due_date)
        if due:
            line += f"  (due {due})"
        lines.append(line)
        if task.description:
            lines.append(f"       {task.description}")
    return "\n".join(lines)


def resolve_task(engine: TaskSyncEngine, ref: str) -> Task | None:
    """Find a task by 1-based position in the rendered list, exact id or unique id prefix."""
    tasks = engine.tasks
    if ref.isdigit():
        pos = int(ref)
        return tasks[pos - 1] if 1 <= pos <= len(tasks) else None

    exact = engine.get_task(ref)
    if exact is not None:
        return exact
    matches = [t for t in tasks if t.id.startswith(ref)]
    return matches[0] if len(matches) == 1 else None


def _split_fields(args: list[str]) -> list[str]:
    return [p.strip() for p in " ".join(args).split("|")]


def _needs_sign_in(engine: TaskSyncEngine) -> bool:
    return engine.is_remote and engine.identity is None


def _rejected(engine: TaskSyncEngine, fallback: str) -> str:
    if _needs_sign_in(engine):
        return engine.auth_error or AUTH_REQUIRED_MESSAGE
    return fallback


# ---- handlers ----

async def cmd_help(state: AppState, args: list[str]) -> str:
    return registry.build_help()


async def cmd_list(state: AppState, args: list[str]) -> str:
    return render_tasks(state.engine)


async def cmd_add(state: AppState, args: list[str]) -> str:
    engine = state.engine
    if await engine.add_task(" ".join(args)):
        return "Task added." if not engine.is_remote else "Task sent; it will appear once saved."
    return _rejected(engine, "Title is required.")


async def cmd_new(state: AppState, args: list[str]) -> str:
    """
    /new <title> | <description> | <due date>
    """
    engine = state.engine
    if not engine.open_create_dialog():
        return _rejected(engine, "Cannot open the task dialog.")

    parts = _split_fields(args)
    fields = TaskFields(
        title=parts[0],
        description=parts[1] if len(parts) > 1 else "",
        due_date=parts[2] if len(parts) > 2 else "",
    )
    if await engine.submit_dialog(fields, DialogMode.CREATE):
        return "Task added."
    engine.close_dialog()
    return _rejected(engine, "Title is required.")


async def cmd_edit(state: AppState, args: list[str]) -> str:
    """
    /edit <n> <title> | <description> | <due date>
    Omitted trailing parts keep their current value.
    """
    engine = state.engine
    if len(args) < 2:
        return "Usage: /edit <n> <title> | <description> | <due date>"
    if _needs_sign_in(engine):
        engine.open_edit_dialog(args[0])
        return _rejected(engine, "")

    task = resolve_task(engine, args[0])
    if task is None:
        return f"No task {args[0]}."
    if not engine.open_edit_dialog(task.id):
        return _rejected(engine, "Cannot open the task dialog.")

    parts = _split_fields(args[1:])
    fields = replace(engine.dialog.values, title=parts[0])
    if len(parts) > 1:
        fields = replace(fields, description=parts[1])
    if len(parts) > 2:
        fields = replace(fields, due_date=parts[2])

    if await engine.submit_dialog(fields, DialogMode.EDIT):
        return "Task updated."
    engine.close_dialog()
    return _rejected(engine, "Title is required.")


async def cmd_toggle(state: AppState, args: list[str]) -> str:
    engine = state.engine
    if not args:
        return "Usage: /toggle <n>"
    if _needs_sign_in(engine):
        await engine.toggle_task(args[0])
        return _rejected(engine, "")
    task = resolve_task(engine, args[0])
    if task is None:
        return f"No task {args[0]}."
    await engine.toggle_task(task.id)
    return f"Toggled: {task.title}"


async def cmd_delete(state: AppState, args: list[str]) -> str:
    engine = state.engine
    if not args:
        return "Usage: /rm <n>"
    if _needs_sign_in(engine):
        await engine.delete_task(args[0])
        return _rejected(engine, "")
    task = resolve_task(engine, args[0])
    if task is None:
        return f"No task {args[0]}."
    await engine.delete_task(task.id)
    return f"Deleted: {task.title}"


async def _auth_command(state: AppState, args: list[str], *, sign_up: bool) -> str:
    engine = state.engine
    if len(args) != 2:
        return f"Usage: /{'signup' if sign_up else 'signin'} <email> <password>"
    email, password = args
    if not engine.is_remote:
        await engine.sign_in(email, password)
        return engine.auth_error or "Authentication is not available in local mode."

    ok = await (engine.sign_up(email, password) if sign_up else engine.sign_in(email, password))
    if ok:
        who = engine.identity.email if engine.identity is not None else email
        return f"Signed in as {who}."
    return engine.auth_error or "Password must be at least 6 characters and email must not be empty."


async def cmd_signin(state: AppState, args: list[str]) -> str:
    return await _auth_command(state, args, sign_up=False)


async def cmd_signup(state: AppState, args: list[str]) -> str:
    return await _auth_command(state, args, sign_up=True)


async def cmd_signout(state: AppState, args: list[str]) -> str:
    engine = state.engine
    if not engine.is_remote:
        return "Nothing to sign out of in local mode."
    await engine.sign_out()
    return "Signed out." if engine.identity is None else "Sign-out failed (see log)."


async def cmd_status(state: AppState, args: list[str]) -> str:
    engine = state.engine
    ident = engine.identity
    who = (ident.email or ident.uid) if ident is not None else "-"
    return (
        "Status:\n"
        f"  Mode: {state.mode}\n"
        f"  Auth: {engine.auth_state.value} (user: {who})\n"
        f"  Tasks: {engine.incomplete_count} open, {engine.completed_count} done, "
        f"{engine.total_count} total"
    )


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("list", cmd_list, help_text="Show tasks (open first).", aliases=["ls"])
registry.register("add", cmd_add, help_text="Add a task: /add <title>.")
registry.register(
    "new", cmd_new, help_text="Add with details: /new <title> | <description> | <due YYYY-MM-DD>."
)
registry.register(
    "edit", cmd_edit, help_text="Edit a task: /edit <n> <title> | <description> | <due>."
)
registry.register("toggle", cmd_toggle, help_text="Mark done / not done: /toggle <n>.", aliases=["done"])
registry.register("rm", cmd_delete, help_text="Delete a task: /rm <n>.", aliases=["del", "delete"])
registry.register("signin", cmd_signin, help_text="Sign in: /signin <email> <password>.", aliases=["login"])
registry.register("signup", cmd_signup, help_text="Create an account: /signup <email> <password>.")
registry.register("signout", cmd_signout, help_text="Sign out.", aliases=["logout"])
registry.register("status", cmd_status, help_text="Show mode, identity and counts.")
