# src/tasklist_sync/connectors/console_connector.py

from __future__ import annotations

import asyncio
import logging
from datetime import datetime

from ..cli.commands import registry as command_registry
from ..cli.commands import render_tasks
from ..core.state import AppState

logger = logging.getLogger(__name__)


def _ts_local() -> str:
    return datetime.now().astimezone().strftime("%Y-%m-%d %H:%M:%S")


def _print_ts(text: str) -> None:
    print(f"[{_ts_local()}] {text}", flush=True)


class _ViewPrinter:
    """
    Re-prints the task list whenever the rendered view actually changes.

    Snapshots arrive while the prompt is waiting (remote echo), so the console
    shows them as they land instead of on the next command.
    """

    def __init__(self, state: AppState) -> None:
        self._state = state
        self._last = ""

    def __call__(self) -> None:
        engine = self._state.engine
        if engine.auth_loading:
            return
        rendered = render_tasks(engine)
        if rendered == self._last:
            return
        self._last = rendered
        print(f"\n[{_ts_local()}]\n{rendered}", flush=True)

    def mark_shown(self) -> None:
        self._last = render_tasks(self._state.engine)


async def run_console_loop(state: AppState) -> None:
    engine = state.engine
    logger.info("Console connector started (mode=%s).", state.mode)
    _print_ts("[CONSOLE] Type a title to add a task. Use /help for commands. Use /exit to quit.")
    if engine.is_remote and engine.identity is None:
        _print_ts("[AUTH] Sign in with /signin <email> <password> or /signup <email> <password>.")

    printer = _ViewPrinter(state)
    remove_listener = engine.add_listener(printer)
    printer()

    try:
        while True:
            try:
                user_input = (await asyncio.to_thread(input, ">>> ")).strip()
            except EOFError:
                logger.info("Console EOF received, exiting.")
                break
            except KeyboardInterrupt:
                logger.info("Console KeyboardInterrupt, exiting.")
                print()
                break

            if not user_input:
                continue

            if user_input.lower() in ("/exit", "/quit"):
                logger.info("Console exit command received.")
                break

            try:
                if user_input.startswith("/"):
                    reply = await command_registry.handle(state, user_input)
                else:
                    reply = await command_registry.handle(state, f"/add {user_input}")
            except Exception:
                logger.exception("Command handler crashed.")
                reply = "Internal error while handling a command."

            if reply:
                _print_ts(reply)
            if user_input.split()[0].lower() in ("/list", "/ls"):
                printer.mark_shown()
    finally:
        remove_listener()
        logger.info("Console connector finished.")
