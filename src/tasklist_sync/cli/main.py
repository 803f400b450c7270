# src/tasklist_sync/cli/main.py

"""
CLI entrypoint.

Initializes logging, builds AppState (backend chosen once from settings),
then runs the console REPL on a single asyncio event loop.
"""

from __future__ import annotations

import asyncio
import logging

from ..config import get_settings
from ..connectors.console_connector import run_console_loop
from ..logging_setup import setup_logging
from .bootstrap import create_initial_state, shutdown_state, start_state

logger = logging.getLogger(__name__)


async def _run(state) -> None:
    await start_state(state)
    try:
        await run_console_loop(state)
    finally:
        await shutdown_state(state)


def main() -> None:
    settings = get_settings()

    level_name = str(getattr(settings, "log_level", "INFO")).upper()
    console_level = getattr(logging, level_name, logging.INFO)
    log_file = setup_logging(
        log_dir=settings.data_dir,
        log_name=settings.app_name,
        console_level=console_level,
    )

    logger.info("Starting %s (log file: %s)", settings.app_name, log_file)

    state = create_initial_state(settings=settings)
    try:
        asyncio.run(_run(state))
    except KeyboardInterrupt:
        logger.info("Interrupted.")
    logger.info("Bye.")


if __name__ == "__main__":
    main()
