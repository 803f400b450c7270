# src/tasklist_sync/logging_setup.py

from __future__ import annotations

import logging
import sys
from pathlib import Path

APP_LOGGER = "tasklist_sync"

# Backend client libraries: their warnings matter (credentials, quota, retries).
_BACKEND_PREFIXES = ("google", "grpc", "httpx", "httpcore", "urllib3")


class _ConsoleNoiseFilter(logging.Filter):
    """
    Keep the console readable while the prompt is active.

    tasklist_sync records pass (the handler level still applies), backend client
    libraries only from WARNING, everything else only from ERROR.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        name = record.name
        if name == APP_LOGGER or name.startswith(APP_LOGGER + "."):
            return True
        if name.startswith(_BACKEND_PREFIXES):
            return record.levelno >= logging.WARNING
        return record.levelno >= logging.ERROR


def setup_logging(
    *,
    log_dir: str | Path = ".local/tasklist-sync",
    log_name: str = "tasklist-sync",
    console_level: int = logging.INFO,
    file_level: int = logging.DEBUG,
) -> Path:
    """
    Console handler (filtered) on stderr plus a full log file in log_dir.

    Call once at startup, before the first record is emitted. Returns the log file path.
    """
    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / f"{log_name}.log"

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    for h in list(root.handlers):
        root.removeHandler(h)

    fmt = logging.Formatter(
        fmt="%(asctime)s.%(msecs)03d %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(console_level)
    console.setFormatter(fmt)
    console.addFilter(_ConsoleNoiseFilter())
    root.addHandler(console)

    file_handler = logging.FileHandler(str(log_file), encoding="utf-8")
    file_handler.setLevel(file_level)
    file_handler.setFormatter(fmt)
    root.addHandler(file_handler)

    # warnings.warn(...) -> 'py.warnings' (ERROR-only on the console via the filter).
    logging.captureWarnings(True)

    # Firestore's watch thread reconnects often and logs each one at INFO/DEBUG.
    logging.getLogger("google.cloud.firestore_v1.watch").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.INFO)

    return log_file
