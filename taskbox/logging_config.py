"""Logging setup shared by the TaskBox command line and services.

Every run writes to a size-capped log under ``~/.taskbox/logs``. The level
comes from the caller or ``TASKBOX_LOG_LEVEL``; ``--verbose`` runs mirror
the same records to the terminal via rich.
"""

import logging
import os
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional


LOG_DIR = Path.home() / ".taskbox" / "logs"
LOG_FILE = LOG_DIR / "taskbox.log"

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# taskbox.log rolls over at 10MB, keeping five old files
MAX_BYTES = 10 * 1024 * 1024
BACKUP_COUNT = 5


def _resolve_level(log_level: Optional[str]) -> tuple[int, str]:
    name = (log_level or os.getenv("TASKBOX_LOG_LEVEL", "INFO")).upper()
    numeric_level = getattr(logging, name, None)
    if not isinstance(numeric_level, int):
        return logging.INFO, "INFO"
    return numeric_level, name


def setup_logging(
    log_level: Optional[str] = None,
    console: bool = False
) -> None:
    """Route TaskBox log records to ``LOG_FILE`` and, optionally, the terminal.

    Safe to call more than once: handlers from a previous call are replaced,
    so records are never written twice.

    Args:
        log_level: Level name such as "DEBUG" or "WARNING". Falls back to
                  TASKBOX_LOG_LEVEL, then INFO. Unknown names mean INFO.
        console: Add a RichHandler so records also show up in the terminal.

    Example:
        >>> setup_logging(log_level="DEBUG", console=True)
    """
    numeric_level, level_name = _resolve_level(log_level)

    LOG_DIR.mkdir(parents=True, exist_ok=True)

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)
    root_logger.handlers.clear()

    file_handler = RotatingFileHandler(
        LOG_FILE,
        maxBytes=MAX_BYTES,
        backupCount=BACKUP_COUNT,
        encoding="utf-8"
    )
    file_handler.setLevel(numeric_level)
    file_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
    root_logger.addHandler(file_handler)

    if console:
        from rich.logging import RichHandler

        console_handler = RichHandler(show_path=False, rich_tracebacks=True)
        console_handler.setLevel(numeric_level)
        console_handler.setFormatter(logging.Formatter("%(message)s", datefmt=DATE_FORMAT))
        root_logger.addHandler(console_handler)

    logging.getLogger(__name__).info(
        f"TaskBox logging ready: level={level_name}, file={LOG_FILE}, console={console}"
    )


def get_logger(name: str) -> logging.Logger:
    """Return the logger for a TaskBox module; pass ``__name__``."""
    return logging.getLogger(name)
