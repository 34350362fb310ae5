"""Centralized logging setup: colored console + optional rotating file.

Call ``setup_logging()`` once when the bot starts. Library modules only use
``logging.getLogger(__name__)`` and never configure handlers themselves.
"""

from __future__ import annotations

import atexit
import logging
import queue
import sys
from logging.handlers import QueueHandler, QueueListener, RotatingFileHandler
from pathlib import Path

from guilded_commands.log_context import ContextFilter

MAX_BYTES = 2 * 1024 * 1024
BACKUP_COUNT = 5
LOG_FILE_NAME = "guilded-commands.log"

CONSOLE_FMT = "%(asctime)s %(levelname)s %(name)s: %(ctx)s%(message)s"
FILE_FMT = "%(asctime)s [%(levelname)s] %(name)s:%(lineno)d: %(ctx)s%(message)s"
DATE_FMT = "%H:%M:%S"
FILE_DATE_FMT = "%Y-%m-%d %H:%M:%S"

logger = logging.getLogger(__name__)

_LEVEL_COLORS = {
    "DEBUG": "\x1b[36m",
    "INFO": "\x1b[32m",
    "WARNING": "\x1b[33m",
    "ERROR": "\x1b[31m",
    "CRITICAL": "\x1b[35m",
}
_RESET = "\x1b[0m"

# Third-party loggers that are too chatty at INFO.
_NOISY_LOGGERS = ("aiohttp.access", "aiohttp.client", "aiohttp.internal")

_listener: QueueListener | None = None
_atexit_registered = False


class _LevelColorFormatter(logging.Formatter):
    """Pads level names and colors them when writing to a terminal."""

    def __init__(self, fmt: str, datefmt: str | None = None, *, use_color: bool = True) -> None:
        super().__init__(fmt, datefmt)
        self._use_color = use_color

    def format(self, record: logging.LogRecord) -> str:
        levelname = record.levelname
        padded = f"{levelname:<8}"
        if self._use_color:
            padded = f"{_LEVEL_COLORS.get(levelname, '')}{padded}{_RESET}"
        record.levelname = padded
        try:
            return super().format(record)
        finally:
            record.levelname = levelname


def resolve_level(level: int | str) -> int:
    """Turn ``"DEBUG"``/``"info"``/``10`` into a logging level number."""
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(level.strip().upper())
    if not isinstance(resolved, int):
        msg = f"Unknown log level: {level!r}"
        raise ValueError(msg)
    return resolved


def shutdown_logging() -> None:
    """Flush and stop the file queue listener, if running."""
    global _listener  # noqa: PLW0603
    if _listener is not None:
        _listener.stop()
        _listener = None


def setup_logging(
    level: int | str = logging.INFO,
    *,
    verbose: bool = False,
    log_dir: Path | None = None,
) -> None:
    """Configure the root logger.

    Args:
        level: Minimum console level, as a number or a level name from config.
        verbose: Force DEBUG regardless of *level*.
        log_dir: Directory for the rotating log file. Skipped when None.
    """
    numeric = logging.DEBUG if verbose else resolve_level(level)

    shutdown_logging()
    ctx_filter = ContextFilter()

    root = logging.getLogger()
    root.setLevel(logging.DEBUG if log_dir is not None else numeric)
    root.handlers.clear()

    if sys.stderr is not None:
        console = logging.StreamHandler(sys.stderr)
        console.setLevel(numeric)
        console.addFilter(ctx_filter)
        use_color = hasattr(sys.stderr, "isatty") and sys.stderr.isatty()
        console.setFormatter(_LevelColorFormatter(CONSOLE_FMT, DATE_FMT, use_color=use_color))
        root.addHandler(console)

    if log_dir is not None:
        log_dir.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_dir / LOG_FILE_NAME,
            maxBytes=MAX_BYTES,
            backupCount=BACKUP_COUNT,
            encoding="utf-8",
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(FILE_FMT, datefmt=FILE_DATE_FMT))

        # File writes happen on the listener thread, off the event loop.
        records: queue.Queue[logging.LogRecord] = queue.Queue()
        queue_handler = QueueHandler(records)
        queue_handler.setLevel(logging.DEBUG)
        queue_handler.addFilter(ctx_filter)
        root.addHandler(queue_handler)

        global _listener, _atexit_registered  # noqa: PLW0603
        _listener = QueueListener(records, file_handler, respect_handler_level=True)
        _listener.start()
        if not _atexit_registered:
            atexit.register(shutdown_logging)
            _atexit_registered = True

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logger.info("Logging initialized (level=%s)", logging.getLevelName(numeric))
