"""Logging setup for ticketsync.

Everything is written to a rotating log file with the full format. The
console only gets a short ``LEVEL: message`` line so log records stay
readable next to the per-ticket output of ``push``.
"""

from __future__ import annotations

import logging
import os
import re
from logging.handlers import RotatingFileHandler
from pathlib import Path

ROOT_LOGGER = "ticketsync"

LOG_DIR_ENV = "TICKETSYNC_LOG_DIR"
LOG_LEVEL_ENV = "TICKETSYNC_LOG_LEVEL"

DEFAULT_LOG_DIR = "logs"
DEFAULT_LOG_FILE = "ticketsync.log"
DEFAULT_MAX_BYTES = 5 * 1024 * 1024  # 5MB
DEFAULT_BACKUP_COUNT = 3
DEFAULT_LOG_LEVEL = "WARNING"

FILE_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
CONSOLE_FORMAT = "%(levelname)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Token shapes that can show up in GitHub error bodies or request dumps
_SECRET_PATTERNS = (
    (re.compile(r"gh[pousr]_[A-Za-z0-9]{36}"), "[GITHUB_TOKEN]"),
    (re.compile(r"github_pat_[A-Za-z0-9_]{82}"), "[GITHUB_TOKEN]"),
    (re.compile(r"Bearer [A-Za-z0-9._-]+"), "Bearer [REDACTED]"),
)


def setup_logging(
    log_dir: str | Path | None = None,
    log_file: str = DEFAULT_LOG_FILE,
    max_bytes: int = DEFAULT_MAX_BYTES,
    backup_count: int = DEFAULT_BACKUP_COUNT,
    level: str | None = None,
    console: bool = True,
) -> logging.Logger:
    """Configure the ``ticketsync`` logger.

    Args:
        log_dir: Directory for the log file. Falls back to TICKETSYNC_LOG_DIR,
                 then to 'logs' in the current directory.
        log_file: Log file name.
        max_bytes: Size at which the file is rotated.
        backup_count: Number of rotated files to keep.
        level: Level name. Falls back to TICKETSYNC_LOG_LEVEL, then WARNING.
        console: Also emit short records on stderr.

    Returns:
        The configured ``ticketsync`` logger.
    """
    directory = Path(log_dir or os.environ.get(LOG_DIR_ENV, DEFAULT_LOG_DIR))
    directory.mkdir(parents=True, exist_ok=True)

    level_name = (level or os.environ.get(LOG_LEVEL_ENV, DEFAULT_LOG_LEVEL)).upper()
    log_level = logging.getLevelName(level_name)
    if not isinstance(log_level, int):
        log_level = logging.WARNING

    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(log_level)
    _reset_handlers(logger)

    file_handler = RotatingFileHandler(
        directory / log_file,
        maxBytes=max_bytes,
        backupCount=backup_count,
        encoding="utf-8",
    )
    file_handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt=DATE_FORMAT))
    logger.addHandler(file_handler)

    if console:
        console_handler = logging.StreamHandler()
        console_handler.setFormatter(logging.Formatter(CONSOLE_FORMAT))
        logger.addHandler(console_handler)

    logger.debug("Logging to %s at %s", directory / log_file, level_name)
    return logger


def _reset_handlers(logger: logging.Logger) -> None:
    """Detach and close handlers left by an earlier setup_logging call."""
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()


def get_logger(name: str) -> logging.Logger:
    """Logger for a component, e.g. ``get_logger("cli")`` -> ``ticketsync.cli``."""
    if name != ROOT_LOGGER and not name.startswith(f"{ROOT_LOGGER}."):
        name = f"{ROOT_LOGGER}.{name}"
    return logging.getLogger(name)


def sanitize_for_log(text: str) -> str:
    """Redact GitHub tokens and bearer credentials from ``text``."""
    for pattern, replacement in _SECRET_PATTERNS:
        text = pattern.sub(replacement, text)
    return text
