"""
logger.py
---------
Logging for pgmigrate runs.

Every module logs through a child of the ``pgmigrate`` logger obtained with
``get_logger(__name__)``. The console shows progress and per-table failures
at LOG_LEVEL; when LOG_FILE is set, the file additionally keeps DEBUG
detail: the redacted psql/bcp/sqlcmd command lines, staged-file conversions
and every rendered script path. ``--log-level`` on the command line moves
the console threshold only, so the file stays complete.
"""
from __future__ import annotations

import logging
import sys
from pathlib import Path

from config import CONFIG, get_log_level

ROOT_LOGGER_NAME = "pgmigrate"

_CONSOLE_FORMAT = "%(asctime)s %(levelname)-8s %(message)s"
_FILE_FORMAT = "%(asctime)s [%(levelname)s] %(name)s (%(threadName)s): %(message)s"
_DATE_FORMAT = "%Y-%m-%dT%H:%M:%S"


class _ConsoleHandler(logging.StreamHandler):
    """stderr handler; a distinct type so :func:`set_level` can find it."""


def _console_handler(level: int) -> logging.Handler:
    handler = _ConsoleHandler(sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(fmt=_CONSOLE_FORMAT, datefmt=_DATE_FORMAT))
    return handler


def _file_handler(path: Path) -> logging.Handler:
    path.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(logging.Formatter(fmt=_FILE_FORMAT, datefmt=_DATE_FORMAT))
    return handler


def _configure() -> logging.Logger:
    root = logging.getLogger(ROOT_LOGGER_NAME)
    if root.handlers:
        return root
    # Records reach the file handler at DEBUG even when the console is quieter
    root.setLevel(logging.DEBUG if CONFIG.migration.log_file else get_log_level())
    root.propagate = False
    root.addHandler(_console_handler(get_log_level()))

    if CONFIG.migration.log_file:
        try:
            root.addHandler(_file_handler(Path(CONFIG.migration.log_file)))
        except OSError as exc:
            root.warning("Could not open log file '%s': %s", CONFIG.migration.log_file, exc)
    return root


_configure()


def get_logger(name: str) -> logging.Logger:
    """Child logger under ``pgmigrate`` for the module called *name*."""
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")


def set_level(level: str) -> None:
    """
    Change the console threshold at runtime (the ``--log-level`` flag).

    Raises:
        ValueError: If *level* is not a logging level name.
    """
    numeric = getattr(logging, level.upper(), None)
    if not isinstance(numeric, int):
        raise ValueError(f"Unknown log level: {level!r}")
    root = logging.getLogger(ROOT_LOGGER_NAME)
    has_file = False
    for handler in root.handlers:
        if isinstance(handler, _ConsoleHandler):
            handler.setLevel(numeric)
        else:
            has_file = True
    root.setLevel(logging.DEBUG if has_file else numeric)
