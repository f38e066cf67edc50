"""
Logging setup for the supac CLI.

Modules log through ``logging.getLogger(__name__)``; this module wires
the root logger once per process. Backends run on worker threads named
``supac_N``, so the verbose formats carry the thread name.

Console level precedence:
    --debug  >  --verbose  >  --quiet  >  $SUPAC_LOG_LEVEL  >  WARNING

A log file can be added with $SUPAC_LOG_FILE; its level comes from
$SUPAC_LOG_FILE_LEVEL and defaults to the console level.
"""

from __future__ import annotations

import logging
import sys
from collections.abc import Mapping

LEVEL_ENV = "SUPAC_LOG_LEVEL"
FILE_ENV = "SUPAC_LOG_FILE"
FILE_LEVEL_ENV = "SUPAC_LOG_FILE_LEVEL"

# (format, datefmt) by console level; anything above INFO prints bare messages
_CONSOLE_FORMATS: dict[int, tuple[str, str | None]] = {
    logging.DEBUG: (
        "%(asctime)s %(levelname)-5s [%(threadName)s] %(name)s:%(lineno)d  %(message)s",
        "%H:%M:%S",
    ),
    logging.INFO: ("%(asctime)s [%(threadName)s] %(message)s", "%H:%M:%S"),
}
_FILE_FORMAT = (
    "%(asctime)s %(levelname)-5s [%(threadName)s] %(name)s:%(lineno)d  %(message)s",
    "%Y-%m-%d %H:%M:%S",
)


def resolve_level(
    debug: bool = False,
    verbose: bool = False,
    quiet: bool = False,
    env: Mapping[str, str] | None = None,
) -> str:
    """Pick the console level name from CLI flags and the environment."""
    if debug:
        return "DEBUG"
    if verbose:
        return "INFO"
    if quiet:
        return "ERROR"
    return (env or {}).get(LEVEL_ENV) or "WARNING"


def _handler(handler: logging.Handler, level: int, fmt: str, datefmt: str | None) -> logging.Handler:
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(fmt, datefmt=datefmt))
    return handler


def setup_logging(
    level: str = "WARNING",
    log_file: str | None = None,
    log_file_level: str | None = None,
) -> None:
    """Configure the root logger for the whole process.

    Replaces any handlers already installed, so calling it twice is safe.

    Args:
        level: Console level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        log_file: Optional path of a log file to append to.
        log_file_level: Level for the log file (defaults to ``level``).
    """
    console_level = _parse_level(level)
    if console_level <= logging.DEBUG:
        fmt, datefmt = _CONSOLE_FORMATS[logging.DEBUG]
    elif console_level <= logging.INFO:
        fmt, datefmt = _CONSOLE_FORMATS[logging.INFO]
    else:
        fmt, datefmt = "%(message)s", None

    handlers = [_handler(logging.StreamHandler(sys.stderr), console_level, fmt, datefmt)]

    if log_file:
        file_level = _parse_level(log_file_level) if log_file_level else console_level
        handlers.append(
            _handler(logging.FileHandler(log_file, encoding="utf-8"), file_level, *_FILE_FORMAT)
        )

    root = logging.getLogger()
    root.handlers.clear()
    for handler in handlers:
        root.addHandler(handler)
    # root must let through whatever the most verbose handler wants
    root.setLevel(min(h.level for h in handlers))

    logging.raiseExceptions = False


def _parse_level(level: str | None) -> int:
    """Level name to its numeric value; unknown names mean WARNING."""
    if not level:
        return logging.WARNING
    numeric = logging.getLevelName(level.upper())
    return numeric if isinstance(numeric, int) else logging.WARNING
