"""
Logging configuration — one call at process start, from main.py.

Modules only ever do ``logger = logging.getLogger(__name__)``; handlers
and levels live here.

Console level, highest precedence first:
    --debug / --verbose / --quiet  >  HK_LOG_LEVEL  >  WARNING

A maintenance run is long and usually unattended, so the optional log
file (``--log-file`` or HK_LOG_FILE) records INFO and up regardless of
how quiet the console is. HK_LOG_FILE_LEVEL overrides that.
"""

from __future__ import annotations

import logging
import os
import sys
from pathlib import Path

# Success events sit between INFO and WARNING
SUCCESS = 25
logging.addLevelName(SUCCESS, "SUCCESS")

ENV_LEVEL = "HK_LOG_LEVEL"
ENV_FILE = "HK_LOG_FILE"
ENV_FILE_LEVEL = "HK_LOG_FILE_LEVEL"

_DETAILED = "%(asctime)s %(levelname)-7s %(name)s:%(lineno)d — %(message)s"

# (highest level the format applies to, format, date format)
_CONSOLE_FORMATS: tuple[tuple[int, str, str | None], ...] = (
    (logging.DEBUG, _DETAILED, "%H:%M:%S"),
    (logging.INFO, "%(asctime)s [%(name)s] %(message)s", "%H:%M:%S"),
    (logging.CRITICAL, "%(message)s", None),
)

_NOISY_LOGGERS = ("urllib3", "charset_normalizer")


def resolve_level(*, debug: bool = False, verbose: bool = False, quiet: bool = False) -> str:
    """Console level name from CLI flags, falling back to the environment."""
    if debug:
        return "DEBUG"
    if verbose:
        return "INFO"
    if quiet:
        return "ERROR"
    return os.environ.get(ENV_LEVEL, "WARNING")


def setup_logging(
    level: str = "WARNING",
    log_file: str | None = None,
    log_file_level: str | None = None,
    quiet_third_party: bool = True,
) -> None:
    """Install the console handler and, optionally, a file handler on the root logger.

    Args:
        level: Console level name (DEBUG, INFO, SUCCESS, WARNING, ERROR).
            Unknown names fall back to WARNING.
        log_file: Path of a log file to append to; parent dirs are created.
        log_file_level: Level for the file handler (default INFO).
        quiet_third_party: Hold chatty library loggers at WARNING unless
            the console is at DEBUG.
    """
    console_level = _parse_level(level)
    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(_console_handler(console_level))

    lowest = console_level
    if log_file:
        file_level = _parse_level(log_file_level) if log_file_level else logging.INFO
        root.addHandler(_file_handler(Path(log_file).expanduser(), file_level))
        lowest = min(lowest, file_level)
    root.setLevel(lowest)

    if quiet_third_party and console_level > logging.DEBUG:
        for name in _NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)

    # A broken handler must never take a run down with it
    logging.raiseExceptions = False


def _console_handler(level: int) -> logging.Handler:
    fmt, datefmt = next((f, d) for limit, f, d in _CONSOLE_FORMATS if level <= limit)
    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(fmt, datefmt=datefmt))
    return handler


def _file_handler(path: Path, level: int) -> logging.Handler:
    path.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(_DETAILED, datefmt="%Y-%m-%d %H:%M:%S"))
    return handler


def _parse_level(level: str | None) -> int:
    if not level:
        return logging.WARNING
    numeric = logging.getLevelName(level.strip().upper())
    return numeric if isinstance(numeric, int) else logging.WARNING
