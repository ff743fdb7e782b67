"""
Diagnostic logging for fedkeeper.

Modules log through ``get_logger("<area>")``, which hands out children of
the ``fedkeeper`` logger. Only the CLI calls :func:`setup_logging`
(``-v`` → INFO, ``-vv`` → DEBUG, otherwise WARNING); imported as a library,
fedkeeper stays silent until the host application configures logging.
Report output for users goes through :mod:`fedkeeper.utils.console`.
"""

from __future__ import annotations

import os
import sys
import logging
import threading
from pathlib import Path
from typing import IO, Dict, Optional

from fedkeeper.constants import (
    LOG_DATE_FORMAT,
    LOG_DEFAULT_FORMAT,
    LOG_VERBOSE_FORMAT,
)

#: Root logger name for the whole package.
LOGGER_NAMESPACE = "fedkeeper"

_VERBOSITY_LEVELS = (logging.WARNING, logging.INFO, logging.DEBUG)

_logging_configured: bool = False
_lock = threading.Lock()


class ColoredFormatter(logging.Formatter):
    """Adds ANSI colors to the level name when stderr is a terminal.

    Args:
        fmt: Log record format.
        datefmt: ``asctime`` format.
        use_color: Set to False to never emit escape sequences.
    """

    LEVEL_COLORS: Dict[str, str] = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def __init__(
        self,
        fmt: str,
        *,
        datefmt: Optional[str] = None,
        use_color: bool = True,
    ) -> None:
        super().__init__(fmt=fmt, datefmt=datefmt)
        self.use_color = use_color

    def format(self, record: logging.LogRecord) -> str:
        color = self.LEVEL_COLORS.get(record.levelname)
        if color is None or not self.use_color or not self._should_use_color():
            return super().format(record)

        # Other handlers must still see the plain level name
        tinted = logging.makeLogRecord(record.__dict__)
        tinted.levelname = f"{color}{record.levelname}{self.RESET}"
        return super().format(tinted)

    @staticmethod
    def _should_use_color() -> bool:
        if os.environ.get("NO_COLOR") or os.environ.get("CI"):
            return False
        try:
            return sys.stderr.isatty()
        except (AttributeError, OSError):
            return False


def verbosity_to_level(verbose: int) -> int:
    """``0`` → WARNING, ``1`` → INFO, ``2`` and above → DEBUG."""
    index = min(max(verbose, 0), len(_VERBOSITY_LEVELS) - 1)
    return _VERBOSITY_LEVELS[index]


def _drop_handlers(logger: logging.Logger) -> None:
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()


def setup_logging(
    *,
    level: int = logging.INFO,
    verbose: bool = False,
    stream: Optional[IO[str]] = None,
    log_file: Optional[Path] = None,
) -> None:
    """Attach fresh handlers to the ``fedkeeper`` logger.

    Calling it again replaces the previous handlers instead of adding
    more.

    Args:
        level: Threshold for the logger and every handler.
        verbose: Use the timestamped format on the console.
        stream: Console stream; ``sys.stderr`` by default.
        log_file: Also write records here, uncolored and in the
            timestamped format. Parent directories are created.
    """
    global _logging_configured

    with _lock:
        package_logger = logging.getLogger(LOGGER_NAMESPACE)
        _drop_handlers(package_logger)
        package_logger.setLevel(level)
        package_logger.propagate = False

        console = logging.StreamHandler(stream or sys.stderr)
        console.setLevel(level)
        console.setFormatter(
            ColoredFormatter(
                LOG_VERBOSE_FORMAT if verbose else LOG_DEFAULT_FORMAT,
                datefmt=LOG_DATE_FORMAT,
                use_color=not os.environ.get("NO_COLOR"),
            )
        )
        package_logger.addHandler(console)

        if log_file is not None:
            log_file.parent.mkdir(parents=True, exist_ok=True)
            to_file = logging.FileHandler(log_file, encoding="utf-8")
            to_file.setLevel(level)
            to_file.setFormatter(logging.Formatter(LOG_VERBOSE_FORMAT, datefmt=LOG_DATE_FORMAT))
            package_logger.addHandler(to_file)

        _logging_configured = True


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Logger for ``fedkeeper.<name>``; the prefix may be given or omitted.

    >>> get_logger("core.lockfile") is get_logger("fedkeeper.core.lockfile")
    True
    """
    if name and name != LOGGER_NAMESPACE and not name.startswith(f"{LOGGER_NAMESPACE}."):
        name = f"{LOGGER_NAMESPACE}.{name}"
    logger = logging.getLogger(name or LOGGER_NAMESPACE)

    if not logger.handlers and not (logger.parent and logger.parent.handlers):
        logger.addHandler(logging.NullHandler())
    return logger


def is_logging_configured() -> bool:
    return _logging_configured


def disable_logging() -> None:
    """Discard all fedkeeper log records until :func:`setup_logging` runs again."""
    global _logging_configured

    with _lock:
        package_logger = logging.getLogger(LOGGER_NAMESPACE)
        _drop_handlers(package_logger)
        package_logger.addHandler(logging.NullHandler())
        package_logger.setLevel(logging.NOTSET)
        _logging_configured = False
