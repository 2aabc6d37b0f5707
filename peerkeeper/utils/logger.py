"""
Logging helpers for peerkeeper.

Every module logs through :func:`get_logger`, which places loggers under the
``peerkeeper`` namespace and attaches a ``NullHandler`` so nothing is printed
unless the embedding application calls :func:`setup_logging`. Registry
retries and cache fallbacks are logged at WARNING; per-package peer lookup
failures only at DEBUG.
"""

from __future__ import annotations

import os
import sys
import logging
import threading
from typing import IO, Optional

from peerkeeper.constants import (
    LOG_DATE_FORMAT,
    LOG_DEFAULT_FORMAT,
    LOG_VERBOSE_FORMAT,
)

_NAMESPACE = "peerkeeper"

_configured = threading.Event()
_config_lock = threading.Lock()


class ColoredFormatter(logging.Formatter):
    """Formatter that tints the level name with ANSI escapes on a terminal.

    Colour is skipped when ``NO_COLOR`` or ``CI`` is set, or when stderr is
    not a TTY.
    """

    COLORS = {
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
        color = self.COLORS.get(record.levelname) if self.use_color else None
        if color is None or not self._should_use_color():
            return super().format(record)

        # Format a copy; the record is shared with other handlers
        tinted = logging.makeLogRecord(record.__dict__)
        tinted.levelname = f"{color}{record.levelname}{self.RESET}"
        return super().format(tinted)

    @staticmethod
    def _should_use_color() -> bool:
        if os.environ.get("NO_COLOR") or os.environ.get("CI"):
            return False
        isatty = getattr(sys.stderr, "isatty", None)
        try:
            return bool(isatty and isatty())
        except (OSError, ValueError):
            return False


def _namespace_logger() -> logging.Logger:
    return logging.getLogger(_NAMESPACE)


def _replace_handler(handler: logging.Handler, level: int) -> None:
    root = _namespace_logger()
    for existing in list(root.handlers):
        root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(level)


def setup_logging(
    *,
    level: int = logging.INFO,
    verbose: bool = False,
    stream: Optional[IO[str]] = None,
) -> None:
    """Send peerkeeper log records to ``stream`` (stderr by default).

    Calling it again swaps the previous handler out instead of stacking a
    second one.

    Args:
        level: Minimum level emitted.
        verbose: Include timestamp and logger name in each line.
        stream: Destination stream.
    """
    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(
        ColoredFormatter(
            LOG_VERBOSE_FORMAT if verbose else LOG_DEFAULT_FORMAT,
            datefmt=LOG_DATE_FORMAT,
            use_color=not os.environ.get("NO_COLOR"),
        )
    )

    with _config_lock:
        _replace_handler(handler, level)
        _namespace_logger().propagate = False
        _configured.set()


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Return ``peerkeeper.<name>``; bare module names are prefixed."""
    if not name or name == _NAMESPACE:
        qualified = _NAMESPACE
    elif name.startswith(_NAMESPACE + "."):
        qualified = name
    else:
        qualified = f"{_NAMESPACE}.{name}"

    logger = logging.getLogger(qualified)
    parent_handlers = logger.parent.handlers if logger.parent else []
    if not logger.handlers and not parent_handlers:
        logger.addHandler(logging.NullHandler())
    return logger


def is_logging_configured() -> bool:
    return _configured.is_set()


def disable_logging() -> None:
    """Silence peerkeeper output until :func:`setup_logging` runs again."""
    with _config_lock:
        _replace_handler(logging.NullHandler(), logging.NOTSET)
        _configured.clear()
