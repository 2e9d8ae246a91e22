"""Structured logging configuration.

This module initializes structlog with a stable JSON event format.
Modules request loggers by name and emit snake_case events with fields.
Events go to stderr so command output on stdout stays machine-readable.
"""

from __future__ import annotations

import sys
import threading
from typing import Any

import structlog

_CONFIGURE_LOCK = threading.Lock()
_configured = False


def get_logger(name: str) -> Any:
    """Return a module logger instance.

    Args:
        name: Logger name, usually __name__.

    Returns:
        A structlog logger with structured output.
    """
    _configure_once()
    return structlog.get_logger(name)


def _configure_once() -> None:
    """Apply the shared structlog processor chain a single time."""
    global _configured
    with _CONFIGURE_LOCK:
        if _configured:
            return
        structlog.configure(
            processors=[
                structlog.processors.TimeStamper(fmt="iso"),
                structlog.processors.add_log_level,
                structlog.processors.JSONRenderer(sort_keys=True),
            ],
            logger_factory=structlog.PrintLoggerFactory(file=_StderrStream()),
            cache_logger_on_first_use=True,
        )
        _configured = True


class _StderrStream:
    """Writes to whatever ``sys.stderr`` is at call time."""

    def write(self, text: str) -> int:
        return sys.stderr.write(text)

    def flush(self) -> None:
        sys.stderr.flush()
