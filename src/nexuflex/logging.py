"""Logging for the nexuflex client.

All modules log below the ``nexuflex`` logger via ``get_logger("session")``
and friends. The interactive prompt owns the terminal, so by default only
warnings and errors are shown, and only when stderr is a real console.
A log file (``logging.file`` in config, or ``NX_LOG``) receives the same
records.

Verbosity (``-v`` on the command line or ``logging.verbose``):
    0 error, 1 warning, 2 info, 3 verbose, 4 trace (raw RPC traffic)
"""

from __future__ import annotations

import logging
import os
import sys
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from nexuflex.config.schema import LoggingConfig

TRACE = 5
VERBOSE = 15

logging.addLevelName(TRACE, "TRACE")
logging.addLevelName(VERBOSE, "VERBOSE")

logger = logging.getLogger("nexuflex")

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
DATE_FORMAT = "%H:%M:%S"

# Payload keys whose values never reach a log record
SECRET_KEYS = frozenset({"password", "sessionToken"})

_LEVEL_NAMES = {
    "TRACE": TRACE,
    "DEBUG": logging.DEBUG,
    "VERBOSE": VERBOSE,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "WARN": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}

_VERBOSITY_LEVELS = (logging.ERROR, logging.WARNING, logging.INFO, VERBOSE, TRACE)

_handlers: list[logging.Handler] = []


class _ShortFormatter(logging.Formatter):
    """Lowercase level names and logger names relative to ``nexuflex``."""

    def format(self, record: logging.LogRecord) -> str:
        record = logging.makeLogRecord(record.__dict__)
        record.levelname = record.levelname.lower()
        record.name = record.name.removeprefix("nexuflex.")
        return super().format(record)


def resolve_level(config: LoggingConfig | None) -> int:
    """Pick the effective log level from a LoggingConfig.

    ``verbose`` takes precedence over ``level``. Unknown level names and a
    missing config both mean WARNING.
    """
    if config is None:
        return logging.WARNING
    if config.verbose is not None:
        index = min(max(config.verbose, 0), len(_VERBOSITY_LEVELS) - 1)
        return _VERBOSITY_LEVELS[index]
    if config.level:
        return _LEVEL_NAMES.get(config.level.upper(), logging.WARNING)
    return logging.WARNING


def redact(payload: Any) -> Any:
    """Copy of a JSON-like payload with secret values masked."""
    if isinstance(payload, dict):
        return {
            key: "***" if key in SECRET_KEYS and value else redact(value)
            for key, value in payload.items()
        }
    if isinstance(payload, list):
        return [redact(item) for item in payload]
    return payload


def _file_handler(path: str) -> logging.Handler | None:
    try:
        return logging.FileHandler(os.path.expanduser(path), mode="a", encoding="utf-8")
    except OSError as e:
        if sys.stderr.isatty():
            print(f"nexuflex: cannot open log file {path}: {e}", file=sys.stderr)
        return None


def setup_logging(config: LoggingConfig | None = None) -> None:
    """Attach handlers to the ``nexuflex`` logger. Only the first call has an effect."""
    if _handlers:
        return

    level = resolve_level(config)
    logger.setLevel(level)
    logger.propagate = False

    path = (config.file if config else None) or os.environ.get("NX_LOG")
    handler = _file_handler(path) if path else None
    if handler is None and sys.stderr.isatty():
        handler = logging.StreamHandler(sys.stderr)
    if handler is None:
        handler = logging.NullHandler()

    handler.setLevel(level)
    handler.setFormatter(_ShortFormatter(LOG_FORMAT, datefmt=DATE_FORMAT))
    logger.addHandler(handler)
    _handlers.append(handler)


def reset_logging() -> None:
    """Detach and close the handlers added by ``setup_logging``."""
    while _handlers:
        handler = _handlers.pop()
        logger.removeHandler(handler)
        handler.close()
    logger.setLevel(logging.NOTSET)
    logger.propagate = True


def get_logger(name: str | None = None) -> logging.Logger:
    """Child logger of ``nexuflex`` (or the package logger itself for None)."""
    if name:
        return logger.getChild(name)
    return logger
