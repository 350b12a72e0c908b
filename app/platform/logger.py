import json
import logging
import os
import sys
import traceback
from datetime import datetime, timezone
from typing import Any, Optional

_development = os.getenv("ENVIRONMENT", "production").lower() == "development"
_loggers: dict[str, logging.Logger] = {}


class StructuredFormatter(logging.Formatter):
    """
    Serializes a record as a single JSON line:
    timestamp, level, source, message, error and context.
    """

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname.lower(),
            "source": getattr(record, "source", record.name),
            "message": record.getMessage(),
        }

        error = getattr(record, "error", None)
        if error is None and record.exc_info and record.exc_info[1] is not None:
            error = record.exc_info[1]
        if error is not None:
            entry["error"] = {
                "name": type(error).__name__,
                "message": get_error_message(error),
            }
            if _development:
                entry["error"]["stack"] = "".join(
                    traceback.format_exception(type(error), error, error.__traceback__)
                )

        context = getattr(record, "context", None)
        if context:
            entry["context"] = context

        return json.dumps(entry, default=str)


class _MaxLevelFilter(logging.Filter):
    def __init__(self, max_level: int):
        super().__init__()
        self.max_level = max_level

    def filter(self, record: logging.LogRecord) -> bool:
        return record.levelno < self.max_level


def _level() -> int:
    return logging.DEBUG if _development else logging.INFO


def get_logger(name: str) -> logging.Logger:
    """
    Creates a logger that writes structured records to the console:
    warnings and errors to stderr, everything else to stdout.
    """
    logger = logging.getLogger(name)

    if logger.handlers:
        return logger

    logger.setLevel(_level())
    logger.propagate = False

    formatter = StructuredFormatter()

    stdout_handler = logging.StreamHandler(sys.stdout)
    stdout_handler.setFormatter(formatter)
    stdout_handler.addFilter(_MaxLevelFilter(logging.WARNING))

    stderr_handler = logging.StreamHandler(sys.stderr)
    stderr_handler.setFormatter(formatter)
    stderr_handler.setLevel(logging.WARNING)

    logger.addHandler(stdout_handler)
    logger.addHandler(stderr_handler)

    _loggers[name] = logger
    return logger


def set_development_mode(enabled: bool) -> None:
    """Toggle debug output (and error stacks) for every logger created here."""
    global _development
    _development = enabled
    for logger in _loggers.values():
        logger.setLevel(_level())


def is_development_mode() -> bool:
    return _development


def log_event(
    logger: logging.Logger,
    level: int,
    source: str,
    message: str,
    error: Optional[BaseException] = None,
    **context: Any,
) -> None:
    logger.log(level, message, extra={"source": source, "error": error, "context": context or None})


def get_error_message(error: Any) -> str:
    if isinstance(error, BaseException):
        return str(error)
    if isinstance(error, str):
        return error
    return "Unknown error occurred"
