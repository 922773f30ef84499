"""
Structured JSON logging utilities.

Story storage is usually embedded in a long-lived editor process or a
hosted service. Records are emitted as single-line JSON so log collectors
can index the user_id/story_id context attached by the store and session.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import IO, Any

# LogRecord attributes that are not caller-supplied context
_RECORD_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {
    "message",
    "asctime",
}


def _jsonable(value: Any) -> Any:
    try:
        json.dumps(value)
    except (TypeError, ValueError):
        return str(value)
    return value


class StructuredJsonFormatter(logging.Formatter):
    """
    JSON formatter for story storage logs.

    Each record becomes one JSON object with:
    - timestamp: record creation time, ISO 8601 in UTC
    - level, logger, message
    - exception: formatted traceback, when present
    - every ``extra`` field (user_id, story_id, action, ...)
    - the ``static_fields`` given to the formatter (e.g. service name)
    """

    def __init__(self, static_fields: dict[str, Any] | None = None):
        super().__init__()
        self.static_fields = dict(static_fields or {})

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **self.static_fields,
        }
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        entry.update(
            (key, _jsonable(value))
            for key, value in vars(record).items()
            if key not in _RECORD_ATTRS and not key.startswith("_")
        )
        return json.dumps(entry, default=str)


def configure_structured_logging(
    level: int = logging.INFO,
    logger_name: str | None = None,
    stream: IO[str] | None = None,
    static_fields: dict[str, Any] | None = None,
) -> logging.Logger:
    """
    Send a logger's records to a stream as JSON lines.

    Args:
        level: Logging level (default: INFO)
        logger_name: Logger to configure (default: root logger)
        stream: Output stream (default: stdout)
        static_fields: Fields added to every record

    Returns:
        The configured logger
    """
    logger = logging.getLogger(logger_name)

    # Reconfiguring must not duplicate output
    logger.handlers.clear()

    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setFormatter(StructuredJsonFormatter(static_fields))
    logger.addHandler(handler)
    logger.setLevel(level)
    return logger


class StoryLoggerAdapter(logging.LoggerAdapter):
    """
    Adapter that stamps bound context (typically user_id) onto records.

    Fields passed as ``extra`` at the call site take precedence over
    bound ones.
    """

    def process(self, msg: str, kwargs: dict[str, Any]) -> tuple[str, dict[str, Any]]:
        kwargs["extra"] = {**(self.extra or {}), **kwargs.get("extra", {})}
        return msg, kwargs

    def bind(self, **context: Any) -> "StoryLoggerAdapter":
        """Return an adapter with additional bound context."""
        return StoryLoggerAdapter(self.logger, {**(self.extra or {}), **context})
