"""Log formatting for the relay and the CLI.

Relay and provider log calls attach context through ``extra=``
(request id, provider, operation). Both output formats carry that context:
``json`` as object keys, ``text`` as trailing ``key=value`` pairs.
Nothing outside ``CONTEXT_FIELDS`` is emitted, so stray record attributes
never reach the output.
"""

import json
import logging
import sys
from datetime import datetime, timezone

CONTEXT_FIELDS = (
    "request_id",
    "method",
    "path",
    "status",
    "duration_ms",
    "origin",
    "provider",
    "operation",
)

# Log every outbound request at INFO; kept at WARNING unless debugging.
_HTTP_CLIENT_LOGGERS = ("httpx", "httpcore")

TEXT_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def record_context(record: logging.LogRecord) -> dict:
    """Return the context fields set on a record, in CONTEXT_FIELDS order."""
    context = {}
    for field in CONTEXT_FIELDS:
        value = getattr(record, field, None)
        if value is not None:
            context[field] = value
    return context


class JSONFormatter(logging.Formatter):
    """One JSON object per line: timestamp, level, logger, message, context."""

    def format(self, record: logging.LogRecord) -> str:
        created = datetime.fromtimestamp(record.created, tz=timezone.utc)
        entry = {
            "timestamp": created.isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **record_context(record),
        }
        if record.exc_info and record.exc_info[1] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


class ContextTextFormatter(logging.Formatter):
    """Human-readable lines with the record context appended as key=value."""

    def __init__(self) -> None:
        super().__init__(TEXT_FORMAT)

    def formatMessage(self, record: logging.LogRecord) -> str:
        line = super().formatMessage(record)
        context = record_context(record)
        if context:
            line += " " + " ".join(f"{key}={value}" for key, value in context.items())
        return line


FORMATTERS = {
    "json": JSONFormatter,
    "text": ContextTextFormatter,
}


def configure_logging(level: str = "INFO", fmt: str = "text") -> None:
    """Send root logging to stderr with one handler.

    Args:
        level: Level name; unknown names fall back to INFO.
        fmt: ``text`` or ``json``; anything else is treated as ``text``.
    """
    numeric_level = logging.getLevelName(level.upper())
    if not isinstance(numeric_level, int):
        numeric_level = logging.INFO

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(numeric_level)
    handler.setFormatter(FORMATTERS.get(fmt, ContextTextFormatter)())

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(numeric_level)

    client_level = logging.NOTSET if numeric_level <= logging.DEBUG else logging.WARNING
    for name in _HTTP_CLIENT_LOGGERS:
        logging.getLogger(name).setLevel(client_level)
