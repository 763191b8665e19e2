"""JSON log lines for the service.

Every record gets the request's correlation id stamped on it at creation time,
so it is present for any handler, including pytest's ``caplog``. Only a fixed
set of structured extras is copied into the ``fields`` object of a log line.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

from subtrack.context import get_correlation_id


STRUCTURED_FIELDS = frozenset(
    {
        "method",
        "path",
        "status_code",
        "duration_ms",
        "operation",
        "subscription_id",
        "user_id",
        "service_name",
        "period_start",
        "period_end",
        "count",
        "total",
        "rows_affected",
        "error",
    }
)
MAX_ERROR_LENGTH = 500

_base_factory = logging.getLogRecordFactory()


def _stamp_correlation_id(*args: Any, **kwargs: Any) -> logging.LogRecord:
    record = _base_factory(*args, **kwargs)
    record.correlation_id = get_correlation_id()
    return record


class JsonLogFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        fields = {key: value for key, value in record.__dict__.items() if key in STRUCTURED_FIELDS}
        if isinstance(fields.get("error"), str):
            fields["error"] = fields["error"][:MAX_ERROR_LENGTH]
        if record.exc_info:
            fields["exception"] = self.formatException(record.exc_info)

        line = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
            "correlation_id": getattr(record, "correlation_id", None),
            "fields": fields,
        }
        return json.dumps(line, default=str)


def configure_logging(level: str = "INFO") -> None:
    """Route everything through one stdout handler. Safe to call more than once."""
    root = logging.getLogger()
    resolved = logging.getLevelName(level.upper())
    if not isinstance(resolved, int):
        resolved = logging.INFO

    root.setLevel(resolved)
    if getattr(root, "_subtrack_configured", False):
        return

    handler = logging.StreamHandler(stream=sys.stdout)
    handler.setFormatter(JsonLogFormatter())

    root.handlers.clear()
    root.addHandler(handler)
    logging.setLogRecordFactory(_stamp_correlation_id)
    root._subtrack_configured = True  # type: ignore[attr-defined]
