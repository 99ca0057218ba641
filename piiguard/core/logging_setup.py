"""Log formatting for the CLI and the HTTP service.

``text`` (default) writes the usual human-readable lines to stderr.
``json`` writes one JSON object per record, suitable for log shippers.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

# Attributes every LogRecord carries; anything else came in via ``extra=``.
_RESERVED = frozenset(vars(logging.makeLogRecord({}))) | {"message", "asctime"}

TEXT_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

# Loggers that drown detection output at INFO
_QUIET_LOGGERS = ("uvicorn.access", "httpx")


class JSONFormatter(logging.Formatter):
    """One JSON object per record: timestamp, severity, logger, message.

    Fields passed through ``extra=`` (``pass_name``, ``document_id``, ...)
    are copied to the top level.
    """

    def format(self, record: logging.LogRecord) -> str:
        created = datetime.fromtimestamp(record.created, tz=timezone.utc)
        payload: dict[str, Any] = {
            "timestamp": created.isoformat(),
            "severity": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        payload.update(
            (key, value) for key, value in vars(record).items()
            if key not in _RESERVED and not key.startswith("_")
        )

        if record.exc_info and record.exc_info[0] is not None:
            exc_type, exc, _ = record.exc_info
            payload["exception"] = {
                "type": exc_type.__name__,
                "message": str(exc),
                "stacktrace": self.formatException(record.exc_info),
            }

        return json.dumps(payload, default=str, ensure_ascii=False)


def setup_logging(log_format: str = "text", level: str = "INFO") -> None:
    """Replace the root handlers with a single stderr handler.

    Args:
        log_format: "json" or "text".
        level: Level name; unknown names fall back to INFO.
    """
    formatter = JSONFormatter() if log_format.lower() == "json" else logging.Formatter(TEXT_FORMAT)
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)

    root = logging.getLogger()
    # Safe to call twice (uvicorn reload, tests)
    for existing in list(root.handlers):
        root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
