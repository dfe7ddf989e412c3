"""Structured JSON logging configuration.

Every entry is one JSON object with timestamp, level, logger, message and
request_id (the AdmissionReview uid, when a log call supplies one). Admission
and refresh fields are added from ``extra``: image, rewritten_image,
registry, namespace and pod for rewrites; project_count, duration_ms and
error_reason for cache refreshes.

SECURITY: Never logs Harbor credentials or Authorization header values.
"""

from __future__ import annotations

import json
import logging
import re
from datetime import datetime, timezone

# Credential-looking "key=value" / "Header: value" pairs
_SENSITIVE_PATTERNS = re.compile(
    r"(harbor.pass|password|secret|token|credential|authorization)"
    r"[\s]*[=:]\s*(?:(?:basic|bearer)\s+)?\S+",
    re.IGNORECASE,
)

_CONTEXT_FIELDS = (
    "image",
    "rewritten_image",
    "registry",
    "namespace",
    "pod",
    "project_count",
    "duration_ms",
    "attempt",
)

# Third-party loggers that are chatty at INFO
_QUIET_LOGGERS = ("httpx", "httpcore")

# uvicorn installs its own handlers; route them through the root JSON handler
_UVICORN_LOGGERS = ("uvicorn", "uvicorn.error", "uvicorn.access")


def redact(text: str) -> str:
    """Mask credential values in *text*."""
    return _SENSITIVE_PATTERNS.sub("[REDACTED]", text)


class JsonFormatter(logging.Formatter):
    """Formats log records as single-line JSON objects."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": redact(record.getMessage()),
            "request_id": getattr(record, "request_id", None),
        }
        entry.update(
            (name, getattr(record, name))
            for name in _CONTEXT_FIELDS
            if hasattr(record, name)
        )

        if hasattr(record, "error_reason"):
            entry["error_reason"] = redact(str(record.error_reason))
        if record.exc_info and record.exc_info[1]:
            entry["exception"] = redact(self.formatException(record.exc_info))

        return json.dumps(entry, default=str)


def configure_logging(level: str = "INFO") -> None:
    """Install the JSON handler on the root logger.

    Safe to call more than once; existing root handlers are replaced.
    """
    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    root.handlers.clear()

    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter())
    root.addHandler(handler)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    for name in _UVICORN_LOGGERS:
        uvicorn_logger = logging.getLogger(name)
        uvicorn_logger.handlers.clear()
        uvicorn_logger.propagate = True
