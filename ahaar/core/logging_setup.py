from __future__ import annotations

import json
import logging
import os
import re
from datetime import datetime, timezone

from ahaar.core.request_context import current_context

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# bearer tokens, signed links and credentials never reach the log stream
_SENSITIVE_PATTERNS = [
    re.compile(r"(authorization\s*[:=]\s*bearer\s+)([^\s\"]+)", re.IGNORECASE),
    re.compile(r"((?:access|refresh)?token\s*[:=]\s*)([^\s\",}]+)", re.IGNORECASE),
    re.compile(r"(/verify/)([^\s\"/?]+)", re.IGNORECASE),
    re.compile(r"(password\s*[:=]\s*)([^\s\",}]+)", re.IGNORECASE),
    re.compile(r"(secret\s*[:=]\s*)([^\s\",}]+)", re.IGNORECASE),
]

_REQUEST_FIELDS = ("endpoint", "method", "status_code", "client", "duration_ms")
_QUIET_LOGGERS = ("sqlalchemy.engine", "botocore", "multipart")


def mask_sensitive(value: str) -> str:
    for pattern in _SENSITIVE_PATTERNS:
        value = pattern.sub(r"\1***", value)
    return value


class JsonFormatter(logging.Formatter):
    """One JSON object per line, enriched with the current request identity."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "module": record.name,
            "message": mask_sensitive(record.getMessage()),
        }
        for key, value in current_context().as_log_fields().items():
            payload[key] = getattr(record, key, None) or value
        for key in _REQUEST_FIELDS:
            value = getattr(record, key, None)
            if value is not None:
                payload[key] = value
        if record.exc_info:
            payload["exception"] = mask_sensitive(self.formatException(record.exc_info))
        return json.dumps(payload, ensure_ascii=False, default=str)


def configure_logging(level: str | None = None) -> None:
    level = (level or LOG_LEVEL).upper()
    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter())

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(level)

    for logger_name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        logging.getLogger(logger_name).setLevel(level)
    for logger_name in _QUIET_LOGGERS:
        logging.getLogger(logger_name).setLevel(logging.WARNING)
