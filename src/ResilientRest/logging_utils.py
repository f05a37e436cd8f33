"""Logging helpers shared across ResilientRest components."""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Iterable, Optional, TextIO, Tuple

__all__ = [
    "HeaderRedactionFilter",
    "JSONFormatter",
    "format_headers",
    "setup_logging",
]

ROOT_LOGGER_NAME = "ResilientRest"
REDACTED = "***"
_SENSITIVE_MARKERS = ("authorization", "cookie", "api-key", "token")


def _is_sensitive(name: str) -> bool:
    lowered = name.lower()
    return any(marker in lowered for marker in _SENSITIVE_MARKERS)


def format_headers(headers: Iterable[Tuple[str, str]], kind: str) -> str:
    """Render ``headers`` for a debug log, omitting any ``Authorization`` header."""

    lines = [f"{kind} Headers --> "]
    for name, value in headers:
        if "authorization" in name.lower():
            continue
        lines.append(f"{name}: {value}")
    return "\n".join(lines)


class HeaderRedactionFilter(logging.Filter):
    """Mask credential-like entries in a record's ``extra_fields`` mapping."""

    def filter(self, record: logging.LogRecord) -> bool:
        extra = getattr(record, "extra_fields", None)
        if isinstance(extra, dict):
            record.extra_fields = {
                key: (REDACTED if _is_sensitive(str(key)) else value) for key, value in extra.items()
            }
        return True


class JSONFormatter(logging.Formatter):
    """Formatter emitting one JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:
        now = datetime.now(timezone.utc)
        payload: dict[str, Any] = {
            "timestamp": now.isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "operation": getattr(record, "operation", None),
        }
        if hasattr(record, "extra_fields") and isinstance(record.extra_fields, dict):
            payload.update(record.extra_fields)
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


def setup_logging(
    *,
    level: str = "INFO",
    json_format: bool = False,
    stream: Optional[TextIO] = None,
    propagate: bool = False,
) -> logging.Logger:
    """Configure the ``ResilientRest`` logger with a single managed console handler."""

    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    for handler in list(logger.handlers):
        if getattr(handler, "_restcore_managed", False):
            logger.removeHandler(handler)

    handler = logging.StreamHandler(stream or sys.stderr)
    if json_format:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(
            logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
        )
    handler.addFilter(HeaderRedactionFilter())
    handler._restcore_managed = True  # type: ignore[attr-defined]
    logger.addHandler(handler)

    logger.propagate = propagate
    return logger
