# === NAVMAP v1 ===
# {
#   "module": "HookedHTTP.logging_utils",
#   "purpose": "Structured logging setup for HookedHTTP",
#   "sections": [
#     {"id": "masking", "name": "Secret masking", "anchor": "MASK", "kind": "helpers"},
#     {"id": "formatter", "name": "JSONFormatter", "anchor": "FMT", "kind": "api"},
#     {"id": "setup", "name": "setup_logging", "anchor": "SETUP", "kind": "api"}
#   ]
# }
# === /NAVMAP ===

"""
Structured Logging Utilities

The library itself only creates loggers under the ``HookedHTTP`` namespace;
applications decide where records go. :func:`setup_logging` is a convenience
for scripts and the CLI: it attaches one managed stream handler emitting
either plain text or JSON lines produced by :class:`JSONFormatter`.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional, TextIO

from .settings import LoggingSettings, get_settings

__all__ = ["mask_sensitive_data", "mask_value", "JSONFormatter", "setup_logging"]

ROOT_LOGGER_NAME = "HookedHTTP"
_SENSITIVE_KEYS = {"authorization", "api_key", "apikey", "token", "secret", "password", "cookie"}


def mask_sensitive_data(payload: Dict[str, object]) -> Dict[str, object]:
    """Remove secrets from structured payloads prior to logging.

    Nested mappings and lists (for example decoded JSON bodies) are masked
    too.

    Examples:
        >>> mask_sensitive_data({"token": "secret", "status": "ok"})
        {'token': '***masked***', 'status': 'ok'}
    """
    masked: Dict[str, object] = {}
    for key, value in payload.items():
        if str(key).lower() in _SENSITIVE_KEYS:
            masked[key] = "***masked***"
        else:
            masked[key] = mask_value(value)
    return masked


def mask_value(value: Any) -> Any:
    """Mask secrets inside an arbitrary decoded body; scalars pass through."""
    if isinstance(value, dict):
        return mask_sensitive_data(value)
    if isinstance(value, (list, tuple)):
        return [mask_value(item) for item in value]
    return value


class JSONFormatter(logging.Formatter):
    """Formatter emitting JSON structured logs.

    Examples:
        >>> formatter = JSONFormatter()
        >>> isinstance(formatter.format(logging.makeLogRecord({'msg': 'test'})), str)
        True
    """

    def format(self, record: logging.LogRecord) -> str:
        now = datetime.now(timezone.utc)
        log_obj = {
            "timestamp": now.isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "request_id": getattr(record, "request_id", None),
        }
        if hasattr(record, "extra_fields") and isinstance(record.extra_fields, dict):
            log_obj.update(record.extra_fields)
        if record.exc_info:
            log_obj["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(mask_sensitive_data(log_obj), default=str)


def setup_logging(
    settings: Optional[LoggingSettings] = None,
    stream: Optional[TextIO] = None,
) -> logging.Logger:
    """Attach a managed stream handler to the ``HookedHTTP`` logger.

    Calling it again replaces the previously installed handler.

    Args:
        settings: Level and format; defaults to the ``HOOKEDHTTP_LOG_LEVEL`` and
            ``HOOKEDHTTP_JSON_LOGS`` environment overrides.
        stream: Destination stream; defaults to ``sys.stderr``.

    Returns:
        The configured ``HookedHTTP`` logger.
    """
    settings = settings or get_settings().logging_settings()
    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.setLevel(settings.level_int())

    for handler in list(logger.handlers):
        if getattr(handler, "_hookedhttp_managed", False):
            logger.removeHandler(handler)
            handler.close()

    handler = logging.StreamHandler(stream or sys.stderr)
    if settings.emit_json_logs:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter("%(levelname)s %(name)s: %(message)s"))
    handler._hookedhttp_managed = True  # type: ignore[attr-defined]
    logger.addHandler(handler)
    return logger
