from __future__ import annotations

import json
import logging
import os
from datetime import datetime, timezone
from typing import Any, Dict

from telemetry.pii import sanitize_log_payload, scrub_text

_CONFIGURED = False
_DEFAULT_LEVEL = "INFO"

# Attributes every LogRecord carries; anything else came in through ``extra=``.
_RESERVED_ATTRS = {
    "name",
    "msg",
    "args",
    "levelname",
    "levelno",
    "pathname",
    "filename",
    "module",
    "exc_info",
    "exc_text",
    "stack_info",
    "lineno",
    "funcName",
    "created",
    "msecs",
    "relativeCreated",
    "thread",
    "threadName",
    "processName",
    "process",
    "taskName",
}


def _safe_value(value: Any) -> Any:
    try:
        json.dumps(value)
        return value
    except (TypeError, ValueError):
        return str(value)


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        extras: Dict[str, Any] = {}
        for key, value in record.__dict__.items():
            if key in _RESERVED_ATTRS:
                continue
            if key.startswith("_"):
                continue
            extras[key] = _safe_value(value)
        if record.exc_info:
            extras["exc_info"] = self.formatException(record.exc_info)
        if record.stack_info:
            extras["stack"] = self.formatStack(record.stack_info)
        payload: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": scrub_text(record.getMessage()),
        }
        payload.update(sanitize_log_payload(extras))
        return json.dumps(payload, ensure_ascii=True)


def _configure_root_logger() -> None:
    global _CONFIGURED
    if _CONFIGURED:
        return
    level_name = os.getenv("LOG_LEVEL", _DEFAULT_LEVEL).upper()
    level = getattr(logging, level_name, None)
    if not isinstance(level, int):
        level = logging.INFO
    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter())
    root = logging.getLogger()
    if not root.handlers:
        root.addHandler(handler)
    root.setLevel(level)
    _CONFIGURED = True


def get_logger(name: str) -> logging.Logger:
    _configure_root_logger()
    return logging.getLogger(name)
