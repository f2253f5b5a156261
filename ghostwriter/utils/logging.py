"""Structured logging for the content pipeline.

Wraps the standard library logger so call sites can attach structured
context with ``extra_data={...}`` and every record carries the id of the
pipeline run that produced it.
"""

import json
import logging
import sys
import uuid
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict, Optional

_request_id: ContextVar[Optional[str]] = ContextVar("request_id", default=None)

ROOT_LOGGER_NAME = "ghostwriter"


class StructuredLogger(logging.LoggerAdapter):
    """Logger adapter accepting an ``extra_data`` keyword on every call."""

    def process(self, msg, kwargs):
        extra_data = kwargs.pop("extra_data", None) or {}
        extra = dict(kwargs.get("extra") or {})
        extra["extra_data"] = extra_data
        extra["request_id"] = get_request_id()
        kwargs["extra"] = extra
        return msg, kwargs


class TextFormatter(logging.Formatter):
    """Human-readable formatter that appends structured context."""

    def format(self, record: logging.LogRecord) -> str:
        base = super().format(record)
        parts = []
        request_id = getattr(record, "request_id", None)
        if request_id:
            parts.append(f"run={request_id}")
        extra_data = getattr(record, "extra_data", None)
        if extra_data:
            parts.extend(f"{key}={value}" for key, value in extra_data.items())
        if parts:
            return f"{base} [{' '.join(parts)}]"
        return base


class JSONFormatter(logging.Formatter):
    """One JSON object per line, for log shippers."""

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        request_id = getattr(record, "request_id", None)
        if request_id:
            payload["request_id"] = request_id
        extra_data = getattr(record, "extra_data", None)
        if extra_data:
            payload["data"] = extra_data
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


def get_logger(name: str) -> StructuredLogger:
    """Get a structured logger for a module.

    Args:
        name: Usually ``__name__`` of the calling module.

    Returns:
        Logger adapter that understands ``extra_data``.
    """
    return StructuredLogger(logging.getLogger(name), {})


def setup_logging(level: str = "INFO", json_output: bool = False) -> None:
    """Configure the package root logger.

    Args:
        level: Log level name.
        json_output: Emit JSON lines instead of text.
    """
    root = logging.getLogger(ROOT_LOGGER_NAME)
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    for handler in list(root.handlers):
        root.removeHandler(handler)

    handler = logging.StreamHandler(sys.stderr)
    if json_output:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(TextFormatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
    root.addHandler(handler)
    root.propagate = False


def set_request_id(request_id: Optional[str] = None) -> str:
    """Set the run id attached to subsequent log records.

    Args:
        request_id: Explicit id, or None to generate one.

    Returns:
        The id now in effect.
    """
    value = request_id or uuid.uuid4().hex[:12]
    _request_id.set(value)
    return value


def get_request_id() -> Optional[str]:
    """Get the run id for the current context, if any."""
    return _request_id.get()


def log_llm_call(
    logger: StructuredLogger,
    provider: str,
    model: str,
    input_tokens: int,
    output_tokens: int,
    duration_ms: int,
    success: bool,
    cost: float = 0.0,
    error: Optional[str] = None,
) -> None:
    """Log a single model call with usage and cost."""
    data = {
        "provider": provider,
        "model": model,
        "input_tokens": input_tokens,
        "output_tokens": output_tokens,
        "duration_ms": duration_ms,
        "cost": round(cost, 6),
        "success": success,
    }
    if error:
        data["error"] = error
        logger.warning(f"LLM call failed: {provider}/{model}", extra_data=data)
    else:
        logger.debug(f"LLM call: {provider}/{model}", extra_data=data)
