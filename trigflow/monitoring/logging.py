"""
Structured logging for trigger firing and job handling

Propagates the trigger / job being processed through a context variable so
every log line emitted while firing a trigger or handling a job carries the
same correlation fields.
"""

import json
import logging
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import UTC, datetime
from typing import Any

trigger_context: ContextVar[dict[str, Any] | None] = ContextVar("trigger_context", default=None)

_CONTEXT_FIELDS = (
    "trigger_id",
    "workspace_id",
    "trigger_type",
    "job_key",
    "job_type",
    "process_instance_key",
)


@contextmanager
def bind_trigger_context(**fields: Any) -> Iterator[dict[str, Any]]:
    """
    Bind correlation fields for the duration of a block.

    Nested bindings inherit the outer fields.

    Example:
        >>> with bind_trigger_context(trigger_id="t-1", workspace_id="ws-1"):
        ...     logger.info("firing")
    """
    current = dict(trigger_context.get() or {})
    current.update({k: v for k, v in fields.items() if v is not None})
    token = trigger_context.set(current)
    try:
        yield current
    finally:
        trigger_context.reset(token)


class TriggerJsonFormatter(logging.Formatter):
    """
    JSON formatter emitting one object per line with trigger correlation fields
    """

    _EXTRA_FIELDS = (*_CONTEXT_FIELDS, "duration_ms", "retries", "status", "error_type")

    def format(self, record: logging.LogRecord) -> str:
        log_entry: dict[str, Any] = {
            "timestamp": datetime.now(UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        context = trigger_context.get() or {}
        for field in _CONTEXT_FIELDS:
            if context.get(field) is not None:
                log_entry[field] = context[field]

        for field in self._EXTRA_FIELDS:
            value = getattr(record, field, None)
            if value is not None and value != "":
                log_entry[field] = value

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_entry, default=str)


class TriggerContextFilter(logging.Filter):
    """
    Logging filter that copies the bound trigger context onto log records
    """

    def filter(self, record: logging.LogRecord) -> bool:
        context = trigger_context.get() or {}
        for field in _CONTEXT_FIELDS:
            if not hasattr(record, field):
                setattr(record, field, context.get(field, ""))
        return True
