"""Structured JSON logging for efshub.

Every record carries the service, the request trace id and, inside a
spawned workflow, the task id. Provider scope passed in ``extra``
(account, group, fs_id, ap_id, user) is grouped under ``scope``. Access key
secrets and tokens are masked before a record is written.
"""

import logging
import sys
import time
from collections import deque
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

from pythonjsonlogger import jsonlogger

from efshub.app.config import LoggingConfig, get_settings
from efshub.core.logging_schema import LogEvent

trace_id_ctx: ContextVar[str | None] = ContextVar("trace_id", default=None)
task_id_ctx: ContextVar[str | None] = ContextVar("task_id", default=None)

SCOPE_FIELDS = ("account", "group", "fs_id", "ap_id", "user")
MASKED_FIELDS = frozenset({"secret_access_key", "session_token", "token"})

# Task and rollback milestones are never suppressed
UNLIMITED_EVENTS = frozenset({
    LogEvent.TASK_CREATED,
    LogEvent.TASK_COMPLETED,
    LogEvent.TASK_FAILED,
    LogEvent.ROLLBACK_STARTED,
    LogEvent.ROLLBACK_FAILED,
    LogEvent.ROLLBACK_TIMEOUT,
    LogEvent.ROLLBACK_COMPLETE,
})

_QUIET_LOGGERS = ("botocore", "aiobotocore", "aioboto3", "urllib3", "redis")


def set_trace_id(trace_id: str | None = None) -> str:
    """Bind the request trace id, generating one if the caller sent none."""
    tid = trace_id or str(uuid4())
    trace_id_ctx.set(tid)
    return tid


def set_task_id(task_id: str | None) -> None:
    """Bind a task id to the current context (inherited by spawned tasks)."""
    task_id_ctx.set(task_id)


def clear_trace_context() -> None:
    trace_id_ctx.set(None)
    task_id_ctx.set(None)


class EventRateLimitFilter(logging.Filter):
    """Suppress bursts of the same event.

    Records are grouped by (event, task id), or by call site when they carry
    no event, so one task polling a slow mount target cannot silence the
    progress of another. Errors and UNLIMITED_EVENTS always pass. The first
    record let through after a burst reports how many were dropped in
    ``suppressed``.
    """

    def __init__(self, rate_per_minute: int = 100, window: float = 60.0) -> None:
        super().__init__()
        self.rate_per_minute = rate_per_minute
        self.window = window
        self._seen: dict[tuple, deque[float]] = {}
        self._dropped: dict[tuple, int] = {}
        self._last_prune = time.monotonic()

    def _key(self, record: logging.LogRecord) -> tuple:
        event = getattr(record, "event", None)
        if event is None:
            return (record.name, record.lineno)
        return (str(event), getattr(record, "task_id", None) or task_id_ctx.get())

    def _prune(self, now: float) -> None:
        if now - self._last_prune < self.window:
            return
        self._last_prune = now
        for key in [k for k, seen in self._seen.items() if not seen or now - seen[-1] >= self.window]:
            del self._seen[key]

    def filter(self, record: logging.LogRecord) -> bool:
        if record.levelno >= logging.ERROR:
            return True
        if getattr(record, "event", None) in UNLIMITED_EVENTS:
            return True

        now = time.monotonic()
        self._prune(now)
        key = self._key(record)
        seen = self._seen.setdefault(key, deque())
        while seen and now - seen[0] >= self.window:
            seen.popleft()

        if len(seen) >= self.rate_per_minute:
            self._dropped[key] = self._dropped.get(key, 0) + 1
            return False

        seen.append(now)
        if dropped := self._dropped.pop(key, 0):
            record.suppressed = dropped
        return True


class EfsHubJsonFormatter(jsonlogger.JsonFormatter):
    """JSON formatter adding service, trace, task and scope fields."""

    def __init__(self, config: LoggingConfig, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self._schema_version = config.schema_version
        self._service = config.service_name

    def add_fields(
        self,
        log_record: dict[str, Any],
        record: logging.LogRecord,
        message_dict: dict[str, Any],
    ) -> None:
        super().add_fields(log_record, record, message_dict)

        log_record["timestamp"] = datetime.fromtimestamp(
            record.created, tz=timezone.utc
        ).isoformat()
        log_record["level"] = record.levelname
        log_record["logger"] = record.name
        log_record["schema_version"] = self._schema_version
        log_record["service"] = self._service

        if trace_id := trace_id_ctx.get():
            log_record["trace_id"] = trace_id
        if task_id := task_id_ctx.get():
            log_record.setdefault("task_id", task_id)

        scope = {field: log_record.pop(field) for field in SCOPE_FIELDS if field in log_record}
        if scope:
            log_record["scope"] = scope

        for field in MASKED_FIELDS & log_record.keys():
            log_record[field] = "***"

        if record.exc_info:
            log_record["exception"] = self.formatException(record.exc_info)
        log_record.pop("color_message", None)


def setup_logging(level: int | None = None) -> logging.Handler:
    """Route the root, uvicorn and provider SDK loggers to one JSON handler.

    Args:
        level: Log level. If None, uses LOGGING_LEVEL from settings.

    Returns:
        The installed handler
    """
    config = get_settings().logging
    if level is None:
        level = getattr(logging, config.level.upper(), logging.INFO)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(EfsHubJsonFormatter(config))
    handler.addFilter(EventRateLimitFilter(config.rate_limit_per_minute))

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(level)

    for name in ("uvicorn", "uvicorn.error"):
        uv_logger = logging.getLogger(name)
        uv_logger.handlers.clear()
        uv_logger.propagate = False
        uv_logger.addHandler(handler)
    # LoggingMiddleware writes the access log
    logging.getLogger("uvicorn.access").disabled = True

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    return handler
