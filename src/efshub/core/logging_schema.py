"""Logging field schema - v1.0

Standard fields (added to all logs):
- schema_version: Log schema version
- service: Service name (efshub-api)
- component: Component name (API, TASKS, FS, AP, USERS, ACCOUNT)
- event: Event type (task_started, rollback_failed, etc.)
- trace_id: Request trace ID (X-Trace-ID header)
- task_id: Task ID of the workflow emitting the log
- duration_ms: Duration in milliseconds

High cardinality fields (OK in logs, NOT in metric labels):
- fs_id: Filesystem ID
- ap_id: Access point ID
- account: Account alias
- group: Tenant space
"""

from enum import StrEnum


class LogEvent(StrEnum):
    """Standard log event types.

    Use these event types in the 'event' extra field for consistent
    log filtering and analysis.
    """

    # Task lifecycle
    TASK_CREATED = "task_created"
    TASK_STARTED = "task_started"
    TASK_PROGRESS = "task_progress"
    TASK_COMPLETED = "task_completed"
    TASK_FAILED = "task_failed"
    TASK_SINK_CLOSED = "task_sink_closed"

    # Retry / rollback
    RETRY_ATTEMPT = "retry_attempt"
    RETRY_STOPPED = "retry_stopped"
    RETRY_EXHAUSTED = "retry_exhausted"
    ROLLBACK_STARTED = "rollback_started"
    ROLLBACK_FAILED = "rollback_failed"
    ROLLBACK_TIMEOUT = "rollback_timeout"
    ROLLBACK_COMPLETE = "rollback_complete"

    # Workflow events
    OPERATION_STARTED = "operation_started"
    OPERATION_FAILED = "operation_failed"
    OPERATION_SUCCESS = "operation_success"

    # Provider
    AWS_ERROR = "aws_error"
    ROLE_ASSUMED = "role_assumed"
    ACCOUNT_PREPARED = "account_prepared"

    # Lifecycle events
    APP_STARTED = "app_started"
    APP_STOPPED = "app_stopped"
    REDIS_CONNECTED = "redis_connected"
    REDIS_CONNECTION_ERROR = "redis_connection_error"

    # API events
    REQUEST_COMPLETE = "request_complete"
    REQUEST_FAILED = "request_failed"
    REQUEST_SLOW = "request_slow"
    AUTH_REJECTED = "auth_rejected"


class ErrorClass(StrEnum):
    """Error classification for structured error logging.

    Use these in the 'error_class' extra field to enable
    filtering by error type and setting up alerts.
    """

    TRANSIENT = "transient"  # Retried (not yet available, throttled)
    PERMANENT = "permanent"  # StopRetry or exhausted budget
    TIMEOUT = "timeout"  # Rollback deadline
    RATE_LIMITED = "rate_limited"  # Provider quota


class Component(StrEnum):
    """Component identifiers for log filtering."""

    API = "api"  # REST API
    TASKS = "tasks"  # Task tracker
    FS = "fs"  # Filesystem workflows
    AP = "ap"  # Access point workflows
    USERS = "users"  # User workflows
    ACCOUNT = "account"  # Account preparation
