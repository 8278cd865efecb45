"""Prometheus metrics definitions for the API and the task orchestrator."""

import os
from pathlib import Path

from prometheus_client import Counter, Gauge, Histogram

from efshub.app.config import get_settings

# =============================================================================
# Histogram Buckets (optimized by latency category)
# =============================================================================

# FAST: HTTP handlers, Redis operations (5ms ~ 10s)
_BUCKETS_FAST = (
    0.005, 0.01, 0.02, 0.05, 0.1,
    0.2, 0.5, 1, 2, 5,
    10,
)  # 11 buckets

# SLOW: provisioning workflows with retry sleeps (1s ~ 30min)
_BUCKETS_SLOW = (
    1, 2, 5, 10, 20,
    40, 80, 160, 320, 640,
    1800,
)  # 11 buckets

# Multiprocess gauges need the directory at import time
_multiproc_dir = os.environ.get("PROMETHEUS_MULTIPROC_DIR") or get_settings().metrics.multiproc_dir
Path(_multiproc_dir).mkdir(parents=True, exist_ok=True)
os.environ["PROMETHEUS_MULTIPROC_DIR"] = _multiproc_dir

# =============================================================================
# HTTP Metrics
# =============================================================================

HTTP_REQUESTS_TOTAL = Counter(
    "efshub_http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status"],
)

HTTP_REQUEST_DURATION = Histogram(
    "efshub_http_request_duration_seconds",
    "HTTP request duration",
    ["method", "endpoint"],
    buckets=_BUCKETS_FAST,
)

# =============================================================================
# Task Metrics
# =============================================================================
# kind: filesystem_create, filesystem_update, filesystem_delete, accesspoint_create

TASKS_STARTED = Counter(
    "efshub_tasks_started_total",
    "Total asynchronous tasks spawned",
    ["kind"],
)

TASKS_FINISHED = Counter(
    "efshub_tasks_finished_total",
    "Total asynchronous tasks reaching a terminal status",
    ["kind", "status"],
)

TASKS_RUNNING = Gauge(
    "efshub_tasks_running",
    "Tasks currently running in this worker",
    multiprocess_mode="livesum",
)

TASK_DURATION = Histogram(
    "efshub_task_duration_seconds",
    "Wall clock duration of asynchronous tasks",
    ["kind"],
    buckets=_BUCKETS_SLOW,
)

# =============================================================================
# Saga Metrics
# =============================================================================

RETRY_ATTEMPTS = Counter(
    "efshub_retry_attempts_total",
    "Failed attempts observed by the retry helper",
)

ROLLBACK_COMPENSATIONS = Counter(
    "efshub_rollback_compensations_total",
    "Compensating actions executed during rollback",
    ["kind", "result"],
)

# =============================================================================
# Provider Metrics
# =============================================================================

AWS_ERRORS = Counter(
    "efshub_aws_errors_total",
    "Provider errors returned by AWS API calls",
    ["service", "code"],
)
