"""Task domain enums."""

from enum import StrEnum


class TaskStatus(StrEnum):
    """Status of an asynchronous task."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


TERMINAL_STATUSES = frozenset({TaskStatus.COMPLETED, TaskStatus.FAILED})


class TaskKind(StrEnum):
    """Workflow kinds (used as metric labels)."""

    FILESYSTEM_CREATE = "filesystem_create"
    FILESYSTEM_UPDATE = "filesystem_update"
    FILESYSTEM_DELETE = "filesystem_delete"
    ACCESSPOINT_CREATE = "accesspoint_create"
