"""Domain enums."""

from efshub.core.domain.filesystem import (
    REQUESTABLE_BACKUP,
    BackupStatus,
    LifeCycleState,
    TransitionToIA,
    TransitionToPrimary,
)
from efshub.core.domain.task import TERMINAL_STATUSES, TaskKind, TaskStatus

__all__ = [
    "BackupStatus",
    "LifeCycleState",
    "TransitionToIA",
    "TransitionToPrimary",
    "REQUESTABLE_BACKUP",
    "TaskKind",
    "TaskStatus",
    "TERMINAL_STATUSES",
]
