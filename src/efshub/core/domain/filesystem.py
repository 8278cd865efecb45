"""Filesystem domain enums.

Values mirror what the EFS API reports and accepts, so they can be passed
through to the provider unchanged.
"""

from enum import StrEnum


class LifeCycleState(StrEnum):
    """Provider-reported lifecycle state of a filesystem, mount target or access point."""

    CREATING = "creating"
    AVAILABLE = "available"
    UPDATING = "updating"
    DELETING = "deleting"
    DELETED = "deleted"
    ERROR = "error"


class BackupStatus(StrEnum):
    """Backup policy status."""

    ENABLED = "ENABLED"
    ENABLING = "ENABLING"
    DISABLED = "DISABLED"
    DISABLING = "DISABLING"


class TransitionToIA(StrEnum):
    """Lifecycle rule for moving files to infrequent access storage."""

    NONE = "NONE"
    AFTER_7_DAYS = "AFTER_7_DAYS"
    AFTER_14_DAYS = "AFTER_14_DAYS"
    AFTER_30_DAYS = "AFTER_30_DAYS"
    AFTER_60_DAYS = "AFTER_60_DAYS"
    AFTER_90_DAYS = "AFTER_90_DAYS"


class TransitionToPrimary(StrEnum):
    """Lifecycle rule for moving files back to primary storage."""

    NONE = "NONE"
    AFTER_1_ACCESS = "AFTER_1_ACCESS"


# Backup policies a client may request (transitional states are provider-only)
REQUESTABLE_BACKUP = frozenset({BackupStatus.ENABLED, BackupStatus.DISABLED})
