"""Validation of filesystem policy enumerations.

All checks run before any provider call. Each validator returns the
normalized value (empty means default).
"""

from efshub.core.domain import (
    REQUESTABLE_BACKUP,
    BackupStatus,
    TransitionToIA,
    TransitionToPrimary,
)
from efshub.core.errors import BadRequestError

_LIFECYCLE = frozenset(v.value for v in TransitionToIA)
_PRIMARY = frozenset(v.value for v in TransitionToPrimary)

_LIFECYCLE_VALUES = " | ".join(v.value for v in TransitionToIA)
_PRIMARY_VALUES = " | ".join(v.value for v in TransitionToPrimary)
_BACKUP_VALUES = " | ".join(v.value for v in BackupStatus if v in REQUESTABLE_BACKUP)


def validate_lifecycle(value: str) -> str:
    if value in ("", TransitionToIA.NONE):
        return TransitionToIA.NONE.value
    if value in _LIFECYCLE:
        return value
    raise BadRequestError(
        f"invalid lifecycle configuration, valid values are {_LIFECYCLE_VALUES}"
    )


def validate_transition_to_primary(value: str) -> str:
    if value in ("", TransitionToPrimary.NONE):
        return TransitionToPrimary.NONE.value
    if value in _PRIMARY:
        return value
    raise BadRequestError(
        "invalid transition to primary storage class rule, "
        f"valid values are {_PRIMARY_VALUES}"
    )


def validate_backup_policy(value: str) -> str:
    if value == "":
        return BackupStatus.DISABLED.value
    if value in REQUESTABLE_BACKUP:
        return value
    raise BadRequestError(f"invalid backup policy, valid values are {_BACKUP_VALUES}")


def require(value: str, message: str) -> str:
    if not value:
        raise BadRequestError(message)
    return value
