"""Filesystem request/response models."""

from datetime import datetime

from pydantic import BaseModel, Field

from efshub.core.models.accesspoint import AccessPoint, AccessPointCreateRequest
from efshub.core.policy import FileSystemAccessPolicy
from efshub.core.tags import Tag


class FileSystemCreateRequest(BaseModel):
    """Create filesystem request.

    Empty policy strings mean "use the default" and are normalized during
    validation (backup DISABLED, lifecycle and primary rules NONE).
    """

    name: str = ""
    access_points: list[AccessPointCreateRequest] = Field(default_factory=list)
    access_policy: FileSystemAccessPolicy | None = None
    backup_policy: str = ""
    kms_key_id: str = ""
    life_cycle_configuration: str = ""
    transition_to_primary_storage_class: str = ""
    one_zone: bool = False
    sgs: list[str] | None = None
    subnets: list[str] | None = None
    tags: list[Tag] = Field(default_factory=list)


class FileSystemUpdateRequest(BaseModel):
    """Update filesystem request; only non-empty fields are applied."""

    access_policy: FileSystemAccessPolicy | None = None
    backup_policy: str = ""
    life_cycle_configuration: str = ""
    transition_to_primary_storage_class: str = ""
    tags: list[Tag] | None = None


class FileSystemSize(BaseModel):
    """Metered size snapshot (eventually consistent)."""

    timestamp: datetime | None = None
    value: int = 0
    value_in_ia: int = 0
    value_in_standard: int = 0


class MountTarget(BaseModel):
    """Mount target representation."""

    mount_target_id: str
    life_cycle_state: str
    subnet_id: str
    ip_address: str = ""
    availability_zone_id: str = ""
    availability_zone_name: str = ""


class FileSystemResponse(BaseModel):
    """Full filesystem representation.

    A filesystem has zero or more mount targets and zero or more access points.
    """

    access_points: list[AccessPoint] = Field(default_factory=list)
    access_policy: FileSystemAccessPolicy | None = None
    availability_zone: str = ""
    backup_policy: str = ""
    creation_time: datetime | None = None
    file_system_arn: str = ""
    file_system_id: str
    kms_key_id: str = ""
    life_cycle_state: str = ""
    life_cycle_configuration: str = "NONE"
    transition_to_primary_storage_class: str = "NONE"
    mount_targets: list[MountTarget] = Field(default_factory=list)
    name: str = ""
    number_of_access_points: int = 0
    number_of_mount_targets: int = 0
    one_zone: bool = False
    size_in_bytes: FileSystemSize | None = None
    tags: list[Tag] = Field(default_factory=list)
