"""Request and response models shared by the API and the workflows."""

from efshub.core.models.accesspoint import (
    AccessPoint,
    AccessPointCreateRequest,
    CreationInfo,
    PosixUser,
    RootDirectory,
)
from efshub.core.models.filesystem import (
    FileSystemCreateRequest,
    FileSystemResponse,
    FileSystemSize,
    FileSystemUpdateRequest,
    MountTarget,
)
from efshub.core.models.user import (
    AccessKey,
    AccessKeyMetadata,
    FileSystemUserCreateRequest,
    FileSystemUserResponse,
    FileSystemUserUpdateRequest,
)

__all__ = [
    "AccessKey",
    "AccessKeyMetadata",
    "AccessPoint",
    "AccessPointCreateRequest",
    "CreationInfo",
    "FileSystemCreateRequest",
    "FileSystemResponse",
    "FileSystemSize",
    "FileSystemUpdateRequest",
    "FileSystemUserCreateRequest",
    "FileSystemUserResponse",
    "FileSystemUserUpdateRequest",
    "MountTarget",
    "PosixUser",
    "RootDirectory",
]
