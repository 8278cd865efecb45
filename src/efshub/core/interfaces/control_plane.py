"""Resource control plane interface (filesystems, mount targets, access points)."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime

from efshub.core.models import FileSystemSize, PosixUser, RootDirectory
from efshub.core.tags import Tag


@dataclass
class FileSystemDescription:
    """Filesystem as reported by the provider."""

    file_system_id: str
    life_cycle_state: str
    file_system_arn: str = ""
    name: str = ""
    kms_key_id: str = ""
    number_of_mount_targets: int = 0
    creation_time: datetime | None = None
    availability_zone_name: str | None = None
    size: FileSystemSize | None = None
    tags: list[Tag] = field(default_factory=list)


@dataclass
class MountTargetDescription:
    """Mount target as reported by the provider."""

    mount_target_id: str
    file_system_id: str
    life_cycle_state: str
    subnet_id: str = ""
    ip_address: str = ""
    availability_zone_id: str = ""
    availability_zone_name: str = ""


@dataclass
class AccessPointDescription:
    """Access point as reported by the provider."""

    access_point_id: str
    file_system_id: str
    life_cycle_state: str
    access_point_arn: str = ""
    name: str = ""
    posix_user: PosixUser | None = None
    root_directory: RootDirectory | None = None
    tags: list[Tag] = field(default_factory=list)


class ControlPlane(ABC):
    """Interface for filesystem resource operations.

    Every call may raise an EfsHubError subclass mapped from the provider
    error. Calls are not idempotent unless they accept a token.

    Implementations: EfsControlPlane
    """

    # Filesystems

    @abstractmethod
    async def create_filesystem(
        self,
        *,
        creation_token: str,
        kms_key_id: str,
        tags: list[Tag],
        availability_zone: str | None = None,
    ) -> FileSystemDescription:
        """Create an encrypted, general purpose filesystem."""
        ...

    @abstractmethod
    async def get_filesystem(self, fs_id: str) -> FileSystemDescription:
        """Get filesystem by ID.

        Raises:
            NotFoundError: If the filesystem does not exist
        """
        ...

    @abstractmethod
    async def delete_filesystem(self, fs_id: str) -> None: ...

    # Mount targets

    @abstractmethod
    async def create_mount_target(
        self, fs_id: str, subnet_id: str, security_groups: list[str]
    ) -> MountTargetDescription: ...

    @abstractmethod
    async def list_mount_targets(self, fs_id: str) -> list[MountTargetDescription]: ...

    @abstractmethod
    async def delete_mount_target(self, mount_target_id: str) -> None: ...

    # Access points

    @abstractmethod
    async def create_access_point(
        self,
        *,
        client_token: str,
        fs_id: str,
        tags: list[Tag],
        posix_user: PosixUser | None = None,
        root_directory: RootDirectory | None = None,
    ) -> AccessPointDescription: ...

    @abstractmethod
    async def list_access_points(self, fs_id: str) -> list[AccessPointDescription]: ...

    @abstractmethod
    async def get_access_point(self, ap_id: str) -> AccessPointDescription: ...

    @abstractmethod
    async def delete_access_point(self, ap_id: str) -> None: ...

    # Policies

    @abstractmethod
    async def set_backup_policy(self, fs_id: str, status: str) -> None: ...

    @abstractmethod
    async def get_backup_policy(self, fs_id: str) -> str: ...

    @abstractmethod
    async def set_lifecycle_configuration(
        self, fs_id: str, transition_to_ia: str, transition_to_primary: str
    ) -> None:
        """Replace the lifecycle policies; NONE clears a rule."""
        ...

    @abstractmethod
    async def get_lifecycle_configuration(self, fs_id: str) -> tuple[str, str]:
        """Return (transition_to_ia, transition_to_primary), NONE when unset."""
        ...

    @abstractmethod
    async def set_access_policy(self, fs_id: str, document: str) -> None: ...

    @abstractmethod
    async def get_access_policy(self, fs_id: str) -> str | None:
        """Return the resource policy JSON, or None when no policy is set."""
        ...

    # Tags

    @abstractmethod
    async def tag_resource(self, resource_id: str, tags: list[Tag]) -> None: ...
