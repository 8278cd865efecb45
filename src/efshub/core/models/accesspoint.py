"""Access point request/response models."""

from pydantic import BaseModel, Field


class PosixUser(BaseModel):
    """POSIX identity enforced for all file operations through an access point."""

    uid: int
    gid: int
    secondary_gids: list[int] = Field(default_factory=list)


class CreationInfo(BaseModel):
    """Ownership applied when the access point root directory is created."""

    owner_uid: int
    owner_gid: int
    permissions: str = Field(pattern=r"^[0-7]{3,4}$")


class RootDirectory(BaseModel):
    """Directory exposed as the root of the access point."""

    path: str = "/"
    creation_info: CreationInfo | None = None


class AccessPointCreateRequest(BaseModel):
    """Create access point request (standalone or embedded in a filesystem create)."""

    name: str = ""
    posix_user: PosixUser | None = None
    root_directory: RootDirectory | None = None


class AccessPoint(BaseModel):
    """Access point representation."""

    access_point_arn: str
    access_point_id: str
    life_cycle_state: str
    name: str = ""
    posix_user: PosixUser | None = None
    root_directory: RootDirectory | None = None
