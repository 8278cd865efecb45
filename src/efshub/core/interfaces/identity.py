"""Identity management interface (users, groups, policies, access keys)."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime

from efshub.core.models import AccessKey, AccessKeyMetadata
from efshub.core.tags import Tag


@dataclass
class UserDescription:
    user_name: str
    path: str
    arn: str = ""
    create_date: datetime | None = None
    tags: list[Tag] = field(default_factory=list)


@dataclass
class PolicyDescription:
    policy_name: str
    arn: str
    path: str = "/"
    default_version_id: str = ""


class IdentityProvider(ABC):
    """Interface for path-scoped identity operations.

    Implementations: IamIdentityProvider
    """

    # Users

    @abstractmethod
    async def create_user(self, name: str, path: str, tags: list[Tag]) -> UserDescription: ...

    @abstractmethod
    async def wait_for_user(self, name: str) -> None: ...

    @abstractmethod
    async def get_user_with_path(self, path: str, name: str) -> UserDescription:
        """Get user by name, verifying it lives under path.

        Raises:
            NotFoundError: If the user is missing or has a different path
        """
        ...

    @abstractmethod
    async def delete_user(self, name: str) -> None: ...

    @abstractmethod
    async def list_users(self, path: str) -> list[str]: ...

    @abstractmethod
    async def tag_user(self, name: str, tags: list[Tag]) -> None: ...

    # Access keys

    @abstractmethod
    async def create_access_key(self, name: str) -> AccessKey: ...

    @abstractmethod
    async def list_access_keys(self, name: str) -> list[AccessKeyMetadata]: ...

    @abstractmethod
    async def delete_access_key(self, name: str, access_key_id: str) -> None: ...

    # Groups

    @abstractmethod
    async def add_user_to_group(self, name: str, group: str) -> None: ...

    @abstractmethod
    async def remove_user_from_group(self, name: str, group: str) -> None: ...

    @abstractmethod
    async def list_groups_for_user(self, name: str) -> list[str]: ...

    @abstractmethod
    async def get_group_with_path(self, name: str, path: str) -> str:
        """Return the group ARN.

        Raises:
            NotFoundError: If the group is missing or has a different path
        """
        ...

    @abstractmethod
    async def create_group(self, name: str, path: str) -> str: ...

    @abstractmethod
    async def list_attached_group_policies(self, name: str, path: str) -> list[str]: ...

    @abstractmethod
    async def attach_group_policy(self, name: str, policy_arn: str) -> None: ...

    # Managed policies

    @abstractmethod
    async def get_policy_by_name(self, name: str, path: str) -> PolicyDescription | None: ...

    @abstractmethod
    async def get_policy_document(self, arn: str, version_id: str) -> str:
        """Return the decoded JSON document of a policy version."""
        ...

    @abstractmethod
    async def create_policy(self, name: str, path: str, document: str) -> PolicyDescription: ...

    @abstractmethod
    async def wait_for_policy(self, arn: str) -> None: ...

    @abstractmethod
    async def update_policy(self, arn: str, document: str) -> None:
        """Publish document as the new default version."""
        ...
