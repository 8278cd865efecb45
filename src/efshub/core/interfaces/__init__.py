"""Core interfaces for the orchestrator's external collaborators."""

from efshub.core.interfaces.account import AccountDefaults, AccountServices
from efshub.core.interfaces.control_plane import (
    AccessPointDescription,
    ControlPlane,
    FileSystemDescription,
    MountTargetDescription,
)
from efshub.core.interfaces.discovery import (
    KeyLocator,
    ResourceTagIndex,
    SubnetLocator,
    TaggedResource,
)
from efshub.core.interfaces.identity import (
    IdentityProvider,
    PolicyDescription,
    UserDescription,
)
from efshub.core.interfaces.tasks import Task, TaskStore

__all__ = [
    # Account
    "AccountDefaults",
    "AccountServices",
    # Control plane
    "ControlPlane",
    "FileSystemDescription",
    "MountTargetDescription",
    "AccessPointDescription",
    # Identity
    "IdentityProvider",
    "UserDescription",
    "PolicyDescription",
    # Discovery
    "ResourceTagIndex",
    "TaggedResource",
    "SubnetLocator",
    "KeyLocator",
    # Tasks
    "Task",
    "TaskStore",
]
