"""Fixtures for efshub unit tests.

Provider doubles are small in-memory models of EFS and IAM. Every call is
recorded in ``calls`` so tests can assert on what reached the provider,
and ``fail_on`` injects an error into a named method.
"""

import itertools
from dataclasses import replace
from unittest.mock import AsyncMock

import pytest

from efshub.control.tasks import TaskTracker
from efshub.core.domain import TaskStatus
from efshub.core.errors import NotFoundError
from efshub.core.interfaces import (
    AccessPointDescription,
    AccountDefaults,
    AccountServices,
    ControlPlane,
    FileSystemDescription,
    IdentityProvider,
    KeyLocator,
    MountTargetDescription,
    PolicyDescription,
    ResourceTagIndex,
    SubnetLocator,
    TaggedResource,
    UserDescription,
)
from efshub.core.interfaces.tasks import Task, TaskStore, utc_now
from efshub.core.models import AccessKey, AccessKeyMetadata
from efshub.core.tags import ORG_TAG, SPACE_TAG, Tag, tag_value

ORG = "acme"
ACCOUNT = "123456789012"


class MemoryTaskStore(TaskStore):
    """Task store keeping records in a dict."""

    def __init__(self) -> None:
        self.tasks: dict[str, Task] = {}

    async def create(self, task: Task) -> None:
        self.tasks[task.id] = Task.from_dict(task.to_dict())

    async def _task(self, task_id: str) -> Task:
        if task_id not in self.tasks:
            raise NotFoundError(f"task {task_id} not found")
        task = self.tasks[task_id]
        task.updated_at = utc_now()
        return task

    async def start(self, task_id: str) -> None:
        (await self._task(task_id)).status = TaskStatus.RUNNING

    async def check_in(self, task_id: str) -> None:
        (await self._task(task_id)).checkin_at = utc_now()

    async def append_log(self, task_id: str, message: str) -> None:
        (await self._task(task_id)).events.append(message)

    async def fail(self, task_id: str, reason: str) -> None:
        task = await self._task(task_id)
        task.status = TaskStatus.FAILED
        task.failure = reason

    async def complete(self, task_id: str) -> None:
        (await self._task(task_id)).status = TaskStatus.COMPLETED

    async def get(self, task_id: str) -> Task | None:
        return self.tasks.get(task_id)


class _Recorder:
    def __init__(self) -> None:
        self.calls: list[tuple] = []
        self.fail_on: dict[str, Exception] = {}

    def _record(self, name: str, *args) -> None:
        self.calls.append((name, *args))
        if name in self.fail_on:
            raise self.fail_on[name]

    def called(self, name: str) -> list[tuple]:
        return [c for c in self.calls if c[0] == name]


class FakeControlPlane(_Recorder, ControlPlane):
    """EFS model: filesystems become available on first read, mount targets at once."""

    def __init__(self) -> None:
        super().__init__()
        self._ids = itertools.count(1)
        self.filesystems: dict[str, FileSystemDescription] = {}
        self.mount_targets: dict[str, MountTargetDescription] = {}
        self.access_points: dict[str, AccessPointDescription] = {}
        self.backup: dict[str, str] = {}
        self.lifecycle: dict[str, tuple[str, str]] = {}
        self.access_policy: dict[str, str] = {}
        # states reported instead of "available" on read
        self.stuck: dict[str, str] = {}

    def add_filesystem(self, name: str, group: str, state: str = "available") -> FileSystemDescription:
        fs_id = f"fs-{next(self._ids):04d}"
        fs = FileSystemDescription(
            file_system_id=fs_id,
            life_cycle_state=state,
            file_system_arn=f"arn:aws:elasticfilesystem:us-east-1:{ACCOUNT}:file-system/{fs_id}",
            name=name,
            kms_key_id="key-1",
            tags=[
                Tag(key="Name", value=name),
                Tag(key=ORG_TAG, value=ORG),
                Tag(key=SPACE_TAG, value=group),
            ],
        )
        self.filesystems[fs_id] = fs
        return fs

    def add_mount_target(self, fs_id: str, state: str = "available") -> MountTargetDescription:
        mt = MountTargetDescription(
            mount_target_id=f"fsmt-{next(self._ids):04d}",
            file_system_id=fs_id,
            life_cycle_state=state,
            subnet_id="subnet-a",
        )
        self.mount_targets[mt.mount_target_id] = mt
        return mt

    def _fs(self, fs_id: str) -> FileSystemDescription:
        if fs_id not in self.filesystems:
            raise NotFoundError(f"filesystem {fs_id} not found")
        return self.filesystems[fs_id]

    async def create_filesystem(
        self, *, creation_token, kms_key_id, tags, availability_zone=None
    ) -> FileSystemDescription:
        self._record("create_filesystem", creation_token, kms_key_id, availability_zone)
        fs_id = f"fs-{next(self._ids):04d}"
        fs = FileSystemDescription(
            file_system_id=fs_id,
            life_cycle_state="creating",
            file_system_arn=f"arn:aws:elasticfilesystem:us-east-1:{ACCOUNT}:file-system/{fs_id}",
            name=tag_value(tags, "Name") or "",
            kms_key_id=kms_key_id,
            availability_zone_name=availability_zone,
            tags=list(tags),
        )
        self.filesystems[fs_id] = fs
        return replace(fs)

    async def get_filesystem(self, fs_id: str) -> FileSystemDescription:
        self._record("get_filesystem", fs_id)
        fs = self._fs(fs_id)
        fs.life_cycle_state = self.stuck.get(fs_id, "available")
        fs.number_of_mount_targets = sum(
            1 for mt in self.mount_targets.values() if mt.file_system_id == fs_id
        )
        return replace(fs)

    async def delete_filesystem(self, fs_id: str) -> None:
        self._record("delete_filesystem", fs_id)
        self._fs(fs_id)
        del self.filesystems[fs_id]

    async def create_mount_target(self, fs_id, subnet_id, security_groups) -> MountTargetDescription:
        self._record("create_mount_target", fs_id, subnet_id, tuple(security_groups))
        mt = self.add_mount_target(fs_id)
        mt.subnet_id = subnet_id
        return replace(mt)

    async def list_mount_targets(self, fs_id: str) -> list[MountTargetDescription]:
        self._record("list_mount_targets", fs_id)
        return [replace(mt) for mt in self.mount_targets.values() if mt.file_system_id == fs_id]

    async def delete_mount_target(self, mount_target_id: str) -> None:
        self._record("delete_mount_target", mount_target_id)
        if mount_target_id not in self.mount_targets:
            raise NotFoundError(f"mount target {mount_target_id} not found")
        del self.mount_targets[mount_target_id]

    async def create_access_point(
        self, *, client_token, fs_id, tags, posix_user=None, root_directory=None
    ) -> AccessPointDescription:
        self._record("create_access_point", client_token, fs_id)
        ap = AccessPointDescription(
            access_point_id=f"fsap-{next(self._ids):04d}",
            file_system_id=fs_id,
            life_cycle_state="creating",
            access_point_arn=f"arn:aws:elasticfilesystem:us-east-1:{ACCOUNT}:access-point/x",
            name=tag_value(tags, "Name") or "",
            posix_user=posix_user,
            root_directory=root_directory,
            tags=list(tags),
        )
        self.access_points[ap.access_point_id] = ap
        return replace(ap)

    async def list_access_points(self, fs_id: str) -> list[AccessPointDescription]:
        self._record("list_access_points", fs_id)
        return [replace(ap) for ap in self.access_points.values() if ap.file_system_id == fs_id]

    async def get_access_point(self, ap_id: str) -> AccessPointDescription:
        self._record("get_access_point", ap_id)
        if ap_id not in self.access_points:
            raise NotFoundError(f"access point {ap_id} not found")
        ap = self.access_points[ap_id]
        ap.life_cycle_state = self.stuck.get(ap_id, "available")
        return replace(ap)

    async def delete_access_point(self, ap_id: str) -> None:
        self._record("delete_access_point", ap_id)
        if ap_id not in self.access_points:
            raise NotFoundError(f"access point {ap_id} not found")
        del self.access_points[ap_id]

    async def set_backup_policy(self, fs_id: str, status: str) -> None:
        self._record("set_backup_policy", fs_id, status)
        self.backup[fs_id] = status

    async def get_backup_policy(self, fs_id: str) -> str:
        self._record("get_backup_policy", fs_id)
        return self.backup.get(fs_id, "DISABLED")

    async def set_lifecycle_configuration(self, fs_id, transition_to_ia, transition_to_primary) -> None:
        self._record("set_lifecycle_configuration", fs_id, transition_to_ia, transition_to_primary)
        self.lifecycle[fs_id] = (transition_to_ia, transition_to_primary)

    async def get_lifecycle_configuration(self, fs_id: str) -> tuple[str, str]:
        self._record("get_lifecycle_configuration", fs_id)
        return self.lifecycle.get(fs_id, ("NONE", "NONE"))

    async def set_access_policy(self, fs_id: str, document: str) -> None:
        self._record("set_access_policy", fs_id, document)
        self.access_policy[fs_id] = document

    async def get_access_policy(self, fs_id: str) -> str | None:
        self._record("get_access_policy", fs_id)
        return self.access_policy.get(fs_id)

    async def tag_resource(self, resource_id: str, tags: list[Tag]) -> None:
        self._record("tag_resource", resource_id)
        fs = self._fs(resource_id)
        fs.tags = list(tags)


class FakeTagIndex(ResourceTagIndex):
    """Tag index view over the fake control plane's filesystems."""

    def __init__(self, control_plane: FakeControlPlane) -> None:
        self._cp = control_plane
        self.get_resources_error: Exception | None = None

    async def get_resources(self, resource_types, tag_filters) -> list[TaggedResource]:
        if self.get_resources_error is not None:
            raise self.get_resources_error
        out = []
        for fs in self._cp.filesystems.values():
            if all(tag_value(fs.tags, k) in v for k, v in tag_filters.items()):
                out.append(TaggedResource(arn=fs.file_system_arn, tags=list(fs.tags)))
        return out


class FakeIdentity(_Recorder, IdentityProvider):
    """IAM model: users, keys, groups and managed policies."""

    def __init__(self) -> None:
        super().__init__()
        self._ids = itertools.count(1)
        self.users: dict[str, UserDescription] = {}
        self.keys: dict[str, list[AccessKeyMetadata]] = {}
        self.memberships: dict[str, set[str]] = {}
        self.groups: dict[str, str] = {}
        self.group_policies: dict[str, list[str]] = {}
        self.policies: dict[str, tuple[PolicyDescription, str]] = {}

    async def create_user(self, name, path, tags) -> UserDescription:
        self._record("create_user", name, path)
        user = UserDescription(user_name=name, path=path, tags=list(tags))
        self.users[name] = user
        self.keys[name] = []
        self.memberships[name] = set()
        return replace(user)

    async def wait_for_user(self, name: str) -> None:
        self._record("wait_for_user", name)

    async def get_user_with_path(self, path: str, name: str) -> UserDescription:
        self._record("get_user_with_path", path, name)
        user = self.users.get(name)
        if user is None or user.path != path:
            raise NotFoundError(f"user {name} not found")
        return replace(user)

    async def delete_user(self, name: str) -> None:
        self._record("delete_user", name)
        self.users.pop(name)

    async def list_users(self, path: str) -> list[str]:
        self._record("list_users", path)
        return [u.user_name for u in self.users.values() if u.path == path]

    async def tag_user(self, name: str, tags: list[Tag]) -> None:
        self._record("tag_user", name)
        self.users[name].tags = list(tags)

    async def create_access_key(self, name: str) -> AccessKey:
        self._record("create_access_key", name)
        key_id = f"AKIA{next(self._ids):04d}"
        self.keys[name].append(AccessKeyMetadata(access_key_id=key_id, status="Active"))
        return AccessKey(access_key_id=key_id, secret_access_key="secret", status="Active")

    async def list_access_keys(self, name: str) -> list[AccessKeyMetadata]:
        self._record("list_access_keys", name)
        return list(self.keys.get(name, []))

    async def delete_access_key(self, name: str, access_key_id: str) -> None:
        self._record("delete_access_key", name, access_key_id)
        self.keys[name] = [k for k in self.keys[name] if k.access_key_id != access_key_id]

    async def add_user_to_group(self, name: str, group: str) -> None:
        self._record("add_user_to_group", name, group)
        self.memberships[name].add(group)

    async def remove_user_from_group(self, name: str, group: str) -> None:
        self._record("remove_user_from_group", name, group)
        self.memberships[name].discard(group)

    async def list_groups_for_user(self, name: str) -> list[str]:
        self._record("list_groups_for_user", name)
        return sorted(self.memberships.get(name, ()))

    async def get_group_with_path(self, name: str, path: str) -> str:
        self._record("get_group_with_path", name, path)
        if self.groups.get(name) != path:
            raise NotFoundError(f"group {name} not found")
        return name

    async def create_group(self, name: str, path: str) -> str:
        self._record("create_group", name, path)
        self.groups[name] = path
        self.group_policies[name] = []
        return name

    async def list_attached_group_policies(self, name: str, path: str) -> list[str]:
        self._record("list_attached_group_policies", name)
        return list(self.group_policies.get(name, []))

    async def attach_group_policy(self, name: str, policy_arn: str) -> None:
        self._record("attach_group_policy", name, policy_arn)
        self.group_policies[name].append(policy_arn)

    async def get_policy_by_name(self, name: str, path: str) -> PolicyDescription | None:
        self._record("get_policy_by_name", name, path)
        found = self.policies.get(name)
        return found[0] if found else None

    async def get_policy_document(self, arn: str, version_id: str) -> str:
        self._record("get_policy_document", arn, version_id)
        for policy, document in self.policies.values():
            if policy.arn == arn:
                return document
        raise NotFoundError(f"policy {arn} not found")

    async def create_policy(self, name: str, path: str, document: str) -> PolicyDescription:
        self._record("create_policy", name, path)
        policy = PolicyDescription(
            policy_name=name,
            arn=f"arn:aws:iam::{ACCOUNT}:policy{path}{name}",
            path=path,
            default_version_id="v1",
        )
        self.policies[name] = (policy, document)
        return policy

    async def wait_for_policy(self, arn: str) -> None:
        self._record("wait_for_policy", arn)

    async def update_policy(self, arn: str, document: str) -> None:
        self._record("update_policy", arn)
        for name, (policy, _) in self.policies.items():
            if policy.arn == arn:
                self.policies[name] = (policy, document)


class FakeSubnets(SubnetLocator):
    def __init__(self) -> None:
        self.azs: dict[str, str] = {"subnet-a": "us-east-1a", "subnet-b": "us-east-1b"}

    async def subnet_azs(self, subnets: list[str]) -> dict[str, str]:
        return {s: self.azs[s] for s in subnets if s in self.azs}


@pytest.fixture
def task_store() -> MemoryTaskStore:
    return MemoryTaskStore()


@pytest.fixture
def tracker(task_store: MemoryTaskStore) -> TaskTracker:
    return TaskTracker(task_store, queue_size=10, rollback_timeout=5.0)


@pytest.fixture
def control_plane() -> FakeControlPlane:
    return FakeControlPlane()


@pytest.fixture
def identity() -> FakeIdentity:
    return FakeIdentity()


@pytest.fixture
def tag_index(control_plane: FakeControlPlane) -> FakeTagIndex:
    return FakeTagIndex(control_plane)


@pytest.fixture
def key_locator() -> AsyncMock:
    keys = AsyncMock(spec=KeyLocator)
    keys.find_key_by_tags = AsyncMock(return_value=None)
    return keys


@pytest.fixture
def services(
    control_plane: FakeControlPlane,
    identity: FakeIdentity,
    tag_index: FakeTagIndex,
    key_locator: AsyncMock,
) -> AccountServices:
    return AccountServices(
        account=ACCOUNT,
        control_plane=control_plane,
        identity=identity,
        subnets=FakeSubnets(),
        tag_index=tag_index,
        keys=key_locator,
        defaults=AccountDefaults(
            subnets=["subnet-a", "subnet-b"],
            security_groups=["sg-default"],
            kms_key_id="key-default",
        ),
    )


@pytest.fixture
def no_backoff(monkeypatch: pytest.MonkeyPatch) -> None:
    """Make retry sleeps zero-length."""
    monkeypatch.setattr("efshub.core.retryable.jittered", lambda delay: 0)
