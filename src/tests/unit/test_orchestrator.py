"""Tests for the orchestrator and the account registry."""

import json

import pytest

from efshub.app.config import AwsConfig, Settings, TasksConfig
from efshub.control.orchestrator import FILESYSTEM_ACTIONS, Orchestrator
from efshub.core.domain import TaskStatus
from efshub.core.errors import NotFoundError
from efshub.core.models import AccessPointCreateRequest, FileSystemUserCreateRequest
from efshub.infra.aws import EFS_READ_ONLY_POLICY_ARN, IAM_READ_ONLY_POLICY_ARN, AccountRegistry

ORG = "acme"
GROUP = "space-1"


class FakeRegistry:
    """Hands out the in-memory services and records the session scoping."""

    def __init__(self, services) -> None:
        self._services = services
        self.sessions: list[tuple[str, dict, tuple]] = []

    async def services(self, account, policy="", policy_arns=()):
        self.sessions.append((account, json.loads(policy), tuple(policy_arns)))
        return self._services


def actions(policy: dict) -> set[str]:
    return {a for s in policy["Statement"] for a in s["Action"]}


@pytest.fixture
def registry(services) -> FakeRegistry:
    return FakeRegistry(services)


@pytest.fixture
def orchestrator(registry, tracker) -> Orchestrator:
    settings = Settings(
        org=ORG,
        tasks=TasksConfig(wait_attempts=5, wait_backoff=0.0, delete_attempts=2),
    )
    return Orchestrator(registry, tracker, settings)


class TestSessionScoping:
    """Tests for per-operation session policies."""

    @pytest.mark.asyncio
    async def test_filesystem_reads_use_filesystem_actions(self, orchestrator, registry) -> None:
        await orchestrator.list_filesystems("spinup", GROUP)

        account, policy, arns = registry.sessions[0]
        assert account == "spinup"
        assert actions(policy) == set(FILESYSTEM_ACTIONS)
        assert arns == ()

    @pytest.mark.asyncio
    async def test_filesystem_delete_adds_user_cleanup(self, orchestrator, registry, control_plane) -> None:
        fs = control_plane.add_filesystem("data", GROUP)
        handle = await orchestrator.delete_filesystem("spinup", GROUP, fs.file_system_id)
        await handle.wait()

        _, policy, _ = registry.sessions[0]
        assert "DeleteRepositoryUser" in {s.get("Sid") for s in policy["Statement"]}
        assert set(FILESYSTEM_ACTIONS) <= actions(policy)

    @pytest.mark.asyncio
    async def test_user_reads_use_managed_read_only_policies(
        self, orchestrator, registry, control_plane
    ) -> None:
        fs = control_plane.add_filesystem("data", GROUP)
        await orchestrator.list_users("spinup", GROUP, fs.file_system_id)

        _, policy, arns = registry.sessions[0]
        assert actions(policy) == {"tag:GetResources"}
        assert set(arns) == {IAM_READ_ONLY_POLICY_ARN, EFS_READ_ONLY_POLICY_ARN}

    @pytest.mark.asyncio
    async def test_user_create_adds_create_policy(self, orchestrator, registry, control_plane) -> None:
        fs = control_plane.add_filesystem("data", GROUP)
        await orchestrator.create_user(
            "spinup", GROUP, fs.file_system_id, FileSystemUserCreateRequest(user_name="bob")
        )

        _, policy, arns = registry.sessions[0]
        assert "CreateRepositoryUser" in {s.get("Sid") for s in policy["Statement"]}
        assert arns == (EFS_READ_ONLY_POLICY_ARN,)


class TestScopeChecks:
    """Sub-resource operations verify the filesystem is in scope first."""

    @pytest.mark.asyncio
    async def test_access_point_on_foreign_filesystem(self, orchestrator, control_plane) -> None:
        fs = control_plane.add_filesystem("data", "space-2")

        with pytest.raises(NotFoundError, match="filesystem doesnt exist"):
            await orchestrator.create_access_point("spinup", GROUP, fs.file_system_id, AccessPointCreateRequest())
        assert control_plane.called("create_access_point") == []

    @pytest.mark.asyncio
    async def test_user_on_foreign_filesystem(self, orchestrator, identity, control_plane) -> None:
        fs = control_plane.add_filesystem("data", "space-2")

        with pytest.raises(NotFoundError):
            await orchestrator.delete_user("spinup", GROUP, fs.file_system_id, "bob")
        assert identity.calls == []


class TestTasks:
    """Tests for task lookup."""

    @pytest.mark.asyncio
    async def test_unknown_task(self, orchestrator) -> None:
        with pytest.raises(NotFoundError, match="task nope not found"):
            await orchestrator.task("nope")

    @pytest.mark.asyncio
    async def test_access_point_task_is_pollable(self, orchestrator, control_plane) -> None:
        fs = control_plane.add_filesystem("data", GROUP)
        _, handle = await orchestrator.create_access_point(
            "spinup", GROUP, fs.file_system_id, AccessPointCreateRequest(name="web")
        )
        await handle.wait()

        task = await orchestrator.task(handle.id)
        assert task.status == TaskStatus.COMPLETED


class TestAccountRegistry:
    """Tests for account alias resolution."""

    @pytest.fixture
    def registry(self) -> AccountRegistry:
        return AccountRegistry(AwsConfig(role_name="EfsRole"), {"spinup": "012345678901"})

    def test_alias(self, registry: AccountRegistry) -> None:
        assert registry.account_number("spinup") == "012345678901"

    def test_bare_number(self, registry: AccountRegistry) -> None:
        assert registry.account_number("999999999999") == "999999999999"

    def test_unknown_alias(self, registry: AccountRegistry) -> None:
        with pytest.raises(NotFoundError, match="account not found"):
            registry.account_number("nope")

    def test_role_arn(self, registry: AccountRegistry) -> None:
        assert registry.role_arn("012345678901") == "arn:aws:iam::012345678901:role/EfsRole"
