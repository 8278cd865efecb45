"""Request-scoped entry point used by the HTTP routes.

Every operation assumes the service role in the target account with a
session policy narrowed to what that operation needs, builds the
workflows on top of the resulting adapters, and delegates. Sub-resource
operations first check that the filesystem is in the tenant scope.
"""

from collections.abc import Sequence

from efshub.app.config import Settings
from efshub.control.filesystems import FileSystemWorkflows
from efshub.control.tasks import TaskHandle, TaskTracker
from efshub.core.errors import NotFoundError
from efshub.core.interfaces.tasks import Task
from efshub.core.models import (
    AccessPoint,
    AccessPointCreateRequest,
    FileSystemCreateRequest,
    FileSystemResponse,
    FileSystemUpdateRequest,
    FileSystemUserCreateRequest,
    FileSystemUserResponse,
    FileSystemUserUpdateRequest,
)
from efshub.core.policy import (
    generate_policy,
    merge_policies,
    user_create_policy,
    user_delete_policy,
    user_update_policy,
)
from efshub.core.retryable import RetryPolicy
from efshub.infra.aws import EFS_READ_ONLY_POLICY_ARN, IAM_READ_ONLY_POLICY_ARN, AccountRegistry

# Actions needed by the filesystem workflows themselves
FILESYSTEM_ACTIONS = (
    "elasticfilesystem:*",
    "ec2:DescribeSubnets",
    "kms:ListKeys",
    "kms:ListResourceTags",
    "tag:GetResources",
    "iam:ListUsers",
)


class Orchestrator:
    """Builds account-scoped workflows per request.

    Usage:
        orchestrator = Orchestrator(registry, tracker, settings)
        fs, handle = await orchestrator.create_filesystem("spinup", "space-1", req)
    """

    def __init__(self, registry: AccountRegistry, tracker: TaskTracker, settings: Settings) -> None:
        self._registry = registry
        self._tracker = tracker
        self._org = settings.org
        self._wait = RetryPolicy(settings.tasks.wait_attempts, settings.tasks.wait_backoff)
        self._delete = RetryPolicy(settings.tasks.delete_attempts, settings.tasks.wait_backoff)

    @property
    def tracker(self) -> TaskTracker:
        return self._tracker

    async def _workflows(
        self,
        account: str,
        *extra_policies: str,
        policy_arns: Sequence[str] = (),
    ) -> FileSystemWorkflows:
        policy = merge_policies(generate_policy(*FILESYSTEM_ACTIONS), *extra_policies)
        services = await self._registry.services(account, policy, policy_arns)
        return FileSystemWorkflows(
            services,
            self._tracker,
            self._org,
            wait=self._wait,
            delete=self._delete,
        )

    async def _user_workflows(
        self,
        account: str,
        policy: str = "",
        policy_arns: Sequence[str] = (EFS_READ_ONLY_POLICY_ARN,),
    ) -> FileSystemWorkflows:
        # IAM has no resource tags, so user sessions are scoped by path instead of org tag
        inline = merge_policies(generate_policy("tag:GetResources"), policy)
        services = await self._registry.services(account, inline, policy_arns)
        return FileSystemWorkflows(services, self._tracker, self._org, wait=self._wait)

    # =========================================================================
    # Tasks
    # =========================================================================

    async def task(self, task_id: str) -> Task:
        """Return the task record.

        Raises:
            NotFoundError: Unknown or expired task id
        """
        task = await self._tracker.get(task_id)
        if task is None:
            raise NotFoundError(f"task {task_id} not found")
        return task

    # =========================================================================
    # Filesystems
    # =========================================================================

    async def list_filesystems(self, account: str, group: str | None = None) -> list[str]:
        workflows = await self._workflows(account)
        return await workflows.list_ids(group)

    async def get_filesystem(self, account: str, group: str, fs_id: str) -> FileSystemResponse:
        workflows = await self._workflows(account)
        return await workflows.get(group, fs_id)

    async def create_filesystem(
        self, account: str, group: str, req: FileSystemCreateRequest
    ) -> tuple[FileSystemResponse, TaskHandle]:
        workflows = await self._workflows(account)
        return await workflows.create(group, req)

    async def update_filesystem(
        self, account: str, group: str, fs_id: str, req: FileSystemUpdateRequest
    ) -> TaskHandle:
        workflows = await self._workflows(account, user_update_policy(self._org))
        return await workflows.update(group, fs_id, req)

    async def delete_filesystem(self, account: str, group: str, fs_id: str) -> TaskHandle:
        workflows = await self._workflows(account, user_delete_policy(self._org))
        return await workflows.delete(group, fs_id)

    # =========================================================================
    # Access points
    # =========================================================================

    async def list_access_points(self, account: str, group: str, fs_id: str) -> list[str]:
        workflows = await self._workflows(account)
        await workflows.require_exists(group, fs_id)
        return await workflows.access_points.list_ids(fs_id)

    async def create_access_point(
        self, account: str, group: str, fs_id: str, req: AccessPointCreateRequest
    ) -> tuple[AccessPoint, TaskHandle]:
        workflows = await self._workflows(account)
        await workflows.require_exists(group, fs_id)
        return await workflows.access_points.create(fs_id, req)

    async def get_access_point(
        self, account: str, group: str, fs_id: str, ap_id: str
    ) -> AccessPoint:
        workflows = await self._workflows(account)
        await workflows.require_exists(group, fs_id)
        return await workflows.access_points.get(fs_id, ap_id)

    async def delete_access_point(self, account: str, group: str, fs_id: str, ap_id: str) -> None:
        workflows = await self._workflows(account)
        await workflows.require_exists(group, fs_id)
        await workflows.access_points.delete(fs_id, ap_id)

    # =========================================================================
    # Users
    # =========================================================================

    async def create_user(
        self, account: str, group: str, fs_id: str, req: FileSystemUserCreateRequest
    ) -> FileSystemUserResponse:
        workflows = await self._user_workflows(account, user_create_policy(self._org))
        await workflows.require_exists(group, fs_id)
        return await workflows.users.create(group, fs_id, req)

    async def list_users(self, account: str, group: str, fs_id: str) -> list[str]:
        workflows = await self._user_workflows(
            account, policy_arns=(IAM_READ_ONLY_POLICY_ARN, EFS_READ_ONLY_POLICY_ARN)
        )
        await workflows.require_exists(group, fs_id)
        return await workflows.users.list_names(group, fs_id)

    async def get_user(
        self, account: str, group: str, fs_id: str, user: str
    ) -> FileSystemUserResponse:
        workflows = await self._user_workflows(
            account, policy_arns=(EFS_READ_ONLY_POLICY_ARN, IAM_READ_ONLY_POLICY_ARN)
        )
        await workflows.require_exists(group, fs_id)
        return await workflows.users.get(group, fs_id, user)

    async def update_user(
        self,
        account: str,
        group: str,
        fs_id: str,
        user: str,
        req: FileSystemUserUpdateRequest,
    ) -> FileSystemUserResponse:
        workflows = await self._user_workflows(account, user_update_policy(self._org))
        await workflows.require_exists(group, fs_id)
        return await workflows.users.update(group, fs_id, user, req)

    async def delete_user(self, account: str, group: str, fs_id: str, user: str) -> None:
        workflows = await self._user_workflows(account, user_delete_policy(self._org))
        await workflows.require_exists(group, fs_id)
        await workflows.users.delete(group, fs_id, user)
