"""Filesystem provisioning workflows.

Create, update and delete return as soon as the synchronous checks pass and
the first provider call (if any) is made; the rest runs as a detached task
whose progress is polled through the task store. Create is a saga: each
resource it makes pushes a compensation, and a failure unwinds them in
reverse before the task is marked failed. Update and delete have no
compensations.
"""

import asyncio
import json
import logging

from efshub.control.accesspoints import AccessPointWorkflows, access_point_response
from efshub.control.resolver import FileSystemResolver
from efshub.control.tasks import TaskHandle, TaskSink, TaskTracker
from efshub.control.users import UserWorkflows
from efshub.core.domain import LifeCycleState, TaskKind, TaskStatus
from efshub.core.errors import BadRequestError, ConflictError, EfsHubError, NotFoundError
from efshub.core.interfaces import (
    AccessPointDescription,
    AccountServices,
    FileSystemDescription,
    MountTargetDescription,
)
from efshub.core.logging_schema import Component, LogEvent
from efshub.core.models import (
    FileSystemCreateRequest,
    FileSystemResponse,
    FileSystemUpdateRequest,
    MountTarget,
)
from efshub.core.policy import (
    FileSystemAccessPolicy,
    access_policy_from_efs_policy,
    efs_policy_from_access_policy,
)
from efshub.core.retryable import NotReadyError, RetryPolicy, StopRetry
from efshub.core.rollback import Compensation, CompensationKind, RollbackStack
from efshub.core.tags import normalize_tags
from efshub.core.validation import (
    require,
    validate_backup_policy,
    validate_lifecycle,
    validate_transition_to_primary,
)

logger = logging.getLogger(__name__)


def mount_target_response(mt: MountTargetDescription) -> MountTarget:
    return MountTarget(
        mount_target_id=mt.mount_target_id,
        life_cycle_state=mt.life_cycle_state,
        subnet_id=mt.subnet_id,
        ip_address=mt.ip_address,
        availability_zone_id=mt.availability_zone_id,
        availability_zone_name=mt.availability_zone_name,
    )


def filesystem_response(
    fs: FileSystemDescription,
    *,
    mount_targets: list[MountTargetDescription] | None = None,
    access_points: list[AccessPointDescription] | None = None,
    backup_policy: str = "",
    lifecycle: str = "",
    primary: str = "",
    access_policy: FileSystemAccessPolicy | None = None,
) -> FileSystemResponse:
    """Map a provider filesystem plus its policies onto the API representation."""
    mount_targets = mount_targets or []
    access_points = access_points or []
    return FileSystemResponse(
        access_points=[access_point_response(ap) for ap in access_points],
        access_policy=access_policy,
        availability_zone=fs.availability_zone_name or "",
        backup_policy=backup_policy,
        creation_time=fs.creation_time,
        file_system_arn=fs.file_system_arn,
        file_system_id=fs.file_system_id,
        kms_key_id=fs.kms_key_id,
        life_cycle_state=fs.life_cycle_state,
        life_cycle_configuration=lifecycle or "NONE",
        transition_to_primary_storage_class=primary or "NONE",
        mount_targets=[mount_target_response(mt) for mt in mount_targets],
        name=fs.name,
        number_of_access_points=len(access_points),
        number_of_mount_targets=fs.number_of_mount_targets,
        one_zone=bool(fs.availability_zone_name),
        size_in_bytes=fs.size,
        tags=fs.tags,
    )


class FileSystemWorkflows:
    """Filesystem operations for one account and org.

    Usage:
        workflows = FileSystemWorkflows(services, tracker, org="acme")
        fs, handle = await workflows.create("space-1", req)
    """

    def __init__(
        self,
        services: AccountServices,
        tracker: TaskTracker,
        org: str,
        *,
        resolver: FileSystemResolver | None = None,
        access_points: AccessPointWorkflows | None = None,
        users: UserWorkflows | None = None,
        wait: RetryPolicy | None = None,
        delete: RetryPolicy | None = None,
    ) -> None:
        self._services = services
        self._cp = services.control_plane
        self._tracker = tracker
        self._org = org
        self._wait = wait or RetryPolicy()
        self._delete = delete or RetryPolicy(attempts=3, sleep=2.0)
        self._resolver = resolver or FileSystemResolver(services.tag_index, org)
        self._access_points = access_points or AccessPointWorkflows(
            services.control_plane, tracker, self._wait
        )
        self._users = users or UserWorkflows(services.identity, services.control_plane, org)

    @property
    def access_points(self) -> AccessPointWorkflows:
        return self._access_points

    @property
    def users(self) -> UserWorkflows:
        return self._users

    # =========================================================================
    # Reads
    # =========================================================================

    async def list_ids(self, group: str | None = None) -> list[str]:
        return await self._resolver.list_ids(group)

    async def require_exists(self, group: str, fs_id: str) -> None:
        """Check the filesystem is listed in the tenant scope.

        Raises:
            BadRequestError: The listing itself failed
            NotFoundError: The filesystem is not in scope
        """
        try:
            found = await self._resolver.exists(group, fs_id)
        except EfsHubError as exc:
            raise BadRequestError(
                f"failed to determine if filesystem {fs_id} exists: {exc.message}"
            ) from exc
        if not found:
            raise NotFoundError("filesystem doesnt exist")

    async def get(self, group: str, fs_id: str) -> FileSystemResponse:
        await self.require_exists(group, fs_id)

        fs, mount_targets, access_points, backup, lifecycle, document = await asyncio.gather(
            self._cp.get_filesystem(fs_id),
            self._cp.list_mount_targets(fs_id),
            self._cp.list_access_points(fs_id),
            self._cp.get_backup_policy(fs_id),
            self._cp.get_lifecycle_configuration(fs_id),
            self._cp.get_access_policy(fs_id),
        )
        ia, primary = lifecycle
        return filesystem_response(
            fs,
            mount_targets=mount_targets,
            access_points=access_points,
            backup_policy=backup,
            lifecycle=ia,
            primary=primary,
            access_policy=access_policy_from_efs_policy(document),
        )

    # =========================================================================
    # Create
    # =========================================================================

    async def _kms_key(self, requested: str) -> str:
        if requested:
            return requested
        defaults = self._services.defaults
        if defaults.kms_key_tags:
            found = await self._services.keys.find_key_by_tags(defaults.kms_key_tags, self._org)
            if found:
                return found
            logger.warning(
                "No KMS key tagged %s for org %s, using default key",
                defaults.kms_key_tags,
                self._org,
                extra={"component": Component.FS},
            )
        return defaults.kms_key_id

    async def create(
        self, group: str, req: FileSystemCreateRequest
    ) -> tuple[FileSystemResponse, TaskHandle]:
        """Create a filesystem and spawn the provisioning saga.

        Args:
            group: Tenant space
            req: Requested filesystem settings

        Returns:
            (filesystem as just created, handle of the provisioning task)

        Raises:
            BadRequestError: Invalid request or no usable availability zone
        """
        name = require(req.name, "Name is a required field")
        lifecycle = validate_lifecycle(req.life_cycle_configuration)
        primary = validate_transition_to_primary(req.transition_to_primary_storage_class)
        backup = validate_backup_policy(req.backup_policy)

        tags = normalize_tags(self._org, name, group, req.tags)
        kms_key_id = await self._kms_key(req.kms_key_id)

        defaults = self._services.defaults
        subnets = list(req.subnets or defaults.subnets)
        sgs = list(req.sgs or defaults.security_groups)

        availability_zone = None
        if req.one_zone:
            azs = await self._services.subnets.subnet_azs(subnets)
            if not azs:
                raise BadRequestError("failed to determine usable availability zone")
            subnet, availability_zone = next(iter(azs.items()))
            subnets = [subnet]
            logger.info(
                "Pinning one zone filesystem %s to %s (%s)",
                name,
                availability_zone,
                subnet,
                extra={"component": Component.FS, "group": group},
            )

        task = self._tracker.new_task()
        created = await self._cp.create_filesystem(
            creation_token=task.id,
            kms_key_id=kms_key_id,
            tags=tags,
            availability_zone=availability_zone,
        )
        fs_id = created.file_system_id
        logger.info(
            "Requested filesystem %s (%s)",
            fs_id,
            name,
            extra={
                "event": LogEvent.OPERATION_STARTED,
                "component": Component.FS,
                "fs_id": fs_id,
                "group": group,
            },
        )

        rollback = RollbackStack()

        async def workflow(sink: TaskSink) -> None:
            await sink.log(f"requested creation of filesystem {fs_id}")

            async def filesystem_available() -> FileSystemDescription:
                fs = await self._cp.get_filesystem(fs_id)
                if fs.life_cycle_state != LifeCycleState.AVAILABLE:
                    raise NotReadyError(
                        f"filesystem {fs_id} has status {fs.life_cycle_state}, not available"
                    )
                return fs

            try:
                fs = await self._wait.run(filesystem_available)
            except Exception as exc:
                raise RuntimeError(
                    f"failed to create filesystem {fs_id}, "
                    f"timeout waiting to become available: {exc}"
                ) from exc
            rollback.push(CompensationKind.DELETE_FILESYSTEM, fs_id)

            await sink.log(f"setting filesystem {fs_id} backup policy to {backup}")
            await self._cp.set_backup_policy(fs_id, backup)

            await sink.log(
                f"setting filesystem {fs_id} lifecycle configuration to {lifecycle}/{primary}"
            )
            await self._cp.set_lifecycle_configuration(fs_id, lifecycle, primary)

            document = efs_policy_from_access_policy(
                self._services.account, group, fs.file_system_arn, req.access_policy
            )
            if document is not None:
                await sink.log(f"setting filesystem {fs_id} access policy")
                await self._cp.set_access_policy(fs_id, json.dumps(document))

            record: Compensation | None = None
            for subnet in subnets:
                try:
                    mt = await self._cp.create_mount_target(fs_id, subnet, sgs)
                except Exception as exc:
                    raise RuntimeError(
                        f"failed to create mount target for filesystem {fs_id}: {exc}"
                    ) from exc
                if record is None:
                    record = rollback.push(
                        CompensationKind.DELETE_MOUNT_TARGETS, fs_id, (mt.mount_target_id,)
                    )
                    continue
                grown = Compensation(
                    record.kind, fs_id, record.params + (mt.mount_target_id,)
                )
                rollback.replace(record, grown)
                record = grown

            async def mount_targets_available() -> None:
                for mt in await self._cp.list_mount_targets(fs_id):
                    if mt.life_cycle_state != LifeCycleState.AVAILABLE:
                        raise NotReadyError(
                            f"filesystem {fs_id} mount target {mt.mount_target_id} "
                            f"has status {mt.life_cycle_state}, not available"
                        )

            await self._wait.run(mount_targets_available)
            await sink.log(f"created {len(subnets)} mount targets for fs {fs_id}")

            for ap_req in req.access_points:
                await sink.log(f"creating access point '{ap_req.name}' for fs {fs_id}")
                ap, handle = await self._access_points.create(fs_id, ap_req, filesystem=fs)
                rollback.push(CompensationKind.DELETE_ACCESS_POINT, ap.access_point_id)
                await self._await_access_point(sink, fs_id, ap.access_point_id, handle)

        handle = await self._tracker.spawn(
            task,
            workflow,
            kind=TaskKind.FILESYSTEM_CREATE,
            rollback=rollback,
            handlers={
                CompensationKind.DELETE_ACCESS_POINT: self._undo_access_point,
                CompensationKind.DELETE_MOUNT_TARGETS: self._undo_mount_targets,
                CompensationKind.DELETE_FILESYSTEM: self._undo_filesystem,
            },
        )

        response = filesystem_response(
            created,
            backup_policy=backup,
            lifecycle=lifecycle,
            primary=primary,
            access_policy=req.access_policy or FileSystemAccessPolicy(),
        )
        return response, handle

    async def _await_access_point(
        self, sink: TaskSink, fs_id: str, ap_id: str, handle: TaskHandle
    ) -> None:
        """Poll the access point's own task until it finishes."""

        async def check() -> None:
            await sink.log(f"waiting for access point {ap_id} for filesystem {fs_id} to be available")
            task = await self._tracker.get(handle.id)
            status = task.status if task else None
            if status == TaskStatus.COMPLETED:
                return
            if status == TaskStatus.FAILED:
                raise StopRetry(
                    RuntimeError(
                        f"failed to create access point {ap_id} for fs {fs_id}: {task.failure}"
                    )
                )
            await sink.log(f"access point {ap_id} for filesystem {fs_id} is not yet available ({status})")
            raise NotReadyError(f"access point {ap_id} not yet available")

        await self._wait.run(check)

    # =========================================================================
    # Compensations
    # =========================================================================

    async def _undo_access_point(self, record: Compensation) -> None:
        try:
            await self._cp.delete_access_point(record.resource_id)
        except NotFoundError:
            logger.info("Access point %s already gone", record.resource_id)

    async def _undo_mount_targets(self, record: Compensation) -> None:
        for mt_id in record.params:
            await self._cp.delete_mount_target(mt_id)
        await self._wait_no_mount_targets(record.resource_id)

    async def _undo_filesystem(self, record: Compensation) -> None:
        fs_id = record.resource_id
        deleted = await self._access_points.delete_all(fs_id)
        if deleted:
            logger.info("Deleted access points %s of filesystem %s", deleted, fs_id)
        await self._delete.run(lambda: self._cp.delete_filesystem(fs_id))

    async def _wait_no_mount_targets(self, fs_id: str, sink: TaskSink | None = None) -> None:
        async def check() -> None:
            if sink is not None:
                await sink.log(f"waiting for number of mount targets for filesystem {fs_id} to be 0")
            fs = await self._cp.get_filesystem(fs_id)
            if fs.number_of_mount_targets != 0:
                raise NotReadyError(
                    f"waiting for number of mount targets for filesystem {fs_id} "
                    f"to be 0 (current: {fs.number_of_mount_targets})"
                )

        await self._wait.run(check)

    # =========================================================================
    # Update
    # =========================================================================

    async def update(
        self, group: str, fs_id: str, req: FileSystemUpdateRequest
    ) -> TaskHandle:
        """Apply the non-empty fields of req in a detached task.

        Raises:
            BadRequestError: Invalid field or failed existence lookup
            NotFoundError: Filesystem not in scope
        """
        backup = validate_backup_policy(req.backup_policy) if req.backup_policy else ""
        lifecycle = (
            validate_lifecycle(req.life_cycle_configuration)
            if req.life_cycle_configuration
            else ""
        )
        primary = (
            validate_transition_to_primary(req.transition_to_primary_storage_class)
            if req.transition_to_primary_storage_class
            else ""
        )

        await self.require_exists(group, fs_id)
        fs = await self._cp.get_filesystem(fs_id)

        # setting one rule must not reset the other
        if bool(lifecycle) != bool(primary):
            current_ia, current_primary = await self._cp.get_lifecycle_configuration(fs_id)
            lifecycle = lifecycle or current_ia
            primary = primary or current_primary

        tags = normalize_tags(self._org, fs.name, group, req.tags) if req.tags is not None else None

        async def workflow(sink: TaskSink) -> None:
            await sink.log(f"requested update of filesystem {fs_id}")

            if backup:
                await sink.log(f"setting filesystem {fs_id} backup policy to {backup}")
                await self._cp.set_backup_policy(fs_id, backup)

            if lifecycle:
                await sink.log(
                    f"setting filesystem {fs_id} lifecycle configuration to {lifecycle}/{primary}"
                )
                await self._cp.set_lifecycle_configuration(fs_id, lifecycle, primary)

            if req.access_policy is not None:
                document = efs_policy_from_access_policy(
                    self._services.account, group, fs.file_system_arn, req.access_policy
                )
                await sink.log(f"setting filesystem {fs_id} access policy")
                await self._cp.set_access_policy(fs_id, json.dumps(document))

            if tags is not None:
                await sink.log(f"updating tags for filesystem {fs_id}")
                await self._cp.tag_resource(fs_id, tags)

                updated = await self._users.update_tags(group, fs_id, tags)
                await sink.log(f"updated tags for filesystem {fs_id} users {updated}")

        return await self._tracker.spawn(
            self._tracker.new_task(), workflow, kind=TaskKind.FILESYSTEM_UPDATE
        )

    # =========================================================================
    # Delete
    # =========================================================================

    async def delete(self, group: str, fs_id: str) -> TaskHandle:
        """Check the filesystem can be deleted, then tear it down in a detached task.

        Raises:
            BadRequestError: Failed existence lookup
            NotFoundError: Filesystem not in scope
            ConflictError: Filesystem or a mount target is not available
        """
        await self.require_exists(group, fs_id)

        fs = await self._cp.get_filesystem(fs_id)
        if fs.life_cycle_state != LifeCycleState.AVAILABLE:
            raise ConflictError(
                f"filesystem {fs_id} has status {fs.life_cycle_state}, "
                "cannot delete filesystems that are not 'available'"
            )

        for mt in await self._cp.list_mount_targets(fs_id):
            if mt.life_cycle_state != LifeCycleState.AVAILABLE:
                raise ConflictError(
                    f"filesystem {fs_id} mount target {mt.mount_target_id} has status "
                    f"{mt.life_cycle_state}, cannot delete filesystems with mount targets "
                    "that are not 'available'"
                )

        async def workflow(sink: TaskSink) -> None:
            deleted, failures = await self._users.delete_all(group, fs_id)
            for user, error in failures:
                await sink.log(f"failed to delete filesystem {fs_id} user {user}: {error}")
            if failures:
                await sink.log(
                    f"failed to delete {len(failures)} users: "
                    + ", ".join(user for user, _ in failures)
                )
            await sink.log(f"deleted filesystem {fs_id} users {deleted}")

            for mt in await self._cp.list_mount_targets(fs_id):
                if mt.life_cycle_state != LifeCycleState.AVAILABLE:
                    raise ConflictError(
                        f"filesystem {fs_id} mount target {mt.mount_target_id} "
                        f"has status {mt.life_cycle_state}, not available"
                    )
                await sink.log(
                    f"mount target {mt.mount_target_id} for filesystem {fs_id} is available"
                )
                await self._cp.delete_mount_target(mt.mount_target_id)
                await sink.log(
                    f"requested delete for mount target {mt.mount_target_id} "
                    f"for filesystem {fs_id}"
                )

            await self._wait_no_mount_targets(fs_id, sink)

            deleted_aps = await self._access_points.delete_all(fs_id)
            await sink.log(f"deleted filesystem {fs_id} access points {deleted_aps}")

            await sink.log(f"deleting filesystem {fs_id}")
            await self._delete.run(lambda: self._cp.delete_filesystem(fs_id))
            logger.info(
                "Deleted filesystem %s",
                fs_id,
                extra={
                    "event": LogEvent.OPERATION_SUCCESS,
                    "component": Component.FS,
                    "fs_id": fs_id,
                },
            )

        return await self._tracker.spawn(
            self._tracker.new_task(), workflow, kind=TaskKind.FILESYSTEM_DELETE
        )
