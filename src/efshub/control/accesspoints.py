"""Access point workflows."""

import logging
from uuid import uuid4

from efshub.control.tasks import TaskHandle, TaskSink, TaskTracker
from efshub.core.domain import LifeCycleState, TaskKind
from efshub.core.errors import NotFoundError
from efshub.core.interfaces import AccessPointDescription, ControlPlane, FileSystemDescription
from efshub.core.interfaces.tasks import Task
from efshub.core.logging_schema import Component, LogEvent
from efshub.core.models import AccessPoint, AccessPointCreateRequest
from efshub.core.retryable import NotReadyError, RetryPolicy
from efshub.core.tags import NAME_TAG, with_tag

logger = logging.getLogger(__name__)


def access_point_response(ap: AccessPointDescription) -> AccessPoint:
    return AccessPoint(
        access_point_arn=ap.access_point_arn,
        access_point_id=ap.access_point_id,
        life_cycle_state=ap.life_cycle_state,
        name=ap.name,
        posix_user=ap.posix_user,
        root_directory=ap.root_directory,
    )


class AccessPointWorkflows:
    """Create, read and delete access points of one filesystem."""

    def __init__(
        self,
        control_plane: ControlPlane,
        tracker: TaskTracker,
        wait: RetryPolicy | None = None,
    ) -> None:
        self._cp = control_plane
        self._tracker = tracker
        self._wait = wait or RetryPolicy()

    async def create(
        self,
        fs_id: str,
        req: AccessPointCreateRequest,
        *,
        filesystem: FileSystemDescription | None = None,
        task: Task | None = None,
    ) -> tuple[AccessPoint, TaskHandle]:
        """Create an access point and spawn a task waiting for it to become available.

        Args:
            fs_id: Owning filesystem
            req: Requested access point; an empty name is replaced by a random one
            filesystem: Already fetched filesystem (skips the lookup)
            task: Pre-allocated task whose id is used as the client token

        Returns:
            (access point as reported by the create call, task handle)
        """
        if filesystem is None:
            filesystem = await self._cp.get_filesystem(fs_id)

        name = req.name or str(uuid4())
        tags = with_tag(filesystem.tags, NAME_TAG, f"{filesystem.name}-{name}")

        task = task or self._tracker.new_task()
        created = await self._cp.create_access_point(
            client_token=task.id,
            fs_id=fs_id,
            tags=tags,
            posix_user=req.posix_user,
            root_directory=req.root_directory,
        )
        ap_id = created.access_point_id

        logger.info(
            "Requested access point %s for filesystem %s",
            ap_id,
            fs_id,
            extra={"event": LogEvent.OPERATION_STARTED, "component": Component.AP},
        )

        async def workflow(sink: TaskSink) -> None:
            await sink.log(f"requested creation of accesspoint for filesystem {fs_id}")

            async def check() -> None:
                await sink.log(f"checking if accesspoint {ap_id} is available before continuing")
                try:
                    current = await self._cp.get_access_point(ap_id)
                except Exception as exc:
                    await sink.log(f"got error checking if accesspoint {ap_id} is available: {exc}")
                    raise
                if current.life_cycle_state != LifeCycleState.AVAILABLE:
                    await sink.log(
                        f"accesspoint {ap_id} is not yet available ({current.life_cycle_state})"
                    )
                    raise NotReadyError(f"accesspoint {ap_id} not yet available")
                await sink.log(f"accesspoint {ap_id} is available")

            try:
                await self._wait.run(check)
            except Exception as exc:
                raise RuntimeError(
                    f"failed to create access point {ap_id} for filesystem {fs_id}, "
                    f"timeout waiting to become available: {exc}"
                ) from exc

        handle = await self._tracker.spawn(task, workflow, kind=TaskKind.ACCESSPOINT_CREATE)
        return access_point_response(created), handle

    async def list_ids(self, fs_id: str) -> list[str]:
        return [ap.access_point_id for ap in await self._cp.list_access_points(fs_id)]

    async def _owned(self, fs_id: str, ap_id: str) -> AccessPointDescription:
        ap = await self._cp.get_access_point(ap_id)
        if ap.file_system_id != fs_id:
            raise NotFoundError(f"access point {ap_id} not found for filesystem {fs_id}")
        return ap

    async def get(self, fs_id: str, ap_id: str) -> AccessPoint:
        return access_point_response(await self._owned(fs_id, ap_id))

    async def delete(self, fs_id: str, ap_id: str) -> None:
        await self._owned(fs_id, ap_id)
        await self._cp.delete_access_point(ap_id)

    async def delete_all(self, fs_id: str) -> list[str]:
        """Delete every access point of the filesystem; returns the deleted ids."""
        deleted: list[str] = []
        for ap in await self._cp.list_access_points(fs_id):
            await self._cp.delete_access_point(ap.access_point_id)
            deleted.append(ap.access_point_id)
        return deleted
