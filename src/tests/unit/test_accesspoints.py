"""Tests for access point workflows."""

import pytest

from efshub.control.accesspoints import AccessPointWorkflows
from efshub.core.domain import TaskStatus
from efshub.core.errors import NotFoundError
from efshub.core.models import AccessPointCreateRequest, PosixUser
from efshub.core.retryable import RetryPolicy
from efshub.core.tags import NAME_TAG, tag_value


@pytest.fixture
def access_points(control_plane, tracker) -> AccessPointWorkflows:
    return AccessPointWorkflows(control_plane, tracker, RetryPolicy(attempts=3, sleep=0.0))


@pytest.fixture
def filesystem(control_plane):
    return control_plane.add_filesystem("data", "space-1")


class TestCreateAccessPoint:
    """Tests for AccessPointWorkflows.create()."""

    @pytest.mark.asyncio
    async def test_create_and_wait(self, access_points, control_plane, filesystem, task_store) -> None:
        req = AccessPointCreateRequest(name="web", posix_user=PosixUser(uid=1000, gid=1000))
        ap, handle = await access_points.create(filesystem.file_system_id, req)
        await handle.wait()

        stored = control_plane.access_points[ap.access_point_id]
        assert tag_value(stored.tags, NAME_TAG) == "data-web"
        assert stored.posix_user.uid == 1000
        assert ap.life_cycle_state == "creating"

        task = task_store.tasks[handle.id]
        assert task.status == TaskStatus.COMPLETED
        assert control_plane.called("create_access_point")[0][1] == handle.id
        assert f"accesspoint {ap.access_point_id} is available" in task.events

    @pytest.mark.asyncio
    async def test_default_name_is_random(self, access_points, control_plane, filesystem) -> None:
        ap, handle = await access_points.create(filesystem.file_system_id, AccessPointCreateRequest())
        await handle.wait()

        name = tag_value(control_plane.access_points[ap.access_point_id].tags, NAME_TAG)
        assert name.startswith("data-")
        assert len(name) == len("data-") + 36

    @pytest.mark.asyncio
    async def test_never_available_fails_task(self, access_points, control_plane, filesystem, task_store) -> None:
        create = control_plane.create_access_point

        async def stuck(**kwargs):
            ap = await create(**kwargs)
            control_plane.stuck[ap.access_point_id] = "creating"
            return ap

        control_plane.create_access_point = stuck
        ap, handle = await access_points.create(filesystem.file_system_id, AccessPointCreateRequest(name="x"))
        await handle.wait()

        task = task_store.tasks[handle.id]
        assert task.status == TaskStatus.FAILED
        assert task.failure.startswith(
            f"failed to create access point {ap.access_point_id} for filesystem "
            f"{filesystem.file_system_id}, timeout waiting to become available"
        )

    @pytest.mark.asyncio
    async def test_missing_filesystem(self, access_points, task_store) -> None:
        with pytest.raises(NotFoundError):
            await access_points.create("fs-missing", AccessPointCreateRequest())
        assert task_store.tasks == {}


class TestReadDeleteAccessPoint:
    """Tests for list/get/delete."""

    @pytest.mark.asyncio
    async def test_list_get_delete(self, access_points, control_plane, filesystem) -> None:
        fs_id = filesystem.file_system_id
        ap = await control_plane.create_access_point(client_token="t", fs_id=fs_id, tags=[])

        assert await access_points.list_ids(fs_id) == [ap.access_point_id]
        assert (await access_points.get(fs_id, ap.access_point_id)).access_point_id == ap.access_point_id

        await access_points.delete(fs_id, ap.access_point_id)
        assert control_plane.access_points == {}

    @pytest.mark.asyncio
    async def test_other_filesystems_access_point_is_not_found(
        self, access_points, control_plane, filesystem
    ) -> None:
        other = control_plane.add_filesystem("other", "space-1")
        ap = await control_plane.create_access_point(client_token="t", fs_id=other.file_system_id, tags=[])

        with pytest.raises(NotFoundError):
            await access_points.get(filesystem.file_system_id, ap.access_point_id)
        with pytest.raises(NotFoundError):
            await access_points.delete(filesystem.file_system_id, ap.access_point_id)
        assert ap.access_point_id in control_plane.access_points

    @pytest.mark.asyncio
    async def test_delete_all(self, access_points, control_plane, filesystem) -> None:
        fs_id = filesystem.file_system_id
        for token in ("a", "b"):
            await control_plane.create_access_point(client_token=token, fs_id=fs_id, tags=[])

        deleted = await access_points.delete_all(fs_id)
        assert len(deleted) == 2
        assert control_plane.access_points == {}


class TestAccessPointWorkflowsClass:
    """Tests for the class definition."""

    def test_return_annotations_use_builtin_list(self) -> None:
        assert AccessPointWorkflows.delete_all.__annotations__["return"] == list[str]
        assert AccessPointWorkflows.list_ids.__annotations__["return"] == list[str]
