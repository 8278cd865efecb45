"""Tests for the task tracker bridge."""

import asyncio

import pytest

from efshub.control.tasks import TaskSink, TaskTracker
from efshub.core.domain import TaskKind, TaskStatus
from efshub.core.rollback import Compensation, CompensationKind, RollbackStack


class TestTaskTracker:
    """Tests for TaskTracker.spawn()."""

    @pytest.mark.asyncio
    async def test_completed_workflow(self, tracker: TaskTracker, task_store) -> None:
        """Logs land in order and the task completes."""

        async def workflow(sink: TaskSink) -> None:
            await sink.log("one")
            await sink.log("two")

        handle = await tracker.spawn(tracker.new_task(), workflow, kind=TaskKind.FILESYSTEM_UPDATE)
        await handle.wait()

        task = task_store.tasks[handle.id]
        assert task.status == TaskStatus.COMPLETED
        assert task.events == ["one", "two"]
        assert task.checkin_at is not None
        assert await handle.status() == TaskStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_spawn_records_pending_task_before_running(self, tracker: TaskTracker, task_store) -> None:
        started = asyncio.Event()
        release = asyncio.Event()

        async def workflow(sink: TaskSink) -> None:
            started.set()
            await release.wait()

        task = tracker.new_task()
        handle = await tracker.spawn(task, workflow, kind=TaskKind.FILESYSTEM_UPDATE)
        assert task.id in task_store.tasks
        assert not handle.done()

        await started.wait()
        release.set()
        await handle.wait()
        assert handle.done()

    @pytest.mark.asyncio
    async def test_failed_workflow_runs_rollback_before_failure(
        self, tracker: TaskTracker, task_store
    ) -> None:
        """Compensations run (and log) before the terminal failure is recorded."""
        rollback = RollbackStack()
        undone: list[str] = []

        async def undo(record: Compensation) -> None:
            undone.append(record.resource_id)

        async def workflow(sink: TaskSink) -> None:
            rollback.push(CompensationKind.DELETE_FILESYSTEM, "fs-1")
            rollback.push(CompensationKind.DELETE_ACCESS_POINT, "ap-1")
            raise RuntimeError("mount target failed")

        handle = await tracker.spawn(
            tracker.new_task(),
            workflow,
            kind=TaskKind.FILESYSTEM_CREATE,
            rollback=rollback,
            handlers={
                CompensationKind.DELETE_FILESYSTEM: undo,
                CompensationKind.DELETE_ACCESS_POINT: undo,
            },
        )
        await handle.wait()

        task = task_store.tasks[handle.id]
        assert undone == ["ap-1", "fs-1"]
        assert task.status == TaskStatus.FAILED
        assert task.failure == "mount target failed"
        assert task.events[0] == "recovering from error: mount target failed, executing 2 rollback tasks"
        assert task.events[-1] == "rollback: delete_filesystem(fs-1) done"

    @pytest.mark.asyncio
    async def test_failure_without_rollback(self, tracker: TaskTracker, task_store) -> None:
        async def workflow(sink: TaskSink) -> None:
            raise ValueError("bad")

        handle = await tracker.spawn(tracker.new_task(), workflow, kind=TaskKind.FILESYSTEM_DELETE)
        await handle.wait()

        task = task_store.tasks[handle.id]
        assert task.status == TaskStatus.FAILED
        assert task.failure == "bad"
        assert task.events == []

    @pytest.mark.asyncio
    async def test_sink_drops_events_after_terminal(self, tracker: TaskTracker, task_store) -> None:
        leaked: list[TaskSink] = []

        async def workflow(sink: TaskSink) -> None:
            leaked.append(sink)

        handle = await tracker.spawn(tracker.new_task(), workflow, kind=TaskKind.FILESYSTEM_UPDATE)
        await handle.wait()

        await leaked[0].log("late")
        assert leaked[0].closed
        assert "late" not in task_store.tasks[handle.id].events

    @pytest.mark.asyncio
    async def test_store_outage_does_not_wedge_workflow(self, tracker: TaskTracker, task_store) -> None:
        async def broken(task_id: str, message: str) -> None:
            raise ConnectionError("redis down")

        task_store.append_log = broken

        async def workflow(sink: TaskSink) -> None:
            for i in range(30):
                await sink.log(f"line {i}")

        handle = await tracker.spawn(tracker.new_task(), workflow, kind=TaskKind.FILESYSTEM_UPDATE)
        await asyncio.wait_for(handle.wait(), timeout=5)
        assert task_store.tasks[handle.id].status == TaskStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_start_failure_still_drains_and_completes(
        self, tracker: TaskTracker, task_store
    ) -> None:
        """A store blip on start neither kills the consumer nor blocks the workflow."""

        async def broken(task_id: str) -> None:
            raise ConnectionError("redis blip")

        task_store.start = broken
        finished: list[bool] = []

        async def workflow(sink: TaskSink) -> None:
            for i in range(30):
                await sink.log(f"line {i}")
            finished.append(True)

        handle = await tracker.spawn(tracker.new_task(), workflow, kind=TaskKind.FILESYSTEM_CREATE)
        await asyncio.wait_for(handle.wait(), timeout=5)

        task = task_store.tasks[handle.id]
        assert finished == [True]
        assert task.status == TaskStatus.COMPLETED
        assert len(task.events) == 30

    @pytest.mark.asyncio
    async def test_start_failure_still_records_failure(self, tracker: TaskTracker, task_store) -> None:
        async def broken(task_id: str) -> None:
            raise ConnectionError("redis blip")

        task_store.start = broken

        async def workflow(sink: TaskSink) -> None:
            await sink.log("one")
            raise RuntimeError("bad subnet")

        handle = await tracker.spawn(tracker.new_task(), workflow, kind=TaskKind.FILESYSTEM_CREATE)
        await asyncio.wait_for(handle.wait(), timeout=5)

        task = task_store.tasks[handle.id]
        assert task.status == TaskStatus.FAILED
        assert task.failure == "bad subnet"

    @pytest.mark.asyncio
    async def test_complete_failure_does_not_raise(self, tracker: TaskTracker, task_store) -> None:
        async def broken(task_id: str) -> None:
            raise ConnectionError("redis down")

        task_store.complete = broken
        finished: list[bool] = []

        async def workflow(sink: TaskSink) -> None:
            for i in range(30):
                await sink.log(f"line {i}")
            finished.append(True)

        handle = await tracker.spawn(tracker.new_task(), workflow, kind=TaskKind.FILESYSTEM_UPDATE)
        await asyncio.wait_for(handle.wait(), timeout=5)

        assert finished == [True]
        assert handle.done()
        assert task_store.tasks[handle.id].status == TaskStatus.RUNNING

    @pytest.mark.asyncio
    async def test_shutdown_cancels_after_grace(self, tracker: TaskTracker) -> None:
        async def workflow(sink: TaskSink) -> None:
            await asyncio.sleep(60)

        handle = await tracker.spawn(tracker.new_task(), workflow, kind=TaskKind.FILESYSTEM_CREATE)
        await tracker.shutdown(grace=0.01)
        assert handle.done()

    @pytest.mark.asyncio
    async def test_get_unknown_task(self, tracker: TaskTracker) -> None:
        assert await tracker.get("nope") is None
