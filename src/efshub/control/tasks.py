"""Task tracker - spawns detached workflows and mirrors their progress to the task store.

Each spawned workflow gets:
- a TaskSink to report human-readable progress
- a dedicated consumer coroutine that drains a bounded FIFO queue into the
  TaskStore (start -> log/check-in ... -> fail | complete)

The workflow runs detached from the request that spawned it, so a client
disconnect never cancels provisioning. Terminal events travel through the
same queue as progress messages, so the last log line always lands before
the terminal status.
"""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass

from efshub.app.logging import set_task_id, task_id_ctx
from efshub.app.metrics.collector import (
    TASK_DURATION,
    TASKS_FINISHED,
    TASKS_RUNNING,
    TASKS_STARTED,
)
from efshub.core.domain import TaskKind, TaskStatus
from efshub.core.interfaces.tasks import Task, TaskStore
from efshub.core.logging_schema import LogEvent
from efshub.core.rollback import (
    DEFAULT_ROLLBACK_TIMEOUT,
    CompensationKind,
    Handler,
    RollbackStack,
    unwind,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _Event:
    kind: str  # "log" | "fail" | "complete"
    message: str = ""


class TaskSink:
    """Progress-reporting capability handed to a workflow."""

    def __init__(self, task_id: str, queue: asyncio.Queue) -> None:
        self.task_id = task_id
        self._queue = queue
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def log(self, message: str) -> None:
        """Append a progress message (waits while the queue is full)."""
        await self._send(_Event("log", message))

    async def fail(self, reason: str) -> None:
        await self._send(_Event("fail", reason))
        self._closed = True

    async def complete(self) -> None:
        await self._send(_Event("complete"))
        self._closed = True

    async def _send(self, event: _Event) -> None:
        if self._closed:
            logger.debug(
                "Dropping %s event for finished task %s",
                event.kind,
                self.task_id,
                extra={"event": LogEvent.TASK_SINK_CLOSED},
            )
            return
        await self._queue.put(event)


Workflow = Callable[[TaskSink], Awaitable[None]]


class TaskHandle:
    """Handle on a spawned workflow."""

    def __init__(self, task: Task, runner: asyncio.Task, store: TaskStore) -> None:
        self.task = task
        self._runner = runner
        self._store = store

    @property
    def id(self) -> str:
        return self.task.id

    def done(self) -> bool:
        return self._runner.done()

    async def wait(self) -> None:
        """Wait until the workflow and its store updates have finished."""
        await asyncio.shield(self._runner)

    async def status(self) -> TaskStatus | None:
        task = await self._store.get(self.task.id)
        return task.status if task else None


class TaskTracker:
    """Spawns workflows and bridges their events to the task store.

    Usage:
        tracker = TaskTracker(store)
        task = tracker.new_task()
        handle = await tracker.spawn(task, workflow, kind=TaskKind.FILESYSTEM_CREATE)
    """

    def __init__(
        self,
        store: TaskStore,
        queue_size: int = 100,
        rollback_timeout: float = DEFAULT_ROLLBACK_TIMEOUT,
    ) -> None:
        self._store = store
        self._queue_size = queue_size
        self._rollback_timeout = rollback_timeout
        self._running: set[asyncio.Task] = set()

    @property
    def store(self) -> TaskStore:
        return self._store

    def new_task(self) -> Task:
        """Allocate a pending task; its id is reused as the idempotency token."""
        return Task()

    async def get(self, task_id: str) -> Task | None:
        return await self._store.get(task_id)

    async def spawn(
        self,
        task: Task,
        workflow: Workflow,
        *,
        kind: TaskKind,
        rollback: RollbackStack | None = None,
        handlers: Mapping[CompensationKind, Handler] | None = None,
    ) -> TaskHandle:
        """Record the task and start the workflow detached from the caller.

        Args:
            task: Task allocated by new_task()
            workflow: Coroutine function receiving the TaskSink
            kind: Workflow kind (metric label)
            rollback: Compensations the workflow registers while it runs
            handlers: Handler per compensation kind, used on failure

        Returns:
            TaskHandle for the running workflow
        """
        await self._store.create(task)

        queue: asyncio.Queue[_Event] = asyncio.Queue(maxsize=self._queue_size)
        sink = TaskSink(task.id, queue)

        parent = task_id_ctx.get()
        set_task_id(task.id)
        try:
            runner = asyncio.create_task(
                self._run(task, kind, workflow, sink, queue, rollback, handlers or {}),
                name=f"{kind}:{task.id}",
            )
        finally:
            set_task_id(parent)

        self._running.add(runner)
        runner.add_done_callback(self._running.discard)

        TASKS_STARTED.labels(kind=kind.value).inc()
        logger.info(
            "Spawned %s task",
            kind,
            extra={"event": LogEvent.TASK_CREATED, "task_id": task.id, "kind": kind.value},
        )
        return TaskHandle(task, runner, self._store)

    async def _run(
        self,
        task: Task,
        kind: TaskKind,
        workflow: Workflow,
        sink: TaskSink,
        queue: asyncio.Queue,
        rollback: RollbackStack | None,
        handlers: Mapping[CompensationKind, Handler],
    ) -> None:
        consumer = asyncio.create_task(self._consume(task.id, queue))
        start = time.monotonic()
        TASKS_RUNNING.inc()
        status = TaskStatus.COMPLETED
        try:
            try:
                await workflow(sink)
            except Exception as exc:
                status = TaskStatus.FAILED
                logger.error(
                    "Task failed: %s",
                    exc,
                    extra={"event": LogEvent.TASK_FAILED, "kind": kind.value},
                )
                if rollback is not None and len(rollback) > 0:
                    await sink.log(
                        f"recovering from error: {exc}, executing {len(rollback)} rollback tasks"
                    )
                    await unwind(rollback, handlers, self._rollback_timeout, on_progress=sink.log)
                await sink.fail(str(exc))
            else:
                await sink.complete()
            await consumer
        finally:
            if not consumer.done():
                consumer.cancel()
            TASKS_RUNNING.dec()
            TASKS_FINISHED.labels(kind=kind.value, status=status.value).inc()
            TASK_DURATION.labels(kind=kind.value).observe(time.monotonic() - start)

    async def _consume(self, task_id: str, queue: asyncio.Queue) -> None:
        """Drain workflow events into the store until a terminal event arrives."""
        try:
            await self._store.start(task_id)
        except Exception:
            # Keep draining so the workflow never blocks on a full queue
            logger.exception(
                "Failed to start task %s, progress may not be tracked",
                task_id,
                extra={"event": LogEvent.REDIS_CONNECTION_ERROR},
            )
        else:
            logger.info("Task running", extra={"event": LogEvent.TASK_STARTED})

        while True:
            event: _Event = await queue.get()
            try:
                if event.kind == "log":
                    logger.info(
                        event.message,
                        extra={"event": LogEvent.TASK_PROGRESS},
                    )
                    await self._store.append_log(task_id, event.message)
                    await self._store.check_in(task_id)
                    continue
                if event.kind == "fail":
                    await self._store.fail(task_id, event.message)
                    return
                await self._store.complete(task_id)
                logger.info("Task completed", extra={"event": LogEvent.TASK_COMPLETED})
                return
            except Exception:
                # A store outage must not wedge the workflow behind a full queue
                logger.exception(
                    "Failed to record %s event for task %s",
                    event.kind,
                    task_id,
                    extra={"event": LogEvent.REDIS_CONNECTION_ERROR},
                )
                if event.kind != "log":
                    return
            finally:
                queue.task_done()

    async def shutdown(self, grace: float) -> None:
        """Wait up to grace seconds for running workflows, then cancel them."""
        if not self._running:
            return
        pending = set(self._running)
        _, still_running = await asyncio.wait(pending, timeout=grace)
        for runner in still_running:
            runner.cancel()
        if still_running:
            await asyncio.gather(*still_running, return_exceptions=True)
            logger.warning(
                "Cancelled %d running tasks at shutdown",
                len(still_running),
                extra={"event": LogEvent.APP_STOPPED},
            )
