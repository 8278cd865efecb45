"""Redis-backed task store.

Key: {namespace}:task:{id} (JSON document)
TTL: TasksConfig.ttl, refreshed on every write

Each mutation is an optimistic read-modify-write (WATCH/MULTI) so that
concurrent writers for the same task never lose a log line. The store owns
its connection pool when opened with ``RedisTaskStore.connect``.
"""

import json
import logging
from collections.abc import Callable

import redis.asyncio as redis
from redis.exceptions import WatchError

from efshub.app.config import RedisConfig
from efshub.core.domain import TaskStatus
from efshub.core.errors import NotFoundError
from efshub.core.interfaces.tasks import Task, TaskStore, utc_now
from efshub.core.logging_schema import LogEvent

logger = logging.getLogger(__name__)

_MAX_WATCH_RETRIES = 5


class RedisTaskStore(TaskStore):
    """Task status store in Redis, one JSON document per task."""

    def __init__(self, client: redis.Redis, namespace: str = "efshub", ttl: int = 86400) -> None:
        self._client = client
        self._namespace = namespace
        self._ttl = ttl

    @classmethod
    async def connect(
        cls, config: RedisConfig, namespace: str = "efshub", ttl: int = 86400
    ) -> "RedisTaskStore":
        """Open a pooled client and verify the server answers.

        Raises:
            redis.ConnectionError: If the server is unreachable
        """
        client = redis.from_url(
            config.url,
            decode_responses=True,
            max_connections=config.max_connections,
        )
        try:
            await client.ping()
        except Exception:
            await client.aclose()
            raise
        logger.info(
            "Task store connected (namespace=%s, max_connections=%d)",
            namespace,
            config.max_connections,
            extra={"event": LogEvent.REDIS_CONNECTED},
        )
        return cls(client, namespace=namespace, ttl=ttl)

    async def ping(self) -> None:
        await self._client.ping()

    async def close(self) -> None:
        await self._client.aclose()
        logger.info("Task store disconnected")

    def _key(self, task_id: str) -> str:
        return f"{self._namespace}:task:{task_id}"

    async def create(self, task: Task) -> None:
        await self._client.set(self._key(task.id), json.dumps(task.to_dict()), ex=self._ttl)

    async def get(self, task_id: str) -> Task | None:
        raw = await self._client.get(self._key(task_id))
        if raw is None:
            return None
        return Task.from_dict(json.loads(raw))

    async def _update(self, task_id: str, mutate: Callable[[Task], None]) -> None:
        """Apply mutate to the stored task atomically.

        Raises:
            NotFoundError: If the task key does not exist (expired or unknown)
        """
        key = self._key(task_id)
        async with self._client.pipeline(transaction=True) as pipe:
            for _ in range(_MAX_WATCH_RETRIES):
                try:
                    await pipe.watch(key)
                    raw = await pipe.get(key)
                    if raw is None:
                        raise NotFoundError(f"task {task_id} not found")
                    task = Task.from_dict(json.loads(raw))
                    mutate(task)
                    task.updated_at = utc_now()
                    pipe.multi()
                    pipe.set(key, json.dumps(task.to_dict()), ex=self._ttl)
                    await pipe.execute()
                    return
                except WatchError:
                    logger.debug("Task %s modified concurrently, retrying", task_id)
                    continue
        raise RuntimeError(f"task {task_id} update lost after {_MAX_WATCH_RETRIES} retries")

    async def start(self, task_id: str) -> None:
        def mutate(task: Task) -> None:
            task.status = TaskStatus.RUNNING
            task.checkin_at = utc_now()

        await self._update(task_id, mutate)

    async def check_in(self, task_id: str) -> None:
        def mutate(task: Task) -> None:
            task.checkin_at = utc_now()

        await self._update(task_id, mutate)

    async def append_log(self, task_id: str, message: str) -> None:
        def mutate(task: Task) -> None:
            task.events.append(message)

        await self._update(task_id, mutate)

    async def fail(self, task_id: str, reason: str) -> None:
        def mutate(task: Task) -> None:
            task.status = TaskStatus.FAILED
            task.failure = reason

        await self._update(task_id, mutate)

    async def complete(self, task_id: str) -> None:
        def mutate(task: Task) -> None:
            task.status = TaskStatus.COMPLETED

        await self._update(task_id, mutate)
