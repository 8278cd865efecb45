"""Tests for RedisTaskStore."""

import json

import pytest
from redis.exceptions import WatchError

from efshub.app.config import RedisConfig
from efshub.core.domain import TaskStatus
from efshub.core.errors import NotFoundError
from efshub.core.interfaces.tasks import Task
from efshub.infra import task_store as task_store_module
from efshub.infra.task_store import RedisTaskStore


class FakePipeline:
    def __init__(self, redis: "FakeRedis") -> None:
        self._redis = redis
        self._pending: list[tuple[str, str, int]] = []

    async def __aenter__(self) -> "FakePipeline":
        return self

    async def __aexit__(self, *exc) -> None:
        return None

    async def watch(self, key: str) -> None:
        self._redis.watched.append(key)

    async def get(self, key: str) -> str | None:
        return self._redis.data.get(key)

    def multi(self) -> None:
        self._pending = []

    def set(self, key: str, value: str, ex: int) -> None:
        self._pending.append((key, value, ex))

    async def execute(self) -> None:
        if self._redis.conflicts:
            self._redis.conflicts -= 1
            raise WatchError("changed")
        for key, value, ex in self._pending:
            self._redis.data[key] = value
            self._redis.ttls[key] = ex


class FakeRedis:
    """Just enough of redis.asyncio.Redis for the task store."""

    def __init__(self) -> None:
        self.data: dict[str, str] = {}
        self.ttls: dict[str, int] = {}
        self.watched: list[str] = []
        self.conflicts = 0
        self.reachable = True
        self.closed = False

    async def ping(self) -> bool:
        if not self.reachable:
            raise ConnectionError("connection refused")
        return True

    async def aclose(self) -> None:
        self.closed = True

    async def set(self, key: str, value: str, ex: int) -> None:
        self.data[key] = value
        self.ttls[key] = ex

    async def get(self, key: str) -> str | None:
        return self.data.get(key)

    def pipeline(self, transaction: bool = True) -> FakePipeline:
        return FakePipeline(self)


@pytest.fixture
def redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture
def store(redis: FakeRedis) -> RedisTaskStore:
    return RedisTaskStore(redis, namespace="test", ttl=60)


class TestRedisTaskStore:
    """Tests for the task lifecycle in Redis."""

    @pytest.mark.asyncio
    async def test_create_and_get(self, store: RedisTaskStore, redis: FakeRedis) -> None:
        task = Task()
        await store.create(task)

        assert redis.ttls[f"test:task:{task.id}"] == 60
        got = await store.get(task.id)
        assert got.id == task.id
        assert got.status == TaskStatus.PENDING

    @pytest.mark.asyncio
    async def test_get_unknown(self, store: RedisTaskStore) -> None:
        assert await store.get("missing") is None

    @pytest.mark.asyncio
    async def test_lifecycle(self, store: RedisTaskStore) -> None:
        task = Task()
        await store.create(task)

        await store.start(task.id)
        await store.append_log(task.id, "one")
        await store.append_log(task.id, "two")
        await store.fail(task.id, "boom")

        got = await store.get(task.id)
        assert got.status == TaskStatus.FAILED
        assert got.failure == "boom"
        assert got.events == ["one", "two"]
        assert got.checkin_at is not None

    @pytest.mark.asyncio
    async def test_update_unknown_task(self, store: RedisTaskStore) -> None:
        with pytest.raises(NotFoundError):
            await store.complete("missing")

    @pytest.mark.asyncio
    async def test_retries_on_concurrent_write(self, store: RedisTaskStore, redis: FakeRedis) -> None:
        task = Task()
        await store.create(task)
        redis.conflicts = 2

        await store.append_log(task.id, "kept")

        assert json.loads(redis.data[f"test:task:{task.id}"])["events"] == ["kept"]
        assert len(redis.watched) == 3

    @pytest.mark.asyncio
    async def test_gives_up_after_repeated_conflicts(self, store: RedisTaskStore, redis: FakeRedis) -> None:
        task = Task()
        await store.create(task)
        redis.conflicts = 10

        with pytest.raises(RuntimeError, match="update lost"):
            await store.complete(task.id)


class TestRedisTaskStoreConnect:
    """Tests for RedisTaskStore.connect() and close()."""

    @pytest.fixture
    def opened(self, redis: FakeRedis, monkeypatch: pytest.MonkeyPatch) -> list[dict]:
        calls: list[dict] = []

        def from_url(url: str, **kwargs) -> FakeRedis:
            calls.append({"url": url, **kwargs})
            return redis

        monkeypatch.setattr(task_store_module.redis, "from_url", from_url)
        return calls

    @pytest.mark.asyncio
    async def test_connect_uses_pool_settings(self, redis: FakeRedis, opened: list[dict]) -> None:
        config = RedisConfig(url="redis://cache:6379/2", max_connections=7)

        store = await RedisTaskStore.connect(config, namespace="test", ttl=60)
        task = Task()
        await store.create(task)

        assert opened == [{"url": "redis://cache:6379/2", "decode_responses": True, "max_connections": 7}]
        assert redis.ttls[f"test:task:{task.id}"] == 60

        await store.close()
        assert redis.closed

    @pytest.mark.asyncio
    async def test_connect_closes_pool_when_unreachable(self, redis: FakeRedis, opened: list[dict]) -> None:
        redis.reachable = False

        with pytest.raises(ConnectionError):
            await RedisTaskStore.connect(RedisConfig())
        assert redis.closed

    @pytest.mark.asyncio
    async def test_ping_propagates_outage(self, store: RedisTaskStore, redis: FakeRedis) -> None:
        await store.ping()
        redis.reachable = False

        with pytest.raises(ConnectionError):
            await store.ping()
