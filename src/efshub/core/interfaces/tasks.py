"""Task record and durable task store interface."""

from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass, field
from datetime import UTC, datetime

from ulid import ULID

from efshub.core.domain import TaskStatus


def utc_now() -> str:
    return datetime.now(UTC).isoformat()


def generate_task_id() -> str:
    return str(ULID())


@dataclass
class Task:
    """Pollable record of one orchestration run.

    The id doubles as the provider idempotency token.
    """

    id: str = field(default_factory=generate_task_id)
    status: TaskStatus = TaskStatus.PENDING
    events: list[str] = field(default_factory=list)
    failure: str | None = None
    created_at: str = field(default_factory=utc_now)
    updated_at: str = field(default_factory=utc_now)
    checkin_at: str | None = None

    def to_dict(self) -> dict:
        data = asdict(self)
        data["status"] = self.status.value
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "Task":
        return cls(
            id=data["id"],
            status=TaskStatus(data.get("status", TaskStatus.PENDING)),
            events=list(data.get("events", [])),
            failure=data.get("failure"),
            created_at=data.get("created_at") or utc_now(),
            updated_at=data.get("updated_at") or utc_now(),
            checkin_at=data.get("checkin_at"),
        )


class TaskStore(ABC):
    """Durable task status store used for progress polling.

    Implementations: RedisTaskStore
    """

    @abstractmethod
    async def create(self, task: Task) -> None: ...

    @abstractmethod
    async def start(self, task_id: str) -> None: ...

    @abstractmethod
    async def check_in(self, task_id: str) -> None: ...

    @abstractmethod
    async def append_log(self, task_id: str, message: str) -> None: ...

    @abstractmethod
    async def fail(self, task_id: str, reason: str) -> None: ...

    @abstractmethod
    async def complete(self, task_id: str) -> None: ...

    @abstractmethod
    async def get(self, task_id: str) -> Task | None: ...
