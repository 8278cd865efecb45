"""Infrastructure connections and provider adapters (Redis, AWS)."""

from efshub.infra.aws import AccountRegistry
from efshub.infra.task_store import RedisTaskStore

__all__ = [
    "AccountRegistry",
    "RedisTaskStore",
]
