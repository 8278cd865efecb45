"""Compensating actions for the provisioning saga.

A workflow records what it has created as ``Compensation`` values on a
``RollbackStack``. On failure the stack is unwound by ``unwind``: records
run in reverse registration order through a handler table keyed by kind.
Handler failures are logged and collected; they never stop the unwind.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterator, Mapping
from dataclasses import asdict, dataclass, field
from enum import StrEnum

from efshub.app.metrics.collector import ROLLBACK_COMPENSATIONS
from efshub.core.logging_schema import ErrorClass, LogEvent

logger = logging.getLogger(__name__)

DEFAULT_ROLLBACK_TIMEOUT = 120.0


class CompensationKind(StrEnum):
    """Kinds of compensating action."""

    DELETE_FILESYSTEM = "delete_filesystem"
    DELETE_MOUNT_TARGETS = "delete_mount_targets"
    DELETE_ACCESS_POINT = "delete_access_point"


@dataclass(frozen=True)
class Compensation:
    """One compensating action.

    Attributes:
        kind: What to undo
        resource_id: Resource the action targets (filesystem or access point id)
        params: Extra identifiers (e.g. mount target ids)
    """

    kind: CompensationKind
    resource_id: str
    params: tuple[str, ...] = ()

    def to_dict(self) -> dict:
        data = asdict(self)
        data["kind"] = self.kind.value
        data["params"] = list(self.params)
        return data

    def __str__(self) -> str:
        return f"{self.kind}({self.resource_id})"


Handler = Callable[[Compensation], Awaitable[None]]


class RollbackStack:
    """Append-only list of compensations owned by one workflow run."""

    def __init__(self) -> None:
        self._records: list[Compensation] = []

    def push(
        self,
        kind: CompensationKind,
        resource_id: str,
        params: tuple[str, ...] = (),
    ) -> Compensation:
        record = Compensation(kind=kind, resource_id=resource_id, params=params)
        self._records.append(record)
        return record

    def replace(self, old: Compensation, new: Compensation) -> None:
        """Swap a record in place, keeping its position."""
        index = self._records.index(old)
        self._records[index] = new

    def records(self) -> list[Compensation]:
        return list(self._records)

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[Compensation]:
        return iter(self._records)


@dataclass
class RollbackResult:
    """Outcome of an unwind."""

    executed: list[Compensation] = field(default_factory=list)
    failures: list[tuple[Compensation, str]] = field(default_factory=list)
    timed_out: bool = False

    @property
    def ok(self) -> bool:
        return not self.failures and not self.timed_out


async def unwind(
    stack: RollbackStack,
    handlers: Mapping[CompensationKind, Handler],
    timeout: float = DEFAULT_ROLLBACK_TIMEOUT,
    on_progress: Callable[[str], Awaitable[None]] | None = None,
) -> RollbackResult:
    """Run every compensation in reverse order within a global deadline.

    Args:
        stack: Compensations registered by the failed workflow
        handlers: Handler per compensation kind
        timeout: Deadline for the whole unwind in seconds
        on_progress: Optional callback receiving human-readable progress

    Returns:
        RollbackResult with executed records, failures and timeout flag
    """
    result = RollbackResult()
    records = list(reversed(stack.records()))

    async def report(message: str) -> None:
        if on_progress is not None:
            await on_progress(message)

    logger.warning(
        "Executing %d rollback tasks",
        len(records),
        extra={"event": LogEvent.ROLLBACK_STARTED, "count": len(records)},
    )

    async def run_all() -> None:
        for record in records:
            handler = handlers.get(record.kind)
            try:
                if handler is None:
                    raise LookupError(f"no rollback handler for {record.kind}")
                await handler(record)
            except Exception as exc:
                result.failures.append((record, str(exc)))
                ROLLBACK_COMPENSATIONS.labels(kind=record.kind.value, result="failed").inc()
                logger.error(
                    "Rollback of %s failed: %s",
                    record,
                    exc,
                    extra={
                        "event": LogEvent.ROLLBACK_FAILED,
                        "compensation": record.to_dict(),
                    },
                )
                await report(f"rollback: {record} failed: {exc}")
            else:
                ROLLBACK_COMPENSATIONS.labels(kind=record.kind.value, result="ok").inc()
                await report(f"rollback: {record} done")
            result.executed.append(record)

    try:
        async with asyncio.timeout(timeout):
            await run_all()
    except TimeoutError:
        result.timed_out = True
        logger.error(
            "timeout waiting for successful rollback",
            extra={
                "event": LogEvent.ROLLBACK_TIMEOUT,
                "error_class": ErrorClass.TIMEOUT,
                "timeout": timeout,
            },
        )
        await report("timeout waiting for successful rollback")
        return result

    logger.info(
        "successfully rolled back",
        extra={
            "event": LogEvent.ROLLBACK_COMPLETE,
            "executed": len(result.executed),
            "failed": len(result.failures),
        },
    )
    return result
