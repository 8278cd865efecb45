"""Bounded retry with jittered exponential backoff.

Every polling step of the provisioning workflows ("wait until available",
"wait until zero mount targets") runs through ``retry``. The helper knows
nothing about what it retries; the operation itself decides when a failure
is permanent by raising ``StopRetry``.

Usage:
    from efshub.core.retryable import StopRetry, retry

    async def check() -> None:
        fs = await control_plane.get_filesystem(fs_id)
        if fs.life_cycle_state == "error":
            raise StopRetry(ConflictError("filesystem is in error state"))
        if fs.life_cycle_state != "available":
            raise RuntimeError("not yet available")

    await retry(10, 2.0, check)
"""

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

from efshub.app.metrics.collector import RETRY_ATTEMPTS
from efshub.core.logging_schema import ErrorClass, LogEvent

logger = logging.getLogger(__name__)

T = TypeVar("T")


class NotReadyError(Exception):
    """Awaited resource has not reached the expected state yet (retryable)."""


class StopRetry(Exception):
    """Signals a permanent failure that must not be retried.

    The wrapped exception (if any) is raised to the caller in place of
    the StopRetry itself.
    """

    def __init__(self, error: Exception | None = None) -> None:
        self.error = error
        super().__init__(str(error) if error else "retry stopped")


def jittered(delay: float) -> float:
    """Return delay plus a random jitter in [0, delay/2]."""
    return delay + random.uniform(0, delay) / 2


async def retry(
    attempts: int,
    sleep: float,
    fn: Callable[[], Awaitable[T]],
) -> T:
    """Execute async operation with exponential backoff retry.

    Args:
        attempts: Maximum number of invocations of fn (>= 1)
        sleep: Initial backoff in seconds, doubled after each failure
        fn: Factory creating a new coroutine for each attempt

    Returns:
        Result of the first successful invocation

    Raises:
        Exception: The wrapped error of a StopRetry immediately, or the
                   last exception unmodified once attempts are exhausted
    """
    remaining = max(attempts, 1)
    delay = sleep
    attempt = 0

    while True:
        attempt += 1
        try:
            return await fn()
        except StopRetry as stop:
            logger.info(
                "Retry stopped (attempt %d): %s",
                attempt,
                stop,
                extra={
                    "event": LogEvent.RETRY_STOPPED,
                    "error_class": ErrorClass.PERMANENT,
                    "attempt": attempt,
                },
            )
            if stop.error is not None:
                raise stop.error from None
            raise
        except Exception as exc:
            RETRY_ATTEMPTS.inc()
            remaining -= 1
            if remaining <= 0:
                logger.warning(
                    "Retries exhausted after %d attempts: %s",
                    attempt,
                    exc,
                    extra={
                        "event": LogEvent.RETRY_EXHAUSTED,
                        "error_class": ErrorClass.PERMANENT,
                        "attempt": attempt,
                    },
                )
                raise

            wait = jittered(delay)
            logger.warning(
                "Retryable error (attempt %d, retry in %.1fs): %s",
                attempt,
                wait,
                exc,
                extra={
                    "event": LogEvent.RETRY_ATTEMPT,
                    "error_class": ErrorClass.TRANSIENT,
                    "attempt": attempt,
                    "delay": wait,
                },
            )
            await asyncio.sleep(wait)
            delay *= 2


@dataclass(frozen=True)
class RetryPolicy:
    """A named retry budget (attempts and initial backoff)."""

    attempts: int = 10
    sleep: float = 2.0

    async def run(self, fn: Callable[[], Awaitable[T]]) -> T:
        return await retry(self.attempts, self.sleep, fn)
