"""aioboto3 client plumbing shared by the AWS adapters."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any

import aioboto3
from botocore.exceptions import BotoCoreError, ClientError

from efshub.app.metrics.collector import AWS_ERRORS
from efshub.core.errors import client_error_code, from_client_error
from efshub.core.logging_schema import ErrorClass, LogEvent

logger = logging.getLogger(__name__)

_THROTTLE_CODES = frozenset({"Throttling", "ThrottlingException", "TooManyRequests"})


@dataclass(frozen=True)
class ClientFactory:
    """Creates service clients bound to one (possibly assumed-role) session."""

    session: aioboto3.Session
    region: str
    endpoint_url: str | None = None

    def client(self, service: str) -> Any:
        return self.session.client(
            service,
            region_name=self.region,
            endpoint_url=self.endpoint_url,
        )


@asynccontextmanager
async def translate_errors(service: str, message: str = "") -> AsyncIterator[None]:
    """Map provider exceptions raised inside the block to EfsHubError kinds."""
    try:
        yield
    except ClientError as exc:
        code = client_error_code(exc) or "Unknown"
        AWS_ERRORS.labels(service=service, code=code).inc()
        logger.warning(
            "%s error %s: %s",
            service,
            code,
            exc,
            extra={
                "event": LogEvent.AWS_ERROR,
                "error_class": (
                    ErrorClass.RATE_LIMITED if code in _THROTTLE_CODES else ErrorClass.PERMANENT
                ),
                "service": service,
                "code": code,
            },
        )
        raise from_client_error(exc, message) from exc
    except BotoCoreError as exc:
        AWS_ERRORS.labels(service=service, code=type(exc).__name__).inc()
        logger.warning(
            "%s transport error: %s",
            service,
            exc,
            extra={
                "event": LogEvent.AWS_ERROR,
                "error_class": ErrorClass.TRANSIENT,
                "service": service,
            },
        )
        raise from_client_error(exc, message) from exc
