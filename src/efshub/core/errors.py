"""Error handling module for efshub.

This module defines error codes, exception classes, and response models.
Provider (botocore) errors are mapped onto the same kinds so that every
synchronous failure reaches the client with a status matching its kind.

Error Response Format:
{
    "error": {
        "code": "CONFLICT",
        "message": "filesystem fs-123 has status creating, ..."
    }
}

Usage:
    from efshub.core.errors import NotFoundError, from_client_error

    raise NotFoundError("filesystem doesnt exist")

    try:
        await efs.describe_file_systems(FileSystemId=fs_id)
    except ClientError as exc:
        raise from_client_error(exc) from exc
"""

from enum import Enum

from botocore.exceptions import BotoCoreError, ClientError
from pydantic import BaseModel


class ErrorCode(str, Enum):
    """Error codes."""

    BAD_REQUEST = "BAD_REQUEST"
    UNAUTHORIZED = "UNAUTHORIZED"
    FORBIDDEN = "FORBIDDEN"
    NOT_FOUND = "NOT_FOUND"
    CONFLICT = "CONFLICT"
    LIMIT_EXCEEDED = "LIMIT_EXCEEDED"
    INTERNAL_ERROR = "INTERNAL_ERROR"
    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"


class ErrorDetail(BaseModel):
    """Error detail containing code and message."""

    code: str
    message: str


class ErrorResponse(BaseModel):
    """Error response format."""

    error: ErrorDetail


class EfsHubError(Exception):
    """Base exception for efshub.

    All efshub specific exceptions inherit from this class.
    This enables centralized exception handling in FastAPI.

    Attributes:
        code: The error code from ErrorCode enum
        message: Human-readable error message
        status_code: HTTP status code to return
    """

    def __init__(self, code: ErrorCode, message: str, status_code: int) -> None:
        self.code = code
        self.message = message
        self.status_code = status_code
        super().__init__(message)

    def to_response(self) -> ErrorResponse:
        """Convert exception to ErrorResponse model."""
        return ErrorResponse(
            error=ErrorDetail(code=self.code.value, message=self.message)
        )


class BadRequestError(EfsHubError):
    """400 Bad Request - Malformed or invalid input."""

    def __init__(self, message: str = "Bad request") -> None:
        super().__init__(ErrorCode.BAD_REQUEST, message, 400)


class UnauthorizedError(EfsHubError):
    """401 Unauthorized - Missing or invalid API token."""

    def __init__(self, message: str = "Authentication required") -> None:
        super().__init__(ErrorCode.UNAUTHORIZED, message, 401)


class ForbiddenError(EfsHubError):
    """403 Forbidden - Scope or credential acquisition failed."""

    def __init__(self, message: str = "Permission denied") -> None:
        super().__init__(ErrorCode.FORBIDDEN, message, 403)


class NotFoundError(EfsHubError):
    """404 Not Found - Resource missing or outside the tenant scope."""

    def __init__(self, message: str = "Not found") -> None:
        super().__init__(ErrorCode.NOT_FOUND, message, 404)


class ConflictError(EfsHubError):
    """409 Conflict - Resource not in the required lifecycle state."""

    def __init__(self, message: str = "Conflict") -> None:
        super().__init__(ErrorCode.CONFLICT, message, 409)


class LimitExceededError(EfsHubError):
    """429 Too Many Requests - Provider-side quota exceeded."""

    def __init__(self, message: str = "Limit exceeded") -> None:
        super().__init__(ErrorCode.LIMIT_EXCEEDED, message, 429)


class InternalError(EfsHubError):
    """500 Internal Server Error - Unexpected or unmapped failure."""

    def __init__(self, message: str = "Internal server error") -> None:
        super().__init__(ErrorCode.INTERNAL_ERROR, message, 500)


class ServiceUnavailableError(EfsHubError):
    """503 Service Unavailable - Transient provider failure."""

    def __init__(self, message: str = "Service unavailable") -> None:
        super().__init__(ErrorCode.SERVICE_UNAVAILABLE, message, 503)


# =============================================================================
# Provider error classification
# =============================================================================

FORBIDDEN_CODES = frozenset({
    "Forbidden",
    "AccessDenied",
    "AccessDeniedException",
})

CONFLICT_CODES = frozenset({
    "AccessPointAlreadyExists",
    "FileSystemAlreadyExists",
    "FileSystemInUse",
    "IpAddressInUse",
    "MountTargetConflict",
    "Conflict",
    "EntityAlreadyExists",
    "DeleteConflict",
})

NOT_FOUND_CODES = frozenset({
    "AccessPointNotFound",
    "FileSystemNotFound",
    "MountTargetNotFound",
    "PolicyNotFound",
    "NoSuchEntity",
    "NotFound",
    "InvalidSubnetID.NotFound",
})

BAD_REQUEST_CODES = frozenset({
    "BadRequest",
    "IncorrectFileSystemLifeCycleState",
    "IncorrectMountTargetState",
    "InsufficientThroughputCapacity",
    "InvalidPolicyException",
    "SecurityGroupLimitExceeded",
    "SecurityGroupNotFound",
    "SubnetNotFound",
    "UnsupportedAvailabilityZone",
    "ValidationException",
    "InvalidInput",
    "MalformedPolicyDocument",
})

LIMIT_EXCEEDED_CODES = frozenset({
    "AccessPointLimitExceeded",
    "FileSystemLimitExceeded",
    "NetworkInterfaceLimitExceeded",
    "NoFreeAddressesInSubnet",
    "ThroughputLimitExceeded",
    "TooManyRequests",
    "LimitExceeded",
    "Throttling",
    "ThrottlingException",
})

SERVICE_UNAVAILABLE_CODES = frozenset({
    "DependencyTimeout",
    "InternalServerError",
    "ServiceUnavailable",
    "ServiceFailure",
})

_KINDS: tuple[tuple[frozenset[str], type[EfsHubError]], ...] = (
    (FORBIDDEN_CODES, ForbiddenError),
    (CONFLICT_CODES, ConflictError),
    (NOT_FOUND_CODES, NotFoundError),
    (BAD_REQUEST_CODES, BadRequestError),
    (LIMIT_EXCEEDED_CODES, LimitExceededError),
    (SERVICE_UNAVAILABLE_CODES, ServiceUnavailableError),
)


def client_error_code(exc: ClientError) -> str:
    """Return the provider error code of a ClientError ("" if absent)."""
    return exc.response.get("Error", {}).get("Code", "")


def from_client_error(exc: Exception, message: str = "") -> EfsHubError:
    """Map a provider exception onto an efshub error kind.

    Args:
        exc: Exception raised by an aioboto3 client call
        message: Optional context prefixed to the provider message

    Returns:
        EfsHubError subclass instance (not raised)
    """
    if isinstance(exc, EfsHubError):
        return exc

    if isinstance(exc, ClientError):
        code = client_error_code(exc)
        provider_msg = exc.response.get("Error", {}).get("Message", "") or str(exc)
        text = f"{message}: {provider_msg}" if message else provider_msg
        for codes, kind in _KINDS:
            if code in codes:
                return kind(text)
        return BadRequestError(f"{text} ({code})" if code else text)

    if isinstance(exc, BotoCoreError):
        return ServiceUnavailableError(f"{message}: {exc}" if message else str(exc))

    return InternalError(f"{message}: {exc}" if message else str(exc))
