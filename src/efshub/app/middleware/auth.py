"""Shared-token authentication middleware."""

import hmac
import logging

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.types import ASGIApp

from efshub.core.errors import UnauthorizedError
from efshub.core.logging_schema import LogEvent

logger = logging.getLogger(__name__)


class TokenMiddleware(BaseHTTPMiddleware):
    """Require the configured token in a request header.

    An empty token disables the check. Public paths (ping, version,
    metrics, health) are always let through.

    Usage:
        app.add_middleware(TokenMiddleware, token="s3cret", public_paths=[...])
    """

    def __init__(
        self,
        app: ASGIApp,
        token: str,
        header: str = "X-Auth-Token",
        public_paths: list[str] | None = None,
    ) -> None:
        super().__init__(app)
        self._token = token
        self._header = header
        self._public = frozenset(public_paths or ())

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        if not self._token or request.url.path in self._public:
            return await call_next(request)

        supplied = request.headers.get(self._header, "")
        if not hmac.compare_digest(supplied.encode(), self._token.encode()):
            logger.warning(
                "Rejected request with bad token",
                extra={
                    "event": LogEvent.AUTH_REJECTED,
                    "method": request.method,
                    "path": request.url.path,
                },
            )
            error = UnauthorizedError("invalid or missing token")
            return JSONResponse(
                status_code=error.status_code,
                content=error.to_response().model_dump(),
            )
        return await call_next(request)
