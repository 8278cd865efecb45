"""HTTP middleware."""

from efshub.app.middleware.auth import TokenMiddleware
from efshub.app.middleware.logging import LoggingMiddleware

__all__ = ["LoggingMiddleware", "TokenMiddleware"]
