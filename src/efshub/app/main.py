"""FastAPI application entry point."""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

import uvicorn
from fastapi import APIRouter, FastAPI, Request
from fastapi.responses import JSONResponse

from efshub import __version__
from efshub.app.api.v1 import (
    accesspoints_router,
    filesystems_router,
    system_router,
    tasks_router,
    users_router,
)
from efshub.app.api.v1.dependencies import init_orchestrator, reset_orchestrator
from efshub.app.config import get_settings
from efshub.app.logging import setup_logging
from efshub.app.metrics import metrics_response, prune_stale_metrics
from efshub.app.middleware import LoggingMiddleware, TokenMiddleware
from efshub.control import Orchestrator, TaskTracker
from efshub.core.errors import EfsHubError, InternalError
from efshub.core.logging_schema import LogEvent
from efshub.infra import AccountRegistry, RedisTaskStore

setup_logging()
logger = logging.getLogger(__name__)

API_PREFIX = "/v1/efs"


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    settings = get_settings()
    if settings.metrics.enabled:
        prune_stale_metrics()

    store = await RedisTaskStore.connect(
        settings.redis,
        namespace=settings.tasks.namespace,
        ttl=settings.tasks.ttl,
    )
    app.state.task_store = store
    tracker = TaskTracker(
        store,
        queue_size=settings.tasks.queue_size,
        rollback_timeout=settings.tasks.rollback_timeout,
    )
    registry = AccountRegistry(settings.aws, settings.accounts_map)
    init_orchestrator(Orchestrator(registry, tracker, settings))

    logger.info(
        "Starting application",
        extra={"event": LogEvent.APP_STARTED, "org": settings.org},
    )

    yield

    logger.info("Shutting down application", extra={"event": LogEvent.APP_STOPPED})
    await tracker.shutdown(settings.tasks.shutdown_grace)
    reset_orchestrator()
    app.state.task_store = None
    await store.close()


def create_app() -> FastAPI:
    settings = get_settings()

    application = FastAPI(title="efshub", version=__version__, lifespan=lifespan)
    # Added last runs first: logging wraps auth so rejected requests are logged
    application.add_middleware(
        TokenMiddleware,
        token=settings.security.token,
        header=settings.security.header,
        public_paths=settings.security.public_paths,
    )
    application.add_middleware(LoggingMiddleware)

    @application.exception_handler(EfsHubError)
    async def efshub_error_handler(request: Request, exc: EfsHubError) -> JSONResponse:
        """Handle EfsHubError exceptions."""
        return JSONResponse(
            status_code=exc.status_code,
            content=exc.to_response().model_dump(),
        )

    @application.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception(
            "Unhandled error: %s",
            exc,
            extra={"event": LogEvent.REQUEST_FAILED, "path": request.url.path},
        )
        error = InternalError()
        return JSONResponse(
            status_code=error.status_code,
            content=error.to_response().model_dump(),
        )

    api = APIRouter(prefix=API_PREFIX)
    api.include_router(system_router)
    api.include_router(tasks_router)
    api.include_router(filesystems_router)
    api.include_router(accesspoints_router)
    api.include_router(users_router)

    @api.get("/metrics", include_in_schema=False)
    async def metrics():
        """Prometheus metrics endpoint."""
        return metrics_response()

    application.include_router(api)

    @application.get("/health")
    async def health(request: Request):
        store = getattr(request.app.state, "task_store", None)
        results = await asyncio.gather(_check_service(_task_store_check(store)))
        services = {"redis": results[0]}
        is_degraded = any(s != "connected" for s in services.values())
        return {
            "status": "degraded" if is_degraded else "ok",
            "version": __version__,
            "services": services,
        }

    return application


async def _check_service(check_fn) -> str:
    """Check service health and return status string."""
    try:
        await check_fn()
        return "connected"
    except RuntimeError:
        return "not initialized"
    except Exception as e:
        return f"error: {e}"


def _task_store_check(store: RedisTaskStore | None):
    async def check() -> None:
        if store is None:
            raise RuntimeError("task store not initialized")
        await store.ping()

    return check


app = create_app()


def run() -> None:
    settings = get_settings()
    uvicorn.run(
        "efshub.app.main:app",
        host=settings.listen_host,
        port=settings.listen_port,
        log_config=None,
    )
