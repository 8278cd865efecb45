"""API v1 module."""

from efshub.app.api.v1.accesspoints import router as accesspoints_router
from efshub.app.api.v1.filesystems import router as filesystems_router
from efshub.app.api.v1.system import router as system_router
from efshub.app.api.v1.tasks import router as tasks_router
from efshub.app.api.v1.users import router as users_router

__all__ = [
    "accesspoints_router",
    "filesystems_router",
    "system_router",
    "tasks_router",
    "users_router",
]
