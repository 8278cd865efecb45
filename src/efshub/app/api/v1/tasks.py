"""Task polling endpoint."""

from fastapi import APIRouter

from efshub.app.api.v1.dependencies import OrchestratorDep
from efshub.core.errors import BadRequestError

router = APIRouter(tags=["tasks"])


@router.get("/flywheel")
async def get_task(orchestrator: OrchestratorDep, task: str = "") -> dict:
    """Return the task record (status, events, failure, timestamps)."""
    if not task:
        raise BadRequestError("task id is required")
    record = await orchestrator.task(task)
    return record.to_dict()
