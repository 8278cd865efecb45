"""Access point API endpoints."""

from fastapi import APIRouter, Response

from efshub.app.api.v1.dependencies import TASK_HEADER, OrchestratorDep
from efshub.core.models import AccessPoint, AccessPointCreateRequest

router = APIRouter(prefix="/{account}/filesystems/{group}/{fs_id}/aps", tags=["accesspoints"])


@router.get("", response_model=list[str])
async def list_access_points(
    account: str, group: str, fs_id: str, orchestrator: OrchestratorDep
) -> list[str]:
    return await orchestrator.list_access_points(account, group, fs_id)


@router.post("", response_model=AccessPoint, status_code=202)
async def create_access_point(
    account: str,
    group: str,
    fs_id: str,
    request: AccessPointCreateRequest,
    response: Response,
    orchestrator: OrchestratorDep,
) -> AccessPoint:
    access_point, handle = await orchestrator.create_access_point(account, group, fs_id, request)
    response.headers[TASK_HEADER] = handle.id
    return access_point


@router.get("/{ap_id}", response_model=AccessPoint)
async def get_access_point(
    account: str, group: str, fs_id: str, ap_id: str, orchestrator: OrchestratorDep
) -> AccessPoint:
    return await orchestrator.get_access_point(account, group, fs_id, ap_id)


@router.delete("/{ap_id}", status_code=204)
async def delete_access_point(
    account: str, group: str, fs_id: str, ap_id: str, orchestrator: OrchestratorDep
) -> Response:
    await orchestrator.delete_access_point(account, group, fs_id, ap_id)
    return Response(status_code=204)
