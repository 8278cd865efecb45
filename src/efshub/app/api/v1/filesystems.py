"""Filesystem API endpoints.

Mutations answer 202 Accepted as soon as the request passed its synchronous
checks; the id of the task carrying the rest of the work is returned in the
X-Flywheel-Task header and can be polled on /flywheel.
"""

from fastapi import APIRouter, Response

from efshub.app.api.v1.dependencies import TASK_HEADER, OrchestratorDep
from efshub.core.models import (
    FileSystemCreateRequest,
    FileSystemResponse,
    FileSystemUpdateRequest,
)

router = APIRouter(prefix="/{account}/filesystems", tags=["filesystems"])


@router.get("", response_model=list[str])
async def list_all_filesystems(account: str, orchestrator: OrchestratorDep) -> list[str]:
    """List filesystems in every space of the org as ``{space}/{id}``."""
    return await orchestrator.list_filesystems(account)


@router.get("/{group}", response_model=list[str])
async def list_filesystems(account: str, group: str, orchestrator: OrchestratorDep) -> list[str]:
    return await orchestrator.list_filesystems(account, group)


@router.post("/{group}", response_model=FileSystemResponse, status_code=202)
async def create_filesystem(
    account: str,
    group: str,
    request: FileSystemCreateRequest,
    response: Response,
    orchestrator: OrchestratorDep,
) -> FileSystemResponse:
    """Create a filesystem.

    The body describes the filesystem as just requested; mount targets,
    policies and access points are provisioned by the task.
    """
    filesystem, handle = await orchestrator.create_filesystem(account, group, request)
    response.headers[TASK_HEADER] = handle.id
    return filesystem


@router.get("/{group}/{fs_id}", response_model=FileSystemResponse)
async def get_filesystem(
    account: str, group: str, fs_id: str, orchestrator: OrchestratorDep
) -> FileSystemResponse:
    return await orchestrator.get_filesystem(account, group, fs_id)


@router.put("/{group}/{fs_id}", status_code=202)
async def update_filesystem(
    account: str,
    group: str,
    fs_id: str,
    request: FileSystemUpdateRequest,
    orchestrator: OrchestratorDep,
) -> Response:
    handle = await orchestrator.update_filesystem(account, group, fs_id, request)
    return Response(status_code=202, headers={TASK_HEADER: handle.id})


@router.delete("/{group}/{fs_id}", status_code=202)
async def delete_filesystem(
    account: str, group: str, fs_id: str, orchestrator: OrchestratorDep
) -> Response:
    """Delete a filesystem with its users, mount targets and access points."""
    handle = await orchestrator.delete_filesystem(account, group, fs_id)
    return Response(status_code=202, headers={TASK_HEADER: handle.id})
