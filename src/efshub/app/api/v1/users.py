"""Filesystem user API endpoints.

Users are IAM users scoped to one filesystem. Access keys are only ever
returned in full by the update endpoint when a key reset was requested.
"""

from fastapi import APIRouter, Response

from efshub.app.api.v1.dependencies import OrchestratorDep
from efshub.core.models import (
    FileSystemUserCreateRequest,
    FileSystemUserResponse,
    FileSystemUserUpdateRequest,
)

router = APIRouter(prefix="/{account}/filesystems/{group}/{fs_id}/users", tags=["users"])


@router.post("", response_model=FileSystemUserResponse)
async def create_user(
    account: str,
    group: str,
    fs_id: str,
    request: FileSystemUserCreateRequest,
    orchestrator: OrchestratorDep,
) -> FileSystemUserResponse:
    return await orchestrator.create_user(account, group, fs_id, request)


@router.get("", response_model=list[str])
async def list_users(
    account: str, group: str, fs_id: str, orchestrator: OrchestratorDep
) -> list[str]:
    return await orchestrator.list_users(account, group, fs_id)


@router.get("/{user}", response_model=FileSystemUserResponse)
async def get_user(
    account: str, group: str, fs_id: str, user: str, orchestrator: OrchestratorDep
) -> FileSystemUserResponse:
    return await orchestrator.get_user(account, group, fs_id, user)


@router.put("/{user}", response_model=FileSystemUserResponse)
async def update_user(
    account: str,
    group: str,
    fs_id: str,
    user: str,
    request: FileSystemUserUpdateRequest,
    orchestrator: OrchestratorDep,
) -> FileSystemUserResponse:
    """Rotate the user's access key and/or replace its tags."""
    return await orchestrator.update_user(account, group, fs_id, user, request)


@router.delete("/{user}", status_code=204)
async def delete_user(
    account: str, group: str, fs_id: str, user: str, orchestrator: OrchestratorDep
) -> Response:
    await orchestrator.delete_user(account, group, fs_id, user)
    return Response(status_code=204)
