"""Filesystem user workflows.

A filesystem user is an IAM user living under
``/spinup/{org}/{group}/{fsName}/`` and named ``{fsName}-{user}``. Its tags
mirror the filesystem's (Name replaced by the user name, plus
ResourceName=fsName) so the org admin policy can match them against the
filesystem's resource tags.
"""

import logging

from efshub.control.account import AccountPreparer, admin_group_name
from efshub.core.errors import BadRequestError
from efshub.core.interfaces import ControlPlane, IdentityProvider, UserDescription
from efshub.core.logging_schema import Component, LogEvent
from efshub.core.models import (
    AccessKeyMetadata,
    FileSystemUserCreateRequest,
    FileSystemUserResponse,
    FileSystemUserUpdateRequest,
)
from efshub.core.tags import RESOURCE_NAME_TAG, Tag, normalize_tags

logger = logging.getLogger(__name__)


def user_path(org: str, group: str, fs_name: str) -> str:
    return f"/spinup/{org}/{group}/{fs_name}/"


def user_tags(org: str, user_name: str, group: str, fs_name: str, tags: list[Tag]) -> list[Tag]:
    out = normalize_tags(org, user_name, group, tags)
    out = [t for t in out if t.key != RESOURCE_NAME_TAG]
    out.append(Tag(key=RESOURCE_NAME_TAG, value=fs_name))
    return out


def user_response(
    user: UserDescription,
    keys: list[AccessKeyMetadata] | None = None,
) -> FileSystemUserResponse:
    """Map an IAM user, trimming the ``{fsName}-`` prefix derived from its path."""
    name = user.user_name
    segments = user.path.split("/")
    if len(segments) > 2:
        name = name.removeprefix(f"{segments[-2]}-")
    return FileSystemUserResponse(
        user_name=name,
        access_keys=keys or [],
        tags=user.tags,
    )


class UserWorkflows:
    def __init__(
        self,
        identity: IdentityProvider,
        control_plane: ControlPlane,
        org: str,
        preparer: AccountPreparer | None = None,
    ) -> None:
        self._identity = identity
        self._cp = control_plane
        self._org = org
        self._preparer = preparer or AccountPreparer(identity, org)

    async def _scope(self, group: str, fs_id: str) -> tuple[str, str]:
        """Return (fs name, user path) for the filesystem."""
        filesystem = await self._cp.get_filesystem(fs_id)
        return filesystem.name, user_path(self._org, group, filesystem.name)

    async def create(
        self, group: str, fs_id: str, req: FileSystemUserCreateRequest
    ) -> FileSystemUserResponse:
        if not req.user_name:
            raise BadRequestError("Username is a required field")

        await self._preparer.prepare()

        filesystem = await self._cp.get_filesystem(fs_id)
        path = user_path(self._org, group, filesystem.name)
        name = f"{filesystem.name}-{req.user_name}"
        tags = user_tags(self._org, name, group, filesystem.name, filesystem.tags)

        user = await self._identity.create_user(name, path, tags)
        await self._identity.wait_for_user(name)
        await self._identity.add_user_to_group(name, admin_group_name(self._org))

        logger.info(
            "Created user %s for filesystem %s",
            name,
            fs_id,
            extra={"event": LogEvent.OPERATION_SUCCESS, "component": Component.USERS},
        )
        return user_response(user)

    async def delete(self, group: str, fs_id: str, user: str) -> None:
        """Delete a user with its group memberships and access keys."""
        fs_name, path = await self._scope(group, fs_id)
        name = f"{fs_name}-{user}"

        await self._identity.get_user_with_path(path, name)

        for grp in await self._identity.list_groups_for_user(name):
            await self._identity.remove_user_from_group(name, grp)

        for key in await self._identity.list_access_keys(name):
            await self._identity.delete_access_key(name, key.access_key_id)

        await self._identity.delete_user(name)
        logger.info(
            "Deleted user %s for filesystem %s",
            name,
            fs_id,
            extra={"event": LogEvent.OPERATION_SUCCESS, "component": Component.USERS},
        )

    async def delete_all(self, group: str, fs_id: str) -> tuple[list[str], list[tuple[str, str]]]:
        """Delete every user, continuing past failures.

        Returns:
            (deleted user names, [(user name, error message)] for failures)
        """
        deleted: list[str] = []
        failures: list[tuple[str, str]] = []
        for user in await self.list_names(group, fs_id):
            try:
                await self.delete(group, fs_id, user)
            except Exception as exc:
                logger.error(
                    "Failed to delete filesystem %s user %s: %s",
                    fs_id,
                    user,
                    exc,
                    extra={"event": LogEvent.OPERATION_FAILED, "component": Component.USERS},
                )
                failures.append((user, str(exc)))
            else:
                deleted.append(user)
        return deleted, failures

    async def list_names(self, group: str, fs_id: str) -> list[str]:
        fs_name, path = await self._scope(group, fs_id)
        prefix = f"{fs_name}-"
        return [u.removeprefix(prefix) for u in await self._identity.list_users(path)]

    async def get(self, group: str, fs_id: str, user: str) -> FileSystemUserResponse:
        fs_name, path = await self._scope(group, fs_id)
        name = f"{fs_name}-{user}"

        found = await self._identity.get_user_with_path(path, name)
        keys = await self._identity.list_access_keys(name)
        return user_response(found, keys)

    async def update(
        self, group: str, fs_id: str, user: str, req: FileSystemUserUpdateRequest
    ) -> FileSystemUserResponse:
        """Rotate the access key and/or replace the user's tags."""
        filesystem = await self._cp.get_filesystem(fs_id)
        path = user_path(self._org, group, filesystem.name)
        name = f"{filesystem.name}-{user}"

        await self._identity.get_user_with_path(path, name)
        response = FileSystemUserResponse(user_name=user)

        if req.reset_key:
            old_keys = await self._identity.list_access_keys(name)
            response.access_key = await self._identity.create_access_key(name)

            deleted: list[str] = []
            for key in old_keys:
                await self._identity.delete_access_key(name, key.access_key_id)
                deleted.append(key.access_key_id)
            response.deleted_access_keys = deleted

        if req.tags is not None:
            tags = user_tags(self._org, name, group, filesystem.name, req.tags)
            await self._identity.tag_user(name, tags)
            response.tags = tags

        return response

    async def update_tags(self, group: str, fs_id: str, tags: list[Tag]) -> list[str]:
        """Re-tag every user of the filesystem; returns the re-tagged names."""
        fs_name, path = await self._scope(group, fs_id)
        updated: list[str] = []
        for name in await self._identity.list_users(path):
            await self._identity.tag_user(
                name, user_tags(self._org, name, group, fs_name, tags)
            )
            updated.append(name)
        return updated
