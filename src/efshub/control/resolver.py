"""Tenant-scoped filesystem listing and existence checks.

Filesystems are found through the resource tag index rather than by
describing the filesystem and checking its tags. The index is eventually
consistent: a filesystem created moments ago may not be listed yet, and
one deleted moments ago may still be. Callers accept that in exchange for
never acting on a resource outside the tenant's tag scope.
"""

import logging

from efshub.core.interfaces import ResourceTagIndex
from efshub.core.tags import ORG_TAG, SPACE_TAG, tag_value

logger = logging.getLogger(__name__)

RESOURCE_TYPE = "elasticfilesystem"
FILESYSTEM_PREFIX = "file-system/"


def parse_arn_resource(arn: str) -> str:
    """Return the resource part of an ARN.

    Raises:
        ValueError: If arn is not a well-formed ARN
    """
    parts = arn.split(":", 5)
    if len(parts) != 6 or parts[0] != "arn" or not parts[5]:
        raise ValueError(f"invalid arn {arn!r}")
    return parts[5]


class FileSystemResolver:
    """Lists filesystems tagged with the org (and space)."""

    def __init__(self, tag_index: ResourceTagIndex, org: str) -> None:
        self._tag_index = tag_index
        self._org = org

    async def list_ids(self, group: str | None = None) -> list[str]:
        """List filesystem ids in the org, or in one space when group is given.

        Without a group, ids are prefixed with their space: ``{space}/{id}``.
        """
        filters = {ORG_TAG: [self._org]}
        if group:
            filters[SPACE_TAG] = [group]

        resources = await self._tag_index.get_resources([RESOURCE_TYPE], filters)

        ids: list[str] = []
        for resource in resources:
            try:
                name = parse_arn_resource(resource.arn)
            except ValueError as exc:
                logger.error("Failed to parse ARN %s: %s", resource.arn, exc)
                ids.append(resource.arn)
                continue

            # access points share the resource type
            if not name.startswith(FILESYSTEM_PREFIX):
                continue

            fs_id = name.removeprefix(FILESYSTEM_PREFIX)
            if not group:
                space = tag_value(resource.tags, SPACE_TAG)
                if space:
                    fs_id = f"{space}/{fs_id}"
            ids.append(fs_id)

        logger.debug("Filesystems in group %s: %s", group, ids)
        return ids

    async def exists(self, group: str, fs_id: str) -> bool:
        """Linear scan of the space listing."""
        for entry in await self.list_ids(group):
            candidate = entry
            if entry.startswith("arn:"):
                candidate = entry.rsplit("/", 1)[-1]
            if candidate == fs_id:
                return True
        return False
