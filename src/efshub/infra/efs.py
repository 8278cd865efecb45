"""EFS control plane implementation on aioboto3."""

import logging
from typing import Any

from botocore.exceptions import ClientError

from efshub.core.domain import BackupStatus, TransitionToIA, TransitionToPrimary
from efshub.core.errors import NotFoundError, client_error_code
from efshub.core.interfaces import (
    AccessPointDescription,
    ControlPlane,
    FileSystemDescription,
    MountTargetDescription,
)
from efshub.core.models import CreationInfo, FileSystemSize, PosixUser, RootDirectory
from efshub.core.tags import Tag, from_aws_tags, to_aws_tags
from efshub.infra.boto import ClientFactory, translate_errors

logger = logging.getLogger(__name__)

SERVICE = "efs"


def _filesystem(data: dict[str, Any]) -> FileSystemDescription:
    size = data.get("SizeInBytes")
    return FileSystemDescription(
        file_system_id=data["FileSystemId"],
        life_cycle_state=data.get("LifeCycleState", ""),
        file_system_arn=data.get("FileSystemArn", ""),
        name=data.get("Name", ""),
        kms_key_id=data.get("KmsKeyId", ""),
        number_of_mount_targets=data.get("NumberOfMountTargets", 0),
        creation_time=data.get("CreationTime"),
        availability_zone_name=data.get("AvailabilityZoneName"),
        size=(
            FileSystemSize(
                timestamp=size.get("Timestamp"),
                value=size.get("Value", 0),
                value_in_ia=size.get("ValueInIA", 0),
                value_in_standard=size.get("ValueInStandard", 0),
            )
            if size
            else None
        ),
        tags=from_aws_tags(data.get("Tags")),
    )


def _mount_target(data: dict[str, Any]) -> MountTargetDescription:
    return MountTargetDescription(
        mount_target_id=data["MountTargetId"],
        file_system_id=data.get("FileSystemId", ""),
        life_cycle_state=data.get("LifeCycleState", ""),
        subnet_id=data.get("SubnetId", ""),
        ip_address=data.get("IpAddress", ""),
        availability_zone_id=data.get("AvailabilityZoneId", ""),
        availability_zone_name=data.get("AvailabilityZoneName", ""),
    )


def _access_point(data: dict[str, Any]) -> AccessPointDescription:
    posix = data.get("PosixUser")
    root = data.get("RootDirectory")
    creation = (root or {}).get("CreationInfo")
    return AccessPointDescription(
        access_point_id=data["AccessPointId"],
        file_system_id=data.get("FileSystemId", ""),
        life_cycle_state=data.get("LifeCycleState", ""),
        access_point_arn=data.get("AccessPointArn", ""),
        name=data.get("Name", ""),
        posix_user=(
            PosixUser(
                uid=posix["Uid"],
                gid=posix["Gid"],
                secondary_gids=posix.get("SecondaryGids", []),
            )
            if posix
            else None
        ),
        root_directory=(
            RootDirectory(
                path=root.get("Path", "/"),
                creation_info=(
                    CreationInfo(
                        owner_uid=creation["OwnerUid"],
                        owner_gid=creation["OwnerGid"],
                        permissions=creation["Permissions"],
                    )
                    if creation
                    else None
                ),
            )
            if root
            else None
        ),
        tags=from_aws_tags(data.get("Tags")),
    )


class EfsControlPlane(ControlPlane):
    """Filesystem, mount target and access point operations against EFS."""

    def __init__(self, clients: ClientFactory) -> None:
        self._clients = clients

    # Filesystems

    async def create_filesystem(
        self,
        *,
        creation_token: str,
        kms_key_id: str,
        tags: list[Tag],
        availability_zone: str | None = None,
    ) -> FileSystemDescription:
        params: dict[str, Any] = {
            "CreationToken": creation_token,
            "Encrypted": True,
            "PerformanceMode": "generalPurpose",
            "Tags": to_aws_tags(tags),
        }
        if kms_key_id:
            params["KmsKeyId"] = kms_key_id
        if availability_zone:
            params["AvailabilityZoneName"] = availability_zone

        logger.info("Creating filesystem with token %s", creation_token)
        async with translate_errors(SERVICE, "failed to create filesystem"):
            async with self._clients.client(SERVICE) as efs:
                out = await efs.create_file_system(**params)
        return _filesystem(out)

    async def get_filesystem(self, fs_id: str) -> FileSystemDescription:
        async with translate_errors(SERVICE, f"failed to describe filesystem {fs_id}"):
            async with self._clients.client(SERVICE) as efs:
                out = await efs.describe_file_systems(FileSystemId=fs_id)

        filesystems = out.get("FileSystems", [])
        if len(filesystems) != 1:
            raise NotFoundError(f"filesystem {fs_id} not found")
        return _filesystem(filesystems[0])

    async def delete_filesystem(self, fs_id: str) -> None:
        logger.info("Deleting filesystem %s", fs_id)
        async with translate_errors(SERVICE, f"failed to delete filesystem {fs_id}"):
            async with self._clients.client(SERVICE) as efs:
                await efs.delete_file_system(FileSystemId=fs_id)

    # Mount targets

    async def create_mount_target(
        self, fs_id: str, subnet_id: str, security_groups: list[str]
    ) -> MountTargetDescription:
        params: dict[str, Any] = {"FileSystemId": fs_id, "SubnetId": subnet_id}
        if security_groups:
            params["SecurityGroups"] = security_groups

        async with translate_errors(SERVICE, f"failed to create mount target in {subnet_id}"):
            async with self._clients.client(SERVICE) as efs:
                out = await efs.create_mount_target(**params)
        return _mount_target(out)

    async def list_mount_targets(self, fs_id: str) -> list[MountTargetDescription]:
        results: list[MountTargetDescription] = []
        async with translate_errors(SERVICE, f"failed to list mount targets for {fs_id}"):
            async with self._clients.client(SERVICE) as efs:
                params: dict[str, Any] = {"FileSystemId": fs_id}
                while True:
                    out = await efs.describe_mount_targets(**params)
                    results.extend(_mount_target(mt) for mt in out.get("MountTargets", []))
                    marker = out.get("NextMarker")
                    if not marker:
                        break
                    params["Marker"] = marker
        return results

    async def delete_mount_target(self, mount_target_id: str) -> None:
        logger.info("Deleting mount target %s", mount_target_id)
        async with translate_errors(SERVICE, f"failed to delete mount target {mount_target_id}"):
            async with self._clients.client(SERVICE) as efs:
                await efs.delete_mount_target(MountTargetId=mount_target_id)

    # Access points

    async def create_access_point(
        self,
        *,
        client_token: str,
        fs_id: str,
        tags: list[Tag],
        posix_user: PosixUser | None = None,
        root_directory: RootDirectory | None = None,
    ) -> AccessPointDescription:
        params: dict[str, Any] = {
            "ClientToken": client_token,
            "FileSystemId": fs_id,
            "Tags": to_aws_tags(tags),
        }
        if posix_user is not None:
            params["PosixUser"] = {
                "Uid": posix_user.uid,
                "Gid": posix_user.gid,
                "SecondaryGids": posix_user.secondary_gids,
            }
        if root_directory is not None:
            root: dict[str, Any] = {"Path": root_directory.path}
            if root_directory.creation_info is not None:
                info = root_directory.creation_info
                root["CreationInfo"] = {
                    "OwnerUid": info.owner_uid,
                    "OwnerGid": info.owner_gid,
                    "Permissions": info.permissions,
                }
            params["RootDirectory"] = root

        async with translate_errors(SERVICE, f"failed to create access point for {fs_id}"):
            async with self._clients.client(SERVICE) as efs:
                out = await efs.create_access_point(**params)
        return _access_point(out)

    async def list_access_points(self, fs_id: str) -> list[AccessPointDescription]:
        results: list[AccessPointDescription] = []
        async with translate_errors(SERVICE, f"failed to list access points for {fs_id}"):
            async with self._clients.client(SERVICE) as efs:
                params: dict[str, Any] = {"FileSystemId": fs_id}
                while True:
                    out = await efs.describe_access_points(**params)
                    results.extend(_access_point(ap) for ap in out.get("AccessPoints", []))
                    token = out.get("NextToken")
                    if not token:
                        break
                    params["NextToken"] = token
        return results

    async def get_access_point(self, ap_id: str) -> AccessPointDescription:
        async with translate_errors(SERVICE, f"failed to describe access point {ap_id}"):
            async with self._clients.client(SERVICE) as efs:
                out = await efs.describe_access_points(AccessPointId=ap_id)

        access_points = out.get("AccessPoints", [])
        if len(access_points) != 1:
            raise NotFoundError(f"access point {ap_id} not found")
        return _access_point(access_points[0])

    async def delete_access_point(self, ap_id: str) -> None:
        logger.info("Deleting access point %s", ap_id)
        async with translate_errors(SERVICE, f"failed to delete access point {ap_id}"):
            async with self._clients.client(SERVICE) as efs:
                await efs.delete_access_point(AccessPointId=ap_id)

    # Policies

    async def set_backup_policy(self, fs_id: str, status: str) -> None:
        async with translate_errors(SERVICE, f"failed to set backup policy for {fs_id}"):
            async with self._clients.client(SERVICE) as efs:
                await efs.put_backup_policy(
                    FileSystemId=fs_id,
                    BackupPolicy={"Status": status},
                )

    async def get_backup_policy(self, fs_id: str) -> str:
        async with translate_errors(SERVICE, f"failed to get backup policy for {fs_id}"):
            async with self._clients.client(SERVICE) as efs:
                try:
                    out = await efs.describe_backup_policy(FileSystemId=fs_id)
                except ClientError as exc:
                    if client_error_code(exc) == "PolicyNotFound":
                        return BackupStatus.DISABLED.value
                    raise
        return out.get("BackupPolicy", {}).get("Status", BackupStatus.DISABLED.value)

    async def set_lifecycle_configuration(
        self, fs_id: str, transition_to_ia: str, transition_to_primary: str
    ) -> None:
        policies: list[dict[str, str]] = []
        if transition_to_ia and transition_to_ia != TransitionToIA.NONE:
            policies.append({"TransitionToIA": transition_to_ia})
        if transition_to_primary and transition_to_primary != TransitionToPrimary.NONE:
            policies.append({"TransitionToPrimaryStorageClass": transition_to_primary})

        async with translate_errors(SERVICE, f"failed to set lifecycle for {fs_id}"):
            async with self._clients.client(SERVICE) as efs:
                await efs.put_lifecycle_configuration(
                    FileSystemId=fs_id,
                    LifecyclePolicies=policies,
                )

    async def get_lifecycle_configuration(self, fs_id: str) -> tuple[str, str]:
        async with translate_errors(SERVICE, f"failed to get lifecycle for {fs_id}"):
            async with self._clients.client(SERVICE) as efs:
                out = await efs.describe_lifecycle_configuration(FileSystemId=fs_id)

        ia = TransitionToIA.NONE.value
        primary = TransitionToPrimary.NONE.value
        for policy in out.get("LifecyclePolicies", []):
            ia = policy.get("TransitionToIA", ia)
            primary = policy.get("TransitionToPrimaryStorageClass", primary)
        return ia, primary

    async def set_access_policy(self, fs_id: str, document: str) -> None:
        async with translate_errors(SERVICE, f"failed to set access policy for {fs_id}"):
            async with self._clients.client(SERVICE) as efs:
                await efs.put_file_system_policy(FileSystemId=fs_id, Policy=document)

    async def get_access_policy(self, fs_id: str) -> str | None:
        async with translate_errors(SERVICE, f"failed to get access policy for {fs_id}"):
            async with self._clients.client(SERVICE) as efs:
                try:
                    out = await efs.describe_file_system_policy(FileSystemId=fs_id)
                except ClientError as exc:
                    if client_error_code(exc) == "PolicyNotFound":
                        return None
                    raise
        return out.get("Policy")

    # Tags

    async def tag_resource(self, resource_id: str, tags: list[Tag]) -> None:
        async with translate_errors(SERVICE, f"failed to tag {resource_id}"):
            async with self._clients.client(SERVICE) as efs:
                await efs.tag_resource(ResourceId=resource_id, Tags=to_aws_tags(tags))
