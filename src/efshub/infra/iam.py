"""IAM identity provider implementation on aioboto3."""

import json
import logging
from typing import Any
from urllib.parse import unquote

from efshub.core.errors import NotFoundError
from efshub.core.interfaces import IdentityProvider, PolicyDescription, UserDescription
from efshub.core.models import AccessKey, AccessKeyMetadata
from efshub.core.tags import Tag, from_aws_tags, to_aws_tags
from efshub.infra.boto import ClientFactory, translate_errors

logger = logging.getLogger(__name__)

SERVICE = "iam"

# IAM keeps at most five versions per managed policy
MAX_POLICY_VERSIONS = 5


def _user(data: dict[str, Any]) -> UserDescription:
    return UserDescription(
        user_name=data["UserName"],
        path=data.get("Path", "/"),
        arn=data.get("Arn", ""),
        create_date=data.get("CreateDate"),
        tags=from_aws_tags(data.get("Tags")),
    )


def _policy(data: dict[str, Any]) -> PolicyDescription:
    return PolicyDescription(
        policy_name=data["PolicyName"],
        arn=data["Arn"],
        path=data.get("Path", "/"),
        default_version_id=data.get("DefaultVersionId", ""),
    )


class IamIdentityProvider(IdentityProvider):
    """Path-scoped users, groups, access keys and managed policies."""

    def __init__(self, clients: ClientFactory) -> None:
        self._clients = clients

    # Users

    async def create_user(self, name: str, path: str, tags: list[Tag]) -> UserDescription:
        logger.info("Creating user %s in %s", name, path)
        async with translate_errors(SERVICE, f"failed to create user {name}"):
            async with self._clients.client(SERVICE) as iam:
                out = await iam.create_user(UserName=name, Path=path, Tags=to_aws_tags(tags))
        return _user(out["User"])

    async def wait_for_user(self, name: str) -> None:
        async with translate_errors(SERVICE, f"failed waiting for user {name}"):
            async with self._clients.client(SERVICE) as iam:
                waiter = iam.get_waiter("user_exists")
                await waiter.wait(UserName=name)

    async def get_user_with_path(self, path: str, name: str) -> UserDescription:
        async with translate_errors(SERVICE, f"failed to get user {name}"):
            async with self._clients.client(SERVICE) as iam:
                out = await iam.get_user(UserName=name)

        user = _user(out["User"])
        if user.path != path:
            raise NotFoundError(f"user {name} not found in {path}")
        return user

    async def delete_user(self, name: str) -> None:
        logger.info("Deleting user %s", name)
        async with translate_errors(SERVICE, f"failed to delete user {name}"):
            async with self._clients.client(SERVICE) as iam:
                await iam.delete_user(UserName=name)

    async def list_users(self, path: str) -> list[str]:
        names: list[str] = []
        async with translate_errors(SERVICE, f"failed to list users in {path}"):
            async with self._clients.client(SERVICE) as iam:
                paginator = iam.get_paginator("list_users")
                async for page in paginator.paginate(PathPrefix=path):
                    names.extend(u["UserName"] for u in page.get("Users", []))
        return names

    async def tag_user(self, name: str, tags: list[Tag]) -> None:
        async with translate_errors(SERVICE, f"failed to tag user {name}"):
            async with self._clients.client(SERVICE) as iam:
                await iam.tag_user(UserName=name, Tags=to_aws_tags(tags))

    # Access keys

    async def create_access_key(self, name: str) -> AccessKey:
        async with translate_errors(SERVICE, f"failed to create access key for {name}"):
            async with self._clients.client(SERVICE) as iam:
                out = await iam.create_access_key(UserName=name)

        key = out["AccessKey"]
        return AccessKey(
            access_key_id=key["AccessKeyId"],
            secret_access_key=key["SecretAccessKey"],
            status=key.get("Status", ""),
            create_date=key.get("CreateDate"),
        )

    async def list_access_keys(self, name: str) -> list[AccessKeyMetadata]:
        async with translate_errors(SERVICE, f"failed to list access keys for {name}"):
            async with self._clients.client(SERVICE) as iam:
                out = await iam.list_access_keys(UserName=name)

        return [
            AccessKeyMetadata(
                access_key_id=k["AccessKeyId"],
                status=k.get("Status", ""),
                create_date=k.get("CreateDate"),
            )
            for k in out.get("AccessKeyMetadata", [])
        ]

    async def delete_access_key(self, name: str, access_key_id: str) -> None:
        async with translate_errors(SERVICE, f"failed to delete access key {access_key_id}"):
            async with self._clients.client(SERVICE) as iam:
                await iam.delete_access_key(UserName=name, AccessKeyId=access_key_id)

    # Groups

    async def add_user_to_group(self, name: str, group: str) -> None:
        async with translate_errors(SERVICE, f"failed to add user {name} to group {group}"):
            async with self._clients.client(SERVICE) as iam:
                await iam.add_user_to_group(GroupName=group, UserName=name)

    async def remove_user_from_group(self, name: str, group: str) -> None:
        async with translate_errors(SERVICE, f"failed to remove user {name} from group {group}"):
            async with self._clients.client(SERVICE) as iam:
                await iam.remove_user_from_group(GroupName=group, UserName=name)

    async def list_groups_for_user(self, name: str) -> list[str]:
        async with translate_errors(SERVICE, f"failed to list groups for user {name}"):
            async with self._clients.client(SERVICE) as iam:
                out = await iam.list_groups_for_user(UserName=name)
        return [g["GroupName"] for g in out.get("Groups", [])]

    async def get_group_with_path(self, name: str, path: str) -> str:
        async with translate_errors(SERVICE, f"failed to get group {name}"):
            async with self._clients.client(SERVICE) as iam:
                out = await iam.get_group(GroupName=name)

        group = out["Group"]
        if group.get("Path") != path:
            raise NotFoundError(f"group {name} not found in {path}")
        return group["Arn"]

    async def create_group(self, name: str, path: str) -> str:
        logger.info("Creating group %s in %s", name, path)
        async with translate_errors(SERVICE, f"failed to create group {name}"):
            async with self._clients.client(SERVICE) as iam:
                out = await iam.create_group(GroupName=name, Path=path)
        return out["Group"]["Arn"]

    async def list_attached_group_policies(self, name: str, path: str) -> list[str]:
        async with translate_errors(SERVICE, f"failed to list policies of group {name}"):
            async with self._clients.client(SERVICE) as iam:
                out = await iam.list_attached_group_policies(GroupName=name, PathPrefix=path)
        return [p["PolicyArn"] for p in out.get("AttachedPolicies", [])]

    async def attach_group_policy(self, name: str, policy_arn: str) -> None:
        async with translate_errors(SERVICE, f"failed to attach {policy_arn} to group {name}"):
            async with self._clients.client(SERVICE) as iam:
                await iam.attach_group_policy(GroupName=name, PolicyArn=policy_arn)

    # Managed policies

    async def get_policy_by_name(self, name: str, path: str) -> PolicyDescription | None:
        async with translate_errors(SERVICE, f"failed to list policies in {path}"):
            async with self._clients.client(SERVICE) as iam:
                paginator = iam.get_paginator("list_policies")
                async for page in paginator.paginate(Scope="Local", PathPrefix=path):
                    for policy in page.get("Policies", []):
                        if policy["PolicyName"] == name:
                            return _policy(policy)
        return None

    async def get_policy_document(self, arn: str, version_id: str) -> str:
        async with translate_errors(SERVICE, f"failed to get policy version {arn}"):
            async with self._clients.client(SERVICE) as iam:
                out = await iam.get_policy_version(PolicyArn=arn, VersionId=version_id)

        document = out["PolicyVersion"]["Document"]
        # botocore usually decodes the document already
        if isinstance(document, dict):
            return json.dumps(document)
        return unquote(document)

    async def create_policy(self, name: str, path: str, document: str) -> PolicyDescription:
        logger.info("Creating policy %s in %s", name, path)
        async with translate_errors(SERVICE, f"failed to create policy {name}"):
            async with self._clients.client(SERVICE) as iam:
                out = await iam.create_policy(PolicyName=name, Path=path, PolicyDocument=document)
        return _policy(out["Policy"])

    async def wait_for_policy(self, arn: str) -> None:
        async with translate_errors(SERVICE, f"failed waiting for policy {arn}"):
            async with self._clients.client(SERVICE) as iam:
                waiter = iam.get_waiter("policy_exists")
                await waiter.wait(PolicyArn=arn)

    async def update_policy(self, arn: str, document: str) -> None:
        logger.info("Publishing new default version of %s", arn)
        async with translate_errors(SERVICE, f"failed to update policy {arn}"):
            async with self._clients.client(SERVICE) as iam:
                out = await iam.list_policy_versions(PolicyArn=arn)
                versions = [v for v in out.get("Versions", []) if not v.get("IsDefaultVersion")]
                if len(versions) >= MAX_POLICY_VERSIONS - 1:
                    oldest = min(versions, key=lambda v: v["CreateDate"])
                    await iam.delete_policy_version(PolicyArn=arn, VersionId=oldest["VersionId"])

                await iam.create_policy_version(
                    PolicyArn=arn,
                    PolicyDocument=document,
                    SetAsDefault=True,
                )
