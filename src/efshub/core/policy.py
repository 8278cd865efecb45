"""IAM and EFS policy documents.

Filesystem access policies are generated from three high-level flags.
Reading a stored policy back into flags only looks at well-known statement
Sids (DenyAnonymousAccess, DenyUnencryptedTransport,
AllowECSAccessFromHomeSpace). This is a lossy, brittle contract: any policy
edited outside this service, or a statement renamed here, silently reads
back as the default flags. Keep the Sids stable for compatibility with
policies already stored on existing filesystems.
"""

import json

from pydantic import BaseModel

POLICY_VERSION = "2012-10-17"
EFS_POLICY_ID = "efs-resource-policy-document"

SID_DENY_ANONYMOUS = "DenyAnonymousAccess"
SID_DENY_UNENCRYPTED = "DenyUnencryptedTransport"
SID_ALLOW_ECS = "AllowECSAccessFromHomeSpace"

CLIENT_ROOT_ACCESS = "elasticfilesystem:ClientRootAccess"
CLIENT_WRITE = "elasticfilesystem:ClientWrite"
CLIENT_MOUNT = "elasticfilesystem:ClientMount"

_VIA_MOUNT_TARGET = {"Bool": {"elasticfilesystem:AccessedViaMountTarget": ["true"]}}


class FileSystemAccessPolicy(BaseModel):
    """High-level access policy flags for a filesystem."""

    allow_anonymous_access: bool = True
    enforce_encrypted_transport: bool = False
    allow_ecs_task_execution_role: bool = False


def efs_policy_from_access_policy(
    account: str,
    group: str,
    fs_arn: str,
    policy: FileSystemAccessPolicy | None,
) -> dict | None:
    """Build an EFS resource policy document from access policy flags.

    Returns None when no policy was requested.
    """
    if policy is None:
        return None

    statements: list[dict] = []

    if not policy.allow_anonymous_access:
        statements.append({
            "Sid": SID_DENY_ANONYMOUS,
            "Effect": "Allow",
            "Principal": {"AWS": ["*"]},
            "Action": [CLIENT_ROOT_ACCESS, CLIENT_WRITE],
            "Resource": [fs_arn],
            "Condition": _VIA_MOUNT_TARGET,
        })

    if policy.enforce_encrypted_transport:
        statements.append({
            "Sid": SID_DENY_UNENCRYPTED,
            "Effect": "Deny",
            "Principal": {"AWS": ["*"]},
            "Action": ["*"],
            "Resource": [fs_arn],
            "Condition": {"Bool": {"aws:SecureTransport": ["false"]}},
        })

    if policy.allow_ecs_task_execution_role:
        statements.append({
            "Sid": SID_ALLOW_ECS,
            "Effect": "Allow",
            "Principal": {
                "AWS": [f"arn:aws:iam::{account}:role/{group}-ecsTaskExecution"],
            },
            "Action": [CLIENT_ROOT_ACCESS, CLIENT_WRITE, CLIENT_MOUNT],
            "Resource": [fs_arn],
            "Condition": _VIA_MOUNT_TARGET,
        })

    return {
        "Version": POLICY_VERSION,
        "Id": EFS_POLICY_ID,
        "Statement": statements,
    }


def access_policy_from_efs_policy(document: str | dict | None) -> FileSystemAccessPolicy:
    """Reconstruct access policy flags by scanning statement Sids."""
    flags = FileSystemAccessPolicy()
    if not document:
        return flags

    doc = json.loads(document) if isinstance(document, str) else document
    statements = doc.get("Statement", [])
    if isinstance(statements, dict):
        statements = [statements]

    for statement in statements:
        sid = statement.get("Sid")
        if sid == SID_DENY_ANONYMOUS:
            flags.allow_anonymous_access = False
        elif sid == SID_DENY_UNENCRYPTED:
            flags.enforce_encrypted_transport = True
        elif sid == SID_ALLOW_ECS:
            flags.allow_ecs_task_execution_role = True

    return flags


# =============================================================================
# Session and account policies
# =============================================================================


def org_tag_access_policy(org: str) -> str:
    """Inline session policy restricting access to resources tagged with org."""
    return json.dumps({
        "Version": POLICY_VERSION,
        "Statement": [
            {
                "Effect": "Allow",
                "Action": ["*"],
                "Resource": ["*"],
                "Condition": {
                    "StringEquals": {"aws:ResourceTag/spinup:org": [org]},
                },
            },
        ],
    }, separators=(",", ":"))


def generate_policy(*actions: str) -> str:
    """Inline session policy allowing the given actions on any resource."""
    return json.dumps({
        "Version": POLICY_VERSION,
        "Statement": [
            {"Effect": "Allow", "Action": list(actions), "Resource": ["*"]},
        ],
    }, separators=(",", ":"))


def user_create_policy(org: str) -> str:
    return json.dumps({
        "Version": POLICY_VERSION,
        "Statement": [
            {
                "Sid": "CreateRepositoryUser",
                "Effect": "Allow",
                "Action": [
                    "iam:CreatePolicy",
                    "iam:UntagUser",
                    "iam:GetPolicyVersion",
                    "iam:AddUserToGroup",
                    "iam:GetPolicy",
                    "iam:ListAttachedGroupPolicies",
                    "iam:ListGroupPolicies",
                    "iam:AttachGroupPolicy",
                    "iam:GetUser",
                    "iam:CreatePolicyVersion",
                    "iam:CreateUser",
                    "iam:GetGroup",
                    "iam:CreateGroup",
                    "iam:TagUser",
                ],
                "Resource": [
                    "arn:aws:iam::*:group/*",
                    f"arn:aws:iam::*:policy/spinup/{org}/*",
                    f"arn:aws:iam::*:user/spinup/{org}/*",
                ],
            },
            {
                "Sid": "ListRepositoryUserPolicies",
                "Effect": "Allow",
                "Action": ["iam:ListPolicies"],
                "Resource": ["*"],
            },
        ],
    }, separators=(",", ":"))


def user_delete_policy(org: str) -> str:
    return json.dumps({
        "Version": POLICY_VERSION,
        "Statement": [
            {
                "Sid": "DeleteRepositoryUser",
                "Effect": "Allow",
                "Action": [
                    "iam:DeleteAccessKey",
                    "iam:RemoveUserFromGroup",
                    "iam:ListAccessKeys",
                    "iam:ListGroupsForUser",
                    "iam:ListUsers",
                    "iam:DeleteUser",
                    "iam:GetUser",
                ],
                "Resource": [
                    f"arn:aws:iam::*:user/spinup/{org}/*",
                    f"arn:aws:iam::*:group/spinup/{org}/*",
                ],
            },
        ],
    }, separators=(",", ":"))


def user_update_policy(org: str) -> str:
    return json.dumps({
        "Version": POLICY_VERSION,
        "Statement": [
            {
                "Sid": "UpdateRepositoryUser",
                "Effect": "Allow",
                "Action": [
                    "iam:GetUser",
                    "iam:UntagUser",
                    "iam:DeleteAccessKey",
                    "iam:RemoveUserFromGroup",
                    "iam:TagUser",
                    "iam:CreateAccessKey",
                    "iam:ListAccessKeys",
                ],
                "Resource": [
                    f"arn:aws:iam::*:user/spinup/{org}/*",
                    f"arn:aws:iam::*:group/spinup/{org}/SpinupEFSAdminGroup-{org}",
                ],
            },
        ],
    }, separators=(",", ":"))


def efs_admin_policy() -> dict:
    """Policy attached to the org admin group; scopes users by principal tags."""
    return {
        "Version": POLICY_VERSION,
        "Statement": [
            {
                "Sid": "AllowActionsOnVolumesInSpaceAndOrg",
                "Effect": "Allow",
                "Action": [CLIENT_ROOT_ACCESS, CLIENT_WRITE, CLIENT_MOUNT],
                "Resource": ["*"],
                "Condition": {
                    "StringEqualsIgnoreCase": {
                        "aws:ResourceTag/Name": ["${aws:PrincipalTag/ResourceName}"],
                        "aws:ResourceTag/spinup:org": ["${aws:PrincipalTag/spinup:org}"],
                        "aws:ResourceTag/spinup:spaceid": ["${aws:PrincipalTag/spinup:spaceid}"],
                    },
                },
            },
        ],
    }


def merge_policies(*documents: str) -> str:
    """Concatenate the statements of several inline policy documents."""
    statements: list[dict] = []
    for document in documents:
        if document:
            statements.extend(json.loads(document).get("Statement", []))
    return json.dumps({
        "Version": POLICY_VERSION,
        "Statement": statements,
    }, separators=(",", ":"))
