"""Tests for filesystem access policies and session policies."""

import json

from efshub.core.policy import (
    SID_ALLOW_ECS,
    SID_DENY_ANONYMOUS,
    SID_DENY_UNENCRYPTED,
    FileSystemAccessPolicy,
    access_policy_from_efs_policy,
    efs_policy_from_access_policy,
    generate_policy,
    merge_policies,
    org_tag_access_policy,
)

FS_ARN = "arn:aws:elasticfilesystem:us-east-1:123456789012:file-system/fs-1"


class TestEfsPolicy:
    """Tests for access policy generation."""

    def test_none_means_no_policy(self) -> None:
        assert efs_policy_from_access_policy("123", "space", FS_ARN, None) is None

    def test_default_flags_produce_no_statements(self) -> None:
        doc = efs_policy_from_access_policy("123", "space", FS_ARN, FileSystemAccessPolicy())
        assert doc["Statement"] == []

    def test_all_flags(self) -> None:
        flags = FileSystemAccessPolicy(
            allow_anonymous_access=False,
            enforce_encrypted_transport=True,
            allow_ecs_task_execution_role=True,
        )
        doc = efs_policy_from_access_policy("123", "space-1", FS_ARN, flags)

        sids = [s["Sid"] for s in doc["Statement"]]
        assert sids == [SID_DENY_ANONYMOUS, SID_DENY_UNENCRYPTED, SID_ALLOW_ECS]
        ecs = doc["Statement"][2]
        assert ecs["Principal"]["AWS"] == ["arn:aws:iam::123:role/space-1-ecsTaskExecution"]

    def test_round_trip_by_sid(self) -> None:
        """Flags survive a write/read cycle through the stored document."""
        for flags in (
            FileSystemAccessPolicy(allow_anonymous_access=False),
            FileSystemAccessPolicy(enforce_encrypted_transport=True),
            FileSystemAccessPolicy(allow_ecs_task_execution_role=True),
        ):
            doc = efs_policy_from_access_policy("123", "space", FS_ARN, flags)
            assert access_policy_from_efs_policy(json.dumps(doc)) == flags

    def test_missing_policy_reads_as_defaults(self) -> None:
        assert access_policy_from_efs_policy(None) == FileSystemAccessPolicy()

    def test_unknown_sids_are_ignored(self) -> None:
        doc = {"Statement": {"Sid": "Custom", "Effect": "Deny"}}
        assert access_policy_from_efs_policy(doc) == FileSystemAccessPolicy()


class TestSessionPolicies:
    """Tests for inline session policies."""

    def test_org_tag_policy_condition(self) -> None:
        doc = json.loads(org_tag_access_policy("acme"))
        condition = doc["Statement"][0]["Condition"]["StringEquals"]
        assert condition == {"aws:ResourceTag/spinup:org": ["acme"]}

    def test_merge_concatenates_statements(self) -> None:
        merged = json.loads(
            merge_policies(generate_policy("ec2:DescribeSubnets"), org_tag_access_policy("acme"), "")
        )
        assert len(merged["Statement"]) == 2
        assert merged["Statement"][0]["Action"] == ["ec2:DescribeSubnets"]
