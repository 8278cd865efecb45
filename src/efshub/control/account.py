"""Account preparation for filesystem users.

Users are granted access through one org-wide group whose managed policy
matches resource tags against the user's principal tags. Both are created
on demand and the policy is brought back to the expected document if it
drifted.
"""

import json
import logging

from efshub.core.errors import NotFoundError
from efshub.core.interfaces import IdentityProvider
from efshub.core.logging_schema import Component, LogEvent
from efshub.core.policy import efs_admin_policy

logger = logging.getLogger(__name__)


def admin_path(org: str) -> str:
    return f"/spinup/{org}/"


def admin_group_name(org: str) -> str:
    return f"SpinupEFSAdminGroup-{org}"


def admin_policy_name(org: str) -> str:
    return f"SpinupEFSAdminPolicy-{org}"


def _canonical(document: dict) -> dict:
    """Normalize single-string Action/Resource values to lists for comparison."""
    statements = document.get("Statement", [])
    if isinstance(statements, dict):
        statements = [statements]
    out = []
    for statement in statements:
        statement = dict(statement)
        for key in ("Action", "Resource"):
            if isinstance(statement.get(key), str):
                statement[key] = [statement[key]]
        out.append(statement)
    return {"Version": document.get("Version"), "Statement": out}


class AccountPreparer:
    def __init__(self, identity: IdentityProvider, org: str) -> None:
        self._identity = identity
        self._org = org
        self._document = efs_admin_policy()

    async def prepare(self) -> str:
        """Ensure the admin policy and group exist; returns the policy ARN."""
        path = admin_path(self._org)
        policy_arn = await self._ensure_policy(admin_policy_name(self._org), path)
        await self._ensure_group(admin_group_name(self._org), path, policy_arn)
        logger.info(
            "Account prepared for user management",
            extra={"event": LogEvent.ACCOUNT_PREPARED, "component": Component.ACCOUNT},
        )
        return policy_arn

    async def _ensure_policy(self, name: str, path: str) -> str:
        expected = json.dumps(self._document)

        policy = await self._identity.get_policy_by_name(name, path)
        if policy is None:
            logger.info("Policy %s not found, creating", name)
            created = await self._identity.create_policy(name, path, expected)
            await self._identity.wait_for_policy(created.arn)
            return created.arn

        current = await self._identity.get_policy_document(policy.arn, policy.default_version_id)
        try:
            drifted = _canonical(json.loads(current)) != _canonical(self._document)
        except (ValueError, AttributeError) as exc:
            logger.warning("Unreadable policy document for %s: %s, updating", name, exc)
            drifted = True

        if drifted:
            logger.warning("Policy document for %s is not the same, updating", name)
            await self._identity.update_policy(policy.arn, expected)
        return policy.arn

    async def _ensure_group(self, name: str, path: str, policy_arn: str) -> None:
        try:
            await self._identity.get_group_with_path(name, path)
        except NotFoundError:
            logger.info("Group %s not found, creating", name)
            await self._identity.create_group(name, path)

        attached = await self._identity.list_attached_group_policies(name, path)
        if policy_arn not in attached:
            await self._identity.attach_group_policy(name, policy_arn)
