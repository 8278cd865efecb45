"""Account registry - resolves account aliases and assumes roles.

Constructed once at startup from settings and passed explicitly to the
orchestrator. Every call assumes ``arn:aws:iam::{account}:role/{role_name}``
with an inline session policy narrowing what the session may do, and
returns an AccountServices bundle of adapters sharing that session.
"""

import logging
from collections.abc import Sequence
from typing import Any

import aioboto3
from botocore.exceptions import BotoCoreError, ClientError

from efshub.app.config import AwsConfig
from efshub.core.errors import ForbiddenError, NotFoundError
from efshub.core.interfaces import AccountDefaults, AccountServices
from efshub.core.logging_schema import LogEvent
from efshub.infra.boto import ClientFactory
from efshub.infra.discovery import Ec2SubnetLocator, KmsKeyLocator, TaggingResourceIndex
from efshub.infra.efs import EfsControlPlane
from efshub.infra.iam import IamIdentityProvider

logger = logging.getLogger(__name__)

EFS_READ_ONLY_POLICY_ARN = "arn:aws:iam::aws:policy/AmazonElasticFileSystemReadOnlyAccess"
IAM_READ_ONLY_POLICY_ARN = "arn:aws:iam::aws:policy/IAMReadOnlyAccess"


class AccountRegistry:
    """Maps account aliases to numbers and hands out assumed-role services."""

    def __init__(self, aws: AwsConfig, accounts_map: dict[str, str]) -> None:
        self._aws = aws
        self._accounts = dict(accounts_map)
        self._base = aioboto3.Session(
            aws_access_key_id=aws.access_key_id or None,
            aws_secret_access_key=aws.secret_access_key or None,
            region_name=aws.region,
        )

    def account_number(self, alias: str) -> str:
        """Resolve an alias (or a bare account number).

        Raises:
            NotFoundError: If the alias is neither mapped nor numeric
        """
        if alias in self._accounts:
            return self._accounts[alias]
        if alias.isdigit():
            return alias
        raise NotFoundError("account not found")

    def role_arn(self, account: str) -> str:
        return f"arn:aws:iam::{account}:role/{self._aws.role_name}"

    async def assume(
        self,
        alias: str,
        policy: str = "",
        policy_arns: Sequence[str] = (),
    ) -> aioboto3.Session:
        """Assume the service role in the account and return a scoped session.

        Raises:
            NotFoundError: Unknown account alias
            ForbiddenError: STS refused the role
        """
        account = self.account_number(alias)
        params: dict[str, Any] = {
            "RoleArn": self.role_arn(account),
            "RoleSessionName": self._aws.session_name,
            "DurationSeconds": self._aws.session_duration,
        }
        if self._aws.external_id:
            params["ExternalId"] = self._aws.external_id
        if policy:
            params["Policy"] = policy
        if policy_arns:
            params["PolicyArns"] = [{"arn": arn} for arn in policy_arns]

        try:
            async with self._base.client(
                "sts",
                region_name=self._aws.region,
                endpoint_url=self._aws.endpoint_url,
            ) as sts:
                out = await sts.assume_role(**params)
        except (ClientError, BotoCoreError) as exc:
            logger.warning(
                "Failed to assume role in account %s: %s",
                account,
                exc,
                extra={"event": LogEvent.AWS_ERROR, "service": "sts"},
            )
            raise ForbiddenError("failed to assume role in account") from exc

        creds = out["Credentials"]
        logger.debug(
            "Assumed role %s",
            params["RoleArn"],
            extra={"event": LogEvent.ROLE_ASSUMED, "account": account},
        )
        return aioboto3.Session(
            aws_access_key_id=creds["AccessKeyId"],
            aws_secret_access_key=creds["SecretAccessKey"],
            aws_session_token=creds["SessionToken"],
            region_name=self._aws.region,
        )

    async def services(
        self,
        alias: str,
        policy: str = "",
        policy_arns: Sequence[str] = (),
    ) -> AccountServices:
        """Build the adapter bundle for one assumed-role session."""
        session = await self.assume(alias, policy, policy_arns)
        clients = ClientFactory(
            session=session,
            region=self._aws.region,
            endpoint_url=self._aws.endpoint_url,
        )
        return AccountServices(
            account=self.account_number(alias),
            control_plane=EfsControlPlane(clients),
            identity=IamIdentityProvider(clients),
            subnets=Ec2SubnetLocator(clients),
            tag_index=TaggingResourceIndex(clients),
            keys=KmsKeyLocator(clients),
            defaults=AccountDefaults(
                subnets=list(self._aws.default_subnets),
                security_groups=list(self._aws.default_sgs),
                kms_key_id=self._aws.default_kms_key_id,
                kms_key_tags=list(self._aws.kms_key_tags),
            ),
        )
