"""Lookup adapters: resource tag index (tagging API), subnet zones (EC2), keys (KMS)."""

import logging

from efshub.core.errors import BadRequestError
from efshub.core.interfaces import KeyLocator, ResourceTagIndex, SubnetLocator, TaggedResource
from efshub.core.tags import from_aws_tags
from efshub.infra.boto import ClientFactory, translate_errors

logger = logging.getLogger(__name__)


class TaggingResourceIndex(ResourceTagIndex):
    """Resource Groups Tagging API backed index."""

    def __init__(self, clients: ClientFactory) -> None:
        self._clients = clients

    async def get_resources(
        self, resource_types: list[str], tag_filters: dict[str, list[str]]
    ) -> list[TaggedResource]:
        if not tag_filters:
            raise BadRequestError("invalid input")

        logger.debug(
            "Getting resources of type %s matching %s",
            ", ".join(resource_types),
            tag_filters,
        )

        results: list[TaggedResource] = []
        async with translate_errors("tagging", "getting resource with tags"):
            async with self._clients.client("resourcegroupstaggingapi") as rgt:
                paginator = rgt.get_paginator("get_resources")
                async for page in paginator.paginate(
                    ResourceTypeFilters=resource_types,
                    TagFilters=[{"Key": k, "Values": v} for k, v in tag_filters.items()],
                ):
                    for mapping in page.get("ResourceTagMappingList", []):
                        results.append(
                            TaggedResource(
                                arn=mapping["ResourceARN"],
                                tags=from_aws_tags(mapping.get("Tags")),
                            )
                        )
        return results


class Ec2SubnetLocator(SubnetLocator):
    def __init__(self, clients: ClientFactory) -> None:
        self._clients = clients

    async def subnet_azs(self, subnets: list[str]) -> dict[str, str]:
        if not subnets:
            return {}

        logger.info("Determining availability zones for subnets %s", subnets)
        async with translate_errors("ec2", "failed to describe subnet"):
            async with self._clients.client("ec2") as ec2:
                out = await ec2.describe_subnets(SubnetIds=subnets)

        return {s["SubnetId"]: s["AvailabilityZone"] for s in out.get("Subnets", [])}


class KmsKeyLocator(KeyLocator):
    """Finds the per-org encryption key by its tag keys.

    Tag keys are namespaced (``spinup:{scope}:org``); a key whose last
    segment is ``org`` only matches when its value equals the org.
    """

    def __init__(self, clients: ClientFactory) -> None:
        self._clients = clients

    async def find_key_by_tags(self, tag_keys: list[str], org: str) -> str | None:
        if not tag_keys:
            raise BadRequestError("empty kms key input tags")

        wanted = set(tag_keys)
        async with translate_errors("kms", "failed to find kms key"):
            async with self._clients.client("kms") as kms:
                paginator = kms.get_paginator("list_keys")
                async for page in paginator.paginate():
                    for key in page.get("Keys", []):
                        key_id = key["KeyId"]
                        out = await kms.list_resource_tags(KeyId=key_id)
                        found = set()
                        for tag in out.get("Tags", []):
                            tag_key = tag["TagKey"]
                            if tag_key not in wanted:
                                continue
                            if tag_key.rsplit(":", 1)[-1] == "org" and tag["TagValue"] != org:
                                continue
                            found.add(tag_key)
                        if found == wanted:
                            logger.info("Found kms key %s for org %s", key_id, org)
                            return key_id
        return None

