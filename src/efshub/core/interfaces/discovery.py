"""Lookup interfaces: tag index, subnet placement and key discovery."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field

from efshub.core.tags import Tag


@dataclass
class TaggedResource:
    """Resource returned by the tag index."""

    arn: str
    tags: list[Tag] = field(default_factory=list)


class ResourceTagIndex(ABC):
    """Generic resource tag index (no native per-tenant namespace)."""

    @abstractmethod
    async def get_resources(
        self, resource_types: list[str], tag_filters: dict[str, list[str]]
    ) -> list[TaggedResource]: ...


class SubnetLocator(ABC):
    @abstractmethod
    async def subnet_azs(self, subnets: list[str]) -> dict[str, str]:
        """Map each usable subnet to its availability zone."""
        ...


class KeyLocator(ABC):
    @abstractmethod
    async def find_key_by_tags(self, tag_keys: list[str], org: str) -> str | None:
        """Return the first enabled key carrying all tag_keys and the org tag."""
        ...
