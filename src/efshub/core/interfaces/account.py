"""Per-account service bundle handed to the workflows."""

from dataclasses import dataclass, field

from efshub.core.interfaces.control_plane import ControlPlane
from efshub.core.interfaces.discovery import KeyLocator, ResourceTagIndex, SubnetLocator
from efshub.core.interfaces.identity import IdentityProvider


@dataclass(frozen=True)
class AccountDefaults:
    """Placement and encryption defaults applied when a request omits them."""

    subnets: list[str] = field(default_factory=list)
    security_groups: list[str] = field(default_factory=list)
    kms_key_id: str = ""
    kms_key_tags: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class AccountServices:
    """Provider adapters bound to one assumed-role session in one account."""

    account: str
    control_plane: ControlPlane
    identity: IdentityProvider
    subnets: SubnetLocator
    tag_index: ResourceTagIndex
    keys: KeyLocator
    defaults: AccountDefaults = field(default_factory=AccountDefaults)
