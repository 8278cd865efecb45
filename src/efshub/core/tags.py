"""Resource tag handling.

The org and space tags are owned by the server: whatever a client sends
for them is replaced from server-side context on every normalize.
"""

from pydantic import BaseModel

ORG_TAG = "spinup:org"
SPACE_TAG = "spinup:spaceid"
NAME_TAG = "Name"
RESOURCE_NAME_TAG = "ResourceName"
RESERVED_PREFIX = "aws:"

_MANAGED_KEYS = frozenset({ORG_TAG, SPACE_TAG, NAME_TAG})


class Tag(BaseModel):
    """A single key/value resource tag."""

    key: str
    value: str = ""


def normalize_tags(org: str, name: str, group: str, tags: list[Tag] | None) -> list[Tag]:
    """Strip managed and provider-reserved tags, then re-add Name/org/space.

    Idempotent: normalizing an already normalized list yields the same list.
    """
    normalized = [
        Tag(key=t.key, value=t.value)
        for t in tags or []
        if t.key not in _MANAGED_KEYS and not t.key.startswith(RESERVED_PREFIX)
    ]
    normalized.append(Tag(key=NAME_TAG, value=name))
    normalized.append(Tag(key=ORG_TAG, value=org))
    normalized.append(Tag(key=SPACE_TAG, value=group))
    return normalized


def tag_value(tags: list[Tag], key: str) -> str | None:
    for t in tags:
        if t.key == key:
            return t.value
    return None


def with_tag(tags: list[Tag], key: str, value: str) -> list[Tag]:
    """Return a copy of tags where key is set to value (replacing any existing)."""
    out = [Tag(key=t.key, value=t.value) for t in tags if t.key != key]
    out.append(Tag(key=key, value=value))
    return out


def to_aws_tags(tags: list[Tag]) -> list[dict[str, str]]:
    return [{"Key": t.key, "Value": t.value} for t in tags]


def from_aws_tags(tags: list[dict] | None) -> list[Tag]:
    return [Tag(key=t["Key"], value=t.get("Value", "")) for t in tags or []]
