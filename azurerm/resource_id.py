"""
azurerm/resource_id.py

Parsers for the identifiers the plugin stores and imports.

ARM ids are slash-delimited key/value pairs:

    /subscriptions/{sub}/resourceGroups/{group}/providers/{namespace}/{type}/{name}[/{childType}/{childName}]

Key Vault data-plane objects are addressed by URL instead:

    https://{vault}.vault.azure.net/secrets/{name}[/{version}]
"""

from dataclasses import dataclass, field
from typing import Dict, Optional
from urllib.parse import urlparse

from .exceptions import ResourceIDParseError


@dataclass
class ResourceID:
    subscription_id: str
    resource_group: str = ""
    provider: str = ""
    path: Dict[str, str] = field(default_factory=dict)

    def get(self, key: str) -> str:
        """Return a path segment value, raising if the id does not contain it."""
        value = self.path.get(key)
        if not value:
            raise ResourceIDParseError(f"ID was missing the {key!r} element")
        return value


def parse_resource_id(id: str) -> ResourceID:
    """
    Split an ARM resource id into subscription, resource group, provider
    namespace and the remaining key/value path.

    Raises ResourceIDParseError for anything that is not a well-formed id.
    """
    if not id:
        raise ResourceIDParseError("Cannot parse an empty Azure Resource ID")

    parsed = urlparse(id)
    path = parsed.path.strip("/")
    components = path.split("/")

    # Every key must have a value
    if len(components) % 2 != 0:
        raise ResourceIDParseError(f"The number of path segments is not divisible by 2 in {path!r}")

    segments: Dict[str, str] = {}
    for i in range(0, len(components), 2):
        key, value = components[i], components[i + 1]
        if not key or not value:
            raise ResourceIDParseError(f"Key/Value cannot be empty strings. Key: {key!r}, Value: {value!r}")
        segments[key] = value

    subscription = segments.pop("subscriptions", "")
    if not subscription:
        raise ResourceIDParseError(f"No subscription ID found in: {path!r}")

    result = ResourceID(subscription_id=subscription)
    result.resource_group = segments.pop("resourceGroups", "")
    result.provider = segments.pop("providers", "")
    result.path = segments
    return result


@dataclass
class KeyVaultChildID:
    vault_base_url: str
    kind: str
    name: str
    version: Optional[str] = None

    @property
    def versionless_id(self) -> str:
        return f"{self.vault_base_url}{self.kind}/{self.name}"


def parse_key_vault_child_id(id: str) -> KeyVaultChildID:
    parsed = urlparse(id)
    if parsed.scheme != "https" or not parsed.netloc:
        raise ResourceIDParseError(f"Key Vault child ID must be an https URL, got {id!r}")

    segments = [s for s in parsed.path.split("/") if s]
    if len(segments) not in (2, 3):
        raise ResourceIDParseError(
            f"Key Vault child ID should have 2 or 3 path segments, got {len(segments)}: {id!r}"
        )

    return KeyVaultChildID(
        vault_base_url=f"https://{parsed.netloc}/",
        kind=segments[0],
        name=segments[1],
        version=segments[2] if len(segments) == 3 else None,
    )
