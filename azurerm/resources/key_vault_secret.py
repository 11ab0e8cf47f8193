"""
azurerm/resources/key_vault_secret.py

azurerm_key_vault_secret: a data-plane object, addressed by URL rather than
an ARM id. The tracked id is the versionless secret URL so it survives
value changes; the current version is a computed attribute.

Calls go through the session's per-vault SecretClient, which authenticates
with the vault callback authorizer.
"""

import logging
from typing import Annotated, Any, Dict, Optional
from urllib.parse import urlparse

from pydantic import AfterValidator, Field

from ..exceptions import InconsistentStateError
from ..resource_id import KeyVaultChildID, parse_key_vault_child_id
from ..validation import ForceNew, ResourceConfig, Sensitive, Tags, pattern
from .base import ResourceAdapter, ResourceData, remote_call, wire

logger = logging.getLogger(__name__)


def _vault_uri(value: str) -> str:
    parsed = urlparse(value)
    if parsed.scheme != "https" or not parsed.netloc:
        raise ValueError(f"expected an https vault URI, got {value!r}")
    return f"https://{parsed.netloc}/"


VaultURI = Annotated[str, AfterValidator(_vault_uri)]
SecretName = pattern(r"^[a-zA-Z0-9-]{1,127}$", "may only contain alphanumeric characters and dashes")


class KeyVaultSecretConfig(ResourceConfig):
    name: SecretName = ForceNew()
    vault_uri: VaultURI = ForceNew()
    value: str = Sensitive()
    content_type: Optional[str] = None
    tags: Tags = Field(default_factory=dict)


class KeyVaultSecret(ResourceAdapter):
    type_name = "azurerm_key_vault_secret"
    display_name = "Key Vault Secret"
    config_model = KeyVaultSecretConfig
    computed = {"version": "string"}

    def parse_id(self, id: str) -> KeyVaultChildID:
        return parse_key_vault_child_id(id)

    def expand(self, config: KeyVaultSecretConfig) -> Dict[str, Any]:
        return {
            "name": config.name,
            "value": config.value,
            "content_type": config.content_type,
            "tags": dict(config.tags),
        }

    def flatten(self, secret) -> Dict[str, Any]:
        return {
            "name": wire(secret, "name"),
            "value": wire(secret, "value"),
            "content_type": wire(secret, "properties", "content_type"),
            "tags": dict(wire(secret, "properties", "tags", default={})),
            "version": wire(secret, "properties", "version"),
        }

    def create(self, d: ResourceData, meta) -> None:
        logger.info("preparing arguments for AzureRM Key Vault Secret creation")
        config = self.load_config(d)
        client = meta.vault_client(config.vault_uri)
        payload = self.expand(config)

        d.mark_pending()
        with remote_call(f"creating {self.label(config.name, config.vault_uri)}"):
            secret = client.set_secret(
                payload["name"], payload["value"], content_type=payload["content_type"], tags=payload["tags"],
            )
        d.set_id(self._versionless(secret, "create", config))
        self.read_after("create", d, meta, config.name, config.vault_uri)

    def read(self, d: ResourceData, meta) -> bool:
        id = self.parse_id(d.id)
        client = meta.vault_client(id.vault_base_url)

        secret = self.get_or_forget(d, self.label(id.name, id.vault_base_url), client.get_secret, id.name)
        if secret is None:
            return False

        if d.id != id.versionless_id:
            d.set_id(id.versionless_id)
        attributes = self.flatten(secret)
        attributes["vault_uri"] = id.vault_base_url
        self.observe(d, attributes)
        return True

    def update(self, d: ResourceData, meta) -> None:
        logger.info("preparing arguments for AzureRM Key Vault Secret update")
        previous = d.get("value")
        config = self.load_config(d)
        client = meta.vault_client(config.vault_uri)
        label = self.label(config.name, config.vault_uri)

        if config.value != previous:
            # A new value is a new version of the same secret
            with remote_call(f"updating {label}"):
                secret = client.set_secret(
                    config.name, config.value, content_type=config.content_type, tags=dict(config.tags),
                )
            d.set_id(self._versionless(secret, "update", config))
        else:
            with remote_call(f"updating {label}"):
                client.update_secret_properties(config.name, content_type=config.content_type, tags=dict(config.tags))
        self.read_after("update", d, meta, config.name, config.vault_uri)

    def delete(self, d: ResourceData, meta) -> None:
        id = self.parse_id(d.id)
        label = self.label(id.name, id.vault_base_url)
        with remote_call(f"deleting {label}"):
            poller = meta.vault_client(id.vault_base_url).begin_delete_secret(id.name)
        self.wait(poller, meta, f"deletion of {label}")
        d.set_id("")

    def label(self, name: str, vault_uri: str) -> str:
        return f"Key Vault Secret {name!r} (Vault {vault_uri!r})"

    def _versionless(self, secret, step: str, config: KeyVaultSecretConfig) -> str:
        secret_id = getattr(secret, "id", None)
        if not secret_id:
            raise InconsistentStateError(f"Cannot read {self.label(config.name, config.vault_uri)} ID after {step}")
        return parse_key_vault_child_id(secret_id).versionless_id
