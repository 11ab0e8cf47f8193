"""
azurerm/resources/key_vault.py

azurerm_key_vault: the management-plane vault with inline access policies.
"""

import logging
from typing import Any, Dict, List

from azure.mgmt.keyvault.models import (
    AccessPolicyEntry,
    Permissions,
    Sku,
    VaultCreateOrUpdateParameters,
    VaultProperties,
)
from pydantic import BaseModel, ConfigDict, Field

from ..validation import (
    UUID,
    ForceNew,
    Location,
    ResourceConfig,
    ResourceGroupName,
    StringInSlice,
    Tags,
    enum_value,
    normalize_location,
    pattern,
)
from .base import ResourceAdapter, ResourceData, remote_call, wire

logger = logging.getLogger(__name__)

SKU_NAMES = ["standard", "premium"]

KEY_PERMISSIONS = [
    "all", "backup", "create", "decrypt", "delete", "encrypt", "get", "import",
    "list", "purge", "recover", "restore", "sign", "unwrapKey", "update", "verify", "wrapKey",
]
SECRET_PERMISSIONS = ["all", "backup", "delete", "get", "list", "purge", "recover", "restore", "set"]
CERTIFICATE_PERMISSIONS = [
    "all", "create", "delete", "deleteissuers", "get", "getissuers", "import", "list",
    "listissuers", "managecontacts", "manageissuers", "purge", "recover", "setissuers", "update",
]

VaultName = pattern(r"^[a-zA-Z0-9-]{3,24}$", "may only contain alphanumeric characters and dashes and must be between 3-24 chars")


class AccessPolicy(BaseModel):
    model_config = ConfigDict(extra="forbid")

    tenant_id: UUID
    object_id: UUID
    key_permissions: List[StringInSlice(KEY_PERMISSIONS, ignore_case=True)] = Field(default_factory=list)
    secret_permissions: List[StringInSlice(SECRET_PERMISSIONS, ignore_case=True)] = Field(default_factory=list)
    certificate_permissions: List[StringInSlice(CERTIFICATE_PERMISSIONS, ignore_case=True)] = Field(default_factory=list)


class KeyVaultConfig(ResourceConfig):
    name: VaultName = ForceNew()
    location: Location = ForceNew()
    resource_group_name: ResourceGroupName = ForceNew()
    sku_name: StringInSlice(SKU_NAMES, ignore_case=True)
    tenant_id: UUID
    access_policy: List[AccessPolicy] = Field(default_factory=list, max_length=16)
    enabled_for_deployment: bool = False
    enabled_for_disk_encryption: bool = False
    enabled_for_template_deployment: bool = False
    tags: Tags = Field(default_factory=dict)


def _permissions(values) -> List[str]:
    return [enum_value(v) for v in values or []]


class KeyVault(ResourceAdapter):
    type_name = "azurerm_key_vault"
    display_name = "Key Vault"
    config_model = KeyVaultConfig
    computed = {"vault_uri": "string"}

    def expand(self, config: KeyVaultConfig) -> VaultCreateOrUpdateParameters:
        return VaultCreateOrUpdateParameters(
            location=config.location,
            properties=VaultProperties(
                tenant_id=config.tenant_id,
                sku=Sku(family="A", name=config.sku_name),
                access_policies=[
                    AccessPolicyEntry(
                        tenant_id=p.tenant_id,
                        object_id=p.object_id,
                        permissions=Permissions(
                            keys=list(p.key_permissions),
                            secrets=list(p.secret_permissions),
                            certificates=list(p.certificate_permissions),
                        ),
                    )
                    for p in config.access_policy
                ],
                enabled_for_deployment=config.enabled_for_deployment,
                enabled_for_disk_encryption=config.enabled_for_disk_encryption,
                enabled_for_template_deployment=config.enabled_for_template_deployment,
            ),
            tags=dict(config.tags),
        )

    def flatten(self, vault) -> Dict[str, Any]:
        props = wire(vault, "properties")
        return {
            "name": wire(vault, "name"),
            "location": normalize_location(wire(vault, "location", default="")),
            "sku_name": enum_value(wire(props, "sku", "name")),
            "tenant_id": wire(props, "tenant_id"),
            "access_policy": [
                {
                    "tenant_id": wire(p, "tenant_id"),
                    "object_id": wire(p, "object_id"),
                    "key_permissions": _permissions(wire(p, "permissions", "keys")),
                    "secret_permissions": _permissions(wire(p, "permissions", "secrets")),
                    "certificate_permissions": _permissions(wire(p, "permissions", "certificates")),
                }
                for p in wire(props, "access_policies", default=[])
            ],
            "enabled_for_deployment": bool(wire(props, "enabled_for_deployment", default=False)),
            "enabled_for_disk_encryption": bool(wire(props, "enabled_for_disk_encryption", default=False)),
            "enabled_for_template_deployment": bool(wire(props, "enabled_for_template_deployment", default=False)),
            "tags": dict(wire(vault, "tags", default={})),
            "vault_uri": wire(props, "vault_uri"),
        }

    def _put(self, step: str, d: ResourceData, meta) -> None:
        config = self.load_config(d)
        name, group = config.name, config.resource_group_name
        label = self.label(name, group)
        vaults = meta["keyvault"].vaults

        with remote_call(f"{step[:-1]}ing {label}"):
            poller = vaults.begin_create_or_update(group, name, self.expand(config))
        self.wait(poller, meta, f"{step} of {label}")

        with remote_call(f"retrieving {label} after {step}"):
            vault = vaults.get(group, name)
        d.set_id(self.require_id(vault, step, name, group))
        self.read_after(step, d, meta, name, group)

    def create(self, d: ResourceData, meta) -> None:
        logger.info("preparing arguments for AzureRM Key Vault creation")
        d.mark_pending()
        self._put("create", d, meta)

    def update(self, d: ResourceData, meta) -> None:
        logger.info("preparing arguments for AzureRM Key Vault update")
        self._put("update", d, meta)

    def read(self, d: ResourceData, meta) -> bool:
        id = self.parse_id(d.id)
        group = id.resource_group
        name = id.get("vaults")

        vault = self.get_or_forget(d, f"Key Vault {name!r}", meta["keyvault"].vaults.get, group, name)
        if vault is None:
            return False

        attributes = self.flatten(vault)
        attributes["resource_group_name"] = group
        self.observe(d, attributes)
        return True

    def delete(self, d: ResourceData, meta) -> None:
        id = self.parse_id(d.id)
        group = id.resource_group
        name = id.get("vaults")
        with remote_call(f"deleting {self.label(name, group)}"):
            meta["keyvault"].vaults.delete(group, name)
        d.set_id("")
