"""
azurerm/resources/storage_account.py

azurerm_storage_account. Endpoints and the primary access key are computed;
the key comes from a separate list_keys call on every read.
"""

import logging
from typing import Any, Dict

from azure.mgmt.storage.models import Sku, StorageAccountCreateParameters, StorageAccountUpdateParameters
from pydantic import Field

from ..validation import (
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

ACCOUNT_TIERS = ["Standard", "Premium"]
REPLICATION_TYPES = ["LRS", "ZRS", "GRS", "RAGRS"]
ACCOUNT_KINDS = ["Storage", "StorageV2", "BlobStorage"]
SERVICES = ("blob", "queue", "table", "file")

AccountName = pattern(
    r"^[a-z0-9]{3,24}$",
    "storage account names must be 3-24 characters of lowercase letters and numbers",
)


class StorageAccountConfig(ResourceConfig):
    name: AccountName = ForceNew()
    location: Location = ForceNew()
    resource_group_name: ResourceGroupName = ForceNew()
    account_tier: StringInSlice(ACCOUNT_TIERS, ignore_case=True) = ForceNew()
    account_replication_type: StringInSlice(REPLICATION_TYPES, ignore_case=True)
    account_kind: StringInSlice(ACCOUNT_KINDS) = ForceNew(default="Storage")
    enable_https_traffic_only: bool = False
    tags: Tags = Field(default_factory=dict)


class StorageAccount(ResourceAdapter):
    type_name = "azurerm_storage_account"
    display_name = "Storage Account"
    config_model = StorageAccountConfig
    computed = {
        "primary_access_key": "string",
        **{f"primary_{service}_endpoint": "string" for service in SERVICES},
    }
    sensitive_computed = {"primary_access_key"}

    def _sku(self, config: StorageAccountConfig) -> Sku:
        return Sku(name=f"{config.account_tier}_{config.account_replication_type}")

    def expand(self, config: StorageAccountConfig) -> StorageAccountCreateParameters:
        return StorageAccountCreateParameters(
            location=config.location,
            sku=self._sku(config),
            kind=config.account_kind,
            enable_https_traffic_only=config.enable_https_traffic_only,
            tags=dict(config.tags),
        )

    def expand_update(self, config: StorageAccountConfig) -> StorageAccountUpdateParameters:
        return StorageAccountUpdateParameters(
            sku=self._sku(config),
            enable_https_traffic_only=config.enable_https_traffic_only,
            tags=dict(config.tags),
        )

    def flatten(self, account) -> Dict[str, Any]:
        tier, _, replication = str(enum_value(wire(account, "sku", "name", default=""))).partition("_")
        attributes = {
            "name": wire(account, "name"),
            "location": normalize_location(wire(account, "location", default="")),
            "account_tier": tier,
            "account_replication_type": replication,
            "account_kind": enum_value(wire(account, "kind")),
            "enable_https_traffic_only": bool(wire(account, "enable_https_traffic_only", default=False)),
            "tags": dict(wire(account, "tags", default={})),
        }
        for service in SERVICES:
            attributes[f"primary_{service}_endpoint"] = wire(account, "primary_endpoints", service)
        return attributes

    def create(self, d: ResourceData, meta) -> None:
        logger.info("preparing arguments for AzureRM Storage Account creation")
        config = self.load_config(d)
        name, group = config.name, config.resource_group_name
        label = self.label(name, group)
        accounts = meta["storage"].storage_accounts

        d.mark_pending()
        with remote_call(f"creating {label}"):
            poller = accounts.begin_create(group, name, self.expand(config))
        self.wait(poller, meta, f"creation of {label}")

        with remote_call(f"retrieving {label} after create"):
            account = accounts.get_properties(group, name)
        d.set_id(self.require_id(account, "create", name, group))
        self.read_after("create", d, meta, name, group)

    def read(self, d: ResourceData, meta) -> bool:
        id = self.parse_id(d.id)
        group = id.resource_group
        name = id.get("storageAccounts")

        account = self.get_or_forget(
            d, f"Storage Account {name!r}", meta["storage"].storage_accounts.get_properties, group, name,
        )
        if account is None:
            return False

        key, exists = meta.get_key_for_storage_account(group, name)
        if not exists:
            logger.info("Storage Account %r disappeared while reading its keys - removing from state", name)
            d.set_id("")
            return False

        attributes = self.flatten(account)
        for service in SERVICES:
            field = f"primary_{service}_endpoint"
            if not attributes[field]:
                attributes[field] = meta.storage_endpoint(name, service)
        attributes.update(resource_group_name=group, primary_access_key=key)
        self.observe(d, attributes)
        return True

    def update(self, d: ResourceData, meta) -> None:
        logger.info("preparing arguments for AzureRM Storage Account update")
        config = self.load_config(d)
        name, group = config.name, config.resource_group_name
        with remote_call(f"updating {self.label(name, group)}"):
            meta["storage"].storage_accounts.update(group, name, self.expand_update(config))
        self.read_after("update", d, meta, name, group)

    def delete(self, d: ResourceData, meta) -> None:
        id = self.parse_id(d.id)
        group = id.resource_group
        name = id.get("storageAccounts")
        with remote_call(f"deleting {self.label(name, group)}"):
            meta["storage"].storage_accounts.delete(group, name)
        d.set_id("")
