"""
azurerm/resources/mysql_server.py

azurerm_mysql_server: a single-server MySQL instance (Basic tier).

The SKU carries the storage size as a string alongside name/capacity/tier,
so `storage_mb` appears twice in the create payload.
"""

import logging
from typing import Any, Dict

from pydantic import BaseModel, ConfigDict, Field

from ..validation import (
    IntInSlice,
    Location,
    ResourceConfig,
    ResourceGroupName,
    ForceNew,
    Sensitive,
    StringInSlice,
    Tags,
    enum_value,
    normalize_location,
)
from .base import ResourceAdapter, ResourceData, remote_call, wire

logger = logging.getLogger(__name__)

SKU_NAMES = ["MYSQLB50", "MYSQLB100"]
SKU_CAPACITIES = [50, 100]
SKU_TIERS = ["Basic"]
VERSIONS = ["5.6", "5.7"]
STORAGE_SIZES = [51200, 102400]
SSL_ENFORCEMENT = ["Enabled", "Disabled"]


class MySQLServerSku(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: StringInSlice(SKU_NAMES, ignore_case=True)
    capacity: IntInSlice(SKU_CAPACITIES)
    tier: StringInSlice(SKU_TIERS, ignore_case=True)


class MySQLServerConfig(ResourceConfig):
    name: str = ForceNew()
    location: Location = ForceNew()
    resource_group_name: ResourceGroupName = ForceNew()
    sku: MySQLServerSku
    administrator_login: str = ForceNew()
    administrator_login_password: str = Sensitive()
    version: StringInSlice(VERSIONS, ignore_case=True) = ForceNew()
    storage_mb: IntInSlice(STORAGE_SIZES) = ForceNew()
    ssl_enforcement: StringInSlice(SSL_ENFORCEMENT, ignore_case=True)
    tags: Tags = Field(default_factory=dict)


class MySQLServer(ResourceAdapter):
    type_name = "azurerm_mysql_server"
    display_name = "MySQL Server"
    config_model = MySQLServerConfig
    computed = {"fqdn": "string"}

    def _sku(self, config: MySQLServerConfig) -> Dict[str, Any]:
        return {
            "name": config.sku.name,
            "capacity": config.sku.capacity,
            "tier": config.sku.tier,
            "size": str(config.storage_mb),
        }

    def expand(self, config: MySQLServerConfig) -> Dict[str, Any]:
        return {
            "location": config.location,
            "sku": self._sku(config),
            "properties": {
                "create_mode": "Default",
                "administrator_login": config.administrator_login,
                "administrator_login_password": config.administrator_login_password,
                "version": config.version,
                "ssl_enforcement": config.ssl_enforcement,
                "storage_profile": {"storage_mb": config.storage_mb},
            },
            "tags": dict(config.tags),
        }

    def expand_update(self, config: MySQLServerConfig) -> Dict[str, Any]:
        # version, storage and the login name are force_new; only the
        # mutable fields go on the wire
        return {
            "sku": self._sku(config),
            "ssl_enforcement": config.ssl_enforcement,
            "administrator_login_password": config.administrator_login_password,
            "tags": dict(config.tags),
        }

    def flatten(self, server) -> Dict[str, Any]:
        sku = wire(server, "sku")
        return {
            "name": wire(server, "name"),
            "location": normalize_location(wire(server, "location", default="")),
            "administrator_login": wire(server, "administrator_login"),
            "version": enum_value(wire(server, "version")),
            "storage_mb": wire(server, "storage_profile", "storage_mb"),
            "ssl_enforcement": enum_value(wire(server, "ssl_enforcement")),
            "sku": {
                "name": wire(sku, "name"),
                "capacity": wire(sku, "capacity"),
                "tier": enum_value(wire(sku, "tier")),
            },
            "tags": dict(wire(server, "tags", default={})),
            "fqdn": wire(server, "fully_qualified_domain_name"),
        }

    def create(self, d: ResourceData, meta) -> None:
        logger.info("preparing arguments for AzureRM MySQL Server creation")
        config = self.load_config(d)
        name, group = config.name, config.resource_group_name
        label = self.label(name, group)
        servers = meta["mysql"].servers

        d.mark_pending()
        with remote_call(f"creating {label}"):
            poller = servers.begin_create(group, name, self.expand(config))
        self.wait(poller, meta, f"creation of {label}")

        with remote_call(f"retrieving {label} after create"):
            server = servers.get(group, name)
        d.set_id(self.require_id(server, "create", name, group))
        self.read_after("create", d, meta, name, group)

    def read(self, d: ResourceData, meta) -> bool:
        id = self.parse_id(d.id)
        group = id.resource_group
        name = id.get("servers")

        server = self.get_or_forget(d, f"Azure MySQL Server {name!r}", meta["mysql"].servers.get, group, name)
        if server is None:
            return False

        attributes = self.flatten(server)
        attributes["resource_group_name"] = group
        self.observe(d, attributes)
        return True

    def update(self, d: ResourceData, meta) -> None:
        logger.info("preparing arguments for AzureRM MySQL Server update")
        config = self.load_config(d)
        name, group = config.name, config.resource_group_name
        label = self.label(name, group)
        servers = meta["mysql"].servers

        with remote_call(f"updating {label}"):
            poller = servers.begin_update(group, name, self.expand_update(config))
        self.wait(poller, meta, f"update of {label}")

        with remote_call(f"retrieving {label} after update"):
            server = servers.get(group, name)
        d.set_id(self.require_id(server, "update", name, group))
        self.read_after("update", d, meta, name, group)

    def delete(self, d: ResourceData, meta) -> None:
        id = self.parse_id(d.id)
        group = id.resource_group
        name = id.get("servers")
        label = self.label(name, group)

        with remote_call(f"deleting {label}"):
            poller = meta["mysql"].servers.begin_delete(group, name)
        self.wait(poller, meta, f"deletion of {label}")
        d.set_id("")
