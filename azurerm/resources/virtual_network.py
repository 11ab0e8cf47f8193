"""
azurerm/resources/virtual_network.py

azurerm_virtual_network with inline subnets.
"""

import logging
from typing import Any, Dict, List

from azure.mgmt.network import models
from pydantic import BaseModel, ConfigDict, Field

from ..validation import CIDR, IPv4, ForceNew, Location, ResourceConfig, ResourceGroupName, Tags, normalize_location
from .base import ResourceAdapter, ResourceData, remote_call, wire

logger = logging.getLogger(__name__)


class Subnet(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str
    address_prefix: CIDR


class VirtualNetworkConfig(ResourceConfig):
    name: str = ForceNew()
    location: Location = ForceNew()
    resource_group_name: ResourceGroupName = ForceNew()
    address_space: List[CIDR] = Field(min_length=1)
    dns_servers: List[IPv4] = Field(default_factory=list)
    subnets: List[Subnet] = Field(default_factory=list)
    tags: Tags = Field(default_factory=dict)


class VirtualNetwork(ResourceAdapter):
    type_name = "azurerm_virtual_network"
    display_name = "Virtual Network"
    config_model = VirtualNetworkConfig

    def expand(self, config: VirtualNetworkConfig) -> models.VirtualNetwork:
        return models.VirtualNetwork(
            location=config.location,
            address_space=models.AddressSpace(address_prefixes=list(config.address_space)),
            dhcp_options=models.DhcpOptions(dns_servers=list(config.dns_servers)),
            subnets=[models.Subnet(name=s.name, address_prefix=s.address_prefix) for s in config.subnets],
            tags=dict(config.tags),
        )

    def flatten(self, vnet) -> Dict[str, Any]:
        return {
            "name": wire(vnet, "name"),
            "location": normalize_location(wire(vnet, "location", default="")),
            "address_space": list(wire(vnet, "address_space", "address_prefixes", default=[])),
            "dns_servers": list(wire(vnet, "dhcp_options", "dns_servers", default=[])),
            "subnets": [
                {"name": wire(s, "name"), "address_prefix": wire(s, "address_prefix")}
                for s in wire(vnet, "subnets", default=[])
            ],
            "tags": dict(wire(vnet, "tags", default={})),
        }

    def _put(self, step: str, d: ResourceData, meta) -> None:
        config = self.load_config(d)
        name, group = config.name, config.resource_group_name
        label = self.label(name, group)
        networks = meta["network"].virtual_networks

        with remote_call(f"{step[:-1]}ing {label}"):
            poller = networks.begin_create_or_update(group, name, self.expand(config))
        self.wait(poller, meta, f"{step} of {label}")

        with remote_call(f"retrieving {label} after {step}"):
            vnet = networks.get(group, name)
        d.set_id(self.require_id(vnet, step, name, group))
        self.read_after(step, d, meta, name, group)

    def create(self, d: ResourceData, meta) -> None:
        logger.info("preparing arguments for AzureRM Virtual Network creation")
        d.mark_pending()
        self._put("create", d, meta)

    def update(self, d: ResourceData, meta) -> None:
        logger.info("preparing arguments for AzureRM Virtual Network update")
        self._put("update", d, meta)

    def read(self, d: ResourceData, meta) -> bool:
        id = self.parse_id(d.id)
        group = id.resource_group
        name = id.get("virtualNetworks")

        vnet = self.get_or_forget(d, f"Virtual Network {name!r}", meta["network"].virtual_networks.get, group, name)
        if vnet is None:
            return False

        attributes = self.flatten(vnet)
        attributes["resource_group_name"] = group
        self.observe(d, attributes)
        return True

    def delete(self, d: ResourceData, meta) -> None:
        id = self.parse_id(d.id)
        group = id.resource_group
        name = id.get("virtualNetworks")
        label = self.label(name, group)

        with remote_call(f"deleting {label}"):
            poller = meta["network"].virtual_networks.begin_delete(group, name)
        self.wait(poller, meta, f"deletion of {label}")
        d.set_id("")
