"""
azurerm/resources/resource_group.py

azurerm_resource_group. Create and tag updates are synchronous; delete is
long-running and removes everything inside the group.
"""

import logging
from typing import Any, Dict

from azure.mgmt.resource.resources import models
from pydantic import Field

from ..exceptions import ResourceIDParseError
from ..validation import ForceNew, Location, ResourceConfig, ResourceGroupName, Tags, normalize_location
from .base import ResourceAdapter, ResourceData, remote_call, wire

logger = logging.getLogger(__name__)


class ResourceGroupConfig(ResourceConfig):
    name: ResourceGroupName = ForceNew()
    location: Location = ForceNew()
    tags: Tags = Field(default_factory=dict)


class ResourceGroup(ResourceAdapter):
    type_name = "azurerm_resource_group"
    display_name = "Resource Group"
    config_model = ResourceGroupConfig

    def _group_name(self, id: str) -> str:
        group = self.parse_id(id).resource_group
        if not group:
            raise ResourceIDParseError(f"ID was missing the 'resourceGroups' element: {id!r}")
        return group

    def expand(self, config: ResourceGroupConfig) -> models.ResourceGroup:
        return models.ResourceGroup(location=config.location, tags=dict(config.tags))

    def flatten(self, group) -> Dict[str, Any]:
        return {
            "name": wire(group, "name"),
            "location": normalize_location(wire(group, "location", default="")),
            "tags": dict(wire(group, "tags", default={})),
        }

    def create(self, d: ResourceData, meta) -> None:
        logger.info("preparing arguments for AzureRM Resource Group creation")
        config = self.load_config(d)
        groups = meta["resources"].resource_groups

        d.mark_pending()
        with remote_call(f"creating Resource Group {config.name!r}"):
            group = groups.create_or_update(config.name, self.expand(config))
        d.set_id(self.require_id(group, "create", config.name, config.name))
        self.read_after("create", d, meta, config.name, config.name)

    def read(self, d: ResourceData, meta) -> bool:
        name = self._group_name(d.id)
        group = self.get_or_forget(d, f"Resource Group {name!r}", meta["resources"].resource_groups.get, name)
        if group is None:
            return False
        self.observe(d, self.flatten(group))
        return True

    def update(self, d: ResourceData, meta) -> None:
        logger.info("preparing arguments for AzureRM Resource Group update")
        config = self.load_config(d)
        with remote_call(f"updating Resource Group {config.name!r}"):
            meta["resources"].resource_groups.update(
                config.name, models.ResourceGroupPatchable(tags=dict(config.tags)),
            )
        self.read_after("update", d, meta, config.name, config.name)

    def delete(self, d: ResourceData, meta) -> None:
        name = self._group_name(d.id)
        with remote_call(f"deleting Resource Group {name!r}"):
            poller = meta["resources"].resource_groups.begin_delete(name)
        self.wait(poller, meta, f"deletion of Resource Group {name!r}")
        d.set_id("")
