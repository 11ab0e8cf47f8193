"""
azurerm/resources/mysql_firewall_rule.py

azurerm_mysql_firewall_rule: an inbound IPv4 range on a MySQL server.
"""

import logging
from typing import Any, Dict

from ..validation import IPv4, ForceNew, ResourceConfig, ResourceGroupName
from .base import ResourceAdapter, ResourceData, remote_call, wire

logger = logging.getLogger(__name__)


class MySQLFirewallRuleConfig(ResourceConfig):
    name: str = ForceNew()
    resource_group_name: ResourceGroupName = ForceNew()
    server_name: str = ForceNew()
    start_ip_address: IPv4
    end_ip_address: IPv4


class MySQLFirewallRule(ResourceAdapter):
    type_name = "azurerm_mysql_firewall_rule"
    display_name = "MySQL Firewall Rule"
    config_model = MySQLFirewallRuleConfig

    def expand(self, config: MySQLFirewallRuleConfig) -> Dict[str, Any]:
        return {
            "start_ip_address": config.start_ip_address,
            "end_ip_address": config.end_ip_address,
        }

    def flatten(self, rule) -> Dict[str, Any]:
        return {
            "name": wire(rule, "name"),
            "start_ip_address": wire(rule, "start_ip_address"),
            "end_ip_address": wire(rule, "end_ip_address"),
        }

    def _put(self, step: str, d: ResourceData, meta) -> None:
        config = self.load_config(d)
        name, group, server = config.name, config.resource_group_name, config.server_name
        label = self.label(name, group)
        rules = meta["mysql"].firewall_rules

        with remote_call(f"{step[:-1]}ing {label}"):
            poller = rules.begin_create_or_update(group, server, name, self.expand(config))
        self.wait(poller, meta, f"{step} of {label}")

        with remote_call(f"retrieving {label} after {step}"):
            rule = rules.get(group, server, name)
        d.set_id(self.require_id(rule, step, name, group))
        self.read_after(step, d, meta, name, group)

    def create(self, d: ResourceData, meta) -> None:
        logger.info("preparing arguments for AzureRM MySQL Firewall Rule creation")
        d.mark_pending()
        self._put("create", d, meta)

    def update(self, d: ResourceData, meta) -> None:
        logger.info("preparing arguments for AzureRM MySQL Firewall Rule update")
        self._put("update", d, meta)

    def read(self, d: ResourceData, meta) -> bool:
        id = self.parse_id(d.id)
        group = id.resource_group
        server = id.get("servers")
        name = id.get("firewallRules")

        rule = self.get_or_forget(
            d, f"Azure MySQL Firewall Rule {name!r}", meta["mysql"].firewall_rules.get, group, server, name,
        )
        if rule is None:
            return False

        attributes = self.flatten(rule)
        attributes.update(resource_group_name=group, server_name=server)
        self.observe(d, attributes)
        return True

    def delete(self, d: ResourceData, meta) -> None:
        id = self.parse_id(d.id)
        group = id.resource_group
        server = id.get("servers")
        name = id.get("firewallRules")
        label = self.label(name, group)

        with remote_call(f"deleting {label}"):
            poller = meta["mysql"].firewall_rules.begin_delete(group, server, name)
        self.wait(poller, meta, f"deletion of {label}")
        d.set_id("")
