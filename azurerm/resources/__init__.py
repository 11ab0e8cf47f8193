from .base import DataSource, ResourceAdapter, ResourceData, ResourceStatus
from .client_config import ClientConfig
from .key_vault import KeyVault
from .key_vault_secret import KeyVaultSecret
from .mysql_firewall_rule import MySQLFirewallRule
from .mysql_server import MySQLServer
from .resource_group import ResourceGroup
from .storage_account import StorageAccount
from .virtual_network import VirtualNetwork

__all__ = [
    "ClientConfig",
    "DataSource",
    "KeyVault",
    "KeyVaultSecret",
    "MySQLFirewallRule",
    "MySQLServer",
    "ResourceAdapter",
    "ResourceData",
    "ResourceGroup",
    "ResourceStatus",
    "StorageAccount",
    "VirtualNetwork",
]
