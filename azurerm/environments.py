"""
azurerm/environments.py

Endpoint table for the Azure clouds, keyed by the canonical upper-case
environment name (AZUREPUBLICCLOUD, AZURECHINACLOUD, ...).

Users may spell the environment either canonically ("AzurePublicCloud") or
by its short readable form ("public", "china", "german", "usgovernment");
from_name() handles both.
"""

from dataclasses import dataclass
from typing import Dict

from .exceptions import ConfigError


@dataclass(frozen=True)
class Environment:
    """Resolved endpoints for one Azure cloud. Read-only once looked up."""
    name: str
    resource_manager_endpoint: str
    active_directory_endpoint: str
    graph_endpoint: str
    storage_endpoint_suffix: str
    key_vault_dns_suffix: str
    key_vault_endpoint: str

    @property
    def authority_host(self) -> str:
        """Directory host without scheme or trailing slash, as azure-identity expects."""
        return self.active_directory_endpoint.split("://", 1)[-1].rstrip("/")

    @property
    def resource_manager_url(self) -> str:
        return self.resource_manager_endpoint.rstrip("/")

    @property
    def graph_url(self) -> str:
        return self.graph_endpoint.rstrip("/")


PUBLIC_CLOUD = Environment(
    name="AzurePublicCloud",
    resource_manager_endpoint="https://management.azure.com/",
    active_directory_endpoint="https://login.microsoftonline.com/",
    graph_endpoint="https://graph.windows.net/",
    storage_endpoint_suffix="core.windows.net",
    key_vault_dns_suffix=".vault.azure.net",
    key_vault_endpoint="https://vault.azure.net/",
)

CHINA_CLOUD = Environment(
    name="AzureChinaCloud",
    resource_manager_endpoint="https://management.chinacloudapi.cn/",
    active_directory_endpoint="https://login.chinacloudapi.cn/",
    graph_endpoint="https://graph.chinacloudapi.cn/",
    storage_endpoint_suffix="core.chinacloudapi.cn",
    key_vault_dns_suffix=".vault.azure.cn",
    key_vault_endpoint="https://vault.azure.cn/",
)

US_GOVERNMENT_CLOUD = Environment(
    name="AzureUSGovernmentCloud",
    resource_manager_endpoint="https://management.usgovcloudapi.net/",
    active_directory_endpoint="https://login.microsoftonline.us/",
    graph_endpoint="https://graph.windows.net/",
    storage_endpoint_suffix="core.usgovcloudapi.net",
    key_vault_dns_suffix=".vault.usgovcloudapi.net",
    key_vault_endpoint="https://vault.usgovcloudapi.net/",
)

GERMAN_CLOUD = Environment(
    name="AzureGermanCloud",
    resource_manager_endpoint="https://management.microsoftazure.de/",
    active_directory_endpoint="https://login.microsoftonline.de/",
    graph_endpoint="https://graph.cloudapi.de/",
    storage_endpoint_suffix="core.cloudapi.de",
    key_vault_dns_suffix=".vault.microsoftazure.de",
    key_vault_endpoint="https://vault.microsoftazure.de/",
)

_ENVIRONMENTS: Dict[str, Environment] = {
    env.name.upper(): env
    for env in (PUBLIC_CLOUD, CHINA_CLOUD, US_GOVERNMENT_CLOUD, GERMAN_CLOUD)
}


def lookup(name: str) -> Environment:
    """Exact (case-insensitive) lookup. Raises ConfigError on a miss."""
    env = _ENVIRONMENTS.get(name.strip().upper())
    if env is None:
        raise ConfigError(f"autorest/azure: There is no cloud environment matching the name {name.upper()!r}")
    return env


def from_name(name: str) -> Environment:
    """
    Resolve an environment name.

    Tries the literal name first, then the wrapped form AZURE<NAME>CLOUD so
    readable values like "german" resolve to AZUREGERMANCLOUD. When both
    lookups miss, the error from the literal lookup is raised.
    """
    try:
        return lookup(name)
    except ConfigError as first_error:
        try:
            return lookup(f"AZURE{name.strip()}CLOUD")
        except ConfigError:
            raise first_error from None


def names() -> Dict[str, Environment]:
    """All known environments keyed by canonical name."""
    return {env.name: env for env in _ENVIRONMENTS.values()}
