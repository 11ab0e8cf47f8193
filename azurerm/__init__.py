"""
azurerm/__init__.py

Public API for the azurerm plugin.

Usage:
    from azurerm import get_resource, build_client_registry, Credentials

    registry = build_client_registry(Credentials.from_env())
    adapter = get_resource("azurerm_mysql_server")
    d = adapter.new_data(config)
    adapter.create(d, registry)
"""

from typing import Dict, List, Type

from ._version import __version__
from .config import ClientRegistry, Credentials, build_client_registry
from .exceptions import (
    AzureRMError,
    ConfigError,
    InconsistentStateError,
    NotFoundError,
    OperationCancelledError,
    RemoteOperationError,
    ResourceIDParseError,
    ValidationError,
)
from .resources import (
    ClientConfig,
    DataSource,
    KeyVault,
    KeyVaultSecret,
    MySQLFirewallRule,
    MySQLServer,
    ResourceAdapter,
    ResourceData,
    ResourceGroup,
    StorageAccount,
    VirtualNetwork,
)

# Registry: add new resource types here
_RESOURCES: Dict[str, Type[ResourceAdapter]] = {
    cls.type_name: cls
    for cls in (
        ResourceGroup,
        VirtualNetwork,
        MySQLServer,
        MySQLFirewallRule,
        StorageAccount,
        KeyVault,
        KeyVaultSecret,
    )
}

_DATA_SOURCES: Dict[str, Type[DataSource]] = {
    ClientConfig.type_name: ClientConfig,
}


def _lookup(registry: Dict[str, type], name: str, kind: str):
    cls = registry.get(name.lower().strip())
    if not cls:
        supported = ", ".join(registry.keys())
        raise ValueError(f"Unknown {kind} '{name}'. Supported {kind}s: {supported}")
    return cls()


def get_resource(type_name: str) -> ResourceAdapter:
    """
    Returns an adapter instance for a resource type.

    Raises:
        ValueError: if the type is not registered.
    """
    return _lookup(_RESOURCES, type_name, "resource type")


def get_data_source(type_name: str) -> DataSource:
    return _lookup(_DATA_SOURCES, type_name, "data source")


def resource_types() -> List[str]:
    return list(_RESOURCES)


def data_source_types() -> List[str]:
    return list(_DATA_SOURCES)


__all__ = [
    "__version__",
    "AzureRMError",
    "ClientRegistry",
    "ConfigError",
    "Credentials",
    "InconsistentStateError",
    "NotFoundError",
    "OperationCancelledError",
    "RemoteOperationError",
    "ResourceData",
    "ResourceIDParseError",
    "ValidationError",
    "build_client_registry",
    "data_source_types",
    "get_data_source",
    "get_resource",
    "resource_types",
]
