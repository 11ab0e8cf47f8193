"""
azurerm/config.py

Client factory: turns one credential set into a ClientRegistry holding an
authenticated handle per Azure service family.

Usage:
    from azurerm.config import Credentials, build_client_registry

    registry = build_client_registry(Credentials.from_env())
    registry["mysql"].servers.get("my-rg", "my-server")

Authorizers:
    management  — shared by every ARM service family
    directory   — Graph endpoint, used by the directory handle
    vault       — per-request callback; one token exchange per vault audience

Every handle gets its own RequestLoggingPolicy and the same user agent, so
all traffic is mirrored to the `azurerm.http` logger and identifiable
server-side. Policy instances are never shared: azure-core links each one to
the next policy of the pipeline it is built into.
"""

import logging
import os
import re
import threading
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterator, Optional, Tuple
from urllib.parse import urlparse

from azure.core.exceptions import ClientAuthenticationError, HttpResponseError
from azure.identity import ClientSecretCredential
from azure.keyvault.secrets import SecretClient
from azure.mgmt.compute import ComputeManagementClient
from azure.mgmt.keyvault import KeyVaultManagementClient
from azure.mgmt.network import NetworkManagementClient
from azure.mgmt.rdbms.mysql import MySQLManagementClient
from azure.mgmt.rdbms.postgresql import PostgreSQLManagementClient
from azure.mgmt.resource import ResourceManagementClient
from azure.mgmt.storage import StorageManagementClient

from . import environments
from ._version import __version__
from .auth import Authorizer, CallbackAuthorizer
from .directory import DirectoryClient
from .environments import Environment
from .exceptions import ConfigError, InconsistentStateError, RemoteOperationError
from .polling import DEFAULT_POLL_INTERVAL, StopContext, is_not_found
from .transport import RequestLoggingPolicy

logger = logging.getLogger(__name__)

# ARM service families, all bound to the resource manager endpoint and the
# management authorizer.
SERVICE_FAMILIES: Dict[str, Any] = {
    "resources":  ResourceManagementClient,
    "compute":    ComputeManagementClient,
    "network":    NetworkManagementClient,
    "storage":    StorageManagementClient,
    "mysql":      MySQLManagementClient,
    "postgresql": PostgreSQLManagementClient,
    "keyvault":   KeyVaultManagementClient,
}

DIRECTORY = "directory"

_TENANT_RE = re.compile(
    r"^([0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}"
    r"|[A-Za-z0-9]([A-Za-z0-9-]*[A-Za-z0-9])?(\.[A-Za-z0-9]([A-Za-z0-9-]*[A-Za-z0-9])?)+)$"
)

_TRUTHY = {"1", "true", "yes", "on"}


def user_agent(host_version: Optional[str] = None) -> str:
    ua = f"azurerm-plugin/{__version__}"
    if host_version:
        ua = f"HostEngine-v{host_version} {ua}"
    return ua


# ---------------------------------------------------------------------------
# Credential set
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Credentials:
    """
    Everything needed to authenticate a session.
    Immutable once constructed; the secret never appears in repr().
    """
    client_id: str
    client_secret: str = field(repr=False)
    tenant_id: str
    subscription_id: str
    environment: str = "public"
    skip_credentials_validation: bool = False

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Credentials":
        env = os.environ if environ is None else environ
        return cls(
            client_id=env.get("ARM_CLIENT_ID", ""),
            client_secret=env.get("ARM_CLIENT_SECRET", ""),
            tenant_id=env.get("ARM_TENANT_ID", ""),
            subscription_id=env.get("ARM_SUBSCRIPTION_ID", ""),
            environment=env.get("ARM_ENVIRONMENT", "public") or "public",
            skip_credentials_validation=env.get("ARM_SKIP_CREDENTIALS_VALIDATION", "").lower() in _TRUTHY,
        )

    def validate(self) -> None:
        missing = [
            name for name in ("client_id", "client_secret", "tenant_id", "subscription_id")
            if not getattr(self, name)
        ]
        if missing:
            raise ConfigError(f"Missing required credential fields: {', '.join(missing)}")
        if not _TENANT_RE.match(self.tenant_id):
            raise ConfigError(f"Unable to configure OAuthConfig for tenant {self.tenant_id!r}")


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------

class ClientRegistry(Mapping):
    """
    All service handles for one authenticated session, keyed by family tag.

    Owned by the caller's session and torn down with close(). Handles are
    safe for concurrent use by independent resource operations.
    """

    def __init__(
        self,
        clients: Dict[str, Any],
        environment: Environment,
        stop_context: Optional[StopContext] = None,
        subscription_id: str = "",
        tenant_id: str = "",
        client_id: str = "",
        vault_authorizer=None,
        client_options: Optional[Callable[[], Dict[str, Any]]] = None,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
    ):
        self._clients = dict(clients)
        self.environment = environment
        self.stop_context = stop_context or StopContext()
        self.subscription_id = subscription_id
        self.tenant_id = tenant_id
        self.client_id = client_id
        self.poll_interval = poll_interval
        self._vault_authorizer = vault_authorizer
        self._client_options = client_options or dict
        self._vault_clients: Dict[str, Any] = {}
        self._vault_lock = threading.Lock()

    def __getitem__(self, family: str):
        try:
            return self._clients[family]
        except KeyError:
            raise KeyError(
                f"No client registered for service family {family!r}. "
                f"Registered: {', '.join(sorted(self._clients))}"
            ) from None

    def __iter__(self) -> Iterator[str]:
        return iter(self._clients)

    def __len__(self) -> int:
        return len(self._clients)

    @property
    def directory(self) -> DirectoryClient:
        return self[DIRECTORY]

    def vault_client(self, vault_uri: str):
        """Data-plane secret client for one vault, built on first use."""
        key = vault_uri.rstrip("/") + "/"
        with self._vault_lock:
            client = self._vault_clients.get(key)
            if client is None:
                if self._vault_authorizer is None:
                    raise ConfigError("No Key Vault authorizer configured for this session")
                client = SecretClient(key, self._vault_authorizer, **self._client_options())
                self._vault_clients[key] = client
        return client

    def storage_endpoint(self, account_name: str, service: str) -> str:
        return f"https://{account_name}.{service}.{self.environment.storage_endpoint_suffix}/"

    def get_key_for_storage_account(self, resource_group: str, account_name: str) -> Tuple[Optional[str], bool]:
        """
        Return (primary key, account exists).

        A 404 means the account is gone: (None, False). Any other failure is
        treated as transient and raised, since the account probably exists.
        """
        try:
            result = self["storage"].storage_accounts.list_keys(resource_group, account_name)
        except HttpResponseError as exc:
            if is_not_found(exc):
                return None, False
            raise RemoteOperationError(
                f"Error retrieving keys for storage account {account_name!r}: {exc.message}",
                status_code=exc.status_code,
            ) from exc

        keys = getattr(result, "keys", None)
        if not keys:
            raise InconsistentStateError(f"Nil key returned for storage account {account_name!r}")
        return keys[0].value, True

    def close(self) -> None:
        self.stop_context.cancel()
        with self._vault_lock:
            clients = list(self._clients.values()) + list(self._vault_clients.values())
            self._vault_clients.clear()
        for client in clients:
            close = getattr(client, "close", None)
            if close is not None:
                close()


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------

def _validate_authority(env: Environment) -> None:
    parsed = urlparse(env.active_directory_endpoint)
    if parsed.scheme != "https" or not parsed.netloc:
        raise ConfigError(f"Invalid directory endpoint {env.active_directory_endpoint!r} for environment {env.name}")


def _exchange(authorizer: Authorizer, what: str, tenant_id: str) -> None:
    try:
        authorizer.refresh()
    except (ClientAuthenticationError, ValueError) as exc:
        raise ConfigError(f"Unable to obtain a {what} token for tenant {tenant_id!r}: {exc}") from exc


def build_client_registry(
    credentials: Credentials,
    *,
    credential=None,
    transport=None,
    host_version: Optional[str] = None,
    poll_interval: float = DEFAULT_POLL_INTERVAL,
) -> ClientRegistry:
    """
    Authenticate and construct every service handle.

    Args:
        credentials:   the session's credential set.
        credential:    optional azure-core TokenCredential to use instead of a
                       ClientSecretCredential (workload identity, tests).
        transport:     optional azure-core HttpTransport shared by all handles.
        host_version:  version string of the calling engine, for the user agent.

    Raises:
        ConfigError: unknown environment, rejected tenant, or a failed token
                     exchange. Nothing is returned on failure.
    """
    credentials.validate()
    env = environments.from_name(credentials.environment)
    _validate_authority(env)
    logger.info("Configuring Azure clients for %s (subscription %s)", env.name, credentials.subscription_id)

    if credential is None:
        try:
            credential = ClientSecretCredential(
                tenant_id=credentials.tenant_id,
                client_id=credentials.client_id,
                client_secret=credentials.client_secret,
                authority=env.authority_host,
            )
        except ValueError as exc:
            raise ConfigError(f"Unable to configure OAuthConfig for tenant {credentials.tenant_id!r}: {exc}") from exc

    auth = Authorizer(credential, env.resource_manager_endpoint)
    graph_auth = Authorizer(credential, env.graph_endpoint)
    vault_auth = CallbackAuthorizer(lambda resource: Authorizer(credential, resource))

    if not credentials.skip_credentials_validation:
        _exchange(auth, "Resource Manager", credentials.tenant_id)
        _exchange(graph_auth, "Graph", credentials.tenant_id)

    ua = user_agent(host_version)

    def options() -> Dict[str, Any]:
        kwargs: Dict[str, Any] = {
            "user_agent": ua,
            "per_retry_policies": [RequestLoggingPolicy()],
        }
        if transport is not None:
            kwargs["transport"] = transport
        return kwargs

    clients: Dict[str, Any] = {}
    for family, client_class in SERVICE_FAMILIES.items():
        clients[family] = client_class(
            auth,
            credentials.subscription_id,
            base_url=env.resource_manager_url,
            credential_scopes=[auth.scope],
            **options(),
        )

    clients[DIRECTORY] = DirectoryClient(
        env.graph_url,
        credentials.tenant_id,
        graph_auth,
        graph_auth.scope,
        user_agent=ua,
        transport=transport,
    )

    return ClientRegistry(
        clients,
        environment=env,
        subscription_id=credentials.subscription_id,
        tenant_id=credentials.tenant_id,
        client_id=credentials.client_id,
        vault_authorizer=vault_auth,
        client_options=options,
        poll_interval=poll_interval,
    )
