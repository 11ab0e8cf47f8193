"""
test_config.py

Environment resolution, credential parsing and the client factory.
No network: token exchanges go through FakeCredential.
"""

import logging
from types import SimpleNamespace

import pytest
from azure.core.exceptions import ClientAuthenticationError
from azure.core.pipeline.transport import RequestsTransport
from azure.keyvault.secrets import SecretClient
from azure.mgmt.resource.resources import models

import azurerm
from azurerm import environments
from azurerm.auth import scope_for
from azurerm.config import DIRECTORY, SERVICE_FAMILIES, ClientRegistry, Credentials, build_client_registry, user_agent
from azurerm.directory import DirectoryClient
from azurerm.exceptions import ConfigError
from fakes import CLIENT, OBJECT, SUBSCRIPTION, TENANT, FakeCredential, RecordingSession, make_registry, mysql_config


def credentials(**overrides):
    values = dict(
        client_id=CLIENT,
        client_secret="hunter2",
        tenant_id=TENANT,
        subscription_id=SUBSCRIPTION,
    )
    values.update(overrides)
    return Credentials(**values)


# ---------------------------------------------------------------------------
# Environments
# ---------------------------------------------------------------------------

@pytest.mark.parametrize("name,expected", [
    ("public", environments.PUBLIC_CLOUD),
    ("AzurePublicCloud", environments.PUBLIC_CLOUD),
    ("azurepubliccloud", environments.PUBLIC_CLOUD),
    ("china", environments.CHINA_CLOUD),
    ("usgovernment", environments.US_GOVERNMENT_CLOUD),
    ("German", environments.GERMAN_CLOUD),
])
def test_environment_names_resolve(name, expected):
    assert environments.from_name(name) is expected


def test_unknown_environment_reports_the_literal_name():
    with pytest.raises(ConfigError) as exc:
        environments.from_name("mars")
    assert "'MARS'" in str(exc.value)
    assert "AZUREMARSCLOUD" not in str(exc.value)


def test_environment_urls():
    env = environments.PUBLIC_CLOUD
    assert env.authority_host == "login.microsoftonline.com"
    assert env.resource_manager_url == "https://management.azure.com"
    assert set(environments.names()) == {
        "AzurePublicCloud", "AzureChinaCloud", "AzureUSGovernmentCloud", "AzureGermanCloud",
    }


# ---------------------------------------------------------------------------
# Credentials
# ---------------------------------------------------------------------------

def test_credentials_from_env():
    creds = Credentials.from_env({
        "ARM_CLIENT_ID": CLIENT,
        "ARM_CLIENT_SECRET": "hunter2",
        "ARM_TENANT_ID": TENANT,
        "ARM_SUBSCRIPTION_ID": SUBSCRIPTION,
        "ARM_SKIP_CREDENTIALS_VALIDATION": "True",
    })
    assert creds.environment == "public"
    assert creds.skip_credentials_validation is True
    assert "hunter2" not in repr(creds)


def test_missing_credential_fields_are_listed():
    with pytest.raises(ConfigError) as exc:
        Credentials.from_env({"ARM_CLIENT_ID": CLIENT}).validate()
    assert str(exc.value).endswith("client_secret, tenant_id, subscription_id")


@pytest.mark.parametrize("tenant", [TENANT, "contoso.onmicrosoft.com"])
def test_tenant_may_be_uuid_or_domain(tenant):
    credentials(tenant_id=tenant).validate()


@pytest.mark.parametrize("tenant", ["not a tenant", "contoso", "-bad.example.com"])
def test_malformed_tenant_is_rejected(tenant):
    with pytest.raises(ConfigError):
        credentials(tenant_id=tenant).validate()


def test_user_agent_carries_host_version():
    assert user_agent().startswith("azurerm-plugin/")
    assert user_agent("1.2.3").startswith("HostEngine-v1.2.3 azurerm-plugin/")


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------

def test_registry_holds_every_family():
    registry = build_client_registry(credentials(), credential=FakeCredential())

    assert set(registry) == set(SERVICE_FAMILIES) | {DIRECTORY}
    assert isinstance(registry.directory, DirectoryClient)
    assert registry.subscription_id == SUBSCRIPTION
    assert registry.tenant_id == TENANT
    assert registry.client_id == CLIENT
    assert registry.environment is environments.PUBLIC_CLOUD


def test_credentials_are_exchanged_up_front():
    credential = FakeCredential()
    build_client_registry(credentials(), credential=credential)

    assert credential.calls == [
        (scope_for(environments.PUBLIC_CLOUD.resource_manager_endpoint),),
        (scope_for(environments.PUBLIC_CLOUD.graph_endpoint),),
    ]


def test_skip_credentials_validation_defers_the_exchange():
    credential = FakeCredential()
    build_client_registry(credentials(skip_credentials_validation=True), credential=credential)
    assert credential.calls == []


def test_rejected_credentials_are_config_errors():
    credential = FakeCredential(error=ClientAuthenticationError("AADSTS7000215: Invalid client secret"))

    with pytest.raises(ConfigError) as exc:
        build_client_registry(credentials(), credential=credential)
    assert "Resource Manager" in str(exc.value)


def test_unknown_environment_fails_before_any_exchange():
    credential = FakeCredential()
    with pytest.raises(ConfigError):
        build_client_registry(credentials(environment="mars"), credential=credential)
    assert credential.calls == []


def test_other_clouds_use_their_own_endpoints():
    credential = FakeCredential()
    registry = build_client_registry(credentials(environment="china"), credential=credential)

    assert registry.environment is environments.CHINA_CLOUD
    assert credential.calls[0] == ("https://management.chinacloudapi.cn/.default",)


def test_unregistered_family_names_the_registered_ones():
    registry = make_registry(mysql=object())
    with pytest.raises(KeyError) as exc:
        registry["cosmos"]
    assert "mysql" in str(exc.value)


# ---------------------------------------------------------------------------
# Vault clients
# ---------------------------------------------------------------------------

def test_vault_clients_are_built_once_per_vault():
    registry = build_client_registry(credentials(skip_credentials_validation=True), credential=FakeCredential())

    first = registry.vault_client("https://kv1.vault.azure.net")
    assert isinstance(first, SecretClient)
    assert registry.vault_client("https://kv1.vault.azure.net/") is first
    assert registry.vault_client("https://kv2.vault.azure.net/") is not first


def test_vault_client_needs_an_authorizer():
    with pytest.raises(ConfigError):
        make_registry().vault_client("https://kv1.vault.azure.net/")


def test_storage_endpoint_uses_the_cloud_suffix():
    registry = ClientRegistry({}, environment=environments.CHINA_CLOUD)
    assert registry.storage_endpoint("acct1", "blob") == "https://acct1.blob.core.chinacloudapi.cn/"


# ---------------------------------------------------------------------------
# Teardown
# ---------------------------------------------------------------------------

class Closable:
    def __init__(self):
        self.closed = False

    def close(self):
        self.closed = True


def test_close_cancels_waits_and_closes_clients():
    storage = Closable()
    registry = make_registry(storage=storage, mysql=SimpleNamespace())

    registry.close()

    assert storage.closed
    assert registry.stop_context.cancelled


# ---------------------------------------------------------------------------
# On the wire
# ---------------------------------------------------------------------------

@pytest.fixture
def session():
    return RecordingSession()


@pytest.fixture
def wired(session):
    return build_client_registry(
        credentials(),
        credential=FakeCredential(),
        transport=RequestsTransport(session=session),
        host_version="1.4.0",
    )


def test_arm_requests_stay_authenticated_after_vault_clients_exist(wired, session, caplog):
    caplog.set_level(logging.DEBUG, logger="azurerm.http")

    wired["resources"].resource_groups.get("rg1")
    wired.vault_client("https://kv1.vault.azure.net/")
    wired["resources"].resource_groups.get("rg1")

    first, second = [r for r in session.sent if r.method == "GET"]
    for request in (first, second):
        assert request.url.startswith(f"https://management.azure.com/subscriptions/{SUBSCRIPTION}/")
        assert request.headers["Authorization"].startswith("Bearer token-")
        assert user_agent("1.4.0") in request.headers["User-Agent"]

    dumps = [r.getMessage() for r in caplog.records if r.name == "azurerm.http"]
    requests_logged = [m for m in dumps if m.startswith("AzureRM Request") and "GET https://management.azure.com/" in m]
    assert len(requests_logged) == 2
    assert any(m.startswith("AzureRM Response") for m in dumps)
    assert not any("Bearer token-" in m for m in dumps)


def test_directory_requests_carry_the_user_agent(wired, session):
    wired.directory.list_service_principals("appId eq 'x'")

    request = session.last("GET")
    assert request.url.startswith(f"{environments.PUBLIC_CLOUD.graph_url.rstrip('/')}/{TENANT}/servicePrincipals")
    assert request.headers["Authorization"].startswith("Bearer token-")
    assert user_agent("1.4.0") in request.headers["User-Agent"]


def test_resource_group_payload_on_the_wire(wired, session):
    adapter = azurerm.get_resource("azurerm_resource_group")
    config = adapter.validate({"name": "rg1", "location": "West Europe", "tags": {"env": "test"}})

    wired["resources"].resource_groups.create_or_update("rg1", adapter.expand(config))
    assert session.last("PUT").json == {"location": "westeurope", "tags": {"env": "test"}}

    wired["resources"].resource_groups.update("rg1", models.ResourceGroupPatchable(tags={"env": "prod"}))
    assert session.last("PATCH").json == {"tags": {"env": "prod"}}


def test_virtual_network_payload_on_the_wire(wired, session):
    adapter = azurerm.get_resource("azurerm_virtual_network")
    config = adapter.validate({
        "name": "vnet1",
        "location": "westeurope",
        "resource_group_name": "rg1",
        "address_space": ["10.0.0.0/16"],
        "dns_servers": ["10.0.0.4"],
        "subnets": [{"name": "default", "address_prefix": "10.0.1.0/24"}],
    })

    wired["network"].virtual_networks.begin_create_or_update("rg1", "vnet1", adapter.expand(config))

    body = session.last("PUT").json
    assert body["location"] == "westeurope"
    assert body["properties"]["addressSpace"]["addressPrefixes"] == ["10.0.0.0/16"]
    assert body["properties"]["dhcpOptions"]["dnsServers"] == ["10.0.0.4"]
    subnet = body["properties"]["subnets"][0]
    assert subnet["name"] == "default"
    assert subnet["properties"]["addressPrefix"] == "10.0.1.0/24"
    assert "address_space" not in body


def test_storage_account_payloads_on_the_wire(wired, session):
    adapter = azurerm.get_resource("azurerm_storage_account")
    config = adapter.validate({
        "name": "acct1",
        "location": "westeurope",
        "resource_group_name": "rg1",
        "account_tier": "Standard",
        "account_replication_type": "GRS",
        "enable_https_traffic_only": True,
    })

    wired["storage"].storage_accounts.begin_create("rg1", "acct1", adapter.expand(config))
    body = session.last("PUT").json
    assert body["sku"] == {"name": "Standard_GRS"}
    assert body["kind"] == "Storage"
    assert body["properties"]["supportsHttpsTrafficOnly"] is True
    assert "enable_https_traffic_only" not in body

    wired["storage"].storage_accounts.update("rg1", "acct1", adapter.expand_update(config))
    body = session.last("PATCH").json
    assert body["sku"] == {"name": "Standard_GRS"}
    assert body["properties"]["supportsHttpsTrafficOnly"] is True


def test_key_vault_payload_on_the_wire(wired, session):
    adapter = azurerm.get_resource("azurerm_key_vault")
    config = adapter.validate({
        "name": "kv1",
        "location": "westeurope",
        "resource_group_name": "rg1",
        "sku_name": "standard",
        "tenant_id": TENANT,
        "access_policy": [{"tenant_id": TENANT, "object_id": OBJECT, "secret_permissions": ["get", "set"]}],
        "enabled_for_deployment": True,
    })

    wired["keyvault"].vaults.begin_create_or_update("rg1", "kv1", adapter.expand(config))

    properties = session.last("PUT").json["properties"]
    assert properties["tenantId"] == TENANT
    assert properties["sku"] == {"family": "A", "name": "standard"}
    assert properties["enabledForDeployment"] is True
    policy = properties["accessPolicies"][0]
    assert policy["tenantId"] == TENANT
    assert policy["objectId"] == OBJECT
    assert policy["permissions"]["secrets"] == ["get", "set"]


def test_mysql_payloads_on_the_wire(wired, session):
    server = azurerm.get_resource("azurerm_mysql_server")
    wired["mysql"].servers.begin_create("rg1", "db1", server.expand(server.validate(mysql_config())))

    properties = session.last("PUT").json["properties"]
    assert properties["createMode"] == "Default"
    assert properties["administratorLogin"] == "dbadmin"
    assert properties["sslEnforcement"] == "Enabled"
    assert properties["storageProfile"] == {"storageMB": 51200}

    rule = azurerm.get_resource("azurerm_mysql_firewall_rule")
    config = rule.validate({
        "name": "office",
        "resource_group_name": "rg1",
        "server_name": "db1",
        "start_ip_address": "10.0.0.1",
        "end_ip_address": "10.0.0.255",
    })
    wired["mysql"].firewall_rules.begin_create_or_update("rg1", "db1", "office", rule.expand(config))

    assert session.last("PUT").json["properties"] == {"startIpAddress": "10.0.0.1", "endIpAddress": "10.0.0.255"}
