"""
test_mysql_server.py

azurerm_mysql_server against an in-memory servers operation group:
the full create → read → update → delete scenario plus the failure paths.
"""

import threading
import time
from types import SimpleNamespace

import pytest

from azurerm import get_resource
from azurerm.exceptions import (
    InconsistentStateError,
    NotFoundError,
    OperationCancelledError,
    RemoteOperationError,
    ValidationError,
)
from azurerm.resources import ResourceStatus
from fakes import FakeMySQLServers, FakePoller, arm_id, http_error, make_registry, mysql_config, server_object


@pytest.fixture
def servers():
    return FakeMySQLServers()


@pytest.fixture
def registry(servers):
    return make_registry(mysql=SimpleNamespace(servers=servers))


@pytest.fixture
def adapter():
    return get_resource("azurerm_mysql_server")


# ---------------------------------------------------------------------------
# End to end
# ---------------------------------------------------------------------------

def test_create_update_delete_scenario(adapter, registry, servers):
    d = adapter.new_data(mysql_config())
    adapter.create(d, registry)

    assert d.id == arm_id("rg1", "Microsoft.DBforMySQL", "servers", "db1")
    assert d.status is ResourceStatus.PRESENT
    assert d.get("fqdn") == "db1.mysql.database.azure.com"
    assert d.get("location") == "westeurope"

    op, group, name, payload = servers.calls[0]
    assert (op, group, name) == ("begin_create", "rg1", "db1")
    assert payload == {
        "location": "westeurope",
        "sku": {"name": "MYSQLB50", "capacity": 50, "tier": "Basic", "size": "51200"},
        "properties": {
            "create_mode": "Default",
            "administrator_login": "dbadmin",
            "administrator_login_password": "H@Sh1CoR3!",
            "version": "5.7",
            "ssl_enforcement": "Enabled",
            "storage_profile": {"storage_mb": 51200},
        },
        "tags": {"env": "test"},
    }

    # Only ssl_enforcement changes; immutable fields stay off the wire
    d.config = mysql_config(ssl_enforcement="Disabled")
    assert adapter.replacement_fields(d) == []
    adapter.update(d, registry)

    update = next(c for c in servers.calls if c[0] == "begin_update")
    assert set(update[3]) == {"sku", "ssl_enforcement", "administrator_login_password", "tags"}
    assert d.get("ssl_enforcement") == "Disabled"
    assert d.status is ResourceStatus.PRESENT

    adapter.delete(d, registry)
    assert d.id == ""
    assert d.status is ResourceStatus.ABSENT

    d = adapter.new_data(id=arm_id("rg1", "Microsoft.DBforMySQL", "servers", "db1"))
    assert adapter.read(d, registry) is False
    assert d.id == ""


def test_import_adopts_existing_server(adapter, registry, servers):
    adapter.create(adapter.new_data(mysql_config()), registry)

    d = adapter.import_state(arm_id("rg1", "Microsoft.DBforMySQL", "servers", "db1"), registry)
    assert d.get("administrator_login") == "dbadmin"
    assert d.config["sku"]["capacity"] == 50
    assert d.status is ResourceStatus.PRESENT


def test_import_missing_server_is_not_found(adapter, registry):
    with pytest.raises(NotFoundError):
        adapter.import_state(arm_id("rg1", "Microsoft.DBforMySQL", "servers", "nope"), registry)


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------

def test_capacity_outside_allow_list_makes_no_remote_calls(adapter, registry, servers):
    config = mysql_config(sku={"name": "MYSQLB50", "capacity": 75, "tier": "Basic"})

    with pytest.raises(ValidationError) as exc:
        adapter.create(adapter.new_data(config), registry)

    assert any(e.startswith("sku.capacity") for e in exc.value.errors)
    assert servers.calls == []


def test_every_invalid_field_is_reported(adapter):
    with pytest.raises(ValidationError) as exc:
        adapter.validate(mysql_config(version="8.0", storage_mb=1, ssl_enforcement="Maybe"))

    fields = sorted(e.split(":")[0] for e in exc.value.errors)
    assert fields == ["ssl_enforcement", "storage_mb", "version"]


def test_unknown_field_is_rejected(adapter):
    with pytest.raises(ValidationError):
        adapter.validate(mysql_config(backup_retention_days=7))


def test_allow_lists_ignore_case_where_the_api_does(adapter):
    config = adapter.validate(mysql_config(
        sku={"name": "mysqlb100", "capacity": 100, "tier": "basic"},
        ssl_enforcement="disabled",
    ))
    assert config.sku.name == "mysqlb100"


def test_case_only_differences_are_not_drift(adapter):
    d = adapter.new_data(mysql_config(sku={"name": "mysqlb50", "capacity": 50, "tier": "basic"}, version="5.7"))
    d.set_id(arm_id("rg1", "Microsoft.DBforMySQL", "servers", "db1"))
    adapter.load_config(d)

    adapter.observe(d, {"sku": {"name": "MYSQLB50", "capacity": 50, "tier": "Basic"}, "version": "5.7"})
    assert d.status is ResourceStatus.PRESENT

    adapter.observe(d, {"sku": {"name": "MYSQLB100", "capacity": 100, "tier": "Basic"}})
    assert d.status is ResourceStatus.DRIFTED


# ---------------------------------------------------------------------------
# Translation
# ---------------------------------------------------------------------------

def test_expand_flatten_round_trip(adapter):
    config = adapter.validate(mysql_config())
    attributes = adapter.flatten(server_object("rg1", "db1", adapter.expand(config)))

    expected = config.model_dump()
    for key in ("name", "location", "administrator_login", "version", "storage_mb",
                "ssl_enforcement", "sku", "tags"):
        assert attributes[key] == expected[key], key


def test_flatten_unwraps_enums_and_normalises_location(adapter):
    server = server_object("rg1", "db1", adapter.expand(adapter.validate(mysql_config())), location="North Europe")
    server.version = SimpleNamespace(value="5.6")
    server.sku.tier = SimpleNamespace(value="Basic")

    attributes = adapter.flatten(server)
    assert attributes["location"] == "northeurope"
    assert attributes["version"] == "5.6"
    assert attributes["sku"]["tier"] == "Basic"


def test_force_new_fields_trigger_replacement(adapter, registry):
    d = adapter.new_data(mysql_config())
    adapter.create(d, registry)

    d.config = adapter.validate(mysql_config(version="5.6", storage_mb=102400)).model_dump()
    assert sorted(adapter.replacement_fields(d)) == ["storage_mb", "version"]


def test_schema_flags(adapter):
    schema = adapter.schema()

    assert schema["administrator_login_password"]["sensitive"] is True
    assert schema["storage_mb"]["force_new"] is True
    assert schema["storage_mb"]["allowed"] == [51200, 102400]
    assert schema["ssl_enforcement"]["force_new"] is False
    assert schema["fqdn"]["computed"] is True
    sku = schema["sku"]["schema"]
    assert sku["name"]["allowed"] == ["MYSQLB50", "MYSQLB100"]
    assert sku["name"]["ignore_case"] is True
    assert schema["tags"]["required"] is False


# ---------------------------------------------------------------------------
# Failure paths
# ---------------------------------------------------------------------------

def test_read_not_found_clears_state(adapter, registry):
    d = adapter.new_data(mysql_config(), id=arm_id("rg1", "Microsoft.DBforMySQL", "servers", "gone"))

    assert adapter.read(d, registry) is False
    assert d.id == ""
    assert d.status is ResourceStatus.ABSENT


def test_read_other_errors_are_remote_errors(adapter, registry, servers):
    servers.get_errors = [http_error(500, "internal")]
    d = adapter.new_data(id=arm_id("rg1", "Microsoft.DBforMySQL", "servers", "db1"))

    with pytest.raises(RemoteOperationError) as exc:
        adapter.read(d, registry)
    assert exc.value.status_code == 500
    assert d.id


def test_delete_absent_is_not_found_not_inconsistent(adapter, registry):
    d = adapter.new_data(id=arm_id("rg1", "Microsoft.DBforMySQL", "servers", "gone"))

    with pytest.raises(NotFoundError) as exc:
        adapter.delete(d, registry)
    assert not isinstance(exc.value, InconsistentStateError)


def test_create_without_id_is_inconsistent(adapter, registry, servers):
    servers.omit_id = True

    with pytest.raises(InconsistentStateError) as exc:
        adapter.create(adapter.new_data(mysql_config()), registry)
    assert "'db1'" in str(exc.value)
    assert "'rg1'" in str(exc.value)


def test_read_after_create_failure_names_the_step(adapter, registry, servers):
    # first get (id lookup) succeeds, the refresh read fails
    servers.get_errors = [None, http_error(500, "flaky")]

    with pytest.raises(RemoteOperationError) as exc:
        adapter.create(adapter.new_data(mysql_config()), registry)

    assert exc.value.step == "create"
    message = str(exc.value)
    assert "after create" in message
    assert "'db1'" in message and "'rg1'" in message


def test_failed_long_running_create_surfaces_remote_error(adapter, servers):
    class FailingServers(FakeMySQLServers):
        def begin_create(self, group, name, params):
            return FakePoller(error=http_error(409, "Conflict"))

    registry = make_registry(mysql=SimpleNamespace(servers=FailingServers()))
    with pytest.raises(RemoteOperationError) as exc:
        adapter.create(adapter.new_data(mysql_config()), registry)
    assert exc.value.status_code == 409


def test_cancel_during_pending_update_returns_promptly(adapter, servers):
    registry = make_registry(poll_interval=30, mysql=SimpleNamespace(servers=servers))
    d = adapter.new_data(mysql_config())
    adapter.create(d, registry)

    servers.hang = True
    d.config = mysql_config(ssl_enforcement="Disabled")
    threading.Timer(0.2, registry.stop_context.cancel).start()

    started = time.monotonic()
    with pytest.raises(OperationCancelledError):
        adapter.update(d, registry)
    assert time.monotonic() - started < 5
