"""
main.py

azurerm CLI — drive the resource adapters directly from a terminal.

Credentials come from the ARM_* environment (a .env file is loaded first).
Tracked resources live in state.json, keyed by address "<type>.<name>".

Usage:
    python main.py environments
    python main.py schema azurerm_mysql_server
    python main.py validate azurerm_mysql_server server.json
    python main.py apply azurerm_mysql_server server.json --name db
    python main.py refresh
    python main.py destroy azurerm_mysql_server.db
    python main.py import azurerm_resource_group /subscriptions/.../resourceGroups/rg --name rg
    python main.py client-config
"""

import json
import os
from typing import Optional

import typer
from dotenv import load_dotenv

import azurerm
from azurerm import environments
from azurerm.config import Credentials, build_client_registry
from azurerm.exceptions import AzureRMError, NotFoundError, ValidationError
from azurerm.polling import DEFAULT_POLL_INTERVAL
from azurerm.resources import ResourceData
from cli import display

STATE_FILE = "state.json"

app = typer.Typer(help="Azure Resource Manager resource adapters.")
load_dotenv()


def save_state(data):
    with open(STATE_FILE, "w") as f:
        json.dump(data, f, indent=4)


def load_state():
    if not os.path.exists(STATE_FILE):
        return {"resources": {}}
    with open(STATE_FILE, "r") as f:
        return json.load(f)


def load_config(path: str) -> dict:
    try:
        with open(path, "r") as f:
            return json.load(f)
    except (OSError, json.JSONDecodeError) as ex:
        display.print_error(f"Cannot read config file {path}: {ex}")
        raise typer.Exit(code=1)


def _adapter(type_name: str):
    try:
        return azurerm.get_resource(type_name)
    except ValueError as ex:
        display.print_error(str(ex))
        raise typer.Exit(code=1)


def _registry():
    poll_interval = float(os.getenv("ARM_POLL_INTERVAL", DEFAULT_POLL_INTERVAL))
    return build_client_registry(Credentials.from_env(), poll_interval=poll_interval)


def _fail(ex: AzureRMError) -> None:
    display.print_error(f"{type(ex).__name__}: {ex}")
    raise typer.Exit(code=1)


def _sensitive(adapter) -> list:
    return [name for name, spec in adapter.schema().items() if spec.get("sensitive")]


@app.callback()
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Log every HTTP exchange.")):
    display.setup_logging(verbose)


@app.command("environments")
def list_environments():
    """Lists the Azure clouds the plugin can authenticate against."""
    display.print_banner()
    display.print_environments_table(environments.names())


@app.command()
def schema(type_name: Optional[str] = typer.Argument(None, help="Resource or data source type.")):
    """Shows the declarative schema for a type, or lists every type."""
    if not type_name:
        display.print_type_list(azurerm.resource_types(), azurerm.data_source_types())
        return
    if type_name.lower() in azurerm.data_source_types():
        display.print_schema_table(type_name, azurerm.get_data_source(type_name).schema())
    else:
        display.print_schema_table(type_name, _adapter(type_name).schema())


@app.command()
def validate(
    type_name: str = typer.Argument(..., help="Resource type, e.g. azurerm_mysql_server."),
    config_file: str = typer.Argument(..., help="JSON file with the resource config."),
):
    """Validates a config file without calling Azure."""
    adapter = _adapter(type_name)
    try:
        adapter.validate(load_config(config_file))
    except ValidationError as ex:
        _fail(ex)
    display.print_success(f"{config_file} is a valid {adapter.type_name} config.")


@app.command()
def apply(
    type_name: str = typer.Argument(..., help="Resource type, e.g. azurerm_mysql_server."),
    config_file: str = typer.Argument(..., help="JSON file with the resource config."),
    name: Optional[str] = typer.Option(None, help="State address name. Defaults to the config's name."),
):
    """Creates the resource, or updates / replaces it to match the config."""
    adapter = _adapter(type_name)
    config = load_config(config_file)
    address = f"{adapter.type_name}.{name or config.get('name', 'default')}"
    state = load_state()

    try:
        config = adapter.validate(config).model_dump()
        registry = _registry()
        existing = state["resources"].get(address)

        if not existing or not existing.get("id"):
            display.print_change_plan(address, "create", [])
            d = adapter.new_data(config)
            adapter.create(d, registry)
        else:
            d = ResourceData.from_state(existing)
            d.config = config
            replace = adapter.replacement_fields(d)
            if replace:
                display.print_change_plan(address, "replace", replace)
                try:
                    adapter.delete(d, registry)
                except NotFoundError:
                    display.console.print("  Previous object was already deleted.", style="dim")
                d = adapter.new_data(config)
                adapter.create(d, registry)
            else:
                display.print_change_plan(address, "update", d.diff(adapter.ignore_case_paths()))
                adapter.update(d, registry)
    except AzureRMError as ex:
        _fail(ex)

    state["resources"][address] = d.to_state()
    save_state(state)
    display.print_resource_panel(address, d.to_state(), _sensitive(adapter))
    display.print_success(f"{address} applied. State saved to {STATE_FILE}")


@app.command()
def refresh(address: Optional[str] = typer.Argument(None, help="Only refresh this address.")):
    """Re-reads tracked resources; vanished ones are dropped from state."""
    state = load_state()
    addresses = [address] if address else list(state["resources"])
    if not addresses:
        display.console.print("Nothing to refresh.", style="yellow")
        raise typer.Exit()

    try:
        registry = _registry()
        for addr in addresses:
            if addr not in state["resources"]:
                display.print_error(f"{addr} is not in {STATE_FILE}")
                raise typer.Exit(code=1)
            d = ResourceData.from_state(state["resources"][addr])
            adapter = _adapter(d.resource_type)
            if adapter.read(d, registry):
                state["resources"][addr] = d.to_state()
                display.print_resource_panel(addr, d.to_state(), _sensitive(adapter))
            else:
                del state["resources"][addr]
                display.console.print(f"  {addr} no longer exists; removed from state.", style="yellow")
    except AzureRMError as ex:
        save_state(state)
        _fail(ex)

    save_state(state)


@app.command()
def destroy(
    address: str = typer.Argument(..., help="State address, e.g. azurerm_mysql_server.db"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip the confirmation prompt."),
):
    """Deletes a tracked resource and removes it from state."""
    state = load_state()
    existing = state["resources"].get(address)
    if not existing:
        display.console.print(f"🤷 {address} is not tracked. Nothing to destroy.", style="yellow")
        raise typer.Exit()

    if not yes:
        display.console.print(f"🔥 This will delete {address} ({existing.get('id')}).", style="bold red")
        if not typer.confirm("Are you sure you want to proceed?"):
            raise typer.Abort()

    d = ResourceData.from_state(existing)
    adapter = _adapter(d.resource_type)
    try:
        adapter.delete(d, _registry())
    except NotFoundError:
        display.console.print(f"  {address} was already deleted.", style="dim")
    except AzureRMError as ex:
        _fail(ex)

    del state["resources"][address]
    save_state(state)
    display.print_success(f"{address} destroyed.")


@app.command("import")
def import_resource(
    type_name: str = typer.Argument(..., help="Resource type, e.g. azurerm_resource_group."),
    resource_id: str = typer.Argument(..., help="Azure id of the existing object."),
    name: Optional[str] = typer.Option(None, help="State address name. Defaults to the object's name."),
):
    """Adopts an existing Azure object into state."""
    adapter = _adapter(type_name)
    state = load_state()
    try:
        d = adapter.import_state(resource_id, _registry())
    except AzureRMError as ex:
        _fail(ex)

    address = f"{adapter.type_name}.{name or d.get('name') or 'default'}"
    if address in state["resources"]:
        display.print_error(f"{address} is already tracked in {STATE_FILE}")
        raise typer.Exit(code=1)
    state["resources"][address] = d.to_state()
    save_state(state)
    display.print_resource_panel(address, d.to_state(), _sensitive(adapter))
    display.print_success(f"Imported {resource_id} as {address}.")


@app.command("client-config")
def client_config():
    """Shows which principal, tenant and subscription the credentials resolve to."""
    source = azurerm.get_data_source("azurerm_client_config")
    d = source.new_data()
    try:
        source.read(d, _registry())
    except AzureRMError as ex:
        _fail(ex)
    display.print_resource_panel("data.azurerm_client_config", d.to_state())


if __name__ == "__main__":
    app()
