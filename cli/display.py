"""
cli/display.py

All Rich-based terminal rendering for the azurerm CLI.
Centralising this here means:
  - main.py never imports Rich directly
  - The API layer can skip this entirely

Functions:
  print_banner()             — header
  setup_logging()            — route the azurerm loggers through RichHandler
  print_environments_table() — known Azure clouds
  print_schema_table()       — one resource type's fields
  print_type_list()          — every supported type
  print_change_plan()        — what apply is about to do
  print_resource_panel()     — one resource's tracked state
  print_success()            — Styled success message
  print_error()              — Styled error message
"""

import logging
from typing import Dict, Iterable, List

from rich import box
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

console = Console()

_STATUS_STYLES = {
    "present": "bold green",
    "drifted": "bold yellow",
    "pending": "bold cyan",
    "absent":  "bold red",
}

_MASK = "(sensitive)"


def print_banner() -> None:
    banner = Text()
    banner.append("  ☁  azurerm", style="bold cyan")
    banner.append("  |  ", style="dim")
    banner.append("Azure Resource Manager plugin", style="italic white")
    console.print(Panel(banner, border_style="cyan", padding=(0, 2)))


def setup_logging(verbose: bool = False) -> None:
    """
    INFO milestones from the adapters by default; --verbose adds the
    DEBUG wire dumps from azurerm.http.
    """
    handler = RichHandler(console=console, show_path=False, markup=False, rich_tracebacks=True)
    handler.setFormatter(logging.Formatter("%(message)s"))
    root = logging.getLogger("azurerm")
    root.handlers[:] = [handler]
    root.setLevel(logging.DEBUG if verbose else logging.INFO)
    root.propagate = False


def print_environments_table(environments: Dict[str, object]) -> None:
    table = Table(
        title="[bold cyan]Azure Environments[/bold cyan]",
        box=box.ROUNDED,
        border_style="cyan",
        header_style="bold white",
    )
    table.add_column("Name",             style="green", no_wrap=True)
    table.add_column("Resource Manager", style="white")
    table.add_column("Active Directory", style="white")
    table.add_column("Storage suffix",   style="dim")

    for name, env in environments.items():
        table.add_row(name, env.resource_manager_endpoint, env.active_directory_endpoint, env.storage_endpoint_suffix)

    console.print()
    console.print(table)


def print_type_list(resources: Iterable[str], data_sources: Iterable[str]) -> None:
    table = Table(box=box.SIMPLE, header_style="bold white")
    table.add_column("Kind", style="dim")
    table.add_column("Type", style="green")
    for name in resources:
        table.add_row("resource", name)
    for name in data_sources:
        table.add_row("data source", name)
    console.print(table)


def _flags(spec: dict) -> str:
    flags = []
    if spec.get("required"):
        flags.append("[bold]required[/bold]")
    elif spec.get("computed"):
        flags.append("[cyan]computed[/cyan]")
    else:
        flags.append("optional")
    if spec.get("force_new"):
        flags.append("[yellow]force new[/yellow]")
    if spec.get("sensitive"):
        flags.append("[red]sensitive[/red]")
    return ", ".join(flags)


def _detail(spec: dict) -> str:
    parts = []
    if "allowed" in spec:
        allowed = ", ".join(str(v) for v in spec["allowed"])
        parts.append(f"one of: {allowed}" + (" (any case)" if spec.get("ignore_case") else ""))
    if "default" in spec and spec["default"] not in (None, {}, []):
        parts.append(f"default: {spec['default']}")
    return "; ".join(parts)


def print_schema_table(type_name: str, schema: Dict[str, dict], prefix: str = "") -> None:
    table = Table(
        title=f"[bold cyan]{type_name}[/bold cyan]",
        box=box.ROUNDED,
        border_style="cyan",
        header_style="bold white",
        padding=(0, 1),
    )
    table.add_column("Field",  style="green", min_width=24)
    table.add_column("Type",   style="white")
    table.add_column("Flags",  style="white")
    table.add_column("Detail", style="dim")

    def _rows(fields: Dict[str, dict], path: str) -> None:
        for name, spec in fields.items():
            type_label = spec["type"]
            if type_label == "list" and spec.get("elem", {}).get("type") != "object":
                type_label = f"list({spec['elem']['type']})"
            table.add_row(f"{path}{name}", type_label, _flags(spec), _detail(spec.get("elem", spec)))
            nested = spec.get("schema") or spec.get("elem", {}).get("schema")
            if nested:
                _rows(nested, f"{path}{name}.")

    _rows(schema, prefix)
    console.print()
    console.print(table)


def print_change_plan(address: str, action: str, fields: List[str]) -> None:
    styles = {"create": "green", "update": "yellow", "replace": "red", "no-op": "dim"}
    style = styles.get(action, "white")
    text = Text()
    text.append(f"  {address}  ", style="bold white")
    text.append(action.upper(), style=f"bold {style}")
    if fields:
        text.append("\n  fields: ", style="dim")
        text.append(", ".join(fields), style=style)
    console.print(Panel(text, border_style=style, padding=(0, 1)))


def print_resource_panel(address: str, state: dict, sensitive: Iterable[str] = ()) -> None:
    """Render one resource's id, status and attributes; sensitive values masked."""
    hidden = set(sensitive)
    status = state.get("status", "absent")
    style = _STATUS_STYLES.get(status, "white")

    text = Text()
    text.append("  Status   ", style="dim")
    text.append(status.upper(), style=style)
    text.append("\n  ID       ", style="dim")
    text.append(state.get("id") or "-", style="white")

    attributes = dict(state.get("config", {}))
    attributes.update(state.get("attributes", {}))
    for key in sorted(attributes):
        value = _MASK if key in hidden and attributes[key] is not None else attributes[key]
        text.append(f"\n  {key:<32}", style="dim")
        text.append(str(value), style="white")

    console.print()
    console.print(Panel(
        text,
        title=f"[{style}]{address}[/{style}]",
        border_style=style.split()[-1],
        padding=(0, 2),
    ))


def print_success(message: str) -> None:
    console.print(Panel(f"  {message}", border_style="green", padding=(0, 1)))


def print_error(message: str) -> None:
    console.print(Panel(f"  {message}", border_style="red", title="[red]Error[/red]", padding=(0, 1)))
