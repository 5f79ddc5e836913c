import json
import pathlib
from typing import Any, Dict, List, Optional

import typer
from rich.table import Table
from typing_extensions import Annotated

from omnimap.common.errors import MapperError
from omnimap.configs import ConfigManager
from omnimap_cli.console import console, print_error, print_success

app = typer.Typer(help="Manage connection entries in the config file.", no_args_is_help=True)

ConfigOption = Annotated[
    Optional[pathlib.Path], typer.Option("--config", "-c", help="Config file (defaults to OMNIMAP_CONFIG)")
]
SetOption = Annotated[
    Optional[List[str]], typer.Option("--set", "-s", help="Backend setting as key=value (repeatable)")
]
DefaultOption = Annotated[bool, typer.Option("--default", help="Make this the default connection")]


def parse_assignments(assignments: Optional[List[str]]) -> Dict[str, Any]:
    """Parses ``key=value`` pairs; values that are valid JSON (numbers, booleans...) are decoded."""
    values: Dict[str, Any] = {}
    for item in assignments or []:
        key, sep, raw = item.partition("=")
        if not sep or not key.strip():
            raise typer.BadParameter(f"Expected key=value, got '{item}'", param_hint="--set")
        try:
            values[key.strip()] = json.loads(raw)
        except json.JSONDecodeError:
            values[key.strip()] = raw
    return values


@app.command("create")
def create(
    name: Annotated[str, typer.Argument(help="Connection name")],
    type: Annotated[str, typer.Argument(help="Connection type (sqlite, mysql, postgres, mongo, firestore, api)")],
    set: SetOption = None,
    default: DefaultOption = False,
    config: ConfigOption = None,
):
    """Adds a connection to the config file."""
    manager = ConfigManager(config)
    try:
        entry = manager.add_connection(name, type, parse_assignments(set), default=default)
    except (MapperError, ValueError) as e:
        print_error(str(e))
        raise typer.Exit(code=1)
    print_success(f"Connection '{entry.name}' ({entry.type}) written to {manager.path}")


@app.command("update")
def update(
    name: Annotated[str, typer.Argument(help="Connection name")],
    set: SetOption = None,
    default: DefaultOption = False,
    config: ConfigOption = None,
):
    """Updates settings of an existing connection."""
    manager = ConfigManager(config)
    values = parse_assignments(set)
    if not values and not default:
        print_error("Nothing to update; pass --set key=value or --default")
        raise typer.Exit(code=1)
    try:
        manager.update_connection(name, values, default=default)
    except (MapperError, ValueError) as e:
        print_error(str(e))
        raise typer.Exit(code=1)
    print_success(f"Connection '{name}' updated")


@app.command("delete")
def delete(
    name: Annotated[str, typer.Argument(help="Connection name")],
    config: ConfigOption = None,
):
    """Removes a connection from the config file."""
    manager = ConfigManager(config)
    try:
        manager.remove_connection(name)
    except (MapperError, ValueError) as e:
        print_error(str(e))
        raise typer.Exit(code=1)
    print_success(f"Connection '{name}' deleted")


@app.command("list")
def list_connections(config: ConfigOption = None):
    """Lists the configured connections."""
    manager = ConfigManager(config)
    try:
        file_config = manager.load(resolve=False)
    except ValueError as e:
        print_error(str(e))
        raise typer.Exit(code=1)

    if not file_config.connections:
        console.print(f"[warning]No connections configured in {manager.path}[/warning]")
        return

    table = Table(title=f"Connections ({manager.path})")
    table.add_column("Name", style="cyan", no_wrap=True)
    table.add_column("Type", style="magenta")
    table.add_column("Default", style="green")
    table.add_column("Settings", style="white")
    for entry in file_config.connections:
        table.add_row(
            entry.name,
            entry.type or "(inferred)",
            "yes" if entry.is_default else "",
            ", ".join(sorted(entry.settings())),
        )
    console.print(table)
