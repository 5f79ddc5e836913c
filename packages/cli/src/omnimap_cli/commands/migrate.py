import asyncio
import pathlib
from typing import Awaitable, Callable, List, Optional, TypeVar

import typer
from rich.table import Table
from typing_extensions import Annotated

from omnimap.common.errors import MapperError
from omnimap.common.settings import settings
from omnimap.context import MapperContext
from omnimap.migrations import MigrationRecord, MigrationRunner, MigrationStore
from omnimap_cli.console import console, print_error, print_info, print_success

app = typer.Typer(help="Create, apply and roll back migrations.", no_args_is_help=True)

T = TypeVar("T")

ConfigOption = Annotated[
    Optional[pathlib.Path], typer.Option("--config", "-c", help="Config file (defaults to OMNIMAP_CONFIG)")
]
FileOption = Annotated[
    Optional[pathlib.Path],
    typer.Option("--file", "-f", help="Migrations JSON file (defaults to OMNIMAP_MIGRATIONS_FILE)"),
]


def _execute(
    config: Optional[pathlib.Path],
    file: Optional[pathlib.Path],
    step: Callable[[MigrationRunner], Awaitable[T]],
) -> T:
    async def _main() -> T:
        context = MapperContext(settings)
        await context.init(config_path=config)
        try:
            return await step(context.migrations(file))
        finally:
            await context.shutdown()

    try:
        return asyncio.run(_main())
    except (MapperError, ValueError) as e:
        print_error(str(e))
        raise typer.Exit(code=1)
    except Exception as e:
        print_error(f"Migration failed: {e}")
        raise typer.Exit(code=1)


def _store(file: Optional[pathlib.Path]) -> MigrationStore:
    return MigrationStore(file or settings.migrations_path)


def _report(records: List[MigrationRecord], verb: str) -> None:
    if not records:
        print_info("Nothing to do")
        return
    for record in records:
        print_success(f"{verb} {record.id}")


@app.command("create")
def create(
    name: Annotated[str, typer.Argument(help="Migration name")],
    up: Annotated[str, typer.Option("--up", help="Apply step as 'module:function'")],
    down: Annotated[str, typer.Option("--down", help="Rollback step as 'module:function'")],
    file: FileOption = None,
):
    """Records a new pending migration."""
    runner = MigrationRunner(None, _store(file))
    try:
        record = runner.create(name, up, down)
    except ValueError as e:
        print_error(str(e))
        raise typer.Exit(code=1)
    print_success(f"Created migration {record.id}")


@app.command("run")
def run(config: ConfigOption = None, file: FileOption = None):
    """Applies every pending migration."""
    _report(_execute(config, file, lambda r: r.run_pending()), "Applied")


@app.command("up")
def up(config: ConfigOption = None, file: FileOption = None):
    """Applies the next pending migration."""
    record = _execute(config, file, lambda r: r.up())
    _report([record] if record else [], "Applied")


@app.command("down")
def down(config: ConfigOption = None, file: FileOption = None):
    """Rolls back the latest applied migration."""
    record = _execute(config, file, lambda r: r.down())
    _report([record] if record else [], "Rolled back")


@app.command("refresh")
def refresh(config: ConfigOption = None, file: FileOption = None):
    """Rolls back every applied migration, then applies all of them."""
    _report(_execute(config, file, lambda r: r.refresh()), "Applied")


@app.command("status")
def status(file: FileOption = None):
    """Shows every recorded migration and its state."""
    try:
        records = MigrationRunner(None, _store(file)).status()
    except ValueError as e:
        print_error(str(e))
        raise typer.Exit(code=1)
    if not records:
        print_info("No migrations recorded")
        return

    table = Table(title="Migrations")
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Name", style="white")
    table.add_column("Status", style="magenta")
    table.add_column("Executed At", style="green")
    for record in records:
        table.add_row(record.id, record.name, record.status.value, record.executed_at or "")
    console.print(table)
