from rich.table import Table

from omnimap.connections.factory import discover_adapters
from omnimap_adapter_sdk import capabilities_of
from omnimap_cli.console import console


def list_available_adapters() -> None:
    """Discovers and displays all installed adapters."""
    adapters = discover_adapters()

    if not adapters:
        console.print("[warning]No adapters found. Install omnimap with the matching extra (e.g. omnimap[postgres]).[/warning]")
        return

    table = Table(title="Installed Adapters")
    table.add_column("Connection Type", style="cyan", no_wrap=True)
    table.add_column("Class", style="magenta")
    table.add_column("Capabilities", style="green")

    for name, cls in sorted(adapters.items()):
        capabilities = ", ".join(sorted(c.value for c in capabilities_of(cls)))
        table.add_row(name, f"{cls.__module__}.{cls.__name__}", capabilities)

    console.print(table)
