#!/usr/bin/env python3
"""Command line interface for omnimap."""
from typing import Optional

import typer
from typing_extensions import Annotated

from omnimap.common.logger import configure_logging
from omnimap.common.settings import settings
from omnimap_cli.commands.connection import app as connection_app
from omnimap_cli.commands.info import list_available_adapters
from omnimap_cli.commands.migrate import app as migrate_app

app = typer.Typer(
    name="omnimap",
    help="One fluent vocabulary for relational, document and HTTP backends.",
    no_args_is_help=True,
    add_completion=False,
)

app.add_typer(connection_app, name="connection", help="Manage connection entries in the config file.")
app.add_typer(migrate_app, name="migrate", help="Create, apply and roll back migrations.")


@app.callback()
def global_callback(
    env: Annotated[Optional[str], typer.Option("--env", "-e", help="Environment name; loads .env.<name>.")] = None,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Debug logging")] = False,
):
    """
    omnimap CLI entry point.
    """
    if env:
        settings.configure_env(env)
    configure_logging("DEBUG" if verbose else settings.log_level, json_format=settings.log_json)


@app.command("adapters")
def adapters():
    """
    List installed adapters and their capabilities.
    """
    list_available_adapters()


def main():
    app()


if __name__ == "__main__":
    main()
