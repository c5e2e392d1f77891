"""
openspec-sync CLI - Main application entry point.

This module sets up the Typer CLI application with all subcommands.
"""

import logging
import sys

import typer
from rich.console import Console

from openspec_sync import __version__
from openspec_sync.cli import config, sync

app = typer.Typer(
    name="openspec-sync",
    help="Sync an openspec folder with its Jira ticket",
    no_args_is_help=True,
    add_completion=False,
    context_settings={"help_option_names": ["--help", "-h"]},
)

console = Console()


def setup_logging(debug: bool = False) -> None:
    """
    Configure logging for all commands.

    Args:
        debug: If True, enable DEBUG level logging
    """
    level = logging.DEBUG if debug else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )
    # httpx logs every request at INFO; keep it quiet unless debugging
    logging.getLogger("httpx").setLevel(level)


@app.callback()
def main(
    ctx: typer.Context,
    debug: bool = typer.Option(
        False,
        "--debug",
        help="Enable debug output with detailed logging",
    ),
) -> None:
    """
    openspec-sync - keep an openspec folder in sync with its Jira ticket.

    The spec folder travels as an openspec.zip attachment on the ticket.
    Each archive records the commit it was built from, so a push only
    replaces the ticket's archive when local history contains it.

    Quick Start:
        1. openspec-sync config set      # Store Jira credentials
        2. openspec-sync status          # Compare local and ticket
        3. openspec-sync push            # Attach the spec to the ticket

    The ticket id is taken from the branch name (feature/ABC-123-...) or
    the folder name unless given explicitly.
    """
    setup_logging(debug)
    ctx.obj = {"debug": debug}


app.command(name="push")(sync.push)
app.command(name="pull")(sync.pull)
app.command(name="status")(sync.status)
app.add_typer(config.app, name="config")


@app.command()
def version() -> None:
    """Show openspec-sync version and exit."""
    console.print(f"openspec-sync version {__version__}")
    raise typer.Exit(0)


def cli_main() -> None:
    """Main CLI entry point."""
    try:
        app()
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted[/yellow]")
        sys.exit(130)


__all__ = ["app", "cli_main", "setup_logging"]
