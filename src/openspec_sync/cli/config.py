"""
openspec-sync CLI - Config command for managing Jira credentials.
"""

import typer
from rich.console import Console
from rich.table import Table

from openspec_sync.cli.errors import ExitCode, print_error
from openspec_sync.cli.sync import handle_errors
from openspec_sync.core.config import (
    JiraConfig,
    clear_jira_config,
    get_user_config_path,
    load_config,
    set_jira_config,
)

console = Console()
app = typer.Typer(
    name="config",
    help="Manage Jira credentials",
    no_args_is_help=True,
)


def _mask(token: str | None) -> str:
    if not token:
        return "[dim]not set[/dim]"
    if len(token) <= 8:
        return "****"
    return f"{token[:4]}…{token[-4:]}"


@app.command(name="set")
def set_config(
    host: str = typer.Option(
        ...,
        "--host",
        help="Jira site host, e.g. acme.atlassian.net",
        prompt="Jira host",
    ),
    email: str = typer.Option(
        ...,
        "--email",
        help="Atlassian account email",
        prompt="Account email",
    ),
    api_token: str = typer.Option(
        ...,
        "--api-token",
        help="Atlassian API token",
        prompt="API token",
        hide_input=True,
    ),
) -> None:
    """
    Store Jira credentials in the user config file.

    Examples:
        openspec-sync config set                     # Prompt for everything
        openspec-sync config set --host acme.atlassian.net --email me@acme.com
    """
    jira = JiraConfig(host=host, email=email, api_token=api_token)
    if not jira.is_complete:
        print_error("Host, email and API token must all be non-empty")
        raise typer.Exit(ExitCode.USER_ERROR)

    with handle_errors():
        path = set_jira_config(jira)
    console.print(f"[green]✓[/green] Saved Jira credentials to {path}")


@app.command()
def show() -> None:
    """
    Show the effective Jira configuration (token masked).

    Environment variables (OPENSPEC_SYNC_JIRA_*) override the file.
    """
    with handle_errors():
        config = load_config(use_cache=False)
    jira = config.jira or JiraConfig()

    table = Table(title="Jira Configuration", show_header=False)
    table.add_column("Field", style="cyan")
    table.add_column("Value")
    table.add_row("Host", jira.host or "[dim]not set[/dim]")
    table.add_row("Email", jira.email or "[dim]not set[/dim]")
    table.add_row("API token", _mask(jira.api_token))
    table.add_row("Spec folder", config.spec_dir)
    table.add_row("Config file", str(get_user_config_path()))
    console.print(table)

    if not jira.is_complete:
        console.print("\n[yellow]Jira is not fully configured.[/yellow]")
        console.print("[dim]→ Run [bold]openspec-sync config set[/bold][/dim]")
        raise typer.Exit(ExitCode.USER_ERROR)


@app.command()
def clear() -> None:
    """Remove stored Jira credentials."""
    with handle_errors():
        path = clear_jira_config()
    console.print(f"[green]✓[/green] Cleared Jira credentials from {path}")


@app.command()
def path() -> None:
    """Print the path of the user config file."""
    console.print(str(get_user_config_path()), soft_wrap=True)


__all__ = ["app"]
