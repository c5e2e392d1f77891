"""
openspec-sync CLI - push, pull and status commands.

Provides the CLI interface to the SyncEngine for moving a spec folder
between the local repository and its Jira ticket.
"""

from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from openspec_sync.cli.errors import (
    ExitCode,
    print_attachment_lost_error,
    print_error,
    print_invalid_config_error,
    print_invalid_ticket_error,
    print_no_ticket_error,
    print_not_configured_error,
    print_not_git_repo_error,
    print_remote_error,
    print_spec_dir_missing_error,
)
from openspec_sync.core.config import load_config, require_jira_config
from openspec_sync.core.exceptions import (
    ArchiveError,
    ConfigurationError,
    InvalidConfigError,
    RemoteError,
    RepositoryError,
)
from openspec_sync.core.jira import JiraClient
from openspec_sync.core.sync import ConfirmCallback, SyncEngine, SyncOutcome, SyncResult, SyncState
from openspec_sync.core.tickets import extract_ticket_id, resolve_ticket
from openspec_sync.utils.git import GitRepository

console = Console()

TICKET_ARGUMENT = typer.Argument(
    None,
    help="Ticket id (e.g. ABC-123). Inferred from the branch or folder name if omitted.",
)
DIR_OPTION = typer.Option(
    None,
    "--dir",
    "-d",
    help="Spec folder to sync (default: <repo root>/openspec)",
)

STATE_DISPLAY = {
    SyncState.NO_REMOTE: ("○", "blue", "No archive on the ticket"),
    SyncState.NO_LOCAL: ("○", "blue", "No local spec folder"),
    SyncState.IN_SYNC: ("✓", "green", "In sync with the ticket"),
    SyncState.LOCAL_AHEAD: ("↑", "yellow", "Local is ahead of the ticket"),
    SyncState.DIVERGED: ("⚠", "red", "Local and ticket have diverged"),
    SyncState.UNKNOWN_BASE: ("?", "red", "Ticket archive has no recorded base commit"),
    SyncState.UNDETERMINED: ("?", "red", "Could not compare with the ticket"),
}

OUTCOME_EXIT_CODES = {
    SyncOutcome.CONFLICT: ExitCode.CONFLICT,
    SyncOutcome.ATTACHMENT_LOST: ExitCode.ATTACHMENT_LOST,
    SyncOutcome.ABORTED: ExitCode.GENERAL_ERROR,
}


def resolve_context(ticket: str | None, directory: Path | None) -> tuple[GitRepository, str, Path]:
    """
    Work out the repository, ticket and spec folder for a command.

    Exits with a user error when any of them cannot be determined.
    """
    repo = GitRepository(Path.cwd())
    if not repo.is_repository():
        print_not_git_repo_error()
        raise typer.Exit(ExitCode.USER_ERROR)

    if directory is not None:
        spec_dir = directory.resolve()
    else:
        spec_dir = repo.repository_root() / load_config().spec_dir

    if ticket and not extract_ticket_id(ticket):
        print_invalid_ticket_error(ticket)
        raise typer.Exit(ExitCode.USER_ERROR)

    resolved = resolve_ticket(ticket, repo, spec_dir)
    if not resolved:
        print_no_ticket_error()
        raise typer.Exit(ExitCode.USER_ERROR)

    return repo, resolved, spec_dir


def open_client() -> JiraClient:
    """Create a Jira client from the stored configuration."""
    config = load_config()
    return JiraClient.from_config(
        require_jira_config(config), attachment_name=config.attachment_name
    )


def _confirm_callback(assume_yes: bool) -> ConfirmCallback:
    if assume_yes:
        return lambda question: True
    return lambda question: typer.confirm(question, default=False)


@contextmanager
def handle_errors() -> Iterator[None]:
    """Map openspec-sync exceptions to error messages and exit codes."""
    try:
        yield
    except InvalidConfigError as e:
        print_invalid_config_error(e)
        raise typer.Exit(ExitCode.USER_ERROR)
    except ConfigurationError:
        print_not_configured_error()
        raise typer.Exit(ExitCode.USER_ERROR)
    except RemoteError as e:
        print_remote_error(e)
        raise typer.Exit(ExitCode.GENERAL_ERROR)
    except ArchiveError as e:
        print_error(escape(str(e)), reason="The spec archive could not be read or written")
        raise typer.Exit(ExitCode.GENERAL_ERROR)
    except RepositoryError as e:
        print_error(escape(str(e)), reason=escape(e.stderr) if e.stderr else None)
        raise typer.Exit(ExitCode.GENERAL_ERROR)


def print_result(result: SyncResult) -> None:
    """Render a push/pull result."""
    outcome = result.outcome
    ticket = result.ticket
    message = escape(result.message)

    if outcome is SyncOutcome.PUSHED:
        console.print(f"[green]✓[/green] Pushed spec to {ticket}: {message}")
    elif outcome is SyncOutcome.PULLED:
        console.print(f"[green]✓[/green] Pulled spec from {ticket}: {message}")
    elif outcome is SyncOutcome.UP_TO_DATE:
        console.print(f"[green]✓[/green] Already in sync with {ticket}")
        if result.snapshot is not None and result.snapshot.remote_dirty:
            console.print(
                "[yellow]⚠[/yellow]  Remote archive contains uncommitted changes; "
                "[bold]openspec-sync pull[/bold] fetches them"
            )
    elif outcome is SyncOutcome.NOTHING_TO_PULL:
        console.print(f"[blue]No spec archive on {ticket} to pull[/blue]")
    elif outcome is SyncOutcome.ABORTED:
        console.print(f"[yellow]Aborted:[/yellow] {message}")
    elif outcome is SyncOutcome.CONFLICT:
        console.print(f"[red]⚠ Conflict on {ticket}:[/red] {message}")
        console.print(
            f"\n[dim]→ Nothing was changed. Re-run with [bold]--force[/bold] "
            f"to {result.operation} anyway.[/dim]"
        )
    elif outcome is SyncOutcome.ATTACHMENT_LOST:
        print_attachment_lost_error(
            ticket, str(result.backup_path) if result.backup_path else None
        )


def _exit_for(result: SyncResult) -> None:
    code = OUTCOME_EXIT_CODES.get(result.outcome)
    if code is not None:
        raise typer.Exit(code)


def push(
    ticket: str | None = TICKET_ARGUMENT,
    directory: Path | None = DIR_OPTION,
    force: bool = typer.Option(
        False,
        "--force",
        "-f",
        help="Overwrite the ticket's archive even when histories conflict",
    ),
    yes: bool = typer.Option(
        False,
        "--yes",
        "-y",
        help="Do not ask before pushing uncommitted changes",
    ),
) -> None:
    """
    Pack the spec folder and attach it to the ticket.

    Replaces the ticket's existing openspec.zip when local is ahead of it.
    Refuses when the ticket's archive was built from a commit that is not
    in the local history.

    Examples:
        openspec-sync push                  # Ticket from branch name
        openspec-sync push ABC-123          # Explicit ticket
        openspec-sync push --dir docs/spec  # Different folder
        openspec-sync push --force          # Overwrite despite a conflict
    """
    with handle_errors():
        repo, resolved, spec_dir = resolve_context(ticket, directory)
    if not spec_dir.is_dir():
        print_spec_dir_missing_error(str(spec_dir))
        raise typer.Exit(ExitCode.USER_ERROR)

    with handle_errors():
        with open_client() as client:
            engine = SyncEngine(repo, client, confirm=_confirm_callback(yes))
            console.print(f"[blue]Pushing {spec_dir.name} to {resolved}...[/blue]")
            result = engine.push(resolved, spec_dir, force=force)

    print_result(result)
    _exit_for(result)


def pull(
    ticket: str | None = TICKET_ARGUMENT,
    directory: Path | None = DIR_OPTION,
    force: bool = typer.Option(
        False,
        "--force",
        "-f",
        help="Overwrite local files even when histories conflict",
    ),
    yes: bool = typer.Option(
        False,
        "--yes",
        "-y",
        help="Do not ask before overwriting uncommitted changes",
    ),
) -> None:
    """
    Download the ticket's spec archive and extract it over the spec folder.

    Examples:
        openspec-sync pull                  # Ticket from branch name
        openspec-sync pull ABC-123          # Explicit ticket
        openspec-sync pull --force          # Overwrite despite a conflict
    """
    with handle_errors():
        repo, resolved, spec_dir = resolve_context(ticket, directory)

    with handle_errors():
        with open_client() as client:
            engine = SyncEngine(repo, client, confirm=_confirm_callback(yes))
            console.print(f"[blue]Pulling spec from {resolved}...[/blue]")
            result = engine.pull(resolved, spec_dir, force=force)

    print_result(result)
    _exit_for(result)


def status(
    ticket: str | None = TICKET_ARGUMENT,
    directory: Path | None = DIR_OPTION,
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Show commits, attachment details and the decision reason",
    ),
) -> None:
    """
    Show how the local spec folder relates to the ticket's archive.

    Examples:
        openspec-sync status            # Basic status
        openspec-sync status -v         # Detailed status
    """
    with handle_errors():
        repo, resolved, spec_dir = resolve_context(ticket, directory)

    with handle_errors():
        with open_client() as client:
            result = SyncEngine(repo, client).status(resolved, spec_dir)

    decision = result.decision
    snapshot = result.snapshot
    if decision is None or snapshot is None:
        return

    icon, color, label = STATE_DISPLAY[decision.state]
    console.print(f"[{color}]{icon}[/{color}] {resolved}: {label}")
    if snapshot.dirty:
        console.print(f"[yellow]⚠[/yellow]  Uncommitted changes in {spec_dir.name}")
    if snapshot.remote_dirty:
        console.print("[yellow]⚠[/yellow]  Remote archive contains uncommitted changes")

    if verbose:
        table = Table(title="Sync Details", show_header=False)
        table.add_column("Field", style="cyan")
        table.add_column("Value")

        table.add_row("Spec folder", str(spec_dir))
        table.add_row("Local HEAD", snapshot.local_commit[:8] if snapshot.local_commit else "-")
        table.add_row("Remote base", snapshot.remote_base[:8] if snapshot.remote_base else "-")
        if snapshot.ahead >= 0:
            table.add_row("Commits ahead", str(snapshot.ahead))
        if snapshot.attachment:
            table.add_row("Attachment", snapshot.attachment.id)
            table.add_row("Uploaded", snapshot.attachment.created.strftime("%Y-%m-%d %H:%M:%S"))
            table.add_row("Size", f"{snapshot.attachment.size} bytes")
        table.add_row("Reason", escape(decision.reason))
        if result.duration_seconds is not None:
            table.add_row("Checked in", f"{result.duration_seconds:.2f}s")

        console.print()
        console.print(table)

    # Actionable recommendations
    if decision.state is SyncState.IN_SYNC and snapshot.remote_dirty and not snapshot.dirty:
        console.print("\n[dim]→ Run [bold]openspec-sync pull[/bold] to fetch them[/dim]")
    elif decision.state in (SyncState.NO_REMOTE, SyncState.LOCAL_AHEAD):
        console.print("\n[dim]→ Run [bold]openspec-sync push[/bold] to update the ticket[/dim]")
    elif decision.state in (
        SyncState.DIVERGED,
        SyncState.UNKNOWN_BASE,
        SyncState.UNDETERMINED,
    ):
        console.print(
            "\n[dim]→ Reconcile by hand, then use [bold]--force[/bold] "
            "on push or pull[/dim]"
        )


__all__ = [
    "handle_errors",
    "open_client",
    "print_result",
    "pull",
    "push",
    "resolve_context",
    "status",
]
