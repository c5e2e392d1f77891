"""
Standardized error handling and exit codes for the openspec-sync CLI.

This module provides consistent error messaging with actionable guidance
and standardized exit codes across all CLI commands.
"""

from enum import IntEnum

from rich.console import Console
from rich.markup import escape

from openspec_sync.core.exceptions import InvalidConfigError, RemoteError

console = Console()


class ExitCode(IntEnum):
    """Standard exit codes for openspec-sync operations."""

    SUCCESS = 0
    """Operation completed successfully."""

    GENERAL_ERROR = 1
    """Generic error or user-triggered error."""

    USER_ERROR = 2
    """User configuration or input error (actionable by user)."""

    CONFLICT = 3
    """Local and remote cannot be reconciled without --force."""

    ATTACHMENT_LOST = 4
    """The old archive was deleted but the new one was not uploaded."""

    SIGINT = 130
    """Terminated by SIGINT (Ctrl+C) - Unix standard."""


def print_error(
    problem: str,
    *,
    reason: str | None = None,
    solution: str | None = None,
) -> None:
    """
    Print a standardized error message with actionable guidance.

    Args:
        problem: Brief description of what went wrong
        reason: Optional explanation of why it happened
        solution: Optional command or action to fix it
    """
    console.print(f"[red]Error:[/red] {problem}")

    if reason:
        console.print(f"[dim]{reason}[/dim]")

    if solution:
        console.print(f"[cyan]→ Try:[/cyan] {solution}")


def print_not_configured_error() -> None:
    """Print error when Jira credentials are missing."""
    print_error(
        "Jira is not configured",
        reason="A Jira host, account email and API token are all required",
        solution="openspec-sync config set --host acme.atlassian.net --email you@acme.com",
    )


def print_invalid_config_error(error: InvalidConfigError) -> None:
    """Print error when the config file holds values of the wrong type."""
    path = error.context.get("config_path")
    print_error(
        f"Invalid configuration in {escape(str(path))}" if path else "Invalid configuration",
        reason=escape("; ".join(error.problems)) if error.problems else None,
        solution="fix the listed values, or delete the file and run openspec-sync config set",
    )


def print_not_git_repo_error() -> None:
    """Print error when not in a git repository."""
    print_error(
        "Not a git repository",
        reason="openspec-sync compares commits to decide what is safe to sync",
        solution="cd to your project root",
    )


def print_no_ticket_error() -> None:
    """Print error when no ticket id could be inferred."""
    print_error(
        "Could not determine the ticket",
        reason="No ticket id (like ABC-123) in the branch name or folder name",
        solution="pass it explicitly: openspec-sync push ABC-123",
    )


def print_invalid_ticket_error(value: str) -> None:
    """Print error when an explicit ticket argument is malformed."""
    print_error(
        f"Not a ticket id: {value}",
        reason="Ticket ids are an uppercase project key, a dash and a number",
        solution="openspec-sync push ABC-123",
    )


def print_spec_dir_missing_error(path: str) -> None:
    """Print error when the spec folder does not exist."""
    print_error(
        f"Spec folder not found: {path}",
        solution="pass --dir PATH, or run from the repository that contains it",
    )


def print_remote_error(error: RemoteError) -> None:
    """Print a Jira API failure with its status and body."""
    reason = None
    if error.status is not None:
        reason = f"HTTP {error.status}"
        if error.body:
            reason += f": {escape(error.body)}"
    solution = None
    if error.status in (401, 403):
        solution = "check credentials with: openspec-sync config show"
    elif error.status == 404:
        solution = "check the ticket id and that your account can see it"
    print_error(escape(error.message), reason=reason, solution=solution)


def print_attachment_lost_error(ticket: str, backup_path: str | None) -> None:
    """Print the loud warning for a replace that deleted without re-uploading."""
    console.print(
        f"[bold red]Error:[/bold red] the previous archive on {ticket} was deleted "
        "but the new one was NOT uploaded."
    )
    console.print("[red]The ticket currently has no spec archive.[/red]")
    if backup_path:
        console.print(f"[yellow]A copy of the deleted archive was saved to:[/yellow] {backup_path}")
    console.print(f"[cyan]→ Try:[/cyan] openspec-sync push {ticket}")


__all__ = [
    "ExitCode",
    "print_attachment_lost_error",
    "print_error",
    "print_invalid_ticket_error",
    "print_no_ticket_error",
    "print_not_configured_error",
    "print_not_git_repo_error",
    "print_remote_error",
    "print_spec_dir_missing_error",
]
