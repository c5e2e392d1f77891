"""
Ticket id resolution.

Jira ticket ids look like ``ABC-123``: uppercase project key, a dash,
and the issue number. We find them in branch names (``feature/ABC-123-login``)
and folder names (``ABC-123-openspec``).
"""

from __future__ import annotations

import logging
import re
from pathlib import Path

from openspec_sync.core.exceptions import RepositoryError
from openspec_sync.utils.git import GitRepository

logger = logging.getLogger(__name__)

TICKET_PATTERN = re.compile(r"[A-Z]+-\d+")


def extract_ticket_id(text: str) -> str | None:
    """
    Extract the first ticket id from a string.

    Matching is case-sensitive; ``abc-123`` is not a ticket id.

    Example:
        >>> extract_ticket_id("feature/NFOR-225-add-sync")
        'NFOR-225'
        >>> extract_ticket_id("main") is None
        True
    """
    match = TICKET_PATTERN.search(text)
    return match.group(0) if match else None


def ticket_from_branch(repo: GitRepository) -> str | None:
    """Get the ticket id from the current branch name, if any."""
    try:
        branch = repo.current_branch()
    except RepositoryError as e:
        logger.debug("No branch to infer a ticket from: %s", e.stderr or e)
        return None
    return extract_ticket_id(branch)


def resolve_ticket(
    explicit: str | None,
    repo: GitRepository,
    spec_dir: Path | None = None,
) -> str | None:
    """
    Work out which ticket a sync operation targets.

    Precedence: an explicit argument, then the current branch name, then
    the spec folder name, then the repository root folder name.

    Args:
        explicit: Ticket given on the command line (may be None)
        repo: Repository to read the branch from
        spec_dir: The openspec folder being synced

    Returns:
        Ticket id, or None if nothing matched.
    """
    if explicit:
        ticket = extract_ticket_id(explicit)
        if ticket:
            return ticket
        logger.debug("Explicit ticket %r does not look like a ticket id", explicit)

    ticket = ticket_from_branch(repo)
    if ticket:
        return ticket

    if spec_dir is not None:
        ticket = extract_ticket_id(spec_dir.resolve().name)
        if ticket:
            return ticket

    try:
        return extract_ticket_id(repo.repository_root().name)
    except RepositoryError:
        return None


__all__ = [
    "TICKET_PATTERN",
    "extract_ticket_id",
    "resolve_ticket",
    "ticket_from_branch",
]
