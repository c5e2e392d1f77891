"""
Git utilities for openspec-sync.

Provides a repository handle that answers the questions the sync engine
asks about local state: which branch and commit we are on, whether a
commit recorded in a remote archive is part of our history, how far
ahead we are of it, and whether the spec folder has uncommitted edits.

Yes/no questions are answered internally with a tri-state ``Probe`` so
that "could not tell" stays visible to logging and tests. The public
boolean methods collapse it to ``False`` (and counts to ``-1``).
"""

from __future__ import annotations

import logging
import subprocess
from enum import Enum
from pathlib import Path

from openspec_sync.core.exceptions import RepositoryError

logger = logging.getLogger(__name__)

# Returned by commits_ahead() when the count cannot be determined
AHEAD_UNKNOWN = -1


class Probe(str, Enum):
    """Outcome of a yes/no repository query."""

    TRUE = "true"
    FALSE = "false"
    INDETERMINATE = "indeterminate"

    def collapse(self) -> bool:
        """Reduce to a plain boolean, treating INDETERMINATE as False."""
        return self is Probe.TRUE


class LineageRelation(str, Enum):
    """Relation of a candidate commit to the current HEAD."""

    ANCESTOR = "ancestor"
    SAME = "same"
    NOT_FOUND = "not_found"
    ERROR = "error"


class GitRepository:
    """
    Handle on a local git working tree.

    All commands run with ``cwd`` set to the handle's directory, so the
    same process can inspect several repositories (and tests can point a
    handle at a throwaway repo).

    Example:
        >>> repo = GitRepository(Path("."))
        >>> repo.current_branch()
        'feature/ABC-123-login'
        >>> repo.commits_ahead("a1b2c3d")
        3
    """

    def __init__(self, path: Path | None = None) -> None:
        """
        Initialize the repository handle.

        Args:
            path: Directory inside the working tree. Defaults to cwd.
        """
        self.path = (path or Path.cwd()).resolve()

    def __repr__(self) -> str:
        return f"GitRepository({str(self.path)!r})"

    def _run_git(self, args: list[str]) -> str:
        """
        Run a git command and return its stripped stdout.

        Raises:
            RepositoryError: If the command exits non-zero or git is unavailable.
        """
        cmd = ["git"] + args

        logger.debug("Running git command: %s", " ".join(cmd))

        try:
            result = subprocess.run(
                cmd,
                cwd=self.path,
                capture_output=True,
                text=True,
                timeout=60,
            )
        except subprocess.TimeoutExpired as e:
            raise RepositoryError(f"Git command timed out: {' '.join(cmd)}", command=cmd) from e
        except FileNotFoundError as e:
            raise RepositoryError("git not found in PATH", command=cmd) from e
        except OSError as e:
            raise RepositoryError(f"Cannot run git in {self.path}: {e}", command=cmd) from e

        if result.returncode != 0:
            stderr = result.stderr.strip() if result.stderr else ""
            raise RepositoryError(
                f"Git command failed: {' '.join(cmd)}",
                command=cmd,
                stderr=stderr,
                returncode=result.returncode,
            )

        return result.stdout.strip() if result.stdout else ""

    # ------------------------------------------------------------------
    # Identity
    # ------------------------------------------------------------------

    def is_repository(self) -> bool:
        """Check whether the handle's directory is inside a git work tree."""
        try:
            return self._run_git(["rev-parse", "--is-inside-work-tree"]) == "true"
        except RepositoryError as e:
            logger.debug("is_repository collapsed to False: %s", e.stderr or e)
            return False

    def repository_root(self) -> Path:
        """
        Get the top-level directory of the working tree.

        Raises:
            RepositoryError: If not inside a repository.
        """
        return Path(self._run_git(["rev-parse", "--show-toplevel"]))

    def current_branch(self) -> str:
        """
        Get the name of the checked-out branch.

        Raises:
            RepositoryError: If not in a repository, HEAD is unborn, or
                HEAD is detached.
        """
        branch = self._run_git(["rev-parse", "--abbrev-ref", "HEAD"])
        if branch == "HEAD":
            raise RepositoryError("HEAD is detached; no branch is checked out")
        return branch

    def resolve(self, rev: str, short: bool = False) -> str:
        """
        Resolve any revision syntax to a commit id.

        Args:
            rev: Revision (sha, abbreviated sha, branch, ``HEAD~2``, ...)
            short: Return the abbreviated form instead of the full sha

        Raises:
            RepositoryError: If the revision does not name a commit.
        """
        args = ["rev-parse", "--verify", "--quiet"]
        if short:
            args.append("--short")
        return self._run_git(args + [f"{rev}^{{commit}}"])

    def current_commit(self) -> str:
        """Short sha of HEAD, for display."""
        return self.resolve("HEAD", short=True)

    def current_commit_full(self) -> str:
        """Full sha of HEAD, used as the comparison key."""
        return self.resolve("HEAD")

    # ------------------------------------------------------------------
    # Lineage
    # ------------------------------------------------------------------

    def probe_ancestor(self, candidate: str) -> Probe:
        """
        Test whether ``candidate`` is an ancestor of (or equal to) HEAD.

        Computes the merge-base of candidate and HEAD and compares it to
        the candidate, both normalized to the short form, so any valid
        revision syntax works for ``candidate``.
        """
        try:
            self.resolve("HEAD", short=True)
        except RepositoryError as e:
            logger.debug("Cannot resolve HEAD: %s", e.stderr or e)
            return Probe.INDETERMINATE

        try:
            candidate_short = self.resolve(candidate, short=True)
        except RepositoryError:
            # Unknown object: it cannot be in our history
            logger.debug("Commit %s is unknown to this repository", candidate)
            return Probe.FALSE

        try:
            merge_base = self._run_git(["merge-base", candidate_short, "HEAD"])
            merge_base_short = self.resolve(merge_base, short=True)
        except RepositoryError as e:
            if e.returncode == 1:
                # No common ancestor (unrelated histories)
                return Probe.FALSE
            logger.debug("merge-base failed for %s: %s", candidate, e.stderr or e)
            return Probe.INDETERMINATE

        return Probe.TRUE if merge_base_short == candidate_short else Probe.FALSE

    def is_ancestor(self, candidate: str) -> bool:
        """Whether ``candidate`` is HEAD or one of its ancestors."""
        return self.probe_ancestor(candidate).collapse()

    def lineage(self, candidate: str) -> LineageRelation:
        """Classify ``candidate`` relative to HEAD."""
        try:
            head = self.current_commit_full()
        except RepositoryError:
            return LineageRelation.ERROR

        try:
            if self.resolve(candidate) == head:
                return LineageRelation.SAME
        except RepositoryError:
            return LineageRelation.NOT_FOUND

        probe = self.probe_ancestor(candidate)
        if probe is Probe.TRUE:
            return LineageRelation.ANCESTOR
        if probe is Probe.FALSE:
            return LineageRelation.NOT_FOUND
        return LineageRelation.ERROR

    def commits_ahead(self, base: str) -> int:
        """
        Count commits after ``base`` up to and including HEAD.

        Returns:
            The count (0 when base is HEAD), or AHEAD_UNKNOWN (-1) when
            base is not in HEAD's history or the count fails. Callers
            must treat -1 as "cannot determine", never as zero.
        """
        if not self.is_ancestor(base):
            return AHEAD_UNKNOWN

        try:
            return int(self._run_git(["rev-list", "--count", f"{base}..HEAD"]))
        except (RepositoryError, ValueError) as e:
            logger.debug("commits_ahead(%s) collapsed to -1: %s", base, e)
            return AHEAD_UNKNOWN

    # ------------------------------------------------------------------
    # Working tree
    # ------------------------------------------------------------------

    def probe_uncommitted_changes(self, path: Path | str | None = None) -> Probe:
        """
        Check for changes against HEAD, optionally limited to ``path``.

        Untracked files count as changes.
        """
        args = ["status", "--porcelain"]
        if path is not None:
            args += ["--", str(path)]
        try:
            output = self._run_git(args)
        except RepositoryError as e:
            logger.debug("git status failed: %s", e.stderr or e)
            return Probe.INDETERMINATE
        return Probe.TRUE if output else Probe.FALSE

    def has_uncommitted_changes(self, path: Path | str | None = None) -> bool:
        """Whether the working tree (or ``path`` within it) differs from HEAD."""
        return self.probe_uncommitted_changes(path).collapse()


__all__ = [
    "AHEAD_UNKNOWN",
    "GitRepository",
    "LineageRelation",
    "Probe",
]
