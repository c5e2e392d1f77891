"""
Sync decision engine.

Compares the commit the ticket's archive was built from with the local
HEAD and decides whether pushing or pulling is safe:

    Local dirty | Archive  | Remote base vs HEAD   | Push action
    ------------+----------+-----------------------+-------------------------
    any         | absent   | n/a                   | push (first sync)
    no          | present  | same commit           | nothing to do
    no          | present  | ancestor, ahead > 0   | push
    no          | present  | not in local history  | conflict, never resolved
    no          | dirty    | same commit           | nothing to do (pull fetches it)
    yes         | either   | any                   | push only after confirmation

An archive without a recorded base commit is treated like a conflict:
we cannot prove that overwriting it loses nothing. Conflicts are only
overridden by an explicit ``force``.

The engine talks to git and Jira through injected handles, so tests can
substitute either.
"""

from __future__ import annotations

import logging
import shutil
import tempfile
from collections.abc import Callable
from datetime import datetime
from pathlib import Path
from typing import Protocol

from openspec_sync.core import archive
from openspec_sync.core.exceptions import ArchiveError, AttachmentLostError, RepositoryError
from openspec_sync.core.jira.models import JiraAttachment
from openspec_sync.core.sync.models import (
    SyncAction,
    SyncDecision,
    SyncOutcome,
    SyncResult,
    SyncSnapshot,
    SyncState,
)
from openspec_sync.utils.git import AHEAD_UNKNOWN, GitRepository, LineageRelation

logger = logging.getLogger(__name__)

ConfirmCallback = Callable[[str], bool]


class AttachmentStore(Protocol):
    """The remote operations the engine needs (implemented by JiraClient)."""

    def find_canonical_attachment(self, ticket_id: str) -> JiraAttachment | None: ...

    def download(self, attachment: JiraAttachment, dest_path: Path) -> Path: ...

    def upload(
        self,
        ticket_id: str,
        file_path: Path,
        filename: str | None = None,
        *,
        backup_path: Path | None = None,
    ) -> JiraAttachment | None: ...


def _lineage_state(snapshot: SyncSnapshot) -> tuple[SyncState, str]:
    """Classify a snapshot that has a remote archive and a local folder."""
    base = snapshot.remote_base
    if base is None:
        return SyncState.UNKNOWN_BASE, "remote archive does not record the commit it was built from"

    short = base[:8]
    lineage = snapshot.lineage
    in_sync = f"remote archive was built from HEAD ({short})"
    if snapshot.remote_dirty:
        in_sync += " and contains uncommitted changes"
    if lineage is LineageRelation.SAME:
        return SyncState.IN_SYNC, in_sync
    if lineage is LineageRelation.ANCESTOR:
        if snapshot.ahead > 0:
            return (
                SyncState.LOCAL_AHEAD,
                f"local is {snapshot.ahead} commit(s) ahead of the remote base ({short})",
            )
        if snapshot.ahead == 0:
            return SyncState.IN_SYNC, in_sync
        return SyncState.UNDETERMINED, f"could not count commits since {short}"
    if lineage is LineageRelation.NOT_FOUND:
        return (
            SyncState.DIVERGED,
            f"remote base {short} is not in the local history (other branch or rewritten)",
        )
    return SyncState.UNDETERMINED, f"could not compare remote base {short} with HEAD"


def classify_push(snapshot: SyncSnapshot, force: bool = False) -> SyncDecision:
    """
    Decide whether uploading the local folder is safe.

    Args:
        snapshot: Observed local and remote state
        force: Overwrite the remote archive even on a conflict

    Returns:
        The decision. ``needs_confirmation`` is set whenever a push would
        upload uncommitted changes.
    """
    if not snapshot.attachment_present:
        state, action, reason = SyncState.NO_REMOTE, SyncAction.PUSH, "no archive on the ticket yet"
    else:
        state, reason = _lineage_state(snapshot)
        if state is SyncState.LOCAL_AHEAD:
            action = SyncAction.PUSH
        elif state is SyncState.IN_SYNC:
            # Same commit, but uncommitted edits still differ from the archive
            action = SyncAction.PUSH if snapshot.dirty else SyncAction.NONE
        else:
            action = SyncAction.CONFLICT

    forced = False
    if action is SyncAction.CONFLICT and force:
        action, forced = SyncAction.PUSH, True

    return SyncDecision(
        state=state,
        action=action,
        needs_confirmation=snapshot.dirty and action is SyncAction.PUSH,
        forced=forced,
        reason=reason,
    )


def classify_pull(snapshot: SyncSnapshot, force: bool = False) -> SyncDecision:
    """
    Decide whether replacing the local folder with the remote archive is safe.

    Pulling over a folder that is ahead of, or unrelated to, the remote
    base would discard local work, so those cases are conflicts. An
    archive built from HEAD is still pulled when it was packed with
    uncommitted changes, since those edits exist nowhere in git.
    """
    if not snapshot.attachment_present:
        return SyncDecision(
            state=SyncState.NO_REMOTE,
            action=SyncAction.NONE,
            reason="no archive on the ticket",
        )

    if not snapshot.local_exists:
        return SyncDecision(
            state=SyncState.NO_LOCAL,
            action=SyncAction.PULL,
            reason="no local spec folder yet",
        )

    state, reason = _lineage_state(snapshot)
    if state is SyncState.IN_SYNC:
        action = SyncAction.PULL if snapshot.remote_dirty else SyncAction.NONE
    else:
        # Local ahead, diverged, unknown: pulling could clobber newer local work
        action = SyncAction.CONFLICT

    forced = False
    if force and action is not SyncAction.PULL:
        action, forced = SyncAction.PULL, True

    return SyncDecision(
        state=state,
        action=action,
        needs_confirmation=snapshot.dirty and action is SyncAction.PULL,
        forced=forced,
        reason=reason,
    )


class SyncEngine:
    """
    Orchestrates status, push and pull for one ticket at a time.

    Example:
        >>> engine = SyncEngine(GitRepository(Path(".")), JiraClient.from_config(cfg))
        >>> result = engine.push("ABC-123", Path("openspec"))
        >>> result.outcome
        <SyncOutcome.PUSHED: 'pushed'>
    """

    def __init__(
        self,
        repo: GitRepository,
        store: AttachmentStore,
        confirm: ConfirmCallback | None = None,
    ) -> None:
        """
        Initialize the engine.

        Args:
            repo: Repository the spec folder lives in
            store: Remote attachment store
            confirm: Asked before acting on uncommitted changes; without
                one, such operations are aborted
        """
        self.repo = repo
        self.store = store
        self.confirm = confirm

    def _ask(self, question: str) -> bool:
        if self.confirm is None:
            logger.debug("No confirmation callback; declining: %s", question)
            return False
        return self.confirm(question)

    def inspect(self, ticket: str, spec_dir: Path, keep_archive: bool = False) -> SyncSnapshot:
        """
        Gather local and remote state without changing anything.

        Downloads the remote archive (if any) to read its manifest. With
        ``keep_archive`` the download is kept in ``snapshot.archive_path``
        and the caller owns its cleanup.
        """
        spec_dir = Path(spec_dir)
        snapshot = SyncSnapshot(ticket=ticket, spec_dir=spec_dir, local_exists=spec_dir.is_dir())

        try:
            snapshot.local_commit = self.repo.current_commit_full()
        except RepositoryError as e:
            logger.debug("No local commit: %s", e.stderr or e)

        if snapshot.local_exists:
            snapshot.dirty = self.repo.has_uncommitted_changes(spec_dir)

        snapshot.attachment = self.store.find_canonical_attachment(ticket)
        if snapshot.attachment is None:
            return snapshot

        archive_path = archive.temp_archive_path()
        try:
            self.store.download(snapshot.attachment, archive_path)
        except Exception:
            archive.cleanup_temp_file(archive_path)
            raise

        try:
            manifest = archive.read_manifest(archive_path)
        except ArchiveError as e:
            logger.warning("Remote %s is not a readable archive: %s", snapshot.attachment.filename, e)
            manifest = None

        if keep_archive:
            snapshot.archive_path = archive_path
        else:
            archive.cleanup_temp_file(archive_path)

        if manifest is not None:
            snapshot.remote_dirty = manifest.dirty
        if manifest is not None and manifest.base_commit:
            snapshot.remote_base = manifest.base_commit
            snapshot.lineage = self.repo.lineage(manifest.base_commit)
            if snapshot.lineage in (LineageRelation.SAME, LineageRelation.ANCESTOR):
                snapshot.ahead = self.repo.commits_ahead(manifest.base_commit)
            else:
                snapshot.ahead = AHEAD_UNKNOWN

        return snapshot

    def status(self, ticket: str, spec_dir: Path) -> SyncResult:
        """Report the push classification without mutating anything."""
        started = datetime.now()
        snapshot = self.inspect(ticket, spec_dir)
        decision = classify_push(snapshot)
        return SyncResult(
            operation="status",
            ticket=ticket,
            outcome=SyncOutcome.REPORTED,
            decision=decision,
            snapshot=snapshot,
            attachment=snapshot.attachment,
            message=decision.reason,
            started_at=started,
            completed_at=datetime.now(),
        )

    def push(self, ticket: str, spec_dir: Path, force: bool = False) -> SyncResult:
        """
        Upload the spec folder if that cannot overwrite newer remote work.

        Raises:
            ArchiveError: If the spec folder is missing or cannot be packed
            RemoteError: If Jira rejects a request before anything changed
        """
        started = datetime.now()
        spec_dir = Path(spec_dir)
        if not spec_dir.is_dir():
            raise ArchiveError(f"Spec folder not found: {spec_dir}", path=str(spec_dir))

        snapshot = self.inspect(ticket, spec_dir)
        decision = classify_push(snapshot, force=force)

        def result(outcome: SyncOutcome, message: str, **extra: object) -> SyncResult:
            return SyncResult(
                operation="push",
                ticket=ticket,
                outcome=outcome,
                decision=decision,
                snapshot=snapshot,
                message=message,
                started_at=started,
                completed_at=datetime.now(),
                **extra,
            )

        if decision.action is SyncAction.NONE:
            return result(SyncOutcome.UP_TO_DATE, decision.reason)
        if decision.action is SyncAction.CONFLICT:
            logger.warning("Refusing to push %s: %s", ticket, decision.reason)
            return result(SyncOutcome.CONFLICT, decision.reason)

        question = f"{spec_dir} has uncommitted changes. Push them to {ticket} anyway?"
        if snapshot.remote_dirty and decision.state is SyncState.IN_SYNC:
            question = (
                f"{spec_dir} has uncommitted changes and so does the archive on {ticket}. "
                "Replace the archive's changes with yours?"
            )
        if decision.needs_confirmation and not self._ask(question):
            return result(SyncOutcome.ABORTED, "uncommitted changes; push not confirmed")

        branch: str | None
        try:
            branch = self.repo.current_branch()
        except RepositoryError:
            branch = None

        manifest = archive.ArchiveManifest(
            base_commit=snapshot.local_commit,
            branch=branch,
            ticket=ticket,
            dirty=snapshot.dirty,
        )
        archive_path = archive.temp_archive_path()
        backup_path = archive.temp_archive_path() if snapshot.attachment_present else None

        try:
            archive.pack(spec_dir, archive_path, manifest)
            created = self.store.upload(ticket, archive_path, backup_path=backup_path)
        except AttachmentLostError as e:
            logger.error("Archive on %s was deleted but not replaced: %s", ticket, e)
            return result(
                SyncOutcome.ATTACHMENT_LOST,
                str(e),
                backup_path=Path(e.backup_path) if e.backup_path else None,
            )
        except Exception:
            if backup_path is not None:
                archive.cleanup_temp_file(backup_path)
            raise
        finally:
            archive.cleanup_temp_file(archive_path)

        if backup_path is not None:
            archive.cleanup_temp_file(backup_path)

        verb = "replaced" if snapshot.attachment_present else "created"
        message = f"{verb} archive ({decision.reason})"
        if decision.forced:
            message += " [forced]"
        return result(SyncOutcome.PUSHED, message, attachment=created)

    def pull(self, ticket: str, spec_dir: Path, force: bool = False) -> SyncResult:
        """
        Replace the local spec folder's files with the ticket's archive.

        Files that exist locally but not in the archive are left in place.

        Raises:
            ArchiveError: If the download is not a usable archive
            RemoteError: If Jira rejects a request
        """
        started = datetime.now()
        spec_dir = Path(spec_dir)
        snapshot = self.inspect(ticket, spec_dir, keep_archive=True)
        decision = classify_pull(snapshot, force=force)

        def result(outcome: SyncOutcome, message: str) -> SyncResult:
            return SyncResult(
                operation="pull",
                ticket=ticket,
                outcome=outcome,
                decision=decision,
                snapshot=snapshot,
                attachment=snapshot.attachment,
                message=message,
                started_at=started,
                completed_at=datetime.now(),
            )

        archive_path = snapshot.archive_path
        try:
            if decision.state is SyncState.NO_REMOTE:
                return result(SyncOutcome.NOTHING_TO_PULL, decision.reason)
            if decision.action is SyncAction.NONE:
                return result(SyncOutcome.UP_TO_DATE, decision.reason)
            if decision.action is SyncAction.CONFLICT:
                logger.warning("Refusing to pull %s: %s", ticket, decision.reason)
                return result(SyncOutcome.CONFLICT, decision.reason)
            if decision.needs_confirmation and not self._ask(
                f"{spec_dir} has uncommitted changes that the pull will overwrite. Continue?"
            ):
                return result(SyncOutcome.ABORTED, "uncommitted changes; pull not confirmed")

            if archive_path is None:
                raise ArchiveError(f"Archive for {ticket} was not downloaded")
            self._extract(archive_path, spec_dir)
        finally:
            if archive_path is not None:
                archive.cleanup_temp_file(archive_path)

        message = f"extracted into {spec_dir} ({decision.reason})"
        if decision.forced:
            message += " [forced]"
        return result(SyncOutcome.PULLED, message)

    def _extract(self, archive_path: Path, spec_dir: Path) -> None:
        """Unpack so the archive's root folder lands on ``spec_dir``."""
        root = archive.archive_root(archive_path)
        if root == spec_dir.name:
            archive.unpack(archive_path, spec_dir.parent)
            return

        if root is None:
            archive.unpack(archive_path, spec_dir)
            return

        # Archive was packed from a differently named folder
        logger.info("Archive root %r differs from %s; copying contents", root, spec_dir.name)
        with tempfile.TemporaryDirectory(prefix="openspec-") as temp_dir:
            archive.unpack(archive_path, Path(temp_dir))
            try:
                shutil.copytree(Path(temp_dir) / root, spec_dir, dirs_exist_ok=True)
            except OSError as e:
                raise ArchiveError(f"Failed to copy archive into {spec_dir}: {e}") from e


__all__ = [
    "AttachmentStore",
    "ConfirmCallback",
    "SyncEngine",
    "classify_pull",
    "classify_push",
]
