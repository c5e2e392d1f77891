"""
Data models for the sync engine.

Defines Pydantic models for what the engine observed, what it decided,
and what happened.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, Field

from openspec_sync.core.jira.models import JiraAttachment
from openspec_sync.utils.git import LineageRelation


class SyncState(str, Enum):
    """Where the local folder stands relative to the ticket's archive."""

    NO_REMOTE = "no_remote"
    NO_LOCAL = "no_local"
    IN_SYNC = "in_sync"
    LOCAL_AHEAD = "local_ahead"
    DIVERGED = "diverged"
    UNKNOWN_BASE = "unknown_base"
    UNDETERMINED = "undetermined"


class SyncAction(str, Enum):
    """What the engine will do about it."""

    PUSH = "push"
    PULL = "pull"
    NONE = "none"
    CONFLICT = "conflict"


class SyncOutcome(str, Enum):
    """What actually happened."""

    PUSHED = "pushed"
    PULLED = "pulled"
    UP_TO_DATE = "up_to_date"
    NOTHING_TO_PULL = "nothing_to_pull"
    CONFLICT = "conflict"
    ABORTED = "aborted"
    ATTACHMENT_LOST = "attachment_lost"
    REPORTED = "reported"


class SyncSnapshot(BaseModel):
    """
    Local and remote facts gathered before deciding.

    ``remote_base`` is the commit recorded in the remote archive's
    manifest; None when there is no archive or it carries no manifest.
    ``ahead`` is -1 whenever it cannot be determined.
    """

    ticket: str
    spec_dir: Path
    local_exists: bool = True
    local_commit: str | None = None
    dirty: bool = False
    attachment: JiraAttachment | None = None
    remote_base: str | None = None
    remote_dirty: bool = False
    lineage: LineageRelation | None = None
    ahead: int = -1
    archive_path: Path | None = Field(
        default=None,
        description="Downloaded copy of the remote archive, when kept for a pull",
    )

    @property
    def attachment_present(self) -> bool:
        return self.attachment is not None


class SyncDecision(BaseModel):
    """Classification of a snapshot and the action it calls for."""

    state: SyncState
    action: SyncAction
    needs_confirmation: bool = False
    forced: bool = False
    reason: str = ""


class SyncResult(BaseModel):
    """
    Result of a sync operation (push/pull/status).

    Provides detailed feedback about what happened during the sync.
    """

    operation: str = Field(description="Type of operation (push, pull, status)")
    ticket: str
    outcome: SyncOutcome
    decision: SyncDecision | None = None
    snapshot: SyncSnapshot | None = None
    attachment: JiraAttachment | None = Field(
        default=None,
        description="Attachment created by a push or read by a pull",
    )
    message: str = ""
    backup_path: Path | None = Field(
        default=None,
        description="Local copy of an archive deleted during a failed replace",
    )
    started_at: datetime | None = None
    completed_at: datetime | None = None

    @property
    def success(self) -> bool:
        """True unless the operation hit a conflict, was aborted or lost the archive."""
        return self.outcome not in (
            SyncOutcome.CONFLICT,
            SyncOutcome.ABORTED,
            SyncOutcome.ATTACHMENT_LOST,
        )

    @property
    def duration_seconds(self) -> float | None:
        """Calculate operation duration in seconds."""
        if self.started_at and self.completed_at:
            return (self.completed_at - self.started_at).total_seconds()
        return None
