"""
Spec folder synchronization between a git working copy and a Jira ticket.

The engine compares the commit recorded in the ticket's archive with the
local HEAD, classifies the situation, and only pushes or pulls when that
cannot silently discard newer work on the other side.

Example:
    >>> from openspec_sync.core.sync import SyncEngine
    >>> engine = SyncEngine(GitRepository(Path(".")), client)
    >>> result = engine.status("ABC-123", Path("openspec"))
    >>> result.decision.state
    <SyncState.LOCAL_AHEAD: 'local_ahead'>
"""

from openspec_sync.core.sync.engine import (
    AttachmentStore,
    ConfirmCallback,
    SyncEngine,
    classify_pull,
    classify_push,
)
from openspec_sync.core.sync.models import (
    SyncAction,
    SyncDecision,
    SyncOutcome,
    SyncResult,
    SyncSnapshot,
    SyncState,
)

__all__ = [
    "AttachmentStore",
    "ConfirmCallback",
    "SyncAction",
    "SyncDecision",
    "SyncEngine",
    "SyncOutcome",
    "SyncResult",
    "SyncSnapshot",
    "SyncState",
    "classify_pull",
    "classify_push",
]
