"""
openspec-sync - keep an openspec folder in sync with its Jira ticket.

Packs the local spec folder into a zip archive and attaches it to the
ticket, or pulls the attached archive back down, refusing to clobber
newer or divergent work on either side.
"""

__version__ = "0.3.0"

# Re-export core models for convenience
from openspec_sync.core.config.models import AppConfig, JiraConfig
from openspec_sync.core.sync.models import SyncAction, SyncState

__all__ = ["AppConfig", "JiraConfig", "SyncAction", "SyncState", "__version__"]
