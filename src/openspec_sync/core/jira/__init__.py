"""
Jira integration for openspec-sync.

Provides the attachment store the sync engine pushes to and pulls from.
"""

from openspec_sync.core.jira.client import JiraClient, select_canonical
from openspec_sync.core.jira.models import JiraAttachment, JiraIssue

__all__ = [
    "JiraAttachment",
    "JiraClient",
    "JiraIssue",
    "select_canonical",
]
