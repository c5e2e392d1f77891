"""
Jira data models for openspec-sync.

Defines Pydantic models for issues and attachments as returned by the
Jira Cloud REST API v3.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


class JiraAttachment(BaseModel):
    """
    A file attached to a Jira issue.

    Example:
        >>> JiraAttachment.from_api({
        ...     "id": "10001",
        ...     "filename": "openspec.zip",
        ...     "created": "2026-03-02T10:15:00.000+0000",
        ...     "size": 2048,
        ...     "content": "https://acme.atlassian.net/rest/api/3/attachment/content/10001",
        ... })
    """

    id: str = Field(..., description="Attachment id")
    filename: str = Field(..., description="File name as uploaded")
    created: datetime = Field(..., description="Creation timestamp")
    size: int = Field(default=0, ge=0, description="Size in bytes")
    content: str = Field(default="", description="Download URL")

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> JiraAttachment:
        """Create from a Jira API attachment object."""
        return cls(
            id=str(data["id"]),
            filename=data.get("filename", ""),
            created=_parse_jira_datetime(data["created"]),
            size=data.get("size", 0),
            content=data.get("content", ""),
        )


class JiraIssue(BaseModel):
    """A Jira issue with the fields openspec-sync asks for."""

    key: str = Field(..., description="Issue key, e.g. ABC-123")
    summary: str = Field(default="", description="Issue title")
    attachments: list[JiraAttachment] = Field(default_factory=list)

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> JiraIssue:
        """Create from a ``GET /issue/{key}`` response."""
        fields = data.get("fields") or {}
        return cls(
            key=data["key"],
            summary=fields.get("summary") or "",
            attachments=[JiraAttachment.from_api(a) for a in fields.get("attachment") or []],
        )


def _parse_jira_datetime(value: str) -> datetime:
    """
    Parse a Jira timestamp.

    Jira writes offsets without a colon (``+0000``), which older
    ``fromisoformat`` implementations reject.
    """
    if len(value) >= 5 and value[-5] in "+-" and value[-4:].isdigit():
        value = f"{value[:-2]}:{value[-2:]}"
    elif value.endswith("Z"):
        value = value[:-1] + "+00:00"
    return datetime.fromisoformat(value)
