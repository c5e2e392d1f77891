"""
Custom exceptions for openspec-sync.

This module defines a hierarchy of exceptions for the sync system,
providing structured error handling with context preservation.

Exception Hierarchy:
    OpenspecSyncError (base)
    ├── RepositoryError (git state could not be read)
    ├── ArchiveError (pack/unpack failures)
    ├── RemoteError (non-2xx responses from Jira)
    │   └── AttachmentLostError (old archive deleted, new one not uploaded)
    └── ConfigurationError (missing or incomplete credentials)
        └── InvalidConfigError (config file has values of the wrong type)

Example:
    >>> from openspec_sync.core.exceptions import RemoteError
    >>> try:
    ...     raise RemoteError("Failed to fetch issue", status=404, body="Not found")
    ... except RemoteError as e:
    ...     print(f"{e.status}: {e.body}")
    404: Not found
"""

from __future__ import annotations


class OpenspecSyncError(Exception):
    """
    Base exception for all openspec-sync errors.

    Attributes:
        message: Human-readable error message
        context: Optional dictionary of additional context
    """

    def __init__(self, message: str, **context: object) -> None:
        """
        Initialize an error with message and context.

        Args:
            message: Human-readable error message
            **context: Additional context as keyword arguments
        """
        super().__init__(message)
        self.message = message
        self.context = context

    def __str__(self) -> str:
        """Return string representation of the error."""
        return self.message


class RepositoryError(OpenspecSyncError):
    """
    Raised when local git state cannot be read.

    Covers "not a repository", unborn or detached HEAD, and revisions
    that fail to parse. The failing command and its stderr are kept
    for debugging.
    """

    def __init__(
        self,
        message: str,
        command: list[str] | None = None,
        stderr: str = "",
        returncode: int | None = None,
    ) -> None:
        super().__init__(message, command=command, stderr=stderr, returncode=returncode)
        self.command = command
        self.stderr = stderr
        self.returncode = returncode


class ArchiveError(OpenspecSyncError):
    """
    Raised when packing or unpacking a spec archive fails.

    The original exception (zipfile.BadZipFile, OSError, ...) is
    preserved via __cause__.
    """


class RemoteError(OpenspecSyncError):
    """
    Raised for any non-success response from the ticket tracker.

    The status code and response body are surfaced verbatim so the
    operator sees exactly what Jira said.

    Attributes:
        status: HTTP status code (None when no response was received)
        body: Raw response body text
    """

    def __init__(
        self,
        message: str,
        status: int | None = None,
        body: str = "",
        **context: object,
    ) -> None:
        super().__init__(message, status=status, body=body, **context)
        self.status = status
        self.body = body

    def __str__(self) -> str:
        """Return message with status and body when available."""
        if self.status is None:
            return self.message
        if self.body:
            return f"{self.message} ({self.status}): {self.body}"
        return f"{self.message} ({self.status})"


class AttachmentLostError(RemoteError):
    """
    Raised when a replace deleted the old archive but the upload failed.

    The ticket is left with no canonical attachment. This is reported
    separately from an ordinary upload failure because the remote state
    HAS changed and the operator must retry.

    Attributes:
        deleted_attachment_id: Id of the attachment that was removed
        backup_path: Local copy of the removed archive, if one was taken
    """

    def __init__(
        self,
        message: str,
        status: int | None = None,
        body: str = "",
        deleted_attachment_id: str | None = None,
        backup_path: str | None = None,
    ) -> None:
        super().__init__(
            message,
            status=status,
            body=body,
            deleted_attachment_id=deleted_attachment_id,
            backup_path=backup_path,
        )
        self.deleted_attachment_id = deleted_attachment_id
        self.backup_path = backup_path


class ConfigurationError(OpenspecSyncError):
    """Raised when Jira credentials are missing or incomplete."""


class InvalidConfigError(ConfigurationError):
    """
    Raised when the merged configuration fails validation.

    Attributes:
        problems: One "field: message" line per validation error
    """

    def __init__(self, message: str, problems: list[str] | None = None, **context: object) -> None:
        super().__init__(message, **context)
        self.problems = problems or []


__all__ = [
    "OpenspecSyncError",
    "RepositoryError",
    "ArchiveError",
    "RemoteError",
    "AttachmentLostError",
    "ConfigurationError",
    "InvalidConfigError",
]
