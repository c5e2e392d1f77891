"""
Jira Cloud client for spec archive attachments.

Wraps the few REST API v3 endpoints openspec-sync needs: fetch an issue
with its attachments, download an attachment, upload one, delete one.

A ticket carries at most one canonical spec archive, identified by a
reserved filename. Jira does not enforce that, so ``upload`` deletes the
current archive before posting the new one. If the post then fails the
ticket has no archive at all; that case raises ``AttachmentLostError``
so it is never mistaken for "nothing changed".
"""

from __future__ import annotations

import base64
import logging
from collections.abc import Iterable
from pathlib import Path
from typing import Any

import httpx

from openspec_sync.core.config.models import DEFAULT_ATTACHMENT_NAME, JiraConfig
from openspec_sync.core.exceptions import (
    ArchiveError,
    AttachmentLostError,
    ConfigurationError,
    RemoteError,
)
from openspec_sync.core.jira.http import DEFAULT_TIMEOUT, RetryPolicy, with_retry
from openspec_sync.core.jira.models import JiraAttachment, JiraIssue

logger = logging.getLogger(__name__)


def select_canonical(
    attachments: Iterable[JiraAttachment],
    filename: str = DEFAULT_ATTACHMENT_NAME,
) -> JiraAttachment | None:
    """
    Pick the canonical archive from a ticket's attachments.

    Only attachments named ``filename`` are considered; the newest by
    creation time wins. The sort is stable, so among equally new
    candidates the one listed first wins, every time.

    Returns:
        The canonical attachment, or None if there are no candidates.
    """
    candidates = [a for a in attachments if a.filename == filename]
    if not candidates:
        return None
    return sorted(candidates, key=lambda a: a.created, reverse=True)[0]


def _remote_error(message: str, error: httpx.HTTPError) -> RemoteError:
    """Convert an httpx error into a RemoteError carrying status and body."""
    if isinstance(error, httpx.HTTPStatusError):
        response = error.response
        try:
            body = response.text
        except httpx.ResponseNotRead:
            body = ""
        return RemoteError(message, status=response.status_code, body=body, url=str(response.url))
    return RemoteError(f"{message}: {error}")


class JiraClient:
    """
    Client for the Jira attachment operations openspec-sync performs.

    Example:
        >>> client = JiraClient.from_config(get_jira_config())
        >>> attachment = client.find_canonical_attachment("ABC-123")
        >>> if attachment:
        ...     client.download(attachment, Path("/tmp/openspec.zip"))
    """

    def __init__(
        self,
        config: JiraConfig,
        *,
        http_client: httpx.Client | None = None,
        attachment_name: str = DEFAULT_ATTACHMENT_NAME,
        max_retries: int = 3,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        """
        Initialize JiraClient.

        Args:
            config: Complete Jira credentials
            http_client: Optional preconfigured httpx client (used by tests)
            attachment_name: Reserved filename of the canonical archive
            max_retries: Retries for idempotent GET requests
            timeout: Request timeout in seconds
        """
        if not config.is_complete:
            raise ConfigurationError("Jira host, email and API token are all required")

        self.config = config
        self.attachment_name = attachment_name
        self.base_url = f"https://{config.host}/rest/api/3"

        token = base64.b64encode(f"{config.email}:{config.api_token}".encode()).decode()
        self._headers = {
            "Authorization": f"Basic {token}",
            "Accept": "application/json",
        }
        self._http = http_client or httpx.Client(timeout=timeout, follow_redirects=True)

        retry = with_retry(RetryPolicy(max_retries=max_retries))
        self._get_with_retry = retry(self._get)
        self._download_with_retry = retry(self._download)

    @classmethod
    def from_config(cls, config: JiraConfig | None, **kwargs: Any) -> JiraClient:
        """
        Create a client, refusing incomplete credentials.

        Raises:
            ConfigurationError: If config is missing or incomplete
        """
        if config is None or not config.is_complete:
            raise ConfigurationError("Jira is not configured")
        return cls(config, **kwargs)

    def close(self) -> None:
        """Close the underlying HTTP connection pool."""
        self._http.close()

    def __enter__(self) -> JiraClient:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _url(self, endpoint: str) -> str:
        return endpoint if endpoint.startswith("http") else f"{self.base_url}{endpoint}"

    def _get(self, endpoint: str, params: dict[str, str] | None = None) -> httpx.Response:
        response = self._http.get(self._url(endpoint), params=params, headers=self._headers)
        response.raise_for_status()
        return response

    def _download(self, url: str, dest_path: Path) -> int:
        headers = {"Authorization": self._headers["Authorization"]}
        written = 0
        with self._http.stream("GET", url, headers=headers) as response:
            if response.is_error:
                response.read()
                response.raise_for_status()
            with dest_path.open("wb") as f:
                for chunk in response.iter_bytes():
                    f.write(chunk)
                    written += len(chunk)
        return written

    # ------------------------------------------------------------------
    # Issues
    # ------------------------------------------------------------------

    def fetch_issue(self, ticket_id: str) -> JiraIssue:
        """
        Fetch an issue with its summary and attachment list.

        Raises:
            RemoteError: On any non-success response
        """
        try:
            response = self._get_with_retry(
                f"/issue/{ticket_id}", params={"fields": "summary,attachment"}
            )
        except httpx.HTTPError as e:
            raise _remote_error(f"Failed to fetch issue {ticket_id}", e) from e

        try:
            return JiraIssue.from_api(response.json())
        except (ValueError, KeyError) as e:
            raise RemoteError(
                f"Unexpected response for issue {ticket_id}",
                status=response.status_code,
                body=response.text,
            ) from e

    def ticket_exists(self, ticket_id: str) -> bool:
        """Check whether a ticket exists and is visible with these credentials."""
        try:
            self.fetch_issue(ticket_id)
            return True
        except RemoteError as e:
            logger.debug("ticket_exists(%s) collapsed to False: %s", ticket_id, e)
            return False

    # ------------------------------------------------------------------
    # Attachments
    # ------------------------------------------------------------------

    def find_canonical_attachment(self, ticket_id: str) -> JiraAttachment | None:
        """Find the newest spec archive on a ticket."""
        issue = self.fetch_issue(ticket_id)
        return select_canonical(issue.attachments, self.attachment_name)

    def download(self, attachment: JiraAttachment, dest_path: Path) -> Path:
        """
        Stream an attachment's content to a local file.

        Raises:
            RemoteError: On any non-success response
        """
        dest_path = Path(dest_path)
        try:
            written = self._download_with_retry(attachment.content, dest_path)
        except httpx.HTTPError as e:
            raise _remote_error(f"Failed to download attachment {attachment.id}", e) from e

        logger.debug("Downloaded attachment %s (%d bytes) to %s", attachment.id, written, dest_path)
        return dest_path

    def delete(self, attachment_id: str) -> None:
        """
        Delete an attachment by id.

        Raises:
            RemoteError: On any non-success response
        """
        try:
            response = self._http.delete(
                self._url(f"/attachment/{attachment_id}"), headers=self._headers
            )
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise _remote_error(f"Failed to delete attachment {attachment_id}", e) from e

        logger.info("Deleted attachment %s", attachment_id)

    def _post_attachment(self, ticket_id: str, file_path: Path, filename: str) -> JiraAttachment | None:
        headers = {**self._headers, "X-Atlassian-Token": "no-check"}
        try:
            with file_path.open("rb") as f:
                response = self._http.post(
                    self._url(f"/issue/{ticket_id}/attachments"),
                    headers=headers,
                    files={"file": (filename, f, "application/zip")},
                )
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise _remote_error(f"Failed to upload attachment to {ticket_id}", e) from e

        try:
            data = response.json()
        except ValueError:
            return None
        if isinstance(data, list) and data:
            return JiraAttachment.from_api(data[0])
        return None

    def upload(
        self,
        ticket_id: str,
        file_path: Path,
        filename: str | None = None,
        *,
        backup_path: Path | None = None,
    ) -> JiraAttachment | None:
        """
        Replace the ticket's canonical archive with ``file_path``.

        Deletes the current canonical archive (if any), then uploads the
        new file. The two steps are sequential so the ticket never shows
        two archives; between them it shows none.

        Args:
            ticket_id: Ticket to attach to
            file_path: Archive to upload
            filename: Name to upload under (defaults to the reserved name)
            backup_path: If set, the current archive is downloaded here
                before it is deleted

        Returns:
            The created attachment, when Jira reports it

        Raises:
            RemoteError: If any step fails before the old archive is deleted
            AttachmentLostError: If the old archive was deleted but the
                upload failed
        """
        filename = filename or self.attachment_name
        file_path = Path(file_path)
        if not file_path.is_file():
            raise ArchiveError(f"Archive to upload not found: {file_path}", path=str(file_path))

        existing = self.find_canonical_attachment(ticket_id)
        deleted_id: str | None = None

        if existing is not None:
            if backup_path is not None:
                self.download(existing, backup_path)
            try:
                self.delete(existing.id)
            except RemoteError as e:
                if e.status != 404:
                    raise
                logger.debug("Attachment %s was already gone", existing.id)
            deleted_id = existing.id

        try:
            created = self._post_attachment(ticket_id, file_path, filename)
        except RemoteError as e:
            if deleted_id is None:
                raise
            raise AttachmentLostError(
                f"Deleted the previous {filename} from {ticket_id} but the upload failed",
                status=e.status,
                body=e.body,
                deleted_attachment_id=deleted_id,
                backup_path=str(backup_path) if backup_path is not None else None,
            ) from e

        logger.info("Uploaded %s to %s", filename, ticket_id)
        return created


__all__ = ["JiraClient", "select_canonical"]
