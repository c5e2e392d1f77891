"""
Pytest configuration and shared fixtures.

Provides fixtures for throwaway git repositories, an isolated config
home, and an in-memory Jira served through httpx.MockTransport.
"""

import json
import re
import subprocess
from datetime import datetime, timedelta, timezone
from pathlib import Path

import httpx
import pytest

from openspec_sync.core.config import JiraConfig, clear_cache
from openspec_sync.core.jira import JiraClient

JIRA_HOST = "acme.atlassian.net"
API_ROOT = f"https://{JIRA_HOST}/rest/api/3"

# ==============================================================================
# Git helpers
# ==============================================================================


def git(repo: Path, *args: str) -> str:
    """Run a git command in repo and return stdout."""
    result = subprocess.run(
        ["git", *args],
        cwd=repo,
        capture_output=True,
        text=True,
        check=True,
    )
    return result.stdout.strip()


def commit_file(repo: Path, relpath: str, content: str, message: str | None = None) -> str:
    """Write a file, commit it, and return the new HEAD sha."""
    path = repo / relpath
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content)
    git(repo, "add", relpath)
    git(repo, "commit", "-m", message or f"Update {relpath}")
    return git(repo, "rev-parse", "HEAD")


@pytest.fixture
def git_repo(tmp_path: Path) -> Path:
    """
    Create a git repository on branch feature/ABC-123-login.

    Contains one commit with openspec/spec.md.
    """
    repo = tmp_path / "project"
    repo.mkdir()

    git(repo, "init")
    git(repo, "config", "user.email", "test@example.com")
    git(repo, "config", "user.name", "Test User")
    git(repo, "config", "commit.gpgsign", "false")
    git(repo, "checkout", "-b", "feature/ABC-123-login")

    commit_file(repo, "openspec/spec.md", "# Login spec\n", "Initial spec")
    return repo


@pytest.fixture
def spec_dir(git_repo: Path) -> Path:
    """The openspec folder inside git_repo."""
    return git_repo / "openspec"


# ==============================================================================
# Config isolation
# ==============================================================================


@pytest.fixture(autouse=True)
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point XDG_CONFIG_HOME at a temp dir and drop OPENSPEC_SYNC_* env vars."""
    config_home = tmp_path / "xdg-config"
    config_home.mkdir()
    monkeypatch.setenv("XDG_CONFIG_HOME", str(config_home))
    for name in (
        "OPENSPEC_SYNC_JIRA_HOST",
        "OPENSPEC_SYNC_JIRA_EMAIL",
        "OPENSPEC_SYNC_JIRA_API_TOKEN",
        "OPENSPEC_SYNC_SPEC_DIR",
    ):
        monkeypatch.delenv(name, raising=False)
    clear_cache()
    yield config_home
    clear_cache()


@pytest.fixture
def jira_config() -> JiraConfig:
    """Complete Jira credentials for tests."""
    return JiraConfig(host=JIRA_HOST, email="dev@acme.com", api_token="secret-token")


# ==============================================================================
# Fake Jira
# ==============================================================================


def _parse_multipart(request: httpx.Request) -> tuple[str, bytes]:
    """Extract (filename, content) of the 'file' part of a multipart body."""
    content_type = request.headers["content-type"]
    boundary = content_type.split("boundary=", 1)[1].encode()
    body = request.read()
    for part in body.split(b"--" + boundary):
        if b'name="file"' not in part:
            continue
        head, _, data = part.partition(b"\r\n\r\n")
        match = re.search(rb'filename="([^"]*)"', head)
        filename = match.group(1).decode() if match else ""
        return filename, data[: -len(b"\r\n")] if data.endswith(b"\r\n") else data
    raise AssertionError("multipart body has no 'file' part")


class FakeJira:
    """
    In-memory Jira that serves the endpoints JiraClient uses.

    Attributes:
        issues: Issue key -> list of attachment ids
        blobs: Attachment id -> (metadata dict, content bytes)
        requests: Every request seen, in order
        fail_uploads: Status code to return for attachment POSTs (None = succeed)
    """

    def __init__(self) -> None:
        self.issues: dict[str, list[str]] = {}
        self.blobs: dict[str, tuple[dict, bytes]] = {}
        self.requests: list[httpx.Request] = []
        self.fail_uploads: int | None = None
        self._next_id = 10000
        self._clock = datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc)

    def add_issue(self, key: str) -> None:
        self.issues.setdefault(key, [])

    def add_attachment(
        self,
        key: str,
        content: bytes,
        filename: str = "openspec.zip",
        created: datetime | None = None,
    ) -> str:
        """Attach content to an issue directly, bypassing the API."""
        self._next_id += 1
        attachment_id = str(self._next_id)
        if created is None:
            self._clock += timedelta(minutes=1)
            created = self._clock
        meta = {
            "id": attachment_id,
            "filename": filename,
            "created": created.strftime("%Y-%m-%dT%H:%M:%S.000+0000"),
            "size": len(content),
            "content": f"{API_ROOT}/attachment/content/{attachment_id}",
        }
        self.blobs[attachment_id] = (meta, content)
        self.issues.setdefault(key, []).append(attachment_id)
        return attachment_id

    def attachments(self, key: str) -> list[dict]:
        return [self.blobs[i][0] for i in self.issues.get(key, [])]

    def mutations(self) -> list[tuple[str, str]]:
        """(method, path) of every DELETE and POST seen."""
        return [
            (r.method, r.url.path) for r in self.requests if r.method in ("DELETE", "POST")
        ]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        if not request.headers.get("authorization", "").startswith("Basic "):
            return httpx.Response(401, text="Unauthorized")

        if match := re.fullmatch(r"/rest/api/3/issue/([A-Z]+-\d+)", path):
            key = match.group(1)
            if request.method == "GET" and key in self.issues:
                return httpx.Response(
                    200,
                    json={
                        "key": key,
                        "fields": {"summary": f"Ticket {key}", "attachment": self.attachments(key)},
                    },
                )
            return httpx.Response(
                404, json={"errorMessages": ["Issue does not exist or you do not have permission to see it."]}
            )

        if match := re.fullmatch(r"/rest/api/3/attachment/content/(\d+)", path):
            blob = self.blobs.get(match.group(1))
            if blob is None:
                return httpx.Response(404, text="Attachment not found")
            return httpx.Response(200, content=blob[1])

        if match := re.fullmatch(r"/rest/api/3/attachment/(\d+)", path):
            attachment_id = match.group(1)
            if request.method == "DELETE" and attachment_id in self.blobs:
                del self.blobs[attachment_id]
                for ids in self.issues.values():
                    if attachment_id in ids:
                        ids.remove(attachment_id)
                return httpx.Response(204)
            return httpx.Response(404, text="Attachment not found")

        if match := re.fullmatch(r"/rest/api/3/issue/([A-Z]+-\d+)/attachments", path):
            key = match.group(1)
            if request.headers.get("x-atlassian-token") != "no-check":
                return httpx.Response(403, text="XSRF check failed")
            if self.fail_uploads is not None:
                return httpx.Response(self.fail_uploads, text="Upload rejected")
            if key not in self.issues:
                return httpx.Response(404, text="Issue not found")
            filename, content = _parse_multipart(request)
            attachment_id = self.add_attachment(key, content, filename)
            return httpx.Response(200, json=[self.blobs[attachment_id][0]])

        return httpx.Response(404, text=f"No route for {request.method} {path}")


@pytest.fixture
def fake_jira() -> FakeJira:
    """Fake Jira with one issue, ABC-123, and no attachments."""
    server = FakeJira()
    server.add_issue("ABC-123")
    return server


@pytest.fixture
def jira_client(fake_jira: FakeJira, jira_config: JiraConfig) -> JiraClient:
    """JiraClient wired to fake_jira, with retries disabled."""
    http_client = httpx.Client(transport=httpx.MockTransport(fake_jira.handler))
    client = JiraClient(jira_config, http_client=http_client, max_retries=0)
    yield client
    client.close()


def write_config_file(config_home: Path, data: dict) -> Path:
    """Write a user config file under an XDG config home."""
    path = config_home / "openspec-sync" / "config.json"
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data))
    return path
