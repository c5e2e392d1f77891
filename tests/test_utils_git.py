"""Tests for openspec_sync.utils.git module."""

import subprocess
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from conftest import commit_file, git
from openspec_sync.core.exceptions import RepositoryError
from openspec_sync.utils.git import AHEAD_UNKNOWN, GitRepository, LineageRelation, Probe


@pytest.fixture
def repo(git_repo: Path) -> GitRepository:
    return GitRepository(git_repo)


class TestIdentity:
    """Tests for branch, root and commit lookups."""

    def test_is_repository(self, repo: GitRepository) -> None:
        assert repo.is_repository() is True

    def test_is_repository_false_outside_repo(self, tmp_path: Path) -> None:
        plain = tmp_path / "plain"
        plain.mkdir()
        assert GitRepository(plain).is_repository() is False

    def test_is_repository_false_for_missing_dir(self, tmp_path: Path) -> None:
        assert GitRepository(tmp_path / "does-not-exist").is_repository() is False

    def test_repository_root_from_subdirectory(self, git_repo: Path) -> None:
        repo = GitRepository(git_repo / "openspec")
        assert repo.repository_root().resolve() == git_repo.resolve()

    def test_repository_root_raises_outside_repo(self, tmp_path: Path) -> None:
        plain = tmp_path / "plain"
        plain.mkdir()
        with pytest.raises(RepositoryError):
            GitRepository(plain).repository_root()

    def test_current_branch(self, repo: GitRepository) -> None:
        assert repo.current_branch() == "feature/ABC-123-login"

    def test_current_branch_detached_raises(self, git_repo: Path, repo: GitRepository) -> None:
        git(git_repo, "checkout", "--detach", "HEAD")
        with pytest.raises(RepositoryError, match="detached"):
            repo.current_branch()

    def test_current_branch_unborn_raises(self, tmp_path: Path) -> None:
        empty = tmp_path / "empty"
        empty.mkdir()
        git(empty, "init")
        with pytest.raises(RepositoryError):
            GitRepository(empty).current_branch()

    def test_current_commit_short_and_full(self, git_repo: Path, repo: GitRepository) -> None:
        full = git(git_repo, "rev-parse", "HEAD")
        assert repo.current_commit_full() == full
        short = repo.current_commit()
        assert full.startswith(short)
        assert len(short) < len(full)

    def test_resolve_accepts_revision_syntax(self, git_repo: Path, repo: GitRepository) -> None:
        first = git(git_repo, "rev-parse", "HEAD")
        commit_file(git_repo, "openspec/next.md", "next\n")
        assert repo.resolve("HEAD~1") == first

    def test_resolve_unknown_raises(self, repo: GitRepository) -> None:
        with pytest.raises(RepositoryError):
            repo.resolve("0123456789abcdef0123456789abcdef01234567")


class TestAncestry:
    """Tests for is_ancestor, lineage and commits_ahead."""

    def test_head_is_its_own_ancestor(self, repo: GitRepository) -> None:
        assert repo.is_ancestor("HEAD") is True

    def test_parent_is_ancestor(self, git_repo: Path, repo: GitRepository) -> None:
        base = git(git_repo, "rev-parse", "HEAD")
        commit_file(git_repo, "openspec/a.md", "a\n")
        assert repo.is_ancestor(base) is True
        assert repo.is_ancestor(base[:7]) is True

    def test_descendant_is_not_ancestor(self, git_repo: Path, repo: GitRepository) -> None:
        commit_file(git_repo, "openspec/a.md", "a\n")
        tip = git(git_repo, "rev-parse", "HEAD")
        git(git_repo, "checkout", "HEAD~1")
        assert repo.is_ancestor(tip) is False

    def test_other_branch_commit_is_not_ancestor(self, git_repo: Path, repo: GitRepository) -> None:
        git(git_repo, "checkout", "-b", "other")
        other = commit_file(git_repo, "openspec/other.md", "other\n")
        git(git_repo, "checkout", "feature/ABC-123-login")
        commit_file(git_repo, "openspec/mine.md", "mine\n")

        assert repo.is_ancestor(other) is False
        assert repo.probe_ancestor(other) is Probe.FALSE

    def test_unknown_commit_is_not_ancestor(self, repo: GitRepository) -> None:
        assert repo.probe_ancestor("0123456789abcdef0123456789abcdef01234567") is Probe.FALSE

    def test_ancestor_indeterminate_outside_repo(self, tmp_path: Path) -> None:
        plain = tmp_path / "plain"
        plain.mkdir()
        repo = GitRepository(plain)
        assert repo.probe_ancestor("HEAD") is Probe.INDETERMINATE
        assert repo.is_ancestor("HEAD") is False

    def test_lineage(self, git_repo: Path, repo: GitRepository) -> None:
        base = git(git_repo, "rev-parse", "HEAD")
        assert repo.lineage(base) is LineageRelation.SAME

        commit_file(git_repo, "openspec/a.md", "a\n")
        assert repo.lineage(base) is LineageRelation.ANCESTOR
        assert repo.lineage("0123456789abcdef0123456789abcdef01234567") is LineageRelation.NOT_FOUND

    def test_lineage_error_outside_repo(self, tmp_path: Path) -> None:
        plain = tmp_path / "plain"
        plain.mkdir()
        assert GitRepository(plain).lineage("abc1234") is LineageRelation.ERROR

    def test_commits_ahead_zero_at_head(self, git_repo: Path, repo: GitRepository) -> None:
        assert repo.commits_ahead(git(git_repo, "rev-parse", "HEAD")) == 0

    def test_commits_ahead_counts_commits(self, git_repo: Path, repo: GitRepository) -> None:
        base = git(git_repo, "rev-parse", "HEAD")
        for i in range(3):
            commit_file(git_repo, f"openspec/change-{i}.md", f"{i}\n")
        assert repo.commits_ahead(base) == 3

    def test_commits_ahead_unknown_for_non_ancestor(self, git_repo: Path, repo: GitRepository) -> None:
        git(git_repo, "checkout", "-b", "other")
        other = commit_file(git_repo, "openspec/other.md", "other\n")
        git(git_repo, "checkout", "feature/ABC-123-login")

        assert repo.commits_ahead(other) == AHEAD_UNKNOWN

    def test_commits_ahead_unknown_when_count_fails(self, git_repo: Path, repo: GitRepository) -> None:
        base = git(git_repo, "rev-parse", "HEAD")
        with patch.object(repo, "is_ancestor", return_value=True), patch.object(
            repo, "_run_git", side_effect=RepositoryError("boom")
        ):
            assert repo.commits_ahead(base) == AHEAD_UNKNOWN


class TestUncommittedChanges:
    """Tests for has_uncommitted_changes."""

    def test_clean_tree(self, repo: GitRepository) -> None:
        assert repo.has_uncommitted_changes() is False

    def test_modified_file(self, git_repo: Path, repo: GitRepository) -> None:
        (git_repo / "openspec" / "spec.md").write_text("changed\n")
        assert repo.has_uncommitted_changes() is True

    def test_untracked_file_counts(self, git_repo: Path, repo: GitRepository) -> None:
        (git_repo / "openspec" / "new.md").write_text("new\n")
        assert repo.has_uncommitted_changes(git_repo / "openspec") is True

    def test_scoped_to_path(self, git_repo: Path, repo: GitRepository) -> None:
        (git_repo / "README.md").write_text("project readme\n")
        assert repo.has_uncommitted_changes() is True
        assert repo.has_uncommitted_changes(git_repo / "openspec") is False

    def test_failure_collapses_to_false(self, tmp_path: Path) -> None:
        plain = tmp_path / "plain"
        plain.mkdir()
        repo = GitRepository(plain)
        assert repo.probe_uncommitted_changes() is Probe.INDETERMINATE
        assert repo.has_uncommitted_changes() is False


class TestRunGit:
    """Tests for the _run_git helper."""

    @patch("openspec_sync.utils.git.subprocess.run")
    def test_git_not_installed(self, mock_run: MagicMock, tmp_path: Path) -> None:
        mock_run.side_effect = FileNotFoundError("git")
        with pytest.raises(RepositoryError, match="git not found"):
            GitRepository(tmp_path)._run_git(["status"])

    @patch("openspec_sync.utils.git.subprocess.run")
    def test_timeout(self, mock_run: MagicMock, tmp_path: Path) -> None:
        mock_run.side_effect = subprocess.TimeoutExpired("git", 60)
        with pytest.raises(RepositoryError, match="timed out"):
            GitRepository(tmp_path)._run_git(["status"])

    @patch("openspec_sync.utils.git.subprocess.run")
    def test_failure_keeps_stderr_and_returncode(self, mock_run: MagicMock, tmp_path: Path) -> None:
        mock_run.return_value = MagicMock(returncode=128, stdout="", stderr="fatal: bad revision\n")
        with pytest.raises(RepositoryError) as exc_info:
            GitRepository(tmp_path)._run_git(["rev-parse", "nope"])
        assert exc_info.value.stderr == "fatal: bad revision"
        assert exc_info.value.returncode == 128
        assert exc_info.value.command == ["git", "rev-parse", "nope"]
