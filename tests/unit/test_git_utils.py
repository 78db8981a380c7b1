"""Tests for git helper functions."""

from __future__ import annotations

import subprocess
from pathlib import Path
from unittest.mock import patch

import pytest

from leakscope.utils.git import (
    GitError,
    count_commits,
    get_git_root,
    RANGE_COMMIT_MARKER,
    get_range_patches,
    get_staged_files,
    get_unstaged_files,
    is_git_repo,
    resolve_commit,
    run_git,
)
from tests.helpers import commit_file, git


class TestRunGit:
    """Tests for run_git."""

    def test_failure_carries_stderr(self, git_repo: Path):
        with pytest.raises(GitError) as exc_info:
            run_git(["rev-parse", "--verify", "no-such-ref"], git_repo)
        assert "rev-parse failed" in str(exc_info.value)

    def test_git_missing(self, tmp_path: Path):
        with patch("leakscope.utils.git.subprocess.run", side_effect=FileNotFoundError):
            with pytest.raises(GitError, match="not found"):
                run_git(["status"], tmp_path)

    def test_timeout(self, tmp_path: Path):
        with patch(
            "leakscope.utils.git.subprocess.run",
            side_effect=subprocess.TimeoutExpired(["git"], 60),
        ):
            with pytest.raises(GitError, match="timed out"):
                run_git(["log"], tmp_path)

    def test_extra_env_layered(self, tmp_path: Path):
        completed = subprocess.CompletedProcess(["git"], 0, stdout="ok", stderr="")
        with patch("leakscope.utils.git.subprocess.run", return_value=completed) as run:
            run_git(["status"], tmp_path, env={"GIT_AUTHOR_NAME": "x"})
        env = run.call_args.kwargs["env"]
        assert env["GIT_AUTHOR_NAME"] == "x"
        assert "PATH" in env


class TestRepositoryDetection:
    """Tests for is_git_repo and get_git_root."""

    def test_inside_repo(self, git_repo: Path):
        sub = git_repo / "src"
        sub.mkdir()
        assert is_git_repo(sub)
        assert get_git_root(sub).resolve() == git_repo.resolve()

    def test_file_path(self, git_repo: Path):
        assert get_git_root(git_repo / "README.md").resolve() == git_repo.resolve()

    def test_outside_repo(self, tmp_path: Path):
        outside = tmp_path / "plain"
        outside.mkdir()
        with patch("leakscope.utils.git.subprocess.run") as run:
            run.return_value = subprocess.CompletedProcess(["git"], 128, stdout="", stderr="fatal")
            assert is_git_repo(outside) is False
            assert get_git_root(outside) is None


class TestFileListing:
    """Tests for staged and unstaged file listing."""

    def test_staged_files(self, git_repo: Path):
        (git_repo / "new file.py").write_text("x\n")
        (git_repo / "README.md").write_text("changed\n")
        git(git_repo, "add", "new file.py", "README.md")
        assert sorted(get_staged_files(git_repo)) == ["README.md", "new file.py"]

    def test_staged_excludes_deletions(self, git_repo: Path):
        git(git_repo, "rm", "-q", "README.md")
        assert get_staged_files(git_repo) == []

    def test_unstaged_and_untracked(self, git_repo: Path):
        (git_repo / "README.md").write_text("changed\n")
        (git_repo / "untracked.txt").write_text("u\n")
        assert get_unstaged_files(git_repo) == ["README.md", "untracked.txt"]
        assert get_unstaged_files(git_repo, include_untracked=False) == ["README.md"]

    def test_unstaged_ignores_staged_only_changes(self, git_repo: Path):
        (git_repo / "README.md").write_text("changed\n")
        git(git_repo, "add", "README.md")
        assert get_unstaged_files(git_repo) == []


class TestCommitRange:
    """Tests for commit range helpers."""

    def test_resolve_and_count(self, git_repo: Path):
        base = resolve_commit(git_repo, "HEAD")
        commit_file(git_repo, "a.txt", "a\n")
        head = commit_file(git_repo, "b.txt", "b\n")
        assert resolve_commit(git_repo, "HEAD") == head
        assert count_commits(git_repo, base, head) == 2
        assert count_commits(git_repo, head, head) == 0

    def test_resolve_unknown_ref(self, git_repo: Path):
        with pytest.raises(GitError):
            resolve_commit(git_repo, "missing-branch")

    def test_range_patches_exclude_base_only_commits(self, git_repo: Path):
        """Commits made only on base are not part of the range."""
        git(git_repo, "checkout", "-q", "-b", "feature")
        feature = commit_file(git_repo, "feature.txt", "feature\n")
        git(git_repo, "checkout", "-q", "-")
        commit_file(git_repo, "main.txt", "main only\n")

        log = get_range_patches(git_repo, git(git_repo, "rev-parse", "HEAD").strip(), "feature")

        assert f"{RANGE_COMMIT_MARKER}{feature}" in log
        assert "+++ b/feature.txt" in log
        assert "main.txt" not in log

    def test_range_patches_one_block_per_commit(self, git_repo: Path):
        base = resolve_commit(git_repo, "HEAD")
        first = commit_file(git_repo, "a.txt", "a\n")
        second = commit_file(git_repo, "a.txt", "a\nb\n")

        log = get_range_patches(git_repo, base, second)

        markers = [line for line in log.splitlines() if line.startswith(RANGE_COMMIT_MARKER)]
        assert markers == [f"{RANGE_COMMIT_MARKER}{second}", f"{RANGE_COMMIT_MARKER}{first}"]
        assert "@@ -1,0 +2 @@" in log
