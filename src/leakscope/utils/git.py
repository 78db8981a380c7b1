"""Git utilities for leakscope.

Thin wrappers over git plumbing used to work out what a scan should look at.
None of these helpers move refs or touch the working tree.
"""

from __future__ import annotations

import logging
import os
import subprocess  # nosec B404
from collections.abc import Mapping
from pathlib import Path

logger = logging.getLogger(__name__)

GIT_TIMEOUT = 60


class GitError(Exception):
    """Error executing git command."""

    def __init__(self, message: str, stderr: str = "") -> None:
        super().__init__(message)
        self.stderr = stderr


def run_git(
    args: list[str],
    cwd: Path,
    env: Mapping[str, str] | None = None,
) -> str:
    """
    Run a git command and return its standard output.

    Parameters:
        args: Arguments after ``git``.
        cwd: Directory to run in.
        env: Extra environment variables layered over the current environment.

    Returns:
        Standard output as text.

    Raises:
        GitError: If git is missing, times out, or exits non-zero.
    """
    full_env = None
    if env:
        full_env = {**os.environ, **env}

    logger.debug("git %s (cwd=%s)", " ".join(args), cwd)
    try:
        result = subprocess.run(  # nosec B603, B607
            ["git", *args],
            cwd=str(cwd),
            capture_output=True,
            text=True,
            encoding="utf-8",
            errors="replace",
            timeout=GIT_TIMEOUT,
            env=full_env,
        )
    except FileNotFoundError as e:
        raise GitError("git executable not found") from e
    except subprocess.TimeoutExpired as e:
        raise GitError(f"git {args[0]} timed out") from e

    if result.returncode != 0:
        stderr = result.stderr.strip()
        raise GitError(f"git {args[0]} failed: {stderr or result.returncode}", stderr)
    return result.stdout


def is_git_repo(path: Path) -> bool:
    """
    Check if the given path is inside a git repository.

    Parameters:
        path: Path to check.

    Returns:
        True if path is inside a git repository, False otherwise.
    """
    try:
        out = run_git(["rev-parse", "--is-inside-work-tree"], path if path.is_dir() else path.parent)
    except GitError:
        return False
    return out.strip() == "true"


def get_git_root(path: Path) -> Path | None:
    """
    Get the root directory of the git repository containing the given path.

    Parameters:
        path: Path inside the git repository.

    Returns:
        Path to the git root, or None if not in a git repository.
    """
    try:
        out = run_git(["rev-parse", "--show-toplevel"], path if path.is_dir() else path.parent)
    except GitError:
        return None
    return Path(out.strip())


def _split_z(output: str) -> list[str]:
    return [entry for entry in output.split("\0") if entry]


def get_staged_files(repo_root: Path) -> list[str]:
    """List staged paths that were added, copied, modified or renamed."""
    out = run_git(
        ["diff", "--cached", "--name-only", "-z", "--diff-filter=ACMR"],
        repo_root,
    )
    return _split_z(out)


def get_unstaged_files(repo_root: Path, include_untracked: bool = True) -> list[str]:
    """
    List working tree paths whose content differs from the index.

    Parameters:
        repo_root: Repository root.
        include_untracked: Also list untracked files that are not ignored.

    Returns:
        Repository-relative paths, modified files first, without duplicates.
    """
    paths = _split_z(
        run_git(["diff", "--name-only", "-z", "--diff-filter=ACMRT"], repo_root)
    )
    if include_untracked:
        paths.extend(
            _split_z(run_git(["ls-files", "-z", "--others", "--exclude-standard"], repo_root))
        )
    return list(dict.fromkeys(paths))


def resolve_commit(repo_root: Path, ref: str) -> str:
    """Resolve a ref to a full commit SHA."""
    return run_git(["rev-parse", "--verify", "--quiet", f"{ref}^{{commit}}"], repo_root).strip()


def count_commits(repo_root: Path, base: str, head: str) -> int:
    """Number of commits reachable from head but not from base."""
    out = run_git(["rev-list", "--count", f"{base}..{head}"], repo_root)
    return int(out.strip() or 0)


RANGE_COMMIT_MARKER = "\0"


def get_range_patches(repo_root: Path, base: str, head: str) -> str:
    """
    Per-commit patches for every commit in base..head.

    Each commit starts with a line holding ``RANGE_COMMIT_MARKER`` followed by
    its full SHA, then its patch with no context lines. Line numbers in each
    patch refer to the file as of that commit, matching what gitleaks reports
    when it walks the same range. Merge commits carry no patch.
    """
    return run_git(
        [
            "-c",
            "core.quotepath=false",
            "log",
            "-p",
            "-U0",
            "--no-color",
            "--no-ext-diff",
            "--find-renames",
            "--format=%x00%H",
            f"{base}..{head}",
        ],
        repo_root,
    )
