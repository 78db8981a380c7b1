"""Utility modules for leakscope."""

from leakscope.utils.git import (
    GitError,
    RANGE_COMMIT_MARKER,
    count_commits,
    get_git_root,
    get_range_patches,
    get_staged_files,
    get_unstaged_files,
    is_git_repo,
    resolve_commit,
    run_git,
)

__all__ = [
    "GitError",
    "RANGE_COMMIT_MARKER",
    "count_commits",
    "get_git_root",
    "get_range_patches",
    "get_staged_files",
    "get_unstaged_files",
    "is_git_repo",
    "resolve_commit",
    "run_git",
]
