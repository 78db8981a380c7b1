"""Expose staged content to range-based scanning as an unreferenced commit.

``git write-tree`` snapshots the index, ``git commit-tree`` wraps it in a
commit parented on HEAD. No ref is created or moved, so the commit is
invisible to branches and left for git's garbage collection.
"""

from __future__ import annotations

import logging
from pathlib import Path

from leakscope.scanner.base import ScopeConfigurationError
from leakscope.utils.git import GitError, resolve_commit, run_git

logger = logging.getLogger(__name__)

# Fixed identity so commit-tree works without user.name/user.email configured
SYNTHETIC_IDENTITY = {
    "GIT_AUTHOR_NAME": "leakscope",
    "GIT_AUTHOR_EMAIL": "leakscope@localhost",
    "GIT_COMMITTER_NAME": "leakscope",
    "GIT_COMMITTER_EMAIL": "leakscope@localhost",
}

COMMIT_MESSAGE = "leakscope: staged changes"


def build_staged_commit(repo_root: Path) -> tuple[str, str]:
    """Create a commit holding HEAD plus the staged changes.

    Repeated calls without index changes may return different SHAs but always
    carry the same tree.

    Args:
        repo_root: Repository root.

    Returns:
        Tuple of (HEAD SHA, virtual commit SHA).

    Raises:
        ScopeConfigurationError: If there is no HEAD yet or git fails.
    """
    try:
        head = resolve_commit(repo_root, "HEAD")
    except GitError as e:
        raise ScopeConfigurationError(
            "Cannot scan staged changes: repository has no HEAD commit yet"
        ) from e

    try:
        tree = run_git(["write-tree"], repo_root).strip()
        commit = run_git(
            ["commit-tree", tree, "-p", head, "-m", COMMIT_MESSAGE],
            repo_root,
            env=SYNTHETIC_IDENTITY,
        ).strip()
    except GitError as e:
        raise ScopeConfigurationError(f"Cannot build staged snapshot commit: {e}") from e

    logger.debug("Virtual commit %s (tree %s) on top of %s", commit, tree, head)
    return head, commit
