"""Scope resolution - map a scan mode to concrete engine invocations.

Each mode has its own strategy:
- staged: one range scan over a virtual commit holding the index
- all: the staged plan, then a no-git scan of a snapshot of unstaged files
- ci: one range scan over base..head, each finding kept only if its own
  commit added the line it starts on
- history: one scan over the full history, unfiltered
"""

from __future__ import annotations

import logging
import shutil
from pathlib import Path
from typing import TYPE_CHECKING

from leakscope.scanner.base import (
    InvocationPlan,
    PlanStep,
    ScanScope,
    ScopeConfigurationError,
    SourceSelector,
)
from leakscope.scanner.diff_index import index_added_lines_by_commit
from leakscope.scanner.virtual_commit import build_staged_commit
from leakscope.utils.git import (
    GitError,
    count_commits,
    get_range_patches,
    get_staged_files,
    get_unstaged_files,
)

if TYPE_CHECKING:
    from leakscope.config import ScanConfig

logger = logging.getLogger(__name__)

UNSTAGED_SNAPSHOT_DIR = "unstaged"


class ScopeResolver:
    """Builds the invocation plan for a scan scope.

    Example:
        resolver = ScopeResolver(repo_root, workspace)
        plan = resolver.resolve(config)
        if plan.is_empty:
            print(plan.reason)
    """

    def __init__(self, repo_root: Path, workspace: Path) -> None:
        """
        Parameters:
            repo_root: Repository being scanned.
            workspace: Per-run temporary directory the resolver may populate.
        """
        self.repo_root = repo_root
        self.workspace = workspace

    def resolve(self, config: ScanConfig) -> InvocationPlan:
        """Dispatch to the strategy for ``config.scope``."""
        self.validate(config)
        strategies = {
            ScanScope.STAGED: self._resolve_staged,
            ScanScope.ALL: self._resolve_all,
            ScanScope.CI: self._resolve_ci,
            ScanScope.HISTORY: self._resolve_history,
        }
        plan = strategies[config.scope](config)
        logger.debug(
            "Resolved %s scope to %d step(s)%s",
            config.scope.value,
            len(plan.steps),
            f" ({plan.reason})" if plan.reason else "",
        )
        return plan

    def _resolve_staged(self, config: ScanConfig) -> InvocationPlan:
        try:
            staged = get_staged_files(self.repo_root)
        except GitError as e:
            raise ScopeConfigurationError(f"Cannot list staged files: {e}") from e

        if not staged:
            return InvocationPlan(ScanScope.STAGED, reason="no staged changes")

        head, virtual = build_staged_commit(self.repo_root)
        step = PlanStep(
            label="staged",
            selector=SourceSelector(self.repo_root, log_opts=f"{head}..{virtual}"),
            synthetic_commit=virtual,
        )
        return InvocationPlan(ScanScope.STAGED, steps=[step])

    def _resolve_all(self, config: ScanConfig) -> InvocationPlan:
        # Staged first: its findings take priority in the merge.
        staged_plan = self._resolve_staged(config)
        plan = InvocationPlan(ScanScope.ALL, steps=list(staged_plan.steps))

        try:
            unstaged = get_unstaged_files(self.repo_root, config.include_untracked)
        except GitError as e:
            raise ScopeConfigurationError(f"Cannot list unstaged files: {e}") from e

        snapshot = self._snapshot(unstaged)
        if snapshot is not None:
            plan.steps.append(
                PlanStep(label="unstaged", selector=SourceSelector(snapshot, no_git=True))
            )

        if plan.is_empty:
            plan.reason = "no uncommitted changes"
        return plan

    def _snapshot(self, paths: list[str]) -> Path | None:
        """Copy working tree files into the workspace, keeping relative paths."""
        target_root = self.workspace / UNSTAGED_SNAPSHOT_DIR
        copied = 0
        for rel in paths:
            source = self.repo_root / rel
            if not source.is_file():
                # deleted or replaced by a directory since listing
                continue
            target = target_root / rel
            target.parent.mkdir(parents=True, exist_ok=True)
            shutil.copy2(source, target)
            copied += 1

        if not copied:
            return None
        logger.debug("Copied %d unstaged file(s) to %s", copied, target_root)
        return target_root

    @staticmethod
    def validate(config: ScanConfig) -> None:
        """
        Check the inputs a scope needs without touching git or the engine.

        Raises:
            ScopeConfigurationError: Naming the missing input.
        """
        if config.scope is ScanScope.CI:
            missing = [
                name
                for name, value in (
                    ("base ref", config.ci_base_ref),
                    ("head ref", config.ci_head_ref),
                )
                if not value
            ]
            if missing:
                raise ScopeConfigurationError(
                    f"ci mode requires a commit range; missing {' and '.join(missing)} "
                    "(set --base/--head or LEAKSCOPE_BASE_REF/LEAKSCOPE_HEAD_REF)"
                )
        if config.depth is not None and config.depth < 1:
            raise ScopeConfigurationError(f"depth must be a positive integer, got {config.depth}")

    def _resolve_ci(self, config: ScanConfig) -> InvocationPlan:
        base, head = config.ci_base_ref, config.ci_head_ref
        try:
            commits = count_commits(self.repo_root, base, head)
            if commits == 0:
                return InvocationPlan(ScanScope.CI, reason=f"no commits in {base}..{head}")
            added = index_added_lines_by_commit(get_range_patches(self.repo_root, base, head))
        except GitError as e:
            raise ScopeConfigurationError(f"Cannot resolve commit range {base}..{head}: {e}") from e

        logger.debug("%d commit(s) in range, %d added line(s)", commits, len(added))
        step = PlanStep(
            label="range",
            selector=SourceSelector(self.repo_root, log_opts=f"{base}..{head}"),
            post_filter=frozenset(added),
        )
        return InvocationPlan(ScanScope.CI, steps=[step])

    def _resolve_history(self, config: ScanConfig) -> InvocationPlan:
        log_opts = f"--max-count={config.depth}" if config.depth else None
        step = PlanStep(
            label="history",
            selector=SourceSelector(self.repo_root, log_opts=log_opts),
        )
        return InvocationPlan(ScanScope.HISTORY, steps=[step])
