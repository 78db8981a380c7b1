"""Scan engine - orchestrates one scope-aware scan.

The ScanEngine is responsible for:
- Resolving the requested scope into engine invocations
- Running those invocations one after another
- Restricting range findings to lines the range added
- Merging and deduplicating findings across sub-scans
- Cleaning up the per-run temporary workspace on every exit path
"""

from __future__ import annotations

import logging
import os
import shutil
import tempfile
import time
from pathlib import Path

from rich.console import Console

from leakscope.config import ScanConfig, discover_engine_config
from leakscope.scanner.base import (
    Finding,
    ScanOutcome,
    ScopeConfigurationError,
)
from leakscope.scanner.gitleaks import GitleaksInvoker, resolve_engine_binary
from leakscope.scanner.output import emit
from leakscope.scanner.reconcile import filter_to_added_lines, merge
from leakscope.scanner.scope import ScopeResolver
from leakscope.utils.git import get_git_root, is_git_repo

logger = logging.getLogger(__name__)


class ScanEngine:
    """Runs a scan for the configured scope and reports the result.

    Sub-scans run sequentially in plan order, so findings from earlier steps
    (staged before unstaged) win when fingerprints collide.

    Example:
        config = ScanConfig(scope=ScanScope.STAGED)
        engine = ScanEngine(config)
        if engine.run():
            raise SystemExit(1)
    """

    def __init__(
        self,
        config: ScanConfig,
        repo_root: Path | None = None,
        binary: Path | None = None,
        console: Console | None = None,
    ) -> None:
        """Initialize the scan engine.

        Args:
            config: Finalised scan configuration.
            repo_root: Repository to scan. Discovered from cwd if None.
            binary: Engine binary. Resolved lazily if None, so scans that
                need no engine run never look for one.
            console: Console for the summary.
        """
        self.config = config
        self.repo_root = repo_root
        self.binary = binary
        self.console = console or Console()

    def scan(self) -> ScanOutcome:
        """Resolve the scope, run every sub-scan and merge the findings.

        Returns:
            ScanOutcome with deduplicated findings.

        Raises:
            ScopeConfigurationError: Scope inputs missing or unusable.
            EngineMissing: Engine binary not found.
            EngineProcessError: An engine run failed.
        """
        start_time = time.time()

        # Checked before any subprocess is spawned
        ScopeResolver.validate(self.config)

        if self.repo_root is not None:
            if not is_git_repo(self.repo_root):
                raise ScopeConfigurationError(f"Not a git repository: {self.repo_root}")
            repo_root = self.repo_root
        else:
            repo_root = get_git_root(Path.cwd())
            if repo_root is None:
                raise ScopeConfigurationError("Not inside a git repository")

        workspace = Path(
            tempfile.mkdtemp(prefix=f"leakscope-{os.getpid()}-{int(start_time)}-")
        )
        try:
            plan = ScopeResolver(repo_root, workspace).resolve(self.config)
            outcome = ScanOutcome(scope=plan.scope, skipped_reason=plan.reason)
            if plan.is_empty:
                return outcome

            invoker = self._make_invoker(workspace, repo_root)
            per_step: list[list[Finding]] = []
            for step in plan.steps:
                findings = invoker.invoke(
                    step.selector,
                    self.config.additional_engine_args,
                    synthetic_commit=step.synthetic_commit,
                )
                outcome.raw_counts[step.label] = len(findings)
                if step.post_filter is not None:
                    kept = filter_to_added_lines(findings, step.post_filter)
                    logger.debug(
                        "%s: kept %d of %d finding(s) on added lines",
                        step.label,
                        len(kept),
                        len(findings),
                    )
                    findings = kept
                per_step.append(findings)

            outcome.findings = merge(*per_step)
            logger.debug(
                "Merged %d raw finding(s) into %d", outcome.total_raw_findings, len(outcome.findings)
            )
            return outcome
        finally:
            self._cleanup(workspace)
            logger.debug("Scan finished in %d ms", int((time.time() - start_time) * 1000))

    def run(self) -> bool:
        """Scan, print the summary and write all reports.

        Returns:
            True if secrets were found.

        Raises:
            ReportWriteError: After the summary, if a report could not be written.
        """
        start_time = time.time()
        outcome = self.scan()
        outcome.duration_ms = int((time.time() - start_time) * 1000)

        emit(
            outcome.findings,
            self.config.report_targets,
            console=self.console,
            outcome=outcome,
            show_summary=not self.config.quiet,
        )
        return outcome.secrets_found

    def _make_invoker(self, workspace: Path, repo_root: Path) -> GitleaksInvoker:
        binary = self.binary or resolve_engine_binary(self.config.engine_path)

        config_path = self.config.config_path or discover_engine_config(repo_root)
        if config_path is not None:
            config_path = config_path.resolve()

        return GitleaksInvoker(
            binary,
            workspace=workspace,
            config_path=config_path,
            redact=self.config.redact,
            timeout=self.config.engine_timeout,
        )

    def _cleanup(self, workspace: Path) -> None:
        if self.config.debug:
            logger.warning("Keeping scan workspace for inspection: %s", workspace)
            return
        shutil.rmtree(workspace, ignore_errors=True)
