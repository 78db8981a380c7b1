"""Secret scanning orchestration for the leakscope scan command.

This package wraps the gitleaks engine:
- scope: which commits or files a scan looks at
- diff_index: which lines a commit range added
- gitleaks: running the engine and parsing its report
- reconcile: merging findings across sub-scans
- output: console summary and report files

The ScanEngine (``leakscope.scanner.engine``) ties these together.
"""

from leakscope.scanner.base import (
    ConfigError,
    EngineMissing,
    EngineProcessError,
    Finding,
    InvocationPlan,
    LeakscopeError,
    ReportFormat,
    ReportTarget,
    ReportWriteError,
    ScanOutcome,
    ScanScope,
    ScopeConfigurationError,
)
from leakscope.scanner.diff_index import index_added_lines, index_added_lines_by_commit
from leakscope.scanner.reconcile import filter_to_added_lines, merge

__all__ = [
    "ConfigError",
    "EngineMissing",
    "EngineProcessError",
    "Finding",
    "InvocationPlan",
    "LeakscopeError",
    "ReportFormat",
    "ReportTarget",
    "ReportWriteError",
    "ScanOutcome",
    "ScanScope",
    "ScopeConfigurationError",
    "filter_to_added_lines",
    "index_added_lines",
    "index_added_lines_by_commit",
    "merge",
]
