"""Core types shared by the scan orchestration components."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

REDACTED = "REDACTED"

# (file, line) of a line added in a unified diff
DiffCoordinate = tuple[str, int]
# (commit, file, line) of a line added by one commit of a range
CommitCoordinate = tuple[str, str, int]


class LeakscopeError(Exception):
    """Base exception for leakscope."""

    pass


class ConfigError(LeakscopeError):
    """Configuration file or option is invalid."""

    pass


class EngineMissing(LeakscopeError):
    """Engine binary does not exist at invocation time."""

    pass


class ScopeConfigurationError(LeakscopeError):
    """Inputs required by the requested scope are missing or unusable."""

    pass


class EngineProcessError(LeakscopeError):
    """Engine could not be spawned, exited abnormally, or produced unreadable output."""

    def __init__(
        self,
        message: str,
        stderr: str = "",
        returncode: int | None = None,
        artifact: Path | None = None,
    ) -> None:
        super().__init__(message)
        self.stderr = stderr
        self.returncode = returncode
        self.artifact = artifact


class ReportWriteError(LeakscopeError):
    """A requested report could not be written after a completed scan."""

    def __init__(self, message: str, target: ReportTarget, secrets_found: bool) -> None:
        super().__init__(message)
        self.target = target
        self.secrets_found = secrets_found


class ScanScope(Enum):
    """Which subset of repository state a scan examines."""

    STAGED = "staged"
    ALL = "all"  # staged + unstaged working tree changes
    CI = "ci"  # commit range base..head
    HISTORY = "history"


class ReportFormat(Enum):
    """File report formats."""

    JSON = "json"
    CSV = "csv"
    SARIF = "sarif"
    JUNIT = "junit"
    HTML = "html"


@dataclass(frozen=True)
class ReportTarget:
    """A report file to write once per scan."""

    format: ReportFormat
    path: Path


@dataclass(frozen=True)
class Finding:
    """One detected secret occurrence.

    The fingerprint is the identity of a finding: two findings with the same
    fingerprint describe the same occurrence, whichever sub-scan produced them.
    """

    rule_id: str
    description: str
    file: str
    start_line: int
    end_line: int
    fingerprint: str
    secret_redacted: bool = True
    secret: str = REDACTED
    commit: str | None = None
    author: str | None = None
    email: str | None = None
    date: str | None = None
    message: str | None = None
    tags: tuple[str, ...] = field(default_factory=tuple)
    entropy: float | None = None

    def __post_init__(self) -> None:
        if self.secret_redacted and self.secret != REDACTED:
            object.__setattr__(self, "secret", REDACTED)

    @property
    def commit_coordinate(self) -> CommitCoordinate:
        """The (commit, file, line) this finding starts at."""
        return (self.commit or "", self.file, self.start_line)


@dataclass(frozen=True)
class SourceSelector:
    """What to hand the engine for one sub-scan.

    Either a plain directory scanned with version control disabled, or a git
    working copy scanned over ``log_opts`` (a commit range or log options).
    """

    path: Path
    no_git: bool = False
    log_opts: str | None = None

    @property
    def root(self) -> Path:
        """Base directory reported file paths are made relative to."""
        return self.path

    def describe(self) -> str:
        if self.no_git:
            return f"directory {self.path}"
        if self.log_opts:
            return f"git log {self.log_opts}"
        return "full git history"


@dataclass(frozen=True)
class PlanStep:
    """One engine invocation within a plan.

    Attributes:
        label: Short name used in logs ("staged", "unstaged", "range", "history").
        selector: Source handed to the engine.
        post_filter: (commit, file, line) coordinates findings must fall on, if any.
        synthetic_commit: SHA of a virtual commit whose identity must not leak
            into findings.
    """

    label: str
    selector: SourceSelector
    post_filter: frozenset[CommitCoordinate] | None = None
    synthetic_commit: str | None = None


@dataclass
class InvocationPlan:
    """Ordered engine invocations for one scope. Earlier steps win on merge."""

    scope: ScanScope
    steps: list[PlanStep] = field(default_factory=list)
    reason: str = ""

    @property
    def is_empty(self) -> bool:
        return not self.steps


@dataclass
class ScanOutcome:
    """Result of running a plan."""

    scope: ScanScope
    findings: list[Finding] = field(default_factory=list)
    raw_counts: dict[str, int] = field(default_factory=dict)
    duration_ms: int = 0
    skipped_reason: str = ""

    @property
    def secrets_found(self) -> bool:
        return bool(self.findings)

    @property
    def total_raw_findings(self) -> int:
        return sum(self.raw_counts.values())
