"""Gitleaks engine invocation.

This module provides:
- Locating an already provisioned gitleaks binary
- Building a ``gitleaks detect`` command for a directory or a commit range
- Parsing the JSON report into Finding objects
- Normalising paths and fingerprints so findings from different sub-scans
  can be compared
"""

from __future__ import annotations

import itertools
import logging
import os
import platform
import shutil
import subprocess  # nosec B404
import sys
from pathlib import Path, PurePosixPath

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from leakscope.scanner.base import (
    REDACTED,
    EngineMissing,
    EngineProcessError,
    Finding,
    SourceSelector,
)

logger = logging.getLogger(__name__)

ENGINE_NAME = "gitleaks"
ENGINE_ENV_VAR = "LEAKSCOPE_ENGINE"

# gitleaks exit codes: 0 clean, 1 leaks found (we pass --exit-code 1)
SUCCESS_EXIT_CODES = (0, 1)


class EngineRecord(BaseModel):
    """One entry of the gitleaks JSON report."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    file: str = Field(alias="File")
    start_line: int = Field(alias="StartLine")
    end_line: int | None = Field(default=None, alias="EndLine")
    rule_id: str = Field(alias="RuleID")
    description: str = Field(default="", alias="Description")
    fingerprint: str = Field(default="", alias="Fingerprint")
    secret: str = Field(default="", alias="Secret")
    commit: str | None = Field(default=None, alias="Commit")
    author: str | None = Field(default=None, alias="Author")
    email: str | None = Field(default=None, alias="Email")
    date: str | None = Field(default=None, alias="Date")
    message: str | None = Field(default=None, alias="Message")
    tags: list[str] | None = Field(default=None, alias="Tags")
    entropy: float | None = Field(default=None, alias="Entropy")


_REPORT = TypeAdapter(list[EngineRecord])


def get_venv_bin_dir() -> Path | None:
    """
    Return the bin directory of the active virtual environment, if any.

    Checks ``VIRTUAL_ENV`` first, then the interpreter's own prefix when it
    is a virtualenv.
    """
    scripts = "Scripts" if platform.system() == "Windows" else "bin"

    venv_path = os.environ.get("VIRTUAL_ENV")
    if venv_path:
        return Path(venv_path) / scripts

    if sys.prefix != sys.base_prefix:
        return Path(sys.prefix) / scripts

    return None


def resolve_engine_binary(explicit: Path | None = None) -> Path:
    """
    Locate the gitleaks executable.

    Lookup order: an explicit path, the ``LEAKSCOPE_ENGINE`` environment
    variable, the active virtualenv's bin directory, then ``PATH``.

    Parameters:
        explicit: Path supplied by configuration or the command line.

    Returns:
        Path to an existing gitleaks binary.

    Raises:
        EngineMissing: If no binary can be found. Nothing is downloaded.
    """
    if explicit is not None:
        if explicit.exists():
            return explicit
        raise EngineMissing(f"gitleaks binary not found at {explicit}")

    from_env = os.environ.get(ENGINE_ENV_VAR)
    if from_env:
        env_path = Path(from_env)
        if env_path.exists():
            return env_path
        raise EngineMissing(f"{ENGINE_ENV_VAR} points to a missing file: {from_env}")

    binary_name = "gitleaks.exe" if platform.system() == "Windows" else "gitleaks"
    bin_dir = get_venv_bin_dir()
    if bin_dir is not None and (bin_dir / binary_name).exists():
        return bin_dir / binary_name

    system_path = shutil.which(ENGINE_NAME)
    if system_path:
        return Path(system_path)

    raise EngineMissing(
        "gitleaks not found. Install it (e.g. brew install gitleaks) "
        f"or point {ENGINE_ENV_VAR} / --engine at the binary"
    )


def get_engine_version(binary: Path) -> str | None:
    """Return the version string reported by ``gitleaks version``."""
    try:
        result = subprocess.run(  # nosec B603
            [str(binary), "version"],
            capture_output=True,
            text=True,
            timeout=10,
        )
    except (OSError, subprocess.TimeoutExpired):
        return None
    output = result.stdout.strip() or result.stderr.strip()
    return output or None


class GitleaksInvoker:
    """Runs gitleaks against one source and returns its findings.

    Each call writes its JSON report to a fresh file inside ``workspace``.
    The report is removed once parsed; if it cannot be parsed it is left in
    place and its path is attached to the raised EngineProcessError.

    Example:
        invoker = GitleaksInvoker(binary, workspace=tmp)
        findings = invoker.invoke(SourceSelector(Path("."), log_opts="HEAD~3..HEAD"))
    """

    def __init__(
        self,
        binary: Path,
        workspace: Path,
        config_path: Path | None = None,
        redact: bool = True,
        timeout: int | None = None,
        cwd: Path | None = None,
    ) -> None:
        self.binary = binary
        self.workspace = workspace
        self.config_path = config_path
        self.redact = redact
        self.timeout = timeout
        # User-relative paths in forwarded flags resolve against this
        self.cwd = cwd or Path.cwd()
        self._counter = itertools.count(1)

    def build_command(
        self,
        selector: SourceSelector,
        report_path: Path,
        extra_args: list[str] | None = None,
    ) -> list[str]:
        """Assemble the gitleaks argv for one sub-scan."""
        args = [
            str(self.binary),
            "detect",
            "--source",
            str(selector.path),
        ]
        if selector.no_git:
            args.append("--no-git")
        elif selector.log_opts:
            args.append(f"--log-opts={selector.log_opts}")

        args.extend(
            [
                "--report-format",
                "json",
                "--report-path",
                str(report_path),
                "--exit-code",
                "1",
                "--no-banner",
            ]
        )
        if self.redact:
            args.append("--redact")
        if self.config_path is not None:
            args.extend(["--config", str(self.config_path)])
        if extra_args:
            args.extend(extra_args)
        return args

    def invoke(
        self,
        selector: SourceSelector,
        extra_args: list[str] | None = None,
        synthetic_commit: str | None = None,
    ) -> list[Finding]:
        """
        Run gitleaks on one source and block until it exits.

        Parameters:
            selector: Directory or git range to scan.
            extra_args: Engine flags forwarded verbatim.
            synthetic_commit: SHA of a virtual commit; its identity is
                stripped from the findings.

        Returns:
            Findings in report order. Empty when the engine exits 0.

        Raises:
            EngineMissing: If the binary is gone.
            EngineProcessError: On spawn failure, unexpected exit code,
                timeout, or an unreadable report.
        """
        if not self.binary.exists():
            raise EngineMissing(f"gitleaks binary not found at {self.binary}")

        report_path = self.workspace / f"gitleaks-report-{next(self._counter)}.json"
        args = self.build_command(selector, report_path, extra_args)
        logger.debug("Running engine on %s", selector.describe())

        try:
            result = subprocess.run(  # nosec B603
                args,
                capture_output=True,
                text=True,
                encoding="utf-8",
                errors="replace",
                timeout=self.timeout,
                cwd=str(self.cwd),
            )
        except subprocess.TimeoutExpired as e:
            report_path.unlink(missing_ok=True)
            raise EngineProcessError(
                f"gitleaks timed out after {self.timeout}s scanning {selector.describe()}"
            ) from e
        except OSError as e:
            raise EngineProcessError(f"Failed to start gitleaks: {e}") from e

        if result.returncode not in SUCCESS_EXIT_CODES:
            report_path.unlink(missing_ok=True)
            raise EngineProcessError(
                f"gitleaks exited with code {result.returncode}",
                stderr=result.stderr,
                returncode=result.returncode,
            )

        if not report_path.exists():
            if result.returncode == 0:
                return []
            raise EngineProcessError(
                "gitleaks reported leaks but wrote no report",
                stderr=result.stderr,
                returncode=result.returncode,
            )

        try:
            records = _REPORT.validate_json(report_path.read_bytes())
        except (ValidationError, OSError) as e:
            raise EngineProcessError(
                f"Could not parse gitleaks report {report_path}: {e}",
                stderr=result.stderr,
                returncode=result.returncode,
                artifact=report_path,
            ) from e

        report_path.unlink()
        findings = [self._to_finding(r, selector, synthetic_commit) for r in records]
        logger.debug("Engine reported %d finding(s) for %s", len(findings), selector.describe())
        return findings

    def _to_finding(
        self,
        record: EngineRecord,
        selector: SourceSelector,
        synthetic_commit: str | None,
    ) -> Finding:
        """Convert a report record, normalising path and fingerprint."""
        file = _relative_to_root(record.file, selector.root)

        fingerprint = record.fingerprint
        if not fingerprint:
            fingerprint = f"{file}:{record.rule_id}:{record.start_line}"
            if record.commit:
                fingerprint = f"{record.commit}:{fingerprint}"
        elif record.file != file:
            fingerprint = fingerprint.replace(record.file, file, 1)

        commit = record.commit or None
        author, email, date, message = record.author, record.email, record.date, record.message
        if synthetic_commit and commit and synthetic_commit.startswith(commit):
            # The virtual commit is ephemeral: drop it from the identity.
            fingerprint = fingerprint.removeprefix(f"{commit}:")
            commit = author = email = date = message = None

        start = max(1, record.start_line)
        end = max(start, record.end_line or start)
        return Finding(
            rule_id=record.rule_id,
            description=record.description,
            file=file,
            start_line=start,
            end_line=end,
            fingerprint=fingerprint,
            secret_redacted=self.redact,
            secret=REDACTED if self.redact else record.secret,
            commit=commit,
            author=author or None,
            email=email or None,
            date=date or None,
            message=message or None,
            tags=tuple(record.tags or ()),
            entropy=record.entropy,
        )


def _relative_to_root(file: str, root: Path) -> str:
    """Express a reported path relative to the scanned root, POSIX style."""
    candidate = Path(file)
    if candidate.is_absolute():
        for base in (root, root.resolve()):
            try:
                return candidate.relative_to(base).as_posix()
            except ValueError:
                continue
        return candidate.as_posix()
    posix = PurePosixPath(file.replace("\\", "/"))
    root_posix = PurePosixPath(root.as_posix())
    try:
        return posix.relative_to(root_posix).as_posix()
    except ValueError:
        return posix.as_posix()
