"""Helpers shared by the test suite."""

from __future__ import annotations

import json
import os
import subprocess
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

GIT_ENV = {
    "GIT_AUTHOR_NAME": "Test User",
    "GIT_AUTHOR_EMAIL": "test@example.com",
    "GIT_COMMITTER_NAME": "Test User",
    "GIT_COMMITTER_EMAIL": "test@example.com",
}


def git(repo: Path, *args: str) -> str:
    """Run git in a test repository and return stdout."""
    result = subprocess.run(
        ["git", *args],
        cwd=repo,
        capture_output=True,
        text=True,
        check=True,
        env={**os.environ, **GIT_ENV},
    )
    return result.stdout


def commit_file(repo: Path, rel: str, content: str, message: str = "update") -> str:
    """Write, stage and commit a file; return the new commit SHA."""
    path = repo / rel
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content)
    git(repo, "add", rel)
    git(repo, "commit", "-q", "-m", message)
    return git(repo, "rev-parse", "HEAD").strip()


def engine_record(
    file: str = "config.py",
    line: int = 1,
    rule: str = "generic-api-key",
    fingerprint: str | None = None,
    commit: str = "",
    **extra: Any,
) -> dict[str, Any]:
    """A record shaped like one entry of a gitleaks JSON report."""
    record = {
        "Description": "Detected a Generic API Key",
        "StartLine": line,
        "EndLine": line,
        "StartColumn": 1,
        "EndColumn": 20,
        "Match": "REDACTED",
        "Secret": "REDACTED",
        "File": file,
        "SymlinkFile": "",
        "Commit": commit,
        "Entropy": 3.9,
        "Author": "",
        "Email": "",
        "Date": "",
        "Message": "",
        "Tags": [],
        "RuleID": rule,
        "Fingerprint": fingerprint
        if fingerprint is not None
        else (f"{commit}:{file}:{rule}:{line}" if commit else f"{file}:{rule}:{line}"),
    }
    record.update(extra)
    return record


@dataclass
class FakeEngine:
    """Stands in for the gitleaks process.

    ``responder`` receives the argv and returns the records to write to the
    report path (or None to write nothing); ``returncode`` defaults to 1 when
    records are written and 0 otherwise.
    """

    responder: Callable[[list[str]], list[dict[str, Any]] | None] = lambda _args: []
    returncode: int | None = None
    stderr: str = ""
    raw_report: str | None = None
    calls: list[list[str]] = field(default_factory=list)

    def __call__(self, args, **kwargs):
        self.calls.append(list(args))
        report_path = Path(args[args.index("--report-path") + 1])
        records = self.responder(list(args))
        if self.raw_report is not None:
            report_path.write_text(self.raw_report)
        elif records is not None:
            report_path.write_text(json.dumps(records))
        code = self.returncode
        if code is None:
            code = 1 if records else 0
        return subprocess.CompletedProcess(args, code, stdout="", stderr=self.stderr)

    @staticmethod
    def option(args: list[str], name: str) -> str | None:
        for arg in args:
            if arg.startswith(f"{name}="):
                return arg.split("=", 1)[1]
        if name in args:
            return args[args.index(name) + 1]
        return None
