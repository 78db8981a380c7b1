"""Report rendering for scan results.

File reports (json, csv, sarif, junit, html) are rendered to bytes by
``render_report`` and written by ``emit``. Every requested report is written
even when there are no findings: each format has a valid empty document.
"""

from __future__ import annotations

import csv
import io
import json
import logging
import os
import xml.etree.ElementTree as ET  # nosec B405
from collections.abc import Callable, Sequence
from typing import Any

from rich.console import Console
from rich.markup import escape

from leakscope import __version__
from leakscope.scanner.base import (
    REDACTED,
    Finding,
    ReportFormat,
    ReportTarget,
    ReportWriteError,
    ScanOutcome,
)
from leakscope.scanner.html import render_html

logger = logging.getLogger(__name__)

CSV_HEADER = ("commit", "author", "date", "email", "file", "line", "message", "rule", "secret", "tags")

TOOL_NAME = "leakscope"
TOOL_URI = "https://github.com/gitleaks/gitleaks"


def finding_to_dict(finding: Finding) -> dict[str, Any]:
    """Serialise a finding with the engine's field names."""
    return {
        "RuleID": finding.rule_id,
        "Description": finding.description,
        "File": finding.file,
        "StartLine": finding.start_line,
        "EndLine": finding.end_line,
        "Secret": finding.secret,
        "Fingerprint": finding.fingerprint,
        "Commit": finding.commit or "",
        "Author": finding.author or "",
        "Email": finding.email or "",
        "Date": finding.date or "",
        "Message": finding.message or "",
        "Tags": list(finding.tags),
        "Entropy": finding.entropy,
    }


def format_json(findings: Sequence[Finding]) -> str:
    return json.dumps([finding_to_dict(f) for f in findings], indent=2)


def format_csv(findings: Sequence[Finding]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(CSV_HEADER)
    for f in findings:
        writer.writerow(
            [
                f.commit or "",
                f.author or "",
                f.date or "",
                f.email or "",
                f.file,
                f.start_line,
                f.message or "",
                f.rule_id,
                f.secret,
                " ".join(f.tags),
            ]
        )
    return buffer.getvalue()


def build_sarif(findings: Sequence[Finding]) -> dict[str, Any]:
    """Build a SARIF 2.1.0 log with one run."""
    rule_ids: dict[str, int] = {}
    rules: list[dict[str, Any]] = []
    for f in findings:
        if f.rule_id not in rule_ids:
            rule_ids[f.rule_id] = len(rules)
            rules.append(
                {
                    "id": f.rule_id,
                    "name": f.rule_id,
                    "shortDescription": {"text": f.description or f.rule_id},
                }
            )

    results = []
    for f in findings:
        result: dict[str, Any] = {
            "ruleId": f.rule_id,
            "ruleIndex": rule_ids[f.rule_id],
            "level": "error",
            "message": {"text": f"{f.rule_id} has detected a secret in {f.file} at line {f.start_line}"},
            "locations": [
                {
                    "physicalLocation": {
                        "artifactLocation": {"uri": f.file},
                        "region": {"startLine": f.start_line, "endLine": f.end_line},
                    }
                }
            ],
            "partialFingerprints": {"leakscope/v1": f.fingerprint},
        }
        if f.commit:
            result["partialFingerprints"]["commitSha"] = f.commit
            result["properties"] = {
                "commit": f.commit,
                "author": f.author or "",
                "email": f.email or "",
                "date": f.date or "",
            }
        if f.tags:
            result.setdefault("properties", {})["tags"] = list(f.tags)
        results.append(result)

    # Unique per CI job so repeated uploads do not overwrite each other
    auto_id = "leakscope-{run}-{job}-{attempt}".format(
        run=os.getenv("GITHUB_RUN_ID", "local"),
        job=os.getenv("GITHUB_JOB", "job"),
        attempt=os.getenv("GITHUB_RUN_ATTEMPT", "1"),
    )

    return {
        "version": "2.1.0",
        "$schema": "https://json.schemastore.org/sarif-2.1.0.json",
        "runs": [
            {
                "automationDetails": {"id": auto_id},
                "tool": {
                    "driver": {
                        "name": TOOL_NAME,
                        "version": __version__,
                        "informationUri": TOOL_URI,
                        "rules": rules,
                    }
                },
                "results": results,
            }
        ],
    }


def format_sarif(findings: Sequence[Finding]) -> str:
    return json.dumps(build_sarif(findings), indent=2)


def format_junit(findings: Sequence[Finding]) -> bytes:
    count = str(len(findings))
    suites = ET.Element("testsuites", name=TOOL_NAME, tests=count, failures=count)
    suite = ET.SubElement(suites, "testsuite", name=TOOL_NAME, tests=count, failures=count)
    for f in findings:
        case = ET.SubElement(
            suite,
            "testcase",
            classname=f.rule_id,
            name=f"{f.rule_id} has detected a secret in file {f.file}, line {f.start_line}",
            file=f.file,
            line=str(f.start_line),
        )
        failure = ET.SubElement(case, "failure", message=f.description or f.rule_id, type=f.rule_id)
        failure.text = json.dumps(finding_to_dict(f), indent=2)

    ET.indent(suites)
    buffer = io.BytesIO()
    ET.ElementTree(suites).write(buffer, encoding="utf-8", xml_declaration=True)
    return buffer.getvalue() + b"\n"


_RENDERERS: dict[ReportFormat, Callable[[Sequence[Finding]], str | bytes]] = {
    ReportFormat.JSON: format_json,
    ReportFormat.CSV: format_csv,
    ReportFormat.SARIF: format_sarif,
    ReportFormat.JUNIT: format_junit,
    ReportFormat.HTML: render_html,
}


def render_report(findings: Sequence[Finding], fmt: ReportFormat) -> bytes:
    """Render findings into a complete document of the given format."""
    rendered = _RENDERERS[fmt](findings)
    if isinstance(rendered, str):
        rendered = rendered.encode("utf-8")
    return rendered


def emit(
    findings: Sequence[Finding],
    targets: Sequence[ReportTarget],
    console: Console | None = None,
    outcome: ScanOutcome | None = None,
    show_summary: bool = True,
) -> None:
    """
    Print the console summary and write every report target.

    All targets are attempted; if any fail, a ReportWriteError for the first
    failure is raised once the rest have been written.

    Parameters:
        findings: Final, deduplicated findings.
        targets: Report files to write.
        console: Console for the summary (a new one when None).
        outcome: Scan outcome, used for extra summary detail.
        show_summary: Print the console summary.

    Raises:
        ReportWriteError: If a report could not be written.
    """
    if show_summary:
        format_rich(findings, console or Console(), outcome)

    failures: list[ReportWriteError] = []
    for target in targets:
        try:
            data = render_report(findings, target.format)
            target.path.parent.mkdir(parents=True, exist_ok=True)
            target.path.write_bytes(data)
        except OSError as e:
            logger.debug("Writing %s report failed", target.format.value, exc_info=True)
            failures.append(
                ReportWriteError(
                    f"Cannot write {target.format.value} report to {target.path}: {e}",
                    target=target,
                    secrets_found=bool(findings),
                )
            )
            continue
        logger.debug("Wrote %s report to %s", target.format.value, target.path)
        if console is not None and show_summary:
            console.print(f"[dim]Wrote {target.format.value} report to {escape(str(target.path))}[/dim]")

    if failures:
        raise failures[0]


def format_rich(
    findings: Sequence[Finding],
    console: Console,
    outcome: ScanOutcome | None = None,
) -> None:
    """Print one block per finding and a closing count line."""
    if not findings:
        note = ""
        if outcome is not None and outcome.skipped_reason:
            note = f" [dim]({escape(outcome.skipped_reason)})[/dim]"
        console.print(f"[green]No leaks found[/green]{note}")
        return

    for f in findings:
        console.print(f"[bold]Finding:[/bold]     {escape(f.description or f.rule_id)}")
        console.print(f"[bold]RuleID:[/bold]      {escape(f.rule_id)}")
        console.print(f"[bold]File:[/bold]        {escape(f.file)}")
        console.print(f"[bold]Line:[/bold]        {f.start_line}")
        if f.commit:
            console.print(f"[bold]Commit:[/bold]      {escape(f.commit)}")
        if f.author:
            who = f"{f.author} <{f.email}>" if f.email else f.author
            console.print(f"[bold]Author:[/bold]      {escape(who)}")
        if f.date:
            console.print(f"[bold]Date:[/bold]        {escape(f.date)}")
        # Never echo the secret on the console, even when reports are unredacted
        console.print(f"[bold]Secret:[/bold]      {REDACTED}")
        console.print(f"[bold]Fingerprint:[/bold] {escape(f.fingerprint)}")
        console.print()

    noun = "leak" if len(findings) == 1 else "leaks"
    console.print(f"[bold red]{len(findings)} {noun} found[/bold red]")
