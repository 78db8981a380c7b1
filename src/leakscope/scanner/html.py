"""Standalone HTML report."""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime, timezone
from html import escape
from string import Template

from leakscope.scanner.base import Finding

PAGE = Template(
    """<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="utf-8">
<title>leakscope report</title>
<style>
body { font-family: -apple-system, "Segoe UI", Helvetica, Arial, sans-serif; margin: 2rem; color: #1f2328; }
h1 { font-size: 1.4rem; }
.summary { margin-bottom: 1.5rem; }
.clean { color: #1a7f37; font-weight: 600; }
.leaks { color: #cf222e; font-weight: 600; }
table { border-collapse: collapse; width: 100%; }
th, td { border: 1px solid #d0d7de; padding: 0.4rem 0.6rem; text-align: left; vertical-align: top; }
th { background: #f6f8fa; }
code { font-size: 0.85rem; }
</style>
</head>
<body>
<h1>leakscope report</h1>
<div class="summary">
<p>Generated $generated</p>
<p class="$status_class">$status</p>
</div>
$body
</body>
</html>
"""
)

ROW = Template(
    "<tr><td><code>$rule</code><br>$description</td><td><code>$file</code></td>"
    "<td>$line</td><td>$commit</td><td>$author</td><td>$date</td>"
    "<td><code>$secret</code></td><td><code>$fingerprint</code></td></tr>"
)

HEADER = (
    "<table>\n<thead><tr><th>Rule</th><th>File</th><th>Line</th><th>Commit</th>"
    "<th>Author</th><th>Date</th><th>Secret</th><th>Fingerprint</th></tr></thead>\n<tbody>\n"
)


def render_html(findings: Sequence[Finding]) -> bytes:
    """Render findings into a self-contained HTML document."""
    if findings:
        noun = "leak" if len(findings) == 1 else "leaks"
        status, status_class = f"{len(findings)} {noun} found", "leaks"
        rows = "\n".join(
            ROW.substitute(
                rule=escape(f.rule_id),
                description=escape(f.description),
                file=escape(f.file),
                line=f.start_line,
                commit=escape((f.commit or "")[:12]),
                author=escape(f.author or ""),
                date=escape(f.date or ""),
                secret=escape(f.secret),
                fingerprint=escape(f.fingerprint),
            )
            for f in findings
        )
        body = f"{HEADER}{rows}\n</tbody>\n</table>"
    else:
        status, status_class = "No leaks found", "clean"
        body = ""

    page = PAGE.substitute(
        generated=escape(datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S UTC")),
        status=status,
        status_class=status_class,
        body=body,
    )
    return page.encode("utf-8")
