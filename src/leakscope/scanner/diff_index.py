"""Index the lines a unified diff adds.

Only the new-file side matters: for every file in the diff we record the
1-based line numbers of ``+`` lines, counted the way the hunk headers number
them. Consumers only ever ask ``(file, line) in index``, or for a commit
range ``(commit, file, line) in index``.
"""

from __future__ import annotations

import logging
import re

from leakscope.scanner.base import CommitCoordinate, DiffCoordinate
from leakscope.utils.git import RANGE_COMMIT_MARKER

logger = logging.getLogger(__name__)

HUNK_HEADER = re.compile(r"^@@ -(\d+)(?:,(\d+))? \+(\d+)(?:,(\d+))? @@")


def _parse_path(header: str) -> str | None:
    """Extract the path from a ``+++ b/<path>`` header line.

    Returns None for ``/dev/null`` (deleted file).
    """
    path = header[4:].rstrip("\n")
    # git appends a tab when the path contains spaces
    path = path.split("\t", 1)[0]
    if path.startswith('"') and path.endswith('"') and len(path) >= 2:
        path = path[1:-1].encode("latin-1", "backslashreplace").decode("unicode_escape")
        path = path.encode("latin-1", "ignore").decode("utf-8", "replace")
    if path == "/dev/null":
        return None
    if path.startswith("b/"):
        path = path[2:]
    return path or None


def index_added_lines(diff_text: str) -> set[DiffCoordinate]:
    """Parse a unified diff into the set of (file, line) coordinates it adds.

    Binary sections, malformed hunk headers and stray lines are skipped;
    nothing in the input makes this raise.

    Args:
        diff_text: Output of ``git diff`` (or any unified diff).

    Returns:
        Set of (repository-relative path, new-file line number) pairs.
    """
    added: set[DiffCoordinate] = set()

    current_file: str | None = None
    saw_old_header = False
    line_no = 0
    old_remaining = 0
    new_remaining = 0

    for line in diff_text.splitlines():
        in_hunk = old_remaining > 0 or new_remaining > 0

        if in_hunk:
            if line.startswith("\\"):
                # "\ No newline at end of file"
                continue
            if line.startswith("+"):
                if current_file is not None:
                    added.add((current_file, line_no))
                line_no += 1
                new_remaining -= 1
                continue
            if line.startswith("-"):
                old_remaining -= 1
                continue
            if line.startswith(" ") or line == "":
                line_no += 1
                old_remaining -= 1
                new_remaining -= 1
                continue
            # Anything else ends the hunk early; fall through as a header.
            logger.debug("Truncated hunk in %s before: %r", current_file, line[:40])
            old_remaining = new_remaining = 0

        if line.startswith("diff --git ") or line.startswith("diff --cc "):
            current_file = None
            saw_old_header = False
        elif line.startswith("--- "):
            saw_old_header = True
        elif line.startswith("+++ "):
            # A textual section needs the ---/+++ pair; anything else is noise.
            current_file = _parse_path(line) if saw_old_header else None
            saw_old_header = False
        elif line.startswith("@@"):
            match = HUNK_HEADER.match(line)
            if not match or current_file is None:
                continue
            old_len = int(match.group(2)) if match.group(2) is not None else 1
            new_len = int(match.group(4)) if match.group(4) is not None else 1
            line_no = int(match.group(3))
            old_remaining = old_len
            new_remaining = new_len
        elif line.startswith("Binary files "):
            current_file = None

    return added


def index_added_lines_by_commit(log_text: str) -> set[CommitCoordinate]:
    """Parse per-commit patches into (commit, file, line) coordinates.

    ``log_text`` is the output of ``get_range_patches``: each commit opens
    with a marker line carrying its SHA, followed by that commit's own patch.
    Line numbers are therefore those of the file as of the commit that added
    the line, which is what gitleaks reports for a finding in that commit.
    """
    added: set[CommitCoordinate] = set()
    commit: str | None = None
    chunk: list[str] = []

    def flush() -> None:
        if commit is not None and chunk:
            for file, line in index_added_lines("\n".join(chunk)):
                added.add((commit, file, line))

    for line in log_text.splitlines():
        if line.startswith(RANGE_COMMIT_MARKER):
            flush()
            commit = line[len(RANGE_COMMIT_MARKER) :].strip()
            chunk = []
        else:
            chunk.append(line)
    flush()

    return added
