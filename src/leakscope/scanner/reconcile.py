"""Merge and deduplicate findings gathered from several sub-scans."""

from __future__ import annotations

from collections.abc import Callable, Collection, Iterable

from leakscope.scanner.base import CommitCoordinate, Finding


def merge(
    *lists: Iterable[Finding],
    predicate: Callable[[Finding], bool] | None = None,
) -> list[Finding]:
    """Concatenate finding lists and drop repeated fingerprints.

    Lists are given in priority order: when two findings share a fingerprint
    the one from the earlier list is kept, at its original position.

    Args:
        *lists: Finding lists, highest priority first.
        predicate: Optional filter; findings it rejects are discarded before
            deduplication.

    Returns:
        Findings with unique fingerprints.
    """
    seen: set[str] = set()
    merged: list[Finding] = []

    for findings in lists:
        for finding in findings:
            if predicate is not None and not predicate(finding):
                continue
            if finding.fingerprint in seen:
                continue
            seen.add(finding.fingerprint)
            merged.append(finding)

    return merged


def filter_to_added_lines(
    findings: Iterable[Finding],
    added: Collection[CommitCoordinate],
) -> list[Finding]:
    """Keep only findings that start on a line their own commit added."""
    return merge(findings, predicate=lambda f: f.commit_coordinate in added)
