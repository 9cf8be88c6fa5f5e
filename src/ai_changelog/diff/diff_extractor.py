"""
Diff extraction utilities.

This module obtains diffs for working-directory changes and packages
them as a pseudo-commit so that uncommitted work flows through the same
classification and changelog pipeline as real commits.
"""

from __future__ import annotations

import logging
from collections import Counter
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from ai_changelog.analysis.rules import categorize_file
from ai_changelog.analysis.semantic import changed_lines
from ai_changelog.errors import GitError
from ai_changelog.vcs.models import WORKING_HASH, Commit, FileChange


logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())


STATUS_LABELS = {"A": "added", "M": "modified", "D": "deleted", "R": "renamed", "?": "untracked"}


def extract_diffs(
    vcs_client: Any,
    changes: Iterable[FileChange],
) -> Dict[str, str]:
    """Extract unified diffs for a list of file changes.

    Parameters
    ----------
    vcs_client : object
        The VCS client instance. Must implement ``get_diff(path, status)``.
    changes : Iterable[FileChange]
        File changes from :meth:`GitClient.get_working_changes`.

    Returns
    -------
    Dict[str, str]
        Mapping from file path to the diff text.
    """
    diffs: Dict[str, str] = {}
    for change in changes:
        try:
            diff = vcs_client.get_diff(change.path, change.status)
        except GitError as exc:
            # The classification heuristics can still operate based on
            # the file name.
            logger.debug("No diff for %s: %s", change.path, exc)
            diff = ""
        diffs[change.path] = diff
    return diffs


def count_diff_lines(diff: str) -> Tuple[int, int]:
    """Count added and removed lines in a unified diff."""
    added, removed = changed_lines(diff)
    return len(added), len(removed)


def summarize_file_changes(changes: Iterable[FileChange]) -> str:
    """Describe a set of file changes in one sentence.

    >>> summarize_file_changes([FileChange("README.md", "M")])
    '1 file changed (1 modified) in documentation'
    """
    changes = list(changes)
    statuses = Counter(STATUS_LABELS.get(c.status, "modified") for c in changes)
    areas = list(dict.fromkeys(categorize_file(c.path) for c in changes))
    parts = ", ".join(f"{count} {label}" for label, count in statuses.items())
    noun = "file" if len(changes) == 1 else "files"
    return f"{len(changes)} {noun} changed ({parts}) in {', '.join(areas)}"


def build_working_commit(
    changes: Iterable[FileChange],
    diffs: Mapping[str, str],
    stats: Optional[Mapping[str, Tuple[int, int]]] = None,
    author: str = "",
    now: Optional[datetime] = None,
) -> Commit:
    """Package working-directory changes as a pseudo-commit.

    Per-file counts come from ``stats`` when available and are otherwise
    counted from the diff text.
    """
    stats = stats or {}
    files: List[FileChange] = []
    for change in changes:
        diff = diffs.get(change.path, "")
        additions, deletions = stats.get(change.path) or count_diff_lines(diff)
        files.append(
            FileChange(
                path=change.path,
                status=change.status,
                diff=diff,
                additions=additions,
                deletions=deletions,
                old_path=change.old_path,
            )
        )
    moment = now or datetime.now(timezone.utc)
    return Commit(
        hash=WORKING_HASH,
        author=author,
        date=moment.isoformat(timespec="seconds"),
        subject=summarize_file_changes(files) if files else "No changes",
        files=tuple(files),
        insertions=sum(f.additions for f in files),
        deletions=sum(f.deletions for f in files),
    )
