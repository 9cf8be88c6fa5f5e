"""
Size-adaptive diff sampling for AI prompts.

Large commits cannot be sent to a model verbatim. :class:`DiffSampler`
selects which files to show, trims noise from their diffs and
truncates them to fit a character budget that depends on the analysis
mode. Small commits (ten files or fewer) are listed in full.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Dict, List, Sequence, Tuple

from ai_changelog.analysis.rules import categorize_file
from ai_changelog.vcs.models import FileChange


logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())


FULL_LIST_THRESHOLD = 10

# mode: (max total characters, max files shown in detail)
MODE_BUDGETS: Dict[str, Tuple[int, int]] = {
    "standard": (12000, 15),
    "detailed": (20000, 25),
    "enterprise": (30000, 40),
}

STATUS_PRIORITY = {"M": 0, "R": 1, "A": 2, "?": 2, "D": 3}
CATEGORY_PRIORITY = {"source": 0, "configuration": 1, "frontend": 1}

IMPORT_RE = re.compile(r"^[+-]\s*(import\s|from\s+\S+\s+import\s|const\s+\w+\s*=\s*require\()")
DEBUG_RE = re.compile(r"^[+-]\s*(console\.log\(|print\()")


@dataclass
class FileSample:
    path: str
    status: str
    category: str
    excerpt: str
    truncated: bool = False


@dataclass
class DiffSample:
    """Files selected for a prompt plus a description of the rest."""

    files: List[FileSample] = field(default_factory=list)
    remaining: List[str] = field(default_factory=list)
    total_files: int = 0

    def render(self) -> str:
        sections = []
        for sample in self.files:
            header = f"File: {sample.path} [{sample.status}, {sample.category}]"
            sections.append(f"{header}\n{sample.excerpt}" if sample.excerpt else header)
        if self.remaining:
            listed = ", ".join(self.remaining[:20])
            extra = len(self.remaining) - 20
            more = f" and {extra} more" if extra > 0 else ""
            sections.append(f"Other changed files ({len(self.remaining)}): {listed}{more}")
        return "\n\n".join(sections)


def filter_noise(diff: str, import_churn_limit: int = 10) -> str:
    """Drop low-signal lines from a diff.

    Whitespace-only changes and debug prints are removed; import lines
    are removed only when there are more than ``import_churn_limit`` of
    them.
    """
    lines = diff.splitlines()
    imports = sum(1 for line in lines if IMPORT_RE.match(line))
    kept = []
    for line in lines:
        if line.startswith(("+++", "---")):
            continue
        if line[:1] in "+-" and not line[1:].strip():
            continue
        if DEBUG_RE.match(line):
            continue
        if imports > import_churn_limit and IMPORT_RE.match(line):
            continue
        kept.append(line)
    return "\n".join(kept)


def _truncate(text: str, limit: int) -> Tuple[str, bool]:
    if len(text) <= limit:
        return text, False
    cut = text[:limit]
    newline = cut.rfind("\n")
    if newline > limit // 2:
        cut = cut[:newline]
    return cut + "\n... (truncated)", True


def _describe_without_diff(change: FileChange) -> str:
    if change.is_deleted:
        return "(file deleted)"
    if change.status == "R" and change.old_path:
        return f"(renamed from {change.old_path})"
    return "(binary file or diff unavailable)"


class DiffSampler:
    """Select and truncate diffs within an analysis-mode budget."""

    def __init__(self, mode: str = "standard") -> None:
        if mode not in MODE_BUDGETS:
            raise ValueError(f"Unknown analysis mode: {mode}")
        self.mode = mode
        self.max_chars, self.max_files = MODE_BUDGETS[mode]

    def prioritize(self, files: Sequence[FileChange]) -> List[FileChange]:
        """Order files: modified before added/deleted, source before tests."""

        def key(item: Tuple[int, FileChange]) -> Tuple[int, int, int, int]:
            index, change = item
            category = categorize_file(change.path)
            return (
                STATUS_PRIORITY.get(change.status, 2),
                CATEGORY_PRIORITY.get(category, 2 if category != "tests" else 3),
                -len(change.diff or ""),
                index,
            )

        return [change for _, change in sorted(enumerate(files), key=key)]

    def sample(self, files: Sequence[FileChange]) -> DiffSample:
        result = DiffSample(total_files=len(files))
        if not files:
            return result
        if len(files) <= FULL_LIST_THRESHOLD:
            selected = list(files)
            rest: List[FileChange] = []
        else:
            ordered = self.prioritize(files)
            selected = ordered[: self.max_files]
            rest = ordered[self.max_files:]

        per_file = max(self.max_chars // max(len(selected), 1), 400)
        budget = self.max_chars
        for change in selected:
            if budget <= 0 and len(files) > FULL_LIST_THRESHOLD:
                rest.append(change)
                continue
            category = categorize_file(change.path)
            diff = filter_noise(change.diff) if change.diff else ""
            if not diff.strip():
                excerpt, truncated = _describe_without_diff(change), False
            else:
                excerpt, truncated = _truncate(diff, min(per_file, max(budget, 400)))
            budget -= len(excerpt)
            result.files.append(
                FileSample(change.path, change.status, category, excerpt, truncated)
            )
        result.remaining = [change.path for change in rest]
        logger.debug(
            "Sampled %d of %d files for prompt (%s mode)",
            len(result.files),
            len(files),
            self.mode,
        )
        return result
