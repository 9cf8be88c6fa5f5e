"""
Heuristics for classifying working-directory file changes into
Conventional Commit types.

The classifier infers the most appropriate commit type from the file
category (see :func:`ai_changelog.analysis.rules.categorize_file`) and
the diff content. It is deterministic so that grouping can be unit
tested without a language model.
"""

from __future__ import annotations

import re
from pathlib import PurePosixPath

from ai_changelog.analysis.rules import categorize_file


CATEGORY_TYPES = {
    "documentation": "docs",
    "tests": "test",
    "assets": "chore",
}

FIX_RE = re.compile(r"\b(fix(e[ds])?|bug|hotfix|patch)\b", re.IGNORECASE)
REFACTOR_RE = re.compile(r"\brefactor\b", re.IGNORECASE)
PERF_RE = re.compile(r"\b(perf(ormance)?|optimi[sz]e)\b", re.IGNORECASE)
DEFINITION_RE = re.compile(r"^\+\s*(class|def|function|export)\b", re.MULTILINE)


def _is_whitespace_only(diff: str) -> bool:
    changed = [
        line
        for line in diff.splitlines()
        if line.startswith(("+", "-")) and not line.startswith(("+++", "---"))
    ]
    if not changed:
        return False
    minus = "".join(re.sub(r"\s", "", line[1:]) for line in changed if line.startswith("-"))
    plus = "".join(re.sub(r"\s", "", line[1:]) for line in changed if line.startswith("+"))
    return minus == plus


def classify_change(file_path: str, diff: str, status: str = "M") -> str:
    """Classify a change into a Conventional Commit type.

    Parameters
    ----------
    file_path : str
        Path to the changed file relative to the repository root.
    diff : str
        Unified diff of the file relative to HEAD.
    status : str, optional
        File status; new files with definitions count as features.

    Returns
    -------
    str
        One of ``feat``, ``fix``, ``docs``, ``style``, ``refactor``,
        ``perf``, ``test``, ``build``, ``ci`` or ``chore``.
    """
    parts = PurePosixPath(file_path.replace("\\", "/")).parts
    if ".github" in parts or ".gitlab-ci.yml" in parts:
        return "ci"
    category = categorize_file(file_path)
    if category in CATEGORY_TYPES:
        return CATEGORY_TYPES[category]
    if category in ("configuration", "build"):
        return "build"
    if _is_whitespace_only(diff):
        return "style"
    if FIX_RE.search(diff):
        return "fix"
    if REFACTOR_RE.search(diff):
        return "refactor"
    if PERF_RE.search(diff):
        return "perf"
    if status in ("A", "?") or DEFINITION_RE.search(diff):
        return "feat"
    return "chore"
