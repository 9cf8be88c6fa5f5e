"""
Conventional Commit message parsing.

:func:`parse_conventional` splits a commit message of the form
``type(scope)!: description`` into its parts. A subject that does not
follow the shape is reported with ``is_conventional=False`` and no
type or scope.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional, Tuple

from ai_changelog.analysis.rules import COMMIT_TYPES


SUBJECT_RE = re.compile(r"^(\w+)(\(([^)]+)\))?(!)?:\s*(.+)$")
BREAKING_FOOTER_RE = re.compile(r"^BREAKING[ -]CHANGE:\s*(.*)$", re.MULTILINE)
ISSUE_RE = re.compile(r"#(\d+)")
CLOSES_RE = re.compile(r"\b(?:close[sd]?|fix(?:e[sd])?|resolve[sd]?)\s+#(\d+)", re.IGNORECASE)


@dataclass(frozen=True)
class ConventionalParse:
    """Result of parsing a commit message."""

    type: Optional[str]
    scope: Optional[str]
    breaking: bool
    description: str
    is_conventional: bool
    is_valid_type: bool
    breaking_note: Optional[str] = None
    issues: Tuple[str, ...] = ()
    closes: Tuple[str, ...] = ()


def parse_conventional(subject: str, body: str = "") -> ConventionalParse:
    """Parse a commit subject and body.

    Parameters
    ----------
    subject : str
        First line of the commit message.
    body : str, optional
        Remaining message text, searched for a ``BREAKING CHANGE:``
        footer and issue references.

    Returns
    -------
    ConventionalParse
        ``breaking`` is True only when the subject carries a ``!``
        marker or the body contains a breaking-change footer.
    """
    subject = (subject or "").strip()
    body = body or ""
    footer = BREAKING_FOOTER_RE.search(body)
    breaking_note = footer.group(1).strip() if footer else None
    text = f"{subject}\n{body}"
    issues = tuple(dict.fromkeys(ISSUE_RE.findall(text)))
    closes = tuple(dict.fromkeys(CLOSES_RE.findall(text)))

    match = SUBJECT_RE.match(subject)
    if not match:
        return ConventionalParse(
            type=None,
            scope=None,
            breaking=footer is not None,
            description=subject,
            is_conventional=False,
            is_valid_type=False,
            breaking_note=breaking_note,
            issues=issues,
            closes=closes,
        )

    commit_type = match.group(1).lower()
    return ConventionalParse(
        type=commit_type,
        scope=match.group(3),
        breaking=bool(match.group(4)) or footer is not None,
        description=match.group(5).strip(),
        is_conventional=True,
        is_valid_type=commit_type in COMMIT_TYPES,
        breaking_note=breaking_note,
        issues=issues,
        closes=closes,
    )


def strip_conventional_prefix(text: str) -> str:
    """Remove a leading ``type(scope)!:`` prefix from ``text``, if any."""
    match = SUBJECT_RE.match(text.strip())
    if match and match.group(1).lower() in COMMIT_TYPES:
        return match.group(5).strip()
    return text.strip()
