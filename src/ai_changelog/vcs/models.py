"""
Data models for version control data.

:class:`Commit` and :class:`FileChange` are immutable snapshots read
from Git. Downstream components consume them read-only.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Tuple


WORKING_HASH = "working"


@dataclass(frozen=True)
class FileChange:
    """Representation of a single file change.

    Attributes
    ----------
    path : str
        Path relative to the repository root. For renames this is the
        new path.
    status : str
        One of ``'A'`` added, ``'M'`` modified, ``'D'`` deleted,
        ``'R'`` renamed or ``'?'`` untracked.
    diff : str, optional
        Unified diff text for this file.
    additions, deletions : int
        Per-file line counts, when known.
    old_path : str, optional
        Previous path for renamed files.
    """

    path: str
    status: str
    diff: Optional[str] = None
    additions: int = 0
    deletions: int = 0
    old_path: Optional[str] = None

    @property
    def is_added(self) -> bool:
        return self.status in ("A", "?")

    @property
    def is_deleted(self) -> bool:
        return self.status == "D"


@dataclass(frozen=True)
class Commit:
    """A commit (or the working-directory pseudo-commit)."""

    hash: str
    author: str
    date: str
    subject: str
    body: str = ""
    files: Tuple[FileChange, ...] = field(default_factory=tuple)
    insertions: int = 0
    deletions: int = 0

    @property
    def short_hash(self) -> str:
        if self.hash == WORKING_HASH:
            return self.hash
        return self.hash[:7]

    @property
    def message(self) -> str:
        if self.body:
            return f"{self.subject}\n\n{self.body}"
        return self.subject

    @property
    def file_count(self) -> int:
        return len(self.files)

    @property
    def changed_lines(self) -> int:
        return self.insertions + self.deletions

    @property
    def is_working(self) -> bool:
        return self.hash == WORKING_HASH
