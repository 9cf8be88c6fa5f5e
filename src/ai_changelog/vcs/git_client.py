"""
Git client implementation for ai_changelog.

This module wraps the Git operations required by the changelog
pipeline: reading commits with their file changes and diffs, reading
working-directory status, listing tags and branches, and the explicit
stage/commit workflow. All subprocess calls go through
:meth:`GitClient._run` so that unit tests can mock them easily.
"""

from __future__ import annotations

import logging
import re
import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from ai_changelog.errors import GitError
from ai_changelog.vcs.models import Commit, FileChange


logger = logging.getLogger(__name__)
# Attach a null handler to avoid logging errors when the root logger is not
# configured. Logs reach the root logger once the CLI configures it.
if not logger.handlers:
    logger.addHandler(logging.NullHandler())


FIELD_SEP = "\x1f"
COMMIT_HASH_RE = re.compile(r"^[a-f0-9]{6,40}$")
DIFF_HEADER_RE = re.compile(r"^diff --git a/(.+?) b/(.+)$")
# Untracked files are rendered as all-added diffs; cap them so huge
# generated files do not dominate a prompt.
MAX_UNTRACKED_LINES = 200


@dataclass
class WorkingStatus:
    """Working directory status split by area."""

    staged: List[str] = field(default_factory=list)
    unstaged: List[str] = field(default_factory=list)
    untracked: List[str] = field(default_factory=list)

    @property
    def is_clean(self) -> bool:
        return not (self.staged or self.unstaged or self.untracked)


def _resolve_rename_path(path: str) -> str:
    """Return the destination path of a numstat rename entry.

    ``git --numstat`` reports renames either as ``old => new`` or with a
    brace section such as ``src/{a => b}/mod.py``.
    """
    if "=>" not in path:
        return path
    brace = re.search(r"\{([^{}]*) => ([^{}]*)\}", path)
    if brace:
        resolved = path[: brace.start()] + brace.group(2) + path[brace.end():]
        return resolved.replace("//", "/")
    return path.split("=>", 1)[1].strip()


def split_patch(patch: str) -> Dict[str, str]:
    """Split a multi-file unified diff into a mapping of path to diff text."""
    diffs: Dict[str, List[str]] = {}
    current: Optional[str] = None
    for line in patch.splitlines():
        match = DIFF_HEADER_RE.match(line)
        if match:
            current = match.group(2)
            diffs[current] = [line]
            continue
        if current is not None:
            diffs[current].append(line)
    return {path: "\n".join(lines) for path, lines in diffs.items()}


class GitClient:
    """Client for interacting with a Git repository."""

    def __init__(self, repo_root: Path, timeout: float = 30.0) -> None:
        self.repo_root = repo_root
        self.timeout = timeout

    # ------------------------------------------------------------------
    # Static helpers
    # ------------------------------------------------------------------
    @staticmethod
    def is_repo(path: Path) -> bool:
        """Return True if the given path is inside a Git repository."""
        return GitClient.find_repo_root(path) is not None

    @staticmethod
    def find_repo_root(start: Path) -> Optional[Path]:
        """Find the root of the Git repository starting from ``start``.

        Walk upwards until a ``.git`` entry is found or the filesystem
        root is reached.
        """
        current = start.resolve()
        while True:
            if (current / ".git").exists():
                return current
            if current.parent == current:
                # reached filesystem root
                return None
            current = current.parent

    # ------------------------------------------------------------------
    # Basic Git commands
    # ------------------------------------------------------------------
    def _run(self, args: List[str], check: bool = True) -> subprocess.CompletedProcess:
        """Run a Git command in the repository root.

        Raises
        ------
        GitError
            If the command exits with a non-zero status when ``check`` is
            True, times out, or git is not installed.
        """
        full_cmd = ["git"] + args
        logger.debug("Executing Git command: %s", " ".join(full_cmd))
        try:
            result = subprocess.run(
                full_cmd,
                cwd=self.repo_root,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                encoding="utf-8",
                errors="replace",  # Replace invalid characters instead of failing
                timeout=self.timeout,
            )
        except subprocess.TimeoutExpired as exc:
            logger.error("Git command timed out after %ss: %s", self.timeout, " ".join(full_cmd))
            raise GitError(
                f"Git command timed out after {self.timeout}s: {' '.join(full_cmd)}",
                "timeout",
                {"command": " ".join(args), "timeout": self.timeout},
                cause=exc,
            ) from exc
        except FileNotFoundError as exc:
            raise GitError(
                "Git executable not found",
                "git_not_installed",
                {"command": " ".join(args)},
                cause=exc,
            ) from exc

        if check and result.returncode != 0:
            logger.error(
                "Git command failed: %s\nSTDOUT: %s\nSTDERR: %s",
                " ".join(full_cmd),
                result.stdout,
                result.stderr,
            )
            raise GitError.command_failed(args, result.returncode, result.stderr or result.stdout)
        return result

    # ------------------------------------------------------------------
    # Commit history
    # ------------------------------------------------------------------
    def validate_commit_hash(self, ref: str) -> bool:
        """Return True if ``ref`` looks like a commit hash that exists."""
        if not COMMIT_HASH_RE.match(ref):
            return False
        result = self._run(["cat-file", "-e", f"{ref}^{{commit}}"], check=False)
        return result.returncode == 0

    def get_commit_hashes(
        self,
        since: Optional[str] = None,
        limit: Optional[int] = None,
        rev_range: Optional[str] = None,
    ) -> List[str]:
        """List commit hashes, newest first.

        Parameters
        ----------
        since : str, optional
            Either a date expression accepted by ``git log --since`` or a
            tag/commit; a ref is turned into ``<ref>..HEAD``.
        limit : int, optional
            Maximum number of commits.
        rev_range : str, optional
            Explicit revision range such as ``v1.0..v1.1``.
        """
        args = ["log", "--format=%H", "--no-merges"]
        if limit:
            args.append(f"-n{int(limit)}")
        if rev_range:
            args.append(rev_range)
        elif since:
            if self._is_ref(since):
                args.append(f"{since}..HEAD")
            else:
                args.append(f"--since={since}")
        result = self._run(args, check=True)
        return [line.strip() for line in result.stdout.splitlines() if line.strip()]

    def _is_ref(self, name: str) -> bool:
        result = self._run(["rev-parse", "--verify", "--quiet", f"{name}^{{commit}}"], check=False)
        return result.returncode == 0

    def get_commit(self, commit_hash: str) -> Commit:
        """Read a single commit with its file changes, stats and diffs.

        Raises
        ------
        GitError
            With kind ``missing_commit`` if the hash does not resolve.
        """
        meta = self._run(
            ["show", "-s", f"--format=%H{FIELD_SEP}%an{FIELD_SEP}%aI{FIELD_SEP}%s{FIELD_SEP}%b", commit_hash],
            check=True,
        )
        parts = meta.stdout.rstrip("\n").split(FIELD_SEP, 4)
        if len(parts) < 4:
            raise GitError(
                f"Commit not found: {commit_hash}",
                "missing_commit",
                {"hash": commit_hash},
            )
        full_hash, author, date, subject = parts[:4]
        body = parts[4].strip() if len(parts) > 4 else ""

        statuses = self._name_status(commit_hash)
        stats = self._numstat(["show", "--format=", "--numstat", "-M", commit_hash])
        patch = self._run(["show", "--format=", "--patch", "-M", commit_hash], check=True).stdout
        diffs = split_patch(patch)

        files: List[FileChange] = []
        for path, (status, old_path) in statuses.items():
            additions, deletions = stats.get(path, (0, 0))
            files.append(
                FileChange(
                    path=path,
                    status=status,
                    diff=diffs.get(path),
                    additions=additions,
                    deletions=deletions,
                    old_path=old_path,
                )
            )
        return Commit(
            hash=full_hash.strip(),
            author=author,
            date=date,
            subject=subject.strip(),
            body=body,
            files=tuple(files),
            insertions=sum(f.additions for f in files),
            deletions=sum(f.deletions for f in files),
        )

    def get_commits(
        self,
        since: Optional[str] = None,
        limit: Optional[int] = None,
        rev_range: Optional[str] = None,
    ) -> List[Commit]:
        """Read commits (newest first) as full :class:`Commit` objects."""
        return [self.get_commit(h) for h in self.get_commit_hashes(since, limit, rev_range)]

    def _name_status(self, commit_hash: str) -> Dict[str, Tuple[str, Optional[str]]]:
        result = self._run(["show", "--format=", "--name-status", "-M", commit_hash], check=True)
        entries: Dict[str, Tuple[str, Optional[str]]] = {}
        for line in result.stdout.splitlines():
            if not line.strip():
                continue
            fields = line.split("\t")
            code = fields[0][:1]
            if code in ("R", "C") and len(fields) >= 3:
                entries[fields[2]] = ("R" if code == "R" else "A", fields[1])
            elif len(fields) >= 2:
                entries[fields[1]] = (code if code in "AMD" else "M", None)
        return entries

    def _numstat(self, args: List[str]) -> Dict[str, Tuple[int, int]]:
        result = self._run(args, check=True)
        stats: Dict[str, Tuple[int, int]] = {}
        for line in result.stdout.splitlines():
            fields = line.split("\t")
            if len(fields) < 3:
                continue
            added, deleted, path = fields[0], fields[1], fields[2]
            # Binary files report '-' for both counts
            stats[_resolve_rename_path(path)] = (
                int(added) if added.isdigit() else 0,
                int(deleted) if deleted.isdigit() else 0,
            )
        return stats

    # ------------------------------------------------------------------
    # Working directory
    # ------------------------------------------------------------------
    def _porcelain(self) -> List[Tuple[str, str]]:
        result = self._run(["status", "--porcelain", "--untracked-files=all"], check=True)
        entries = []
        for line in result.stdout.splitlines():
            # Git porcelain format: XY filename
            if len(line) < 4 or not line.strip():
                continue
            entries.append((line[:2], line[3:]))
        return entries

    def get_working_changes(self, include_untracked: bool = True) -> List[FileChange]:
        """Get the list of changed files in the working directory.

        Returns
        -------
        List[FileChange]
            Modified, added, deleted and renamed files, plus untracked
            files (status ``'?'``) when ``include_untracked`` is True.
            Diffs are not populated; see :meth:`get_diff`.
        """
        changes: List[FileChange] = []
        for status_code, filename in self._porcelain():
            if status_code == "??":
                if include_untracked:
                    changes.append(FileChange(path=filename, status="?"))
                continue
            status = status_code.strip()
            if not status:
                continue
            primary_status = status[0]
            old_path = None
            if primary_status == "R" and " -> " in filename:
                old_path, filename = filename.split(" -> ", 1)
            if primary_status not in "AMDR":
                primary_status = "M"
            changes.append(FileChange(path=filename, status=primary_status, old_path=old_path))
        return changes

    def get_working_status(self) -> WorkingStatus:
        """Split the working directory status into staged, unstaged and untracked paths."""
        status = WorkingStatus()
        for code, filename in self._porcelain():
            if code == "??":
                status.untracked.append(filename)
                continue
            if code[0] not in " ?":
                status.staged.append(filename)
            if code[1] not in " ?":
                status.unstaged.append(filename)
        return status

    def get_diff(self, file_path: str, status: str = "M") -> str:
        """Return the working-tree diff of ``file_path`` against HEAD.

        Untracked files are rendered as an all-added diff. Repositories
        without any commit fall back to the staged diff.
        """
        if status == "?":
            return self._untracked_diff(file_path)
        try:
            return self._run(["diff", "HEAD", "--", file_path], check=True).stdout
        except GitError:
            return self._run(["diff", "--cached", "--", file_path], check=True).stdout

    def get_working_stats(self) -> Dict[str, Tuple[int, int]]:
        """Per-file line counts of the working tree against HEAD."""
        try:
            return self._numstat(["diff", "HEAD", "--numstat", "-M"])
        except GitError:
            return self._numstat(["diff", "--cached", "--numstat", "-M"])

    def _untracked_diff(self, file_path: str) -> str:
        path = self.repo_root / file_path
        try:
            raw = path.read_bytes()
        except OSError as exc:
            logger.debug("Cannot read untracked file %s: %s", file_path, exc)
            return ""
        if b"\0" in raw:
            return f"Binary files /dev/null and b/{file_path} differ"
        lines = raw.decode("utf-8", errors="replace").splitlines()
        body = [f"+{line}" for line in lines[:MAX_UNTRACKED_LINES]]
        header = [
            f"diff --git a/{file_path} b/{file_path}",
            "--- /dev/null",
            f"+++ b/{file_path}",
            f"@@ -0,0 +1,{len(body)} @@",
        ]
        return "\n".join(header + body)

    # ------------------------------------------------------------------
    # Repository metadata
    # ------------------------------------------------------------------
    def get_current_branch(self) -> str:
        """Get the name of the current branch."""
        result = self._run(["rev-parse", "--abbrev-ref", "HEAD"], check=True)
        return result.stdout.strip()

    def get_branches(self) -> List[str]:
        """List local branch names."""
        result = self._run(["branch", "--format=%(refname:short)"], check=True)
        return [line.strip() for line in result.stdout.splitlines() if line.strip()]

    def get_tags(self) -> List[str]:
        """List tags, most recently created first."""
        result = self._run(["tag", "--sort=-creatordate"], check=True)
        return [line.strip() for line in result.stdout.splitlines() if line.strip()]

    def get_latest_tag(self) -> Optional[str]:
        """Return the nearest tag reachable from HEAD, or None."""
        result = self._run(["describe", "--tags", "--abbrev=0"], check=False)
        if result.returncode != 0:
            return None
        return result.stdout.strip() or None

    def get_recent_subjects(self, count: int = 100) -> List[str]:
        result = self._run(["log", f"-n{int(count)}", "--format=%s"], check=True)
        return [line for line in result.stdout.splitlines() if line.strip()]

    def count_commits_since(self, days: int) -> int:
        result = self._run(
            ["rev-list", "--count", f"--since={int(days)} days ago", "HEAD"], check=False
        )
        value = result.stdout.strip()
        return int(value) if result.returncode == 0 and value.isdigit() else 0

    def get_untracked_files(self) -> List[str]:
        result = self._run(["ls-files", "--others", "--exclude-standard"], check=True)
        return [line for line in result.stdout.splitlines() if line.strip()]

    # ------------------------------------------------------------------
    # Staging and committing
    # ------------------------------------------------------------------
    def stage_files(self, files: List[str]) -> None:
        """Stage the given files for commit.

        For deleted files, ``git rm`` is used; otherwise ``git add``.
        """
        for file in files:
            abs_path = self.repo_root / file
            if abs_path.exists():
                self._run(["add", "--", file], check=True)
            else:
                self._run(["rm", "--cached", "--quiet", "--", file], check=True)

    def commit(self, message: str) -> None:
        """Create a commit with the given message.

        Multi-line commit messages are supported. If the commit fails,
        a GitError is raised.
        """
        self._run(["commit", "-m", message], check=True)


class RepoStateCache:
    """Memo of repository detection results.

    Resolving the repository root walks the filesystem; the result is
    cached per start directory until :meth:`reset` is called, which
    callers do after operations that may change repository state.
    """

    def __init__(self) -> None:
        self._roots: Dict[Path, Optional[Path]] = {}

    def repo_root(self, start: Path) -> Optional[Path]:
        key = Path(start).resolve()
        if key not in self._roots:
            self._roots[key] = GitClient.find_repo_root(key)
        return self._roots[key]

    def is_repo(self, start: Path) -> bool:
        return self.repo_root(start) is not None

    def git_dir(self, start: Path) -> Optional[Path]:
        root = self.repo_root(start)
        return root / ".git" if root is not None else None

    def reset(self) -> None:
        logger.debug("Resetting repository state cache")
        self._roots.clear()
