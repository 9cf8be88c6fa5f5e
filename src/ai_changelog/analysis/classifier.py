"""
Rule-based commit classification.

:class:`CommitClassifier` assigns every commit a set of categories and
tags, an importance level (low to critical), a semantic-version impact
(patch, minor, major) and a breaking-change flag. All rules come from
the ordered tables in :mod:`ai_changelog.analysis.rules`.

Classification never raises: an unexpected failure yields a
conservative ``other``/``medium`` result so the commit still appears in
the changelog.
"""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

from ai_changelog.analysis import rules
from ai_changelog.analysis.conventional import ConventionalParse, parse_conventional
from ai_changelog.analysis.semantic import DiffAnalysis, analyze_diff, merge_analyses
from ai_changelog.vcs.models import Commit, FileChange


logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())


@dataclass(frozen=True)
class Classification:
    """Derived categorical metadata for a commit."""

    categories: Tuple[str, ...]
    tags: Tuple[str, ...]
    importance: str
    impact: str
    user_facing: bool
    breaking: bool
    description: str
    commit_type: str
    breaking_reasons: Tuple[str, ...] = ()
    parse: Optional[ConventionalParse] = None
    semantic: DiffAnalysis = field(default_factory=DiffAnalysis)
    file_categories: Dict[str, str] = field(default_factory=dict)
    file_importance: Dict[str, str] = field(default_factory=dict)
    languages: Tuple[str, ...] = ()

    @property
    def primary_category(self) -> str:
        return self.categories[0] if self.categories else rules.DEFAULT_MESSAGE_CATEGORY

    def key_files(self, limit: int = 5) -> List[str]:
        """Paths rated critical or high, most important first."""
        ranked = sorted(
            (path for path, level in self.file_importance.items() if level in ("critical", "high")),
            key=lambda path: rules.IMPORTANCE_LEVELS.index(self.file_importance[path]),
            reverse=True,
        )
        return ranked[:limit]

    def to_dict(self) -> Dict[str, object]:
        return {
            "type": self.commit_type,
            "categories": list(self.categories),
            "tags": list(self.tags),
            "importance": self.importance,
            "impact": self.impact,
            "user_facing": self.user_facing,
            "breaking": self.breaking,
            "breaking_reasons": list(self.breaking_reasons),
            "description": self.description,
            "semantic_patterns": sorted(self.semantic.patterns),
            "frameworks": sorted(self.semantic.frameworks),
            "languages": list(self.languages),
            "file_importance": dict(self.file_importance),
        }


def escalate(importance: str, minimum: str) -> str:
    """Return the higher of two importance levels."""
    levels = rules.IMPORTANCE_LEVELS
    return levels[max(levels.index(importance), levels.index(minimum))]


def step_up(importance: str) -> str:
    """Raise importance by one level, capped at critical."""
    levels = rules.IMPORTANCE_LEVELS
    return levels[min(levels.index(importance) + 1, len(levels) - 1)]


def detect_breaking(message: str, files: Sequence[FileChange]) -> List[str]:
    """Return the reasons a change is breaking; an empty list means it is not.

    Three independent signals are checked: breaking phrases in the
    message, deletion of a public-surface file, and removed ``export``
    or ``function`` lines inside such a file.
    """
    reasons: List[str] = []
    for pattern in rules.BREAKING_PATTERNS:
        if pattern.search(message):
            reasons.append(f"message matches '{pattern.pattern}'")
            break
    for change in files:
        lowered = change.path.lower()
        if not any(marker in lowered for marker in rules.PUBLIC_SURFACE_MARKERS):
            continue
        if change.is_deleted:
            reasons.append(f"deleted public file {change.path}")
        elif change.diff and rules.REMOVED_EXPORT_RE.search(change.diff):
            reasons.append(f"removed export in {change.path}")
    return reasons


class CommitClassifier:
    """Classify commits using ordered rule tables.

    Parameters
    ----------
    commit_types : Sequence[str], optional
        Extra conventional types accepted as valid in addition to the
        built-in vocabulary. Unknown extras map to the ``other`` category.
    """

    def __init__(self, commit_types: Optional[Sequence[str]] = None) -> None:
        self.extra_types = {t.lower() for t in (commit_types or []) if t.lower() not in rules.COMMIT_TYPES}

    def classify(self, commit: Commit) -> Classification:
        try:
            return self._classify(commit)
        except Exception as exc:  # classification must never fail a run
            logger.warning("Classification failed for %s: %s", commit.short_hash, exc)
            return Classification(
                categories=(rules.DEFAULT_MESSAGE_CATEGORY,),
                tags=("unclassified",),
                importance="medium",
                impact="patch",
                user_facing=False,
                breaking=False,
                description=commit.subject or "(no description)",
                commit_type="other",
            )

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _classify(self, commit: Commit) -> Classification:
        parsed = parse_conventional(commit.subject, commit.body)
        message = commit.message
        categories: List[str] = []
        tags: List[str] = []
        importance = "medium"
        impact = "patch"
        user_facing = False
        commit_type: Optional[str] = None

        if parsed.is_conventional and parsed.is_valid_type:
            type_rule = rules.COMMIT_TYPES[parsed.type]
            categories.append(type_rule.category)
            impact = type_rule.impact
            importance = type_rule.importance
            user_facing = type_rule.user_facing
            commit_type = parsed.type
            if parsed.scope:
                tags.append(f"scope:{parsed.scope}")
        elif parsed.is_conventional and parsed.type in self.extra_types:
            commit_type = parsed.type

        reasons = detect_breaking(message, commit.files)
        if parsed.breaking and not reasons:
            reasons.append("conventional breaking marker")
        breaking = bool(reasons)
        if breaking:
            categories.append("breaking")
            tags.append("breaking")

        file_categories = self._file_categories(commit.files, categories, tags)

        if any(rules.is_critical_file(change.path) for change in commit.files):
            tags.append("critical-files")
            importance = escalate(importance, "high")

        tags.extend(self._message_tags(message))
        tags.extend(f"issue:#{number}" for number in parsed.issues)

        if commit.changed_lines > rules.LARGE_CHANGE_LINES or commit.file_count > rules.LARGE_CHANGE_FILES:
            tags.append("large-change")
            importance = step_up(importance)

        if breaking:
            impact = "major"
            importance = "critical"

        if not categories:
            categories.append(rules.infer_category_from_message(message))

        semantic = merge_analyses(
            [analyze_diff(change.diff or "", change.path) for change in commit.files]
        )
        if not user_facing:
            user_facing = "frontend" in categories or any(
                marker in change.path.lower()
                for change in commit.files
                for marker in ("/ui/", "/components/", "/pages/", "/views/")
            )

        if commit_type is None:
            commit_type = rules.CATEGORY_TO_TYPE.get(categories[0], "other")

        return Classification(
            categories=tuple(dict.fromkeys(categories)),
            tags=tuple(dict.fromkeys(tags)),
            importance=importance,
            impact=impact,
            user_facing=user_facing,
            breaking=breaking,
            description=self._describe(commit, parsed),
            commit_type=commit_type,
            breaking_reasons=tuple(reasons),
            parse=parsed,
            semantic=semantic,
            file_categories=file_categories,
            file_importance={
                change.path: rules.assess_file_importance(change.path, change.status)
                for change in commit.files
            },
            languages=tuple(
                dict.fromkeys(
                    language
                    for language in (rules.detect_language(change.path) for change in commit.files)
                    if language
                )
            ),
        )

    def _file_categories(
        self, files: Sequence[FileChange], categories: List[str], tags: List[str]
    ) -> Dict[str, str]:
        mapping = {change.path: rules.categorize_file(change.path) for change in files}
        counts = Counter(mapping.values())
        # most_common keeps first-seen order for equal counts
        for category, _ in counts.most_common(2):
            categories.append(category)
        lowered_paths = [path.lower() for path in mapping]
        if any("migration" in p or "schema" in p or p.endswith(".sql") for p in lowered_paths):
            tags.append("database-changes")
        if counts.get("configuration"):
            tags.append("configuration")
        if counts.get("tests"):
            tags.append("tests")
        return mapping

    @staticmethod
    def _message_tags(message: str) -> List[str]:
        found = [name for name, regex in rules.MESSAGE_ACTIONS if regex.search(message)]
        found.extend(f"tech:{name}" for name, regex in rules.TECHNOLOGIES if regex.search(message))
        return found

    @staticmethod
    def _describe(commit: Commit, parsed: ConventionalParse) -> str:
        if parsed.is_conventional and parsed.description:
            return parsed.description
        return commit.subject.strip() or "(no description)"


def classify(commit: Commit) -> Classification:
    """Classify a commit with the default rule set."""
    return CommitClassifier().classify(commit)
