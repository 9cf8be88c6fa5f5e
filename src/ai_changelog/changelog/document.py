"""
Data model of an assembled changelog.

A :class:`ChangelogDocument` is the single source every renderer reads
from, so the Markdown, JSON and HTML encodings always agree on ordering
and grouping.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence, Tuple

from ai_changelog.analysis.classifier import Classification
from ai_changelog.analysis.conventional import strip_conventional_prefix
from ai_changelog.analysis.rules import CATEGORY_TO_TYPE
from ai_changelog.llm.summarizer import Summary
from ai_changelog.metrics import GenerationMetrics
from ai_changelog.vcs.models import Commit


DEFAULT_CONFIDENCE = 0.85
SEVERITY_RANK = {"critical": 0, "high": 1, "medium": 2, "low": 3, "minimal": 4}
UNKNOWN_SEVERITY_RANK = 5

BREAKING_SECTION = "breaking"
SECTION_ORDER: Tuple[str, ...] = (
    "feat",
    "fix",
    "perf",
    "refactor",
    "docs",
    "test",
    "build",
    "ci",
    "chore",
    "style",
    "revert",
    "merge",
    "other",
)
DEFAULT_HEADLINES: Dict[str, str] = {
    BREAKING_SECTION: "⚠️ Breaking Changes",
    "feat": "🚀 Features",
    "fix": "🐛 Bug Fixes",
    "perf": "⚡ Performance Improvements",
    "refactor": "♻️ Refactoring",
    "docs": "📚 Documentation",
    "test": "🧪 Tests",
    "build": "🔧 Build System",
    "ci": "⚙️ CI/CD",
    "chore": "🔧 Maintenance",
    "style": "💄 Code Style",
    "revert": "⏪ Reverts",
    "merge": "🔀 Merges",
    "other": "📦 Other Changes",
}


@dataclass(frozen=True)
class ChangelogEntry:
    """A commit with its classification and optional summary."""

    commit: Commit
    classification: Classification
    summary: Optional[Summary] = None

    @property
    def has_ai_summary(self) -> bool:
        return self.summary is not None and not self.summary.is_fallback

    @property
    def breaking(self) -> bool:
        if self.classification.breaking:
            return True
        return self.has_ai_summary and self.summary.breaking_changes

    @property
    def severity(self) -> str:
        if self.summary is not None:
            return self.summary.impact
        return self.classification.importance

    @property
    def entry_type(self) -> str:
        if self.has_ai_summary:
            return CATEGORY_TO_TYPE.get(self.summary.category, self.classification.commit_type)
        return self.classification.commit_type

    @property
    def text(self) -> str:
        raw = self.summary.summary if self.summary is not None else self.classification.description
        return strip_conventional_prefix(raw) or self.commit.subject

    @property
    def details(self) -> str:
        if not self.has_ai_summary:
            return ""
        if self.summary.technical_details:
            return self.summary.technical_details
        if self.summary.description and self.summary.description != self.summary.summary:
            return self.summary.description
        return ""

    @property
    def confidence(self) -> int:
        value = self.summary.confidence if self.summary is not None else None
        return int(round((DEFAULT_CONFIDENCE if value is None else value) * 100))


@dataclass(frozen=True)
class DocumentEntry:
    """Rendered view of one changelog line."""

    hash: str
    short_hash: str
    type: str
    summary: str
    breaking: bool
    severity: str
    details: str
    confidence: int
    highlights: Tuple[str, ...] = ()
    migration_notes: str = ""
    risk_factors: Tuple[str, ...] = ()
    author: str = ""
    date: str = ""
    categories: Tuple[str, ...] = ()
    importance: str = ""
    impact: str = ""
    source: str = "rule-based"

    @classmethod
    def from_entry(cls, entry: ChangelogEntry) -> "DocumentEntry":
        summary = entry.summary
        ai = entry.has_ai_summary
        return cls(
            hash=entry.commit.hash,
            short_hash=entry.commit.short_hash,
            type=entry.entry_type,
            summary=entry.text,
            breaking=entry.breaking,
            severity=entry.severity,
            details=entry.details,
            confidence=entry.confidence,
            highlights=tuple(summary.highlights) if ai else (),
            migration_notes=summary.migration_notes if ai else "",
            risk_factors=tuple(summary.risk_factors) if ai else (),
            author=entry.commit.author,
            date=entry.commit.date,
            categories=entry.classification.categories,
            importance=entry.classification.importance,
            impact=entry.classification.impact,
            source=summary.source if summary is not None else "rule-based",
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "hash": self.hash,
            "short_hash": self.short_hash,
            "type": self.type,
            "summary": self.summary,
            "breaking": self.breaking,
            "severity": self.severity,
            "details": self.details,
            "confidence": self.confidence,
            "highlights": list(self.highlights),
            "migration_notes": self.migration_notes,
            "risk_factors": list(self.risk_factors),
            "author": self.author,
            "date": self.date,
            "categories": list(self.categories),
            "importance": self.importance,
            "impact": self.impact,
            "source": self.source,
        }


@dataclass(frozen=True)
class ChangelogSection:
    key: str
    heading: str
    entries: Tuple[DocumentEntry, ...]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "key": self.key,
            "heading": self.heading,
            "entries": [entry.to_dict() for entry in self.entries],
        }


@dataclass(frozen=True)
class ReleaseInsights:
    total_commits: int
    type_counts: Dict[str, int]
    breaking_count: int
    risk_level: str
    complexity: str
    affected_areas: Tuple[str, ...]
    deployment_notes: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_commits": self.total_commits,
            "type_counts": dict(self.type_counts),
            "breaking_count": self.breaking_count,
            "risk_level": self.risk_level,
            "complexity": self.complexity,
            "affected_areas": list(self.affected_areas),
            "deployment_notes": list(self.deployment_notes),
        }


@dataclass(frozen=True)
class ChangelogDocument:
    """An assembled changelog, ready to be rendered."""

    version: str
    release_date: str
    sections: Tuple[ChangelogSection, ...]
    generated_at: datetime
    insights: Optional[ReleaseInsights] = None
    metrics: Optional[GenerationMetrics] = None
    include_attribution: bool = True

    @property
    def entries(self) -> List[DocumentEntry]:
        return [entry for section in self.sections for entry in section.entries]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "version": self.version,
            "release_date": self.release_date,
            "generated_at": self.generated_at.isoformat(),
            "sections": [section.to_dict() for section in self.sections],
            "insights": self.insights.to_dict() if self.insights else None,
            "metrics": self.metrics.to_dict() if self.metrics else None,
            "include_attribution": self.include_attribution,
        }


def headline_for(key: str, overrides: Optional[Dict[str, str]] = None) -> str:
    if overrides and key in overrides:
        return overrides[key]
    return DEFAULT_HEADLINES.get(key, key.capitalize())


def ordered_section_keys(keys: Sequence[str]) -> List[str]:
    """Order section keys: known types first in fixed order, unknown ones after."""
    known = [key for key in SECTION_ORDER if key in keys]
    extra = [key for key in keys if key not in SECTION_ORDER]
    return known + extra
