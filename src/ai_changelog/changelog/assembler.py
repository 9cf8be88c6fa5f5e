"""
Changelog assembly.

:func:`assemble` orders entries with a strict comparator (breaking
first, then by severity, then by original position), buckets them into
category sections and attaches release insights and metrics. The
result is a :class:`~ai_changelog.changelog.document.ChangelogDocument`
that any renderer in :mod:`ai_changelog.changelog.renderers` can encode.
"""

from __future__ import annotations

from collections import Counter, OrderedDict
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional, Sequence, Tuple

from ai_changelog.changelog.document import (
    BREAKING_SECTION,
    SEVERITY_RANK,
    UNKNOWN_SEVERITY_RANK,
    ChangelogDocument,
    ChangelogEntry,
    ChangelogSection,
    DocumentEntry,
    ReleaseInsights,
    headline_for,
    ordered_section_keys,
)
from ai_changelog.metrics import GenerationMetrics


UNRELEASED = "Unreleased"
DEPENDENCY_FILES = ("package.json", "requirements", "pyproject.toml", "setup.py", "poetry.lock", "yarn.lock", "pnpm-lock", "go.mod", "cargo.toml")


@dataclass
class AssembleOptions:
    """Options controlling assembly.

    Attributes
    ----------
    headlines : Dict[str, str]
        Section heading overrides keyed by type (``feat``, ``fix``...)
        or ``breaking``.
    include_attribution : bool
        Append the attribution footer.
    include_insights : bool
        Add the release summary block.
    metrics : GenerationMetrics, optional
        Adds the metrics block when set.
    release_date : str, optional
        Date shown in the header; defaults to the date of ``generated_at``.
    generated_at : datetime, optional
        Timestamp of the run; defaults to now (UTC).
    """

    headlines: Dict[str, str] = field(default_factory=dict)
    include_attribution: bool = True
    include_insights: bool = True
    metrics: Optional[GenerationMetrics] = None
    release_date: Optional[str] = None
    generated_at: Optional[datetime] = None


def sort_key(indexed: Tuple[int, ChangelogEntry]) -> Tuple[int, int, int]:
    index, entry = indexed
    return (
        0 if entry.breaking else 1,
        SEVERITY_RANK.get(entry.severity, UNKNOWN_SEVERITY_RANK),
        index,
    )


def sort_entries(entries: Sequence[ChangelogEntry]) -> List[ChangelogEntry]:
    """Order entries: breaking first, then by severity, ties in input order."""
    return [entry for _, entry in sorted(enumerate(entries), key=sort_key)]


def build_release_insights(entries: Sequence[ChangelogEntry]) -> ReleaseInsights:
    """Aggregate release-level facts from a set of entries."""
    type_counts = Counter(entry.entry_type for entry in entries)
    ordered_counts = OrderedDict(
        (key, type_counts[key]) for key in ordered_section_keys(list(type_counts))
    )
    breaking = sum(1 for entry in entries if entry.breaking)
    severities = {entry.severity for entry in entries}

    if breaking or "critical" in severities:
        risk = "critical"
    elif "high" in severities:
        risk = "high"
    elif "medium" in severities:
        risk = "medium"
    else:
        risk = "low"

    average_files = (
        sum(entry.commit.file_count for entry in entries) / len(entries) if entries else 0
    )
    if average_files < 3:
        complexity = "low"
    elif average_files < 10:
        complexity = "medium"
    else:
        complexity = "high"

    areas: List[str] = []
    notes: List[str] = []
    for entry in entries:
        for category in entry.classification.file_categories.values():
            if category != "other" and category not in areas:
                areas.append(category)
        tags = entry.classification.tags
        if "configuration" in tags and "Review configuration changes before deploying" not in notes:
            notes.append("Review configuration changes before deploying")
        if "database-changes" in tags and "Run database migrations" not in notes:
            notes.append("Run database migrations")
        if any(
            marker in change.path.lower()
            for change in entry.commit.files
            for marker in DEPENDENCY_FILES
        ) and "Install updated dependencies" not in notes:
            notes.append("Install updated dependencies")

    return ReleaseInsights(
        total_commits=len(entries),
        type_counts=dict(ordered_counts),
        breaking_count=breaking,
        risk_level=risk,
        complexity=complexity,
        affected_areas=tuple(areas),
        deployment_notes=tuple(notes),
    )


def assemble(
    entries: Sequence[ChangelogEntry],
    version: Optional[str] = None,
    options: Optional[AssembleOptions] = None,
) -> ChangelogDocument:
    """Build a changelog document.

    Parameters
    ----------
    entries : Sequence[ChangelogEntry]
        Entries in chronological (input) order.
    version : str, optional
        Version label for the header; ``Unreleased`` when omitted.
    options : AssembleOptions, optional

    Returns
    -------
    ChangelogDocument
    """
    options = options or AssembleOptions()
    generated_at = options.generated_at or datetime.now(timezone.utc)
    release_date = options.release_date or generated_at.date().isoformat()

    buckets: Dict[str, List[DocumentEntry]] = {}
    for entry in sort_entries(entries):
        key = BREAKING_SECTION if entry.breaking else entry.entry_type
        buckets.setdefault(key, []).append(DocumentEntry.from_entry(entry))

    keys = [BREAKING_SECTION] if BREAKING_SECTION in buckets else []
    keys += ordered_section_keys([key for key in buckets if key != BREAKING_SECTION])
    sections = tuple(
        ChangelogSection(
            key=key,
            heading=headline_for(key, options.headlines),
            entries=tuple(buckets[key]),
        )
        for key in keys
    )
    insights = build_release_insights(entries) if options.include_insights and entries else None
    return ChangelogDocument(
        version=version or UNRELEASED,
        release_date=release_date,
        sections=sections,
        generated_at=generated_at,
        insights=insights,
        metrics=options.metrics,
        include_attribution=options.include_attribution,
    )
