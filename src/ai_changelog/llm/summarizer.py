"""
AI summarization of commits.

:class:`Summarizer` turns a commit and its rule-based classification
into a prompt, sends it to the configured provider and parses the JSON
answer into a :class:`Summary`. Model output is never trusted as is:
:func:`validate_category` and :func:`validate_impact` correct answers
that contradict the actual size and shape of the change.

When the provider is missing or fails, :meth:`Summarizer.summarize_or_fallback`
returns :func:`rule_based_summary` instead, so the pipeline always has
a description for every commit.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from textwrap import dedent
from typing import Any, Dict, List, Mapping, Optional, Sequence

from ai_changelog.analysis.classifier import Classification
from ai_changelog.analysis.rules import categorize_file
from ai_changelog.diff.sampling import DiffSampler
from ai_changelog.errors import ProviderError
from ai_changelog.llm.base import AIProvider, Message, strip_thinking_tags
from ai_changelog.metrics import MetricsCollector
from ai_changelog.vcs.models import Commit, FileChange


logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())


ANALYSIS_MODES = ("standard", "detailed", "enterprise")
IMPACT_LEVELS = ("critical", "high", "medium", "low", "minimal")

MODE_FIELDS: Dict[str, Sequence[str]] = {
    "standard": (
        "summary",
        "impact",
        "category",
        "description",
        "technicalDetails",
        "breakingChanges",
    ),
    "detailed": (
        "summary",
        "impact",
        "category",
        "description",
        "technicalDetails",
        "businessValue",
        "riskFactors",
        "recommendations",
        "breakingChanges",
        "migrationRequired",
    ),
    "enterprise": (
        "summary",
        "impact",
        "category",
        "description",
        "technicalDetails",
        "businessValue",
        "riskFactors",
        "recommendations",
        "breakingChanges",
        "migrationRequired",
        "highlights",
        "migrationNotes",
        "confidence",
    ),
}

FIELD_HINTS: Dict[str, str] = {
    "summary": '"<one line, imperative, max 80 chars>"',
    "impact": '"critical|high|medium|low|minimal"',
    "category": '"feature|fix|refactor|perf|docs|test|build|ci|chore|style|revert"',
    "description": '"<two or three sentences on what changed and why>"',
    "technicalDetails": '"<notable implementation details>"',
    "businessValue": '"<value for users or the business>"',
    "riskFactors": '["<risk>", ...]',
    "recommendations": '["<follow-up>", ...]',
    "breakingChanges": "true|false",
    "migrationRequired": "true|false",
    "highlights": '["<highlight>", ...]',
    "migrationNotes": '"<steps users must take, or empty>"',
    "confidence": "<0.0-1.0>",
}

MODE_MAX_TOKENS = {"standard": 2000, "detailed": 3000, "enterprise": 4000}
LARGE_COMMIT_BONUS_TOKENS = 2000
MAX_TOKENS_CAP = 8000
DEFAULT_TEMPERATURE = 0.3

CATEGORY_ALIASES = {
    "feat": "feature",
    "feature": "feature",
    "fix": "fix",
    "bugfix": "fix",
    "bug": "fix",
    "refactor": "refactor",
    "perf": "perf",
    "performance": "perf",
    "docs": "docs",
    "doc": "docs",
    "documentation": "docs",
    "test": "test",
    "tests": "test",
    "build": "build",
    "ci": "ci",
    "chore": "chore",
    "style": "style",
    "revert": "revert",
    "security": "fix",
}

JSON_BLOCK_RE = re.compile(r"\{[\s\S]*\}")
DOC_SUFFIXES = (".md", ".txt")
DOC_NAMES = ("readme", "changelog")


@dataclass(frozen=True)
class Summary:
    """Natural-language description of a commit."""

    summary: str
    description: str
    impact: str
    category: str
    technical_details: str = ""
    business_value: str = ""
    risk_factors: Sequence[str] = field(default_factory=tuple)
    recommendations: Sequence[str] = field(default_factory=tuple)
    breaking_changes: bool = False
    migration_required: bool = False
    highlights: Sequence[str] = field(default_factory=tuple)
    migration_notes: str = ""
    confidence: Optional[float] = None
    source: str = "ai"
    fallback_reason: Optional[str] = None

    @property
    def is_fallback(self) -> bool:
        return self.source != "ai"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "summary": self.summary,
            "description": self.description,
            "impact": self.impact,
            "category": self.category,
            "technical_details": self.technical_details,
            "business_value": self.business_value,
            "risk_factors": list(self.risk_factors),
            "recommendations": list(self.recommendations),
            "breaking_changes": self.breaking_changes,
            "migration_required": self.migration_required,
            "highlights": list(self.highlights),
            "migration_notes": self.migration_notes,
            "confidence": self.confidence,
            "source": self.source,
        }


# ---------------------------------------------------------------------------
# Guards
# ---------------------------------------------------------------------------
def _is_documentation(path: str) -> bool:
    lowered = path.lower()
    name = lowered.rsplit("/", 1)[-1]
    return lowered.endswith(DOC_SUFFIXES) or name.startswith(DOC_NAMES)


def _is_test(path: str) -> bool:
    return categorize_file(path) == "tests"


def validate_category(
    category: str, files: Sequence[FileChange], insertions: int, deletions: int
) -> str:
    """Correct an AI category that contradicts the shape of the change.

    Pure documentation or pure test file sets force ``docs``/``test``.
    A ``fix`` touching more than 10 files, adding more than 5 files or
    with more than 1000 net insertions becomes ``refactor`` when it also
    deletes more than half as many lines as it adds, ``feature`` otherwise.
    """
    paths = [change.path for change in files]
    if paths and all(_is_documentation(p) for p in paths):
        return "docs"
    if paths and all(_is_test(p) for p in paths):
        return "test"
    if category == "fix":
        added_files = sum(1 for change in files if change.is_added)
        if len(files) > 10 or added_files > 5 or insertions - deletions > 1000:
            corrected = "refactor" if deletions > insertions * 0.5 else "feature"
            logger.debug("Corrected category fix -> %s", corrected)
            return corrected
    return category


def validate_impact(
    impact: str, files: Sequence[FileChange], changed_lines: int, subject: str
) -> str:
    """Correct an AI impact level that contradicts the size of the change."""
    file_count = len(files)
    added_files = sum(1 for change in files if change.is_added)
    if impact in ("minimal", "low") and (file_count > 50 or changed_lines > 5000):
        return "high"
    if impact == "minimal" and (file_count > 20 or changed_lines > 2000 or added_files > 10):
        return "medium"
    if impact in ("critical", "high") and file_count <= 3 and changed_lines <= 100:
        if "!" not in subject and "breaking" not in subject.lower():
            return "medium"
    return impact


def max_tokens_for(mode: str, file_count: int, changed_lines: int) -> int:
    tokens = MODE_MAX_TOKENS.get(mode, MODE_MAX_TOKENS["standard"])
    if file_count > 50 or changed_lines > 10000:
        tokens += LARGE_COMMIT_BONUS_TOKENS
    return min(tokens, MAX_TOKENS_CAP)


# ---------------------------------------------------------------------------
# Response parsing
# ---------------------------------------------------------------------------
def parse_response(content: str, provider_name: str = "provider") -> Dict[str, Any]:
    """Extract the JSON object from a model answer.

    Raises
    ------
    ProviderError
        With kind ``invalid_response`` if no JSON object can be decoded.
    """
    text = strip_thinking_tags(content or "")
    match = JSON_BLOCK_RE.search(text)
    if not match:
        raise ProviderError.invalid_response(provider_name, "no JSON object in answer")
    try:
        data = json.loads(match.group(0))
    except json.JSONDecodeError as exc:
        raise ProviderError.invalid_response(provider_name, f"malformed JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise ProviderError.invalid_response(provider_name, "answer is not a JSON object")
    return data


def _as_list(value: Any) -> tuple:
    if value is None or value == "":
        return ()
    if isinstance(value, (list, tuple)):
        return tuple(str(item).strip() for item in value if str(item).strip())
    return (str(value).strip(),)


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("true", "yes", "1")
    if isinstance(value, (list, tuple)):
        return bool(value)
    return bool(value)


def _as_confidence(value: Any) -> Optional[float]:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if number > 1:
        number /= 100
    return max(0.0, min(number, 1.0))


def rule_based_summary(
    commit: Commit, classification: Classification, reason: Optional[str] = None
) -> Summary:
    """Summary derived solely from the rule-based classification."""
    return Summary(
        summary=classification.description,
        description=classification.description,
        impact=classification.importance,
        category=classification.commit_type,
        breaking_changes=classification.breaking,
        migration_required=classification.breaking,
        source="rule-based",
        fallback_reason=reason,
    )


class Summarizer:
    """Summarize commits with an AI provider.

    Parameters
    ----------
    provider : AIProvider, optional
        The backend. ``None`` means every call falls back to rule-based
        summaries.
    mode : str
        Analysis depth: ``standard``, ``detailed`` or ``enterprise``.
    metrics : MetricsCollector, optional
        Receives API-call, token and fallback counts.
    temperature : float
        Sampling temperature passed to the provider.
    max_tokens : int, optional
        Upper bound on the per-request budget from :func:`max_tokens_for`.
    """

    def __init__(
        self,
        provider: Optional[AIProvider],
        mode: str = "standard",
        metrics: Optional[MetricsCollector] = None,
        temperature: float = DEFAULT_TEMPERATURE,
        max_tokens: Optional[int] = None,
    ) -> None:
        if mode not in ANALYSIS_MODES:
            raise ValueError(f"Unknown analysis mode: {mode}")
        self.provider = provider
        self.mode = mode
        self.metrics = metrics
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.sampler = DiffSampler(mode)

    # ------------------------------------------------------------------
    # Prompt construction
    # ------------------------------------------------------------------
    def build_messages(self, commit: Commit, classification: Classification) -> List[Message]:
        sample = self.sampler.sample(commit.files)
        fields = MODE_FIELDS[self.mode]
        schema = ",\n".join(f'  "{name}": {FIELD_HINTS[name]}' for name in fields)
        patterns = ", ".join(sorted(classification.semantic.patterns)) or "none detected"
        system = (
            "You are a release engineer writing changelog entries. "
            "Answer with a single JSON object and nothing else."
        )
        prompt = dedent(
            """
            Analyze this commit and describe it for a changelog.

            Subject: {subject}
            Body: {body}
            Files changed: {files} (+{insertions}/-{deletions} lines)
            Rule-based classification: type={type}, categories={categories}, importance={importance}, breaking={breaking}
            Detected code patterns: {patterns}
            Languages: {languages}
            Key files: {key_files}

            CHANGES:
            {changes}

            Respond with JSON using exactly these fields:
            {{
            {schema}
            }}
            """
        ).strip().format(
            subject=commit.subject,
            body=(commit.body or "(none)")[:1000],
            files=commit.file_count,
            insertions=commit.insertions,
            deletions=commit.deletions,
            type=classification.commit_type,
            categories=", ".join(classification.categories),
            importance=classification.importance,
            breaking=str(classification.breaking).lower(),
            patterns=patterns,
            languages=", ".join(classification.languages) or "unknown",
            key_files=", ".join(classification.key_files()) or "none",
            changes=sample.render() or "(no file changes)",
            schema=schema,
        )
        return [
            {"role": "system", "content": system},
            {"role": "user", "content": prompt},
        ]

    # ------------------------------------------------------------------
    # Summarization
    # ------------------------------------------------------------------
    def summarize(self, commit: Commit, classification: Classification) -> Summary:
        """Ask the provider for a summary and validate it.

        Raises
        ------
        ProviderError
            If no provider is configured, the call fails or times out,
            or the answer cannot be parsed.
        """
        if self.provider is None:
            raise ProviderError("No AI provider configured", "unavailable")
        messages = self.build_messages(commit, classification)
        max_tokens = max_tokens_for(self.mode, commit.file_count, commit.changed_lines)
        if self.max_tokens:
            max_tokens = min(max_tokens, self.max_tokens)
        completion = self.provider.generate_completion(
            messages,
            max_tokens=max_tokens,
            temperature=self.temperature,
        )
        if self.metrics is not None:
            self.metrics.record_api_call(completion.usage)
        data = parse_response(completion.content, self.provider.get_name())
        return self._to_summary(data, commit, classification)

    def summarize_or_fallback(self, commit: Commit, classification: Classification) -> Summary:
        """Like :meth:`summarize` but never raises a :class:`ProviderError`."""
        try:
            return self.summarize(commit, classification)
        except ProviderError as exc:
            if self.provider is not None:
                logger.warning(
                    "AI summary failed for %s (%s): %s; using rule-based summary.",
                    commit.short_hash,
                    exc.kind,
                    exc,
                )
            if self.metrics is not None:
                self.metrics.record_fallback()
            return rule_based_summary(commit, classification, reason=f"{exc.kind}: {exc}")

    def _to_summary(
        self, data: Mapping[str, Any], commit: Commit, classification: Classification
    ) -> Summary:
        summary_text = str(data.get("summary") or "").strip() or classification.description
        impact = str(data.get("impact") or "").strip().lower()
        if impact not in IMPACT_LEVELS:
            impact = classification.importance
        category = CATEGORY_ALIASES.get(
            str(data.get("category") or "").strip().lower(),
            CATEGORY_ALIASES.get(classification.commit_type, "chore"),
        )
        category = validate_category(category, commit.files, commit.insertions, commit.deletions)
        impact = validate_impact(impact, commit.files, commit.changed_lines, commit.subject)
        return Summary(
            summary=summary_text,
            description=str(data.get("description") or "").strip() or summary_text,
            impact=impact,
            category=category,
            technical_details=str(data.get("technicalDetails") or "").strip(),
            business_value=str(data.get("businessValue") or "").strip(),
            risk_factors=_as_list(data.get("riskFactors")),
            recommendations=_as_list(data.get("recommendations")),
            breaking_changes=_as_bool(data.get("breakingChanges")),
            migration_required=_as_bool(data.get("migrationRequired")),
            highlights=_as_list(data.get("highlights")),
            migration_notes=str(data.get("migrationNotes") or "").strip(),
            confidence=_as_confidence(data.get("confidence")),
            source="ai",
        )
