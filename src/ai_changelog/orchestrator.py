"""
Orchestration of the changelog pipeline.

:class:`ChangelogOrchestrator` runs Git data access, classification,
optional AI summarization and assembly for each requested operation.
Every run walks the stages of :class:`Stage`. Recoverable problems (no
AI provider, a failing non-critical git query, a provider error) are
recorded in ``degraded_reasons`` and the run finishes in the
``DEGRADED`` state with reduced output instead of aborting. The one
fatal precondition is the absence of a git repository.
"""

from __future__ import annotations

import enum
import logging
from collections import Counter
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

from ai_changelog.analysis.classifier import Classification, CommitClassifier
from ai_changelog.analysis.health import HealthReport, calculate_health_score, gather_health_metrics
from ai_changelog.analysis.message_validation import MessageValidation, validate_commit_message
from ai_changelog.changelog.assembler import AssembleOptions, assemble, build_release_insights
from ai_changelog.changelog.document import ChangelogDocument, ChangelogEntry, ReleaseInsights
from ai_changelog.changelog.renderers import render
from ai_changelog.config.loader import DEFAULTS
from ai_changelog.diff.diff_extractor import build_working_commit, extract_diffs
from ai_changelog.errors import ConfigError, GitError
from ai_changelog.grouping.group_model import CommitGroup
from ai_changelog.llm.base import AIProvider
from ai_changelog.llm.commit_message_generator import CommitMessageGenerator
from ai_changelog.llm.registry import ProviderRegistry, create_provider
from ai_changelog.llm.summarizer import Summarizer
from ai_changelog.metrics import GenerationMetrics, MetricsCollector
from ai_changelog.vcs.git_client import GitClient, RepoStateCache
from ai_changelog.vcs.models import Commit


logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())


DEFAULT_COMMIT_LIMIT = 10


class Stage(enum.Enum):
    IDLE = "idle"
    INITIALIZING = "initializing"
    COLLECTING = "collecting"
    CLASSIFYING = "classifying"
    SUMMARIZING = "summarizing"
    ASSEMBLING = "assembling"
    DONE = "done"
    DEGRADED = "degraded"


@dataclass
class ChangelogResult:
    """Rendered changelog plus the data it was built from."""

    content: str
    document: ChangelogDocument
    output_format: str
    entries: List[ChangelogEntry]
    state: Stage
    degraded_reasons: List[str] = field(default_factory=list)
    metrics: Optional[GenerationMetrics] = None

    @property
    def degraded(self) -> bool:
        return self.state is Stage.DEGRADED


@dataclass
class RepositoryAnalysis:
    branch: Optional[str]
    latest_tag: Optional[str]
    tag_count: int
    commits_analyzed: int
    type_counts: Dict[str, int]
    category_counts: Dict[str, int]
    breaking_commits: List[Dict[str, str]]
    high_risk_commits: List[Dict[str, str]]
    insights: Optional[ReleaseInsights]
    state: Stage = Stage.DONE
    degraded_reasons: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "branch": self.branch,
            "latest_tag": self.latest_tag,
            "tag_count": self.tag_count,
            "commits_analyzed": self.commits_analyzed,
            "type_counts": dict(self.type_counts),
            "category_counts": dict(self.category_counts),
            "breaking_commits": list(self.breaking_commits),
            "high_risk_commits": list(self.high_risk_commits),
            "insights": self.insights.to_dict() if self.insights else None,
            "state": self.state.value,
            "degraded_reasons": list(self.degraded_reasons),
        }


class ChangelogOrchestrator:
    """Facade sequencing the changelog pipeline.

    Parameters
    ----------
    config : Mapping[str, Any], optional
        Loaded configuration; defaults are used for missing keys.
    git_client : GitClient, optional
        Injected client; built from the detected repository root otherwise.
    repo_cache : RepoStateCache, optional
        Repository detection memo shared across operations.
    provider : AIProvider, optional
        Injected provider. When omitted the provider is resolved from
        the configuration during initialization.
    metrics : MetricsCollector, optional
    start_dir : Path, optional
        Directory used for repository detection; defaults to the cwd.
    """

    def __init__(
        self,
        config: Optional[Mapping[str, Any]] = None,
        git_client: Optional[GitClient] = None,
        repo_cache: Optional[RepoStateCache] = None,
        provider: Optional[AIProvider] = None,
        metrics: Optional[MetricsCollector] = None,
        start_dir: Optional[Path] = None,
        registry: Optional[ProviderRegistry] = None,
    ) -> None:
        merged = dict(DEFAULTS)
        merged.update(config or {})
        self.config = merged
        self.git_client = git_client
        self.repo_cache = repo_cache or RepoStateCache()
        self.provider = provider
        self._injected_provider = provider
        self._injected_metrics = metrics
        self.metrics = metrics or MetricsCollector()
        self.start_dir = Path(start_dir) if start_dir else Path.cwd()
        self.registry = registry
        self.classifier = CommitClassifier(self.config.get("commit_types"))
        self.state = Stage.IDLE
        self.transitions: List[Stage] = [Stage.IDLE]
        self.degraded_reasons: List[str] = []

    # ------------------------------------------------------------------
    # State handling
    # ------------------------------------------------------------------
    def _begin(self) -> None:
        self.state = Stage.IDLE
        self.transitions = [Stage.IDLE]
        self.degraded_reasons = []
        self.metrics = self._injected_metrics or MetricsCollector()

    def _enter(self, stage: Stage) -> None:
        logger.debug("Stage %s -> %s", self.state.value, stage.value)
        self.state = stage
        self.transitions.append(stage)

    def _degrade(self, reason: str) -> None:
        logger.warning("Continuing in degraded mode: %s", reason)
        self.degraded_reasons.append(reason)
        self.metrics.record_warning()

    def _finish(self) -> Stage:
        self.metrics.stop()
        self._enter(Stage.DEGRADED if self.degraded_reasons else Stage.DONE)
        return self.state

    # ------------------------------------------------------------------
    # Initialization
    # ------------------------------------------------------------------
    def _initialize(self, use_ai: bool = True) -> None:
        self._enter(Stage.INITIALIZING)
        if not use_ai:
            self.provider = None
            return
        if self._injected_provider is not None:
            self.provider = self._injected_provider
            return
        try:
            self.provider = create_provider(self.config, self.registry)
        except ConfigError as exc:
            self.provider = None
            self._degrade(f"AI provider unavailable: {exc}")
            return
        if self.provider is None and str(self.config.get("provider")).lower() != "none":
            self._degrade("No AI provider available; using rule-based summaries")

    def ensure_repository(self) -> GitClient:
        """Return the git client, detecting the repository if needed.

        Raises
        ------
        GitError
            With kind ``not_a_repository`` when no repository is found.
        """
        if self.git_client is not None:
            return self.git_client
        root = self.repo_cache.repo_root(self.start_dir)
        if root is None:
            raise GitError.not_a_repository(self.start_dir)
        self.git_client = GitClient(root, timeout=float(self.config.get("git_timeout", 30)))
        return self.git_client

    def _summarizer(self) -> Summarizer:
        return Summarizer(
            self.provider,
            mode=self.config.get("analysis_mode") or "standard",
            metrics=self.metrics,
            max_tokens=self.config.get("max_tokens"),
        )

    # ------------------------------------------------------------------
    # Pipeline stages
    # ------------------------------------------------------------------
    def _collect_commits(
        self,
        since: Optional[str],
        limit: Optional[int],
        rev_range: Optional[str],
    ) -> List[Commit]:
        client = self.ensure_repository()
        self._enter(Stage.COLLECTING)
        if limit is None and since is None and rev_range is None:
            limit = DEFAULT_COMMIT_LIMIT
        hashes = client.get_commit_hashes(since=since, limit=limit, rev_range=rev_range)
        commits: List[Commit] = []
        for commit_hash in hashes:
            try:
                commits.append(client.get_commit(commit_hash))
            except GitError as exc:
                self.metrics.record_error()
                self._degrade(f"Skipped unreadable commit {commit_hash[:7]}: {exc}")
        # git log lists newest first; changelog order is chronological
        commits.reverse()
        return commits

    def _collect_working(self) -> Optional[Commit]:
        client = self.ensure_repository()
        changes = client.get_working_changes()
        if not changes:
            return None
        diffs = extract_diffs(client, changes)
        try:
            stats = client.get_working_stats()
        except GitError as exc:
            self._degrade(f"Could not read working-tree statistics: {exc}")
            stats = {}
        return build_working_commit(changes, diffs, stats)

    def _classify(self, commits: List[Commit]) -> List[Classification]:
        self._enter(Stage.CLASSIFYING)
        classifications = []
        for commit in commits:
            classifications.append(self.classifier.classify(commit))
            self.metrics.record_commit(commit.file_count)
        return classifications

    def _summarize(
        self, commits: List[Commit], classifications: List[Classification]
    ) -> List[ChangelogEntry]:
        self._enter(Stage.SUMMARIZING)
        summarizer = self._summarizer()
        entries = []
        failures = 0
        for commit, classification in zip(commits, classifications):
            summary = summarizer.summarize_or_fallback(commit, classification)
            if self.provider is not None and summary.is_fallback:
                failures += 1
            entries.append(ChangelogEntry(commit, classification, summary))
        if failures:
            self._degrade(f"AI summary failed for {failures} commit(s); used rule-based summaries")
        return entries

    def _latest_tag(self) -> Optional[str]:
        try:
            return self.ensure_repository().get_latest_tag()
        except GitError as exc:
            self._degrade(f"Could not read tags: {exc}")
            return None

    def _assemble(
        self,
        entries: List[ChangelogEntry],
        version: Optional[str],
        output_format: str,
        include_attribution: Optional[bool],
    ) -> ChangelogResult:
        self._enter(Stage.ASSEMBLING)
        self.metrics.stop()
        attribution = self.config.get("include_attribution", True)
        if include_attribution is not None:
            attribution = include_attribution
        if version is None:
            version = self._latest_tag()
        snapshot = self.metrics.snapshot()
        options = AssembleOptions(
            headlines=dict(self.config.get("headlines") or {}),
            include_attribution=bool(attribution),
            metrics=snapshot,
        )
        document = assemble(entries, version, options)
        content = render(document, output_format)
        state = self._finish()
        return ChangelogResult(
            content=content,
            document=document,
            output_format=output_format,
            entries=entries,
            state=state,
            degraded_reasons=list(self.degraded_reasons),
            metrics=snapshot,
        )

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------
    def generate_changelog(
        self,
        version: Optional[str] = None,
        since: Optional[str] = None,
        limit: Optional[int] = None,
        rev_range: Optional[str] = None,
        include_working: bool = False,
        output_format: str = "markdown",
        include_attribution: Optional[bool] = None,
        use_ai: bool = True,
    ) -> ChangelogResult:
        """Generate a changelog from commit history.

        Parameters
        ----------
        version : str, optional
            Header version. Defaults to the latest tag, or ``Unreleased``
            when the repository has no tags.
        since : str, optional
            Date expression or ref; see :meth:`GitClient.get_commit_hashes`.
        limit : int, optional
            Maximum number of commits. Defaults to 10 when no range or
            ``since`` is given.
        rev_range : str, optional
            Explicit revision range.
        include_working : bool
            Also include uncommitted changes as a pseudo-commit.
        output_format : str
            ``markdown``, ``json`` or ``html``.
        include_attribution : bool, optional
            Overrides the configured attribution setting.
        use_ai : bool
            When False, skip provider detection and summarize rule-based.

        Raises
        ------
        GitError
            If no repository is found or the commit list cannot be read.
        """
        self._begin()
        self._initialize(use_ai)
        commits = self._collect_commits(since, limit, rev_range)
        if include_working:
            working = self._collect_working()
            if working is not None:
                commits.append(working)
        classifications = self._classify(commits)
        entries = self._summarize(commits, classifications)
        return self._assemble(entries, version, output_format, include_attribution)

    def generate_working_changelog(
        self,
        version: Optional[str] = None,
        output_format: str = "markdown",
        include_attribution: Optional[bool] = None,
        use_ai: bool = True,
    ) -> ChangelogResult:
        """Generate a changelog entry for uncommitted working-directory changes."""
        self._begin()
        self._initialize(use_ai)
        self.ensure_repository()
        self._enter(Stage.COLLECTING)
        working = self._collect_working()
        commits = [working] if working is not None else []
        classifications = self._classify(commits)
        entries = self._summarize(commits, classifications)
        return self._assemble(entries, version or "Unreleased", output_format, include_attribution)

    def analyze_repository(self, limit: int = 50) -> RepositoryAnalysis:
        """Classify recent commits and summarize the repository's state."""
        self._begin()
        self._initialize(use_ai=False)
        client = self.ensure_repository()
        commits = self._collect_commits(None, limit, None)
        try:
            branch: Optional[str] = client.get_current_branch()
        except GitError as exc:
            self._degrade(f"Could not read current branch: {exc}")
            branch = None
        try:
            tags = client.get_tags()
        except GitError as exc:
            self._degrade(f"Could not read tags: {exc}")
            tags = []
        latest_tag = self._latest_tag()
        classifications = self._classify(commits)
        entries = [ChangelogEntry(c, cl) for c, cl in zip(commits, classifications)]
        type_counts = Counter(cl.commit_type for cl in classifications)
        category_counts = Counter(cat for cl in classifications for cat in cl.categories)
        breaking = [
            {"hash": c.short_hash, "subject": c.subject}
            for c, cl in zip(commits, classifications)
            if cl.breaking
        ]
        high_risk = [
            {"hash": c.short_hash, "subject": c.subject, "importance": cl.importance}
            for c, cl in zip(commits, classifications)
            if cl.importance in ("high", "critical") and not cl.breaking
        ]
        state = self._finish()
        return RepositoryAnalysis(
            branch=branch,
            latest_tag=latest_tag,
            tag_count=len(tags),
            commits_analyzed=len(commits),
            type_counts=dict(type_counts.most_common()),
            category_counts=dict(category_counts.most_common()),
            breaking_commits=breaking,
            high_risk_commits=high_risk,
            insights=build_release_insights(entries) if entries else None,
            state=state,
            degraded_reasons=list(self.degraded_reasons),
        )

    def assess_health(self) -> HealthReport:
        """Score repository health."""
        self._begin()
        client = self.ensure_repository()
        self._enter(Stage.COLLECTING)
        metrics = gather_health_metrics(client)
        report = calculate_health_score(metrics)
        self._finish()
        return report

    def validate_commit_message(self, message: str) -> MessageValidation:
        """Validate a commit message; does not require a repository."""
        return validate_commit_message(message, self.config.get("validation") or {})

    # ------------------------------------------------------------------
    # Commit workflow
    # ------------------------------------------------------------------
    def propose_commit_groups(self, use_ai: bool = True) -> List[CommitGroup]:
        """Group working changes by type and propose a message for each group."""
        self._begin()
        self._initialize(use_ai)
        client = self.ensure_repository()
        self._enter(Stage.COLLECTING)
        changes = client.get_working_changes()
        if not changes:
            self._finish()
            return []
        diffs = extract_diffs(client, changes)
        statuses = {change.path: change.status for change in changes}
        self._enter(Stage.SUMMARIZING)
        generator = CommitMessageGenerator(self.provider, self.metrics)
        groups = generator.generate_groups(diffs, statuses)
        self._finish()
        return groups

    def commit_groups(self, groups: List[CommitGroup]) -> int:
        """Stage and commit each group; returns the number of commits made.

        The repository cache is reset afterwards because the commits
        change repository state.
        """
        client = self.ensure_repository()
        made = 0
        try:
            for group in groups:
                client.stage_files(group.files)
                client.commit(group.message)
                made += 1
        finally:
            self.repo_cache.reset()
        return made
