"""
Repository health scoring.

Health is rated on four axes (commit quality, branch hygiene, file
organization and activity), each starting at 100 and losing points for
specific problems. The overall score is the rounded mean, mapped to a
letter grade.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List

from ai_changelog.analysis.rules import categorize_file
from ai_changelog.errors import GitError


logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())


@dataclass
class HealthMetrics:
    recent_commits: int = 0
    commits_last_30_days: int = 0
    average_subject_length: float = 0.0
    branch_count: int = 0
    untracked_count: int = 0
    has_gitignore: bool = False
    has_readme: bool = False
    untracked_by_category: Dict[str, int] = field(default_factory=dict)


@dataclass
class HealthReport:
    overall: int
    grade: str
    scores: Dict[str, int]
    metrics: HealthMetrics
    recommendations: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "overall": self.overall,
            "grade": self.grade,
            "scores": dict(self.scores),
            "metrics": asdict(self.metrics),
            "recommendations": list(self.recommendations),
        }


def grade_for(score: int) -> str:
    if score >= 90:
        return "A"
    if score >= 80:
        return "B"
    if score >= 70:
        return "C"
    if score >= 60:
        return "D"
    return "F"


def gather_health_metrics(git_client: Any) -> HealthMetrics:
    """Collect the raw numbers needed for scoring.

    Individual git failures leave the affected metric at its default;
    a repository without commits simply scores as inactive.
    """
    metrics = HealthMetrics()
    try:
        subjects = git_client.get_recent_subjects(100)
    except GitError as exc:
        logger.warning("Could not read recent commits: %s", exc)
        subjects = []
    metrics.recent_commits = len(subjects)
    if subjects:
        metrics.average_subject_length = round(sum(len(s) for s in subjects) / len(subjects), 1)
    metrics.commits_last_30_days = git_client.count_commits_since(30)
    try:
        metrics.branch_count = len(git_client.get_branches())
    except GitError as exc:
        logger.warning("Could not list branches: %s", exc)
    try:
        untracked = git_client.get_untracked_files()
    except GitError as exc:
        logger.warning("Could not list untracked files: %s", exc)
        untracked = []
    metrics.untracked_count = len(untracked)
    for path in untracked:
        category = categorize_file(path)
        metrics.untracked_by_category[category] = metrics.untracked_by_category.get(category, 0) + 1
    root = git_client.repo_root
    metrics.has_gitignore = (root / ".gitignore").exists()
    metrics.has_readme = any((root / name).exists() for name in ("README.md", "README.rst", "README.txt", "README"))
    return metrics


def calculate_health_score(metrics: HealthMetrics) -> HealthReport:
    """Score a repository from its :class:`HealthMetrics`."""
    recommendations: List[str] = []

    commit_quality = 100
    if metrics.recent_commits:
        if metrics.average_subject_length < 10:
            commit_quality -= 30
            recommendations.append("Write more descriptive commit subjects")
        elif metrics.average_subject_length < 20:
            commit_quality -= 15
            recommendations.append("Add a little more detail to commit subjects")

    branch_hygiene = 100
    if metrics.branch_count > 10:
        branch_hygiene -= 20
        if metrics.branch_count > 20:
            branch_hygiene -= 30
        recommendations.append(f"Clean up merged branches ({metrics.branch_count} local branches)")

    file_organization = 100
    if not metrics.has_gitignore:
        file_organization -= 20
        recommendations.append("Add a .gitignore file")
    if not metrics.has_readme:
        file_organization -= 15
        recommendations.append("Add a README describing the project")
    if metrics.untracked_count > 10:
        file_organization -= 20
        recommendations.append(
            f"Commit or ignore untracked files ({metrics.untracked_count} untracked)"
        )

    activity = 100
    if metrics.commits_last_30_days == 0:
        activity -= 50
        recommendations.append("No commits in the last 30 days")
    elif metrics.commits_last_30_days < 5:
        activity -= 20

    scores = {
        "commit_quality": commit_quality,
        "branch_hygiene": branch_hygiene,
        "file_organization": file_organization,
        "activity": activity,
    }
    overall = int(round(sum(scores.values()) / len(scores)))
    return HealthReport(
        overall=overall,
        grade=grade_for(overall),
        scores=scores,
        metrics=metrics,
        recommendations=recommendations,
    )
