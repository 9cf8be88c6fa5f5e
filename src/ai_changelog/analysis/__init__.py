"""
Rule-based analysis of commits and diffs.

See :mod:`ai_changelog.analysis.classifier` for commit classification
and :mod:`ai_changelog.analysis.semantic` for diff analysis.
"""

from .classifier import Classification, CommitClassifier, classify  # noqa: F401
from .conventional import ConventionalParse, parse_conventional  # noqa: F401
from .semantic import DiffAnalysis, analyze_diff  # noqa: F401
