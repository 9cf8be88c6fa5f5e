"""
Grouping of working-directory changes for the commit workflow.

See :mod:`ai_changelog.grouping.change_classifier` and
:mod:`ai_changelog.grouping.group_model` for details.
"""

from .change_classifier import classify_change  # noqa: F401
from .group_model import CommitGroup  # noqa: F401
