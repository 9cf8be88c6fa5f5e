"""
Version control access for ai_changelog.

Only Git is supported. See :mod:`ai_changelog.vcs.git_client`.
"""

from .git_client import GitClient, RepoStateCache, WorkingStatus  # noqa: F401
from .models import Commit, FileChange  # noqa: F401
