"""
Diff extraction and prompt sampling.
"""

from .diff_extractor import build_working_commit, extract_diffs  # noqa: F401
from .sampling import DiffSampler  # noqa: F401
