"""
Configuration loading for ai_changelog.
"""

from .loader import DEFAULTS, load_config  # noqa: F401
