"""
AI provider adapters and summarization.
"""

from .base import AIProvider, Completion, strip_thinking_tags  # noqa: F401
from .registry import ProviderRegistry, create_provider, default_registry  # noqa: F401
from .summarizer import Summarizer, Summary  # noqa: F401
