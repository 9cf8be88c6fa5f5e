"""
Top-level package for ai_changelog.

This package exposes the main CLI entry point via the
``ai_changelog.cli`` module. The pipeline itself is available through
:class:`ai_changelog.orchestrator.ChangelogOrchestrator`.
"""

__all__ = ["__version__"]

__version__ = "0.1.0"
