"""
Changelog assembly and rendering.
"""

from .assembler import AssembleOptions, assemble, build_release_insights, sort_entries  # noqa: F401
from .document import ChangelogDocument, ChangelogEntry  # noqa: F401
from .renderers import render, render_html, render_json, render_markdown  # noqa: F401
