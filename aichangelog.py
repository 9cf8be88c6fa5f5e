#!/usr/bin/env python
"""
Thin wrapper script to invoke the ai_changelog CLI.

Running ``python aichangelog.py`` is equivalent to running the
``aichangelog`` console script installed via ``pyproject.toml``.
"""

from ai_changelog.cli import main


if __name__ == "__main__":
    main(prog_name="aichangelog")
