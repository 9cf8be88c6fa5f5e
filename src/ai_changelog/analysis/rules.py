"""
Rule tables used by the commit classifier.

The heuristics are kept as ordered data rather than code so that the
precedence of each rule can be read and tested on its own. Order
matters in every tuple below: the first matching rule wins.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import Dict, FrozenSet, Optional, Pattern, Tuple


# ---------------------------------------------------------------------------
# Conventional commit types
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class CommitTypeRule:
    category: str
    impact: str
    importance: str
    user_facing: bool
    description: str


COMMIT_TYPES: Dict[str, CommitTypeRule] = {
    "feat": CommitTypeRule("feature", "minor", "medium", True, "New feature"),
    "fix": CommitTypeRule("bugfix", "patch", "medium", True, "Bug fix"),
    "docs": CommitTypeRule("documentation", "patch", "low", False, "Documentation"),
    "style": CommitTypeRule("style", "patch", "low", False, "Code style"),
    "refactor": CommitTypeRule("refactor", "patch", "medium", False, "Code refactoring"),
    "perf": CommitTypeRule("performance", "minor", "medium", True, "Performance improvement"),
    "test": CommitTypeRule("test", "patch", "low", False, "Tests"),
    "build": CommitTypeRule("build", "patch", "medium", False, "Build system"),
    "ci": CommitTypeRule("ci", "patch", "low", False, "Continuous integration"),
    "chore": CommitTypeRule("chore", "patch", "low", False, "Maintenance"),
    "revert": CommitTypeRule("revert", "patch", "medium", True, "Revert"),
    "merge": CommitTypeRule("merge", "patch", "low", False, "Merge"),
}

# Maps classifier categories back to the conventional type used for display.
CATEGORY_TO_TYPE: Dict[str, str] = {
    "feature": "feat",
    "feat": "feat",
    "bugfix": "fix",
    "fix": "fix",
    "documentation": "docs",
    "docs": "docs",
    "style": "style",
    "refactor": "refactor",
    "performance": "perf",
    "perf": "perf",
    "test": "test",
    "tests": "test",
    "build": "build",
    "ci": "ci",
    "chore": "chore",
    "revert": "revert",
    "merge": "merge",
    "security": "fix",
    "configuration": "chore",
}

IMPORTANCE_LEVELS: Tuple[str, ...] = ("low", "medium", "high", "critical")


# ---------------------------------------------------------------------------
# Breaking change signals
# ---------------------------------------------------------------------------
BREAKING_PATTERNS: Tuple[Pattern[str], ...] = (
    re.compile(r"BREAKING\s*CHANGE", re.IGNORECASE),
    re.compile(r"!:"),
    re.compile(r"breaking", re.IGNORECASE),
    re.compile(r"incompatible", re.IGNORECASE),
    re.compile(r"remove.*api", re.IGNORECASE),
    re.compile(r"drop.*support", re.IGNORECASE),
    re.compile(r"major.*change", re.IGNORECASE),
)

# Deleting a file whose path contains one of these is a breaking signal.
PUBLIC_SURFACE_MARKERS: Tuple[str, ...] = ("api", "interface", "types", "schema")

REMOVED_EXPORT_RE = re.compile(r"^-(?!--)\s*(export|function)\b", re.MULTILINE)


# ---------------------------------------------------------------------------
# Critical files
# ---------------------------------------------------------------------------
CRITICAL_FILE_PATTERNS: Tuple[Pattern[str], ...] = (
    re.compile(r"package\.json$"),
    re.compile(r"\.env"),
    re.compile(r"docker", re.IGNORECASE),
    re.compile(r"migration", re.IGNORECASE),
    re.compile(r"schema", re.IGNORECASE),
    re.compile(r"config", re.IGNORECASE),
    re.compile(r"security", re.IGNORECASE),
    re.compile(r"auth", re.IGNORECASE),
)

LARGE_CHANGE_LINES = 500
LARGE_CHANGE_FILES = 20


# ---------------------------------------------------------------------------
# File categories
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class FileRule:
    """A single categorization rule.

    A path matches when its extension is in ``extensions``, its base
    name is in ``names`` or starts with one of ``name_prefixes``, or the
    normalized path contains one of ``substrings``.
    """

    category: str
    extensions: FrozenSet[str] = frozenset()
    names: FrozenSet[str] = frozenset()
    name_prefixes: Tuple[str, ...] = ()
    name_suffixes: Tuple[str, ...] = ()
    substrings: Tuple[str, ...] = ()

    def matches(self, normalized: str, name: str, ext: str) -> bool:
        if ext in self.extensions or name in self.names:
            return True
        if any(name.startswith(prefix) for prefix in self.name_prefixes):
            return True
        if any(name.endswith(suffix) for suffix in self.name_suffixes):
            return True
        return any(sub in normalized for sub in self.substrings)


FILE_RULES: Tuple[FileRule, ...] = (
    FileRule(
        "configuration",
        extensions=frozenset({"toml", "yaml", "yml"}),
        names=frozenset({"package.json", "yarn.lock", ".gitignore"}),
        name_prefixes=("pnpm-lock", "dockerfile", ".env"),
    ),
    FileRule(
        "documentation",
        extensions=frozenset({"md", "txt", "rst"}),
        name_prefixes=("readme", "changelog"),
        substrings=("/docs/", "/doc/"),
    ),
    FileRule(
        "tests",
        extensions=frozenset({"test"}),
        name_prefixes=("test_",),
        name_suffixes=("_test.py",),
        substrings=("/test/", "/tests/", "__tests__", ".test.", ".spec."),
    ),
    FileRule(
        "source",
        extensions=frozenset({"js", "ts", "jsx", "tsx", "py", "java", "cpp", "c", "cs", "go", "rs", "php"}),
    ),
    FileRule(
        "frontend",
        extensions=frozenset({"html", "css", "scss", "sass", "less", "vue", "svelte"}),
    ),
    FileRule(
        "assets",
        extensions=frozenset({"png", "jpg", "jpeg", "gif", "svg", "ico", "webp"}),
    ),
    FileRule(
        "build",
        substrings=("webpack", "rollup", "vite", "babel", "eslint", "prettier", "/build/", "/dist/"),
    ),
)

DEFAULT_FILE_CATEGORY = "other"

LANGUAGES: Dict[str, str] = {
    "js": "JavaScript",
    "jsx": "JavaScript",
    "ts": "TypeScript",
    "tsx": "TypeScript",
    "py": "Python",
    "java": "Java",
    "cpp": "C++",
    "c": "C",
    "cs": "C#",
    "go": "Go",
    "rs": "Rust",
    "php": "PHP",
    "rb": "Ruby",
    "swift": "Swift",
    "kt": "Kotlin",
    "html": "HTML",
    "css": "CSS",
    "scss": "SCSS",
    "json": "JSON",
    "xml": "XML",
    "yaml": "YAML",
    "yml": "YAML",
    "md": "Markdown",
    "sql": "SQL",
    "sh": "Shell",
}


def _split_path(file_path: str) -> Tuple[str, str, str]:
    normalized = "/" + file_path.replace("\\", "/").lower().lstrip("/")
    name = PurePosixPath(normalized).name
    ext = name.rsplit(".", 1)[1] if "." in name.lstrip(".") else ""
    return normalized, name, ext


def categorize_file(file_path: str) -> str:
    """Return the category of a path using :data:`FILE_RULES`."""
    normalized, name, ext = _split_path(file_path)
    for rule in FILE_RULES:
        if rule.matches(normalized, name, ext):
            return rule.category
    return DEFAULT_FILE_CATEGORY


def detect_language(file_path: str) -> Optional[str]:
    """Return a language name for the path extension, or None."""
    _, _, ext = _split_path(file_path)
    return LANGUAGES.get(ext)


def assess_file_importance(file_path: str, status: str = "M") -> str:
    """Rate how important a change to ``file_path`` is likely to be.

    Returns one of ``critical``, ``high``, ``medium`` or ``low``.
    """
    normalized, name, _ = _split_path(file_path)
    if name in {"package.json", "pyproject.toml", "setup.py", "dockerfile"} or name.startswith(".env"):
        return "critical"
    if "/src/" in normalized or "/lib/" in normalized or status == "D":
        return "high"
    if categorize_file(file_path) in ("source", "configuration"):
        return "medium"
    return "low"


def is_critical_file(file_path: str) -> bool:
    return any(pattern.search(file_path) for pattern in CRITICAL_FILE_PATTERNS)


# ---------------------------------------------------------------------------
# Message keyword inference
# ---------------------------------------------------------------------------
CATEGORY_KEYWORDS: Tuple[Tuple[str, Tuple[str, ...]], ...] = (
    ("feature", ("add", "implement", "create", "new", "introduce", "feature")),
    ("bugfix", ("fix", "bug", "issue", "error", "problem", "resolve")),
    ("documentation", ("doc", "readme", "comment", "documentation")),
    ("test", ("test", "spec", "coverage")),
    ("refactor", ("refactor", "restructure", "reorganize", "cleanup", "clean up")),
    ("performance", ("perf", "performance", "optimize", "speed", "faster")),
    ("security", ("security", "vulnerability", "auth", "permission")),
    ("build", ("build", "deploy", "ci", "pipeline", "docker")),
    ("style", ("style", "format", "lint", "prettier")),
)

DEFAULT_MESSAGE_CATEGORY = "other"

MESSAGE_ACTIONS: Tuple[Tuple[str, Pattern[str]], ...] = (
    ("add", re.compile(r"\b(add|create|implement|introduce)\b", re.IGNORECASE)),
    ("remove", re.compile(r"\b(remove|delete|drop)\b", re.IGNORECASE)),
    ("update", re.compile(r"\b(update|modify|change|edit)\b", re.IGNORECASE)),
    ("fix", re.compile(r"\b(fix|resolve|correct|repair)\b", re.IGNORECASE)),
    ("improve", re.compile(r"\b(improve|enhance|optimize|better)\b", re.IGNORECASE)),
    ("refactor", re.compile(r"\b(refactor|restructure|reorganize|clean)\b", re.IGNORECASE)),
)

TECHNOLOGIES: Tuple[Tuple[str, Pattern[str]], ...] = (
    ("react", re.compile(r"\breact\b", re.IGNORECASE)),
    ("vue", re.compile(r"\bvue\b", re.IGNORECASE)),
    ("angular", re.compile(r"\bangular\b", re.IGNORECASE)),
    ("node", re.compile(r"\bnode(js)?\b", re.IGNORECASE)),
    ("typescript", re.compile(r"\b(typescript|ts)\b", re.IGNORECASE)),
    ("javascript", re.compile(r"\b(javascript|js)\b", re.IGNORECASE)),
    ("python", re.compile(r"\bpython\b", re.IGNORECASE)),
    ("database", re.compile(r"\b(database|db|sql|mongo|postgres|mysql)\b", re.IGNORECASE)),
    ("api", re.compile(r"\b(api|endpoint|rest|graphql)\b", re.IGNORECASE)),
    ("docker", re.compile(r"\bdocker\b", re.IGNORECASE)),
    ("kubernetes", re.compile(r"\b(kubernetes|k8s)\b", re.IGNORECASE)),
)


def infer_category_from_message(message: str) -> str:
    """Infer a category from free-form text using :data:`CATEGORY_KEYWORDS`."""
    lowered = message.lower()
    for category, keywords in CATEGORY_KEYWORDS:
        if any(keyword in lowered for keyword in keywords):
            return category
    return DEFAULT_MESSAGE_CATEGORY
