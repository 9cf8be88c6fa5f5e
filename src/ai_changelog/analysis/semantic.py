"""
Semantic analysis of unified diffs.

:func:`analyze_diff` looks at the added and removed lines of a diff and
reports which structural patterns it contains (new functions, hooks,
API endpoints, schema changes, error handling...). The result is purely
descriptive: it enriches classification tags and AI prompts but never
changes a commit's breaking or importance decision.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import FrozenSet, List, Pattern, Set, Tuple


# ---------------------------------------------------------------------------
# Detector tables
# ---------------------------------------------------------------------------
# (pattern name, regex, capture element names)
CODE_PATTERNS: Tuple[Tuple[str, Pattern[str], bool], ...] = (
    ("function_definition", re.compile(r"\bfunction\s+(\w+)|\bdef\s+(\w+)\s*\("), True),
    ("class_definition", re.compile(r"\bclass\s+([A-Z]\w*)"), True),
    ("component_definition", re.compile(r"\b(?:const|let|var|function)\s+([A-Z]\w*)\s*(?:=\s*\(|\()"), True),
    ("hook_definition", re.compile(r"\b(?:const|function)\s+(use[A-Z]\w*)"), True),
    ("type_definition", re.compile(r"\b(?:interface|type)\s+([A-Z]\w*)"), True),
    ("constant_definition", re.compile(r"\bconst\s+([A-Z][A-Z0-9_]+)\s*="), True),
)

ADVANCED_PATTERNS: Tuple[Tuple[str, Pattern[str]], ...] = (
    ("error_handling", re.compile(r"\btry\s*[:{]|\bcatch\s*\(|\bexcept\b|\bthrow\s+new\b|\braise\s+\w+")),
    ("async_operations", re.compile(r"\basync\b|\bawait\b|\.then\(|\bPromise\b")),
    ("data_validation", re.compile(r"\bvalidate\w*|\bschema\.|\bz\.object\(|\byup\.", re.IGNORECASE)),
    ("authentication", re.compile(r"\b(auth\w*|login|logout|jwt|token|session)\b", re.IGNORECASE)),
    ("authorization", re.compile(r"\b(permission|role|rbac|policy|authorize\w*)\b", re.IGNORECASE)),
    ("caching", re.compile(r"\b(cache\w*|memoize|redis|lru_cache)\b", re.IGNORECASE)),
    ("testing", re.compile(r"\b(describe|it|test|expect|assert\w*)\s*\(")),
    ("styling", re.compile(r"\bclassName=|\bstyled\.|\bcss`|\bstyle=\{")),
    ("state_management", re.compile(r"\b(useState|useReducer|createStore|dispatch|setState)\b")),
    ("routing", re.compile(r"\b(Route|Router|navigate|redirect|useRouter)\b")),
    ("data_fetching", re.compile(r"\b(fetch|axios|requests\.(?:get|post|put|delete)|useQuery|useSWR)\b")),
)

# (path predicate substrings, framework, [(pattern name, regex)])
FRAMEWORK_RULES: Tuple[Tuple[Tuple[str, ...], str, Tuple[Tuple[str, Pattern[str]], ...]], ...] = (
    (
        ("database/", "sql/", "migrations/"),
        "Database",
        (
            ("database_schema", re.compile(r"\b(CREATE|ALTER)\s+TABLE\b", re.IGNORECASE)),
            ("security_policy", re.compile(r"\b(CREATE|ALTER)\s+POLICY\b", re.IGNORECASE)),
        ),
    ),
    (
        (".tsx", ".jsx"),
        "React",
        (
            ("react_hooks", re.compile(r"\buse(State|Effect)\b")),
            ("performance_optimization", re.compile(r"\buse(Callback|Memo)\b")),
        ),
    ),
    (
        ("/api/", "route."),
        "API",
        (
            (
                "api_endpoint",
                re.compile(
                    r"export\s+(?:async\s+)?(?:function\s+|const\s+)?(GET|POST|PUT|DELETE|PATCH)\b"
                    r"|\b(?:app|router)\.(get|post|put|delete|patch)\s*\(",
                ),
            ),
        ),
    ),
)

BINARY_MARKERS = ("Binary files", "GIT binary patch", "Binary file or diff unavailable")


@dataclass(frozen=True)
class DiffAnalysis:
    """Structural signals found in a diff."""

    patterns: FrozenSet[str] = field(default_factory=frozenset)
    frameworks: FrozenSet[str] = field(default_factory=frozenset)
    code_elements: FrozenSet[str] = field(default_factory=frozenset)
    change_type: str = "none"
    api_changes: Tuple[str, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not (self.patterns or self.frameworks or self.code_elements)


def changed_lines(diff_text: str) -> Tuple[List[str], List[str]]:
    """Split a unified diff into added and removed content lines.

    ``---``/``+++`` file headers are only recognised before the first
    ``@@`` hunk of each file, so content lines starting with ``--``
    (SQL or Lua comments) are kept.
    """
    added: List[str] = []
    removed: List[str] = []
    in_hunk = False
    for line in diff_text.splitlines():
        if line.startswith("diff --git"):
            in_hunk = False
            continue
        if line.startswith("@@"):
            in_hunk = True
            continue
        if not in_hunk and line.startswith(("--- ", "+++ ")):
            continue
        if line.startswith("+"):
            added.append(line[1:])
        elif line.startswith("-"):
            removed.append(line[1:])
    return added, removed


def _is_binary(diff_text: str) -> bool:
    return "\0" in diff_text or any(marker in diff_text for marker in BINARY_MARKERS)


def analyze_diff(diff_text: str, file_path: str) -> DiffAnalysis:
    """Detect structural patterns in the changed lines of a diff.

    Parameters
    ----------
    diff_text : str
        Unified diff text. May be empty.
    file_path : str
        Path of the file; selects framework-specific detectors.

    Returns
    -------
    DiffAnalysis
        Empty sets for empty or binary diffs.
    """
    if not diff_text or not diff_text.strip() or _is_binary(diff_text):
        return DiffAnalysis()

    added, removed = changed_lines(diff_text)
    if not added and not removed:
        return DiffAnalysis()
    changed = "\n".join(added + removed)

    patterns: Set[str] = set()
    frameworks: Set[str] = set()
    elements: Set[str] = set()
    api_changes: List[str] = []

    lowered_path = file_path.replace("\\", "/").lower()
    for markers, framework, detectors in FRAMEWORK_RULES:
        if not any(marker in lowered_path for marker in markers):
            continue
        frameworks.add(framework)
        for name, regex in detectors:
            for match in regex.finditer(changed):
                patterns.add(name)
                if name == "api_endpoint":
                    method = next(g for g in match.groups() if g)
                    api_changes.append(method.upper())

    for name, regex, captures in CODE_PATTERNS:
        for match in regex.finditer(changed):
            patterns.add(name)
            if captures:
                element = next((g for g in match.groups() if g), None)
                if element:
                    elements.add(element)

    for name, regex in ADVANCED_PATTERNS:
        if regex.search(changed):
            patterns.add(name)

    if added and not removed:
        change_type = "added"
    elif removed and not added:
        change_type = "removed"
    else:
        change_type = "modified"

    return DiffAnalysis(
        patterns=frozenset(patterns),
        frameworks=frozenset(frameworks),
        code_elements=frozenset(elements),
        change_type=change_type,
        api_changes=tuple(dict.fromkeys(api_changes)),
    )


def merge_analyses(analyses: List[DiffAnalysis]) -> DiffAnalysis:
    """Union several per-file analyses into one."""
    if not analyses:
        return DiffAnalysis()
    types = {a.change_type for a in analyses if a.change_type != "none"}
    return DiffAnalysis(
        patterns=frozenset().union(*(a.patterns for a in analyses)),
        frameworks=frozenset().union(*(a.frameworks for a in analyses)),
        code_elements=frozenset().union(*(a.code_elements for a in analyses)),
        change_type=types.pop() if len(types) == 1 else ("modified" if types else "none"),
        api_changes=tuple(dict.fromkeys(m for a in analyses for m in a.api_changes)),
    )
