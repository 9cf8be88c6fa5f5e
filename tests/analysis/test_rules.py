import pytest

from ai_changelog.analysis.rules import (
    assess_file_importance,
    categorize_file,
    detect_language,
    infer_category_from_message,
    is_critical_file,
)


@pytest.mark.parametrize(
    "path, category",
    [
        ("pyproject.toml", "configuration"),
        ("package.json", "configuration"),
        ("Dockerfile", "configuration"),
        (".env.local", "configuration"),
        ("README.md", "documentation"),
        ("docs/guide/intro.html", "documentation"),
        ("tests/test_api.py", "tests"),
        ("src/Button.test.tsx", "tests"),
        ("src/app.py", "source"),
        ("web/styles/main.scss", "frontend"),
        ("assets/logo.svg", "assets"),
        ("webpack.config.js", "source"),
        ("scripts/rollup-plugin", "build"),
        ("LICENSE", "other"),
    ],
)
def test_categorize_file(path, category):
    assert categorize_file(path) == category


def test_first_matching_rule_wins():
    # .yml is configuration even inside a docs directory
    assert categorize_file("docs/mkdocs.yml") == "configuration"


def test_detect_language():
    assert detect_language("src/main.rs") == "Rust"
    assert detect_language("Makefile") is None


def test_assess_file_importance():
    assert assess_file_importance("package.json") == "critical"
    assert assess_file_importance("src/core.py") == "high"
    assert assess_file_importance("old/thing.py", "D") == "high"
    assert assess_file_importance("tools/helper.py") == "medium"
    assert assess_file_importance("notes.txt") == "low"


def test_is_critical_file():
    assert is_critical_file("db/migrations/001_init.sql")
    assert is_critical_file("src/auth/session.py")
    assert not is_critical_file("src/utils/strings.py")


def test_infer_category_from_message_order():
    assert infer_category_from_message("Add fix for crash") == "feature"
    assert infer_category_from_message("Resolve crash on exit") == "bugfix"
    assert infer_category_from_message("misc") == "other"
