import json
import unittest
from unittest.mock import patch

import pytest

from ai_changelog.analysis.classifier import classify
from ai_changelog.errors import ProviderError
from ai_changelog.llm.mock_client import MockProvider
from ai_changelog.llm.summarizer import (
    Summarizer,
    max_tokens_for,
    parse_response,
    rule_based_summary,
    validate_category,
    validate_impact,
)
from ai_changelog.metrics import MetricsCollector
from ai_changelog.vcs.models import Commit, FileChange


def make_commit(subject, files, insertions=0, deletions=0):
    return Commit(
        hash="b" * 40,
        author="Dev",
        date="2024-05-01T12:00:00+00:00",
        subject=subject,
        files=tuple(files),
        insertions=insertions,
        deletions=deletions,
    )


def modified(count, prefix="src/module", status="M"):
    return [FileChange(f"{prefix}{i}.py", status) for i in range(count)]


class TestValidateCategory(unittest.TestCase):
    def test_documentation_only_forces_docs(self) -> None:
        files = [FileChange("README.md", "M"), FileChange("docs/guide.md", "M")]
        self.assertEqual(validate_category("feature", files, 10, 2), "docs")

    def test_tests_only_forces_test(self) -> None:
        files = [FileChange("tests/test_api.py", "M"), FileChange("src/Button.test.tsx", "A")]
        self.assertEqual(validate_category("fix", files, 10, 2), "test")

    def test_wide_fix_becomes_feature(self) -> None:
        self.assertEqual(validate_category("fix", modified(12), 100, 10), "feature")

    def test_wide_fix_with_heavy_deletions_becomes_refactor(self) -> None:
        self.assertEqual(validate_category("fix", modified(12), 100, 80), "refactor")

    def test_fix_adding_many_files_becomes_feature(self) -> None:
        self.assertEqual(validate_category("fix", modified(6, status="A"), 60, 0), "feature")

    def test_fix_with_large_net_insertions(self) -> None:
        files = modified(2)
        self.assertEqual(validate_category("fix", files, 1200, 100), "feature")
        self.assertEqual(validate_category("fix", files, 1200, 300), "fix")

    def test_fifteen_new_files_with_large_insertions_become_feature(self) -> None:
        self.assertEqual(validate_category("fix", modified(15, status="A"), 1200, 0), "feature")

    def test_small_fix_is_kept(self) -> None:
        self.assertEqual(validate_category("fix", modified(3), 20, 5), "fix")
        self.assertEqual(validate_category("fix", [], 0, 0), "fix")

    def test_other_categories_untouched(self) -> None:
        self.assertEqual(validate_category("feature", modified(30), 5000, 0), "feature")


class TestValidateImpact(unittest.TestCase):
    def test_understated_impact_on_huge_change(self) -> None:
        self.assertEqual(validate_impact("low", modified(60), 100, "chore: bump"), "high")
        self.assertEqual(validate_impact("minimal", modified(1), 6000, "chore: bump"), "high")

    def test_minimal_on_medium_change(self) -> None:
        self.assertEqual(validate_impact("minimal", modified(25), 100, "chore: x"), "medium")
        self.assertEqual(validate_impact("minimal", modified(1), 2500, "chore: x"), "medium")
        self.assertEqual(validate_impact("minimal", modified(11, status="A"), 100, "chore: x"), "medium")

    def test_overstated_impact_on_small_change(self) -> None:
        self.assertEqual(validate_impact("critical", modified(2), 50, "fix: typo"), "medium")
        self.assertEqual(validate_impact("high", modified(3), 100, "fix: typo"), "medium")

    def test_breaking_subject_keeps_high_impact(self) -> None:
        self.assertEqual(validate_impact("critical", modified(1), 10, "feat!: drop v1 API"), "critical")
        self.assertEqual(validate_impact("high", modified(1), 10, "Breaking: new config format"), "high")

    def test_consistent_impact_untouched(self) -> None:
        self.assertEqual(validate_impact("medium", modified(5), 300, "feat: x"), "medium")
        self.assertEqual(validate_impact("high", modified(4), 50, "feat: x"), "high")


@pytest.mark.parametrize(
    "mode, files, lines, expected",
    [
        ("standard", 1, 10, 2000),
        ("detailed", 1, 10, 3000),
        ("enterprise", 1, 10, 4000),
        ("enterprise", 60, 10, 6000),
        ("detailed", 5, 11000, 5000),
        ("unknown", 1, 1, 2000),
    ],
)
def test_max_tokens_for(mode, files, lines, expected) -> None:
    assert max_tokens_for(mode, files, lines) == expected


class TestParseResponse(unittest.TestCase):
    def test_json_surrounded_by_prose(self) -> None:
        content = 'Here is the analysis:\n```json\n{"summary": "Add login", "impact": "low"}\n```\nDone.'
        self.assertEqual(parse_response(content), {"summary": "Add login", "impact": "low"})

    def test_thinking_is_ignored(self) -> None:
        content = '<think>maybe {"summary": "wrong"}</think>{"summary": "right"}'
        self.assertEqual(parse_response(content)["summary"], "right")

    def test_no_json(self) -> None:
        with self.assertRaises(ProviderError) as ctx:
            parse_response("I cannot help with that", "ollama")
        self.assertEqual(ctx.exception.kind, "invalid_response")
        self.assertEqual(ctx.exception.context["provider"], "ollama")

    def test_malformed_json(self) -> None:
        with self.assertRaises(ProviderError) as ctx:
            parse_response("{summary: nope}")
        self.assertEqual(ctx.exception.kind, "invalid_response")

    def test_empty_content(self) -> None:
        with self.assertRaises(ProviderError):
            parse_response("")


class TestSummarizer(unittest.TestCase):
    def setUp(self) -> None:
        self.commit = make_commit(
            "feat: add login form",
            [FileChange("src/ui/login_form.py", "A", diff="+def render():\n+    return None\n", additions=2)],
            insertions=2,
        )
        self.classification = classify(self.commit)

    def test_summarize_parses_and_guards(self) -> None:
        answer = {
            "summary": "Add login form",
            "impact": "high",
            "category": "feat",
            "description": "Adds a login form to the UI.",
            "technicalDetails": "New render function",
            "breakingChanges": "false",
            "riskFactors": "session handling",
        }
        provider = MockProvider(responses=["Sure!\n" + json.dumps(answer)])
        metrics = MetricsCollector()
        summary = Summarizer(provider, metrics=metrics).summarize(self.commit, self.classification)

        self.assertEqual(summary.summary, "Add login form")
        self.assertEqual(summary.category, "feature")
        self.assertEqual(summary.impact, "medium")
        self.assertFalse(summary.breaking_changes)
        self.assertEqual(tuple(summary.risk_factors), ("session handling",))
        self.assertEqual(summary.technical_details, "New render function")
        self.assertEqual(summary.source, "ai")
        self.assertFalse(summary.is_fallback)
        self.assertEqual(metrics.api_calls, 1)
        self.assertGreater(metrics.total_tokens, 0)

    def test_unknown_values_fall_back_to_classification(self) -> None:
        provider = MockProvider(responses=['{"summary": "", "impact": "huge", "category": "banana", "confidence": 85}'])
        summary = Summarizer(provider).summarize(self.commit, self.classification)
        self.assertEqual(summary.summary, "add login form")
        self.assertEqual(summary.description, "add login form")
        self.assertEqual(summary.impact, self.classification.importance)
        self.assertEqual(summary.category, "feature")
        self.assertAlmostEqual(summary.confidence, 0.85)

    def test_summarize_without_provider_raises(self) -> None:
        with self.assertRaises(ProviderError) as ctx:
            Summarizer(None).summarize(self.commit, self.classification)
        self.assertEqual(ctx.exception.kind, "unavailable")

    def test_fallback_on_unparseable_answer(self) -> None:
        metrics = MetricsCollector()
        provider = MockProvider(responses=["no json here"])
        summary = Summarizer(provider, metrics=metrics).summarize_or_fallback(self.commit, self.classification)
        self.assertTrue(summary.is_fallback)
        self.assertEqual(summary.source, "rule-based")
        self.assertTrue(summary.fallback_reason.startswith("invalid_response"))
        self.assertEqual(summary.summary, "add login form")
        self.assertEqual(metrics.api_calls, 1)
        self.assertEqual(metrics.rule_based_fallbacks, 1)

    def test_fallback_without_provider(self) -> None:
        metrics = MetricsCollector()
        summary = Summarizer(None, metrics=metrics).summarize_or_fallback(self.commit, self.classification)
        self.assertEqual(summary.category, "feat")
        self.assertEqual(summary.impact, self.classification.importance)
        self.assertEqual(metrics.rule_based_fallbacks, 1)
        self.assertEqual(metrics.api_calls, 0)

    def test_large_new_feature_answered_as_fix(self) -> None:
        commit = make_commit("update reporting", modified(15, prefix="src/reports/page", status="A"), insertions=1200)
        provider = MockProvider(responses=['{"summary": "Reporting pages", "impact": "high", "category": "fix"}'])
        summary = Summarizer(provider).summarize(commit, classify(commit))
        self.assertEqual(summary.category, "feature")
        self.assertEqual(summary.source, "ai")

    def test_configured_max_tokens_caps_the_request(self) -> None:
        for cap, expected in ((500, 500), (9000, 2000), (None, 2000)):
            with self.subTest(cap=cap):
                provider = MockProvider()
                with patch.object(provider, "generate_completion", wraps=provider.generate_completion) as call:
                    Summarizer(provider, max_tokens=cap).summarize(self.commit, self.classification)
                self.assertEqual(call.call_args.kwargs["max_tokens"], expected)

    def test_build_messages_depends_on_mode(self) -> None:
        standard = Summarizer(None).build_messages(self.commit, self.classification)
        enterprise = Summarizer(None, mode="enterprise").build_messages(self.commit, self.classification)
        self.assertEqual([m["role"] for m in standard], ["system", "user"])
        self.assertIn("Subject: feat: add login form", standard[1]["content"])
        self.assertIn("src/ui/login_form.py", standard[1]["content"])
        self.assertIn("Languages: Python", standard[1]["content"])
        self.assertIn("Key files: src/ui/login_form.py", standard[1]["content"])
        self.assertNotIn('"businessValue"', standard[1]["content"])
        self.assertIn('"highlights"', enterprise[1]["content"])
        self.assertIn('"confidence"', enterprise[1]["content"])

    def test_invalid_mode(self) -> None:
        with self.assertRaises(ValueError):
            Summarizer(None, mode="verbose")


def test_rule_based_summary_for_breaking_commit() -> None:
    commit = make_commit("fix!: remove legacy endpoint", [FileChange("src/api/legacy.js", "D")], deletions=40)
    classification = classify(commit)
    summary = rule_based_summary(commit, classification, reason="unavailable: no provider")
    assert summary.breaking_changes is True
    assert summary.migration_required is True
    assert summary.impact == "critical"
    assert summary.category == "fix"
    assert summary.is_fallback
    assert summary.fallback_reason == "unavailable: no provider"
