"""Tests for commit message generator."""

import unittest
from unittest.mock import Mock

from ai_changelog.errors import ProviderError
from ai_changelog.llm.base import Completion
from ai_changelog.llm.commit_message_generator import CommitMessageGenerator
from ai_changelog.metrics import MetricsCollector


def provider_returning(content, usage=None):
    provider = Mock()
    provider.generate_completion.return_value = Completion(content=content, usage=usage or {})
    return provider


class TestCommitMessageGenerator(unittest.TestCase):
    """Tests for CommitMessageGenerator."""

    def test_generate_groups_basic(self):
        provider = provider_returning("feat: Add new feature\n\nDetailed description.")
        generator = CommitMessageGenerator(provider)

        groups = generator.generate_groups({"feature.py": "+def new_feature(): pass"})

        self.assertEqual(len(groups), 1)
        self.assertEqual(groups[0].type, "feat")
        self.assertEqual(groups[0].message, "feat: add new feature\n\nDetailed description.")
        self.assertEqual(groups[0].diffs, {"feature.py": "+def new_feature(): pass"})

    def test_groups_in_first_seen_order(self):
        generator = CommitMessageGenerator(None)
        diffs = {
            "README.md": "+More docs",
            "src/app.py": "+def run(): pass",
            "docs/guide.md": "+A guide",
        }

        groups = generator.generate_groups(diffs)

        self.assertEqual([g.type for g in groups], ["docs", "feat"])
        self.assertEqual(groups[0].files, ["README.md", "docs/guide.md"])

    def test_statuses_influence_classification(self):
        generator = CommitMessageGenerator(None)
        diffs = {"src/settings_table.py": "+VALUE = 1"}
        self.assertEqual(generator.generate_groups(diffs, {"src/settings_table.py": "A"})[0].type, "feat")
        self.assertEqual(generator.generate_groups(diffs, {"src/settings_table.py": "M"})[0].type, "chore")

    def test_fallback_without_provider(self):
        metrics = MetricsCollector()
        generator = CommitMessageGenerator(None, metrics)

        groups = generator.generate_groups({"tests/test_example.py": "+def test_something(): pass"})

        self.assertEqual(groups[0].message, "test: update 1 file\n\n- tests/test_example.py")
        self.assertEqual(metrics.rule_based_fallbacks, 0)

    def test_fallback_on_provider_error(self):
        provider = Mock()
        provider.generate_completion.side_effect = ProviderError("Connection failed", "network")
        metrics = MetricsCollector()
        generator = CommitMessageGenerator(provider, metrics)

        groups = generator.generate_groups(
            {"tests/test_a.py": "+def test_a(): pass", "tests/test_b.py": "+def test_b(): pass"}
        )

        self.assertEqual(groups[0].subject, "test: update 2 files")
        self.assertIn("- tests/test_b.py", groups[0].message)
        self.assertEqual(metrics.rule_based_fallbacks, 1)

    def test_fallback_on_empty_answer(self):
        generator = CommitMessageGenerator(provider_returning("   "))
        groups = generator.generate_groups({"src/app.py": "+def run(): pass"})
        self.assertEqual(groups[0].subject, "feat: update 1 file")

    def test_records_api_usage(self):
        usage = {"prompt_tokens": 40, "completion_tokens": 10, "total_tokens": 50}
        metrics = MetricsCollector()
        generator = CommitMessageGenerator(provider_returning("feat: add run", usage), metrics)
        generator.generate_groups({"src/app.py": "+def run(): pass"})
        self.assertEqual(metrics.api_calls, 1)
        self.assertEqual(metrics.total_tokens, 50)

    def test_prompt_contains_changed_lines_only(self):
        provider = provider_returning("fix: handle empty input")
        generator = CommitMessageGenerator(provider)
        diff = "--- a/src/parse.py\n+++ b/src/parse.py\n@@ -1 +1,2 @@\n-old()\n+# fix crash on empty input\n+new()\n"

        generator.generate_groups({"src/parse.py": diff, "src/empty.py": ""}, {"src/empty.py": "A"})

        prompts = [call.args[0][0]["content"] for call in provider.generate_completion.call_args_list]
        fix_prompt = next(p for p in prompts if "src/parse.py" in p)
        self.assertIn("-old()", fix_prompt)
        self.assertIn("+# fix crash on empty input", fix_prompt)
        self.assertNotIn("+++ b/src/parse.py", fix_prompt)
        self.assertIn("Line 1: fix:", fix_prompt)
        feat_prompt = next(p for p in prompts if "src/empty.py" in p)
        self.assertIn("(no diff available)", feat_prompt)


class TestCommitMessageExtraction(unittest.TestCase):
    """Tests for extracting commit messages from answers with meta-commentary."""

    def test_extract_message_with_preamble(self):
        provider = provider_returning(
            "Let me analyze the changes. Looking at the diff, a new feature was added.\n"
            "Here's the commit message:\n"
            "\n"
            "[feat]: Add user authentication system.\n"
            "\n"
            "Implements login and session management.\n"
            "\n"
            "- src/auth/login.py\n"
            "- src/auth/session.py"
        )
        generator = CommitMessageGenerator(provider)
        diffs = {
            "src/auth/login.py": "+def login(): pass",
            "src/auth/session.py": "+def session(): pass",
        }

        groups = generator.generate_groups(diffs)

        self.assertEqual(len(groups), 1)
        message = groups[0].message
        self.assertTrue(message.startswith("feat: add user authentication system\n"))
        self.assertNotIn("Let me analyze", message)
        self.assertNotIn("Here's the", message)
        self.assertIn("- src/auth/session.py", message)

    def test_mismatched_type_is_replaced(self):
        generator = CommitMessageGenerator(provider_returning("fix(api): Correct handler"))
        groups = generator.generate_groups({"src/handler.py": "+def handler(): pass"})
        self.assertEqual(groups[0].message, "feat: correct handler")

    def test_message_without_type_prefix(self):
        generator = CommitMessageGenerator(None)
        message = generator._extract_commit_message("Based on the diff, here it is.\nupdate the parser")
        self.assertEqual(message, "update the parser")
        self.assertEqual(generator._normalize_message(message, "chore"), "chore: update the parser")

    def test_normalize_rejects_empty_subject(self):
        generator = CommitMessageGenerator(None)
        with self.assertRaises(ValueError):
            generator._normalize_message("feat: .", "feat")


if __name__ == "__main__":
    unittest.main()
