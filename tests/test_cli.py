import json
import unittest
from pathlib import Path
from unittest.mock import Mock, patch

from click.testing import CliRunner

import ai_changelog.cli as cli
from ai_changelog import __version__
from ai_changelog.errors import ConfigError, GitError, ProviderError, ValidationError
from ai_changelog.orchestrator import ChangelogOrchestrator
from ai_changelog.vcs.models import Commit, FileChange


class DummyGitClient:
    def __init__(self, commits=(), working=(), diffs=None):
        self.commits = list(commits)
        self.working = list(working)
        self.diffs = dict(diffs or {})
        self.repo_root = Path("/repo")
        self.stage_called = []
        self.commit_called = []

    def get_commit_hashes(self, since=None, limit=None, rev_range=None):
        return [c.hash for c in self.commits][: limit or None]

    def get_commit(self, commit_hash):
        return next(c for c in self.commits if c.hash == commit_hash)

    def get_working_changes(self):
        return list(self.working)

    def get_diff(self, path, status="M"):
        return self.diffs.get(path, "")

    def get_working_stats(self):
        return {}

    def get_latest_tag(self):
        return "v1.0.0"

    def get_tags(self):
        return ["v1.0.0"]

    def get_current_branch(self):
        return "main"

    def get_recent_subjects(self, count=100):
        return [c.subject for c in self.commits]

    def count_commits_since(self, days):
        return len(self.commits)

    def get_branches(self):
        return ["main"]

    def get_untracked_files(self):
        return []

    def stage_files(self, files):
        self.stage_called.append(list(files))

    def commit(self, message):
        self.commit_called.append(message)


def sample_commits():
    return [
        Commit("2" * 40, "Dev", "2024-05-01", "fix: handle empty report", files=(FileChange("src/report.py", "M"),)),
        Commit("1" * 40, "Dev", "2024-04-30", "feat: add csv export", files=(FileChange("src/export.py", "A"),)),
    ]


def working_client():
    return DummyGitClient(
        working=[FileChange("README.md", "M"), FileChange("src/app.py", "M")],
        diffs={"README.md": "+docs", "src/app.py": "+def run():\n+    pass\n"},
    )


CONFIG = {"provider": "none", "include_attribution": True, "headlines": {}, "validation": {}}


class CliTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.runner = CliRunner()
        patcher = patch.object(cli, "load_config", return_value=dict(CONFIG))
        self.load_config = patcher.start()
        self.addCleanup(patcher.stop)

    def use_client(self, client, config=None):
        orchestrator = ChangelogOrchestrator(config or CONFIG, git_client=client)
        patcher = patch.object(cli, "build_orchestrator", return_value=orchestrator)
        patcher.start()
        self.addCleanup(patcher.stop)
        return orchestrator


class TestGenerate(CliTestCase):
    def test_generate_markdown_to_stdout(self) -> None:
        self.use_client(DummyGitClient(sample_commits()))
        result = self.runner.invoke(cli.main, ["generate", "--no-ai"])
        self.assertEqual(result.exit_code, cli.EXIT_SUCCESS, result.output)
        self.assertIn("# Changelog", result.output)
        self.assertIn("## [v1.0.0]", result.output)
        self.assertIn("- (feat) add csv export", result.output)
        self.assertIn("2 commit(s) processed", result.output)

    def test_generate_json_to_file(self) -> None:
        self.use_client(DummyGitClient(sample_commits()))
        with self.runner.isolated_filesystem():
            result = self.runner.invoke(
                cli.main,
                ["generate", "--format", "json", "-o", "out/changelog.json", "--version-name", "2.0.0", "--no-attribution"],
            )
            self.assertEqual(result.exit_code, cli.EXIT_SUCCESS, result.output)
            data = json.loads(Path("out/changelog.json").read_text(encoding="utf-8"))
        self.assertEqual(data["version"], "2.0.0")
        self.assertFalse(data["include_attribution"])
        self.assertIn("Changelog written to", result.output)

    def test_overrides_are_applied(self) -> None:
        with patch.object(cli, "GitClient") as git_client:
            git_client.find_repo_root.return_value = Path("/repo")
            config = cli.load_settings(Mock(obj={"config_path": None}), {"provider": "ollama", "analysis_mode": None})
        self.assertEqual(config["provider"], "ollama")
        self.load_config.assert_called_once_with(Path("/repo"), None)

    def test_degraded_run_warns(self) -> None:
        self.use_client(DummyGitClient(sample_commits()), {"provider": "auto"})
        result = self.runner.invoke(cli.main, ["generate"])
        self.assertEqual(result.exit_code, cli.EXIT_SUCCESS)
        self.assertIn("⚠ No AI provider available", result.output)

    def test_not_a_repository(self) -> None:
        cache = Mock()
        cache.repo_root.return_value = None
        orchestrator = ChangelogOrchestrator(CONFIG, repo_cache=cache, start_dir=Path("/nowhere"))
        with patch.object(cli, "build_orchestrator", return_value=orchestrator):
            result = self.runner.invoke(cli.main, ["generate"])
        self.assertEqual(result.exit_code, cli.EXIT_NO_REPO)
        self.assertIn("✗ Not a git repository", result.output)
        self.assertIn("💡 Initialize one with 'git init'", result.output)

    def test_config_error(self) -> None:
        self.load_config.side_effect = ConfigError("Invalid JSON in .aichangelog.json", "invalid_file")
        result = self.runner.invoke(cli.main, ["generate"])
        self.assertEqual(result.exit_code, cli.EXIT_CONFIG_ERROR)
        self.assertIn("Invalid JSON", result.output)

    def test_invalid_format_is_usage_error(self) -> None:
        result = self.runner.invoke(cli.main, ["generate", "--format", "pdf"])
        self.assertEqual(result.exit_code, cli.EXIT_INVALID_USAGE)


class TestWorking(CliTestCase):
    def test_no_changes(self) -> None:
        self.use_client(DummyGitClient())
        result = self.runner.invoke(cli.main, ["working", "--no-ai"])
        self.assertEqual(result.exit_code, cli.EXIT_NO_CHANGES)
        self.assertIn("No changes detected", result.output)

    def test_with_changes(self) -> None:
        self.use_client(working_client())
        result = self.runner.invoke(cli.main, ["working", "--no-ai"])
        self.assertEqual(result.exit_code, cli.EXIT_SUCCESS, result.output)
        self.assertIn("## [Unreleased]", result.output)
        self.assertIn("(working)", result.output)
        self.assertIn("Generated using aichangelog", result.output)

    def test_mode_version_and_attribution_options(self) -> None:
        seen = {}

        def build(config):
            seen.update(config)
            return ChangelogOrchestrator(config, git_client=working_client())

        with patch.object(cli, "build_orchestrator", side_effect=build):
            result = self.runner.invoke(
                cli.main,
                ["working", "--no-ai", "--mode", "detailed", "--version-name", "0.9.0", "--no-attribution"],
            )
        self.assertEqual(result.exit_code, cli.EXIT_SUCCESS, result.output)
        self.assertEqual(seen["analysis_mode"], "detailed")
        self.assertIn("## [0.9.0]", result.output)
        self.assertNotIn("Generated using aichangelog", result.output)


class TestRepositoryCommands(CliTestCase):
    def test_analyze_text(self) -> None:
        self.use_client(DummyGitClient(sample_commits()))
        result = self.runner.invoke(cli.main, ["analyze"])
        self.assertEqual(result.exit_code, cli.EXIT_SUCCESS, result.output)
        self.assertIn("🌿 Branch: main", result.output)
        self.assertIn("📊 Commits analyzed: 2", result.output)
        self.assertIn("• feat: 1", result.output)

    def test_analyze_json(self) -> None:
        self.use_client(DummyGitClient(sample_commits()))
        result = self.runner.invoke(cli.main, ["analyze", "--json", "--limit", "5"])
        self.assertEqual(result.exit_code, cli.EXIT_SUCCESS, result.output)
        data = json.loads(result.output[result.output.index("{"):])
        self.assertEqual(data["commits_analyzed"], 2)
        self.assertEqual(data["latest_tag"], "v1.0.0")

    def test_health(self) -> None:
        self.use_client(DummyGitClient(sample_commits()))
        result = self.runner.invoke(cli.main, ["health"])
        self.assertEqual(result.exit_code, cli.EXIT_SUCCESS, result.output)
        self.assertIn("🏥 Repository health:", result.output)
        self.assertIn("Add a README describing the project", result.output)


class TestValidate(CliTestCase):
    def test_valid_message(self) -> None:
        result = self.runner.invoke(cli.main, ["validate", "feat: add login button"])
        self.assertEqual(result.exit_code, cli.EXIT_SUCCESS, result.output)
        self.assertIn("Commit message is valid", result.output)

    def test_invalid_message(self) -> None:
        result = self.runner.invoke(cli.main, ["validate", "Updated some stuff here"])
        self.assertEqual(result.exit_code, cli.EXIT_VALIDATION_FAILED)
        self.assertIn("✗", result.output)

    def test_missing_message(self) -> None:
        result = self.runner.invoke(cli.main, ["validate"])
        self.assertEqual(result.exit_code, cli.EXIT_INVALID_USAGE)

    def test_empty_message(self) -> None:
        result = self.runner.invoke(cli.main, ["validate", "   "])
        self.assertEqual(result.exit_code, cli.EXIT_INVALID_USAGE)
        self.assertIn("Commit message is empty", result.output)

    def test_message_from_file(self) -> None:
        with self.runner.isolated_filesystem():
            Path("MSG").write_text("fix: handle empty config file\n", encoding="utf-8")
            result = self.runner.invoke(cli.main, ["validate", "--file", "MSG"])
        self.assertEqual(result.exit_code, cli.EXIT_SUCCESS, result.output)


class TestProviderCommands(CliTestCase):
    def test_providers_listing(self) -> None:
        self.load_config.return_value = {"provider": "auto", "ollama_host": "http://localhost:11434"}
        result = self.runner.invoke(cli.main, ["providers"])
        self.assertEqual(result.exit_code, cli.EXIT_SUCCESS, result.output)
        self.assertIn("Selected provider: auto", result.output)
        self.assertIn("✓ ollama (model: llama3)", result.output)
        self.assertIn("✗ openai (missing: openai_api_key)", result.output)

    def test_test_provider_without_provider(self) -> None:
        result = self.runner.invoke(cli.main, ["test-provider", "--provider", "none"])
        self.assertEqual(result.exit_code, cli.EXIT_CONFIG_ERROR)
        self.assertIn("No AI provider is configured", result.output)

    def test_test_provider_success(self) -> None:
        result = self.runner.invoke(cli.main, ["test-provider", "--provider", "mock"])
        self.assertEqual(result.exit_code, cli.EXIT_SUCCESS, result.output)
        self.assertIn("mock responded using model mock", result.output)

    def test_test_provider_failure(self) -> None:
        provider = Mock()
        provider.get_name.return_value = "ollama"
        provider.test_connection.side_effect = ProviderError("Failed to connect to ollama", "network")
        with patch.object(cli, "create_provider", return_value=provider):
            result = self.runner.invoke(cli.main, ["test-provider"])
        self.assertEqual(result.exit_code, cli.EXIT_LLM_FAILURE)
        self.assertIn("Check your network connection", result.output)


class TestCommit(CliTestCase):
    def test_yes_commits_every_group(self) -> None:
        client = working_client()
        self.use_client(client)
        result = self.runner.invoke(cli.main, ["commit", "--yes", "--no-ai"])
        self.assertEqual(result.exit_code, cli.EXIT_SUCCESS, result.output)
        self.assertEqual(client.stage_called, [["README.md"], ["src/app.py"]])
        self.assertEqual(client.commit_called[1], "feat: update 1 file\n\n- src/app.py")
        self.assertIn("Committed 2 groups", result.output)

    def test_no_changes(self) -> None:
        self.use_client(DummyGitClient())
        result = self.runner.invoke(cli.main, ["commit", "--yes", "--no-ai"])
        self.assertEqual(result.exit_code, cli.EXIT_NO_CHANGES)

    def test_all_declined(self) -> None:
        client = working_client()
        self.use_client(client)
        result = self.runner.invoke(cli.main, ["commit", "--no-ai"], input="d\nd\n")
        self.assertEqual(result.exit_code, cli.EXIT_ALL_DECLINED)
        self.assertEqual(client.commit_called, [])

    def test_edit_without_editor(self) -> None:
        client = working_client()
        self.use_client(client)
        result = self.runner.invoke(
            cli.main,
            ["commit", "--no-ai"],
            input="e\ndocs: describe the app\n\nMore words.\n.\nd\n",
            env={"EDITOR": None},
        )
        self.assertEqual(result.exit_code, cli.EXIT_SUCCESS, result.output)
        self.assertEqual(client.commit_called, ["docs: describe the app\n\nMore words."])
        self.assertIn("Declined: 1 group", result.output)


class TestHelpers(unittest.TestCase):
    def test_exit_code_for(self) -> None:
        self.assertEqual(cli.exit_code_for(GitError.not_a_repository("/x")), cli.EXIT_NO_REPO)
        self.assertEqual(cli.exit_code_for(GitError.invalid_reference("zz")), cli.EXIT_VCS_FAILURE)
        self.assertEqual(cli.exit_code_for(ConfigError.invalid_value("model", "a string")), cli.EXIT_CONFIG_ERROR)
        self.assertEqual(cli.exit_code_for(ProviderError("down", "unavailable")), cli.EXIT_LLM_FAILURE)
        self.assertEqual(cli.exit_code_for(ValidationError("bad", "invalid_input")), cli.EXIT_INVALID_USAGE)

    def test_version_option(self) -> None:
        result = CliRunner().invoke(cli.main, ["--version"])
        self.assertEqual(result.exit_code, 0)
        self.assertIn(f"aichangelog, version {__version__}", result.output)


if __name__ == "__main__":
    unittest.main()
