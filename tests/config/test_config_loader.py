import json
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

from ai_changelog.config.loader import DEFAULTS, find_config_file, load_config, validate_config
from ai_changelog.errors import ConfigError


class TestConfigLoader(unittest.TestCase):
    """Tests for the configuration loader."""

    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self._tmp.cleanup)
        root = Path(self._tmp.name)
        self.repo = root / "repo"
        self.home = root / "home"
        self.repo.mkdir()
        self.home.mkdir()
        patcher = patch("ai_changelog.config.loader._get_config_directory", return_value=self.home)
        patcher.start()
        self.addCleanup(patcher.stop)

    def test_defaults_without_file(self) -> None:
        result = load_config(self.repo, environ={})
        for key, value in DEFAULTS.items():
            self.assertEqual(result[key], value)
        self.assertIsNone(result["config_path"])

    def test_repo_file_takes_precedence(self) -> None:
        (self.repo / ".aichangelog.json").write_text(json.dumps({"provider": "ollama", "git_timeout": 10}))
        (self.home / "config.json").write_text(json.dumps({"provider": "openai"}))
        result = load_config(self.repo, environ={})
        self.assertEqual(result["provider"], "ollama")
        self.assertEqual(result["git_timeout"], 10)
        self.assertEqual(result["config_path"], str(self.repo / ".aichangelog.json"))

    def test_user_file_used_when_repo_has_none(self) -> None:
        (self.home / "config.json").write_text(json.dumps({"analysis_mode": "detailed"}))
        result = load_config(self.repo, environ={})
        self.assertEqual(result["analysis_mode"], "detailed")

    def test_explicit_path(self) -> None:
        custom = self.repo / "custom.json"
        custom.write_text(json.dumps({"headlines": {"feat": "New"}}))
        (self.repo / ".aichangelog.json").write_text(json.dumps({"provider": "ollama"}))
        result = load_config(self.repo, path=custom, environ={})
        self.assertEqual(result["headlines"], {"feat": "New"})
        self.assertEqual(result["provider"], "auto")

    def test_explicit_path_missing(self) -> None:
        with self.assertRaises(ConfigError) as ctx:
            load_config(self.repo, path=self.repo / "nope.json", environ={})
        self.assertEqual(ctx.exception.kind, "missing_required")

    def test_invalid_json(self) -> None:
        (self.repo / ".aichangelog.json").write_text("{invalid}")
        with self.assertRaises(ConfigError) as ctx:
            load_config(self.repo, environ={})
        self.assertEqual(ctx.exception.kind, "invalid_file")
        self.assertIsNotNone(ctx.exception.cause)

    def test_non_object_json(self) -> None:
        (self.repo / ".aichangelog.json").write_text("[1, 2]")
        with self.assertRaises(ConfigError) as ctx:
            load_config(self.repo, environ={})
        self.assertEqual(ctx.exception.kind, "invalid_file")

    def test_unknown_keys_are_ignored(self) -> None:
        (self.repo / ".aichangelog.json").write_text(json.dumps({"colour": "blue", "model": "m"}))
        with self.assertLogs("ai_changelog.config.loader", level="WARNING") as logs:
            result = load_config(self.repo, environ={})
        self.assertNotIn("colour", result)
        self.assertEqual(result["model"], "m")
        self.assertIn("colour", logs.output[0])

    def test_environment_overrides_file(self) -> None:
        (self.repo / ".aichangelog.json").write_text(json.dumps({"provider": "ollama"}))
        environ = {
            "AI_PROVIDER": "anthropic",
            "ANTHROPIC_API_KEY": "key",
            "INCLUDE_ATTRIBUTION": "false",
            "OLLAMA_HOST": "",
        }
        result = load_config(self.repo, environ=environ)
        self.assertEqual(result["provider"], "anthropic")
        self.assertEqual(result["anthropic_api_key"], "key")
        self.assertIs(result["include_attribution"], False)
        self.assertIsNone(result["ollama_host"])

    def test_anthropic_base_url_from_file_and_environment(self) -> None:
        (self.repo / ".aichangelog.json").write_text(json.dumps({"anthropic_base_url": "http://proxy:8080"}))
        self.assertEqual(load_config(self.repo, environ={})["anthropic_base_url"], "http://proxy:8080")
        result = load_config(self.repo, environ={"ANTHROPIC_BASE_URL": "http://gateway:9000"})
        self.assertEqual(result["anthropic_base_url"], "http://gateway:9000")

    def test_max_tokens_accepts_positive_integer(self) -> None:
        (self.repo / ".aichangelog.json").write_text(json.dumps({"max_tokens": 800}))
        self.assertEqual(load_config(self.repo, environ={})["max_tokens"], 800)

    def test_invalid_value_types(self) -> None:
        cases = [
            {"request_timeout": 0},
            {"git_timeout": "30"},
            {"git_timeout": True},
            {"max_tokens": 1.5},
            {"max_tokens": 0},
            {"max_tokens": -10},
            {"include_attribution": "yes"},
            {"analysis_mode": "verbose"},
            {"commit_types": "wip"},
            {"headlines": {"feat": 1}},
            {"validation": []},
            {"model": 3},
        ]
        for data in cases:
            with self.subTest(data=data):
                (self.repo / ".aichangelog.json").write_text(json.dumps(data))
                with self.assertRaises(ConfigError) as ctx:
                    load_config(self.repo, environ={})
                self.assertEqual(ctx.exception.kind, "invalid_value")
                self.assertEqual(ctx.exception.context["key"], next(iter(data)))


def test_find_config_file_none(tmp_path) -> None:
    with patch("ai_changelog.config.loader._get_config_directory", return_value=tmp_path / "home"):
        assert find_config_file(tmp_path) is None


def test_validate_config_accepts_defaults() -> None:
    validate_config(dict(DEFAULTS))


if __name__ == "__main__":
    unittest.main()
