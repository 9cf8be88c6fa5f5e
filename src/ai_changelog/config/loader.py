"""
Configuration loader for ai_changelog.

Settings are read from a JSON file and overlaid with environment
variables. The file is looked up in this order:

1. an explicit path passed by the caller,
2. ``.aichangelog.json`` in the repository root,
3. ``config.json`` in the ``~/.aichangelog/`` directory.

A missing file is not an error: every key has a default and the tool
works without any AI provider. A file that cannot be parsed, or that
contains values of the wrong type, raises :class:`ConfigError`.
"""

from __future__ import annotations

import copy
import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from ai_changelog.errors import ConfigError


logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())


REPO_CONFIG_NAME = ".aichangelog.json"
USER_CONFIG_NAME = "config.json"
ANALYSIS_MODES = ("standard", "detailed", "enterprise")

DEFAULTS: Dict[str, Any] = {
    "provider": "auto",
    "model": None,
    "analysis_mode": "standard",
    "request_timeout": 60,
    "git_timeout": 30,
    "max_tokens": None,
    "include_attribution": True,
    "commit_types": [],
    "headlines": {},
    "openai_api_key": None,
    "openai_base_url": None,
    "anthropic_api_key": None,
    "anthropic_base_url": None,
    "ollama_host": None,
    "ollama_model": None,
    "lmstudio_base_url": None,
    "validation": {},
}

ENV_OVERRIDES = {
    "AI_PROVIDER": "provider",
    "AI_MODEL": "model",
    "ANALYSIS_MODE": "analysis_mode",
    "OPENAI_API_KEY": "openai_api_key",
    "OPENAI_BASE_URL": "openai_base_url",
    "ANTHROPIC_API_KEY": "anthropic_api_key",
    "ANTHROPIC_BASE_URL": "anthropic_base_url",
    "OLLAMA_HOST": "ollama_host",
    "OLLAMA_MODEL": "ollama_model",
    "LMSTUDIO_BASE_URL": "lmstudio_base_url",
    "INCLUDE_ATTRIBUTION": "include_attribution",
}

STRING_KEYS = (
    "provider",
    "model",
    "openai_api_key",
    "openai_base_url",
    "anthropic_api_key",
    "anthropic_base_url",
    "ollama_host",
    "ollama_model",
    "lmstudio_base_url",
)


def _get_config_directory() -> Path:
    """Get the user-level configuration directory (``~/.aichangelog/``)."""
    return Path.home() / ".aichangelog"


def find_config_file(repo_root: Optional[Path] = None, path: Optional[Path] = None) -> Optional[Path]:
    """Return the configuration file that applies, or None."""
    if path is not None:
        if not Path(path).exists():
            raise ConfigError(
                f"Configuration file not found: {path}",
                "missing_required",
                {"path": str(path)},
            )
        return Path(path)
    candidates = []
    if repo_root is not None:
        candidates.append(Path(repo_root) / REPO_CONFIG_NAME)
    candidates.append(_get_config_directory() / USER_CONFIG_NAME)
    for candidate in candidates:
        if candidate.exists():
            return candidate
    return None


def _parse_bool(value: str) -> bool:
    return value.strip().lower() not in ("0", "false", "no", "off", "")


def _apply_env(config: Dict[str, Any], environ: Mapping[str, str]) -> None:
    for variable, key in ENV_OVERRIDES.items():
        value = environ.get(variable)
        if value is None or value == "":
            continue
        config[key] = _parse_bool(value) if key == "include_attribution" else value


def validate_config(config: Mapping[str, Any]) -> None:
    """Check value types.

    Raises
    ------
    ConfigError
        With kind ``invalid_value`` naming the offending key.
    """
    for key in STRING_KEYS:
        if config.get(key) is not None and not isinstance(config[key], str):
            raise ConfigError.invalid_value(key, "a string")
    for key in ("request_timeout", "git_timeout"):
        value = config.get(key)
        if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
            raise ConfigError.invalid_value(key, "a positive number")
    max_tokens = config.get("max_tokens")
    if max_tokens is not None and (
        isinstance(max_tokens, bool) or not isinstance(max_tokens, int) or max_tokens <= 0
    ):
        raise ConfigError.invalid_value("max_tokens", "a positive integer")
    if not isinstance(config.get("include_attribution"), bool):
        raise ConfigError.invalid_value("include_attribution", "a boolean")
    if config.get("analysis_mode") not in ANALYSIS_MODES:
        raise ConfigError.invalid_value("analysis_mode", f"one of {', '.join(ANALYSIS_MODES)}")
    commit_types = config.get("commit_types")
    if not isinstance(commit_types, list) or not all(isinstance(t, str) for t in commit_types):
        raise ConfigError.invalid_value("commit_types", "a list of strings")
    headlines = config.get("headlines")
    if not isinstance(headlines, dict) or not all(
        isinstance(k, str) and isinstance(v, str) for k, v in headlines.items()
    ):
        raise ConfigError.invalid_value("headlines", "an object mapping types to headings")
    if not isinstance(config.get("validation"), dict):
        raise ConfigError.invalid_value("validation", "an object")


def load_config(
    repo_root: Optional[Path] = None,
    path: Optional[Path] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> Dict[str, Any]:
    """Load and validate the configuration.

    Args:
        repo_root: Repository root used to find ``.aichangelog.json``.
        path: Explicit configuration file; must exist when given.
        environ: Environment mapping; defaults to ``os.environ``.

    Returns:
        A dictionary with every key of :data:`DEFAULTS`, plus ``config_path``
        (the file read, or None).

    Raises:
        ConfigError: If the file is unreadable, is not a JSON object, or
            holds values of the wrong type.
    """
    config = copy.deepcopy(DEFAULTS)
    config_path = find_config_file(repo_root, path)
    if config_path is not None:
        try:
            data = json.loads(config_path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            logger.error("Failed to read or parse configuration file: %s", exc)
            raise ConfigError(
                f"Invalid JSON in {config_path.name}: {exc}",
                "invalid_file",
                {"path": str(config_path)},
                cause=exc,
            ) from exc
        if not isinstance(data, dict):
            raise ConfigError(
                f"{config_path.name} must contain a JSON object",
                "invalid_file",
                {"path": str(config_path)},
            )
        unknown = sorted(set(data) - set(DEFAULTS))
        if unknown:
            logger.warning("Ignoring unknown configuration keys: %s", ", ".join(unknown))
        config.update({key: value for key, value in data.items() if key in DEFAULTS})
        logger.debug("Loaded configuration from: %s", config_path)

    _apply_env(config, os.environ if environ is None else environ)
    validate_config(config)
    config["config_path"] = str(config_path) if config_path else None
    return config
