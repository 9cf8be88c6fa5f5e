import pytest

from ai_changelog.errors import ConfigError
from ai_changelog.llm.anthropic_client import AnthropicProvider
from ai_changelog.llm.mock_client import MockProvider
from ai_changelog.llm.ollama_client import OllamaProvider
from ai_changelog.llm.openai_client import OpenAIProvider
from ai_changelog.llm.registry import AUTO_PRIORITY, ProviderRegistry, create_provider, default_registry


def test_default_registry_names() -> None:
    names = default_registry().names()
    for name in AUTO_PRIORITY + ("mock",):
        assert name in names


def test_none_selection_returns_no_provider() -> None:
    assert create_provider({"provider": "none", "openai_api_key": "sk-x"}) is None


def test_auto_without_credentials_returns_none() -> None:
    assert create_provider({"provider": "auto"}) is None


def test_auto_follows_priority() -> None:
    config = {"provider": "auto", "openai_api_key": "sk-x", "ollama_host": "http://localhost:11434"}
    assert isinstance(create_provider(config), OpenAIProvider)
    config["anthropic_api_key"] = "key"
    assert isinstance(create_provider(config), AnthropicProvider)


def test_auto_falls_back_to_ollama() -> None:
    provider = create_provider({"provider": "auto", "ollama_host": "http://localhost:11434"})
    assert isinstance(provider, OllamaProvider)


def test_missing_provider_defaults_to_auto() -> None:
    assert create_provider({}) is None


def test_explicit_provider_without_credentials_raises() -> None:
    with pytest.raises(ConfigError) as excinfo:
        create_provider({"provider": "anthropic"})
    assert excinfo.value.kind == "provider_not_configured"
    assert excinfo.value.context["missing"] == ["anthropic_api_key"]


def test_explicit_provider_is_case_insensitive() -> None:
    assert isinstance(create_provider({"provider": "MOCK"}), MockProvider)


def test_unknown_provider_raises() -> None:
    with pytest.raises(ConfigError) as excinfo:
        create_provider({"provider": "gemini"})
    assert excinfo.value.kind == "invalid_value"
    assert "gemini" in str(excinfo.value)


def test_custom_registry_and_describe() -> None:
    registry = ProviderRegistry()
    registry.register(MockProvider)
    registry.register(OllamaProvider)
    assert registry.names() == ["mock", "ollama"]
    rows = registry.describe({})
    assert rows[0] == {"name": "mock", "available": True, "model": "mock", "missing": []}
    assert rows[1]["available"] is False
    assert rows[1]["missing"] == ["ollama_host"]
    assert create_provider({"provider": "auto"}, registry) is None
