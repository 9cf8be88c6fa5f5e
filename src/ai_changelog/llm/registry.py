"""
Provider registry.

Providers are registered by name. :func:`create_provider` builds the
provider selected in the configuration, resolving ``"auto"`` to the
first available one and ``"none"`` to no provider at all.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional, Type

from ai_changelog.errors import ConfigError
from ai_changelog.llm.anthropic_client import AnthropicProvider
from ai_changelog.llm.base import AIProvider
from ai_changelog.llm.mock_client import MockProvider
from ai_changelog.llm.ollama_client import OllamaProvider
from ai_changelog.llm.openai_client import LMStudioProvider, OpenAIProvider


logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())


AUTO_PRIORITY = ("anthropic", "openai", "lmstudio", "ollama")


class ProviderRegistry:
    """Mapping of provider names to provider classes."""

    def __init__(self) -> None:
        self._providers: Dict[str, Type[AIProvider]] = {}

    def register(self, provider_cls: Type[AIProvider]) -> None:
        self._providers[provider_cls.name] = provider_cls

    def names(self) -> List[str]:
        return list(self._providers)

    def get(self, name: str) -> Type[AIProvider]:
        try:
            return self._providers[name]
        except KeyError:
            raise ConfigError(
                f"Unknown provider '{name}'. Available: {', '.join(self.names())}",
                "invalid_value",
                {"key": "provider", "value": name},
            ) from None

    def create(self, name: str, config: Mapping[str, Any]) -> AIProvider:
        return self.get(name)(config)

    def describe(self, config: Mapping[str, Any]) -> List[Dict[str, Any]]:
        """Report every provider with its availability and missing settings."""
        rows = []
        for name in self.names():
            provider = self.create(name, config)
            rows.append(
                {
                    "name": name,
                    "available": provider.is_available(),
                    "model": provider.model,
                    "missing": provider.missing_settings(),
                }
            )
        return rows


def default_registry() -> ProviderRegistry:
    registry = ProviderRegistry()
    for provider_cls in (AnthropicProvider, OpenAIProvider, LMStudioProvider, OllamaProvider, MockProvider):
        registry.register(provider_cls)
    return registry


def create_provider(
    config: Mapping[str, Any], registry: Optional[ProviderRegistry] = None
) -> Optional[AIProvider]:
    """Build the configured provider.

    Returns
    -------
    AIProvider or None
        ``None`` when the selection is ``"none"`` or when ``"auto"``
        finds no available provider.

    Raises
    ------
    ConfigError
        If an explicitly selected provider is unknown or lacks its
        credentials.
    """
    registry = registry or default_registry()
    selection = str(config.get("provider") or "auto").lower()
    if selection == "none":
        return None
    if selection == "auto":
        for name in AUTO_PRIORITY:
            provider = registry.create(name, config)
            if provider.is_available():
                logger.debug("Auto-selected provider %s", name)
                return provider
        logger.info("No AI provider configured; using rule-based summaries")
        return None
    provider = registry.create(selection, config)
    if not provider.is_available():
        raise ConfigError.provider_not_configured(selection, provider.missing_settings())
    return provider
