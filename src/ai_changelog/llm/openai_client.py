"""
Providers speaking the OpenAI chat-completions protocol.

:class:`OpenAIProvider` talks to the hosted API and needs an API key.
:class:`LMStudioProvider` reuses the same protocol against a local LM
Studio server, which needs only a base URL.
"""

from __future__ import annotations

from typing import Any, Dict, List

from ai_changelog.errors import ProviderError
from ai_changelog.llm.base import AIProvider, Capabilities, Completion, Message, strip_thinking_tags


class OpenAIProvider(AIProvider):
    """Hosted OpenAI chat completions."""

    name = "openai"
    required_settings = ("openai_api_key",)
    default_base_url = "https://api.openai.com/v1"
    base_url_key = "openai_base_url"

    def __init__(self, config=None) -> None:
        super().__init__(config)
        self.base_url = str(self.config.get(self.base_url_key) or self.default_base_url).rstrip("/")

    def get_default_model(self) -> str:
        return "gpt-4o-mini"

    def get_capabilities(self) -> Capabilities:
        return Capabilities(streaming=True, json_mode=True, max_context_tokens=128000)

    def _headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.config.get('openai_api_key', '')}"}

    def generate_completion(self, messages: List[Message], **options: Any) -> Completion:
        payload: Dict[str, Any] = {
            "model": options.get("model") or self.model,
            "messages": messages,
        }
        if options.get("max_tokens") is not None:
            payload["max_tokens"] = options["max_tokens"]
        if options.get("temperature") is not None:
            payload["temperature"] = options["temperature"]

        data = self._post_json(f"{self.base_url}/chat/completions", payload, self._headers())
        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as exc:
            raise ProviderError.invalid_response(self.name, "missing choices[0].message") from exc
        text = self._text(content, "choices[0].message.content")
        usage = data.get("usage")
        return Completion(
            content=strip_thinking_tags(text.strip()),
            usage={key: self._token_count(usage, key) for key in ("prompt_tokens", "completion_tokens", "total_tokens")},
            model=data.get("model", payload["model"]),
        )


class LMStudioProvider(OpenAIProvider):
    """Local LM Studio server (OpenAI compatible, no key needed)."""

    name = "lmstudio"
    required_settings = ("lmstudio_base_url",)
    default_base_url = "http://localhost:1234/v1"
    base_url_key = "lmstudio_base_url"

    def get_default_model(self) -> str:
        return "local-model"

    def get_capabilities(self) -> Capabilities:
        return Capabilities(json_mode=False, max_context_tokens=8192, local=True)

    def _headers(self) -> Dict[str, str]:
        return {}
