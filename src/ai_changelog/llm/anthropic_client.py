"""
Provider for the Anthropic Messages API.
"""

from __future__ import annotations

from typing import Any, Dict, List

from ai_changelog.errors import ProviderError
from ai_changelog.llm.base import AIProvider, Capabilities, Completion, Message, strip_thinking_tags


API_VERSION = "2023-06-01"


class AnthropicProvider(AIProvider):
    """Claude models through ``/v1/messages``."""

    name = "anthropic"
    required_settings = ("anthropic_api_key",)

    def __init__(self, config=None) -> None:
        super().__init__(config)
        self.base_url = str(self.config.get("anthropic_base_url") or "https://api.anthropic.com").rstrip("/")

    def get_default_model(self) -> str:
        return "claude-3-5-haiku-latest"

    def get_capabilities(self) -> Capabilities:
        return Capabilities(streaming=True, max_context_tokens=200000)

    def generate_completion(self, messages: List[Message], **options: Any) -> Completion:
        # The system prompt is a top-level field, not a message
        system = "\n\n".join(m["content"] for m in messages if m.get("role") == "system")
        payload: Dict[str, Any] = {
            "model": options.get("model") or self.model,
            "max_tokens": options.get("max_tokens") or 1024,
            "messages": [m for m in messages if m.get("role") != "system"],
        }
        if system:
            payload["system"] = system
        if options.get("temperature") is not None:
            payload["temperature"] = options["temperature"]
        headers = {
            "x-api-key": str(self.config.get("anthropic_api_key", "")),
            "anthropic-version": API_VERSION,
        }
        data = self._post_json(f"{self.base_url}/v1/messages", payload, headers)
        blocks = data.get("content")
        if not isinstance(blocks, list):
            raise ProviderError.invalid_response(self.name, "missing content blocks")
        text = "".join(
            self._text(b.get("text"), "content[].text")
            for b in blocks
            if isinstance(b, dict) and b.get("type") == "text"
        )
        usage = data.get("usage")
        prompt_tokens = self._token_count(usage, "input_tokens")
        completion_tokens = self._token_count(usage, "output_tokens")
        return Completion(
            content=strip_thinking_tags(text.strip()),
            usage={
                "prompt_tokens": prompt_tokens,
                "completion_tokens": completion_tokens,
                "total_tokens": prompt_tokens + completion_tokens,
            },
            model=data.get("model", payload["model"]),
        )
