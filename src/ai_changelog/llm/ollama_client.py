"""
Provider for a local Ollama server.

Requests go to the ``/api/chat`` endpoint with streaming disabled. The
server location comes from the ``ollama_host`` setting (``OLLAMA_HOST``
in the environment), e.g. ``http://localhost:11434``.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List

from ai_changelog.errors import ProviderError
from ai_changelog.llm.base import AIProvider, Capabilities, Completion, Message, strip_thinking_tags


logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())


class OllamaProvider(AIProvider):
    """Chat completions from an Ollama server."""

    name = "ollama"
    required_settings = ("ollama_host",)

    def __init__(self, config=None) -> None:
        super().__init__(config)
        self.model = self.config.get("ollama_model") or self.model
        self.base_url = str(self.config.get("ollama_host") or "http://localhost:11434").rstrip("/")

    def get_default_model(self) -> str:
        return "llama3"

    def get_capabilities(self) -> Capabilities:
        return Capabilities(json_mode=True, max_context_tokens=8192, local=True)

    def _endpoint(self) -> str:
        return f"{self.base_url}/api/chat"

    def generate_completion(self, messages: List[Message], **options: Any) -> Completion:
        payload: Dict[str, Any] = {
            "model": options.get("model") or self.model,
            "messages": messages,
            "stream": False,
        }
        model_options: Dict[str, Any] = {}
        if options.get("max_tokens") is not None:
            model_options["num_predict"] = options["max_tokens"]
        if options.get("temperature") is not None:
            model_options["temperature"] = options["temperature"]
        if model_options:
            payload["options"] = model_options

        data = self._post_json(self._endpoint(), payload)
        # /api/chat answers with 'message'; /api/generate with 'response'
        if isinstance(data.get("message"), dict):
            raw = self._text(data["message"].get("content"), "message.content")
        elif "response" in data:
            raw = self._text(data.get("response"), "response")
        else:
            raise ProviderError.invalid_response(self.name, "unexpected response structure")
        prompt_tokens = self._token_count(data, "prompt_eval_count")
        completion_tokens = self._token_count(data, "eval_count")
        return Completion(
            content=strip_thinking_tags(raw.strip()),
            usage={
                "prompt_tokens": prompt_tokens,
                "completion_tokens": completion_tokens,
                "total_tokens": prompt_tokens + completion_tokens,
            },
            model=data.get("model", payload["model"]),
        )
