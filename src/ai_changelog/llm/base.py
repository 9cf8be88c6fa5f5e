"""
Provider interface for AI completion backends.

Every backend implements :class:`AIProvider`. The rest of the package
only ever calls :meth:`AIProvider.generate_completion`, so any hosted or
local model can be plugged in through the registry in
:mod:`ai_changelog.llm.registry`.

HTTP calls are made with :mod:`requests`; transport failures, HTTP
error statuses and undecodable bodies are all mapped onto
:class:`~ai_changelog.errors.ProviderError`.
"""

from __future__ import annotations

import json
import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

import requests

from ai_changelog.errors import ProviderError


logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())


Message = Dict[str, str]


def strip_thinking_tags(text: str) -> str:
    """Remove thinking process tags from LLM responses.

    Many modern LLMs with reasoning capabilities output their thinking
    process in XML-like tags such as <think>, <thinking>, <thought>,
    or <reasoning>. This function strips these tags and their contents
    from the response, leaving only the actual output.

    Examples
    --------
    >>> strip_thinking_tags("<think>reasoning...</think>Answer")
    'Answer'
    """
    thinking_patterns = [
        r"<think>.*?</think>",
        r"<thinking>.*?</thinking>",
        r"<thought>.*?</thought>",
        r"<reasoning>.*?</reasoning>",
    ]
    result = text
    for pattern in thinking_patterns:
        result = re.sub(pattern, "", result, flags=re.DOTALL | re.IGNORECASE)
    return result.strip()


@dataclass
class Completion:
    """Text returned by a provider plus token usage."""

    content: str
    usage: Dict[str, int] = field(default_factory=dict)
    model: Optional[str] = None


@dataclass(frozen=True)
class Capabilities:
    streaming: bool = False
    json_mode: bool = False
    max_context_tokens: int = 8192
    local: bool = False


class AIProvider(ABC):
    """Base class for AI providers.

    Parameters
    ----------
    config : Mapping[str, Any]
        Loaded configuration (see :func:`ai_changelog.config.load_config`).
        Providers read only their own keys.
    """

    name = "base"
    required_settings: tuple = ()

    def __init__(self, config: Optional[Mapping[str, Any]] = None) -> None:
        self.config: Dict[str, Any] = dict(config or {})
        self.request_timeout = float(self.config.get("request_timeout", 60))
        self.model = self.config.get("model") or self.get_default_model()

    # ------------------------------------------------------------------
    # Interface
    # ------------------------------------------------------------------
    def get_name(self) -> str:
        return self.name

    def is_available(self) -> bool:
        """Return True when the required settings are present.

        Credentials are checked for presence only; no request is made.
        """
        return not self.missing_settings()

    def missing_settings(self) -> List[str]:
        return [key for key in self.required_settings if not self.config.get(key)]

    @abstractmethod
    def generate_completion(self, messages: List[Message], **options: Any) -> Completion:
        """Send chat ``messages`` and return the completion.

        Raises
        ------
        ProviderError
            On transport failure, timeout, HTTP error or malformed response.
        """

    @abstractmethod
    def get_default_model(self) -> str:
        ...

    def get_capabilities(self) -> Capabilities:
        return Capabilities()

    def test_connection(self) -> Completion:
        """Send a minimal prompt to check that the provider answers."""
        return self.generate_completion(
            [{"role": "user", "content": "Reply with the single word: OK"}],
            max_tokens=10,
        )

    # ------------------------------------------------------------------
    # Response helpers
    # ------------------------------------------------------------------
    def _text(self, value: Any, field_name: str) -> str:
        """Return ``value`` as completion text or raise ``invalid_response``."""
        if value is None:
            return ""
        if not isinstance(value, str):
            raise ProviderError.invalid_response(
                self.name, f"'{field_name}' is {type(value).__name__}, expected a string"
            )
        return value

    def _token_count(self, usage: Any, key: str) -> int:
        if not usage:
            return 0
        if not isinstance(usage, Mapping):
            raise ProviderError.invalid_response(self.name, "usage is not an object")
        value = usage.get(key) or 0
        try:
            return int(value)
        except (TypeError, ValueError) as exc:
            raise ProviderError.invalid_response(
                self.name, f"usage '{key}' is not a number: {value!r}"
            ) from exc

    # ------------------------------------------------------------------
    # HTTP helper
    # ------------------------------------------------------------------
    def _post_json(
        self,
        url: str,
        payload: Dict[str, Any],
        headers: Optional[Dict[str, str]] = None,
    ) -> Dict[str, Any]:
        logger.debug(
            "Sending request to %s at %s (%d message(s))",
            self.name,
            url,
            len(payload.get("messages", [])),
        )
        try:
            response = requests.post(
                url,
                json=payload,
                headers=headers or {},
                timeout=self.request_timeout,
            )
        except requests.Timeout as exc:
            raise ProviderError(
                f"{self.name} request timed out after {self.request_timeout}s",
                "timeout",
                {"provider": self.name, "url": url},
                cause=exc,
            ) from exc
        except requests.RequestException as exc:
            logger.error("Failed to connect to %s: %s", self.name, exc)
            raise ProviderError(
                f"Failed to connect to {self.name}: {exc}",
                "network",
                {"provider": self.name, "url": url},
                cause=exc,
            ) from exc
        if response.status_code != 200:
            logger.error(
                "%s returned non-200 status %s: %s", self.name, response.status_code, response.text
            )
            raise ProviderError.from_status(self.name, response.status_code, response.text)
        try:
            data = response.json()
        except (json.JSONDecodeError, ValueError) as exc:
            raise ProviderError.invalid_response(self.name, "body is not JSON") from exc
        if not isinstance(data, dict):
            raise ProviderError.invalid_response(self.name, "body is not a JSON object")
        return data
