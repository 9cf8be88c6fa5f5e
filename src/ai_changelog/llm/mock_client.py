"""
Deterministic offline provider.

Useful for dry runs and tests: it never touches the network. Without
scripted responses it echoes the commit subject back as a minimal JSON
summary.
"""

from __future__ import annotations

import json
import re
from typing import Any, List, Optional, Sequence

from ai_changelog.llm.base import AIProvider, Capabilities, Completion, Message


SUBJECT_LINE_RE = re.compile(r"^Subject:\s*(.+)$", re.MULTILINE)


class MockProvider(AIProvider):
    """Scripted or echoing provider."""

    name = "mock"

    def __init__(self, config=None, responses: Optional[Sequence[str]] = None) -> None:
        super().__init__(config)
        self.responses: List[str] = list(responses or [])
        self.calls: List[List[Message]] = []

    def get_default_model(self) -> str:
        return "mock"

    def get_capabilities(self) -> Capabilities:
        return Capabilities(json_mode=True, local=True)

    def generate_completion(self, messages: List[Message], **options: Any) -> Completion:
        self.calls.append(list(messages))
        if self.responses:
            content = self.responses.pop(0)
        else:
            prompt = messages[-1]["content"] if messages else ""
            match = SUBJECT_LINE_RE.search(prompt)
            subject = match.group(1).strip() if match else "Update project"
            content = json.dumps({"summary": subject, "impact": "low", "category": "chore"})
        tokens = sum(len(m.get("content", "").split()) for m in messages)
        return Completion(
            content=content,
            usage={"prompt_tokens": tokens, "completion_tokens": len(content.split()), "total_tokens": tokens + len(content.split())},
            model=self.model,
        )
