"""
Commit message generation for working-directory changes.

:class:`CommitMessageGenerator` classifies each changed file into a
Conventional Commit type with :func:`classify_change`, groups files by
type and asks the AI provider for one message per group. If the
provider is missing or fails, a deterministic fallback message is used.

All messages follow the format::

  type: brief description

  What changed and why.

  - file1
  - file2
"""

from __future__ import annotations

import logging
import re
from textwrap import dedent
from typing import Dict, List, Mapping, Optional

from ai_changelog.analysis.rules import COMMIT_TYPES
from ai_changelog.errors import ProviderError
from ai_changelog.grouping.change_classifier import classify_change
from ai_changelog.grouping.group_model import CommitGroup
from ai_changelog.llm.base import AIProvider
from ai_changelog.metrics import MetricsCollector


logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())


TYPE_PREFIX_RE = re.compile(
    r"^\s*\[?(" + "|".join(COMMIT_TYPES) + r"|other)\]?(\([^)]*\))?!?:\s+", re.IGNORECASE
)
THINKING_MARKERS = (
    "let me",
    "i will",
    "i'll",
    "here's the",
    "here is the",
    "based on",
    "looking at",
)


class CommitMessageGenerator:
    """Generate commit groups and messages using heuristic classification and an LLM."""

    def __init__(
        self,
        provider: Optional[AIProvider],
        metrics: Optional[MetricsCollector] = None,
    ) -> None:
        self.provider = provider
        self.metrics = metrics

    def _build_prompt(self, group_type: str, files: List[str], diffs: Mapping[str, str]) -> str:
        """Construct the prompt for one group of files."""
        diff_parts = []
        for file in files:
            diff_text = diffs.get(file, "")
            lines = [
                line
                for line in diff_text.splitlines()
                if line.startswith(("+", "-")) and not line.startswith(("+++", "---"))
            ]
            context_lines = "\n".join(lines[:20]) if lines else "(no diff available)"
            diff_parts.append(f"File: {file}\n{context_lines}")
        diff_context = "\n\n".join(diff_parts)
        file_list = "\n".join(f"- {f}" for f in files)

        return dedent(
            """
            You are an expert software engineer writing commit messages.
            Output ONLY the commit message, with no preamble or reasoning.

            COMMIT MESSAGE FORMAT (strict):
            Line 1: {group_type}: <brief imperative description, lower case, max 10 words, no period>
            Line 2: (blank)
            Lines 3-5: What changed functionally and why.
            Line 6: (blank)
            Lines 7+: Affected files, one per line with "- " prefix

            CHANGES TO ANALYZE:
            {diff_context}

            FILES AFFECTED:
            {file_list}
            """
        ).strip().format(group_type=group_type, diff_context=diff_context, file_list=file_list)

    def _extract_commit_message(self, raw_response: str) -> str:
        """Drop any meta-commentary before the actual commit message."""
        if not raw_response or not raw_response.strip():
            raise ValueError("Empty response")
        lines = raw_response.strip().splitlines()
        for index, line in enumerate(lines):
            stripped = line.strip()
            if TYPE_PREFIX_RE.match(stripped):
                lowered = stripped.lower()
                if not any(marker in lowered[:40] for marker in THINKING_MARKERS):
                    return "\n".join(lines[index:]).strip()
        for index, line in enumerate(lines):
            lowered = line.strip().lower()
            if lowered and not any(marker in lowered for marker in THINKING_MARKERS):
                return "\n".join(lines[index:]).strip()
        return raw_response.strip()

    def _normalize_message(self, message: str, group_type: str) -> str:
        """Ensure the subject uses the classified ``type: description`` prefix."""
        if not message or not message.strip():
            raise ValueError("Empty message")
        lines = message.strip().splitlines()
        subject = TYPE_PREFIX_RE.sub("", lines[0].strip()).strip().rstrip(".")
        if not subject:
            raise ValueError("Empty subject")
        subject = subject[0].lower() + subject[1:]
        return "\n".join([f"{group_type}: {subject}"] + lines[1:])

    @staticmethod
    def fallback_message(group_type: str, files: List[str]) -> str:
        noun = "file" if len(files) == 1 else "files"
        subject = f"{group_type}: update {len(files)} {noun}"
        body = "\n".join(f"- {file}" for file in files)
        return f"{subject}\n\n{body}"

    def generate_groups(
        self,
        diffs: Mapping[str, str],
        statuses: Optional[Mapping[str, str]] = None,
    ) -> List[CommitGroup]:
        """Classify changes, group them, and generate commit messages.

        Parameters
        ----------
        diffs : Mapping[str, str]
            Mapping from file paths to their unified diffs.
        statuses : Mapping[str, str], optional
            Mapping from file paths to their status letter.

        Returns
        -------
        List[CommitGroup]
            One group per commit type, in first-seen order.
        """
        statuses = statuses or {}
        groups: Dict[str, List[str]] = {}
        for file_path, diff in diffs.items():
            commit_type = classify_change(file_path, diff, statuses.get(file_path, "M"))
            groups.setdefault(commit_type, []).append(file_path)

        commit_groups: List[CommitGroup] = []
        for group_type, files in groups.items():
            message = self._generate_message(group_type, files, diffs)
            commit_groups.append(
                CommitGroup(
                    type=group_type,
                    files=files,
                    message=message,
                    diffs={file: diffs[file] for file in files},
                )
            )
        return commit_groups

    def _generate_message(self, group_type: str, files: List[str], diffs: Mapping[str, str]) -> str:
        if self.provider is None:
            return self.fallback_message(group_type, files)
        try:
            completion = self.provider.generate_completion(
                [{"role": "user", "content": self._build_prompt(group_type, files, diffs)}],
                temperature=0.3,
            )
            if self.metrics is not None:
                self.metrics.record_api_call(completion.usage)
            message = self._extract_commit_message(completion.content)
            return self._normalize_message(message, group_type)
        except (ProviderError, ValueError) as exc:
            logger.warning(
                "AI failed to generate commit message for group '%s': %s; using fallback.",
                group_type,
                exc,
            )
            if self.metrics is not None:
                self.metrics.record_fallback()
            return self.fallback_message(group_type, files)
