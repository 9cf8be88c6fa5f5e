"""
Per-run generation metrics.

A :class:`MetricsCollector` is created for each invocation and updated
by the orchestrator and summarizer. :meth:`MetricsCollector.snapshot`
produces the immutable :class:`GenerationMetrics` rendered in the
changelog footer.
"""

from __future__ import annotations

import time
from dataclasses import asdict, dataclass
from typing import Any, Callable, Dict, Mapping, Optional


@dataclass(frozen=True)
class GenerationMetrics:
    commits_processed: int = 0
    files_analyzed: int = 0
    api_calls: int = 0
    total_tokens: int = 0
    rule_based_fallbacks: int = 0
    errors: int = 0
    warnings: int = 0
    duration_ms: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def format_duration(duration_ms: int) -> str:
    """Format a duration for display, e.g. ``850ms``, ``2.4s`` or ``1m 5s``."""
    if duration_ms < 1000:
        return f"{duration_ms}ms"
    seconds = duration_ms / 1000
    if seconds < 60:
        return f"{seconds:.1f}s"
    minutes, rest = divmod(int(round(seconds)), 60)
    return f"{minutes}m {rest}s"


class MetricsCollector:
    """Mutable counters for a single run."""

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self.start_time = clock()
        self.end_time: Optional[float] = None
        self.commits_processed = 0
        self.files_analyzed = 0
        self.api_calls = 0
        self.prompt_tokens = 0
        self.completion_tokens = 0
        self.total_tokens = 0
        self.rule_based_fallbacks = 0
        self.errors = 0
        self.warnings = 0

    def record_commit(self, file_count: int) -> None:
        self.commits_processed += 1
        self.files_analyzed += file_count

    def record_api_call(self, usage: Optional[Mapping[str, int]] = None) -> None:
        self.api_calls += 1
        if not usage:
            return
        prompt = int(usage.get("prompt_tokens", 0) or 0)
        completion = int(usage.get("completion_tokens", 0) or 0)
        self.prompt_tokens += prompt
        self.completion_tokens += completion
        self.total_tokens += int(usage.get("total_tokens", 0) or 0) or prompt + completion

    def record_fallback(self) -> None:
        self.rule_based_fallbacks += 1

    def record_error(self) -> None:
        self.errors += 1

    def record_warning(self) -> None:
        self.warnings += 1

    def stop(self) -> None:
        self.end_time = self._clock()

    @property
    def duration_ms(self) -> int:
        end = self.end_time if self.end_time is not None else self._clock()
        return int(round((end - self.start_time) * 1000))

    def snapshot(self) -> GenerationMetrics:
        return GenerationMetrics(
            commits_processed=self.commits_processed,
            files_analyzed=self.files_analyzed,
            api_calls=self.api_calls,
            total_tokens=self.total_tokens,
            rule_based_fallbacks=self.rule_based_fallbacks,
            errors=self.errors,
            warnings=self.warnings,
            duration_ms=self.duration_ms,
        )
