"""
Error taxonomy for ai_changelog.

Every failure surfaced by the library is one of four closed error
families: :class:`GitError`, :class:`ProviderError`,
:class:`ValidationError` and :class:`ConfigError`. Each carries a
``kind`` drawn from a fixed set and a structured ``context`` mapping so
that call sites can branch on the kind instead of parsing messages.

The module also provides :func:`error_tips`, which maps an error to a
short list of user-facing hints rendered by the CLI.
"""

from __future__ import annotations

from typing import Any, Dict, FrozenSet, List, Optional


class ChangelogError(Exception):
    """Base class for all errors raised by ai_changelog.

    Parameters
    ----------
    message : str
        Human readable description of the failure.
    kind : str
        Machine readable error kind. Must belong to the subclass'
        ``KINDS`` set.
    context : Dict[str, Any], optional
        Structured details about the failure (command, provider, key...).
    cause : BaseException, optional
        The underlying exception, if any.
    """

    family = "error"
    KINDS: FrozenSet[str] = frozenset()

    def __init__(
        self,
        message: str,
        kind: str,
        context: Optional[Dict[str, Any]] = None,
        cause: Optional[BaseException] = None,
    ) -> None:
        if kind not in self.KINDS:
            raise ValueError(f"Unknown {type(self).__name__} kind: {kind!r}")
        super().__init__(message)
        self.message = message
        self.kind = kind
        self.context: Dict[str, Any] = dict(context or {})
        self.cause = cause

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "family": self.family,
            "kind": self.kind,
            "message": self.message,
            "context": dict(self.context),
        }
        if self.cause is not None:
            data["cause"] = str(self.cause)
        return data

    def __str__(self) -> str:
        return self.message


class GitError(ChangelogError):
    """Raised when a Git command fails or the repository is unusable."""

    family = "git"
    KINDS = frozenset(
        {
            "not_a_repository",
            "missing_commit",
            "git_not_installed",
            "command_failed",
            "timeout",
            "invalid_reference",
        }
    )

    @classmethod
    def not_a_repository(cls, path: Any) -> "GitError":
        return cls(
            f"Not a git repository: {path}",
            "not_a_repository",
            {"path": str(path)},
        )

    @classmethod
    def command_failed(
        cls, command: List[str], returncode: int, stderr: str
    ) -> "GitError":
        kind = "command_failed"
        lowered = stderr.lower()
        if returncode == 128 and "not a git repository" in lowered:
            kind = "not_a_repository"
        elif "unknown revision" in lowered or "bad object" in lowered or "bad revision" in lowered:
            kind = "missing_commit"
        message = stderr.strip() or f"git {' '.join(command)} exited with {returncode}"
        return cls(
            message,
            kind,
            {"command": " ".join(command), "returncode": returncode},
        )

    @classmethod
    def invalid_reference(cls, ref: str) -> "GitError":
        return cls(f"Invalid git reference: {ref}", "invalid_reference", {"ref": ref})


class ProviderError(ChangelogError):
    """Raised when an AI provider call fails."""

    family = "provider"
    KINDS = frozenset(
        {
            "unavailable",
            "network",
            "timeout",
            "authentication",
            "rate_limit",
            "api_error",
            "invalid_response",
        }
    )

    @classmethod
    def from_status(cls, provider: str, status_code: int, body: str) -> "ProviderError":
        """Build an error from a non-success HTTP status."""
        if status_code in (401, 403):
            kind = "authentication"
        elif status_code == 429:
            kind = "rate_limit"
        else:
            kind = "api_error"
        return cls(
            f"{provider} returned status {status_code}: {body[:200]}",
            kind,
            {"provider": provider, "status_code": status_code},
        )

    @classmethod
    def invalid_response(cls, provider: str, detail: str) -> "ProviderError":
        return cls(
            f"Invalid response from {provider}: {detail}",
            "invalid_response",
            {"provider": provider},
        )


class ValidationError(ChangelogError):
    """Raised for malformed input to user-facing validation commands."""

    family = "validation"
    KINDS = frozenset({"invalid_message", "invalid_input"})


class ConfigError(ChangelogError):
    """Raised when configuration or provider credentials are missing or invalid."""

    family = "config"
    KINDS = frozenset(
        {"missing_required", "invalid_value", "provider_not_configured", "invalid_file"}
    )

    @classmethod
    def invalid_value(cls, key: str, expected: str) -> "ConfigError":
        return cls(f"'{key}' must be {expected}", "invalid_value", {"key": key})

    @classmethod
    def provider_not_configured(cls, provider: str, missing: List[str]) -> "ConfigError":
        detail = f" (missing: {', '.join(missing)})" if missing else ""
        return cls(
            f"Provider '{provider}' is not configured{detail}",
            "provider_not_configured",
            {"provider": provider, "missing": list(missing)},
        )


_TIPS: Dict[str, Dict[str, List[str]]] = {
    "git": {
        "not_a_repository": [
            "Run the command inside a git repository",
            "Initialize one with 'git init'",
        ],
        "git_not_installed": ["Make sure git is installed and on your PATH"],
        "missing_commit": ["Check that the commit hash or range exists ('git log')"],
        "invalid_reference": ["Use a full or abbreviated (6+ chars) commit hash"],
        "timeout": ["The git command took too long; try a smaller --limit or range"],
    },
    "provider": {
        "unavailable": ["Check the provider configuration with 'aichangelog providers'"],
        "network": [
            "Check your network connection",
            "Verify the provider base URL or host setting",
        ],
        "timeout": ["Increase 'request_timeout' in the configuration"],
        "authentication": ["Check your API key"],
        "rate_limit": ["Wait a moment and retry, or lower the number of commits"],
        "invalid_response": ["Try a different model or analysis mode"],
    },
    "config": {
        "provider_not_configured": [
            "Set the API key environment variable for the provider",
            "Or pass --provider none to use rule-based summaries",
        ],
        "invalid_file": ["Fix the JSON syntax in your .aichangelog.json"],
        "invalid_value": ["Check the value types in your configuration file"],
    },
    "validation": {
        "invalid_message": ["Use the format 'type(scope): description'"],
    },
}


def error_tips(exc: BaseException) -> List[str]:
    """Return contextual tips for an error.

    Unknown exceptions produce no tips.
    """
    if not isinstance(exc, ChangelogError):
        return []
    return list(_TIPS.get(exc.family, {}).get(exc.kind, []))
