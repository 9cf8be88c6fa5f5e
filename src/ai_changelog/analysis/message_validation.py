"""
Commit message validation.

:func:`validate_commit_message` checks a message against Conventional
Commit rules and a small set of style conventions (subject length, case,
trailing period, imperative mood, body layout). Problems are reported
as errors, warnings or suggestions and folded into a 0-100 score.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from ai_changelog.analysis.conventional import ConventionalParse, parse_conventional
from ai_changelog.analysis.rules import COMMIT_TYPES
from ai_changelog.errors import ValidationError


DEFAULT_RULES: Dict[str, Any] = {
    "types": list(COMMIT_TYPES),
    "scopes": [],
    "max_subject_length": 72,
    "min_subject_length": 10,
    "require_scope": False,
    "require_body": False,
    "subject_case": "lower",
    "subject_end_period": False,
    "max_body_line_length": 100,
    "allow_breaking_changes": True,
}

NON_IMPERATIVE = {
    "added": "add",
    "adds": "add",
    "fixed": "fix",
    "fixes": "fix",
    "updated": "update",
    "updates": "update",
    "removed": "remove",
    "removes": "remove",
    "changed": "change",
    "changes": "change",
    "created": "create",
    "creates": "create",
    "implemented": "implement",
    "implements": "implement",
    "improved": "improve",
    "improves": "improve",
    "refactored": "refactor",
    "refactors": "refactor",
}


@dataclass
class MessageValidation:
    """Outcome of validating one commit message."""

    valid: bool
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    suggestions: List[str] = field(default_factory=list)
    score: int = 100
    parsed: Optional[ConventionalParse] = None

    @property
    def summary(self) -> str:
        if self.valid and not self.warnings:
            return f"Commit message is valid (score {self.score}/100)"
        status = "valid" if self.valid else "invalid"
        return (
            f"Commit message is {status} (score {self.score}/100): "
            f"{len(self.errors)} error(s), {len(self.warnings)} warning(s), "
            f"{len(self.suggestions)} suggestion(s)"
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "valid": self.valid,
            "score": self.score,
            "errors": list(self.errors),
            "warnings": list(self.warnings),
            "suggestions": list(self.suggestions),
            "summary": self.summary,
        }


def _score(errors: int, warnings: int, suggestions: int) -> int:
    return max(0, 100 - 25 * errors - 10 * warnings - 5 * suggestions)


def validate_commit_message(
    message: str, rules: Optional[Mapping[str, Any]] = None
) -> MessageValidation:
    """Validate a commit message.

    Parameters
    ----------
    message : str
        The full commit message (subject, optional body and footers).
    rules : Mapping[str, Any], optional
        Overrides for :data:`DEFAULT_RULES`.

    Returns
    -------
    MessageValidation

    Raises
    ------
    ValidationError
        If the message is empty.
    """
    if message is None or not message.strip():
        raise ValidationError("Commit message is empty", "invalid_message")
    config = dict(DEFAULT_RULES)
    config.update(rules or {})

    lines = message.strip("\n").splitlines()
    subject = lines[0].strip()
    body_lines = lines[1:]
    parsed = parse_conventional(subject, "\n".join(body_lines))

    errors: List[str] = []
    warnings: List[str] = []
    suggestions: List[str] = []

    # Subject ----------------------------------------------------------
    if not parsed.is_conventional:
        errors.append("Subject does not follow the 'type(scope): description' format")
        suggestions.append(f"Try: chore: {subject[:50].lower()}")
    else:
        if parsed.type not in config["types"]:
            errors.append(
                f"Unknown type '{parsed.type}'. Valid types: {', '.join(config['types'])}"
            )
        if config["require_scope"] and not parsed.scope:
            errors.append("A scope is required, e.g. 'feat(api): ...'")
        if parsed.scope and config["scopes"] and parsed.scope not in config["scopes"]:
            warnings.append(
                f"Unknown scope '{parsed.scope}'. Known scopes: {', '.join(config['scopes'])}"
            )
        if parsed.breaking and not config["allow_breaking_changes"]:
            errors.append("Breaking changes are not allowed by the configuration")

    if len(subject) > config["max_subject_length"]:
        errors.append(
            f"Subject is {len(subject)} characters; keep it under {config['max_subject_length']}"
        )
    if len(subject) < config["min_subject_length"]:
        warnings.append(
            f"Subject is only {len(subject)} characters; be more descriptive"
        )

    description = parsed.description
    if description:
        if config["subject_case"] == "lower" and description[0].isupper():
            warnings.append("Description should start with a lower-case letter")
        if not config["subject_end_period"] and description.endswith("."):
            warnings.append("Subject should not end with a period")
        first_word = description.split()[0].lower()
        if first_word in NON_IMPERATIVE:
            warnings.append(
                f"Use the imperative mood: '{NON_IMPERATIVE[first_word]}' instead of '{first_word}'"
            )

    # Body ---------------------------------------------------------------
    if body_lines:
        if body_lines[0].strip():
            errors.append("Separate the subject from the body with a blank line")
        long_lines = [
            number
            for number, line in enumerate(body_lines, start=2)
            if len(line) > config["max_body_line_length"]
        ]
        if long_lines:
            warnings.append(
                f"Body lines longer than {config['max_body_line_length']} characters: "
                + ", ".join(str(n) for n in long_lines)
            )
    elif config["require_body"]:
        errors.append("A commit body is required")
    elif parsed.type in ("feat", "fix") and parsed.breaking:
        suggestions.append("Describe the breaking change in a 'BREAKING CHANGE:' footer")

    if parsed.is_conventional and not parsed.issues and parsed.type in ("fix",):
        suggestions.append("Reference the related issue, e.g. 'Closes #123'")

    return MessageValidation(
        valid=not errors,
        errors=errors,
        warnings=warnings,
        suggestions=suggestions,
        score=_score(len(errors), len(warnings), len(suggestions)),
        parsed=parsed,
    )
