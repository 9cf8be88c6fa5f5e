"""
Command line interface for the ai_changelog tool.

This module defines the ``main`` click group used as the entry point of
the ``aichangelog`` command. Each sub-command loads the configuration,
builds a :class:`ChangelogOrchestrator` and renders its result. Errors
from the core are mapped to the exit codes below and printed together
with contextual tips; tracebacks are shown only with ``--debug``.

Status output goes to stderr so that a rendered changelog written to
stdout can be piped or redirected.
"""

from __future__ import annotations

import dataclasses
import json
import logging
import os
import subprocess
import sys
import tempfile
import time
from pathlib import Path
from typing import Any, Dict, List, Optional

import click

from ai_changelog import __version__
from ai_changelog.config.loader import load_config
from ai_changelog.errors import (
    ChangelogError,
    ConfigError,
    GitError,
    ProviderError,
    ValidationError,
    error_tips,
)
from ai_changelog.grouping.group_model import CommitGroup
from ai_changelog.llm.registry import create_provider, default_registry
from ai_changelog.orchestrator import ChangelogOrchestrator
from ai_changelog.vcs.git_client import GitClient

logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())


# ---------------------------------------------------------------------------
# Exit codes
# ---------------------------------------------------------------------------
EXIT_SUCCESS = 0
EXIT_GENERIC_ERROR = 1
EXIT_INVALID_USAGE = 2
EXIT_NO_REPO = 3
EXIT_NO_CHANGES = 4
EXIT_CONFIG_ERROR = 5
EXIT_VCS_FAILURE = 6
EXIT_LLM_FAILURE = 7
EXIT_ALL_DECLINED = 8
EXIT_VALIDATION_FAILED = 9


# ---------------------------------------------------------------------------
# Progress and status display utilities
# ---------------------------------------------------------------------------

class ProgressIndicator:
    """Simple progress indicator for user feedback."""

    def __init__(self, message: str, show_spinner: bool = True):
        self.message = message
        self.show_spinner = show_spinner
        self.spinner_chars = ['⠋', '⠙', '⠹', '⠸', '⠼', '⠴', '⠦', '⠧', '⠇', '⠏']
        self.spinner_index = 0
        self.start_time = None

    def __enter__(self):
        self.start_time = time.time()
        if self.show_spinner:
            click.echo(f"{self.spinner_chars[0]} {self.message}...", nl=False, err=True)
        else:
            click.echo(f"→ {self.message}...", err=True)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        elapsed = time.time() - self.start_time
        mark = "✗" if exc_type is not None else "✓"
        if self.show_spinner:
            click.echo(f"\r{mark} {self.message} (took {elapsed:.1f}s)", err=True)
        else:
            click.echo(f"  {mark} Done ({elapsed:.1f}s)", err=True)
        return False

    def update(self, message: str):
        """Update the progress message."""
        self.spinner_index = (self.spinner_index + 1) % len(self.spinner_chars)
        if self.show_spinner:
            click.echo(f"\r{self.spinner_chars[self.spinner_index]} {message}...", nl=False, err=True)


def print_step(step_num: int, total_steps: int, message: str):
    """Print a step indicator."""
    click.echo(f"\n{'='*60}", err=True)
    click.echo(f"Step {step_num}/{total_steps}: {message}", err=True)
    click.echo(f"{'='*60}", err=True)


def print_info(message: str, indent: int = 0):
    """Print an info message."""
    prefix = "  " * indent
    click.echo(f"{prefix}ℹ {message}", err=True)


def print_success(message: str, indent: int = 0):
    """Print a success message."""
    prefix = "  " * indent
    click.echo(f"{prefix}✓ {message}", err=True)


def print_warning(message: str, indent: int = 0):
    """Print a warning message."""
    prefix = "  " * indent
    click.echo(f"{prefix}⚠ {message}", err=True)


def print_error(message: str, indent: int = 0):
    """Print an error message."""
    prefix = "  " * indent
    click.echo(f"{prefix}✗ {message}", err=True)


def print_tips(exc: BaseException):
    for tip in error_tips(exc):
        click.echo(f"   💡 {tip}", err=True)


# ---------------------------------------------------------------------------
# Shared plumbing
# ---------------------------------------------------------------------------

def exit_code_for(exc: ChangelogError) -> int:
    """Map a core error to the process exit code."""
    if isinstance(exc, GitError):
        return EXIT_NO_REPO if exc.kind == "not_a_repository" else EXIT_VCS_FAILURE
    if isinstance(exc, ConfigError):
        return EXIT_CONFIG_ERROR
    if isinstance(exc, ProviderError):
        return EXIT_LLM_FAILURE
    if isinstance(exc, ValidationError):
        return EXIT_INVALID_USAGE
    return EXIT_GENERIC_ERROR


def fail(ctx: click.Context, exc: ChangelogError) -> None:
    """Print an error with tips and exit with the mapped code."""
    print_error(str(exc))
    print_tips(exc)
    if ctx.obj and ctx.obj.get("debug"):
        logger.exception("Error details")
    raise click.exceptions.Exit(exit_code_for(exc))


def load_settings(ctx: click.Context, overrides: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """Load configuration for the current directory and apply CLI overrides."""
    repo_root = GitClient.find_repo_root(Path.cwd())
    config_path = ctx.obj.get("config_path") if ctx.obj else None
    config = load_config(repo_root, Path(config_path) if config_path else None)
    for key, value in (overrides or {}).items():
        if value is not None:
            config[key] = value
    logger.debug("Using configuration file: %s", config.get("config_path"))
    return config


def build_orchestrator(config: Dict[str, Any]) -> ChangelogOrchestrator:
    return ChangelogOrchestrator(config, start_dir=Path.cwd())


def report_degraded(reasons: List[str]) -> None:
    for reason in reasons:
        print_warning(reason)


def write_output(content: str, output: Optional[str]) -> None:
    if output is None:
        click.echo(content, nl=False)
        return
    path = Path(output)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    print_success(f"Changelog written to: {path}")


# ---------------------------------------------------------------------------
# Command group
# ---------------------------------------------------------------------------

@click.group()
@click.option("--verbose", is_flag=True, help="Enable verbose (debug) output.")
@click.option("--debug", is_flag=True, help="Show tracebacks for errors.")
@click.option("--config", "config_path", type=click.Path(dir_okay=False), help="Path to a configuration file.")
@click.version_option(version=__version__, prog_name="aichangelog")
@click.pass_context
def main(ctx: click.Context, verbose: bool, debug: bool, config_path: Optional[str]) -> None:
    """📝 AI-assisted changelog generator for Git repositories.

    Classifies commits, optionally summarizes them with an AI provider,
    and renders a changelog as Markdown, JSON or HTML.
    """
    # Use force=True so handlers are reconfigured on every invocation
    # (important for tests).
    logging.basicConfig(
        level=logging.DEBUG if (verbose or debug) else logging.INFO,
        format="%(levelname)s: %(message)s",
        force=True,
    )
    ctx.ensure_object(dict)
    ctx.obj["debug"] = debug
    ctx.obj["config_path"] = config_path


# ---------------------------------------------------------------------------
# Changelog commands
# ---------------------------------------------------------------------------

@main.command()
@click.option("--version-name", "version_name", help="Version label for the changelog header.")
@click.option("--since", help="Date expression or git ref to start from.")
@click.option("--limit", type=click.IntRange(min=1), help="Maximum number of commits.")
@click.option("--range", "rev_range", help="Explicit revision range, e.g. v1.0..v1.1.")
@click.option("--working", is_flag=True, help="Also include uncommitted changes.")
@click.option("--format", "output_format", type=click.Choice(["markdown", "json", "html"]), default="markdown", show_default=True)
@click.option("--output", "-o", type=click.Path(dir_okay=False), help="Write the changelog to a file.")
@click.option("--mode", type=click.Choice(["standard", "detailed", "enterprise"]), help="Analysis mode.")
@click.option("--provider", help="AI provider to use (auto, none, anthropic, openai, lmstudio, ollama).")
@click.option("--no-attribution", is_flag=True, help="Omit the attribution footer.")
@click.option("--no-ai", is_flag=True, help="Use rule-based summaries only.")
@click.pass_context
def generate(
    ctx: click.Context,
    version_name: Optional[str],
    since: Optional[str],
    limit: Optional[int],
    rev_range: Optional[str],
    working: bool,
    output_format: str,
    output: Optional[str],
    mode: Optional[str],
    provider: Optional[str],
    no_attribution: bool,
    no_ai: bool,
) -> None:
    """Generate a changelog from commit history."""
    try:
        config = load_settings(ctx, {"analysis_mode": mode, "provider": provider})
        orchestrator = build_orchestrator(config)
        with ProgressIndicator("Generating changelog", show_spinner=False):
            result = orchestrator.generate_changelog(
                version=version_name,
                since=since,
                limit=limit,
                rev_range=rev_range,
                include_working=working,
                output_format=output_format,
                include_attribution=False if no_attribution else None,
                use_ai=not no_ai,
            )
    except ChangelogError as exc:
        fail(ctx, exc)
        return

    report_degraded(result.degraded_reasons)
    print_info(f"{len(result.entries)} commit(s) processed")
    write_output(result.content, output)


@main.command("working")
@click.option("--format", "output_format", type=click.Choice(["markdown", "json", "html"]), default="markdown", show_default=True)
@click.option("--output", "-o", type=click.Path(dir_okay=False), help="Write the changelog to a file.")
@click.option("--version-name", "version_name", help="Version label for the changelog header.")
@click.option("--mode", type=click.Choice(["standard", "detailed", "enterprise"]), help="Analysis mode.")
@click.option("--provider", help="AI provider to use.")
@click.option("--no-attribution", is_flag=True, help="Omit the attribution footer.")
@click.option("--no-ai", is_flag=True, help="Use rule-based summaries only.")
@click.pass_context
def working_changes(
    ctx: click.Context,
    output_format: str,
    output: Optional[str],
    version_name: Optional[str],
    mode: Optional[str],
    provider: Optional[str],
    no_attribution: bool,
    no_ai: bool,
) -> None:
    """Generate a changelog entry for uncommitted changes."""
    try:
        config = load_settings(ctx, {"analysis_mode": mode, "provider": provider})
        orchestrator = build_orchestrator(config)
        with ProgressIndicator("Analyzing working directory", show_spinner=False):
            result = orchestrator.generate_working_changelog(
                version=version_name,
                output_format=output_format,
                include_attribution=False if no_attribution else None,
                use_ai=not no_ai,
            )
    except ChangelogError as exc:
        fail(ctx, exc)
        return

    if not result.entries:
        print_warning("No changes detected in the working directory.")
        raise click.exceptions.Exit(EXIT_NO_CHANGES)
    report_degraded(result.degraded_reasons)
    write_output(result.content, output)


# ---------------------------------------------------------------------------
# Repository commands
# ---------------------------------------------------------------------------

@main.command()
@click.option("--limit", type=click.IntRange(min=1), default=50, show_default=True, help="Number of commits to analyze.")
@click.option("--json", "as_json", is_flag=True, help="Print the analysis as JSON.")
@click.pass_context
def analyze(ctx: click.Context, limit: int, as_json: bool) -> None:
    """Analyze recent commits in the repository."""
    try:
        orchestrator = build_orchestrator(load_settings(ctx))
        analysis = orchestrator.analyze_repository(limit=limit)
    except ChangelogError as exc:
        fail(ctx, exc)
        return

    if as_json:
        click.echo(json.dumps(analysis.to_dict(), indent=2))
        return

    click.echo(f"🌿 Branch: {analysis.branch or 'unknown'}")
    click.echo(f"🏷️  Latest tag: {analysis.latest_tag or 'none'} ({analysis.tag_count} tag(s))")
    click.echo(f"📊 Commits analyzed: {analysis.commits_analyzed}")
    if analysis.type_counts:
        click.echo("\nCommit types:")
        for commit_type, count in analysis.type_counts.items():
            click.echo(f"   • {commit_type}: {count}")
    if analysis.breaking_commits:
        click.echo("\n⚠️  Breaking changes:")
        for item in analysis.breaking_commits:
            click.echo(f"   • {item['hash']} {item['subject']}")
    if analysis.high_risk_commits:
        click.echo("\n🔥 High-risk commits:")
        for item in analysis.high_risk_commits:
            click.echo(f"   • {item['hash']} {item['subject']} ({item['importance']})")
    if analysis.insights is not None:
        click.echo(f"\nRisk level: {analysis.insights.risk_level}")
        click.echo(f"Complexity: {analysis.insights.complexity}")
    report_degraded(analysis.degraded_reasons)


@main.command()
@click.option("--json", "as_json", is_flag=True, help="Print the report as JSON.")
@click.pass_context
def health(ctx: click.Context, as_json: bool) -> None:
    """Score repository health."""
    try:
        orchestrator = build_orchestrator(load_settings(ctx))
        report = orchestrator.assess_health()
    except ChangelogError as exc:
        fail(ctx, exc)
        return

    if as_json:
        click.echo(json.dumps(report.to_dict(), indent=2))
        return

    click.echo(f"🏥 Repository health: {report.overall}/100 (grade {report.grade})")
    for name, score in report.scores.items():
        click.echo(f"   • {name.replace('_', ' ')}: {score}")
    if report.recommendations:
        click.echo("\nRecommendations:")
        for recommendation in report.recommendations:
            click.echo(f"   💡 {recommendation}")


@main.command()
@click.argument("message", required=False)
@click.option("--file", "message_file", type=click.Path(exists=True, dir_okay=False), help="Read the message from a file.")
@click.pass_context
def validate(ctx: click.Context, message: Optional[str], message_file: Optional[str]) -> None:
    """Validate a commit message against the configured rules."""
    if message_file:
        message = Path(message_file).read_text(encoding="utf-8")
    if message is None:
        print_error("Provide a MESSAGE argument or --file.")
        raise click.exceptions.Exit(EXIT_INVALID_USAGE)

    try:
        config = load_settings(ctx)
        result = ChangelogOrchestrator(config).validate_commit_message(message)
    except ChangelogError as exc:
        fail(ctx, exc)
        return

    for error in result.errors:
        print_error(error)
    for warning in result.warnings:
        print_warning(warning)
    for suggestion in result.suggestions:
        print_info(suggestion)
    if not result.valid:
        print_error(result.summary)
        raise click.exceptions.Exit(EXIT_VALIDATION_FAILED)
    print_success(result.summary)


# ---------------------------------------------------------------------------
# Provider commands
# ---------------------------------------------------------------------------

@main.command()
@click.pass_context
def providers(ctx: click.Context) -> None:
    """List AI providers and whether they are configured."""
    try:
        config = load_settings(ctx)
    except ChangelogError as exc:
        fail(ctx, exc)
        return

    click.echo(f"Selected provider: {config.get('provider')}")
    for row in default_registry().describe(config):
        if row["available"]:
            click.echo(f"   ✓ {row['name']} (model: {row['model']})")
        else:
            missing = ", ".join(row["missing"]) or "not configured"
            click.echo(f"   ✗ {row['name']} (missing: {missing})")


@main.command("test-provider")
@click.option("--provider", help="Provider to test; defaults to the configured one.")
@click.pass_context
def test_provider(ctx: click.Context, provider: Optional[str]) -> None:
    """Send a minimal request to the AI provider."""
    try:
        config = load_settings(ctx, {"provider": provider})
        client = create_provider(config)
        if client is None:
            raise ConfigError(
                "No AI provider is configured",
                "provider_not_configured",
                {"provider": config.get("provider")},
            )
        with ProgressIndicator(f"Contacting {client.get_name()}"):
            completion = client.test_connection()
    except ChangelogError as exc:
        fail(ctx, exc)
        return

    print_success(f"{client.get_name()} responded using model {completion.model or client.model}")
    if completion.usage:
        print_info(f"Tokens used: {completion.usage.get('total_tokens', 0)}", indent=1)


# ---------------------------------------------------------------------------
# Commit workflow
# ---------------------------------------------------------------------------

def edit_message(message: str) -> str:
    """Let the user edit a message in ``$EDITOR`` or on the prompt."""
    editor = os.environ.get("EDITOR")
    if editor:
        print_info("Opening editor...")
        with tempfile.NamedTemporaryFile(mode="w+", delete=False, suffix=".txt", encoding='utf-8') as tmp:
            tmp.write(message)
            tmp_path = tmp.name
        try:
            subprocess.run([editor, tmp_path], check=True)
            with open(tmp_path, 'r', encoding='utf-8') as f:
                edited = f.read().strip()
        except (OSError, subprocess.CalledProcessError) as e:
            print_error(f"Editor failed: {e}")
            edited = ""
        finally:
            os.unlink(tmp_path)
    else:
        click.echo("\n   💡 No EDITOR environment variable set.")
        click.echo("   Enter your commit message below.")
        click.echo("   End with a line containing only a period (.)")
        click.echo("")
        lines: List[str] = []
        while True:
            line = click.prompt("   ", default="", show_default=False)
            if line.strip() == ".":
                break
            lines.append(line)
        edited = "\n".join(lines).strip()

    if edited:
        print_success("Message edited successfully")
        return edited
    print_warning("Empty message, using original")
    return message


def prompt_user(group: CommitGroup, group_num: int, total_groups: int) -> Optional[str]:
    """Interactively prompt the user about a commit group.

    Returns
    -------
    Optional[str]
        The final commit message if the group is accepted or edited,
        ``None`` if the group is declined.
    """
    click.echo(f"\n{'─'*60}")
    click.echo(f"📦 Commit Group {group_num}/{total_groups}")
    click.echo(f"{'─'*60}")
    click.echo(f"\n🏷️  Type: {click.style(group.type, fg='cyan', bold=True)}")
    click.echo(f"\n📄 Affected files ({len(group.files)}):")
    for file in group.files:
        click.echo(f"   • {file}")
    click.echo("\n💬 Proposed commit message:")
    for line in group.message.splitlines():
        click.echo(f"   │ {line}")
    click.echo("")

    choice = click.prompt(
        "   Choose action",
        type=click.Choice(['A', 'E', 'D', 'a', 'e', 'd'], case_sensitive=False),
        default='A',
        show_choices=True,
        show_default=True,
    ).strip().lower()
    if choice == 'd':
        print_warning("Declined commit group")
        return None
    if choice == 'e':
        return edit_message(group.message)
    print_success("Accepted commit group")
    return group.message


@main.command()
@click.option("--yes", "yes", is_flag=True, help="Accept all proposed commit groups without prompting.")
@click.option("--no-ai", is_flag=True, help="Use rule-based commit messages only.")
@click.pass_context
def commit(ctx: click.Context, yes: bool, no_ai: bool) -> None:
    """Group working changes and commit them with generated messages."""
    total_steps = 3
    try:
        print_step(1, total_steps, "Analyzing Changes")
        orchestrator = build_orchestrator(load_settings(ctx))
        with ProgressIndicator("Grouping changes and generating messages"):
            groups = orchestrator.propose_commit_groups(use_ai=not no_ai)
    except ChangelogError as exc:
        fail(ctx, exc)
        return

    if not groups:
        print_warning("No changes detected to commit.")
        raise click.exceptions.Exit(EXIT_NO_CHANGES)
    report_degraded(orchestrator.degraded_reasons)
    print_success(f"Generated {len(groups)} commit group{'s' if len(groups) != 1 else ''}")

    print_step(2, total_steps, "Review")
    accepted: List[CommitGroup] = []
    for idx, group in enumerate(groups, start=1):
        if yes:
            accepted.append(group)
            print_success(f"Auto-accepted: [{group.type}] {len(group.files)} file(s)")
            continue
        message = prompt_user(group, idx, len(groups))
        if message is not None:
            accepted.append(dataclasses.replace(group, message=message))

    if not accepted:
        print_warning("All commit groups were declined; no changes committed.")
        raise click.exceptions.Exit(EXIT_ALL_DECLINED)

    print_step(3, total_steps, "Committing")
    try:
        with ProgressIndicator(f"Committing {len(accepted)} group(s)"):
            made = orchestrator.commit_groups(accepted)
    except ChangelogError as exc:
        fail(ctx, exc)
        return

    declined = len(groups) - len(accepted)
    print_success(f"Committed {made} group{'s' if made != 1 else ''}")
    if declined:
        print_warning(f"Declined: {declined} group{'s' if declined != 1 else ''}")


if __name__ == "__main__":
    sys.exit(main())
