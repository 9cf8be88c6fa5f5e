"""
Renderers for changelog documents.

Markdown is the native encoding. JSON is a structured dump of the same
document. HTML is produced from the Markdown with a handful of regular
expressions; it is deliberately not a full Markdown parser.
"""

from __future__ import annotations

import html
import json
import re
from typing import Callable, Dict, List

from ai_changelog.changelog.document import ChangelogDocument, DocumentEntry
from ai_changelog.metrics import format_duration


FORMATS = ("markdown", "json", "html")
ATTRIBUTION = "*Generated using aichangelog, AI-assisted changelog generation.*"


# ---------------------------------------------------------------------------
# Markdown
# ---------------------------------------------------------------------------
def render_entry(entry: DocumentEntry) -> List[str]:
    """Render one entry line plus its sub-bullets."""
    line = f"- ({entry.type}) {entry.summary}"
    if entry.breaking:
        line += " ⚠️ BREAKING CHANGE"
    if entry.severity in ("high", "critical"):
        line += " 🔥"
    if entry.details:
        line += f" - {entry.details}"
    line += f" ({entry.short_hash}) ({entry.confidence}%)"
    lines = [line]
    lines.extend(f"  - {highlight}" for highlight in entry.highlights[1:])
    if entry.migration_notes:
        lines.append(f"  - **Migration**: {entry.migration_notes}")
    return lines


def _insights_block(document: ChangelogDocument) -> List[str]:
    insights = document.insights
    if insights is None:
        return []
    counts = ", ".join(f"{count} {key}" for key, count in insights.type_counts.items())
    lines = [
        "### 📋 Release Summary",
        "",
        f"- **Commits**: {insights.total_commits} ({counts})",
        f"- **Risk level**: {insights.risk_level}",
        f"- **Complexity**: {insights.complexity}",
    ]
    if insights.affected_areas:
        lines.append(f"- **Affected areas**: {', '.join(insights.affected_areas)}")
    if insights.breaking_count:
        lines.append(f"- **Breaking changes**: {insights.breaking_count}")
    for note in insights.deployment_notes:
        lines.append(f"- **Deployment**: {note}")
    lines.append("")
    return lines


def _risk_block(document: ChangelogDocument) -> List[str]:
    risks: List[str] = []
    for entry in document.entries:
        for risk in entry.risk_factors:
            if risk not in risks:
                risks.append(risk)
    if not risks:
        return []
    return ["### ⚠️ Risk Assessment", ""] + [f"- {risk}" for risk in risks] + [""]


def _metrics_block(document: ChangelogDocument) -> List[str]:
    metrics = document.metrics
    if metrics is None:
        return []
    return [
        "### 📊 Generation Metrics",
        "",
        f"- **Total Commits**: {metrics.commits_processed}",
        f"- **Processing Time**: {format_duration(metrics.duration_ms)}",
        f"- **AI Calls**: {metrics.api_calls}",
        f"- **Tokens Used**: {metrics.total_tokens:,}",
        f"- **Rule-based Fallbacks**: {metrics.rule_based_fallbacks}",
        f"- **Errors**: {metrics.errors}",
        "",
    ]


def render_markdown(document: ChangelogDocument) -> str:
    lines = ["# Changelog", "", f"## [{document.version}] - {document.release_date}", ""]
    lines.extend(_insights_block(document))
    if not document.sections:
        lines.extend(["*No changes.*", ""])
    for section in document.sections:
        lines.extend([f"### {section.heading}", ""])
        for entry in section.entries:
            lines.extend(render_entry(entry))
        lines.append("")
    lines.extend(_risk_block(document))
    lines.extend(_metrics_block(document))
    if document.include_attribution:
        lines.extend(["---", "", ATTRIBUTION, ""])
    return "\n".join(lines).rstrip("\n") + "\n"


# ---------------------------------------------------------------------------
# JSON
# ---------------------------------------------------------------------------
def render_json(document: ChangelogDocument) -> str:
    return json.dumps(document.to_dict(), indent=2, ensure_ascii=False) + "\n"


# ---------------------------------------------------------------------------
# HTML
# ---------------------------------------------------------------------------
HTML_RULES = (
    (re.compile(r"^### (.*)$", re.MULTILINE), r"<h3>\1</h3>"),
    (re.compile(r"^## (.*)$", re.MULTILINE), r"<h2>\1</h2>"),
    (re.compile(r"^# (.*)$", re.MULTILINE), r"<h1>\1</h1>"),
    (re.compile(r"^---$", re.MULTILINE), r"<hr>"),
    (re.compile(r"\*\*(.+?)\*\*"), r"<strong>\1</strong>"),
    (re.compile(r"\*(.+?)\*"), r"<em>\1</em>"),
    (re.compile(r"\[([^\]]+)\]\(([^)]+)\)"), r'<a href="\2">\1</a>'),
    (re.compile(r"^[ \t]*-[ \t]+(.*)$", re.MULTILINE), r"<li>\1</li>"),
    (re.compile(r"`([^`]+)`"), r"<code>\1</code>"),
)
LIST_RE = re.compile(r"((?:^<li>.*</li>\n?)+)", re.MULTILINE)
BLOCK_TAGS = ("<h1", "<h2", "<h3", "<ul", "<hr")

HTML_TEMPLATE = """<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="utf-8">
<title>Changelog {version}</title>
<style>
body {{ font-family: -apple-system, BlinkMacSystemFont, "Segoe UI", sans-serif; max-width: 860px; margin: 2rem auto; padding: 0 1rem; line-height: 1.6; color: #24292f; }}
h1 {{ border-bottom: 2px solid #d0d7de; padding-bottom: .3rem; }}
h2 {{ border-bottom: 1px solid #d0d7de; padding-bottom: .2rem; margin-top: 2rem; }}
code {{ background: #f6f8fa; padding: .1rem .3rem; border-radius: 4px; }}
li {{ margin: .25rem 0; }}
footer {{ margin-top: 3rem; color: #57606a; font-size: .85rem; }}
</style>
</head>
<body>
{body}
<footer>Generated at {generated_at}</footer>
</body>
</html>
"""


def markdown_to_html(markdown: str) -> str:
    """Convert the Markdown subset used by :func:`render_markdown` to HTML."""
    text = html.escape(markdown, quote=False)
    for pattern, replacement in HTML_RULES:
        text = pattern.sub(replacement, text)
    text = LIST_RE.sub(lambda m: "<ul>\n" + m.group(1).rstrip("\n") + "\n</ul>\n", text)
    blocks = []
    for block in re.split(r"\n\s*\n", text.strip()):
        block = block.strip()
        if not block:
            continue
        blocks.append(block if block.startswith(BLOCK_TAGS) else f"<p>{block}</p>")
    return "\n".join(blocks)


def render_html(document: ChangelogDocument) -> str:
    return HTML_TEMPLATE.format(
        version=html.escape(document.version),
        body=markdown_to_html(render_markdown(document)),
        generated_at=document.generated_at.isoformat(timespec="seconds"),
    )


RENDERERS: Dict[str, Callable[[ChangelogDocument], str]] = {
    "markdown": render_markdown,
    "json": render_json,
    "html": render_html,
}


def render(document: ChangelogDocument, output_format: str = "markdown") -> str:
    try:
        renderer = RENDERERS[output_format]
    except KeyError:
        raise ValueError(
            f"Unknown output format '{output_format}'. Choose from: {', '.join(FORMATS)}"
        ) from None
    return renderer(document)
