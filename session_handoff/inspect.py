"""Diagnostics showing what the extraction pipeline kept from a session."""

import re
from collections import Counter
from dataclasses import dataclass, field
from typing import Optional

from rich.console import Group
from rich.table import Table
from rich.text import Text

from .handoff import format_bytes
from .models import SessionContext, TranscriptMessage
from .tool_names import classify_tool_name

CATEGORY_LABELS = {
    "shell": "Shell/Bash",
    "read": "Read",
    "write": "Write",
    "edit": "Edit",
    "grep": "Grep/Glob",
    "glob": "Grep/Glob",
    "search": "Search",
    "fetch": "Fetch",
    "task": "Task (subagent)",
    "ask": "Ask",
    "mcp": "MCP",
    "reasoning": "Reasoning",
}
UNCLASSIFIED_LABEL = "Other"
# wide enough that table titles never wrap
TABLE_MIN_WIDTH = 48

_SECTION_RE = re.compile(r"^## ", re.MULTILINE)


@dataclass
class MessageAnalysis:
    roles: Counter = field(default_factory=Counter)
    blocks: Counter = field(default_factory=Counter)
    tools: Counter = field(default_factory=Counter)
    model: Optional[str] = None

    @property
    def total_blocks(self) -> int:
        return sum(self.blocks.values())

    @property
    def total_tool_calls(self) -> int:
        return sum(self.tools.values())


@dataclass
class MarkdownStats:
    total_chars: int
    total_bytes: int
    sections: int
    recent_messages: int
    tool_summaries: int
    subagent_results: int
    reasoning_steps: int
    pending_tasks: int
    files_modified: int


def analyze_messages(messages: list[TranscriptMessage]) -> MessageAnalysis:
    """Count roles, block types and tool calls by category label."""
    analysis = MessageAnalysis()
    for msg in messages:
        analysis.roles[msg.role] += 1
        if msg.model and not analysis.model:
            analysis.model = msg.model
        for block in msg.blocks:
            analysis.blocks[block.type] += 1
            if block.type == "tool_invocation":
                category = classify_tool_name(block.name)
                label = CATEGORY_LABELS.get(category, UNCLASSIFIED_LABEL) if category else UNCLASSIFIED_LABEL
                analysis.tools[label] += 1
    return analysis


def compute_markdown_stats(context: SessionContext) -> MarkdownStats:
    md = context.markdown
    notes = context.session_notes
    return MarkdownStats(
        total_chars=len(md),
        total_bytes=len(md.encode("utf-8")),
        sections=len(_SECTION_RE.findall(md)),
        recent_messages=len(context.recent_messages),
        tool_summaries=len(context.tool_summaries),
        subagent_results=len(notes.subagent_results),
        reasoning_steps=len(notes.reasoning_steps),
        pending_tasks=len(context.pending_tasks),
        files_modified=len(context.files_modified),
    )


def _bar(fraction: float, width: int = 20) -> str:
    filled = max(0, min(width, round(fraction * width)))
    return "█" * filled + "░" * (width - filled)


def _counter_table(title: str, counts: Counter, label: str) -> Table:
    table = Table(title=title, title_justify="left", title_style="bold cyan", min_width=TABLE_MIN_WIDTH)
    table.add_column(label)
    table.add_column("Count", justify="right")
    table.add_column("", style="green")
    total = sum(counts.values())
    for key, count in counts.most_common():
        table.add_row(key, str(count), _bar(count / total if total else 0))
    table.add_row(Text("TOTAL", style="bold"), str(total), "")
    return table


def render_inspection(
    context: SessionContext,
    analysis: MessageAnalysis,
    stats: MarkdownStats,
    preset_name: str,
) -> Group:
    """Build the rich renderable printed by ``session-handoff inspect``."""
    session = context.session
    header = Text()
    header.append(f"SESSION INSPECTION: {session.id}\n", style="bold")
    header.append(f"{session.raw_path} ", style="dim")
    header.append(f"({session.lines} lines, {format_bytes(session.bytes)})")
    if analysis.model:
        header.append(f"\nModel: {analysis.model}", style="cyan")

    parts = [
        header,
        _counter_table("Messages by Role", analysis.roles, "Role"),
        _counter_table("Content Blocks", analysis.blocks, "Block"),
    ]
    if analysis.tools:
        parts.append(_counter_table("Tool Calls by Category", analysis.tools, "Category"))

    steps = context.session_notes.reasoning_steps
    if steps:
        chain = Table(
            title=f"Reasoning Chain ({len(steps)} steps)",
            title_justify="left",
            title_style="bold cyan",
            min_width=TABLE_MIN_WIDTH,
        )
        chain.add_column("Step", justify="right")
        chain.add_column("Purpose")
        chain.add_column("Thought")
        chain.add_column("Next")
        for step in steps:
            chain.add_row(
                f"{step.step_number}/{step.total_steps}",
                step.purpose,
                step.thought[:60],
                step.next_action[:30],
            )
        parts.append(chain)

    subagents = context.session_notes.subagent_results
    if subagents:
        table = Table(
            title=f"Subagents ({len(subagents)})",
            title_justify="left",
            title_style="bold cyan",
            min_width=TABLE_MIN_WIDTH,
        )
        table.add_column("Task")
        table.add_column("Status")
        table.add_column("Tools", justify="right")
        for result in subagents:
            style = "green" if result.status == "completed" else "red"
            table.add_row(result.description or result.task_id, Text(result.status, style=style), str(result.tool_call_count))
        parts.append(table)

    md_table = Table(
        title=f"Markdown Output (preset: {preset_name})",
        title_justify="left",
        title_style="bold cyan",
        min_width=TABLE_MIN_WIDTH,
    )
    md_table.add_column("Metric")
    md_table.add_column("Value", justify="right")
    for label, value in (
        ("Total chars", f"{stats.total_chars:,}"),
        ("Sections", stats.sections),
        ("Recent messages", stats.recent_messages),
        ("Tool summaries", stats.tool_summaries),
        ("Subagent results", stats.subagent_results),
        ("Reasoning steps", stats.reasoning_steps),
        ("Pending tasks", stats.pending_tasks),
        ("Files modified", stats.files_modified),
    ):
        md_table.add_row(label, str(value))
    parts.append(md_table)

    ratio = (stats.total_bytes / session.bytes * 100) if session.bytes else 0.0
    parts.append(Text(
        f"Raw input {format_bytes(session.bytes)} → markdown {format_bytes(stats.total_bytes)} ({ratio:.1f}%)",
        style="bold",
    ))
    return Group(*parts)
