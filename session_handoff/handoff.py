"""Render a session context as a deterministic handoff Markdown document."""

from dataclasses import dataclass
from typing import Callable, Optional

from .models import (
    AskSample,
    ConversationMessage,
    EditSample,
    FetchSample,
    GlobSample,
    GrepSample,
    McpSample,
    ReadSample,
    SearchSample,
    Session,
    SessionNotes,
    ShellSample,
    TaskSample,
    ToolSample,
    ToolUsageSummary,
    WriteSample,
)
from .summarizer import truncate

HANDOFF_TITLE = "# Session Handoff Context"


@dataclass(frozen=True)
class RenderCaps:
    """Display caps applied on top of the extraction limits (None = no cap)."""

    max_samples: Optional[int] = None
    diff_lines: Optional[int] = None
    output_lines: Optional[int] = None
    message_chars: Optional[int] = None


RENDER_MODES = {
    "inline": RenderCaps(),
    "reference": RenderCaps(max_samples=3, diff_lines=30, output_lines=3, message_chars=300),
}

# Fixed rendering order; anything else follows in first-seen order.
CATEGORY_TITLES = {
    "shell": "Shell Commands",
    "write": "Files Written",
    "edit": "Files Edited",
    "read": "Files Read",
    "grep": "Grep Searches",
    "glob": "File Globs",
    "search": "Web Searches",
    "fetch": "Web Fetches",
    "task": "Subagent Tasks",
    "ask": "Questions Asked",
    "mcp": "MCP Tools",
    "other": "Other Tools",
}
CATEGORY_ORDER = list(CATEGORY_TITLES)


def format_bytes(size: int) -> str:
    if size < 1024:
        return f"{size} B"
    if size < 1024 * 1024:
        return f"{size / 1024:.1f} KB"
    return f"{size / (1024 * 1024):.1f} MB"


def _cap_lines(text: str, max_lines: Optional[int]) -> str:
    lines = text.splitlines()
    if max_lines is None or len(lines) <= max_lines:
        return text
    return "\n".join(lines[:max_lines] + [f"... ({len(lines) - max_lines} more lines)"])


def _tail_lines(text: str, max_lines: Optional[int]) -> str:
    lines = text.splitlines()
    if max_lines is None or len(lines) <= max_lines:
        return text
    return "\n".join(lines[-max_lines:])


def _fenced(text: str, lang: str = "") -> list[str]:
    return [f"  ```{lang}", *(f"  {line}" for line in text.splitlines()), "  ```"]


def _quoted(text: str) -> list[str]:
    return [f"  > {line}" if line else "  >" for line in text.splitlines()]


# ── Per-category sample templates ───────────────────────────────────────────


def _render_shell(data: ShellSample, caps: RenderCaps) -> list[str]:
    line = f"- `$ {data.command}`"
    if data.exit_code is not None:
        line += f" → exit {data.exit_code}"
    if data.is_error:
        line += " (error)"
    lines = [line]
    output = _tail_lines(data.stdout_tail, caps.output_lines)
    if output:
        lines += _fenced(output)
    return lines


def _render_diff(op: str, path: str, diff: str, stats, caps: RenderCaps, is_new: bool = False) -> list[str]:
    line = f"- {op} `{path}`"
    line += " (new file)" if is_new else f" (+{stats.added} -{stats.removed})"
    lines = [line]
    capped = _cap_lines(diff, caps.diff_lines)
    if capped:
        lines += _fenced(capped, "diff")
    return lines


def _render_write(data: WriteSample, caps: RenderCaps) -> list[str]:
    return _render_diff("write", data.file_path, data.diff, data.diff_stats, caps, data.is_new_file)


def _render_edit(data: EditSample, caps: RenderCaps) -> list[str]:
    return _render_diff("edit", data.file_path, data.diff, data.diff_stats, caps)


def _render_read(data: ReadSample, caps: RenderCaps) -> list[str]:
    line = f"- `{data.file_path}`"
    if data.line_start is not None:
        end = data.line_end if data.line_end is not None else "end"
        line += f" (lines {data.line_start}-{end})"
    lines = [line]
    if data.content_preview:
        lines += _fenced(_cap_lines(data.content_preview, caps.output_lines))
    return lines


def _render_grep(data: GrepSample, caps: RenderCaps) -> list[str]:
    line = f'- `grep "{data.pattern}"`'
    if data.target_path:
        line += f" in `{data.target_path}`"
    if data.match_count is not None:
        line += f" → {data.match_count} matches"
    lines = [line]
    if data.matches:
        lines += _fenced(_cap_lines("\n".join(data.matches), caps.output_lines))
    return lines


def _render_glob(data: GlobSample, caps: RenderCaps) -> list[str]:
    line = f'- `glob "{data.pattern}"`'
    if data.result_count is not None:
        line += f" → {data.result_count} files"
    return [line]


def _render_search(data: SearchSample, caps: RenderCaps) -> list[str]:
    return [f'- search "{data.query}"']


def _render_fetch(data: FetchSample, caps: RenderCaps) -> list[str]:
    lines = [f"- fetch {data.url}"]
    if data.result_preview:
        lines += _quoted(data.result_preview)
    return lines


def _render_task(data: TaskSample, caps: RenderCaps) -> list[str]:
    line = f'- task "{data.description}"'
    if data.agent_type:
        line += f" ({data.agent_type})"
    lines = [line]
    if data.result:
        lines += _quoted(_cap_lines(data.result, caps.output_lines))
    return lines


def _render_ask(data: AskSample, caps: RenderCaps) -> list[str]:
    return [f'- ask "{data.question}"']


def _render_mcp(data: McpSample, caps: RenderCaps) -> list[str]:
    line = f"- `{data.tool_name}({data.params_preview})`"
    if data.result_preview:
        line += f' → "{data.result_preview}"'
    return [line]


_RENDERERS: dict[str, Callable] = {
    "shell": _render_shell,
    "write": _render_write,
    "edit": _render_edit,
    "read": _render_read,
    "grep": _render_grep,
    "glob": _render_glob,
    "search": _render_search,
    "fetch": _render_fetch,
    "task": _render_task,
    "ask": _render_ask,
    "mcp": _render_mcp,
}


def render_sample(sample: ToolSample, caps: RenderCaps) -> list[str]:
    if sample.data is None:
        return [f"- {sample.summary}"]
    return _RENDERERS[sample.data.kind](sample.data, caps)


# ── Sections ────────────────────────────────────────────────────────────────


def _ordered_summaries(summaries: list[ToolUsageSummary]) -> list[ToolUsageSummary]:
    rank = {name: i for i, name in enumerate(CATEGORY_ORDER)}
    # sorted() is stable, so unknown categories keep first-seen order
    return sorted(summaries, key=lambda s: rank.get(s.name, len(CATEGORY_ORDER)))


def _header_section(session: Session) -> list[str]:
    last_active = session.modified_time.strftime("%Y-%m-%d %H:%M") if session.modified_time else "unknown"
    lines = [
        HANDOFF_TITLE,
        "",
        "## Original Session",
        "",
        "| Field | Value |",
        "|-------|-------|",
        f"| **Session ID** | `{session.id}` |",
        f"| **Source** | {session.harness} |",
        f"| **Working Directory** | `{session.project_path}` |",
    ]
    if session.repo:
        repo = session.repo + (f" @ {session.branch}" if session.branch else "")
        lines.append(f"| **Repository** | {repo} |")
    elif session.branch:
        lines.append(f"| **Branch** | {session.branch} |")
    lines.append(f"| **Last Active** | {last_active} |")
    lines.append(f"| **Size** | {session.lines} lines, {format_bytes(session.bytes)} |")
    if session.summary:
        lines += ["", f"> {session.summary}"]
    lines.append("")
    return lines


def _tool_section(summaries: list[ToolUsageSummary], caps: RenderCaps) -> list[str]:
    lines = ["## Tool Activity", ""]
    if not summaries:
        return lines + ["_No tool calls recorded._", ""]
    for summary in _ordered_summaries(summaries):
        title = CATEGORY_TITLES.get(summary.name, summary.name)
        heading = f"### {title} ({summary.count} call{'s' if summary.count != 1 else ''}"
        if summary.error_count:
            heading += f", {summary.error_count} error{'s' if summary.error_count != 1 else ''}"
        lines += [heading + ")", ""]
        samples = summary.samples if caps.max_samples is None else summary.samples[:caps.max_samples]
        for sample in samples:
            lines += render_sample(sample, caps)
        shown = len(samples)
        if summary.count > shown:
            lines.append(f"- _... and {summary.count - shown} more_")
        lines.append("")
    return lines


def _conversation_section(messages: list[ConversationMessage], caps: RenderCaps) -> list[str]:
    lines = ["## Recent Conversation", ""]
    if not messages:
        return lines + ["_No messages._", ""]
    for msg in messages:
        content = msg.content if caps.message_chars is None else truncate(msg.content, caps.message_chars)
        lines += [f"### {msg.role.capitalize()}", "", content, ""]
    return lines


def _files_section(files: list[str]) -> list[str]:
    lines = ["## Files Modified", ""]
    if not files:
        return lines + ["_None._", ""]
    return lines + [f"- `{path}`" for path in files] + [""]


def _pending_section(tasks: list[str]) -> list[str]:
    lines = ["## Pending Tasks", ""]
    if not tasks:
        return lines + ["_None identified._", ""]
    return lines + [f"- [ ] {task}" for task in tasks] + [""]


def _notes_section(notes: SessionNotes, caps: RenderCaps) -> list[str]:
    lines = ["## Session Notes", ""]
    facts = []
    if notes.model:
        facts.append(f"- **Model**: {notes.model}")
    if notes.token_usage:
        facts.append(
            f"- **Tokens**: {notes.token_usage.input:,} input, {notes.token_usage.output:,} output"
        )
    if notes.cache_tokens:
        facts.append(
            f"- **Cache Tokens**: {notes.cache_tokens.creation:,} created, {notes.cache_tokens.read:,} read"
        )
    lines += facts
    if facts:
        lines.append("")

    if notes.compact_summary:
        lines += ["### Compacted Summary", ""]
        lines += [f"> {line}" if line else ">" for line in notes.compact_summary.splitlines()]
        lines.append("")

    if notes.reasoning:
        lines += ["### Reasoning Highlights", ""]
        for highlight in notes.reasoning:
            highlight = " ".join(highlight.split())
            if caps.message_chars is not None:
                highlight = truncate(highlight, caps.message_chars)
            lines.append(f"- {highlight}")
        lines.append("")

    if notes.reasoning_steps:
        lines += ["### Reasoning Chain", ""]
        for step in notes.reasoning_steps:
            label = f"**Step {step.step_number}/{step.total_steps}**"
            if step.purpose:
                label += f" ({step.purpose})"
            lines.append(f"1. {label}: {step.thought}")
            if step.outcome:
                lines.append(f"   - Outcome: {step.outcome}")
            if step.next_action:
                lines.append(f"   - Next: {step.next_action}")
        lines.append("")

    if notes.subagent_results:
        lines += ["### Subagent Results", ""]
        for sub in notes.subagent_results:
            lines.append(
                f"- **{sub.description or sub.task_id}** (`{sub.task_id}`, {sub.status}, "
                f"{sub.tool_call_count} tool calls)"
            )
            if sub.result:
                lines += _quoted(_cap_lines(sub.result, caps.output_lines))
        lines.append("")

    if notes.external_tool_results:
        lines += ["### External Tool Results", ""]
        for ext in notes.external_tool_results:
            line = f"- `{ext.name}` ({format_bytes(ext.size_bytes)})"
            if ext.preview:
                line += f": {ext.preview}"
            lines.append(line)
        lines.append("")

    if len(lines) == 2:
        lines += ["_None._", ""]
    return lines


def generate_handoff_markdown(
    session: Session,
    messages: list[ConversationMessage],
    files_modified: list[str],
    pending_tasks: list[str],
    tool_summaries: list[ToolUsageSummary],
    notes: SessionNotes,
    mode: str = "inline",
) -> str:
    """Render the handoff document. Same inputs always give the same text."""
    caps = RENDER_MODES.get(mode)
    if caps is None:
        raise ValueError(f'Unknown render mode "{mode}". Valid modes: {", ".join(RENDER_MODES)}')

    lines: list[str] = []
    lines += _header_section(session)
    lines += _tool_section(tool_summaries, caps)
    lines += _conversation_section(messages, caps)
    lines += _files_section(files_modified)
    lines += _pending_section(pending_tasks)
    lines += _notes_section(notes, caps)
    lines += [
        "---",
        "",
        f"Continue this session from where it left off. The working directory is `{session.project_path}`; "
        "review the tool activity, modified files and pending tasks above before making further changes.",
        "",
    ]
    return "\n".join(lines)
