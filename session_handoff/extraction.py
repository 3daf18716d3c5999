"""Two-pass tool call extraction over the normalized message stream.

Pass 1 indexes every tool result by its correlation id. Pass 2 walks the
tool invocations, classifies them, looks up their result and builds a
summary plus structured sample for the collector. Results can appear before,
between or long after their invocation, so pass 2 only starts once the
index is complete.
"""

import json
import logging
import re
from dataclasses import dataclass
from types import MappingProxyType
from typing import Callable, Mapping, NamedTuple, Optional

from . import tool_names
from .config import VerbosityConfig
from .diffs import diff_with_stats, edit_diff, extract_output_tail, new_file_diff
from .models import (
    AskSample,
    EditSample,
    FetchSample,
    GlobSample,
    GrepSample,
    McpSample,
    ReadSample,
    SearchSample,
    ShellSample,
    StructuredToolSample,
    TaskSample,
    ToolInvocationBlock,
    ToolUsageSummary,
    TranscriptMessage,
    WriteSample,
)
from .summarizer import (
    SummaryCollector,
    ask_summary,
    extract_exit_code,
    fetch_summary,
    file_summary,
    glob_summary,
    grep_summary,
    mcp_summary,
    one_line,
    search_summary,
    shell_summary,
    subagent_summary,
    truncate,
)

logger = logging.getLogger(__name__)

RESULT_TEXT_CEILING = 50_000
OTHER_CATEGORY = "other"

_CREATED_RE = re.compile(r"\b(created|new file)\b", re.IGNORECASE)
_FOUND_RE = re.compile(r"\bFound (\d+)\b")
_NO_RESULTS_RE = re.compile(r"^\s*No (files|matches) found", re.IGNORECASE)

_PATH_KEYS = ("file_path", "path", "filePath", "target_file", "filename", "notebook_path")


@dataclass(frozen=True)
class IndexedResult:
    text: str
    is_error: bool = False


class ToolExtraction(NamedTuple):
    summaries: list[ToolUsageSummary]
    files_modified: list[str]


class Extracted(NamedTuple):
    summary: str
    data: Optional[StructuredToolSample] = None
    file_path: Optional[str] = None
    is_write: bool = False


# ── Argument helpers ────────────────────────────────────────────────────────


def _arg(args: dict, *keys: str) -> str:
    """First non-empty string argument among ``keys``."""
    for key in keys:
        value = args.get(key)
        if isinstance(value, str) and value:
            return value
        if isinstance(value, list) and value and all(isinstance(v, str) for v in value):
            return " ".join(value)
    return ""


def _int_arg(args: dict, *keys: str) -> Optional[int]:
    for key in keys:
        value = args.get(key)
        if isinstance(value, int) and not isinstance(value, bool):
            return value
        if isinstance(value, str) and value.isdigit():
            return int(value)
    return None


def _count_results(text: Optional[str]) -> Optional[int]:
    """Count matches/files reported by a grep or glob result."""
    if text is None:
        return None
    if _NO_RESULTS_RE.match(text):
        return 0
    match = _FOUND_RE.search(text)
    if match:
        return int(match.group(1))
    return sum(1 for line in text.splitlines() if line.strip())


# ── Pass 1 ──────────────────────────────────────────────────────────────────


def build_result_index(messages: list[TranscriptMessage]) -> Mapping[str, IndexedResult]:
    """Index tool results by correlation id (read-only mapping)."""
    index: dict[str, IndexedResult] = {}
    for msg in messages:
        for block in msg.blocks:
            if block.type != "tool_result" or not block.tool_use_id:
                continue
            index[block.tool_use_id] = IndexedResult(
                text=block.content[:RESULT_TEXT_CEILING],
                is_error=block.is_error,
            )
    return MappingProxyType(index)


# ── Category extractors ─────────────────────────────────────────────────────


def _extract_shell(call: ToolInvocationBlock, result: Optional[IndexedResult], cfg: VerbosityConfig) -> Extracted:
    command = _arg(call.arguments, "command", "cmd", "commandLine", "script")
    text = result.text if result else None
    is_error = bool(result and result.is_error) or call.failed
    exit_code = extract_exit_code(text) if cfg.shell.show_exit_code else None
    shown = command if cfg.shell.show_command else "(command hidden)"
    summary = shell_summary(shown, truncate(text, cfg.shell.max_chars) if text else None, cfg.shell.show_exit_code)
    # failed commands mostly report on stderr
    tail_lines = cfg.shell.stderr_lines if is_error else cfg.shell.stdout_lines
    data = ShellSample(
        command=truncate(shown, cfg.shell.max_chars),
        exit_code=exit_code,
        stdout_tail=extract_output_tail(text or "", tail_lines, cfg.shell.max_chars),
        is_error=is_error,
    )
    return Extracted(summary, data)


def _line_range(args: dict) -> tuple[Optional[int], Optional[int]]:
    view_range = args.get("view_range")
    if (
        isinstance(view_range, list)
        and len(view_range) == 2
        and all(isinstance(v, int) and not isinstance(v, bool) for v in view_range)
    ):
        start, end = view_range
        # -1 reads to the end of the file
        return start, end if end >= 0 else None

    start = _int_arg(args, "offset", "start_line", "line_start")
    limit = _int_arg(args, "limit")
    end = _int_arg(args, "end_line", "line_end")
    if start is not None and end is None and limit is not None:
        end = start + limit - 1
    elif start is None and limit is not None:
        start, end = 1, limit
    return start, end


def _extract_read(call: ToolInvocationBlock, result: Optional[IndexedResult], cfg: VerbosityConfig) -> Extracted:
    path = _arg(call.arguments, *_PATH_KEYS)
    start, end = _line_range(call.arguments) if cfg.read.show_line_range else (None, None)
    preview = ""
    if result and not result.is_error and cfg.read.max_chars:
        preview = truncate(result.text.strip(), cfg.read.max_chars)
    summary = file_summary("read", path, line_range=(start, end))
    return Extracted(summary, ReadSample(file_path=path, line_start=start, line_end=end, content_preview=preview))


def _extract_write(call: ToolInvocationBlock, result: Optional[IndexedResult], cfg: VerbosityConfig) -> Extracted:
    args = call.arguments
    path = _arg(args, *_PATH_KEYS)
    content = _arg(args, "content", "contents", "file_text", "text")
    is_new = bool(args.get("is_new_file")) or bool(result and _CREATED_RE.search(result.text))
    diff, stats = diff_with_stats(new_file_diff(content, path), cfg.write.diff_lines, cfg.write.max_chars)
    summary = file_summary("write", path, diff_stats=stats, is_new_file=is_new)
    data = WriteSample(file_path=path, is_new_file=is_new, diff=diff, diff_stats=stats)
    return Extracted(summary, data, file_path=path or None, is_write=True)


def _str_arg(args: dict, *keys: str) -> str:
    for key in keys:
        value = args.get(key)
        if isinstance(value, str):
            return value
    return ""


def _edit_pairs(args: dict) -> list[tuple[str, str]]:
    edits = args.get("edits")
    if isinstance(edits, list):
        return [
            (_str_arg(e, "old_string", "old_str"), _str_arg(e, "new_string", "new_str"))
            for e in edits
            if isinstance(e, dict)
        ]
    return [(_str_arg(args, "old_string", "old_str"), _str_arg(args, "new_string", "new_str"))]


def _extract_edit(call: ToolInvocationBlock, result: Optional[IndexedResult], cfg: VerbosityConfig) -> Extracted:
    args = call.arguments
    path = _arg(args, *_PATH_KEYS)
    patch = _arg(args, "patch", "input", "diff")
    if patch and not args.get("old_string") and not args.get("edits"):
        raw_diff = patch
    else:
        raw_diff = "\n".join(
            filter(None, (edit_diff(old, new, path) for old, new in _edit_pairs(args)))
        )
    diff, stats = diff_with_stats(raw_diff, cfg.edit.diff_lines, cfg.edit.max_chars)
    summary = file_summary("edit", path, diff_stats=stats)
    data = EditSample(file_path=path, diff=diff, diff_stats=stats)
    return Extracted(summary, data, file_path=path or None, is_write=True)


def _match_lines(text: Optional[str], max_lines: int, max_chars: int) -> list[str]:
    """Leading result lines of a grep, without the "Found N" header."""
    if not text or max_lines <= 0 or _NO_RESULTS_RE.match(text):
        return []
    lines = [
        line for line in text.splitlines()
        if line.strip() and not _FOUND_RE.match(line)
    ]
    return [truncate(line, max_chars) for line in lines[:max_lines]]


def _extract_grep(call: ToolInvocationBlock, result: Optional[IndexedResult], cfg: VerbosityConfig) -> Extracted:
    args = call.arguments
    pattern = truncate(_arg(args, "pattern", "query", "regex"), cfg.grep.max_chars)
    target = _arg(args, "path", "include", "glob", "target_directory") or None
    shown = pattern if cfg.grep.show_pattern else "…"
    text = result.text if result else None
    data = GrepSample(
        pattern=shown,
        target_path=target,
        match_count=_count_results(text),
        matches=_match_lines(text, cfg.grep.match_lines, cfg.grep.max_chars),
    )
    return Extracted(grep_summary(shown, target), data)


def _extract_glob(call: ToolInvocationBlock, result: Optional[IndexedResult], cfg: VerbosityConfig) -> Extracted:
    pattern = _arg(call.arguments, "pattern", "glob_pattern", "path", "target_directory")
    data = GlobSample(pattern=pattern, result_count=_count_results(result.text if result else None))
    return Extracted(glob_summary(pattern), data)


def _extract_search(call: ToolInvocationBlock, result: Optional[IndexedResult], cfg: VerbosityConfig) -> Extracted:
    query = _arg(call.arguments, "query", "search_term", "q")
    return Extracted(search_summary(query), SearchSample(query=query))


def _extract_fetch(call: ToolInvocationBlock, result: Optional[IndexedResult], cfg: VerbosityConfig) -> Extracted:
    url = _arg(call.arguments, "url", "uri", "href")
    preview = truncate(one_line(result.text), cfg.fetch.preview_chars) if result else ""
    return Extracted(fetch_summary(url), FetchSample(url=url, result_preview=preview))


def _extract_task(call: ToolInvocationBlock, result: Optional[IndexedResult], cfg: VerbosityConfig) -> Extracted:
    args = call.arguments
    description = _arg(args, "description", "prompt", "task", "message")
    agent_type = _arg(args, "subagent_type", "agent_type", "mode") or None
    task_result = None
    if result and cfg.task.include_subagent_results and cfg.task.subagent_result_chars:
        task_result = truncate(result.text.strip(), cfg.task.subagent_result_chars)
    data = TaskSample(description=description, agent_type=agent_type, result=task_result)
    return Extracted(subagent_summary(description, agent_type), data)


def _extract_ask(call: ToolInvocationBlock, result: Optional[IndexedResult], cfg: VerbosityConfig) -> Extracted:
    args = call.arguments
    question = ""
    questions = args.get("questions")
    if isinstance(questions, list) and questions:
        first = questions[0]
        question = first.get("question", "") if isinstance(first, dict) else str(first)
    if not question:
        question = _arg(args, "question", "prompt", "message")
    return Extracted(ask_summary(question), AskSample(question=question))


def _params_preview(args: dict, max_chars: int) -> str:
    try:
        raw = json.dumps(args, ensure_ascii=False, default=str)
    except (TypeError, ValueError):
        raw = str(args)
    return truncate(raw, max_chars)


def _extract_mcp(call: ToolInvocationBlock, result: Optional[IndexedResult], cfg: VerbosityConfig) -> Extracted:
    params = _params_preview(call.arguments, cfg.mcp.param_chars)
    result_preview = truncate(one_line(result.text), cfg.mcp.result_chars) if result else ""
    summary = mcp_summary(call.name, params, result_preview or None)
    data = McpSample(tool_name=call.name, params_preview=params, result_preview=result_preview)
    return Extracted(summary, data)


Extractor = Callable[[ToolInvocationBlock, Optional[IndexedResult], VerbosityConfig], Extracted]

EXTRACTORS: dict[str, Extractor] = {
    tool_names.SHELL: _extract_shell,
    tool_names.READ: _extract_read,
    tool_names.WRITE: _extract_write,
    tool_names.EDIT: _extract_edit,
    tool_names.GREP: _extract_grep,
    tool_names.GLOB: _extract_glob,
    tool_names.SEARCH: _extract_search,
    tool_names.FETCH: _extract_fetch,
    tool_names.TASK: _extract_task,
    tool_names.ASK: _extract_ask,
    tool_names.MCP: _extract_mcp,
}


# ── Pass 2 ──────────────────────────────────────────────────────────────────


def extract_tool_data(messages: list[TranscriptMessage], config: VerbosityConfig) -> ToolExtraction:
    """Summarize every tool invocation in the stream by category."""
    results = build_result_index(messages)
    collector = SummaryCollector(config)

    for msg in messages:
        for block in msg.blocks:
            if block.type != "tool_invocation":
                continue
            result = results.get(block.id) if block.id else None
            is_error = result.is_error if result else block.failed
            category = tool_names.classify_tool_name(block.name)

            if category == tool_names.REASONING:
                # handled by the reasoning extractor
                continue
            if category is None:
                params = _params_preview(block.arguments, config.mcp.param_chars)
                collector.add(OTHER_CATEGORY, mcp_summary(block.name, params), is_error=is_error)
                continue

            extracted = EXTRACTORS[category](block, result, config)
            collector.add(
                category,
                extracted.summary,
                data=extracted.data,
                file_path=extracted.file_path,
                is_write=extracted.is_write,
                is_error=is_error,
            )

    logger.debug(f"Extracted tool data for {len(messages)} messages")
    return ToolExtraction(collector.get_summaries(), collector.get_files_modified())
