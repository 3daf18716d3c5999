"""Tool call summaries: formatting helpers and the per-category collector.

Each provider normalizes its raw tool events, and the extraction pipeline
uses these helpers so summaries read the same across every harness.
"""

import re
from typing import Optional

from .config import VerbosityConfig
from .models import DiffStats, StructuredToolSample, ToolSample, ToolUsageSummary

DEFAULT_MAX_SAMPLES = 5

_EXIT_CODE_RE = re.compile(r"exit(?:ed with)? code[:\s]+(\d+)", re.IGNORECASE)


# ── Formatting helpers ──────────────────────────────────────────────────────


def truncate(text: str, max_len: int) -> str:
    """Truncate text with ellipsis."""
    if len(text) <= max_len:
        return text
    if max_len <= 3:
        return text[:max(max_len, 0)]
    return text[:max_len - 3] + "..."


def one_line(text: str) -> str:
    return " ".join(text.split())


def extract_exit_code(text: Optional[str]) -> Optional[int]:
    """Extract an exit code from tool result text."""
    if not text:
        return None
    match = _EXIT_CODE_RE.search(text)
    return int(match.group(1)) if match else None


def with_result(summary: str, result: Optional[str]) -> str:
    if not result:
        return summary
    return f'{summary} → "{truncate(one_line(result), 80)}"'


def shell_summary(command: str, result: Optional[str] = None, show_exit_code: bool = True) -> str:
    summary = f"$ {truncate(one_line(command), 80)}"
    exit_code = extract_exit_code(result) if show_exit_code else None
    if exit_code is not None:
        return f"{summary} → exit {exit_code}"
    return with_result(summary, result)


def file_summary(
    op: str,
    file_path: str,
    diff_stats: Optional[DiffStats] = None,
    is_new_file: bool = False,
    line_range: Optional[tuple[Optional[int], Optional[int]]] = None,
) -> str:
    summary = f"{op} {file_path}"
    if is_new_file:
        summary += " (new file)"
    elif diff_stats is not None:
        summary += f" (+{diff_stats.added} -{diff_stats.removed} lines)"
    elif line_range and line_range[0] is not None:
        start, end = line_range
        summary += f" (lines {start}-{end})" if end is not None else f" (from line {start})"
    return summary


def grep_summary(pattern: str, target_path: Optional[str] = None) -> str:
    return f'grep "{truncate(pattern, 80)}" {target_path or ""}'.strip()


def glob_summary(pattern: str) -> str:
    return f'glob "{pattern}"'


def search_summary(query: str) -> str:
    return f'search "{truncate(query, 60)}"'


def fetch_summary(url: str) -> str:
    return f"fetch {truncate(url, 80)}"


def ask_summary(question: str) -> str:
    return f'ask "{truncate(one_line(question), 80)}"'


def mcp_summary(name: str, args: str, result: Optional[str] = None) -> str:
    return with_result(f"{name}({args})", result)


def subagent_summary(description: str, agent_type: Optional[str] = None) -> str:
    if agent_type:
        return f'task "{truncate(description, 60)}" ({agent_type})'
    return f"task-output: {truncate(description, 80)}"


# ── Collector ───────────────────────────────────────────────────────────────


def category_cap(config: VerbosityConfig, category: str) -> int:
    """Sample cap for a category, falling back to DEFAULT_MAX_SAMPLES."""
    caps = {
        "shell": config.shell.max_samples,
        "read": config.read.max_samples,
        "write": config.write.max_samples,
        "edit": config.edit.max_samples,
        "grep": config.grep.max_samples,
        "glob": config.grep.max_samples,
        "fetch": config.fetch.max_samples,
        "task": config.task.max_samples,
        "mcp": config.mcp.max_samples_per_namespace,
    }
    return caps.get(category, DEFAULT_MAX_SAMPLES)


class _Entry:
    __slots__ = ("count", "errors", "samples")

    def __init__(self):
        self.count = 0
        self.errors = 0
        self.samples: list[ToolSample] = []


class SummaryCollector:
    """Accumulate tool call summaries by category.

    Keeps up to the configured cap of representative samples per category,
    exact invocation and error counts, and the set of files modified.
    """

    def __init__(self, config: VerbosityConfig):
        self.config = config
        self._data: dict[str, _Entry] = {}
        self._files: dict[str, None] = {}

    def add(
        self,
        category: str,
        summary: str,
        *,
        data: Optional[StructuredToolSample] = None,
        file_path: Optional[str] = None,
        is_write: bool = False,
        is_error: bool = False,
    ) -> None:
        """Add a tool invocation. Optionally tracks file modification."""
        entry = self._data.get(category)
        if entry is None:
            entry = self._data[category] = _Entry()
        entry.count += 1
        if is_error:
            entry.errors += 1
        if len(entry.samples) < category_cap(self.config, category):
            entry.samples.append(ToolSample(summary=summary, data=data))
        if is_write and file_path:
            self._files[file_path] = None

    def track_file(self, file_path: str) -> None:
        """Track a file modification without adding a tool summary entry."""
        self._files[file_path] = None

    def get_summaries(self) -> list[ToolUsageSummary]:
        return [
            ToolUsageSummary(
                name=name,
                count=entry.count,
                samples=list(entry.samples),
                error_count=entry.errors or None,
            )
            for name, entry in self._data.items()
        ]

    def get_files_modified(self) -> list[str]:
        return list(self._files)
