"""Unified diff text, diff stats and output tails for tool samples."""

import difflib

from .models import DiffStats


def count_diff_stats(diff: str) -> DiffStats:
    """Count added/removed lines in unified diff text (headers excluded)."""
    added = removed = 0
    for line in diff.splitlines():
        if line.startswith("+++") or line.startswith("---"):
            continue
        if line.startswith("+"):
            added += 1
        elif line.startswith("-"):
            removed += 1
    return DiffStats(added=added, removed=removed)


def cap_diff(diff: str, max_lines: int, max_chars: int = 0) -> str:
    """Bound diff text by line count and optionally by characters.

    A marker line records how many lines were dropped.
    """
    lines = diff.splitlines()
    if len(lines) > max_lines:
        omitted = len(lines) - max_lines
        lines = lines[:max_lines] + [f"... ({omitted} more lines)"]
    text = "\n".join(lines)
    if max_chars and len(text) > max_chars:
        text = text[:max_chars].rstrip("\n") + "\n... (truncated)"
    return text


def new_file_diff(content: str, file_path: str) -> str:
    """Diff for a file written from scratch: every line is an addition."""
    lines = content.splitlines()
    header = ["--- /dev/null", f"+++ b/{file_path}", f"@@ -0,0 +1,{len(lines)} @@"]
    return "\n".join(header + [f"+{line}" for line in lines])


def edit_diff(old: str, new: str, file_path: str) -> str:
    """Unified diff between two snippets of the same file."""
    diff = difflib.unified_diff(
        old.splitlines(),
        new.splitlines(),
        fromfile=f"a/{file_path}",
        tofile=f"b/{file_path}",
        lineterm="",
    )
    return "\n".join(diff)


def diff_with_stats(diff: str, max_lines: int, max_chars: int = 0) -> tuple[str, DiffStats]:
    """Return the capped diff plus stats computed on the full diff."""
    return cap_diff(diff, max_lines, max_chars), count_diff_stats(diff)


def extract_output_tail(output: str, max_lines: int, max_chars: int = 0) -> str:
    """Last ``max_lines`` non-blank lines of command output."""
    if not output or max_lines <= 0:
        return ""
    lines = [line for line in output.rstrip().splitlines() if line.strip()]
    tail = "\n".join(lines[-max_lines:])
    if max_chars and len(tail) > max_chars:
        tail = tail[-max_chars:]
    return tail
