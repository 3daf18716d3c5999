"""Classification of vendor tool names into semantic categories."""

import re
from typing import Optional

SHELL = "shell"
READ = "read"
WRITE = "write"
EDIT = "edit"
GREP = "grep"
GLOB = "glob"
SEARCH = "search"
FETCH = "fetch"
TASK = "task"
ASK = "ask"
MCP = "mcp"
REASONING = "reasoning"

CATEGORIES = (SHELL, READ, WRITE, EDIT, GREP, GLOB, SEARCH, FETCH, TASK, ASK, MCP, REASONING)

SHELL_TOOLS = frozenset({
    "Bash", "bash", "Shell", "shell", "run_terminal_cmd", "run_shell_command",
    "exec_command", "execute_command", "local_shell", "terminal", "run_command",
})

READ_TOOLS = frozenset({
    "Read", "read", "read_file", "ReadFile", "view", "read_many_files",
    "NotebookRead", "open_file",
})

WRITE_TOOLS = frozenset({
    "Write", "write", "write_file", "WriteFile", "create_file", "write_to_file",
})

EDIT_TOOLS = frozenset({
    "Edit", "MultiEdit", "edit", "edit_file", "replace", "str_replace_editor",
    "str_replace_based_edit_tool", "apply_patch", "search_replace", "StrReplace",
    "NotebookEdit", "replace_in_file",
})

GREP_TOOLS = frozenset({
    "Grep", "grep", "grep_search", "search_file_content", "ripgrep", "rg",
})

GLOB_TOOLS = frozenset({
    "Glob", "glob", "LS", "ls", "list_dir", "list_directory", "list_files",
    "file_search", "find_files",
})

SEARCH_TOOLS = frozenset({
    "WebSearch", "web_search", "google_web_search", "search_web", "codebase_search",
})

FETCH_TOOLS = frozenset({
    "WebFetch", "web_fetch", "fetch", "fetch_url", "read_url",
})

TASK_TOOLS = frozenset({
    "Task", "Agent", "task", "spawn_agent", "delegate_task", "new_task",
})

ASK_TOOLS = frozenset({
    "AskUserQuestion", "ask_user", "ask_followup_question", "request_user_input",
})

THINKING_TOOLS = frozenset({
    "crash-think-tool",
    "must-use-think-tool-crash-crash",
    "sequential-thinking",
    "sequentialthinking",
    "think",
    "crash",
})

_STATIC_SETS = (
    (SHELL, SHELL_TOOLS),
    (READ, READ_TOOLS),
    (WRITE, WRITE_TOOLS),
    (EDIT, EDIT_TOOLS),
    (GREP, GREP_TOOLS),
    (GLOB, GLOB_TOOLS),
    (SEARCH, SEARCH_TOOLS),
    (FETCH, FETCH_TOOLS),
    (TASK, TASK_TOOLS),
    (ASK, ASK_TOOLS),
)

# mcp__server__tool, mcp_server_tool, server__tool
_MCP_PATTERN = re.compile(r"^(mcp[_-].+|[\w.-]+__[\w.-]+)$")


def _namespace_parts(name: str) -> list[str]:
    return [part for part in re.split(r"__", name) if part]


def is_thinking_tool(name: str) -> bool:
    """Check whether a tool is a structured reasoning/introspection tool.

    Matches bare names as well as MCP-namespaced ones such as
    ``mcp__sequential-thinking__sequentialthinking``.
    """
    if not name:
        return False
    if name in THINKING_TOOLS:
        return True
    parts = _namespace_parts(name)
    return len(parts) > 1 and any(part in THINKING_TOOLS for part in parts[1:])


def classify_tool_name(name: str) -> Optional[str]:
    """Map a raw tool name to its category, or ``None`` when unclassified."""
    if not name:
        return None
    for category, names in _STATIC_SETS:
        if name in names:
            return category
    if is_thinking_tool(name):
        return REASONING
    if _MCP_PATTERN.match(name):
        return MCP
    return None
