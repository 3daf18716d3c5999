"""Unified session and handoff models shared by all providers."""

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Literal, Optional, Union


@dataclass
class Session:
    """Unified session model for all AI coding harnesses."""

    # Identity
    id: str
    harness: str  # provider name: "claude-code", "cursor", ...
    raw_path: Path  # original transcript location

    # Project context
    project_path: Path
    project_name: str
    repo: Optional[str] = None
    branch: Optional[str] = None

    # Size
    lines: int = 0
    bytes: int = 0

    # Timing
    created_time: Optional[datetime] = None
    modified_time: Optional[datetime] = None

    summary: Optional[str] = None

    # Provider-specific data
    extra: dict = field(default_factory=dict)


# ── Normalized event stream ─────────────────────────────────────────────────


@dataclass(frozen=True)
class TextBlock:
    text: str
    type: Literal["text"] = "text"


@dataclass(frozen=True)
class ToolInvocationBlock:
    id: str
    name: str
    arguments: dict = field(default_factory=dict)
    failed: bool = False  # some formats flag the call itself
    type: Literal["tool_invocation"] = "tool_invocation"


@dataclass(frozen=True)
class ToolResultBlock:
    tool_use_id: str
    content: str = ""
    is_error: bool = False
    type: Literal["tool_result"] = "tool_result"


@dataclass(frozen=True)
class ThinkingBlock:
    thinking: str
    type: Literal["thinking"] = "thinking"


ContentBlock = Union[TextBlock, ToolInvocationBlock, ToolResultBlock, ThinkingBlock]


@dataclass
class TranscriptMessage:
    """One role-tagged record of the normalized event stream."""

    role: str  # "user" | "assistant" | "system" | "tool"
    blocks: list[ContentBlock] = field(default_factory=list)
    timestamp: Optional[datetime] = None
    model: Optional[str] = None
    usage: dict = field(default_factory=dict)
    is_compact_summary: bool = False

    @property
    def text(self) -> str:
        return "\n".join(b.text for b in self.blocks if b.type == "text" and b.text).strip()


@dataclass(frozen=True)
class DelegationEvent:
    """A subagent lifecycle event (enqueue / dequeue / complete)."""

    task_id: str
    operation: str
    description: str = ""
    task_type: Optional[str] = None


# ── Structured tool samples ─────────────────────────────────────────────────


@dataclass(frozen=True)
class DiffStats:
    added: int = 0
    removed: int = 0


@dataclass
class ShellSample:
    command: str
    exit_code: Optional[int] = None
    stdout_tail: str = ""
    is_error: bool = False
    kind: Literal["shell"] = "shell"


@dataclass
class ReadSample:
    file_path: str
    line_start: Optional[int] = None
    line_end: Optional[int] = None
    content_preview: str = ""
    kind: Literal["read"] = "read"


@dataclass
class WriteSample:
    file_path: str
    is_new_file: bool = False
    diff: str = ""
    diff_stats: DiffStats = field(default_factory=DiffStats)
    kind: Literal["write"] = "write"


@dataclass
class EditSample:
    file_path: str
    diff: str = ""
    diff_stats: DiffStats = field(default_factory=DiffStats)
    kind: Literal["edit"] = "edit"


@dataclass
class GrepSample:
    pattern: str
    target_path: Optional[str] = None
    match_count: Optional[int] = None
    matches: list[str] = field(default_factory=list)
    kind: Literal["grep"] = "grep"


@dataclass
class GlobSample:
    pattern: str
    result_count: Optional[int] = None
    kind: Literal["glob"] = "glob"


@dataclass
class SearchSample:
    query: str
    kind: Literal["search"] = "search"


@dataclass
class FetchSample:
    url: str
    result_preview: str = ""
    kind: Literal["fetch"] = "fetch"


@dataclass
class TaskSample:
    description: str
    agent_type: Optional[str] = None
    result: Optional[str] = None
    kind: Literal["task"] = "task"


@dataclass
class AskSample:
    question: str
    kind: Literal["ask"] = "ask"


@dataclass
class McpSample:
    tool_name: str
    params_preview: str = ""
    result_preview: str = ""
    kind: Literal["mcp"] = "mcp"


StructuredToolSample = Union[
    ShellSample,
    ReadSample,
    WriteSample,
    EditSample,
    GrepSample,
    GlobSample,
    SearchSample,
    FetchSample,
    TaskSample,
    AskSample,
    McpSample,
]


@dataclass
class ToolSample:
    summary: str
    data: Optional[StructuredToolSample] = None


@dataclass
class ToolUsageSummary:
    name: str  # category
    count: int
    samples: list[ToolSample] = field(default_factory=list)
    error_count: Optional[int] = None  # only set when > 0


# ── Session notes ───────────────────────────────────────────────────────────


@dataclass
class ConversationMessage:
    role: str  # "user" | "assistant" | "system" | "tool"
    content: str
    timestamp: Optional[datetime] = None


@dataclass
class ReasoningStep:
    step_number: int = 0
    total_steps: int = 0
    purpose: str = ""
    thought: str = ""
    outcome: str = ""
    next_action: str = ""


@dataclass
class SubagentResult:
    task_id: str
    description: str
    status: Literal["completed", "killed"]
    result: Optional[str] = None
    tool_call_count: int = 0


@dataclass
class ExternalToolResult:
    name: str
    size_bytes: int
    preview: str = ""


@dataclass
class TokenUsage:
    input: int = 0
    output: int = 0


@dataclass
class CacheTokens:
    creation: int = 0
    read: int = 0


@dataclass
class SessionNotes:
    model: Optional[str] = None
    token_usage: Optional[TokenUsage] = None
    cache_tokens: Optional[CacheTokens] = None
    reasoning: list[str] = field(default_factory=list)
    reasoning_steps: list[ReasoningStep] = field(default_factory=list)
    subagent_results: list[SubagentResult] = field(default_factory=list)
    external_tool_results: list[ExternalToolResult] = field(default_factory=list)
    compact_summary: Optional[str] = None


@dataclass(frozen=True)
class SessionContext:
    """Output of one extraction run. Never mutated after construction."""

    session: Session
    recent_messages: list[ConversationMessage]
    files_modified: list[str]
    pending_tasks: list[str]
    tool_summaries: list[ToolUsageSummary]
    session_notes: SessionNotes
    markdown: str
