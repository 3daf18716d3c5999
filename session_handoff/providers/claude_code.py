"""Claude Code session provider."""

import json
import logging
import re
from datetime import datetime
from functools import partial
from pathlib import Path
from typing import Any, Optional

from ..config import VerbosityConfig, get_preset
from ..context import build_session_context
from ..models import (
    ContentBlock,
    DelegationEvent,
    Session,
    SessionContext,
    TextBlock,
    ThinkingBlock,
    ToolInvocationBlock,
    ToolResultBlock,
    TranscriptMessage,
)
from ..reasoning import read_tool_results_dir
from . import register_provider
from .base import (
    HEAD_SCAN_LINES,
    SessionProvider,
    clean_summary,
    extract_repo_from_cwd,
    file_stats,
    is_real_user_message,
    iter_jsonl,
    read_jsonl,
)

logger = logging.getLogger(__name__)

SESSIONS_DIR = Path.home() / ".claude" / "projects"
MIN_SESSION_BYTES = 200

_SESSION_FILE_RE = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}\.jsonl$", re.IGNORECASE
)


def decode_path(encoded: str) -> str:
    """Decode a project directory name back to the original path."""
    return encoded.replace("-", "/")


def parse_timestamp(value: Any) -> Optional[datetime]:
    if not isinstance(value, str) or not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


def _tool_result_text(content: Any) -> str:
    """Flatten tool_result content (string or list of text blocks)."""
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = []
        for item in content:
            if isinstance(item, dict) and item.get("type") == "text":
                parts.append(item.get("text", ""))
            elif isinstance(item, str):
                parts.append(item)
        return "\n".join(parts)
    return "" if content is None else str(content)


def _str_field(data: dict, key: str) -> str:
    value = data.get(key)
    return value if isinstance(value, str) else ""


def _is_system_text(text: str) -> bool:
    return text.strip().startswith("<system-reminder>")


def convert_content(content: Any) -> list[ContentBlock]:
    """Convert Anthropic-style message content into normalized blocks."""
    if isinstance(content, str):
        return [] if not content or _is_system_text(content) else [TextBlock(content)]
    if not isinstance(content, list):
        return []

    blocks: list[ContentBlock] = []
    for item in content:
        if isinstance(item, str):
            blocks.append(TextBlock(item))
            continue
        if not isinstance(item, dict):
            continue
        kind = item.get("type")
        if kind == "text":
            text = item.get("text") or ""
            if text and not _is_system_text(text):
                blocks.append(TextBlock(text))
        elif kind == "tool_use":
            args = item.get("input")
            blocks.append(ToolInvocationBlock(
                id=item.get("id") or "",
                name=item.get("name") or "",
                arguments=args if isinstance(args, dict) else {},
            ))
        elif kind == "tool_result":
            blocks.append(ToolResultBlock(
                tool_use_id=item.get("tool_use_id") or "",
                content=_tool_result_text(item.get("content")),
                is_error=bool(item.get("is_error")),
            ))
        elif kind == "thinking":
            thinking = item.get("thinking") or ""
            if thinking:
                blocks.append(ThinkingBlock(thinking))
    return blocks


def normalize_events(events: list[dict], filter_progress: bool = True) -> list[TranscriptMessage]:
    """Turn raw Claude Code JSONL events into the normalized stream."""
    messages = []
    for data in events:
        msg_type = data.get("type")
        if msg_type == "progress" and filter_progress:
            continue
        if msg_type not in ("user", "assistant", "progress"):
            continue
        msg = data.get("message")
        if not isinstance(msg, dict):
            continue
        role = msg.get("role") or msg_type
        usage = msg.get("usage")
        messages.append(TranscriptMessage(
            role=role,
            blocks=convert_content(msg.get("content")),
            timestamp=parse_timestamp(data.get("timestamp")),
            model=msg.get("model") or data.get("model"),
            usage=usage if isinstance(usage, dict) else {},
            is_compact_summary=bool(data.get("isCompactSummary")),
        ))
    return messages


def parse_queue_operations(events: list[dict]) -> list[DelegationEvent]:
    """Extract subagent lifecycle events from queue-operation lines."""
    operations = []
    for data in events:
        if data.get("type") != "queue-operation":
            continue
        content = data.get("content")
        if not isinstance(content, str) or not content:
            continue
        try:
            parsed = json.loads(content)
        except json.JSONDecodeError:
            logger.debug(f"Malformed queue-operation content: {content[:100]}")
            continue
        if not isinstance(parsed, dict) or not parsed.get("task_id"):
            continue
        operations.append(DelegationEvent(
            task_id=str(parsed["task_id"]),
            operation=data.get("operation") or "",
            description=parsed.get("description") or "",
            task_type=parsed.get("task_type") or None,
        ))
    return operations


@register_provider
class ClaudeCodeProvider(SessionProvider):
    """Provider for Claude Code sessions."""

    name = "claude-code"
    display_name = "Claude Code"
    color = "cyan"

    def __init__(self, sessions_dir: Optional[Path] = None):
        self.sessions_dir = sessions_dir or SESSIONS_DIR

    def get_sessions_dir(self) -> Path:
        return self.sessions_dir

    def discover_session_files(self) -> list[Path]:
        """Discover top-level session JSONL files (subagent files excluded)."""
        sessions_dir = self.get_sessions_dir()
        if not sessions_dir.exists():
            return []
        return [
            path for path in sessions_dir.glob("*/*.jsonl")
            if _SESSION_FILE_RE.match(path.name)
        ]

    def parse_session(self, path: Path) -> Session | None:
        """Parse session metadata from the head of a Claude Code JSONL file."""
        session_id = ""
        cwd = ""
        git_branch = ""
        first_prompt = ""

        for data in iter_jsonl(path, limit=HEAD_SCAN_LINES):
            session_id = session_id or _str_field(data, "sessionId")
            cwd = cwd or _str_field(data, "cwd")
            git_branch = git_branch or _str_field(data, "gitBranch")
            if not first_prompt and data.get("type") == "user":
                msg = data.get("message")
                if not isinstance(msg, dict):
                    continue
                text = "\n".join(
                    b.text for b in convert_content(msg.get("content")) if b.type == "text"
                )
                if is_real_user_message(text):
                    first_prompt = text

        lines, size = file_stats(path)
        if size <= MIN_SESSION_BYTES:
            return None

        stat = path.stat()
        project_path = Path(cwd) if cwd else Path(decode_path(path.parent.name))
        return Session(
            id=session_id or path.stem,
            harness=self.name,
            raw_path=path,
            project_path=project_path,
            project_name=project_path.name,
            repo=extract_repo_from_cwd(cwd),
            branch=git_branch or None,
            lines=lines,
            bytes=size,
            created_time=datetime.fromtimestamp(getattr(stat, "st_birthtime", stat.st_ctime)),
            modified_time=datetime.fromtimestamp(stat.st_mtime),
            summary=clean_summary(first_prompt) or None,
        )

    def session_dir(self, session: Session) -> Path:
        """Sidecar directory holding subagents/ and tool-results/."""
        return session.raw_path.with_suffix("")

    def load_messages(self, session: Session, config: VerbosityConfig) -> list[TranscriptMessage]:
        events = read_jsonl(session.raw_path)
        return normalize_events(events, config.agents.claude.filter_progress_events)

    def load_subagent(
        self,
        session: Session,
        task_id: str,
        config: VerbosityConfig,
        _seen: Optional[set[str]] = None,
    ) -> list[TranscriptMessage]:
        """Messages of one subagent transcript.

        With ``task.recurse_subagents`` the transcripts of subagents it
        delegated to are loaded too and placed before its own messages, so
        its final answer stays last while their tool calls still count.
        """
        path = self.session_dir(session) / "subagents" / f"agent-{task_id}.jsonl"
        events = read_jsonl(path)
        messages = normalize_events(events, config.agents.claude.filter_progress_events)
        if not config.task.recurse_subagents:
            return messages

        seen = _seen if _seen is not None else {task_id}
        nested: list[TranscriptMessage] = []
        for event in parse_queue_operations(events):
            if event.operation != "enqueue" or event.task_id in seen:
                continue
            seen.add(event.task_id)
            try:
                nested.extend(self.load_subagent(session, event.task_id, config, seen))
            except OSError as e:
                logger.debug(f"Failed to read nested subagent {event.task_id}: {e}")
        return nested + messages

    def extract_context(
        self,
        session: Session,
        config: Optional[VerbosityConfig] = None,
        mode: str = "inline",
    ) -> SessionContext:
        cfg = config or get_preset("standard")
        agent_cfg = cfg.agents.claude
        events = read_jsonl(session.raw_path)
        messages = normalize_events(events, agent_cfg.filter_progress_events)

        delegations: list[DelegationEvent] = []
        load_subagent = None
        if agent_cfg.parse_subagents:
            delegations = parse_queue_operations(events)
            load_subagent = partial(self.load_subagent, session, config=cfg)

        external = []
        if agent_cfg.parse_tool_results_dir:
            external = read_tool_results_dir(self.session_dir(session) / "tool-results")

        return build_session_context(
            session,
            messages,
            cfg,
            delegations=delegations,
            load_subagent=load_subagent,
            external_results=external,
            mode=mode,
        )
