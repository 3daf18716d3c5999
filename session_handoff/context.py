"""Assemble a SessionContext from a normalized message stream."""

import logging
from typing import Callable, Iterable, Optional

from .config import VerbosityConfig
from .extraction import extract_tool_data
from .handoff import generate_handoff_markdown
from .models import (
    ConversationMessage,
    DelegationEvent,
    ExternalToolResult,
    Session,
    SessionContext,
    SessionNotes,
    TranscriptMessage,
)
from .pending import PENDING_TASK_CHARS, infer_pending_tasks
from .reasoning import (
    accumulate_usage,
    extract_compact_summary,
    extract_reasoning_steps,
    extract_thinking_highlights,
    reasoning_highlights,
    resolve_subagents,
)
from .summarizer import truncate

logger = logging.getLogger(__name__)

CONVERSATION_ROLES = ("user", "assistant", "system", "tool")


def _is_tool_result_only(msg: TranscriptMessage) -> bool:
    return bool(msg.blocks) and all(block.type == "tool_result" for block in msg.blocks)


def collect_recent_messages(messages: list[TranscriptMessage], config: VerbosityConfig) -> list[ConversationMessage]:
    """Conversational turns with text, trimmed to the recency window."""
    recent: list[ConversationMessage] = []
    for msg in messages:
        if msg.role not in CONVERSATION_ROLES or msg.is_compact_summary:
            continue
        if (
            msg.role == "user"
            and config.agents.claude.separate_human_from_tool_results
            and _is_tool_result_only(msg)
        ):
            continue
        text = msg.text
        if not text:
            continue
        recent.append(ConversationMessage(
            role=msg.role,
            content=truncate(text, config.max_message_chars),
            timestamp=msg.timestamp,
        ))
    if config.recent_messages <= 0:
        return []
    return recent[-config.recent_messages:]


def build_session_context(
    session: Session,
    messages: list[TranscriptMessage],
    config: VerbosityConfig,
    *,
    delegations: Iterable[DelegationEvent] = (),
    load_subagent: Optional[Callable[[str], list[TranscriptMessage]]] = None,
    external_results: Iterable[ExternalToolResult] = (),
    mode: str = "inline",
) -> SessionContext:
    """Run the full extraction pipeline for one session."""
    tools = extract_tool_data(messages, config)

    notes = SessionNotes()
    accumulate_usage(messages, notes)
    notes.reasoning = extract_thinking_highlights(messages, config)
    notes.compact_summary = extract_compact_summary(messages, config.compact_summary.max_chars)

    thinking_cfg = config.mcp.thinking_tools
    if thinking_cfg.extract_reasoning:
        notes.reasoning_steps = extract_reasoning_steps(messages, thinking_cfg.max_reasoning_chars)
        room = config.thinking.max_highlights - len(notes.reasoning)
        notes.reasoning += reasoning_highlights(notes.reasoning_steps, room)

    incomplete: list[str] = []
    if load_subagent is not None:
        resolution = resolve_subagents(delegations, load_subagent, config)
        notes.subagent_results = resolution.results
        incomplete = resolution.incomplete

    notes.external_tool_results = list(external_results)

    pending_steps = extract_reasoning_steps(messages, PENDING_TASK_CHARS)
    pending_tasks = infer_pending_tasks(pending_steps, incomplete, config)

    recent = collect_recent_messages(messages, config)
    markdown = generate_handoff_markdown(
        session,
        recent,
        tools.files_modified,
        pending_tasks,
        tools.summaries,
        notes,
        mode=mode,
    )
    logger.debug(
        f"Built context for {session.id}: {len(tools.summaries)} tool categories, "
        f"{len(pending_tasks)} pending tasks, {len(markdown)} chars"
    )
    return SessionContext(
        session=session,
        recent_messages=recent,
        files_modified=tools.files_modified,
        pending_tasks=pending_tasks,
        tool_summaries=tools.summaries,
        session_notes=notes,
        markdown=markdown,
    )
