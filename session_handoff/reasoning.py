"""Reasoning highlights, structured reasoning steps and subagent results."""

import logging
from pathlib import Path
from typing import Callable, Iterable, NamedTuple, Optional

from .config import VerbosityConfig
from .models import (
    CacheTokens,
    DelegationEvent,
    ExternalToolResult,
    ReasoningStep,
    SessionNotes,
    SubagentResult,
    TokenUsage,
    TranscriptMessage,
)
from .summarizer import one_line, truncate
from .tool_names import is_thinking_tool

logger = logging.getLogger(__name__)

SUBSTANTIAL_TEXT_MIN_CHARS = 50
TOOL_RESULT_PREVIEW_CHARS = 200


# ── Thinking ────────────────────────────────────────────────────────────────


def extract_thinking_highlights(messages: list[TranscriptMessage], config: VerbosityConfig) -> list[str]:
    """Most recent free-text thinking blocks, oldest first."""
    cfg = config.thinking
    if not cfg.include or cfg.max_highlights <= 0:
        return []
    highlights = []
    for msg in messages:
        if msg.role != "assistant":
            continue
        for block in msg.blocks:
            if block.type == "thinking" and block.thinking.strip():
                highlights.append(truncate(block.thinking.strip(), cfg.max_chars))
    return [h for h in highlights[-cfg.max_highlights:] if h]


def _as_int(value) -> int:
    try:
        return int(value or 0)
    except (TypeError, ValueError):
        return 0


def extract_reasoning_steps(messages: list[TranscriptMessage], max_chars: int) -> list[ReasoningStep]:
    """Structured steps from assistant calls to thinking tools."""
    steps = []
    for msg in messages:
        if msg.role != "assistant":
            continue
        for block in msg.blocks:
            if block.type != "tool_invocation" or not is_thinking_tool(block.name):
                continue
            args = block.arguments
            if not args:
                continue
            steps.append(ReasoningStep(
                step_number=_as_int(args.get("step_number") or args.get("thoughtNumber")),
                total_steps=_as_int(
                    args.get("estimated_total") or args.get("total_steps") or args.get("totalThoughts")
                ),
                purpose=truncate(str(args.get("purpose") or ""), max_chars),
                thought=truncate(str(args.get("thought") or ""), max_chars),
                outcome=truncate(str(args.get("outcome") or ""), max_chars),
                next_action=truncate(str(args.get("next_action") or ""), max_chars),
            ))
    return steps


def reasoning_highlights(steps: list[ReasoningStep], max_highlights: int, max_chars: int = 150) -> list[str]:
    """One-line projection of the latest reasoning steps."""
    lines = []
    for step in steps[-max_highlights:] if max_highlights > 0 else []:
        label = f"Step {step.step_number}/{step.total_steps}"
        if step.purpose:
            label += f" ({step.purpose})"
        lines.append(truncate(one_line(f"{label}: {step.thought}"), max_chars))
    return lines


# ── Subagents ───────────────────────────────────────────────────────────────


def is_termination_message(text: str) -> bool:
    """Check if text looks like a rate-limit or termination notice.

    Lexical heuristic: short legitimate replies mentioning "usage" or
    "limit" are misclassified too.
    """
    lower = text.lower()
    return (
        "out of extra usage" in lower
        or "rate limit" in lower
        or "resets " in lower
        or (len(text) < SUBSTANTIAL_TEXT_MIN_CHARS and ("usage" in lower or "limit" in lower))
    )


class SubagentOutcome(NamedTuple):
    text: Optional[str]
    status: str
    tool_call_count: int


def extract_subagent_result(messages: Iterable[TranscriptMessage]) -> SubagentOutcome:
    """Last substantial assistant text of a subagent transcript.

    The subagent counts as killed when a termination notice was seen and no
    substantial text follows it.
    """
    tool_calls = 0
    last_text: Optional[str] = None
    killed = False
    for msg in messages:
        if msg.role != "assistant":
            continue
        tool_calls += sum(1 for block in msg.blocks if block.type == "tool_invocation")
        text = msg.text
        if not text:
            continue
        if is_termination_message(text):
            killed = True
        elif len(text) > SUBSTANTIAL_TEXT_MIN_CHARS:
            last_text = text
            killed = False
    return SubagentOutcome(last_text, "killed" if killed else "completed", tool_calls)


class SubagentResolution(NamedTuple):
    results: list[SubagentResult]
    incomplete: list[str]  # descriptions of unresolved subagents


def resolve_subagents(
    events: Iterable[DelegationEvent],
    load_transcript: Callable[[str], list[TranscriptMessage]],
    config: VerbosityConfig,
) -> SubagentResolution:
    """Resolve each delegated task to a SubagentResult.

    ``load_transcript`` maps a task id to the subagent's messages. Any
    failure to load degrades to a killed result with no tool calls.
    """
    events = list(events)
    completed_ids = {e.task_id for e in events if e.operation != "enqueue"}

    unique: list[DelegationEvent] = []
    seen: set[str] = set()
    for event in events:
        if event.operation != "enqueue" or event.task_id in seen:
            continue
        seen.add(event.task_id)
        unique.append(event)

    results: list[SubagentResult] = []
    incomplete: list[str] = []
    substantial = 0
    for task in unique:
        if substantial >= config.task.max_samples:
            break
        try:
            outcome = extract_subagent_result(load_transcript(task.task_id))
        except (OSError, ValueError) as e:
            logger.debug(f"Failed to read subagent transcript for {task.task_id}: {e}")
            outcome = SubagentOutcome(None, "killed", 0)

        results.append(SubagentResult(
            task_id=task.task_id,
            description=task.description,
            status=outcome.status,
            result=truncate(outcome.text, config.task.subagent_result_chars) if outcome.text else None,
            tool_call_count=outcome.tool_call_count,
        ))
        if outcome.text:
            substantial += 1
        elif task.task_id not in completed_ids:
            incomplete.append(task.description or task.task_id)

    return SubagentResolution(results, incomplete)


# ── Session notes ───────────────────────────────────────────────────────────


def accumulate_usage(messages: list[TranscriptMessage], notes: SessionNotes) -> None:
    """Fill model, token and cache-token totals from assistant turns."""
    for msg in messages:
        if msg.role != "assistant":
            continue
        if msg.model and not notes.model:
            notes.model = msg.model
        usage = msg.usage
        if not usage:
            continue
        if notes.token_usage is None:
            notes.token_usage = TokenUsage()
        notes.token_usage.input += usage.get("input_tokens") or 0
        notes.token_usage.output += usage.get("output_tokens") or 0

        creation = usage.get("cache_creation_input_tokens") or 0
        read = usage.get("cache_read_input_tokens") or 0
        if creation or read:
            if notes.cache_tokens is None:
                notes.cache_tokens = CacheTokens()
            notes.cache_tokens.creation += creation
            notes.cache_tokens.read += read


def extract_compact_summary(messages: list[TranscriptMessage], max_chars: int) -> Optional[str]:
    """Text of the last compacted-session summary, the most complete one."""
    summary = None
    for msg in messages:
        if msg.is_compact_summary and msg.text:
            summary = truncate(msg.text, max_chars)
    return summary


def read_tool_results_dir(path: Path) -> list[ExternalToolResult]:
    """Describe externally stored tool results (large outputs spilled to disk)."""
    results: list[ExternalToolResult] = []
    if not path.is_dir():
        return results
    try:
        entries = sorted(path.iterdir())
    except OSError as e:
        logger.debug(f"Failed to read tool-results dir {path}: {e}")
        return results

    for entry in entries:
        if not entry.is_file():
            continue
        try:
            size = entry.stat().st_size
            with open(entry, errors="replace") as f:
                preview = f.read(TOOL_RESULT_PREVIEW_CHARS)
        except OSError as e:
            logger.debug(f"Skipping unreadable tool result {entry}: {e}")
            continue
        results.append(ExternalToolResult(name=entry.name, size_bytes=size, preview=one_line(preview)))
    return results
