"""Tests for reasoning highlights, subagent resolution and session notes."""

from session_handoff.config import get_preset, resolve_config
from session_handoff.models import (
    DelegationEvent,
    SessionNotes,
    TextBlock,
    ThinkingBlock,
    ToolInvocationBlock,
    TranscriptMessage,
)
from session_handoff.reasoning import (
    accumulate_usage,
    extract_compact_summary,
    extract_reasoning_steps,
    extract_subagent_result,
    extract_thinking_highlights,
    is_termination_message,
    read_tool_results_dir,
    reasoning_highlights,
    resolve_subagents,
)

LONG_ANSWER = "The audit found three unused imports in src/parser.ts and removed them cleanly."
RATE_LIMIT = "You're out of extra usage · resets 4pm"


def assistant(*blocks, **kwargs):
    return TranscriptMessage(role="assistant", blocks=list(blocks), **kwargs)


def think_call(**arguments):
    return assistant(ToolInvocationBlock(id="c", name="mcp__crash-think-tool__crash", arguments=arguments))


class TestThinkingHighlights:
    """Tests for free-text thinking highlights."""

    def test_keeps_latest_in_order(self):
        messages = [assistant(ThinkingBlock(f"thought {i}")) for i in range(7)]
        highlights = extract_thinking_highlights(messages, get_preset("standard"))
        assert highlights == [f"thought {i}" for i in range(2, 7)]

    def test_disabled_in_minimal(self):
        messages = [assistant(ThinkingBlock("thought"))]
        assert extract_thinking_highlights(messages, get_preset("minimal")) == []

    def test_truncated(self):
        config = resolve_config({"thinking": {"max_chars": 10}})
        [highlight] = extract_thinking_highlights([assistant(ThinkingBlock("x" * 50))], config)
        assert len(highlight) == 10


class TestReasoningSteps:
    """Tests for structured reasoning tool calls."""

    def test_extracts_fields(self):
        messages = [think_call(
            step_number=2,
            estimated_total=5,
            purpose="analysis",
            thought="The lexer drops the last token",
            outcome="found bug",
            next_action="Patch the lexer loop",
        )]

        [step] = extract_reasoning_steps(messages, 500)

        assert (step.step_number, step.total_steps) == (2, 5)
        assert step.purpose == "analysis"
        assert step.next_action == "Patch the lexer loop"

    def test_sequential_thinking_field_names(self):
        messages = [assistant(ToolInvocationBlock(
            id="s",
            name="mcp__sequential-thinking__sequentialthinking",
            arguments={"thought": "Consider caching", "thoughtNumber": 1, "totalThoughts": 3},
        ))]
        [step] = extract_reasoning_steps(messages, 500)
        assert (step.step_number, step.total_steps) == (1, 3)

    def test_each_field_truncated(self):
        [step] = extract_reasoning_steps([think_call(thought="t" * 100, next_action="n" * 100)], 20)
        assert len(step.thought) == 20
        assert len(step.next_action) == 20

    def test_ignores_other_tools(self):
        messages = [assistant(ToolInvocationBlock(id="b", name="Bash", arguments={"command": "ls"}))]
        assert extract_reasoning_steps(messages, 500) == []

    def test_highlights_projection(self):
        steps = extract_reasoning_steps([think_call(step_number=1, estimated_total=2, thought="Plan")], 500)
        assert reasoning_highlights(steps, 3) == ["Step 1/2: Plan"]
        assert reasoning_highlights(steps, 0) == []


class TestSubagents:
    """Tests for subagent outcome and resolution."""

    def test_termination_heuristic(self):
        assert is_termination_message(RATE_LIMIT)
        assert is_termination_message("Hit the usage limit")
        assert not is_termination_message(LONG_ANSWER)

    def test_completed_subagent(self):
        outcome = extract_subagent_result([
            assistant(ToolInvocationBlock(id="1", name="Grep", arguments={})),
            assistant(TextBlock(LONG_ANSWER)),
        ])
        assert outcome.status == "completed"
        assert outcome.text == LONG_ANSWER
        assert outcome.tool_call_count == 1

    def test_killed_after_last_substantial_text(self):
        outcome = extract_subagent_result([assistant(TextBlock(LONG_ANSWER)), assistant(TextBlock(RATE_LIMIT))])
        assert outcome.status == "killed"
        assert outcome.text == LONG_ANSWER

    def test_recovered_after_termination(self):
        outcome = extract_subagent_result([assistant(TextBlock(RATE_LIMIT)), assistant(TextBlock(LONG_ANSWER))])
        assert outcome.status == "completed"

    def test_missing_transcript_is_killed(self):
        def load(task_id):
            raise FileNotFoundError(task_id)

        events = [DelegationEvent(task_id="t1", operation="enqueue", description="Audit imports")]
        resolution = resolve_subagents(events, load, get_preset("standard"))

        [result] = resolution.results
        assert result.status == "killed"
        assert result.tool_call_count == 0
        assert result.result is None
        assert resolution.incomplete == ["Audit imports"]

    def test_completion_event_suppresses_incomplete(self):
        events = [
            DelegationEvent(task_id="t1", operation="enqueue", description="Audit imports"),
            DelegationEvent(task_id="t1", operation="remove"),
        ]
        resolution = resolve_subagents(events, lambda task_id: [], get_preset("standard"))
        assert resolution.incomplete == []

    def test_deduplicates_keeping_first_description(self):
        events = [
            DelegationEvent(task_id="t1", operation="enqueue", description="first"),
            DelegationEvent(task_id="t1", operation="enqueue", description="second"),
        ]
        resolution = resolve_subagents(events, lambda task_id: [assistant(TextBlock(LONG_ANSWER))], get_preset("standard"))

        [result] = resolution.results
        assert result.description == "first"
        assert result.status == "completed"
        assert result.result == LONG_ANSWER

    def test_stops_after_max_substantial_results(self):
        config = resolve_config({"task": {"max_samples": 2}})
        events = [DelegationEvent(task_id=f"t{i}", operation="enqueue") for i in range(5)]
        resolution = resolve_subagents(events, lambda task_id: [assistant(TextBlock(LONG_ANSWER))], config)
        assert len(resolution.results) == 2


class TestSessionNotes:
    """Tests for usage totals, compact summaries and tool-result files."""

    def test_accumulates_usage(self):
        notes = SessionNotes()
        accumulate_usage([
            assistant(model="claude-sonnet", usage={"input_tokens": 10, "output_tokens": 2}),
            TranscriptMessage(role="user", usage={"input_tokens": 999}),
            assistant(model="other", usage={
                "input_tokens": 5,
                "output_tokens": 1,
                "cache_creation_input_tokens": 7,
                "cache_read_input_tokens": 3,
            }),
        ], notes)

        assert notes.model == "claude-sonnet"
        assert (notes.token_usage.input, notes.token_usage.output) == (15, 3)
        assert (notes.cache_tokens.creation, notes.cache_tokens.read) == (7, 3)

    def test_no_usage_leaves_notes_empty(self):
        notes = SessionNotes()
        accumulate_usage([assistant(TextBlock("hi"))], notes)
        assert notes.token_usage is None
        assert notes.cache_tokens is None

    def test_compact_summary_uses_last(self):
        messages = [
            TranscriptMessage(role="user", blocks=[TextBlock("old summary")], is_compact_summary=True),
            TranscriptMessage(role="user", blocks=[TextBlock("new summary")], is_compact_summary=True),
        ]
        assert extract_compact_summary(messages, 500) == "new summary"
        assert extract_compact_summary([], 500) is None

    def test_tool_results_dir(self, tmp_path):
        results_dir = tmp_path / "tool-results"
        results_dir.mkdir()
        (results_dir / "b.txt").write_text("second\noutput")
        (results_dir / "a.txt").write_text("first")

        results = read_tool_results_dir(results_dir)

        assert [r.name for r in results] == ["a.txt", "b.txt"]
        assert results[1].preview == "second output"
        assert results[0].size_bytes == 5

    def test_missing_tool_results_dir(self, tmp_path):
        assert read_tool_results_dir(tmp_path / "missing") == []
