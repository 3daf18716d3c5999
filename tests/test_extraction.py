"""Tests for two-pass tool call extraction."""

import pytest

from session_handoff.config import get_preset, resolve_config
from session_handoff.extraction import (
    RESULT_TEXT_CEILING,
    build_result_index,
    extract_tool_data,
)
from session_handoff.handoff import RENDER_MODES, render_sample
from session_handoff.models import (
    EditSample,
    GlobSample,
    GrepSample,
    ReadSample,
    ShellSample,
    TaskSample,
    TextBlock,
    ToolInvocationBlock,
    ToolResultBlock,
    TranscriptMessage,
    WriteSample,
)


def call(call_id, name, **arguments):
    return TranscriptMessage(role="assistant", blocks=[ToolInvocationBlock(id=call_id, name=name, arguments=arguments)])


def result(call_id, content, is_error=False):
    return TranscriptMessage(role="user", blocks=[ToolResultBlock(tool_use_id=call_id, content=content, is_error=is_error)])


def by_name(extraction):
    return {s.name: s for s in extraction.summaries}


class TestResultIndex:
    """Tests for pass 1."""

    def test_indexes_by_correlation_id(self):
        index = build_result_index([result("a", "out"), result("b", "err", is_error=True)])
        assert index["a"].text == "out"
        assert index["b"].is_error

    def test_result_text_is_bounded(self):
        index = build_result_index([result("a", "x" * (RESULT_TEXT_CEILING + 10))])
        assert len(index["a"].text) == RESULT_TEXT_CEILING

    def test_index_is_read_only(self):
        index = build_result_index([result("a", "out")])
        with pytest.raises(TypeError):
            index["b"] = None


class TestExtractToolData:
    """Tests for pass 2 and the per-category extractors."""

    def test_single_shell_invocation(self):
        messages = [
            TranscriptMessage(role="user", blocks=[TextBlock("run the tests")]),
            call("t1", "Bash", command="pnpm test"),
            result("t1", "exited with code: 0\nOK"),
        ]

        extraction = extract_tool_data(messages, get_preset("standard"))

        assert len(extraction.summaries) == 1
        [shell] = extraction.summaries
        assert shell.name == "shell"
        assert shell.count == 1
        assert shell.error_count is None
        sample = shell.samples[0]
        assert "$ pnpm test" in sample.summary
        assert "exit 0" in sample.summary
        assert isinstance(sample.data, ShellSample)
        assert sample.data.exit_code == 0
        assert sample.data.stdout_tail.endswith("OK")

    def test_two_writes_same_path(self):
        messages = [
            call("w1", "Write", file_path="src/app.py", content="print('hi')\n"),
            result("w1", "File created successfully at: src/app.py"),
            call("w2", "Write", file_path="src/app.py", content="print('hello')\n"),
            result("w2", "The file src/app.py has been updated."),
        ]

        extraction = extract_tool_data(messages, get_preset("standard"))

        assert extraction.files_modified == ["src/app.py"]
        write = by_name(extraction)["write"]
        assert write.count == 2
        assert isinstance(write.samples[0].data, WriteSample)
        assert write.samples[0].data.is_new_file is True
        assert write.samples[1].data.is_new_file is False
        assert "(new file)" in write.samples[0].summary

    def test_new_file_flag_in_arguments(self):
        messages = [call("w1", "create_file", path="notes.md", content="# Notes", is_new_file=True)]
        write = extract_tool_data(messages, get_preset("standard")).summaries[0]
        assert write.samples[0].data.is_new_file

    def test_result_before_invocation(self):
        messages = [result("t1", "exit code 3", is_error=True), call("t1", "Bash", command="make")]

        shell = extract_tool_data(messages, get_preset("standard")).summaries[0]

        assert shell.error_count == 1
        assert shell.samples[0].data.exit_code == 3

    def test_missing_result(self):
        messages = [call("t1", "Bash", command="sleep 100")]
        shell = extract_tool_data(messages, get_preset("standard")).summaries[0]
        assert shell.count == 1
        assert shell.samples[0].data.exit_code is None
        assert shell.error_count is None

    def test_failed_invocation_without_result(self):
        messages = [TranscriptMessage(role="assistant", blocks=[
            ToolInvocationBlock(id="t1", name="Bash", arguments={"command": "rm -rf build"}, failed=True),
        ])]
        shell = extract_tool_data(messages, get_preset("standard")).summaries[0]
        assert shell.error_count == 1

    def test_count_matches_invocations_beyond_cap(self):
        config = resolve_config({"shell": {"max_samples": 3}})
        messages = []
        for i in range(10):
            messages += [call(f"t{i}", "Bash", command=f"echo {i}"), result(f"t{i}", str(i))]

        shell = extract_tool_data(messages, config).summaries[0]

        assert shell.count == 10
        assert len(shell.samples) == 3

    def test_edit_diff_and_files(self):
        messages = [
            call("e1", "Edit", file_path="src/parser.ts", old_string="return null;", new_string="return token;"),
            call("e2", "Edit", file_path="src/parser.ts", old_string="a", new_string="b"),
            call("e3", "MultiEdit", file_path="src/lexer.ts", edits=[
                {"old_string": "x", "new_string": "y"},
                {"old_string": "p", "new_string": "q"},
            ]),
        ]

        extraction = extract_tool_data(messages, get_preset("standard"))

        assert extraction.files_modified == ["src/parser.ts", "src/lexer.ts"]
        edit = by_name(extraction)["edit"]
        first = edit.samples[0].data
        assert isinstance(first, EditSample)
        assert "+return token;" in first.diff
        assert edit.samples[2].data.diff_stats.added == 2

    def test_read_line_range(self):
        messages = [call("r1", "Read", file_path="README.md", offset=10, limit=5)]
        read = extract_tool_data(messages, get_preset("standard")).summaries[0]
        data = read.samples[0].data
        assert isinstance(data, ReadSample)
        assert (data.line_start, data.line_end) == (10, 14)
        assert extract_tool_data(messages, get_preset("minimal")).summaries[0].samples[0].data.line_start is None

    def test_grep_and_glob_counts(self):
        messages = [
            call("g1", "Grep", pattern="TODO", path="src"),
            result("g1", "Found 4 files\nsrc/a.py\nsrc/b.py\nsrc/c.py\nsrc/d.py"),
            call("g2", "Glob", pattern="**/*.ts"),
            result("g2", "No files found"),
        ]

        summaries = by_name(extract_tool_data(messages, get_preset("standard")))

        grep = summaries["grep"].samples[0].data
        assert isinstance(grep, GrepSample)
        assert grep.match_count == 4
        assert grep.target_path == "src"
        glob = summaries["glob"].samples[0].data
        assert isinstance(glob, GlobSample)
        assert glob.result_count == 0

    def test_task_result_respects_flag(self):
        messages = [
            call("k1", "Task", description="Audit imports", subagent_type="explore"),
            result("k1", "No unused imports found."),
        ]
        task = extract_tool_data(messages, get_preset("standard")).summaries[0].samples[0].data
        assert isinstance(task, TaskSample)
        assert task.agent_type == "explore"
        assert task.result == "No unused imports found."

        minimal = extract_tool_data(messages, get_preset("minimal")).summaries[0].samples[0].data
        assert minimal.result is None

    def test_mcp_previews(self):
        messages = [
            call("m1", "mcp__github__create_issue", title="Broken build"),
            result("m1", "Created issue #42"),
        ]
        mcp = extract_tool_data(messages, get_preset("standard")).summaries[0]
        assert mcp.name == "mcp"
        assert "Broken build" in mcp.samples[0].data.params_preview
        assert mcp.samples[0].data.result_preview == "Created issue #42"

    def test_reasoning_tools_are_not_tool_activity(self):
        messages = [call("c1", "mcp__sequential-thinking__sequentialthinking", thought="hmm")]
        assert extract_tool_data(messages, get_preset("standard")).summaries == []

    def test_unclassified_tools_go_to_other(self):
        messages = [call(f"o{i}", "TodoWrite", todos=[]) for i in range(7)]
        [other] = extract_tool_data(messages, get_preset("standard")).summaries
        assert other.name == "other"
        assert other.count == 7
        assert len(other.samples) == 5
        assert other.samples[0].data is None


def first_sample(messages, config):
    return extract_tool_data(messages, config).summaries[0].samples[0]


def rendered(sample):
    return "\n".join(render_sample(sample, RENDER_MODES["inline"]))


class TestConfigFlagsInDocument:
    """Display flags and limits must hold in the rendered samples, not only the summaries."""

    def test_hidden_grep_pattern(self):
        messages = [call("g1", "Grep", pattern="SECRET_TOKEN", path="src"), result("g1", "src/env.py")]
        config = resolve_config({"grep": {"show_pattern": False}})

        sample = first_sample(messages, config)

        assert "SECRET_TOKEN" not in sample.summary
        assert "SECRET_TOKEN" not in rendered(sample)
        assert "SECRET_TOKEN" in rendered(first_sample(messages, get_preset("standard")))

    def test_hidden_shell_command(self):
        messages = [call("s1", "Bash", command="export API_KEY=abc123"), result("s1", "done")]
        config = resolve_config({"shell": {"show_command": False}})

        sample = first_sample(messages, config)

        assert "API_KEY" not in sample.summary
        assert "API_KEY" not in rendered(sample)
        assert "(command hidden)" in rendered(sample)

    def test_exit_code_flag(self):
        messages = [call("s1", "Bash", command="make"), result("s1", "exit code: 2\nmake: *** failed")]

        shown = first_sample(messages, get_preset("standard"))
        hidden = first_sample(messages, resolve_config({"shell": {"show_exit_code": False}}))

        assert "→ exit 2" in rendered(shown)
        assert hidden.data.exit_code is None
        assert "→ exit" not in rendered(hidden)

    def test_line_range_flag(self):
        messages = [call("r1", "Read", file_path="app.py", offset=5, limit=10)]

        shown = first_sample(messages, get_preset("standard"))
        hidden = first_sample(messages, resolve_config({"read": {"show_line_range": False}}))

        assert "(lines 5-14)" in rendered(shown)
        assert "lines" not in rendered(hidden)

    def test_read_preview_uses_max_chars(self):
        messages = [call("r1", "Read", file_path="app.py"), result("r1", "import os\nprint(os.getcwd())")]

        assert first_sample(messages, get_preset("standard")).data.content_preview == ""
        preview = first_sample(messages, resolve_config({"read": {"max_chars": 9}})).data.content_preview
        assert preview.startswith("import")
        assert len(preview) <= 9
        full = first_sample(messages, get_preset("verbose"))
        assert "print(os.getcwd())" in rendered(full)

    def test_grep_match_lines(self):
        messages = [
            call("g1", "Grep", pattern="TODO"),
            result("g1", "Found 4 files\nsrc/a.py\nsrc/b.py\nsrc/c.py\nsrc/d.py"),
        ]

        sample = first_sample(messages, resolve_config({"grep": {"match_lines": 2}}))

        assert sample.data.match_count == 4
        assert sample.data.matches == ["src/a.py", "src/b.py"]
        assert "src/b.py" in rendered(sample)
        assert first_sample(messages, resolve_config({"grep": {"match_lines": 0}})).data.matches == []

    def test_failed_shell_uses_stderr_lines(self):
        output = "\n".join(f"line {i}" for i in range(10))
        messages = [call("s1", "Bash", command="pytest"), result("s1", output, is_error=True)]
        config = resolve_config({"shell": {"stdout_lines": 5, "stderr_lines": 2}})

        data = first_sample(messages, config).data

        assert data.is_error
        assert data.stdout_tail == "line 8\nline 9"

    def test_view_range_to_end_of_file(self):
        messages = [call("r1", "view", path="app.py", view_range=[1, -1])]

        data = first_sample(messages, get_preset("standard")).data

        assert (data.line_start, data.line_end) == (1, None)
        assert "lines 1-end" in rendered(first_sample(messages, get_preset("standard")))

    def test_malformed_view_range_ignored(self):
        messages = [call("r1", "Read", file_path="app.py", view_range=["1", None])]

        data = first_sample(messages, get_preset("standard")).data

        assert (data.line_start, data.line_end) == (None, None)

    def test_explicit_none_edit_strings(self):
        messages = [call("e1", "Edit", file_path="app.py", old_string=None, new_string="x = 1\n")]

        data = first_sample(messages, get_preset("standard")).data

        assert "None" not in data.diff
        assert "+x = 1" in data.diff
