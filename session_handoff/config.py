"""Verbosity configuration: presets, deep merge and validation.

Every truncation limit, sample count and feature flag used by the
extraction pipeline and the handoff renderer lives here. Users override any
subset of fields; unspecified fields inherit from the chosen preset
(``standard`` when none is given).

Config file resolution order for :func:`load_config`:

1. Explicit path (``--config`` on the command line)
2. ``.session-handoff.yml`` in the current directory
3. ``~/.config/session-handoff/config.yml``
4. The built-in ``standard`` preset
"""

import copy
import logging
from pathlib import Path
from typing import Annotated, Any, Literal, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, StrictBool, StrictInt, ValidationError

logger = logging.getLogger(__name__)

CONFIG_FILENAME = ".session-handoff.yml"
USER_CONFIG_PATH = Path.home() / ".config" / "session-handoff" / "config.yml"

Cap = Annotated[StrictInt, Field(ge=0)]
Flag = StrictBool
PresetName = Literal["minimal", "standard", "verbose", "full"]


class UnknownPresetError(ValueError):
    """Raised when a preset name is not one of the built-ins."""


# ── Schema ──────────────────────────────────────────────────────────────────


class _Section(BaseModel):
    model_config = ConfigDict(extra="forbid")


class ShellConfig(_Section):
    max_samples: Cap = 8
    stdout_lines: Cap = 5
    stderr_lines: Cap = 5
    max_chars: Cap = 2000
    show_command: Flag = True
    show_exit_code: Flag = True


class ReadConfig(_Section):
    max_samples: Cap = 20
    max_chars: Cap = 0  # 0 = path only
    show_line_range: Flag = True


class WriteConfig(_Section):
    max_samples: Cap = 5
    diff_lines: Cap = 200
    max_chars: Cap = 5000


class EditConfig(_Section):
    max_samples: Cap = 5
    diff_lines: Cap = 200
    max_chars: Cap = 5000


class GrepConfig(_Section):
    max_samples: Cap = 10
    max_chars: Cap = 500
    show_pattern: Flag = True
    match_lines: Cap = 5


class FetchConfig(_Section):
    max_samples: Cap = 5
    preview_chars: Cap = 200


class ThinkingToolsConfig(_Section):
    extract_reasoning: Flag = True
    max_reasoning_chars: Cap = 500


class McpConfig(_Section):
    max_samples_per_namespace: Cap = 5
    param_chars: Cap = 100
    result_chars: Cap = 100
    thinking_tools: ThinkingToolsConfig


class TaskConfig(_Section):
    max_samples: Cap = 5
    include_subagent_results: Flag = True
    subagent_result_chars: Cap = 500
    recurse_subagents: Flag = False


class ThinkingConfig(_Section):
    include: Flag = True
    max_chars: Cap = 1000
    max_highlights: Cap = 5


class CompactSummaryConfig(_Section):
    max_chars: Cap = 500


class PendingTasksConfig(_Section):
    extract_from_thinking: Flag = True
    extract_from_subagents: Flag = True
    max_tasks: Cap = 10


class ClaudeAgentConfig(_Section):
    filter_progress_events: Flag = True
    parse_subagents: Flag = True
    parse_tool_results_dir: Flag = True
    separate_human_from_tool_results: Flag = True


class AgentsConfig(_Section):
    claude: ClaudeAgentConfig


class VerbosityConfig(_Section):
    preset: PresetName = "standard"
    recent_messages: Cap = 10
    max_message_chars: Cap = 500
    shell: ShellConfig
    read: ReadConfig
    write: WriteConfig
    edit: EditConfig
    grep: GrepConfig
    fetch: FetchConfig
    mcp: McpConfig
    task: TaskConfig
    thinking: ThinkingConfig
    compact_summary: CompactSummaryConfig
    pending_tasks: PendingTasksConfig
    agents: AgentsConfig


# ── Presets ─────────────────────────────────────────────────────────────────

# Low output (~2KB). Essentials only.
MINIMAL_PRESET: dict[str, Any] = {
    "preset": "minimal",
    "recent_messages": 3,
    "max_message_chars": 200,
    "shell": {
        "max_samples": 3,
        "stdout_lines": 3,
        "stderr_lines": 3,
        "max_chars": 500,
        "show_command": True,
        "show_exit_code": True,
    },
    "read": {"max_samples": 5, "max_chars": 0, "show_line_range": False},
    "write": {"max_samples": 3, "diff_lines": 20, "max_chars": 1000},
    "edit": {"max_samples": 3, "diff_lines": 20, "max_chars": 1000},
    "grep": {"max_samples": 3, "max_chars": 200, "show_pattern": True, "match_lines": 2},
    "fetch": {"max_samples": 2, "preview_chars": 0},
    "mcp": {
        "max_samples_per_namespace": 1,
        "param_chars": 50,
        "result_chars": 50,
        "thinking_tools": {"extract_reasoning": False, "max_reasoning_chars": 0},
    },
    "task": {
        "max_samples": 2,
        "include_subagent_results": False,
        "subagent_result_chars": 0,
        "recurse_subagents": False,
    },
    "thinking": {"include": False, "max_chars": 0, "max_highlights": 0},
    "compact_summary": {"max_chars": 200},
    "pending_tasks": {
        "extract_from_thinking": False,
        "extract_from_subagents": False,
        "max_tasks": 5,
    },
    "agents": {
        "claude": {
            "filter_progress_events": True,
            "parse_subagents": False,
            "parse_tool_results_dir": False,
            "separate_human_from_tool_results": False,
        },
    },
}

# Good default for most handoffs (~8KB).
STANDARD_PRESET: dict[str, Any] = {
    "preset": "standard",
    "recent_messages": 10,
    "max_message_chars": 500,
    "shell": {
        "max_samples": 8,
        "stdout_lines": 5,
        "stderr_lines": 5,
        "max_chars": 2000,
        "show_command": True,
        "show_exit_code": True,
    },
    "read": {"max_samples": 20, "max_chars": 0, "show_line_range": True},
    "write": {"max_samples": 5, "diff_lines": 200, "max_chars": 5000},
    "edit": {"max_samples": 5, "diff_lines": 200, "max_chars": 5000},
    "grep": {"max_samples": 10, "max_chars": 500, "show_pattern": True, "match_lines": 5},
    "fetch": {"max_samples": 5, "preview_chars": 200},
    "mcp": {
        "max_samples_per_namespace": 5,
        "param_chars": 100,
        "result_chars": 100,
        "thinking_tools": {"extract_reasoning": True, "max_reasoning_chars": 500},
    },
    "task": {
        "max_samples": 5,
        "include_subagent_results": True,
        "subagent_result_chars": 500,
        "recurse_subagents": False,
    },
    "thinking": {"include": True, "max_chars": 1000, "max_highlights": 5},
    "compact_summary": {"max_chars": 500},
    "pending_tasks": {
        "extract_from_thinking": True,
        "extract_from_subagents": True,
        "max_tasks": 10,
    },
    "agents": {
        "claude": {
            "filter_progress_events": True,
            "parse_subagents": True,
            "parse_tool_results_dir": True,
            "separate_human_from_tool_results": True,
        },
    },
}

# Rich context (~30KB) for complex multi-file tasks.
VERBOSE_PRESET: dict[str, Any] = {
    "preset": "verbose",
    "recent_messages": 20,
    "max_message_chars": 2000,
    "shell": {
        "max_samples": 15,
        "stdout_lines": 20,
        "stderr_lines": 20,
        "max_chars": 8000,
        "show_command": True,
        "show_exit_code": True,
    },
    "read": {"max_samples": 50, "max_chars": 500, "show_line_range": True},
    "write": {"max_samples": 15, "diff_lines": 500, "max_chars": 10000},
    "edit": {"max_samples": 15, "diff_lines": 500, "max_chars": 10000},
    "grep": {"max_samples": 20, "max_chars": 1000, "show_pattern": True, "match_lines": 10},
    "fetch": {"max_samples": 10, "preview_chars": 1000},
    "mcp": {
        "max_samples_per_namespace": 10,
        "param_chars": 500,
        "result_chars": 1000,
        "thinking_tools": {"extract_reasoning": True, "max_reasoning_chars": 2000},
    },
    "task": {
        "max_samples": 10,
        "include_subagent_results": True,
        "subagent_result_chars": 2000,
        "recurse_subagents": True,
    },
    "thinking": {"include": True, "max_chars": 5000, "max_highlights": 10},
    "compact_summary": {"max_chars": 1000},
    "pending_tasks": {
        "extract_from_thinking": True,
        "extract_from_subagents": True,
        "max_tasks": 20,
    },
    "agents": {
        "claude": {
            "filter_progress_events": True,
            "parse_subagents": True,
            "parse_tool_results_dir": True,
            "separate_human_from_tool_results": True,
        },
    },
}

# Everything, effectively no truncation.
FULL_PRESET: dict[str, Any] = {
    "preset": "full",
    "recent_messages": 50,
    "max_message_chars": 10000,
    "shell": {
        "max_samples": 999,
        "stdout_lines": 100,
        "stderr_lines": 100,
        "max_chars": 50000,
        "show_command": True,
        "show_exit_code": True,
    },
    "read": {"max_samples": 999, "max_chars": 10000, "show_line_range": True},
    "write": {"max_samples": 999, "diff_lines": 999, "max_chars": 50000},
    "edit": {"max_samples": 999, "diff_lines": 999, "max_chars": 50000},
    "grep": {"max_samples": 999, "max_chars": 10000, "show_pattern": True, "match_lines": 50},
    "fetch": {"max_samples": 999, "preview_chars": 10000},
    "mcp": {
        "max_samples_per_namespace": 999,
        "param_chars": 10000,
        "result_chars": 10000,
        "thinking_tools": {"extract_reasoning": True, "max_reasoning_chars": 10000},
    },
    "task": {
        "max_samples": 999,
        "include_subagent_results": True,
        "subagent_result_chars": 10000,
        "recurse_subagents": True,
    },
    "thinking": {"include": True, "max_chars": 50000, "max_highlights": 50},
    "compact_summary": {"max_chars": 5000},
    "pending_tasks": {
        "extract_from_thinking": True,
        "extract_from_subagents": True,
        "max_tasks": 100,
    },
    "agents": {
        "claude": {
            "filter_progress_events": False,
            "parse_subagents": True,
            "parse_tool_results_dir": True,
            "separate_human_from_tool_results": True,
        },
    },
}

PRESETS: dict[str, dict[str, Any]] = {
    "minimal": MINIMAL_PRESET,
    "standard": STANDARD_PRESET,
    "verbose": VERBOSE_PRESET,
    "full": FULL_PRESET,
}

DEFAULT_PRESET = "standard"


# ── Deep merge ──────────────────────────────────────────────────────────────


def deep_merge(base: dict, overrides: dict) -> dict:
    """Recursively merge ``overrides`` onto ``base``, returning a new dict.

    - Dicts are merged key-by-key (override wins for leaf values).
    - Lists and scalars in overrides replace the base value entirely.
    - Keys absent from overrides are kept from base.
    """
    result = copy.deepcopy(base)
    for key, over_val in overrides.items():
        base_val = result.get(key)
        if isinstance(base_val, dict) and isinstance(over_val, dict):
            result[key] = deep_merge(base_val, over_val)
        else:
            result[key] = copy.deepcopy(over_val)
    return result


# ── Public API ──────────────────────────────────────────────────────────────


def preset_names() -> list[str]:
    return list(PRESETS)


def get_preset(name: str) -> VerbosityConfig:
    """Get a fresh copy of a built-in preset. Raises on unknown names."""
    preset = PRESETS.get(name)
    if preset is None:
        raise UnknownPresetError(
            f'Unknown verbosity preset "{name}". Valid presets: {", ".join(PRESETS)}'
        )
    return VerbosityConfig.model_validate(copy.deepcopy(preset))


def merge_config(base: VerbosityConfig, overrides: dict) -> VerbosityConfig:
    """Deep-merge user overrides onto a config and validate the result.

    Raises ``pydantic.ValidationError`` when the merged tree is invalid.
    """
    merged = deep_merge(base.model_dump(), overrides)
    return VerbosityConfig.model_validate(merged)


def resolve_config(
    overrides: Optional[dict] = None,
    preset: Optional[str] = None,
) -> VerbosityConfig:
    """Resolve a complete config from an optional preset and partial overrides.

    The base is the explicit ``preset``, else a valid ``preset`` key inside the
    overrides, else ``standard``. When the merged tree fails validation the
    base preset is returned unchanged, as it is for an override tree that
    is not a mapping.
    """
    if overrides is not None and not isinstance(overrides, dict):
        logger.warning(
            f"Config overrides must be a mapping, got {type(overrides).__name__}; "
            f"using {preset or DEFAULT_PRESET} preset"
        )
        overrides = None
    overrides = overrides or {}
    if preset is None:
        requested = overrides.get("preset")
        preset = requested if isinstance(requested, str) and requested in PRESETS else DEFAULT_PRESET
    base = get_preset(preset)
    if not overrides:
        return base

    try:
        return merge_config(base, overrides)
    except ValidationError as e:
        issues = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
        )
        logger.warning(f"Config validation errors, falling back to {preset} preset: {issues}")
        return base


def parse_user_config(raw: Any) -> VerbosityConfig:
    """Turn a parsed YAML document into a validated config."""
    if not isinstance(raw, dict):
        logger.warning("Config file is not a mapping, using standard preset")
        return get_preset(DEFAULT_PRESET)
    return resolve_config(raw)


def load_config(config_path: Optional[Path] = None) -> VerbosityConfig:
    """Load the verbosity config from disk using the resolution chain."""
    candidates: list[Path] = []
    if config_path:
        candidates.append(Path(config_path).expanduser().resolve())
    candidates.append(Path.cwd() / CONFIG_FILENAME)
    candidates.append(USER_CONFIG_PATH)

    for path in candidates:
        if not path.exists():
            logger.debug(f"Config not found: {path}")
            continue
        try:
            with open(path) as f:
                raw = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            logger.warning(f"Failed to read config at {path}: {e}")
            continue
        logger.info(f"Loaded config from {path}")
        return parse_user_config(raw)

    logger.debug("No config file found, using standard preset")
    return get_preset(DEFAULT_PRESET)
