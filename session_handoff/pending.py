"""Infer outstanding work items for the handoff."""

from .config import VerbosityConfig
from .models import ReasoningStep
from .summarizer import truncate

PENDING_TASK_CHARS = 200


def infer_pending_tasks(
    steps: list[ReasoningStep],
    incomplete_subagents: list[str],
    config: VerbosityConfig,
) -> list[str]:
    """Pending tasks from reasoning next-actions and unfinished subagents.

    Steps are walked most-recent first so the freshest intent leads. Both
    sources share the ``pending_tasks.max_tasks`` cap.
    """
    cfg = config.pending_tasks
    tasks: list[str] = []

    if cfg.extract_from_thinking:
        for step in reversed(steps):
            if len(tasks) >= cfg.max_tasks:
                break
            action = truncate(step.next_action.strip(), PENDING_TASK_CHARS)
            if action and action not in tasks:
                tasks.append(action)

    if cfg.extract_from_subagents:
        for description in incomplete_subagents:
            if len(tasks) >= cfg.max_tasks:
                break
            tasks.append(f"Incomplete subagent: {description}")

    return tasks
