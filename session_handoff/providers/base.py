"""Base class and shared helpers for session providers."""

import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Iterator, Optional

from ..config import VerbosityConfig, get_preset
from ..context import build_session_context
from ..models import Session, SessionContext, TranscriptMessage
from ..summarizer import truncate

logger = logging.getLogger(__name__)

SUMMARY_MAX_CHARS = 80
HEAD_SCAN_LINES = 50


def detect_automated_session(first_prompt: str) -> tuple[bool, str]:
    """Detect if a prompt is system-generated rather than typed by a human.

    Returns (is_automated, automation_type) tuple.
    """
    if not first_prompt or not first_prompt.strip():
        return False, ""

    prompt_start = first_prompt[:500].strip()
    prompt_lower = prompt_start.lower()

    # XML-tagged system content
    for tag, kind in (
        ("<system-reminder>", "system-reminder"),
        ("<system-notification>", "system-notification"),
        ("<command-message>", "command-message"),
        ("<command-name>", "command-name"),
        ("<local-command-stdout>", "command-stdout"),
        ("<local-command-caveat>", "command-caveat"),
        ("<user_info>", "user-info"),
    ):
        if prompt_start.startswith(tag):
            return True, kind

    # Bracketed system directives
    if prompt_start.startswith("[SYSTEM DIRECTIVE"):
        return True, "system-directive"
    if prompt_start.startswith("[COMPACTION CONTEXT"):
        return True, "compaction-context"
    if prompt_start.startswith("[Request interrupted"):
        return True, "interrupted"

    # Sub-agent continuation prompts
    if prompt_lower.startswith("summarize the task tool output above"):
        return True, "subagent-continuation"
    if prompt_lower.startswith("this session is being continued from a previous conversation"):
        return True, "compaction-continuation"

    return False, ""


def is_real_user_message(text: str) -> bool:
    return bool(text and text.strip()) and not detect_automated_session(text)[0]


def clean_summary(text: str) -> str:
    """First meaningful line of a prompt, shortened for listings."""
    for line in (text or "").splitlines():
        line = line.strip().lstrip("#>").strip()
        if line:
            return truncate(line, SUMMARY_MAX_CHARS)
    return ""


def extract_repo_from_cwd(cwd: str) -> Optional[str]:
    """``owner/name`` for the git checkout containing ``cwd``, if any."""
    if not cwd:
        return None
    path = Path(cwd)
    for candidate in (path, *path.parents):
        try:
            if (candidate / ".git").exists():
                return f"{candidate.parent.name}/{candidate.name}" if candidate.parent.name else candidate.name
        except OSError:
            return None
    return None


def iter_jsonl(path: Path, limit: Optional[int] = None) -> Iterator[dict]:
    """Yield JSON objects from a JSONL file, skipping malformed lines."""
    with open(path, errors="replace") as f:
        for i, line in enumerate(f):
            if limit is not None and i >= limit:
                break
            if not line.strip():
                continue
            try:
                data = json.loads(line)
            except json.JSONDecodeError:
                continue
            if isinstance(data, dict):
                yield data


def read_jsonl(path: Path) -> list[dict]:
    return list(iter_jsonl(path))


def file_stats(path: Path) -> tuple[int, int]:
    """Line and byte counts of a transcript file."""
    lines = 0
    with open(path, "rb") as f:
        for _ in f:
            lines += 1
    return lines, path.stat().st_size


class SessionProvider(ABC):
    """Abstract base class for session providers.

    Each AI coding harness (Claude Code, Cursor, etc.) implements this
    interface to discover its transcripts and decode them into the
    normalized message stream.
    """

    # Provider identity
    name: str = ""  # unique identifier: "claude-code", "cursor", ...
    display_name: str = ""  # human-readable: "Claude Code"
    color: str = ""  # for terminal output

    @abstractmethod
    def get_sessions_dir(self) -> Path:
        """Return the directory where sessions are stored."""
        ...

    def is_available(self) -> bool:
        """Check if this provider's sessions directory exists."""
        return self.get_sessions_dir().exists()

    @abstractmethod
    def discover_session_files(self) -> list[Path]:
        """Discover all session files in the sessions directory."""
        ...

    @abstractmethod
    def parse_session(self, path: Path) -> Session | None:
        """Parse a session file into a Session object."""
        ...

    def load_sessions(self) -> list[Session]:
        """Load all sessions from this provider, newest first."""
        sessions = []
        for path in self.discover_session_files():
            try:
                session = self.parse_session(path)
            except (OSError, ValueError) as e:
                logger.debug(f"{self.name}: skipping unparseable session {path}: {e}")
                continue
            if session:
                sessions.append(session)
        sessions.sort(key=lambda s: s.modified_time.timestamp() if s.modified_time else 0, reverse=True)
        return sessions

    @abstractmethod
    def load_messages(self, session: Session, config: VerbosityConfig) -> list[TranscriptMessage]:
        """Decode a session transcript into the normalized message stream."""
        ...

    def extract_context(
        self,
        session: Session,
        config: Optional[VerbosityConfig] = None,
        mode: str = "inline",
    ) -> SessionContext:
        """Extract handoff context for cross-tool continuation."""
        cfg = config or get_preset("standard")
        return build_session_context(session, self.load_messages(session, cfg), cfg, mode=mode)
