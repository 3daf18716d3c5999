"""Cursor session provider.

Cursor's agent CLI writes Anthropic-format transcripts under
``~/.cursor/projects/<project-slug>/agent-transcripts/``, one JSONL file per
session (optionally nested one directory deep).
"""

import re
from datetime import datetime
from pathlib import Path
from typing import Optional

from ..config import VerbosityConfig
from ..models import Session, TextBlock, TranscriptMessage
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
from .claude_code import convert_content, parse_timestamp

SESSIONS_DIR = Path.home() / ".cursor" / "projects"
MIN_SESSION_BYTES = 100

_USER_QUERY_RE = re.compile(r"<user_query>\s*(.*?)\s*</user_query>", re.DOTALL)


def cwd_from_slug(slug: str) -> str:
    """Best-effort working directory from a Cursor project slug."""
    if not slug:
        return ""
    return "/" + slug.strip("-").replace("-", "/")


def clean_user_query(text: str) -> str:
    """Strip the ``<user_query>`` wrapper Cursor puts around typed prompts."""
    match = _USER_QUERY_RE.search(text)
    return match.group(1).strip() if match else text.strip()


def normalize_lines(lines: list[dict]) -> list[TranscriptMessage]:
    """Turn Cursor transcript lines into the normalized stream."""
    messages = []
    for data in lines:
        role = data.get("role")
        if role not in ("user", "assistant"):
            continue
        msg = data.get("message") if isinstance(data.get("message"), dict) else {}
        blocks = convert_content(msg.get("content"))
        if role == "user":
            blocks = [
                TextBlock(clean_user_query(b.text)) if b.type == "text" else b
                for b in blocks
            ]
        # usage and model show up either at top level or under message
        usage = data.get("usage") or msg.get("usage")
        messages.append(TranscriptMessage(
            role=role,
            blocks=blocks,
            timestamp=parse_timestamp(data.get("timestamp")),
            model=data.get("model") or msg.get("model"),
            usage=usage if isinstance(usage, dict) else {},
        ))
    return messages


@register_provider
class CursorProvider(SessionProvider):
    """Provider for Cursor agent transcripts."""

    name = "cursor"
    display_name = "Cursor"
    color = "magenta"

    def __init__(self, sessions_dir: Optional[Path] = None):
        self.sessions_dir = sessions_dir or SESSIONS_DIR

    def get_sessions_dir(self) -> Path:
        return self.sessions_dir

    def discover_session_files(self) -> list[Path]:
        sessions_dir = self.get_sessions_dir()
        if not sessions_dir.exists():
            return []

        files = []
        for project_dir in sorted(sessions_dir.iterdir()):
            transcripts = project_dir / "agent-transcripts"
            if not transcripts.is_dir():
                continue
            files.extend(transcripts.glob("*.jsonl"))
            files.extend(transcripts.glob("*/*.jsonl"))
        return files

    def project_slug(self, path: Path) -> str:
        try:
            return path.relative_to(self.get_sessions_dir()).parts[0]
        except (ValueError, IndexError):
            return ""

    def parse_session(self, path: Path) -> Session | None:
        first_prompt = ""
        for data in iter_jsonl(path, limit=HEAD_SCAN_LINES):
            if data.get("role") != "user":
                continue
            msg = data.get("message")
            if not isinstance(msg, dict):
                continue
            for block in convert_content(msg.get("content")):
                if block.type != "text":
                    continue
                cleaned = clean_user_query(block.text)
                if is_real_user_message(cleaned):
                    first_prompt = cleaned
                    break
            if first_prompt:
                break

        lines, size = file_stats(path)
        if size <= MIN_SESSION_BYTES:
            return None

        stat = path.stat()
        cwd = cwd_from_slug(self.project_slug(path))
        project_path = Path(cwd) if cwd else path.parent
        return Session(
            id=path.stem,
            harness=self.name,
            raw_path=path,
            project_path=project_path,
            project_name=project_path.name,
            repo=extract_repo_from_cwd(cwd),
            lines=lines,
            bytes=size,
            created_time=datetime.fromtimestamp(getattr(stat, "st_birthtime", stat.st_ctime)),
            modified_time=datetime.fromtimestamp(stat.st_mtime),
            summary=clean_summary(first_prompt) or None,
        )

    def load_messages(self, session: Session, config: VerbosityConfig) -> list[TranscriptMessage]:
        return normalize_lines(read_jsonl(session.raw_path))
