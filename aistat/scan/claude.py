"""Claude Code transcript scanner.

Transcripts live under ``<claude_home>/projects/<encoded project dir>/<session id>.jsonl``.
They carry no explicit status, so scanned records only keep a session visible and
supply its directory and latest message snippets; hooks provide the real status.
"""

from __future__ import annotations

import json
import logging
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from pydantic import BaseModel

from aistat.config import AistatSettings
from aistat.models import Provider, SessionRecord, Status
from aistat.scan.logio import read_tail_bytes, split_lines
from aistat.utils import as_string, normalize_placeholder, utc_now

logger = logging.getLogger(__name__)

TRANSCRIPT_SUFFIXES = (".jsonl", ".json")


class ClaudeTail(BaseModel):
    cwd: str = ""
    last_user_text: str = ""
    last_assistant_text: str = ""


def _content_text(content: Any) -> str:
    if isinstance(content, str):
        return content.strip()
    if not isinstance(content, list):
        return ""
    parts = [
        as_string(item.get("text"))
        for item in content
        if isinstance(item, dict) and item.get("type") == "text" and item.get("text")
    ]
    return "\n".join(parts).strip()


def scan_claude_tail(path: Path, tail_bytes: int) -> ClaudeTail:
    """Latest cwd and user/assistant text found walking the transcript tail backward."""
    tail = ClaudeTail()
    for line in reversed(split_lines(read_tail_bytes(path, tail_bytes))):
        line = line.strip()
        if not line:
            continue
        try:
            entry = json.loads(line)
        except ValueError:
            continue
        if not isinstance(entry, dict):
            continue
        if not tail.cwd:
            cwd = as_string(entry.get("cwd")).strip()
            if cwd:
                tail.cwd = cwd
        message = entry.get("message")
        if isinstance(message, dict) and not entry.get("isMeta"):
            role = as_string(message.get("role")) or as_string(entry.get("type"))
            text = _content_text(message.get("content"))
            if role == "user" and text and not tail.last_user_text:
                tail.last_user_text = text
            elif role == "assistant" and text and not tail.last_assistant_text:
                tail.last_assistant_text = text
        if tail.cwd and tail.last_user_text and tail.last_assistant_text:
            break
    return tail


def find_transcripts(claude_home: Path, window_start: datetime) -> list[Path]:
    cutoff = window_start.timestamp()
    found: list[Path] = []
    for root, _dirs, files in os.walk(claude_home / "projects"):
        for filename in sorted(files):
            if not filename.endswith(TRANSCRIPT_SUFFIXES):
                continue
            path = Path(root) / filename
            try:
                modified = path.stat().st_mtime
            except OSError:
                continue
            if modified >= cutoff:
                found.append(path)
    return found


def scan_claude_transcript(path: Path, settings: AistatSettings, now: datetime) -> SessionRecord | None:
    session_id = normalize_placeholder(path.stem)
    if not session_id:
        return None
    last_seen = datetime.fromtimestamp(path.stat().st_mtime, tz=timezone.utc)
    tail = scan_claude_tail(path, settings.tail_bytes_claude)
    return SessionRecord(
        provider=Provider.CLAUDE,
        id=session_id,
        transcript_path=str(path),
        cwd=tail.cwd,
        last_user_text=tail.last_user_text,
        last_assistant_text=tail.last_assistant_text,
        last_seen=last_seen,
        last_event=last_seen,
        last_event_name="transcript",
        status=Status.UNKNOWN,
        status_reason="observed via transcript",
        updated_at=now,
    )


def scan_claude_transcripts(settings: AistatSettings, now: datetime | None = None) -> list[SessionRecord]:
    """One record per recently modified transcript; unreadable files are skipped."""
    now = now or utc_now()
    records: list[SessionRecord] = []
    for path in find_transcripts(settings.claude_home, now - settings.scan_window):
        try:
            record = scan_claude_transcript(path, settings, now)
        except OSError as exc:
            logger.debug("Skipping transcript %s: %s", path, exc)
            continue
        if record is not None:
            records.append(record)
    return records
