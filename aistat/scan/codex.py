"""Codex rollout log scanner.

Rollouts are JSON Lines files under ``<codex_home>/sessions`` (and
``archived_sessions``); every line is an entry ``{"timestamp", "type", "payload"}``.
The header (``session_meta`` / ``turn_context``) is read from the start of the
file, activity from a bounded window at its end.
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
from aistat.errors import HeaderNotFoundError, ScanError
from aistat.models import Provider, SessionRecord, Status
from aistat.scan.logio import iter_bounded_lines, read_tail_bytes, split_lines
from aistat.utils import as_string, normalize_placeholder, parse_timestamp_or, utc_now

logger = logging.getLogger(__name__)

ROLLOUT_PREFIX = "rollout-"
ROLLOUT_SUFFIX = ".jsonl"
SESSION_DIRS = ("sessions", "archived_sessions")


class CodexHeader(BaseModel):
    session_id: str = ""
    cwd: str = ""
    model: str = ""
    approval_policy: str = ""
    created_at: datetime | None = None
    lines_read: int = 0

    @property
    def complete(self) -> bool:
        return bool(self.session_id and self.cwd and self.model)


class CodexTail(BaseModel):
    last_ts: datetime | None = None
    entry_type: str = ""
    payload_type: str = ""
    role: str = ""
    last_user_text: str = ""
    last_assistant_text: str = ""

    @property
    def complete(self) -> bool:
        return bool(
            self.entry_type and self.last_ts is not None and self.last_user_text and self.last_assistant_text
        )


def _parse_entry(line: bytes | str) -> tuple[dict[str, Any], dict[str, Any]] | None:
    try:
        entry = json.loads(line)
    except ValueError:
        return None
    if not isinstance(entry, dict):
        return None
    payload = entry.get("payload")
    return entry, payload if isinstance(payload, dict) else {}


def _field(payload: dict[str, Any], key: str) -> str:
    return normalize_placeholder(as_string(payload.get(key)))


def scan_codex_header(path: Path, max_lines: int, max_line_bytes: int) -> CodexHeader:
    """Read header fields from the start of a rollout, stopping once id, cwd and model are known."""
    header = CodexHeader()
    with path.open("rb") as handle:
        for line in iter_bounded_lines(handle, max_line_bytes):
            header.lines_read += 1
            parsed = _parse_entry(line) if line is not None else None
            if parsed is not None:
                entry, payload = parsed
                entry_type = entry.get("type")
                if entry_type == "session_meta":
                    header.session_id = header.session_id or _field(payload, "id")
                    header.cwd = header.cwd or _field(payload, "cwd")
                    if header.created_at is None:
                        header.created_at = parse_timestamp_or(as_string(payload.get("timestamp")), None)
                elif entry_type == "turn_context":
                    header.cwd = header.cwd or _field(payload, "cwd")
                    header.model = header.model or _field(payload, "model")
                    header.approval_policy = header.approval_policy or _field(payload, "approval_policy")
            if header.complete or header.lines_read >= max_lines:
                break
    if not (header.session_id or header.cwd or header.model):
        raise HeaderNotFoundError(f"no rollout header in {path}")
    return header


def _message_text(role: str, content: Any) -> str:
    if not isinstance(content, list):
        return ""
    parts: list[str] = []
    for item in content:
        if not isinstance(item, dict):
            continue
        if role == "user" and item.get("type") != "input_text":
            continue
        text = as_string(item.get("text"))
        if text:
            parts.append(text)
    return "\n".join(parts).strip()


def _looks_like_environment_context(text: str) -> bool:
    return "<environment_context>" in text or "<cwd>" in text


def scan_codex_tail(path: Path, tail_bytes: int) -> CodexTail:
    """Summarise the most recent activity in the last ``tail_bytes`` of a rollout."""
    lines = [line.strip() for line in split_lines(read_tail_bytes(path, tail_bytes))]
    if not any(lines):
        raise ScanError(f"empty rollout tail in {path}")

    tail = CodexTail()
    for line in reversed(lines):
        if not line:
            continue
        parsed = _parse_entry(line)
        if parsed is None:
            continue
        entry, payload = parsed
        entry_type = as_string(entry.get("type"))

        if not tail.entry_type:
            tail.entry_type = entry_type
            tail.payload_type = as_string(payload.get("type"))
            tail.role = as_string(payload.get("role"))
            tail.last_ts = parse_timestamp_or(as_string(entry.get("timestamp")), None)

        if entry_type == "response_item" and payload.get("type") == "message":
            role = as_string(payload.get("role"))
            text = _message_text(role, payload.get("content"))
            if role == "assistant" and text and not tail.last_assistant_text:
                tail.last_assistant_text = text
            elif role == "user" and text and not tail.last_user_text and not _looks_like_environment_context(text):
                tail.last_user_text = text

        if tail.complete:
            break
    return tail


def find_rollouts(codex_home: Path, window_start: datetime) -> list[Path]:
    """Rollout files under the session directories modified at or after ``window_start``."""
    cutoff = window_start.timestamp()
    found: list[Path] = []
    for name in SESSION_DIRS:
        for root, _dirs, files in os.walk(codex_home / name):
            for filename in sorted(files):
                if not (filename.startswith(ROLLOUT_PREFIX) and filename.endswith(ROLLOUT_SUFFIX)):
                    continue
                path = Path(root) / filename
                try:
                    modified = path.stat().st_mtime
                except OSError:
                    continue
                if modified >= cutoff:
                    found.append(path)
    return found


def scan_codex_rollout(path: Path, settings: AistatSettings, now: datetime) -> SessionRecord:
    header = scan_codex_header(path, settings.header_scan_lines, settings.max_line_bytes)
    tail = scan_codex_tail(path, settings.tail_bytes_codex)

    session_id = header.session_id or normalize_placeholder(path.name[: -len(ROLLOUT_SUFFIX)])
    if not session_id:
        raise ScanError(f"no session id for {path}")

    last_seen = tail.last_ts
    if last_seen is None:
        last_seen = datetime.fromtimestamp(path.stat().st_mtime, tz=timezone.utc)

    record = SessionRecord(
        provider=Provider.CODEX,
        id=session_id,
        rollout_path=str(path),
        cwd=header.cwd,
        model_id=header.model,
        approval_policy=header.approval_policy,
        last_seen=last_seen,
        last_event=last_seen,
        last_event_name=f"{tail.entry_type}/{tail.payload_type}",
        last_user_text=tail.last_user_text,
        last_assistant_text=tail.last_assistant_text,
        updated_at=now,
    )
    if "approval" in tail.payload_type.lower():
        record.status = Status.APPROVAL
        record.status_reason = "awaiting approval"
    return record


def scan_codex_rollouts(settings: AistatSettings, now: datetime | None = None) -> list[SessionRecord]:
    """One record per recent rollout; files that fail to scan are skipped."""
    now = now or utc_now()
    records: list[SessionRecord] = []
    for path in find_rollouts(settings.codex_home, now - settings.scan_window):
        try:
            records.append(scan_codex_rollout(path, settings, now))
        except (OSError, ScanError) as exc:
            logger.debug("Skipping rollout %s: %s", path, exc)
    return records
