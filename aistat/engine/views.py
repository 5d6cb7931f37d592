from __future__ import annotations

from datetime import datetime
from pathlib import Path

from aistat.config import AistatSettings
from aistat.engine.status import activity_time, derive_status
from aistat.git_info import branch_name
from aistat.models import Provider, SessionRecord, SessionView, Status
from aistat.utils import (
    base_name,
    fmt_ago,
    maybe_redact_path,
    normalize_placeholder,
    redact_id,
    redact_message,
    redact_path,
    shorten_path,
)

_DETAIL_TIME_FORMAT = "%Y-%m-%d %H:%M:%S"


def claude_project_from_transcript(transcript_path: str) -> str:
    """Project name encoded in a transcript's folder (``-Users-me-code-app`` -> ``app``)."""
    if not transcript_path.strip():
        return ""
    folder = Path(transcript_path).parent.name
    segments = [segment for segment in folder.split("-") if segment]
    return segments[-1] if segments else ""


def project_name_for_record(record: SessionRecord) -> str:
    project = base_name(normalize_placeholder(record.project_dir))
    if not project:
        project = base_name(normalize_placeholder(record.cwd))
    if not project and record.provider == Provider.CLAUDE:
        project = claude_project_from_transcript(record.transcript_path)
    return project


def _local(value: datetime) -> str:
    return value.astimezone().strftime(_DETAIL_TIME_FORMAT)


def build_detail(
    record: SessionRecord,
    status: Status,
    reason: str,
    now: datetime,
    settings: AistatSettings,
) -> str:
    redact = settings.redact
    lines = [f"Status: {status.value} — {reason}", f"Provider: {record.provider.value}"]
    session_id = redact_id(record.id, redact)
    if session_id.strip():
        lines.append(f"Session: {session_id}")
    if record.last_event_name:
        lines.append(f"Last event: {record.last_event_name}")
    if record.last_event is not None:
        lines.append(f"Last event at: {_local(record.last_event)}")
    if record.updated_at is not None:
        lines.append(f"Updated at: {_local(record.updated_at)}")

    project_dir = normalize_placeholder(record.project_dir)
    cwd = normalize_placeholder(record.cwd)
    model_id = normalize_placeholder(record.model_id)
    model_display = normalize_placeholder(record.model_display)

    if record.provider == Provider.CLAUDE:
        if model_display or model_id:
            lines.append(f"Model: {model_display or model_id}")
        if project_dir:
            lines.append(f"Project: {maybe_redact_path(project_dir, redact)}")
        if cwd:
            lines.append(f"CWD: {maybe_redact_path(cwd, redact)}")
        if record.cost_usd:
            lines.append(f"Cost: ${record.cost_usd:.4f}")
        if record.context_window_size > 0 and record.current_input_tokens > 0:
            current = (
                record.current_input_tokens
                + record.current_output_tokens
                + record.current_cache_create_tokens
                + record.current_cache_read_tokens
            )
            pct = current / record.context_window_size * 100
            lines.append(f"Context: {current}/{record.context_window_size} ({pct:.0f}%)")
        transcript = normalize_placeholder(record.transcript_path)
        if transcript:
            lines.append(f"Transcript: {maybe_redact_path(transcript, redact)}")
    else:
        if model_id:
            lines.append(f"Model: {model_id}")
        if cwd:
            lines.append(f"CWD: {maybe_redact_path(cwd, redact)}")
        approval_policy = normalize_placeholder(record.approval_policy)
        if approval_policy:
            lines.append(f"Approval policy: {approval_policy}")
        thread_id = normalize_placeholder(record.thread_id)
        turn_id = normalize_placeholder(record.turn_id)
        if thread_id or turn_id:
            lines.append(f"Thread/Turn: {thread_id or 'n/a'} / {turn_id or 'n/a'}")
        title = normalize_placeholder(record.title)
        if title:
            lines.append(f"Title: {redact_message(title, redact)}")
        if record.message:
            lines.append(f"Message: {redact_message(record.message, redact)}")
        rollout = normalize_placeholder(record.rollout_path)
        if rollout:
            lines.append(f"Rollout: {maybe_redact_path(rollout, redact)}")

    if settings.include_last_msg:
        if record.last_user_text:
            lines.append(f"Last user: {redact_message(record.last_user_text, redact)}")
        if record.last_assistant_text:
            lines.append(f"Last assistant: {redact_message(record.last_assistant_text, redact)}")
    if record.last_seen is not None:
        lines.append(f"Last: {fmt_ago(now - record.last_seen)} ago")
    return "\n".join(lines) + "\n"


def make_view(record: SessionRecord, now: datetime, settings: AistatSettings) -> SessionView:
    """Project a merged record into a display view; the git branch is resolved separately."""
    last_seen = activity_time(record, now)
    status, reason = derive_status(record, now, settings)

    source = record.source_path
    directory = normalize_placeholder(record.cwd)
    redact = settings.redact

    view = SessionView(
        provider=record.provider,
        id=redact_id(record.id, redact),
        status=status,
        reason=reason,
        project=project_name_for_record(record),
        dir=shorten_path(directory, 2) if redact else directory,
        model=normalize_placeholder(record.model_display) or normalize_placeholder(record.model_id),
        cost=record.cost_usd,
        age=now - last_seen,
        last_seen=last_seen,
        source_path=redact_path(source) if redact else source,
        detail=build_detail(record, status, reason, now, settings),
        last_user=redact_message(record.last_user_text, redact) if settings.include_last_msg else "",
        last_assistant=redact_message(record.last_assistant_text, redact) if settings.include_last_msg else "",
    )
    view._source_dir = directory
    return view


def with_branch(view: SessionView) -> SessionView:
    branch = branch_name(view._source_dir) if view._source_dir else ""
    return view.model_copy(update={"branch": branch}) if branch else view
