from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import IO, Any

from pydantic import ValidationError

from aistat.config import AistatSettings
from aistat.errors import AistatError
from aistat.ingest.apply import STATUSLINE_KIND, persist_patch, statusline_mutator
from aistat.ingest.payload import read_payload
from aistat.models import Provider, WritePolicy
from aistat.spool import Spool
from aistat.storage import RecordStore
from aistat.types import ClaudeStatuslineInput, ClaudeStatuslinePatch
from aistat.utils import base_name, normalize_placeholder, utc_now

logger = logging.getLogger(__name__)


def format_statusline(data: ClaudeStatuslineInput) -> str:
    """Compact ANSI line: bold model, repo, cost and context usage."""
    model = data.model.display_name or data.model.id
    repo = (
        base_name(data.workspace.project_dir)
        or base_name(data.workspace.current_dir)
        or base_name(data.cwd)
    )
    ctx = ""
    window = data.context_window
    usage = window.current_usage
    if window.context_window_size > 0 and usage is not None:
        current = (
            usage.input_tokens
            + usage.cache_creation_input_tokens
            + usage.cache_read_input_tokens
            + usage.output_tokens
        )
        pct = current / window.context_window_size * 100.0
        ctx = f"  {pct:.0f}% ctx"
    return f"\x1b[1m{model}\x1b[0m  {repo}  ${data.cost.total_cost_usd:.3f}{ctx}"


def build_statusline_patch(data: ClaudeStatuslineInput, session_id: str, now: datetime) -> ClaudeStatuslinePatch:
    patch = ClaudeStatuslinePatch(
        session_id=session_id,
        at=now,
        transcript_path=normalize_placeholder(data.transcript_path),
        cwd=normalize_placeholder(data.workspace.current_dir) or normalize_placeholder(data.cwd),
        project_dir=normalize_placeholder(data.workspace.project_dir),
        model_id=normalize_placeholder(data.model.id),
        model_display=normalize_placeholder(data.model.display_name),
        cost_usd=data.cost.total_cost_usd,
        duration_ms=data.cost.total_duration_ms,
        api_duration_ms=data.cost.total_api_duration_ms,
        lines_added=data.cost.total_lines_added,
        lines_removed=data.cost.total_lines_removed,
        total_input_tokens=data.context_window.total_input_tokens,
        total_output_tokens=data.context_window.total_output_tokens,
        context_window_size=data.context_window.context_window_size,
    )
    usage = data.context_window.current_usage
    if usage is not None:
        patch.current_input_tokens = usage.input_tokens
        patch.current_output_tokens = usage.output_tokens
        patch.current_cache_create_tokens = usage.cache_creation_input_tokens
        patch.current_cache_read_tokens = usage.cache_read_input_tokens
    return patch


def _throttled(
    settings: AistatSettings,
    session_id: str,
    now: datetime,
    store: RecordStore,
    spool: Spool,
    policy: WritePolicy,
) -> bool:
    min_write = settings.statusline_min_write
    if min_write.total_seconds() <= 0:
        return False
    record = store.read(Provider.CLAUDE, session_id)
    if record is not None and record.has_model and record.updated_at is not None:
        if now - record.updated_at < min_write:
            return True
    if policy is WritePolicy.COALESCE:
        path = spool.coalesced_path(Provider.CLAUDE, STATUSLINE_KIND, session_id)
        try:
            modified = datetime.fromtimestamp(path.stat().st_mtime, tz=timezone.utc)
        except FileNotFoundError:
            return False
        if now - modified < min_write:
            return _pending_has_model(path)
    return False


def _pending_has_model(path: Path) -> bool:
    try:
        pending = ClaudeStatuslinePatch.model_validate_json(path.read_bytes())
    except (OSError, ValidationError, UnicodeDecodeError):
        return False
    return bool(pending.model_id or pending.model_display)


def ingest_statusline(
    stream: IO[Any],
    settings: AistatSettings,
    *,
    policy: WritePolicy = WritePolicy.COALESCE,
    store: RecordStore | None = None,
    spool: Spool | None = None,
    now: datetime | None = None,
) -> str:
    """Record a statusline refresh and return the line to print.

    Unusable input yields an empty line. Storage problems never affect the
    returned line.
    """
    payload = read_payload(stream, settings.max_stdin_bytes)
    if payload is None:
        return ""
    try:
        data = ClaudeStatuslineInput.model_validate(payload)
    except ValidationError:
        logger.debug("Ignoring unparseable statusline payload")
        return ""
    line = format_statusline(data)

    session_id = normalize_placeholder(data.session_id)
    if not session_id:
        return line
    now = now or utc_now()
    store = store or RecordStore(settings.records_dir)
    spool = spool or Spool(settings.spool_dir)
    try:
        if _throttled(settings, session_id, now, store, spool, policy):
            logger.debug("Skipping statusline write for %s; written recently", session_id)
            return line
        patch = build_statusline_patch(data, session_id, now)
        persist_patch(
            settings,
            Provider.CLAUDE,
            STATUSLINE_KIND,
            session_id,
            patch,
            statusline_mutator(patch),
            policy,
            store=store,
            spool=spool,
        )
    except (OSError, AistatError) as exc:
        logger.warning("Could not record statusline for %s: %s", session_id, exc)
    return line
