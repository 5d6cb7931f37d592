"""Turning ingestion patches into record mutations.

Adapters and the spool drain share these functions so a patch has the same effect
whether it is written directly or applied later from the spool.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from functools import partial
from typing import Any

from pydantic import BaseModel

from aistat.config import AistatSettings
from aistat.models import COST_FIELDS, Provider, SessionRecord, Status, WritePolicy
from aistat.spool import Spool
from aistat.storage import Mutator, RecordStore
from aistat.types import ClaudeHookPatch, ClaudeStatuslinePatch, CodexNotifyPatch
from aistat.utils import later, normalize_placeholder

logger = logging.getLogger(__name__)

HOOK_KIND = "hook"
STATUSLINE_KIND = "statusline"
NOTIFY_KIND = "notify"


def hook_mutator(patch: ClaudeHookPatch) -> Mutator:
    def mutate(record: SessionRecord) -> None:
        if patch.transcript_path:
            record.transcript_path = patch.transcript_path
        if patch.cwd:
            record.cwd = patch.cwd
        if patch.last_event_name:
            record.last_event_name = patch.last_event_name
        record.last_event = patch.at
        record.last_seen = later(record.last_seen, patch.at)
        if patch.last_notification_type:
            record.last_notification_type = patch.last_notification_type
        if patch.last_notification_msg:
            record.last_notification_msg = patch.last_notification_msg
        if patch.status is not None:
            record.status = patch.status
        if patch.status_reason:
            record.status_reason = patch.status_reason
        if patch.ended_at is not None:
            record.ended_at = patch.ended_at
        elif patch.status == Status.RUNNING:
            # Activity after an end event means the session was resumed.
            record.ended_at = None

    return mutate


def statusline_mutator(patch: ClaudeStatuslinePatch) -> Mutator:
    def mutate(record: SessionRecord) -> None:
        if patch.transcript_path:
            record.transcript_path = patch.transcript_path
        if patch.cwd:
            record.cwd = patch.cwd
        if patch.project_dir:
            record.project_dir = patch.project_dir
        if patch.model_id:
            record.model_id = patch.model_id
        if patch.model_display:
            record.model_display = patch.model_display
        for name in COST_FIELDS:
            setattr(record, name, getattr(patch, name))
        record.last_seen = later(record.last_seen, patch.at)
        if record.status in (None, Status.UNKNOWN):
            record.status = Status.RUNNING
            record.status_reason = "active"

    return mutate


def notify_mutator(patch: CodexNotifyPatch) -> Mutator:
    def mutate(record: SessionRecord) -> None:
        record.last_seen = later(record.last_seen, patch.at)
        record.last_event = later(record.last_event, patch.at)
        if patch.event_name:
            record.last_event_name = patch.event_name
        for name in ("cwd", "thread_id", "turn_id", "title", "message"):
            value = getattr(patch, name)
            if value:
                setattr(record, name, value)
        record.status = Status.WAITING
        record.status_reason = "turn complete"

    return mutate


def persist_patch(
    settings: AistatSettings,
    provider: Provider,
    kind: str,
    session_id: str,
    patch: BaseModel,
    mutate: Mutator,
    policy: WritePolicy,
    *,
    store: RecordStore | None = None,
    spool: Spool | None = None,
) -> bool:
    """Record a patch using ``policy``; returns ``False`` when a direct write was dropped."""
    if policy is WritePolicy.DIRECT:
        store = store or RecordStore(settings.records_dir)
        return store.update_nonblocking(provider, session_id, mutate) is not None
    spool = spool or Spool(settings.spool_dir)
    spool.write(
        provider,
        kind,
        session_id,
        patch.model_dump(mode="json", exclude_defaults=True),
        coalesce=policy is WritePolicy.COALESCE,
    )
    return True


def _apply_spooled(
    patch_type: type[BaseModel],
    provider: Provider,
    build_mutator: Callable[[Any], Mutator],
    store: RecordStore,
    payload: dict[str, Any],
) -> None:
    patch = patch_type.model_validate(payload)
    session_id = normalize_placeholder(patch.session_id)
    if not session_id:
        logger.debug("Discarding spooled %s patch without a session id", patch_type.__name__)
        return
    store.update(provider, session_id, build_mutator(patch))


SPOOL_KINDS: tuple[tuple[Provider, str, Callable[..., None]], ...] = (
    (Provider.CLAUDE, HOOK_KIND, partial(_apply_spooled, ClaudeHookPatch, Provider.CLAUDE, hook_mutator)),
    (
        Provider.CLAUDE,
        STATUSLINE_KIND,
        partial(_apply_spooled, ClaudeStatuslinePatch, Provider.CLAUDE, statusline_mutator),
    ),
    (Provider.CODEX, NOTIFY_KIND, partial(_apply_spooled, CodexNotifyPatch, Provider.CODEX, notify_mutator)),
)


def drain_spools(
    settings: AistatSettings,
    *,
    store: RecordStore | None = None,
    spool: Spool | None = None,
) -> int:
    """Apply every pending spooled patch for the configured providers."""
    store = store or RecordStore(settings.records_dir)
    spool = spool or Spool(settings.spool_dir)
    applied = 0
    for provider, kind, apply in SPOOL_KINDS:
        if not settings.scans_provider(provider):
            continue
        applied += spool.drain(provider, kind, partial(apply, store))
    if applied:
        logger.info("Drained %d spooled patches", applied)
    return applied
