from __future__ import annotations

import logging
from datetime import datetime
from typing import IO, Any

from pydantic import ValidationError

from aistat.config import AistatSettings
from aistat.ingest.apply import HOOK_KIND, hook_mutator, persist_patch
from aistat.ingest.payload import read_payload
from aistat.models import Provider, Status, WritePolicy
from aistat.spool import Spool
from aistat.storage import RecordStore
from aistat.types import ClaudeHookInput, ClaudeHookPatch
from aistat.utils import normalize_placeholder, utc_now

logger = logging.getLogger(__name__)

HOOK_TRANSITIONS: dict[str, tuple[Status, str]] = {
    "SessionStart": (Status.RUNNING, "session started"),
    "UserPromptSubmit": (Status.RUNNING, "user prompt submitted"),
    "PreToolUse": (Status.RUNNING, "tool activity"),
    "PostToolUse": (Status.RUNNING, "tool activity"),
    "Stop": (Status.WAITING, "awaiting input"),
    "SessionEnd": (Status.ENDED, "session ended"),
}

NOTIFICATION_TRANSITIONS: dict[str, tuple[Status, str]] = {
    "permission_prompt": (Status.APPROVAL, "awaiting approval"),
    "idle_prompt": (Status.WAITING, "awaiting input"),
}


def build_hook_patch(payload: dict[str, Any], now: datetime) -> ClaudeHookPatch | None:
    """Translate a hook payload into a patch; ``None`` when it names no session."""
    try:
        event = ClaudeHookInput.model_validate(payload)
    except ValidationError:
        logger.debug("Ignoring unparseable hook payload")
        return None
    session_id = normalize_placeholder(event.session_id)
    if not session_id:
        return None

    name = event.hook_event_name.strip()
    patch = ClaudeHookPatch(
        session_id=session_id,
        at=now,
        transcript_path=normalize_placeholder(event.transcript_path),
        cwd=normalize_placeholder(event.cwd),
        last_event_name=name,
    )
    if name == "Notification":
        notification_type = normalize_placeholder(event.notification_type)
        patch.last_notification_type = notification_type
        patch.last_notification_msg = event.message
        default_reason = f"notification: {notification_type}" if notification_type else "notification"
        patch.status, patch.status_reason = NOTIFICATION_TRANSITIONS.get(
            notification_type, (Status.WAITING, default_reason)
        )
    elif name in HOOK_TRANSITIONS:
        patch.status, patch.status_reason = HOOK_TRANSITIONS[name]
        if patch.status == Status.ENDED:
            patch.ended_at = now
    return patch


def ingest_claude_hook(
    stream: IO[Any],
    settings: AistatSettings,
    *,
    policy: WritePolicy = WritePolicy.APPEND,
    store: RecordStore | None = None,
    spool: Spool | None = None,
    now: datetime | None = None,
) -> ClaudeHookPatch | None:
    """Record one Claude hook event read from ``stream``.

    Every unusable input is a silent no-op; storage failures are logged, not raised,
    so the calling hook never fails.
    """
    payload = read_payload(stream, settings.max_stdin_bytes)
    if payload is None:
        return None
    patch = build_hook_patch(payload, now or utc_now())
    if patch is None:
        return None
    try:
        persist_patch(
            settings,
            Provider.CLAUDE,
            HOOK_KIND,
            patch.session_id,
            patch,
            hook_mutator(patch),
            policy,
            store=store,
            spool=spool,
        )
    except OSError as exc:
        logger.warning("Could not record hook event for %s: %s", patch.session_id, exc)
    return patch
