from __future__ import annotations

import logging
from datetime import datetime
from typing import IO, Any

from pydantic import ValidationError

from aistat.config import AistatSettings
from aistat.ingest.apply import NOTIFY_KIND, notify_mutator, persist_patch
from aistat.ingest.payload import parse_payload, read_payload
from aistat.models import Provider, WritePolicy
from aistat.spool import Spool
from aistat.storage import RecordStore
from aistat.types import CodexNotifyInput, CodexNotifyPatch
from aistat.utils import normalize_placeholder, parse_timestamp_or, utc_now

logger = logging.getLogger(__name__)


def build_notify_patch(payload: dict[str, Any], now: datetime) -> CodexNotifyPatch | None:
    """Translate a Codex notify payload; the thread id stands in for a missing session id."""
    try:
        notification = CodexNotifyInput.model_validate(payload)
    except ValidationError:
        logger.debug("Ignoring unparseable notify payload")
        return None
    data = notification.data
    session_id = normalize_placeholder(data.session_id) or normalize_placeholder(data.thread_id)
    if not session_id:
        return None
    return CodexNotifyPatch(
        session_id=session_id,
        at=parse_timestamp_or(notification.timestamp, now),
        cwd=normalize_placeholder(data.cwd),
        thread_id=normalize_placeholder(data.thread_id),
        turn_id=normalize_placeholder(data.turn_id),
        title=normalize_placeholder(data.title),
        message=data.message,
        event_name=f"notify:{notification.type}",
        event_type=notification.type,
    )


def ingest_codex_notify(
    stream: IO[Any] | None,
    settings: AistatSettings,
    *,
    argument: str | None = None,
    policy: WritePolicy = WritePolicy.COALESCE,
    store: RecordStore | None = None,
    spool: Spool | None = None,
    now: datetime | None = None,
) -> CodexNotifyPatch | None:
    """Record one Codex notify call.

    Codex passes the payload as a command-line argument; when ``argument`` is empty
    the payload is read from ``stream`` instead.
    """
    if argument and argument.strip():
        if len(argument.encode("utf-8")) > settings.max_stdin_bytes:
            return None
        payload = parse_payload(argument)
    elif stream is not None:
        payload = read_payload(stream, settings.max_stdin_bytes)
    else:
        payload = None
    if payload is None:
        return None
    patch = build_notify_patch(payload, now or utc_now())
    if patch is None:
        return None
    try:
        persist_patch(
            settings,
            Provider.CODEX,
            NOTIFY_KIND,
            patch.session_id,
            patch,
            notify_mutator(patch),
            policy,
            store=store,
            spool=spool,
        )
    except OSError as exc:
        logger.warning("Could not record notify event for %s: %s", patch.session_id, exc)
    return patch
