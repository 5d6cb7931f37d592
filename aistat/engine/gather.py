from __future__ import annotations

import logging
from datetime import datetime

from aistat.config import AistatSettings
from aistat.engine.filters import filter_sessions
from aistat.engine.merge import RecordKey, merge_into, record_key
from aistat.engine.sorting import sort_sessions
from aistat.engine.views import make_view, with_branch
from aistat.models import Provider, SessionRecord, SessionView
from aistat.scan import scan_claude_transcripts, scan_codex_rollouts
from aistat.storage import RecordStore
from aistat.utils import utc_now

logger = logging.getLogger(__name__)


def collect_records(
    settings: AistatSettings,
    store: RecordStore,
    now: datetime,
) -> dict[RecordKey, SessionRecord]:
    """Stored records merged with whatever the log scanners currently see."""
    records = {record_key(record): record for record in store.list_records()}
    if settings.scans_provider(Provider.CODEX):
        for scanned in scan_codex_rollouts(settings, now):
            merge_into(records, scanned)
    if settings.scans_provider(Provider.CLAUDE):
        for scanned in scan_claude_transcripts(settings, now):
            merge_into(records, scanned)
    return records


def gather_sessions(
    settings: AistatSettings,
    *,
    store: RecordStore | None = None,
    now: datetime | None = None,
) -> list[SessionView]:
    """Merged, filtered and sorted session views.

    Reads only: pending spool patches are not applied here, see ``drain_spools``.
    """
    now = now or utc_now()
    store = store or RecordStore(settings.records_dir)
    records = collect_records(settings, store, now)

    views = [
        make_view(record, now, settings)
        for record in records.values()
        if settings.scans_provider(record.provider)
    ]
    views = sort_sessions(filter_sessions(views, settings), settings.sort_by)
    if settings.max_sessions > 0:
        views = views[: settings.max_sessions]
    if settings.resolve_branch:
        views = [with_branch(view) for view in views]
    logger.debug("Gathered %d of %d sessions", len(views), len(records))
    return views
