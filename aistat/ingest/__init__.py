from __future__ import annotations

from aistat.ingest.apply import drain_spools, hook_mutator, notify_mutator, statusline_mutator
from aistat.ingest.hook import build_hook_patch, ingest_claude_hook
from aistat.ingest.notify import build_notify_patch, ingest_codex_notify
from aistat.ingest.payload import parse_payload, read_payload
from aistat.ingest.statusline import format_statusline, ingest_statusline

__all__ = [
    "build_hook_patch",
    "build_notify_patch",
    "drain_spools",
    "format_statusline",
    "hook_mutator",
    "ingest_claude_hook",
    "ingest_codex_notify",
    "ingest_statusline",
    "notify_mutator",
    "parse_payload",
    "read_payload",
    "statusline_mutator",
]
