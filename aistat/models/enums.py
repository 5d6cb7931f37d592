from __future__ import annotations

from enum import Enum


class Provider(str, Enum):
    CLAUDE = "claude"
    CODEX = "codex"


class Status(str, Enum):
    RUNNING = "running"
    WAITING = "waiting"
    APPROVAL = "approval"
    ENDED = "ended"
    STALE = "stale"
    UNKNOWN = "unknown"
    NEEDS_ATTENTION = "needs_attention"


class WritePolicy(str, Enum):
    """How an ingestion adapter persists its patch."""

    COALESCE = "coalesce"
    APPEND = "append"
    DIRECT = "direct"
