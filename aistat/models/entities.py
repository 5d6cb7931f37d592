from __future__ import annotations

from datetime import datetime, timedelta

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr

from aistat.models.enums import Provider, Status

COST_FIELDS = (
    "cost_usd",
    "duration_ms",
    "api_duration_ms",
    "lines_added",
    "lines_removed",
    "total_input_tokens",
    "total_output_tokens",
    "context_window_size",
    "current_input_tokens",
    "current_output_tokens",
    "current_cache_create_tokens",
    "current_cache_read_tokens",
)


class SessionRecord(BaseModel):
    """Durable, merged state for one (provider, id) session."""

    model_config = ConfigDict(protected_namespaces=())

    provider: Provider
    id: str

    transcript_path: str = ""
    rollout_path: str = ""

    cwd: str = ""
    project_dir: str = ""

    model_id: str = ""
    model_display: str = ""

    cost_usd: float = 0.0
    duration_ms: int = 0
    api_duration_ms: int = 0
    lines_added: int = 0
    lines_removed: int = 0

    total_input_tokens: int = 0
    total_output_tokens: int = 0
    context_window_size: int = 0
    current_input_tokens: int = 0
    current_output_tokens: int = 0
    current_cache_create_tokens: int = 0
    current_cache_read_tokens: int = 0

    thread_id: str = ""
    turn_id: str = ""
    title: str = ""
    message: str = ""
    last_user_text: str = ""
    last_assistant_text: str = ""

    approval_policy: str = ""

    last_seen: datetime | None = None
    last_event: datetime | None = None
    last_event_name: str = ""
    last_notification_type: str = ""
    last_notification_msg: str = ""
    status: Status | None = None
    status_reason: str = ""
    ended_at: datetime | None = None

    updated_at: datetime | None = None

    @property
    def source_path(self) -> str:
        if self.provider == Provider.CLAUDE:
            return self.transcript_path
        return self.rollout_path

    @property
    def has_model(self) -> bool:
        return bool(self.model_id or self.model_display)


class SessionView(BaseModel):
    """Read-only projection of a record for presentation layers."""

    provider: Provider
    id: str
    status: Status
    reason: str = ""

    project: str = ""
    dir: str = ""
    branch: str = ""
    model: str = ""
    cost: float = 0.0
    age: timedelta = timedelta(0)

    last_seen: datetime

    source_path: str = ""
    detail: str = ""
    last_user: str = ""
    last_assistant: str = ""

    _source_dir: str = PrivateAttr(default="")


class SessionGroup(BaseModel):
    group: str
    sessions: list[SessionView] = Field(default_factory=list)


class SummaryRow(BaseModel):
    group: str
    total: int = 0
    running: int = 0
    waiting: int = 0
    approval: int = 0
    stale: int = 0
    ended: int = 0
    needs_attention: int = 0
    cost_usd: float = 0.0
