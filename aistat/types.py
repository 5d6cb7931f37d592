from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator

from aistat.models import Status
from aistat.utils import as_string


class _Payload(BaseModel):
    """Lenient stdin payload: unknown keys ignored, null or non-string scalars coerced."""

    model_config = ConfigDict(extra="ignore", protected_namespaces=())

    @field_validator("*", mode="before")
    @classmethod
    def _coerce_scalars(cls, value: Any, info: ValidationInfo) -> Any:
        annotation = cls.model_fields[info.field_name].annotation
        if value is None and isinstance(annotation, type) and issubclass(annotation, BaseModel):
            return {}
        if annotation is str:
            return as_string(value)
        if annotation in (int, float) and value in (None, ""):
            return 0
        return value


class ClaudeHookInput(_Payload):
    """Claude Code hook event as delivered on stdin."""

    session_id: str = ""
    hook_event_name: str = ""
    transcript_path: str = ""
    cwd: str = ""
    notification_type: str = ""
    message: str = ""


class CodexNotifyData(_Payload):
    session_id: str = ""
    thread_id: str = ""
    turn_id: str = ""
    cwd: str = ""
    title: str = ""
    message: str = ""


class CodexNotifyInput(_Payload):
    """Codex notify payload."""

    type: str = ""
    timestamp: str = ""
    data: CodexNotifyData = Field(default_factory=CodexNotifyData)


class StatuslineModel(_Payload):
    id: str = ""
    display_name: str = ""


class StatuslineWorkspace(_Payload):
    current_dir: str = ""
    project_dir: str = ""


class StatuslineCost(_Payload):
    total_cost_usd: float = 0.0
    total_duration_ms: int = 0
    total_api_duration_ms: int = 0
    total_lines_added: int = 0
    total_lines_removed: int = 0


class StatuslineUsage(_Payload):
    input_tokens: int = 0
    output_tokens: int = 0
    cache_creation_input_tokens: int = 0
    cache_read_input_tokens: int = 0


class StatuslineContextWindow(_Payload):
    total_input_tokens: int = 0
    total_output_tokens: int = 0
    context_window_size: int = 0
    current_usage: StatuslineUsage | None = None


class ClaudeStatuslineInput(_Payload):
    """Claude Code statusLine command input."""

    hook_event_name: str = ""
    session_id: str = ""
    transcript_path: str = ""
    cwd: str = ""
    version: str = ""
    model: StatuslineModel = Field(default_factory=StatuslineModel)
    workspace: StatuslineWorkspace = Field(default_factory=StatuslineWorkspace)
    cost: StatuslineCost = Field(default_factory=StatuslineCost)
    context_window: StatuslineContextWindow = Field(default_factory=StatuslineContextWindow)


class ClaudeHookPatch(BaseModel):
    """Spooled result of one hook event."""

    session_id: str
    at: datetime
    transcript_path: str = ""
    cwd: str = ""
    last_event_name: str = ""
    status: Status | None = None
    status_reason: str = ""
    ended_at: datetime | None = None
    last_notification_type: str = ""
    last_notification_msg: str = ""


class ClaudeStatuslinePatch(BaseModel):
    """Spooled result of one statusline refresh."""

    model_config = ConfigDict(protected_namespaces=())

    session_id: str
    at: datetime
    transcript_path: str = ""
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


class CodexNotifyPatch(BaseModel):
    """Spooled result of one Codex notify call."""

    session_id: str
    at: datetime
    cwd: str = ""
    thread_id: str = ""
    turn_id: str = ""
    title: str = ""
    message: str = ""
    event_name: str = ""
    event_type: str = ""
