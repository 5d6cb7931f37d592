"""Configuration for aistat.

Settings are an immutable value built once per process and passed explicitly to
every store, scanner and engine call. Derived variants (for example a CLI run with
``--all``) are produced with ``settings.model_copy(update=...)``.
"""

from __future__ import annotations

import os
import platform
from datetime import timedelta
from pathlib import Path
from typing import Annotated, Any

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from aistat.models import Provider, Status
from aistat.utils import parse_duration, split_csv

APP_NAME = "aistat"

SORT_KEYS = ("last_seen", "status", "provider", "cost", "project")
GROUP_KEYS = ("provider", "project", "status", "day", "hour")


def _default_home() -> Path:
    home = Path.home()
    if platform.system() == "Darwin":
        return home / "Library" / "Application Support" / APP_NAME
    state_home = os.environ.get("XDG_STATE_HOME", "").strip()
    if state_home:
        return Path(state_home) / APP_NAME
    return home / ".local" / "state" / APP_NAME


class AistatSettings(BaseSettings):
    """Runtime configuration sourced from keyword arguments, environment variables and ``.env``."""

    model_config = SettingsConfigDict(
        env_prefix="AISTAT_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
    )

    home: Path = Field(default_factory=_default_home)
    codex_home: Path = Field(
        default_factory=lambda: Path.home() / ".codex",
        validation_alias=AliasChoices("codex_home", "CODEX_HOME"),
    )
    claude_home: Path = Field(
        default_factory=lambda: Path.home() / ".claude",
        validation_alias=AliasChoices("claude_home", "CLAUDE_CONFIG_DIR"),
    )

    active_window: timedelta = timedelta(minutes=30)
    running_window: timedelta = timedelta(seconds=3)
    refresh_every: timedelta = timedelta(seconds=1)
    all_scan_window: timedelta = timedelta(days=7)
    statusline_min_write: timedelta = timedelta(milliseconds=800)

    max_sessions: int = 50
    include_ended: bool = False
    redact: bool = True
    include_last_msg: bool = False
    resolve_branch: bool = True

    providers: Annotated[tuple[Provider, ...], NoDecode] = ()
    projects: Annotated[tuple[str, ...], NoDecode] = ()
    statuses: Annotated[tuple[Status, ...], NoDecode] = ()
    query: str = ""
    sort_by: str = "last_seen"
    group_by: str = ""

    tail_bytes_codex: int = 512 * 1024
    tail_bytes_claude: int = 256 * 1024
    header_scan_lines: int = 5000
    max_line_bytes: int = 50 * 1024 * 1024
    max_stdin_bytes: int = 10 * 1024 * 1024

    log_level: str = "WARNING"

    @field_validator(
        "active_window",
        "running_window",
        "refresh_every",
        "all_scan_window",
        "statusline_min_write",
        mode="before",
    )
    @classmethod
    def _parse_duration(cls, value: Any) -> Any:
        if isinstance(value, str):
            return parse_duration(value)
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return timedelta(seconds=value)
        return value

    @field_validator("active_window", "running_window", "refresh_every", "all_scan_window")
    @classmethod
    def _require_positive(cls, value: timedelta) -> timedelta:
        if value <= timedelta(0):
            raise ValueError("durations must be positive")
        return value

    @field_validator("tail_bytes_codex", "tail_bytes_claude", "header_scan_lines", "max_line_bytes", "max_stdin_bytes")
    @classmethod
    def _require_positive_budget(cls, value: int) -> int:
        if value < 1:
            raise ValueError("read budgets must be >= 1")
        return value

    @field_validator("providers", mode="before")
    @classmethod
    def _parse_providers(cls, value: Any) -> tuple[Provider, ...]:
        if isinstance(value, (list, tuple)) and all(isinstance(item, Provider) for item in value):
            return tuple(value)
        out: list[Provider] = []
        for item in split_csv(value):
            try:
                provider = Provider(item)
            except ValueError as exc:
                raise ValueError(f"invalid provider: {item} (use claude or codex)") from exc
            if provider not in out:
                out.append(provider)
        return tuple(out)

    @field_validator("statuses", mode="before")
    @classmethod
    def _parse_statuses(cls, value: Any) -> tuple[Status, ...]:
        if isinstance(value, (list, tuple)) and all(isinstance(item, Status) for item in value):
            return tuple(value)
        out: list[Status] = []
        for item in split_csv(value):
            normalized = item.replace("-", "_")
            if normalized == Status.UNKNOWN.value:
                raise ValueError(f"invalid status: {item}")
            try:
                status = Status(normalized)
            except ValueError as exc:
                raise ValueError(f"invalid status: {item}") from exc
            if status not in out:
                out.append(status)
        return tuple(out)

    @field_validator("projects", mode="before")
    @classmethod
    def _parse_projects(cls, value: Any) -> tuple[str, ...]:
        return tuple(split_csv(value))

    @field_validator("sort_by")
    @classmethod
    def _normalize_sort_by(cls, value: str) -> str:
        normalized = value.strip().lower() or "last_seen"
        if normalized not in SORT_KEYS:
            raise ValueError(f"invalid sort key: {value} (use {'|'.join(SORT_KEYS)})")
        return normalized

    @field_validator("group_by")
    @classmethod
    def _normalize_group_by(cls, value: str) -> str:
        normalized = value.strip().lower()
        if normalized and normalized not in GROUP_KEYS:
            raise ValueError(f"invalid group key: {value} (use {'|'.join(GROUP_KEYS)})")
        return normalized

    @field_validator("log_level")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        normalized = value.strip().upper()
        if normalized not in {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}:
            raise ValueError("AISTAT_LOG_LEVEL must be one of CRITICAL, ERROR, WARNING, INFO, DEBUG")
        return normalized

    @property
    def records_dir(self) -> Path:
        return self.home / "sessions"

    @property
    def spool_dir(self) -> Path:
        return self.home / "spool"

    @property
    def scan_window(self) -> timedelta:
        return self.all_scan_window if self.include_ended else self.active_window

    def scans_provider(self, provider: Provider) -> bool:
        return not self.providers or provider in self.providers


def load_settings(**overrides: Any) -> AistatSettings:
    """Build a settings value with user paths expanded."""
    settings = AistatSettings(**overrides)
    return settings.model_copy(
        update={
            "home": settings.home.expanduser(),
            "codex_home": settings.codex_home.expanduser(),
            "claude_home": settings.claude_home.expanduser(),
        }
    )


__all__ = ["AistatSettings", "GROUP_KEYS", "SORT_KEYS", "load_settings"]
