from __future__ import annotations

from collections.abc import Callable
from datetime import timedelta
from pathlib import Path

import pytest
from pydantic import ValidationError

from aistat.config import AistatSettings, load_settings
from aistat.models import Provider, Status
from aistat.utils import parse_duration


@pytest.mark.parametrize(
    ("text", "expected"),
    [
        ("30m", timedelta(minutes=30)),
        ("800ms", timedelta(milliseconds=800)),
        ("1h30m", timedelta(hours=1, minutes=30)),
        ("7d", timedelta(days=7)),
        ("2.5", timedelta(seconds=2.5)),
    ],
)
def test_parse_duration(text: str, expected: timedelta) -> None:
    assert parse_duration(text) == expected


@pytest.mark.parametrize("text", ["", "abc", "5x", "m5"])
def test_parse_duration_rejects_garbage(text: str) -> None:
    with pytest.raises(ValueError):
        parse_duration(text)


def test_defaults(make_settings: Callable[..., AistatSettings], tmp_path: Path) -> None:
    settings = make_settings()
    assert settings.active_window == timedelta(minutes=30)
    assert settings.running_window == timedelta(seconds=3)
    assert settings.statusline_min_write == timedelta(milliseconds=800)
    assert settings.max_sessions == 50
    assert settings.redact is True
    assert settings.records_dir == tmp_path / "state" / "sessions"
    assert settings.spool_dir == tmp_path / "state" / "spool"
    assert settings.scan_window == settings.active_window
    assert make_settings(include_ended=True).scan_window == timedelta(days=7)


def test_environment_overrides(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("AISTAT_HOME", str(tmp_path / "h"))
    monkeypatch.setenv("AISTAT_ACTIVE_WINDOW", "5m")
    monkeypatch.setenv("AISTAT_PROVIDERS", "codex, claude,codex")
    monkeypatch.setenv("AISTAT_STATUSES", "needs-attention,Waiting")
    monkeypatch.setenv("CODEX_HOME", str(tmp_path / "cx"))

    settings = load_settings()

    assert settings.home == tmp_path / "h"
    assert settings.codex_home == tmp_path / "cx"
    assert settings.active_window == timedelta(minutes=5)
    assert settings.providers == (Provider.CODEX, Provider.CLAUDE)
    assert settings.statuses == (Status.NEEDS_ATTENTION, Status.WAITING)
    assert settings.scans_provider(Provider.CLAUDE)


@pytest.mark.parametrize(
    "overrides",
    [
        {"providers": "gemini"},
        {"statuses": "unknown"},
        {"statuses": "sleeping"},
        {"sort_by": "age"},
        {"group_by": "week"},
        {"active_window": "0s"},
        {"header_scan_lines": 0},
        {"log_level": "chatty"},
    ],
)
def test_invalid_values_are_rejected(make_settings: Callable[..., AistatSettings], overrides: dict) -> None:
    with pytest.raises(ValidationError):
        make_settings(**overrides)


def test_settings_are_immutable(make_settings: Callable[..., AistatSettings]) -> None:
    settings = make_settings()
    with pytest.raises(ValidationError):
        settings.max_sessions = 3
    assert settings.model_copy(update={"max_sessions": 3}).max_sessions == 3
