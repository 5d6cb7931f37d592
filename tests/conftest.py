from __future__ import annotations

import os
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest

from aistat.config import AistatSettings


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    for name in list(os.environ):
        if name.startswith("AISTAT_") or name in {"CODEX_HOME", "CLAUDE_CONFIG_DIR", "CLAUDE_HOME"}:
            monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)


@pytest.fixture
def make_settings(tmp_path: Path) -> Callable[..., AistatSettings]:
    def factory(**overrides: Any) -> AistatSettings:
        values: dict[str, Any] = {
            "home": tmp_path / "state",
            "codex_home": tmp_path / "codex",
            "claude_home": tmp_path / "claude",
            "resolve_branch": False,
        }
        values.update(overrides)
        return AistatSettings(**values)

    return factory
