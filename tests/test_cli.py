from __future__ import annotations

import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

from aistat.cli import app

runner = CliRunner()


@pytest.fixture
def cli_env(tmp_path: Path) -> dict[str, str]:
    return {
        "AISTAT_HOME": str(tmp_path / "state"),
        "CODEX_HOME": str(tmp_path / "codex"),
        "CLAUDE_CONFIG_DIR": str(tmp_path / "claude"),
        "AISTAT_RESOLVE_BRANCH": "false",
    }


def _hook(env: dict[str, str], payload: object) -> None:
    result = runner.invoke(app, ["ingest", "claude-hook"], input=json.dumps(payload), env=env)
    assert result.exit_code == 0


def test_hook_then_list_json(cli_env: dict[str, str]) -> None:
    _hook(cli_env, {"session_id": "abc", "hook_event_name": "UserPromptSubmit", "cwd": "/work/webapp"})
    _hook(cli_env, {"session_id": "abc", "hook_event_name": "Notification", "notification_type": "permission_prompt"})

    result = runner.invoke(app, ["list", "--json"], env=cli_env)

    assert result.exit_code == 0, result.output
    sessions = json.loads(result.output)
    assert len(sessions) == 1
    assert sessions[0]["provider"] == "claude"
    assert sessions[0]["id"] == "abc"
    assert sessions[0]["status"] == "approval"
    assert sessions[0]["project"] == "webapp"
    assert sessions[0]["dir"] == "…/work/webapp"


def test_list_grouped_json(cli_env: dict[str, str]) -> None:
    _hook(cli_env, {"session_id": "one", "hook_event_name": "Stop", "cwd": "/w/api"})
    notify = json.dumps({"type": "agent-turn-complete", "data": {"session_id": "two", "cwd": "/w/api"}})
    result = runner.invoke(app, ["ingest", "codex-notify", notify], env=cli_env)
    assert result.exit_code == 0

    result = runner.invoke(app, ["list", "--json", "--group-by", "provider", "--no-redact"], env=cli_env)

    assert result.exit_code == 0, result.output
    groups = {group["group"]: [s["id"] for s in group["sessions"]] for group in json.loads(result.output)}
    assert groups == {"claude": ["one"], "codex": ["two"]}


def test_list_table_and_empty_state(cli_env: dict[str, str]) -> None:
    result = runner.invoke(app, ["list"], env=cli_env)
    assert result.exit_code == 0
    assert "No sessions found." in result.output

    _hook(cli_env, {"session_id": "abc", "hook_event_name": "Stop", "cwd": "/work/webapp"})
    result = runner.invoke(app, ["list"], env=cli_env)
    assert result.exit_code == 0
    assert "abc" in result.output


def test_list_rejects_invalid_filter(cli_env: dict[str, str]) -> None:
    result = runner.invoke(app, ["list", "--status", "sleeping"], env=cli_env)
    assert result.exit_code != 0


def test_hook_with_garbage_input_exits_cleanly(cli_env: dict[str, str]) -> None:
    result = runner.invoke(app, ["ingest", "claude-hook"], input="not json", env=cli_env)
    assert result.exit_code == 0
    assert result.output == ""


def test_statusline_prints_line(cli_env: dict[str, str]) -> None:
    payload = {
        "session_id": "abc",
        "model": {"display_name": "Opus"},
        "workspace": {"project_dir": "/work/webapp"},
        "cost": {"total_cost_usd": 0.5},
    }
    result = runner.invoke(app, ["statusline"], input=json.dumps(payload), env=cli_env)

    assert result.exit_code == 0
    assert result.output == "\x1b[1mOpus\x1b[0m  webapp  $0.500\n"


def test_summary_json(cli_env: dict[str, str]) -> None:
    _hook(cli_env, {"session_id": "a", "hook_event_name": "Stop", "cwd": "/w/web"})
    _hook(cli_env, {"session_id": "b", "hook_event_name": "Stop", "cwd": "/w/web"})

    result = runner.invoke(app, ["summary", "--json"], env=cli_env)

    assert result.exit_code == 0, result.output
    rows = json.loads(result.output)
    assert len(rows) == 1
    assert rows[0]["group"] == "web"
    assert rows[0]["total"] == 2


def test_show_resolves_session(cli_env: dict[str, str]) -> None:
    _hook(cli_env, {"session_id": "0123456789abcdef", "hook_event_name": "Stop", "cwd": "/w/web"})

    result = runner.invoke(app, ["show", "012345…def"], env=cli_env)
    assert result.exit_code == 0, result.output
    assert "Session: 012345…def" in result.output

    result = runner.invoke(app, ["show", "0123456789abcdef", "--json"], env=cli_env)
    assert json.loads(result.output)["cwd"] == "/w/web"

    result = runner.invoke(app, ["show", "nope"], env=cli_env)
    assert result.exit_code == 1


def test_clean_dry_run_then_clean(cli_env: dict[str, str], tmp_path: Path) -> None:
    _hook(cli_env, {"session_id": "abc", "hook_event_name": "Stop"})

    result = runner.invoke(app, ["clean", "--dry-run"], env=cli_env)
    assert result.exit_code == 0
    assert "Would remove 1 spool files" in result.output
    assert any((tmp_path / "state" / "spool").rglob("*.json"))

    result = runner.invoke(app, ["clean"], env=cli_env)
    assert "Removed 1 spool files" in result.output
    assert not any((tmp_path / "state" / "spool").rglob("*.json"))


def test_config_json(cli_env: dict[str, str], tmp_path: Path) -> None:
    result = runner.invoke(app, ["config", "--json"], env=cli_env)
    assert result.exit_code == 0
    values = json.loads(result.output)
    assert values["home"] == str(tmp_path / "state")
    assert values["resolve_branch"] is False
    assert values["sort_by"] == "last_seen"
