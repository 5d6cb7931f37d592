from __future__ import annotations

import json
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from aistat.config import AistatSettings
from aistat.engine import (
    derive_status,
    fuzzy_match,
    gather_sessions,
    group_sessions,
    make_view,
    matches_query,
    parse_query,
    resolve_record,
    sort_sessions,
    summarize_sessions,
)
from aistat.engine.filters import QueryMode
from aistat.engine.views import claude_project_from_transcript
from aistat.errors import SessionNotFoundError
from aistat.models import Provider, SessionRecord, SessionView, Status
from aistat.storage import RecordStore

NOW = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)


def _record(provider: Provider = Provider.CLAUDE, session_id: str = "s1", **fields: object) -> SessionRecord:
    return SessionRecord(provider=provider, id=session_id, **fields)


def _ago(**delta: float) -> datetime:
    return NOW - timedelta(**delta)


def _view(
    session_id: str,
    *,
    provider: Provider = Provider.CLAUDE,
    status: Status = Status.WAITING,
    project: str = "",
    cost: float = 0.0,
    last_seen: datetime = NOW,
) -> SessionView:
    return SessionView(
        provider=provider,
        id=session_id,
        status=status,
        project=project,
        cost=cost,
        last_seen=last_seen,
        age=NOW - last_seen,
    )


@pytest.mark.parametrize(
    ("record", "expected"),
    [
        (_record(ended_at=_ago(hours=5), last_seen=_ago(hours=5)), (Status.ENDED, "ended")),
        (_record(status=Status.RUNNING, last_seen=_ago(hours=2)), (Status.STALE, "stale (2h)")),
        (_record(status=Status.APPROVAL, last_seen=_ago(seconds=1)), (Status.APPROVAL, "awaiting approval")),
        (
            _record(last_notification_type="permission_prompt", last_seen=_ago(minutes=2)),
            (Status.APPROVAL, "awaiting approval"),
        ),
        (_record(status=Status.WAITING, last_seen=_ago(seconds=1)), (Status.RUNNING, "running")),
        (_record(status=Status.WAITING, status_reason="turn complete", last_seen=_ago(minutes=1)), (Status.WAITING, "turn complete")),
        (_record(status=Status.WAITING, last_seen=_ago(minutes=1)), (Status.WAITING, "awaiting input")),
        (_record(status=Status.NEEDS_ATTENTION, last_seen=_ago(minutes=1)), (Status.NEEDS_ATTENTION, "needs attention")),
        (_record(status=Status.RUNNING, last_seen=_ago(minutes=1)), (Status.RUNNING, "active")),
        (_record(status=Status.UNKNOWN, last_seen=_ago(minutes=1)), (Status.WAITING, "awaiting input")),
        (_record(updated_at=_ago(minutes=1)), (Status.WAITING, "awaiting input")),
        (_record(), (Status.RUNNING, "running")),
    ],
)
def test_derive_status_rules(
    make_settings: Callable[..., AistatSettings], record: SessionRecord, expected: tuple[Status, str]
) -> None:
    assert derive_status(record, NOW, make_settings()) == expected


def test_stale_rule_is_skipped_when_ended_included(make_settings: Callable[..., AistatSettings]) -> None:
    record = _record(status=Status.WAITING, last_seen=_ago(hours=2))
    assert derive_status(record, NOW, make_settings(include_ended=True)) == (Status.WAITING, "awaiting input")


def test_make_view_redacts_and_derives_fields(make_settings: Callable[..., AistatSettings]) -> None:
    record = _record(
        session_id="0123456789abcdef",
        cwd="/home/me/code/webapp/src",
        project_dir="/home/me/code/webapp",
        model_id="claude-opus",
        model_display="Opus",
        cost_usd=0.42,
        transcript_path="/home/me/.claude/projects/-home-me-code-webapp/0123456789abcdef.jsonl",
        last_user_text="secret prompt",
        last_seen=_ago(minutes=2),
    )

    view = make_view(record, NOW, make_settings(include_last_msg=True))

    assert view.id == "012345…def"
    assert view.project == "webapp"
    assert view.dir == "…/webapp/src"
    assert view.model == "Opus"
    assert view.cost == 0.42
    assert view.age == timedelta(minutes=2)
    assert view.source_path == "…/-home-me-code-webapp/0123456789abcdef.jsonl"
    assert view.last_user == "<redacted>"
    assert view.last_assistant == ""
    assert view.detail.startswith("Status: waiting — awaiting input\nProvider: claude\nSession: 012345…def\n")
    assert "Model: Opus" in view.detail
    assert "Cost: $0.4200" in view.detail
    assert "Last user: <redacted>" in view.detail


def test_make_view_without_redaction(make_settings: Callable[..., AistatSettings]) -> None:
    record = _record(
        provider=Provider.CODEX,
        session_id="0123456789abcdef",
        cwd="/home/me/code/api",
        model_id="gpt-5-codex",
        rollout_path="/home/me/.codex/sessions/rollout-x.jsonl",
        thread_id="th",
        message="all done",
        last_seen=_ago(minutes=1),
    )

    view = make_view(record, NOW, make_settings(redact=False))

    assert view.id == "0123456789abcdef"
    assert view.dir == "/home/me/code/api"
    assert view.source_path == "/home/me/.codex/sessions/rollout-x.jsonl"
    assert view.last_user == ""
    assert "Thread/Turn: th / n/a" in view.detail
    assert "Message: all done" in view.detail


def test_project_falls_back_to_transcript_folder(make_settings: Callable[..., AistatSettings]) -> None:
    record = _record(transcript_path="/h/.claude/projects/-Users-me-code-shop/s1.jsonl", last_seen=NOW)
    assert make_view(record, NOW, make_settings()).project == "shop"
    assert claude_project_from_transcript("") == ""
    assert claude_project_from_transcript("/x/---/s.jsonl") == ""


def test_parse_query_modes() -> None:
    assert parse_query("P: web") == (QueryMode.PROJECT, "web")
    assert parse_query("s:wait") == (QueryMode.STATUS, "wait")
    assert parse_query("  opus ") == (QueryMode.ALL, "opus")


def test_fuzzy_match_is_ordered_subsequence() -> None:
    assert fuzzy_match("wbp", "webapp")
    assert not fuzzy_match("pbw", "webapp")
    assert fuzzy_match("", "anything")


def test_matches_query_uses_mode_haystack() -> None:
    view = _view("s1", project="webapp", status=Status.APPROVAL)
    assert matches_query(view, "p:wapp")
    assert not matches_query(view, "p:claude")
    assert matches_query(view, "s:appr")
    assert matches_query(view, "claude")
    assert matches_query(view, "")


def test_sort_by_cost_breaks_ties_by_recency() -> None:
    views = [
        _view("cheap", cost=0.1, last_seen=_ago(minutes=1)),
        _view("tie-old", cost=2.0, last_seen=_ago(minutes=9)),
        _view("tie-new", cost=2.0, last_seen=_ago(minutes=2)),
        _view("free", cost=0.0, last_seen=NOW),
    ]
    assert [view.id for view in sort_sessions(views, "cost")] == ["tie-new", "tie-old", "cheap", "free"]


def test_sort_default_and_project() -> None:
    views = [
        _view("b", project="Zeta", last_seen=_ago(minutes=3)),
        _view("a", project="alpha", last_seen=_ago(minutes=5)),
        _view("c", project="alpha", last_seen=_ago(minutes=1)),
    ]
    assert [view.id for view in sort_sessions(views)] == ["c", "b", "a"]
    assert [view.id for view in sort_sessions(views, "project")] == ["c", "a", "b"]


def test_group_by_provider_keeps_first_seen_order() -> None:
    views = [
        _view("a", provider=Provider.CODEX),
        _view("b", provider=Provider.CLAUDE),
        _view("c", provider=Provider.CODEX),
    ]
    groups = group_sessions(views, "provider")
    assert [(group.group, [view.id for view in group.sessions]) for group in groups] == [
        ("codex", ["a", "c"]),
        ("claude", ["b"]),
    ]
    assert [group.group for group in group_sessions(views, "")] == [""]


def test_group_by_day_and_hour_use_local_time() -> None:
    view = _view("a", last_seen=NOW)
    local = NOW.astimezone()
    assert group_sessions([view], "day")[0].group == local.strftime("%Y-%m-%d")
    assert group_sessions([view], "hour")[0].group == local.strftime("%Y-%m-%d %H:00")


def test_summarize_sessions_counts_statuses() -> None:
    views = [
        _view("a", project="web", status=Status.RUNNING, cost=1.0),
        _view("b", project="web", status=Status.APPROVAL, cost=0.5),
        _view("c", project="api", status=Status.WAITING),
    ]
    rows = summarize_sessions(views, "project")

    assert [row.group for row in rows] == ["web", "api"]
    web = rows[0]
    assert (web.total, web.running, web.approval, web.waiting) == (2, 1, 1, 0)
    assert web.cost_usd == pytest.approx(1.5)
    assert rows[1].waiting == 1


def _write_rollout(codex_home: Path, session_id: str, cwd: str, when: datetime) -> None:
    stamp = when.isoformat().replace("+00:00", "Z")
    lines = [
        {"timestamp": stamp, "type": "session_meta", "payload": {"id": session_id, "cwd": cwd}},
        {"timestamp": stamp, "type": "turn_context", "payload": {"cwd": cwd, "model": "gpt-5-codex"}},
    ]
    path = codex_home / "sessions" / f"rollout-{session_id}.jsonl"
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text("\n".join(json.dumps(line) for line in lines) + "\n", encoding="utf-8")


def test_gather_merges_store_and_scans(make_settings: Callable[..., AistatSettings], tmp_path: Path) -> None:
    settings = make_settings(redact=False)
    now = datetime.now(timezone.utc)
    store = RecordStore(settings.records_dir)
    store.update(
        Provider.CODEX,
        "live-1",
        lambda record: (
            setattr(record, "status", Status.WAITING),
            setattr(record, "status_reason", "turn complete"),
            setattr(record, "last_seen", now - timedelta(minutes=1)),
        ),
    )
    store.update(
        Provider.CLAUDE,
        "gone-1",
        lambda record: setattr(record, "last_seen", now - timedelta(hours=3)),
    )
    _write_rollout(settings.codex_home, "live-1", "/work/api", now - timedelta(minutes=1))

    views = gather_sessions(settings, now=now)

    assert [(view.provider, view.id) for view in views] == [(Provider.CODEX, "live-1")]
    view = views[0]
    assert view.status == Status.WAITING
    assert view.reason == "turn complete"
    assert view.project == "api"
    assert view.model == "gpt-5-codex"

    assert gather_sessions(settings, now=now) == views

    everything = gather_sessions(settings.model_copy(update={"include_ended": True}), now=now)
    assert {view.id for view in everything} == {"live-1", "gone-1"}


def test_gather_yields_one_view_per_session(make_settings: Callable[..., AistatSettings]) -> None:
    settings = make_settings(redact=False)
    now = datetime.now(timezone.utc)
    RecordStore(settings.records_dir).update(
        Provider.CODEX,
        "dup-1",
        lambda record: (
            setattr(record, "status", Status.WAITING),
            setattr(record, "last_seen", now - timedelta(minutes=2)),
        ),
    )
    _write_rollout(settings.codex_home, "dup-1", "/work/api", now - timedelta(minutes=1))
    live = settings.codex_home / "sessions" / "rollout-dup-1.jsonl"
    archived = settings.codex_home / "archived_sessions" / live.name
    archived.parent.mkdir(parents=True)
    archived.write_bytes(live.read_bytes())

    views = gather_sessions(settings, now=now)

    assert [(view.provider, view.id) for view in views] == [(Provider.CODEX, "dup-1")]
    assert views[0].project == "api"
    assert views[0].status == Status.WAITING


def test_gather_applies_filters_and_limit(make_settings: Callable[..., AistatSettings]) -> None:
    base = make_settings(redact=False)
    now = datetime.now(timezone.utc)
    store = RecordStore(base.records_dir)
    for index, (provider, cwd) in enumerate(
        [(Provider.CLAUDE, "/w/web"), (Provider.CLAUDE, "/w/api"), (Provider.CODEX, "/w/web")]
    ):
        store.update(
            provider,
            f"s{index}",
            lambda record, cwd=cwd, index=index: (
                setattr(record, "cwd", cwd),
                setattr(record, "status", Status.WAITING),
                setattr(record, "last_seen", now - timedelta(minutes=index + 1)),
            ),
        )

    def ids(**changes: object) -> list[str]:
        settings = make_settings(redact=False, **changes)
        return [view.id for view in gather_sessions(settings, now=now)]

    assert ids() == ["s0", "s1", "s2"]
    assert ids(projects="WEB") == ["s0", "s2"]
    assert ids(providers="codex") == ["s2"]
    assert ids(statuses="running") == []
    assert ids(query="p:ap") == ["s1"]
    assert ids(max_sessions=2) == ["s0", "s1"]


def test_resolve_record_matches_id_forms(tmp_path: Path) -> None:
    store = RecordStore(tmp_path / "sessions")
    store.update(Provider.CLAUDE, "0123456789abcdef", lambda record: None)
    store.update(Provider.CODEX, "0123", lambda record: None)

    assert resolve_record(store, "0123").provider == Provider.CODEX
    assert resolve_record(store, "0123456789abcdef").id == "0123456789abcdef"
    assert resolve_record(store, "012345…def").id == "0123456789abcdef"
    assert resolve_record(store, "0123", Provider.CLAUDE).id == "0123456789abcdef"

    with pytest.raises(SessionNotFoundError):
        resolve_record(store, "zzz")
    with pytest.raises(SessionNotFoundError):
        resolve_record(store, "  ")
