from __future__ import annotations

import json
import logging
import sys
from pathlib import Path
from typing import Annotated, Any

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from aistat.config import AistatSettings, load_settings
from aistat.engine import gather_sessions, group_sessions, make_view, resolve_record, summarize_sessions
from aistat.errors import AistatError
from aistat.ingest import drain_spools, ingest_claude_hook, ingest_codex_notify, ingest_statusline
from aistat.models import Provider, SessionView, Status, WritePolicy
from aistat.spool import Spool
from aistat.storage import RecordStore
from aistat.utils import fmt_ago, format_cost, utc_now

logger = logging.getLogger(__name__)

app = typer.Typer(help="aistat: live status of Claude Code and Codex sessions")
ingest_app = typer.Typer(help="Adapters invoked by agent hooks (always exit 0)")
console = Console()
err_console = Console(stderr=True)

STATUS_STYLES = {
    Status.RUNNING: "green",
    Status.WAITING: "yellow",
    Status.APPROVAL: "bold red",
    Status.NEEDS_ATTENTION: "magenta",
    Status.ENDED: "dim",
    Status.STALE: "dim",
    Status.UNKNOWN: "dim",
}


@app.callback()
def main(
    ctx: typer.Context,
    home: Annotated[Path | None, typer.Option("--home", help="State directory (records + spool)")] = None,
    log_level: Annotated[str | None, typer.Option("--log-level", help="Logging level for stderr")] = None,
) -> None:
    ctx.obj = {key: value for key, value in {"home": home, "log_level": log_level}.items() if value is not None}


def _settings(ctx: typer.Context, **changes: Any) -> AistatSettings:
    overrides = dict(ctx.obj or {})
    overrides.update({key: value for key, value in changes.items() if value is not None})
    try:
        settings = load_settings(**overrides)
    except ValidationError as exc:
        raise typer.BadParameter(str(exc)) from exc
    logging.basicConfig(
        level=settings.log_level,
        stream=sys.stderr,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    return settings


def _session_rows(view: SessionView) -> list[str]:
    style = STATUS_STYLES.get(view.status, "")
    return [
        view.provider.value,
        f"[{style}]{view.status.value}[/]" if style else view.status.value,
        escape(view.project),
        escape(view.branch),
        escape(view.model),
        format_cost(view.cost),
        fmt_ago(view.age),
        escape(view.id),
        escape(view.reason),
    ]


def _sessions_table(title: str, views: list[SessionView]) -> Table:
    table = Table(title=title)
    for column in ["provider", "status", "project", "branch", "model", "cost", "age", "id", "reason"]:
        table.add_column(column, justify="right" if column in {"cost", "age"} else "left")
    for view in views:
        table.add_row(*_session_rows(view))
    return table


def _view_payload(view: SessionView) -> dict[str, Any]:
    payload = view.model_dump(mode="json")
    payload["age"] = round(view.age.total_seconds(), 3)
    return payload


def _load_views(settings: AistatSettings) -> list[SessionView]:
    store = RecordStore(settings.records_dir)
    try:
        drain_spools(settings, store=store)
        return gather_sessions(settings, store=store)
    except (OSError, AistatError) as exc:
        err_console.print(f"[red]Could not read sessions:[/] {escape(str(exc))}")
        raise typer.Exit(code=1) from exc


@app.command("list")
def list_cmd(
    ctx: typer.Context,
    include_ended: Annotated[
        bool, typer.Option("--all", "-a", help="Include ended and stale sessions")
    ] = False,
    provider: Annotated[list[str] | None, typer.Option("--provider", help="claude|codex (repeatable)")] = None,
    project: Annotated[list[str] | None, typer.Option("--project", help="Project name (repeatable)")] = None,
    status: Annotated[list[str] | None, typer.Option("--status", help="Status filter (repeatable)")] = None,
    query: Annotated[str | None, typer.Option("--query", "-q", help="Fuzzy filter; p:project or s:status")] = None,
    sort_by: Annotated[str | None, typer.Option("--sort", help="last_seen|status|provider|cost|project")] = None,
    group_by: Annotated[str | None, typer.Option("--group-by", help="provider|project|status|day|hour")] = None,
    max_sessions: Annotated[int | None, typer.Option("--max", "-n", help="Maximum sessions (0 = all)")] = None,
    redact: Annotated[bool | None, typer.Option("--redact/--no-redact", help="Shorten ids and paths")] = None,
    last_msg: Annotated[bool, typer.Option("--last-msg", help="Include last user/assistant text")] = False,
    branch: Annotated[bool | None, typer.Option("--branch/--no-branch", help="Resolve git branches")] = None,
    as_json: Annotated[bool, typer.Option("--json", help="Output JSON")] = False,
) -> None:
    """List current sessions."""
    settings = _settings(
        ctx,
        include_ended=include_ended or None,
        providers=provider,
        projects=project,
        statuses=status,
        query=query,
        sort_by=sort_by,
        group_by=group_by,
        max_sessions=max_sessions,
        redact=redact,
        include_last_msg=last_msg or None,
        resolve_branch=branch,
    )
    views = _load_views(settings)
    groups = group_sessions(views, settings.group_by)

    if as_json:
        if settings.group_by:
            payload: Any = [
                {"group": group.group, "sessions": [_view_payload(view) for view in group.sessions]}
                for group in groups
            ]
        else:
            payload = [_view_payload(view) for view in views]
        typer.echo(json.dumps(payload, indent=2))
        return

    if not views:
        console.print("No sessions found.")
        return
    for group in groups:
        title = "Sessions" if not settings.group_by else f"{settings.group_by}: {group.group or 'unknown'}"
        console.print(_sessions_table(title, group.sessions))


@app.command("show")
def show(
    ctx: typer.Context,
    session_id: Annotated[str, typer.Argument(help="Session id, id prefix or redacted id")],
    provider: Annotated[str | None, typer.Option("--provider", help="claude|codex")] = None,
    redact: Annotated[bool | None, typer.Option("--redact/--no-redact", help="Shorten ids and paths")] = None,
    last_msg: Annotated[bool, typer.Option("--last-msg", help="Include last user/assistant text")] = False,
    as_json: Annotated[bool, typer.Option("--json", help="Output the stored record as JSON")] = False,
) -> None:
    """Show details for one session."""
    settings = _settings(ctx, redact=redact, include_last_msg=last_msg or None)
    selected: Provider | None = None
    if provider:
        try:
            selected = Provider(provider.strip().lower())
        except ValueError as exc:
            raise typer.BadParameter("provider must be claude or codex") from exc

    store = RecordStore(settings.records_dir)
    try:
        drain_spools(settings, store=store)
        record = resolve_record(store, session_id, selected)
    except (OSError, AistatError) as exc:
        err_console.print(f"[red]{escape(str(exc))}[/]")
        raise typer.Exit(code=1) from exc

    if as_json:
        typer.echo(record.model_dump_json(indent=2, exclude_defaults=True))
        return
    view = make_view(record, utc_now(), settings)
    console.print(view.detail.rstrip("\n"), highlight=False, markup=False)


@app.command("summary")
def summary(
    ctx: typer.Context,
    group_by: Annotated[str, typer.Option("--group-by", help="provider|project|status|day|hour")] = "project",
    include_ended: Annotated[
        bool, typer.Option("--all", "-a", help="Include ended and stale sessions")
    ] = False,
    as_json: Annotated[bool, typer.Option("--json", help="Output JSON")] = False,
) -> None:
    """Summarize sessions by group."""
    settings = _settings(
        ctx,
        group_by=group_by or "project",
        include_ended=include_ended or None,
        max_sessions=0,
        resolve_branch=False,
    )
    rows = summarize_sessions(_load_views(settings), settings.group_by)

    if as_json:
        typer.echo(json.dumps([row.model_dump(mode="json") for row in rows], indent=2))
        return
    if not rows:
        console.print("No sessions found.")
        return

    table = Table(title="Summary")
    table.add_column("group")
    for column in ["total", "run", "wait", "appr", "attn", "stale", "end", "cost"]:
        table.add_column(column, justify="right")
    for row in rows:
        table.add_row(
            row.group.strip() or "unknown",
            str(row.total),
            str(row.running),
            str(row.waiting),
            str(row.approval),
            str(row.needs_attention),
            str(row.stale),
            str(row.ended),
            format_cost(row.cost_usd),
        )
    console.print(table)


@app.command("clean")
def clean(
    ctx: typer.Context,
    dry_run: Annotated[bool, typer.Option("--dry-run", help="Report without deleting")] = False,
    spool: Annotated[bool, typer.Option("--spool/--no-spool", help="Clear pending spool patches")] = True,
    sessions: Annotated[
        bool, typer.Option("--sessions/--no-sessions", help="Remove records with invalid ids")
    ] = True,
) -> None:
    """Remove spool files and invalid session records."""
    settings = _settings(ctx)
    verb = "Would remove" if dry_run else "Removed"
    try:
        if spool:
            count = Spool(settings.spool_dir).clear(dry_run=dry_run)
            console.print(f"{verb} {count} spool files")
        if sessions:
            count = RecordStore(settings.records_dir).clean_invalid(dry_run=dry_run)
            console.print(f"{verb} {count} invalid session records")
    except OSError as exc:
        err_console.print(f"[red]Clean failed:[/] {escape(str(exc))}")
        raise typer.Exit(code=1) from exc


@app.command("config")
def config_cmd(
    ctx: typer.Context,
    as_json: Annotated[bool, typer.Option("--json", help="Output JSON")] = False,
) -> None:
    """Show the effective configuration."""
    settings = _settings(ctx)
    values = settings.model_dump(mode="json")
    values["records_dir"] = str(settings.records_dir)
    values["spool_dir"] = str(settings.spool_dir)
    if as_json:
        typer.echo(json.dumps(values, indent=2))
        return
    table = Table(title="Configuration")
    table.add_column("setting")
    table.add_column("value")
    for key, value in values.items():
        table.add_row(key, ",".join(value) if isinstance(value, list) else str(value))
    console.print(table)


@app.command("statusline")
def statusline(
    ctx: typer.Context,
    policy: Annotated[WritePolicy, typer.Option("--policy", help="coalesce|append|direct")] = WritePolicy.COALESCE,
) -> None:
    """Claude Code statusLine command: record metrics and print a compact line."""
    line = ""
    try:
        line = ingest_statusline(sys.stdin, _settings(ctx), policy=policy)
    except Exception:
        logger.debug("statusline ingestion failed", exc_info=True)
    typer.echo(line, color=True)


@ingest_app.command("claude-hook")
def claude_hook(
    ctx: typer.Context,
    policy: Annotated[WritePolicy, typer.Option("--policy", help="coalesce|append|direct")] = WritePolicy.APPEND,
) -> None:
    """Record a Claude Code hook event read from stdin."""
    try:
        ingest_claude_hook(sys.stdin, _settings(ctx), policy=policy)
    except Exception:
        logger.debug("claude hook ingestion failed", exc_info=True)


@ingest_app.command("codex-notify")
def codex_notify(
    ctx: typer.Context,
    payload: Annotated[str | None, typer.Argument(help="Notify JSON (read from stdin when omitted)")] = None,
    policy: Annotated[WritePolicy, typer.Option("--policy", help="coalesce|append|direct")] = WritePolicy.COALESCE,
) -> None:
    """Record a Codex notify event."""
    try:
        ingest_codex_notify(sys.stdin, _settings(ctx), argument=payload, policy=policy)
    except Exception:
        logger.debug("codex notify ingestion failed", exc_info=True)


app.add_typer(ingest_app, name="ingest")


if __name__ == "__main__":
    app()
