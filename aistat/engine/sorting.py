from __future__ import annotations

from collections.abc import Callable, Iterable
from typing import Any

from aistat.models import SessionGroup, SessionView

_SORT_KEYS: dict[str, tuple[Callable[[SessionView], Any], bool]] = {
    "status": (lambda view: view.status.value, False),
    "provider": (lambda view: view.provider.value, False),
    "cost": (lambda view: view.cost, True),
    "project": (lambda view: view.project.lower(), False),
}


def sort_sessions(views: Iterable[SessionView], sort_by: str = "last_seen") -> list[SessionView]:
    """Stable sort by ``sort_by``; ties (and the default) order by most recent activity."""
    ordered = sorted(views, key=lambda view: view.last_seen, reverse=True)
    entry = _SORT_KEYS.get(sort_by.strip().lower())
    if entry is not None:
        key, descending = entry
        ordered.sort(key=key, reverse=descending)
    return ordered


def group_key(view: SessionView, group_by: str) -> str:
    if group_by == "provider":
        return view.provider.value
    if group_by == "project":
        return view.project
    if group_by == "status":
        return view.status.value
    if group_by == "day":
        return view.last_seen.astimezone().strftime("%Y-%m-%d")
    if group_by == "hour":
        return view.last_seen.astimezone().strftime("%Y-%m-%d %H:00")
    return ""


def group_sessions(views: Iterable[SessionView], group_by: str = "") -> list[SessionGroup]:
    """Bucket views by ``group_by`` keeping first-seen group order and input order within groups."""
    views = list(views)
    key = group_by.strip().lower()
    if not key:
        return [SessionGroup(group="", sessions=views)]
    groups: dict[str, list[SessionView]] = {}
    for view in views:
        groups.setdefault(group_key(view, key), []).append(view)
    return [SessionGroup(group=name, sessions=members) for name, members in groups.items()]
