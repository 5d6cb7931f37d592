from __future__ import annotations

from collections.abc import Iterable
from enum import Enum

from aistat.config import AistatSettings
from aistat.models import Provider, SessionView, Status


class QueryMode(str, Enum):
    ALL = "all"
    PROJECT = "project"
    STATUS = "status"


def parse_query(query: str) -> tuple[QueryMode, str]:
    """Split a ``p:``/``s:`` prefixed query into its mode and needle."""
    text = query.strip()
    prefix = text[:2].lower()
    if prefix == "p:":
        return QueryMode.PROJECT, text[2:].strip()
    if prefix == "s:":
        return QueryMode.STATUS, text[2:].strip()
    return QueryMode.ALL, text


def fuzzy_match(needle: str, hay: str) -> bool:
    """True when the characters of ``needle`` appear in ``hay`` in order."""
    if not needle:
        return True
    remaining = iter(hay)
    return all(char in remaining for char in needle)


def matches_query(view: SessionView, query: str) -> bool:
    mode, needle = parse_query(query)
    if not needle:
        return True
    if mode is QueryMode.PROJECT:
        hay = view.project
    elif mode is QueryMode.STATUS:
        hay = view.status.value
    else:
        hay = " ".join([view.provider.value, view.id, view.project, view.dir, view.model])
    return fuzzy_match(needle.lower(), hay.lower())


def matches_provider(provider: Provider, providers: Iterable[Provider]) -> bool:
    allowed = tuple(providers)
    return not allowed or provider in allowed


def matches_project(project: str, projects: Iterable[str]) -> bool:
    allowed = {item.lower() for item in projects}
    if not allowed:
        return True
    return bool(project) and project.lower() in allowed


def matches_status(status: Status, statuses: Iterable[Status]) -> bool:
    allowed = tuple(statuses)
    return not allowed or status in allowed


def session_visible(view: SessionView, settings: AistatSettings) -> bool:
    if not settings.include_ended:
        if view.status in (Status.ENDED, Status.STALE) or view.age > settings.active_window:
            return False
    return (
        matches_provider(view.provider, settings.providers)
        and matches_project(view.project, settings.projects)
        and matches_status(view.status, settings.statuses)
        and matches_query(view, settings.query)
    )


def filter_sessions(views: Iterable[SessionView], settings: AistatSettings) -> list[SessionView]:
    return [view for view in views if session_visible(view, settings)]
