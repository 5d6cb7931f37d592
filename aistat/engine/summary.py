from __future__ import annotations

from collections.abc import Iterable

from aistat.engine.sorting import group_sessions
from aistat.models import SessionView, Status, SummaryRow

_COUNTERS = {
    Status.RUNNING: "running",
    Status.WAITING: "waiting",
    Status.APPROVAL: "approval",
    Status.STALE: "stale",
    Status.ENDED: "ended",
    Status.NEEDS_ATTENTION: "needs_attention",
}


def summarize_sessions(views: Iterable[SessionView], group_by: str = "project") -> list[SummaryRow]:
    """Per-group status counts and summed cost, in group order."""
    rows: list[SummaryRow] = []
    for group in group_sessions(views, group_by):
        row = SummaryRow(group=group.group)
        for view in group.sessions:
            row.total += 1
            row.cost_usd += view.cost
            counter = _COUNTERS.get(view.status)
            if counter is not None:
                setattr(row, counter, getattr(row, counter) + 1)
        rows.append(row)
    return rows
