from __future__ import annotations

from datetime import datetime, timedelta

from aistat.config import AistatSettings
from aistat.models import SessionRecord, Status
from aistat.utils import fmt_ago


def activity_time(record: SessionRecord, now: datetime) -> datetime:
    """Last observed activity: ``last_seen``, else ``updated_at``, else ``now``."""
    return record.last_seen or record.updated_at or now


def record_age(record: SessionRecord, now: datetime) -> timedelta:
    return now - activity_time(record, now)


def derive_status(record: SessionRecord, now: datetime, settings: AistatSettings) -> tuple[Status, str]:
    """Display status and reason for a merged record, first matching rule wins."""
    if record.ended_at is not None:
        return Status.ENDED, "ended"

    age = record_age(record, now)
    if age > settings.active_window and not settings.include_ended:
        return Status.STALE, f"stale ({fmt_ago(age)})"

    if record.status == Status.APPROVAL or record.last_notification_type == "permission_prompt":
        return Status.APPROVAL, "awaiting approval"

    # Any fresh activity reads as running, even right after a waiting event.
    if age <= settings.running_window:
        return Status.RUNNING, "running"

    if record.status == Status.WAITING:
        return Status.WAITING, record.status_reason or "awaiting input"
    if record.status == Status.NEEDS_ATTENTION:
        return Status.NEEDS_ATTENTION, "needs attention"
    if record.status == Status.RUNNING:
        return Status.RUNNING, "active"

    return Status.WAITING, "awaiting input"
