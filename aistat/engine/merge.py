"""Field-by-field merge of two records for the same session.

Every ``SessionRecord`` field is assigned exactly one policy in ``MERGE_POLICIES``.
Grouped policies (newer event, explicit status, cost group) decide once per group
from the group's primary field and then move all member fields together.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from aistat.models import COST_FIELDS, Provider, SessionRecord, Status
from aistat.utils import later

RecordKey = tuple[Provider, str]


class FieldPolicy(str, Enum):
    KEY = "key"
    PREFER_EXISTING = "prefer_existing"
    PREFER_LATER = "prefer_later"
    PREFER_NEWER_EVENT = "prefer_newer_event"
    KEEP_EXPLICIT_STATUS = "keep_explicit_status"
    STICKY_ONCE_SET = "sticky_once_set"
    REPLACE_IF_PRIMARY_NONZERO = "replace_if_primary_nonzero"
    PREFER_INCOMING = "prefer_incoming"


MERGE_POLICIES: dict[str, FieldPolicy] = {
    "provider": FieldPolicy.KEY,
    "id": FieldPolicy.KEY,
    "transcript_path": FieldPolicy.PREFER_EXISTING,
    "rollout_path": FieldPolicy.PREFER_EXISTING,
    "cwd": FieldPolicy.PREFER_EXISTING,
    "project_dir": FieldPolicy.PREFER_EXISTING,
    "model_id": FieldPolicy.PREFER_EXISTING,
    "model_display": FieldPolicy.PREFER_EXISTING,
    "approval_policy": FieldPolicy.PREFER_EXISTING,
    "thread_id": FieldPolicy.PREFER_EXISTING,
    "turn_id": FieldPolicy.PREFER_EXISTING,
    "title": FieldPolicy.PREFER_EXISTING,
    "message": FieldPolicy.PREFER_EXISTING,
    "last_notification_type": FieldPolicy.PREFER_EXISTING,
    "last_notification_msg": FieldPolicy.PREFER_EXISTING,
    "last_seen": FieldPolicy.PREFER_LATER,
    "updated_at": FieldPolicy.PREFER_LATER,
    "last_event": FieldPolicy.PREFER_NEWER_EVENT,
    "last_event_name": FieldPolicy.PREFER_NEWER_EVENT,
    "status": FieldPolicy.KEEP_EXPLICIT_STATUS,
    "status_reason": FieldPolicy.KEEP_EXPLICIT_STATUS,
    "ended_at": FieldPolicy.STICKY_ONCE_SET,
    **{name: FieldPolicy.REPLACE_IF_PRIMARY_NONZERO for name in COST_FIELDS},
    "last_user_text": FieldPolicy.PREFER_INCOMING,
    "last_assistant_text": FieldPolicy.PREFER_INCOMING,
}

_GROUPED = (
    FieldPolicy.PREFER_NEWER_EVENT,
    FieldPolicy.KEEP_EXPLICIT_STATUS,
    FieldPolicy.REPLACE_IF_PRIMARY_NONZERO,
)


def record_key(record: SessionRecord) -> RecordKey:
    return record.provider, record.id


def _take_group(policy: FieldPolicy, current: SessionRecord, incoming: SessionRecord) -> bool:
    if policy is FieldPolicy.PREFER_NEWER_EVENT:
        if incoming.last_event is None:
            return False
        return current.last_event is None or incoming.last_event > current.last_event
    if policy is FieldPolicy.KEEP_EXPLICIT_STATUS:
        return current.status in (None, Status.UNKNOWN) and incoming.status is not None
    if policy is FieldPolicy.REPLACE_IF_PRIMARY_NONZERO:
        return incoming.cost_usd != 0
    raise ValueError(f"not a grouped policy: {policy}")


def _merge_value(policy: FieldPolicy, current: Any, incoming: Any) -> Any:
    if policy is FieldPolicy.PREFER_EXISTING:
        return current if current else incoming
    if policy is FieldPolicy.PREFER_LATER:
        return later(current, incoming)
    if policy is FieldPolicy.STICKY_ONCE_SET:
        return current if current is not None else incoming
    if policy is FieldPolicy.PREFER_INCOMING:
        return incoming if incoming else current
    return current


def merge_records(current: SessionRecord, incoming: SessionRecord) -> SessionRecord:
    """Merge ``incoming`` into a copy of ``current``; neither input is modified."""
    if record_key(current) != record_key(incoming):
        raise ValueError("cannot merge records for different sessions")

    take = {policy: _take_group(policy, current, incoming) for policy in _GROUPED}
    updates: dict[str, Any] = {}
    for name, policy in MERGE_POLICIES.items():
        current_value = getattr(current, name)
        incoming_value = getattr(incoming, name)
        if policy in take:
            updates[name] = incoming_value if take[policy] else current_value
        else:
            updates[name] = _merge_value(policy, current_value, incoming_value)
    return current.model_copy(update=updates)


def merge_into(records: dict[RecordKey, SessionRecord], incoming: SessionRecord) -> None:
    key = record_key(incoming)
    current = records.get(key)
    records[key] = incoming if current is None else merge_records(current, incoming)
