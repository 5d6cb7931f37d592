from __future__ import annotations

from aistat.errors import SessionNotFoundError
from aistat.models import Provider, SessionRecord
from aistat.storage import RecordStore
from aistat.utils import redact_id


def match_id(actual: str, query: str) -> bool:
    """Match a full id, an id prefix, or the redacted display form (or its prefix)."""
    if actual.startswith(query):
        return True
    return redact_id(actual, True).startswith(query)


def resolve_record(store: RecordStore, query: str, provider: Provider | None = None) -> SessionRecord:
    """Find the stored record a user-typed id refers to; exact matches win over prefixes."""
    query = query.strip()
    if not query:
        raise SessionNotFoundError("missing session id")

    candidates = [
        record
        for record in store.list_records()
        if (provider is None or record.provider == provider) and match_id(record.id, query)
    ]
    for record in candidates:
        if record.id == query:
            return record
    if not candidates:
        raise SessionNotFoundError(f"no session matches {query!r} (try --no-redact)")
    return candidates[0]
