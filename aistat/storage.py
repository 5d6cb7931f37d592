from __future__ import annotations

import json
import logging
from collections.abc import Callable
from pathlib import Path

from pydantic import ValidationError

from aistat.errors import LockBusyError
from aistat.locking import file_lock
from aistat.models import Provider, SessionRecord
from aistat.utils import as_string, file_safe, later, utc_now, valid_session_id, write_atomic

logger = logging.getLogger(__name__)

Mutator = Callable[[SessionRecord], None]


class RecordStore:
    """Lock-guarded, atomically written per-session JSON records."""

    def __init__(self, base_path: Path) -> None:
        self.base_path = base_path

    def ensure_storage(self) -> None:
        self.base_path.mkdir(parents=True, exist_ok=True, mode=0o700)

    def record_path(self, provider: Provider, session_id: str) -> Path:
        return self.base_path / f"{provider.value}_{file_safe(session_id)}.json"

    def read(self, provider: Provider, session_id: str) -> SessionRecord | None:
        """Return the stored record, or ``None`` when it is missing or unreadable JSON."""
        return self._load(self.record_path(provider, session_id))

    def update(self, provider: Provider, session_id: str, mutate: Mutator) -> SessionRecord:
        """Apply ``mutate`` under the record's exclusive lock and persist the result."""
        path = self.record_path(provider, session_id)
        self.ensure_storage()
        with file_lock(self._lock_path(path)):
            return self._apply(path, provider, session_id, mutate)

    def update_nonblocking(
        self,
        provider: Provider,
        session_id: str,
        mutate: Mutator,
    ) -> SessionRecord | None:
        """Like ``update`` but drops the mutation when another process holds the lock."""
        path = self.record_path(provider, session_id)
        self.ensure_storage()
        try:
            with file_lock(self._lock_path(path), blocking=False):
                return self._apply(path, provider, session_id, mutate)
        except LockBusyError:
            logger.debug("Dropped update for %s:%s; record lock busy", provider.value, session_id)
            return None

    def list_records(self) -> list[SessionRecord]:
        """Load every parseable record; a missing directory yields an empty list."""
        records: list[SessionRecord] = []
        for path in self._record_files():
            record = self._load(path)
            if record is not None:
                records.append(record)
        return records

    def clean_invalid(self, dry_run: bool = False) -> int:
        """Remove records whose id is invalid or whose provider is empty."""
        removed = 0
        for path in self._record_files():
            try:
                raw = path.read_bytes()
            except FileNotFoundError:
                continue
            if not self._is_invalid_payload(raw):
                continue
            if not dry_run:
                path.unlink(missing_ok=True)
            removed += 1
        return removed

    def _record_files(self) -> list[Path]:
        try:
            entries = sorted(self.base_path.iterdir())
        except FileNotFoundError:
            return []
        return [
            path
            for path in entries
            if path.suffix == ".json" and not path.name.startswith(".") and path.is_file()
        ]

    def _apply(self, path: Path, provider: Provider, session_id: str, mutate: Mutator) -> SessionRecord:
        record = self._load(path) or SessionRecord(provider=provider, id=session_id)
        previous_update = record.updated_at
        mutate(record)
        record.provider = provider
        record.id = session_id
        record.updated_at = later(previous_update, utc_now())
        write_atomic(path, record.model_dump_json(indent=2, exclude_defaults=True))
        return record

    def _load(self, path: Path) -> SessionRecord | None:
        try:
            raw = path.read_bytes()
        except FileNotFoundError:
            return None
        try:
            return SessionRecord.model_validate_json(raw)
        except (ValidationError, UnicodeDecodeError):
            logger.debug("Ignoring unreadable record %s", path)
            return None

    def _is_invalid_payload(self, raw: bytes) -> bool:
        try:
            payload = json.loads(raw)
        except ValueError:
            # Undecodable or malformed files are left for the next write to replace.
            return False
        if not isinstance(payload, dict):
            return False
        provider = as_string(payload.get("provider")).strip()
        return not provider or not valid_session_id(as_string(payload.get("id")))

    @staticmethod
    def _lock_path(path: Path) -> Path:
        return path.with_name(path.name + ".lock")
