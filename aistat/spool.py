"""Low-latency patch spool.

Ingestion adapters that must not wait on a record lock drop small JSON patches
here; the dashboard drains them into the record store. Layout::

    <home>/spool/<provider>/<kind>/<safe session id>.json            (coalescing)
    <home>/spool/<provider>/<kind>/<ns>-<rand>-<safe session id>.json (append)

A drain claims a file by renaming it to ``*.draining`` before applying it, so a
writer that coalesces onto the same name mid-drain lands in a fresh file instead
of being deleted with the old one. Claimed files that fail to apply stay behind
and are picked up first by the next drain, oldest claim first.
"""

from __future__ import annotations

import json
import logging
import time
import uuid
from collections.abc import Callable
from pathlib import Path
from typing import Any

from aistat.models import Provider
from aistat.utils import file_safe, write_atomic

logger = logging.getLogger(__name__)

CLAIM_SUFFIX = ".draining"

ApplyFn = Callable[[dict[str, Any]], None]


class Spool:
    def __init__(self, base_path: Path) -> None:
        self.base_path = base_path

    def kind_dir(self, provider: Provider, kind: str) -> Path:
        return self.base_path / provider.value / kind

    def coalesced_path(self, provider: Provider, kind: str, session_id: str) -> Path:
        return self.kind_dir(provider, kind) / f"{file_safe(session_id)}.json"

    def write(
        self,
        provider: Provider,
        kind: str,
        session_id: str,
        payload: dict[str, Any],
        *,
        coalesce: bool,
    ) -> Path:
        if coalesce:
            path = self.coalesced_path(provider, kind, session_id)
        else:
            name = f"{time.time_ns():020d}-{uuid.uuid4().hex[:8]}-{file_safe(session_id)}.json"
            path = self.kind_dir(provider, kind) / name
        write_atomic(path, json.dumps(payload, separators=(",", ":")))
        return path

    def pending(self, provider: Provider, kind: str) -> list[Path]:
        """Claimed leftovers from earlier drains first, then new patches in name order."""
        try:
            entries = sorted(self.kind_dir(provider, kind).iterdir())
        except FileNotFoundError:
            return []
        claimed = [path for path in entries if path.name.endswith(CLAIM_SUFFIX)]
        fresh = [
            path
            for path in entries
            if path.suffix == ".json" and not path.name.startswith(".")
        ]
        return claimed + fresh

    def drain(self, provider: Provider, kind: str, apply: ApplyFn) -> int:
        """Apply every pending patch; returns how many were applied and deleted."""
        applied = 0
        for path in self.pending(provider, kind):
            claimed = self._claim(path)
            if claimed is None:
                continue
            try:
                payload = json.loads(claimed.read_text(encoding="utf-8"))
                if not isinstance(payload, dict):
                    raise ValueError("spool patch is not a JSON object")
                apply(payload)
            except (OSError, ValueError) as exc:
                logger.warning("Leaving spool patch %s for retry: %s", claimed, exc)
                continue
            claimed.unlink(missing_ok=True)
            applied += 1
        return applied

    def clear(self, dry_run: bool = False) -> int:
        """Remove every spool file; returns how many were (or would be) removed."""
        if not self.base_path.exists():
            return 0
        files = [path for path in self.base_path.rglob("*") if path.is_file()]
        if not dry_run:
            for path in files:
                path.unlink(missing_ok=True)
        return len(files)

    @staticmethod
    def _claim(path: Path) -> Path | None:
        if path.name.endswith(CLAIM_SUFFIX):
            return path
        claimed = path.with_name(f"{path.stem}.{time.time_ns():020d}-{uuid.uuid4().hex[:8]}{CLAIM_SUFFIX}")
        try:
            path.rename(claimed)
        except FileNotFoundError:
            # Another drain got there first.
            return None
        return claimed
