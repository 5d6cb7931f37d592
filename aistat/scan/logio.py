"""Bounded reads over append-only session logs."""

from __future__ import annotations

import os
from collections.abc import Iterator
from pathlib import Path
from typing import BinaryIO

_SKIP_CHUNK = 64 * 1024


def read_tail_bytes(path: Path, max_bytes: int) -> bytes:
    """Return at most the last ``max_bytes`` bytes of ``path``."""
    with path.open("rb") as handle:
        size = os.fstat(handle.fileno()).st_size
        if size <= 0:
            return b""
        handle.seek(max(0, size - max_bytes))
        return handle.read()


def split_lines(data: bytes) -> list[str]:
    return data.decode("utf-8", errors="replace").replace("\r\n", "\n").split("\n")


def iter_bounded_lines(handle: BinaryIO, max_line_bytes: int) -> Iterator[bytes | None]:
    """Yield each line of ``handle``; lines longer than ``max_line_bytes`` yield ``None``.

    An oversized line is consumed in chunks and never held in memory whole.
    """
    while True:
        line = handle.readline(max_line_bytes + 1)
        if not line:
            return
        if len(line) > max_line_bytes and not line.endswith(b"\n"):
            _skip_rest_of_line(handle)
            yield None
            continue
        yield line


def _skip_rest_of_line(handle: BinaryIO) -> None:
    while True:
        chunk = handle.readline(_SKIP_CHUNK)
        if not chunk or chunk.endswith(b"\n"):
            return
