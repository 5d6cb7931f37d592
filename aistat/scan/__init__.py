from __future__ import annotations

from aistat.scan.claude import scan_claude_tail, scan_claude_transcripts
from aistat.scan.codex import (
    CodexHeader,
    CodexTail,
    scan_codex_header,
    scan_codex_rollouts,
    scan_codex_tail,
)
from aistat.scan.logio import iter_bounded_lines, read_tail_bytes, split_lines

__all__ = [
    "CodexHeader",
    "CodexTail",
    "iter_bounded_lines",
    "read_tail_bytes",
    "scan_claude_tail",
    "scan_claude_transcripts",
    "scan_codex_header",
    "scan_codex_rollouts",
    "scan_codex_tail",
    "split_lines",
]
