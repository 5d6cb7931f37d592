from __future__ import annotations

import os
import re
import tempfile
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

_FILE_SAFE_RE = re.compile(r"[^A-Za-z0-9._-]+")
_FRACTION_RE = re.compile(r"(\.\d{6})\d+")
_DURATION_RE = re.compile(r"(\d+(?:\.\d+)?)(ms|us|s|m|h|d)")
_DURATION_UNITS = {
    "us": timedelta(microseconds=1),
    "ms": timedelta(milliseconds=1),
    "s": timedelta(seconds=1),
    "m": timedelta(minutes=1),
    "h": timedelta(hours=1),
    "d": timedelta(days=1),
}
_PLACEHOLDERS = {"null", "none", "nil", "<nil>", "undefined", "n/a", "-"}

ELLIPSIS = "…"


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def file_safe(value: str) -> str:
    return _FILE_SAFE_RE.sub("_", value)


def normalize_placeholder(value: Any) -> str:
    """Trim a value and collapse null-ish or unexpanded template values to ''."""
    if value is None:
        return ""
    text = str(value).strip()
    if text.lower() in _PLACEHOLDERS:
        return ""
    if (text.startswith("${") and text.endswith("}")) or (text.startswith("{{") and text.endswith("}}")):
        return ""
    return text


def valid_session_id(value: str) -> bool:
    normalized = normalize_placeholder(value)
    if not normalized or len(normalized) > 256:
        return False
    return all(ch.isprintable() and not ch.isspace() for ch in normalized)


def as_string(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    return str(value)


def parse_timestamp(value: str) -> datetime:
    """Parse an RFC 3339 timestamp (nanosecond precision allowed) into aware UTC."""
    text = value.strip()
    if not text:
        raise ValueError("empty timestamp")
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    text = _FRACTION_RE.sub(r"\1", text)
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def parse_timestamp_or(value: str, default: datetime | None) -> datetime | None:
    if not value:
        return default
    try:
        return parse_timestamp(value)
    except ValueError:
        return default


def parse_duration(value: str) -> timedelta:
    """Parse Go-style durations such as ``30m``, ``800ms`` or ``1h30m``; bare numbers are seconds."""
    text = value.strip().lower()
    if not text:
        raise ValueError("empty duration")
    try:
        return timedelta(seconds=float(text))
    except ValueError:
        pass
    total = timedelta(0)
    position = 0
    for match in _DURATION_RE.finditer(text):
        if match.start() != position:
            break
        total += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
        position = match.end()
    if position != len(text):
        raise ValueError(f"invalid duration: {value}")
    return total


def later(a: datetime | None, b: datetime | None) -> datetime | None:
    if a is None:
        return b
    if b is None:
        return a
    return b if b > a else a


def base_name(path: str) -> str:
    text = path.strip()
    if not text:
        return ""
    return Path(text).name or text


def shorten_path(path: str, keep: int) -> str:
    text = path.strip()
    if not text:
        return ""
    text = os.path.normpath(text)
    parts = text.split(os.sep)
    if keep <= 0 or len(parts) <= keep:
        return text
    return f"{ELLIPSIS}/" + "/".join(parts[-keep:])


def redact_path(path: str) -> str:
    if not path:
        return ""
    return shorten_path(path, 2)


def maybe_redact_path(path: str, redact: bool) -> str:
    return redact_path(path) if redact else path


def redact_id(session_id: str, redact: bool = True) -> str:
    if not redact:
        return session_id
    text = session_id.strip()
    if len(text) <= 10:
        return text
    return f"{text[:6]}{ELLIPSIS}{text[-3:]}"


def redact_message(message: str, redact: bool) -> str:
    if not redact or not message:
        return message
    return "<redacted>"


def fmt_ago(delta: timedelta) -> str:
    seconds = abs(delta.total_seconds())
    if seconds < 1:
        return "0s"
    if seconds < 60:
        return f"{int(seconds)}s"
    if seconds < 3600:
        return f"{int(seconds // 60)}m"
    if seconds < 86400:
        return f"{int(seconds // 3600)}h"
    return f"{int(seconds // 86400)}d"


def format_cost(cost: float) -> str:
    if cost <= 0:
        return ""
    return f"${cost:.3f}"


def split_csv(values: Any) -> list[str]:
    """Flatten repeatable / comma-separated option values, lower-cased."""
    if values is None:
        return []
    if isinstance(values, str):
        values = [values]
    out: list[str] = []
    for value in values:
        for part in str(value).split(","):
            part = part.strip()
            if part:
                out.append(part.lower())
    return out


def write_atomic(path: Path, data: str) -> None:
    """Write ``data`` to a sibling temp file and rename it over ``path``."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(data)
        os.chmod(tmp_name, 0o600)
        os.replace(tmp_name, path)
    except BaseException:
        try:
            os.unlink(tmp_name)
        except FileNotFoundError:
            pass
        raise
