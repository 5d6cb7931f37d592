from __future__ import annotations

import json
import logging
from typing import IO, Any

logger = logging.getLogger(__name__)


def read_payload(stream: IO[Any], max_bytes: int) -> dict[str, Any] | None:
    """Read one bounded JSON object from ``stream``.

    Returns ``None`` for an interactive terminal, oversized input, empty input,
    malformed JSON or a non-object document.
    """
    try:
        if stream.isatty():
            logger.debug("Refusing to read payload from a TTY")
            return None
    except (AttributeError, ValueError):
        pass

    source = getattr(stream, "buffer", stream)
    raw = source.read(max_bytes + 1)
    if isinstance(raw, str):
        raw = raw.encode("utf-8")
    if len(raw) > max_bytes:
        logger.debug("Ignoring payload larger than %d bytes", max_bytes)
        return None
    return parse_payload(raw.decode("utf-8", errors="replace"))


def parse_payload(text: str) -> dict[str, Any] | None:
    """Decode the first JSON value in ``text``; trailing content is ignored."""
    text = text.strip()
    if not text:
        return None
    try:
        payload, _ = json.JSONDecoder().raw_decode(text)
    except ValueError:
        logger.debug("Ignoring malformed JSON payload")
        return None
    if not isinstance(payload, dict):
        return None
    return payload
