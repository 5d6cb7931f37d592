"""Exception hierarchy for aistat."""

from __future__ import annotations


class AistatError(RuntimeError):
    """Base class for aistat errors."""


class LockBusyError(AistatError):
    """Raised when a non-blocking lock attempt finds the lock held."""


class ScanError(AistatError):
    """Raised when a session log cannot be scanned."""


class HeaderNotFoundError(ScanError):
    """Raised when a rollout header scan finds none of the core fields."""


class SessionNotFoundError(AistatError):
    """Raised when a session id cannot be resolved to a record."""


__all__ = [
    "AistatError",
    "HeaderNotFoundError",
    "LockBusyError",
    "ScanError",
    "SessionNotFoundError",
]
