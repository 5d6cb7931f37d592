from __future__ import annotations

from aistat.models.entities import (
    COST_FIELDS,
    SessionGroup,
    SessionRecord,
    SessionView,
    SummaryRow,
)
from aistat.models.enums import Provider, Status, WritePolicy

__all__ = [
    "COST_FIELDS",
    "Provider",
    "SessionGroup",
    "SessionRecord",
    "SessionView",
    "Status",
    "SummaryRow",
    "WritePolicy",
]
