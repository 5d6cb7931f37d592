from __future__ import annotations

from aistat.engine.filters import filter_sessions, fuzzy_match, matches_query, parse_query
from aistat.engine.gather import collect_records, gather_sessions
from aistat.engine.merge import MERGE_POLICIES, FieldPolicy, merge_into, merge_records
from aistat.engine.resolve import match_id, resolve_record
from aistat.engine.sorting import group_sessions, sort_sessions
from aistat.engine.status import derive_status
from aistat.engine.summary import summarize_sessions
from aistat.engine.views import build_detail, make_view, project_name_for_record

__all__ = [
    "FieldPolicy",
    "MERGE_POLICIES",
    "build_detail",
    "collect_records",
    "derive_status",
    "filter_sessions",
    "fuzzy_match",
    "gather_sessions",
    "group_sessions",
    "make_view",
    "match_id",
    "matches_query",
    "merge_into",
    "merge_records",
    "parse_query",
    "project_name_for_record",
    "resolve_record",
    "sort_sessions",
    "summarize_sessions",
]
