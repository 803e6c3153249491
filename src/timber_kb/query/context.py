"""Merging a follow-up answer into the previous turn's parsed state."""

from __future__ import annotations

from typing import Any

from timber_kb.errors import MalformedQueryError
from timber_kb.query.models import (
    STRUCTURED_FIELDS,
    ParsedQuery,
    QueryType,
    compute_missing,
)


def merge_context(current: ParsedQuery, previous: ParsedQuery | None) -> ParsedQuery:
    """Fill gaps in `current` from `previous`; current wins on conflict.

    A turn that only supplies a member type keeps the earlier span-lookup
    intent. `missing` is always recomputed from the merged fields, so stale
    lists from either turn are discarded.
    """
    merged: dict[str, Any] = {}
    for name in STRUCTURED_FIELDS:
        value = getattr(current, name)
        if value is None and previous is not None:
            value = getattr(previous, name)
        merged[name] = value

    query_type = current.type
    if (
        merged["member_type"]
        and previous is not None
        and previous.type is QueryType.SPAN_LOOKUP
    ):
        query_type = QueryType.SPAN_LOOKUP

    missing = (
        compute_missing(
            member_type=merged["member_type"],
            timber_type=merged["timber_type"],
            span=merged["span"],
            size=merged["size"],
            load_type=merged["load_type"],
        )
        if query_type is QueryType.SPAN_LOOKUP
        else []
    )

    if query_type is QueryType.SPAN_LOOKUP and not merged["member_type"]:
        raise MalformedQueryError("span_lookup query without a member type")

    return current.model_copy(
        update={**merged, "type": query_type, "missing": missing}
    )
