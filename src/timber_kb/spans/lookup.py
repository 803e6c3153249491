"""Structured span-table lookup with closest-fit ranking."""

from __future__ import annotations

import logging

from timber_kb.errors import MalformedQueryError
from timber_kb.query.models import ParsedQuery
from timber_kb.spans.store import ReferenceStore, SpanFilter
from timber_kb.types import SpanTableEntry, TimberGradeEntry

logger = logging.getLogger(__name__)


def rank_candidates(
    entries: list[SpanTableEntry], required_span: int | None
) -> list[SpanTableEntry]:
    """Order rows so the smallest adequate member comes first.

    Rows that reach `required_span` always precede rows that fall short.
    Adequate rows ascend by max span then section area; short rows descend by
    max span so the nearest miss is offered first.
    """
    if required_span is None:
        return sorted(entries, key=lambda e: (e.max_span, e.section_area, e.size))

    adequate = [e for e in entries if e.max_span >= required_span]
    short = [e for e in entries if e.max_span < required_span]
    adequate.sort(key=lambda e: (e.max_span, e.section_area, e.size))
    short.sort(key=lambda e: (-e.max_span, e.section_area, e.size))
    return adequate + short


class SpanTableLookup:
    """Queries the reference store for rows matching a parsed question."""

    def __init__(self, store: ReferenceStore, *, default_spacing: int = 450) -> None:
        self.store = store
        self.default_spacing = default_spacing

    def build_filter(self, parsed: ParsedQuery) -> SpanFilter:
        if not parsed.member_type:
            raise MalformedQueryError("span lookup requires a member type")
        return SpanFilter(
            member_type=parsed.member_type,
            timber_type=parsed.timber_type,
            species=parsed.species,
            size=parsed.size,
            load_type=parsed.load_type,
            spacing=parsed.spacing or self.default_spacing,
        )

    async def lookup(self, parsed: ParsedQuery) -> list[SpanTableEntry]:
        span_filter = self.build_filter(parsed)
        entries = await self.store.get_span_table_entries(span_filter)
        ranked = rank_candidates(entries, parsed.span)
        logger.info(
            "Span lookup %s matched %d rows", span_filter, len(ranked)
        )
        return ranked

    async def grade_advice(self, entry: SpanTableEntry) -> TimberGradeEntry | None:
        """Grade reference for a row, used for advisory output only."""
        if entry.timber_type == "LVL" and entry.stress_grade:
            grades = await self.store.get_timber_grade_entries(
                grade=f"LVL-{entry.stress_grade}"
            )
        elif entry.species:
            grades = await self.store.get_timber_grade_entries(
                grade=entry.stress_grade, species=entry.species
            )
        else:
            grades = await self.store.get_timber_grade_entries(grade=entry.timber_type)
        return grades[0] if grades else None
