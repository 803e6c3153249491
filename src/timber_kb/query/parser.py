"""Deterministic question parser: free text to `ParsedQuery`."""

from __future__ import annotations

import re
from collections.abc import Mapping
from typing import Any

from timber_kb.query.models import (
    ParsedQuery,
    QueryType,
    Specificity,
    compute_missing,
)
from timber_kb.query.patterns import DEFAULT_PATTERNS, PatternTable
from timber_kb.query.safety import SAFETY_PATTERNS, detect_safety_topics

_SPECIES_ALIASES = {"spottedgum": "spotted_gum"}


class QueryParser:
    """Extracts member, timber, size, span, spacing and load from a question.

    Each field is extracted independently and the first match wins within a
    field. Specificity is scored after extraction so that concrete numbers or
    categories always override vague surface phrasing.
    """

    def __init__(
        self,
        patterns: PatternTable = DEFAULT_PATTERNS,
        safety_patterns: Mapping[str, re.Pattern[str]] = SAFETY_PATTERNS,
    ) -> None:
        self.patterns = patterns
        self.safety_patterns = safety_patterns

    def parse(self, question: str) -> ParsedQuery:
        q = question.lower()
        fields: dict[str, Any] = {}

        size = self._extract_size(question)
        if size:
            fields["size"] = size
        span = self._extract_span(question)
        if span:
            fields["span"] = span
        spacing_match = self.patterns.spacing.search(question)
        if spacing_match:
            fields["spacing"] = int(spacing_match.group(1))

        fields.update(self._extract_timber(q))

        member_match = self.patterns.member_type.search(q)
        if member_match:
            member = member_match.group(1)
            fields["member_type"] = dict(self.patterns.member_aliases).get(member, member)

        load_match = self.patterns.load_type.search(q)
        if load_match:
            fields["load_type"] = load_match.group(1)

        query_type = self._classify(q, fields)
        missing = (
            compute_missing(
                member_type=fields.get("member_type"),
                timber_type=fields.get("timber_type"),
                span=fields.get("span"),
                size=fields.get("size"),
                load_type=fields.get("load_type"),
            )
            if query_type is QueryType.SPAN_LOOKUP
            else []
        )

        return ParsedQuery(
            type=query_type,
            specificity=self.determine_specificity(question, fields),
            missing=missing,
            safety_topics=detect_safety_topics(question, self.safety_patterns),
            **fields,
        )

    def determine_specificity(self, question: str, fields: Mapping[str, Any]) -> Specificity:
        score = sum(
            (
                bool(fields.get("size")),
                bool(fields.get("span")),
                bool(fields.get("timber_type")),
                bool(fields.get("member_type")),
                bool(self.patterns.meaningful_number.search(question)),
            )
        )
        if score >= 2:
            return Specificity.SPECIFIC

        normalized = question.strip().lower()
        if any(pattern.search(normalized) for pattern in self.patterns.vague_phrasing):
            return Specificity.VAGUE
        return Specificity.SPECIFIC if score >= 1 else Specificity.VAGUE

    def _extract_size(self, question: str) -> str | None:
        match = self.patterns.size.search(question)
        if not match:
            return None
        return f"{match.group(1)}x{match.group(2)}"

    def _extract_span(self, question: str) -> int | None:
        match = self.patterns.span_metres.search(question)
        if match:
            span = round(float(match.group(1)) * 1000)
            return span or None
        match = self.patterns.span_millimetres.search(question)
        if match:
            return int(match.group(1)) or None
        return None

    def _extract_timber(self, q: str) -> dict[str, str]:
        if self.patterns.lvl.search(q):
            return {"timber_type": "LVL"}

        match = self.patterns.mgp.search(q)
        if match:
            return {"timber_type": re.sub(r"\s+", "", match.group(1)).upper()}

        match = self.patterns.hardwood.search(q)
        if match:
            keyword = match.group(1)
            if keyword == "hardwood":
                return {"timber_type": "hardwood"}
            species = re.sub(r"\s+", "_", keyword)
            return {
                "timber_type": "hardwood",
                "species": _SPECIES_ALIASES.get(species, species),
            }
        return {}

    def _classify(self, q: str, fields: Mapping[str, Any]) -> QueryType:
        if fields.get("member_type"):
            return QueryType.SPAN_LOOKUP
        if any(keyword in q for keyword in self.patterns.fastener_keywords):
            return QueryType.FASTENER_LOOKUP
        if any(keyword in q for keyword in self.patterns.timber_info_keywords):
            return QueryType.TIMBER_INFO
        return QueryType.GENERAL_KNOWLEDGE


_default_parser = QueryParser()


def parse_query(question: str) -> ParsedQuery:
    return _default_parser.parse(question)
