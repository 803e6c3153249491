"""Formats answers from span-table rows and retrieval results."""

from __future__ import annotations

from timber_kb.query.models import ParsedQuery
from timber_kb.types import Source, SpanTableEntry

SAFETY_NOTES: dict[str, str] = {
    "in_ground": "**Heads up:** In-ground use requires Class 1 durability timber or H5 treatment minimum.",
    "wet_area": "**Heads up:** Wet areas need waterproof membrane under tiles per AS 3740.",
    "load_bearing": "**Heads up:** Load-bearing changes may need engineer sign-off.",
    "fixing": "**Heads up:** Pre-drill hardwood to avoid splitting.",
    "treatment": "**Heads up:** H4 is above-ground only - use H5 for in-ground contact.",
    "height": "**Heads up:** Balustrades must be 1000mm min height per NCC.",
    "fire": "**Heads up:** BAL ratings affect material choices - check your zone.",
}

COMPARE_PROMPT = "*Want to compare other sizes?*"


def format_span_answer(
    results: list[SpanTableEntry],
    parsed: ParsedQuery,
    *,
    default_spacing: int = 450,
) -> str:
    """One-line answer from the best row, plus safety and compare notes."""
    if not results:
        return (
            f"No span data for {parsed.size or 'this size'} "
            f"{parsed.timber_type or 'timber'} {parsed.member_type or 'member'}. "
            "Check manufacturer specs directly."
        )

    best = results[0]
    if not reaches_span(results, parsed):
        # Rows are ranked adequate-first, so the best row is the nearest miss.
        response = (
            f"No span data for {parsed.timber_type or 'timber'} "
            f"{parsed.member_type or 'member'} reaching {parsed.span / 1000:.1f}m. "
            f"Check manufacturer specs directly ({best.source}).\n\n"
            f"Nearest: {_describe_row(best, default_spacing)} - falls short."
        )
    else:
        response = _describe_row(best, default_spacing)

    note = safety_note(parsed.safety_topics)
    if note:
        response += f"\n\n{note}"

    if len(results) > 1 and reaches_span(results, parsed):
        response += f"\n\n{COMPARE_PROMPT}"
    return response


def reaches_span(results: list[SpanTableEntry], parsed: ParsedQuery) -> bool:
    """True when the top-ranked row covers the requested span, if any."""
    if not results:
        return False
    return parsed.span is None or results[0].max_span >= parsed.span


def _describe_row(entry: SpanTableEntry, default_spacing: int) -> str:
    span_m = f"{entry.max_span / 1000:.1f}"
    species = f" ({entry.species.replace('_', ' ')})" if entry.species else ""
    spacing = entry.spacing or default_spacing
    return (
        f"{entry.size} {entry.timber_type}{species} - **{span_m}m max** "
        f"at {spacing}mm centres ({entry.source})"
    )


def safety_note(topics: list[str]) -> str | None:
    """Note for the first detected topic only."""
    if not topics:
        return None
    return SAFETY_NOTES.get(topics[0])


def span_sources(results: list[SpanTableEntry]) -> list[Source]:
    return [Source(title=results[0].source)] if results else []


def attach_sources(answer: str, sources: list[Source]) -> tuple[str, list[Source]]:
    """Retrieval answers pass through unchanged alongside their sources."""
    return answer, list(sources)
