"""Reference-data store contracts and the in-memory adapter."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, fields
from typing import Any, Protocol

from timber_kb.types import SpanTableEntry, TimberGradeEntry


@dataclass(frozen=True, slots=True)
class SpanFilter:
    """Equality filter over span rows; `None` fields are wildcards."""

    member_type: str | None = None
    timber_type: str | None = None
    species: str | None = None
    size: str | None = None
    load_type: str | None = None
    spacing: int | None = None

    def matches(self, entry: SpanTableEntry) -> bool:
        for item in fields(self):
            wanted = getattr(self, item.name)
            if wanted is not None and getattr(entry, item.name) != wanted:
                return False
        return True


class ReferenceStore(Protocol):
    """Storage collaborator for span tables and timber grades."""

    async def get_span_table_entries(self, span_filter: SpanFilter) -> list[SpanTableEntry]:
        """Rows matching every non-null filter field, unordered."""

    async def get_timber_grade_entries(
        self, grade: str | None = None, species: str | None = None
    ) -> list[TimberGradeEntry]:
        """Grades matching the given grade and/or species."""

    async def get_timber_grade_entry(self, grade: str) -> TimberGradeEntry | None:
        """First grade row for `grade`, if any."""

    async def upsert_span_entry(self, entry: SpanTableEntry) -> None:
        """Insert or replace the row with the same key."""

    async def upsert_timber_grade(self, entry: TimberGradeEntry) -> None:
        """Insert or replace the grade with the same grade and species."""

    async def summary(self) -> dict[str, Any]:
        """Row counts for diagnostics."""

    async def clear(self) -> dict[str, int]:
        """Remove all reference data."""


class InMemoryReferenceStore:
    """Dictionary-backed reference store used for tests and local runs."""

    def __init__(self) -> None:
        self._spans: dict[tuple[Any, ...], SpanTableEntry] = {}
        self._grades: dict[tuple[str, str | None], TimberGradeEntry] = {}

    async def get_span_table_entries(self, span_filter: SpanFilter) -> list[SpanTableEntry]:
        return [entry for entry in self._spans.values() if span_filter.matches(entry)]

    async def get_timber_grade_entries(
        self, grade: str | None = None, species: str | None = None
    ) -> list[TimberGradeEntry]:
        return [
            entry
            for entry in self._grades.values()
            if (grade is None or entry.grade == grade)
            and (species is None or entry.species == species)
        ]

    async def get_timber_grade_entry(self, grade: str) -> TimberGradeEntry | None:
        matches = await self.get_timber_grade_entries(grade=grade)
        return matches[0] if matches else None

    async def upsert_span_entry(self, entry: SpanTableEntry) -> None:
        self._spans[entry.key] = entry

    async def upsert_timber_grade(self, entry: TimberGradeEntry) -> None:
        self._grades[(entry.grade, entry.species)] = entry

    async def summary(self) -> dict[str, Any]:
        spans = list(self._spans.values())
        return {
            "total": len(spans),
            "by_member_type": dict(Counter(entry.member_type for entry in spans)),
            "by_timber_type": dict(Counter(entry.timber_type for entry in spans)),
            "grades": len(self._grades),
        }

    async def clear(self) -> dict[str, int]:
        counts = {"deleted_spans": len(self._spans), "deleted_grades": len(self._grades)}
        self._spans.clear()
        self._grades.clear()
        return counts
