"""Shared domain models."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(slots=True)
class User:
    """Identity resolved before any question is parsed."""

    user_id: str
    organization_id: str
    role: str = "worker"

    @property
    def is_owner(self) -> bool:
        return self.role == "owner"


@dataclass(slots=True)
class KnowledgeDocument:
    """A titled text source; `organization_id=None` marks a global document."""

    doc_id: str
    title: str
    organization_id: str | None = None
    source_url: str | None = None
    uploaded_at: datetime = field(default_factory=utc_now)


@dataclass(slots=True)
class KnowledgeChunk:
    """A bounded slice of a document's cleaned text plus its embedding."""

    chunk_id: str
    doc_id: str
    content: str
    chunk_index: int
    embedding: list[float]
    heading: str = ""


@dataclass(slots=True)
class ScoredChunk:
    """A similarity-search hit with the owning document's citation."""

    chunk: KnowledgeChunk
    score: float
    source_title: str
    source_url: str | None = None
    rank: int = 0


@dataclass(slots=True, frozen=True)
class SpanTableEntry:
    """One authoritative row of an engineered-timber span table."""

    member_type: str
    timber_type: str
    size: str
    width: int
    depth: int
    load_type: str
    spacing: int
    max_span: int
    source: str
    stress_grade: str | None = None
    species: str | None = None
    continuous: bool = False
    source_page: str | None = None

    @property
    def key(self) -> tuple[Any, ...]:
        return (
            self.member_type,
            self.timber_type,
            self.species,
            self.size,
            self.load_type,
            self.spacing,
            self.continuous,
        )

    @property
    def section_area(self) -> int:
        return self.width * self.depth


@dataclass(slots=True, frozen=True)
class TimberGradeEntry:
    """Grade and durability reference used for advisory notes."""

    grade: str
    stress_grade: str
    common_uses: tuple[str, ...]
    treatment_required: str
    in_ground_ok: bool
    source: str
    species: str | None = None
    durability_class: int | None = None
    density: int | None = None


@dataclass(slots=True)
class ConversationTurn:
    """One remembered question/answer exchange."""

    user_id: str
    question: str
    answer: str
    parsed_context: dict[str, Any] | None = None
    created_at: datetime = field(default_factory=utc_now)
    expires_at: datetime | None = None


@dataclass(slots=True, frozen=True)
class Source:
    """A citation surfaced to the caller."""

    title: str
    url: str | None = None
