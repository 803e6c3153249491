"""Structured representation of a parsed question."""

from __future__ import annotations

from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class QueryType(str, Enum):
    SPAN_LOOKUP = "span_lookup"
    FASTENER_LOOKUP = "fastener_lookup"
    TIMBER_INFO = "timber_info"
    GENERAL_KNOWLEDGE = "general_knowledge"
    COMPLIANCE_CHECK = "compliance_check"


class Specificity(str, Enum):
    SPECIFIC = "specific"
    VAGUE = "vague"


MemberType = Literal[
    "bearer", "joist", "rafter", "lintel", "stud", "beam", "decking_joist"
]
LoadType = Literal["floor", "deck", "roof", "balcony", "ceiling"]
MissingField = Literal["span_or_size", "timber_type", "load_type", "species"]

STRUCTURED_FIELDS: tuple[str, ...] = (
    "member_type",
    "timber_type",
    "species",
    "size",
    "span",
    "spacing",
    "load_type",
)

# Members whose span depends on what they carry.
LOAD_DEPENDENT_MEMBERS = frozenset({"bearer", "joist"})


class ParsedQuery(BaseModel):
    """Closed record produced by the parser and merged across turns.

    Attribute names are snake_case; serialised keys use camelCase
    (`memberType`, `safetyTopics`) so a chat client can send back the
    previous turn's state verbatim.
    """

    model_config = ConfigDict(
        extra="forbid",
        alias_generator=to_camel,
        populate_by_name=True,
        use_enum_values=False,
    )

    type: QueryType = QueryType.GENERAL_KNOWLEDGE
    specificity: Specificity = Specificity.SPECIFIC
    member_type: MemberType | None = None
    timber_type: str | None = None
    species: str | None = None
    size: str | None = Field(default=None, pattern=r"^\d{2,3}x\d{2,3}$")
    span: int | None = Field(default=None, gt=0)
    spacing: int | None = Field(default=None, gt=0)
    load_type: LoadType | None = None
    missing: list[MissingField] = Field(default_factory=list)
    safety_topics: list[str] = Field(default_factory=list)

    def structured_fields(self) -> dict[str, Any]:
        """Populated structured fields only."""
        return {
            name: getattr(self, name)
            for name in STRUCTURED_FIELDS
            if getattr(self, name) is not None
        }

    def carry_forward(self) -> dict[str, Any] | None:
        """Subset worth remembering for later turns, or None when empty."""
        fields = self.structured_fields()
        return fields or None


def compute_missing(
    *,
    member_type: str | None,
    timber_type: str | None,
    span: int | None,
    size: str | None,
    load_type: str | None,
) -> list[MissingField]:
    """Fields still required before a span lookup can run, in ask order."""
    missing: list[MissingField] = []
    if not span and not size:
        missing.append("span_or_size")
    if not timber_type:
        missing.append("timber_type")
    if not load_type and member_type in LOAD_DEPENDENT_MEMBERS:
        missing.append("load_type")
    return missing
