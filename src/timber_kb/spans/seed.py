"""Seed span tables and timber grades for local runs and tests."""

from __future__ import annotations

import logging

from timber_kb.spans.store import ReferenceStore
from timber_kb.types import SpanTableEntry, TimberGradeEntry

logger = logging.getLogger(__name__)

WESBEAM = "Wesbeam E14 Guide"
BORAL = "Boral Hardwood Span Tables"
WOODSOLUTIONS = "WoodSolutions Span Tables"

# (member, timber, stress grade, species, size, load, max span mm, source)
# All rows are single span at 450mm centres.
_SPAN_ROWS: tuple[tuple[str, str, str, str | None, str, str, int, str], ...] = (
    ("bearer", "LVL", "E14", None, "90x45", "floor", 1800, WESBEAM),
    ("bearer", "LVL", "E14", None, "140x45", "floor", 2800, WESBEAM),
    ("bearer", "LVL", "E14", None, "170x45", "floor", 3400, WESBEAM),
    ("bearer", "LVL", "E14", None, "190x45", "floor", 3900, WESBEAM),
    ("bearer", "LVL", "E14", None, "240x45", "floor", 4800, WESBEAM),
    ("bearer", "LVL", "E14", None, "290x45", "floor", 5600, WESBEAM),
    ("joist", "LVL", "E14", None, "90x45", "floor", 2100, WESBEAM),
    ("joist", "LVL", "E14", None, "140x45", "floor", 3200, WESBEAM),
    ("joist", "LVL", "E14", None, "170x45", "floor", 3900, WESBEAM),
    ("joist", "LVL", "E14", None, "190x45", "floor", 4400, WESBEAM),
    ("joist", "LVL", "E14", None, "240x45", "floor", 5500, WESBEAM),
    ("bearer", "LVL", "E14", None, "140x45", "deck", 3200, WESBEAM),
    ("bearer", "LVL", "E14", None, "170x45", "deck", 3900, WESBEAM),
    ("bearer", "LVL", "E14", None, "190x45", "deck", 4500, WESBEAM),
    ("bearer", "LVL", "E14", None, "240x45", "deck", 5500, WESBEAM),
    ("bearer", "hardwood", "F27", "spotted_gum", "90x90", "deck", 2400, BORAL),
    ("bearer", "hardwood", "F27", "spotted_gum", "140x45", "deck", 2600, BORAL),
    ("bearer", "hardwood", "F27", "spotted_gum", "190x45", "deck", 4200, BORAL),
    ("bearer", "hardwood", "F27", "spotted_gum", "240x45", "deck", 5100, BORAL),
    ("joist", "hardwood", "F27", "spotted_gum", "90x45", "deck", 1800, BORAL),
    ("joist", "hardwood", "F27", "spotted_gum", "140x45", "deck", 2800, BORAL),
    ("joist", "hardwood", "F27", "spotted_gum", "190x45", "deck", 3800, BORAL),
    ("bearer", "hardwood", "F17", "blackbutt", "140x45", "deck", 2200, BORAL),
    ("bearer", "hardwood", "F17", "blackbutt", "190x45", "deck", 3600, BORAL),
    ("bearer", "hardwood", "F17", "blackbutt", "240x45", "deck", 4400, BORAL),
    ("bearer", "hardwood", "F14", "merbau", "140x45", "deck", 2000, BORAL),
    ("bearer", "hardwood", "F14", "merbau", "190x45", "deck", 3200, BORAL),
    ("bearer", "hardwood", "F14", "merbau", "240x45", "deck", 4000, BORAL),
    ("joist", "MGP10", "F5", None, "90x45", "floor", 1600, WOODSOLUTIONS),
    ("joist", "MGP10", "F5", None, "140x45", "floor", 2500, WOODSOLUTIONS),
    ("joist", "MGP10", "F5", None, "190x45", "floor", 3400, WOODSOLUTIONS),
    ("joist", "MGP10", "F5", None, "240x45", "floor", 4300, WOODSOLUTIONS),
    ("bearer", "MGP10", "F5", None, "140x45", "floor", 2200, WOODSOLUTIONS),
    ("bearer", "MGP10", "F5", None, "190x45", "floor", 3000, WOODSOLUTIONS),
    ("bearer", "MGP10", "F5", None, "240x45", "floor", 3800, WOODSOLUTIONS),
    ("joist", "MGP12", "F8", None, "90x45", "floor", 1800, WOODSOLUTIONS),
    ("joist", "MGP12", "F8", None, "140x45", "floor", 2800, WOODSOLUTIONS),
    ("joist", "MGP12", "F8", None, "190x45", "floor", 3800, WOODSOLUTIONS),
    ("joist", "MGP12", "F8", None, "240x45", "floor", 4800, WOODSOLUTIONS),
)

TIMBER_GRADES: tuple[TimberGradeEntry, ...] = (
    TimberGradeEntry(
        grade="LVL-E14",
        stress_grade="F14",
        durability_class=4,
        common_uses=("bearers", "joists", "lintels", "rafters"),
        treatment_required="H2",
        in_ground_ok=False,
        source="Wesbeam",
    ),
    TimberGradeEntry(
        grade="MGP10",
        stress_grade="F5",
        durability_class=4,
        common_uses=("framing", "joists", "rafters"),
        treatment_required="H2",
        in_ground_ok=False,
        source="WoodSolutions",
    ),
    TimberGradeEntry(
        grade="MGP12",
        stress_grade="F8",
        durability_class=4,
        common_uses=("framing", "joists", "bearers"),
        treatment_required="H2",
        in_ground_ok=False,
        source="WoodSolutions",
    ),
    TimberGradeEntry(
        grade="F27",
        species="spotted_gum",
        stress_grade="F27",
        durability_class=1,
        common_uses=("decking", "bearers", "posts", "outdoor"),
        treatment_required="none",
        in_ground_ok=True,
        density=1050,
        source="Boral",
    ),
    TimberGradeEntry(
        grade="F17",
        species="blackbutt",
        stress_grade="F17",
        durability_class=1,
        common_uses=("decking", "flooring", "framing"),
        treatment_required="none",
        in_ground_ok=True,
        density=900,
        source="Boral",
    ),
    TimberGradeEntry(
        grade="F14",
        species="merbau",
        stress_grade="F14",
        durability_class=1,
        common_uses=("decking", "outdoor furniture"),
        treatment_required="none",
        in_ground_ok=True,
        density=850,
        source="Boral",
    ),
    TimberGradeEntry(
        grade="F27",
        species="ironbark",
        stress_grade="F27",
        durability_class=1,
        common_uses=("heavy structural", "posts", "bearers"),
        treatment_required="none",
        in_ground_ok=True,
        density=1100,
        source="Boral",
    ),
)


def span_entries() -> list[SpanTableEntry]:
    entries = []
    for member, timber, grade, species, size, load, max_span, source in _SPAN_ROWS:
        width, depth = (int(part) for part in size.split("x"))
        entries.append(
            SpanTableEntry(
                member_type=member,
                timber_type=timber,
                stress_grade=grade,
                species=species,
                size=size,
                width=width,
                depth=depth,
                load_type=load,
                spacing=450,
                max_span=max_span,
                continuous=False,
                source=source,
            )
        )
    return entries


async def seed_reference_data(store: ReferenceStore) -> dict[str, int]:
    """Upsert the bundled span tables and grades; safe to run repeatedly."""
    entries = span_entries()
    for entry in entries:
        await store.upsert_span_entry(entry)
    for grade in TIMBER_GRADES:
        await store.upsert_timber_grade(grade)
    logger.info("Seeded %d span rows and %d grades", len(entries), len(TIMBER_GRADES))
    return {"spans_inserted": len(entries), "grades_inserted": len(TIMBER_GRADES)}
