import pytest

from timber_kb.query.models import QueryType, Specificity
from timber_kb.query.parser import QueryParser, parse_query


def test_parser_extracts_full_span_question() -> None:
    parsed = parse_query("140x45 LVL bearer floor")

    assert parsed.type is QueryType.SPAN_LOOKUP
    assert parsed.specificity is Specificity.SPECIFIC
    assert parsed.size == "140x45"
    assert parsed.timber_type == "LVL"
    assert parsed.member_type == "bearer"
    assert parsed.load_type == "floor"
    assert parsed.span is None
    assert parsed.missing == []


def test_parser_converts_metres_to_millimetres() -> None:
    parsed = parse_query("3.6m span bearer")

    assert parsed.span == 3600
    assert parsed.member_type == "bearer"
    assert parsed.missing == ["timber_type", "load_type"]


def test_parser_reads_millimetre_span_but_not_spacing() -> None:
    parsed = parse_query("joist spanning 2400mm at 600mm centres MGP10")

    assert parsed.span == 2400
    assert parsed.spacing == 600
    assert parsed.timber_type == "MGP10"


def test_parser_normalises_mgp_grade_spacing() -> None:
    assert parse_query("mgp 12 joist 3m floor").timber_type == "MGP12"


@pytest.mark.parametrize(
    ("question", "species"),
    [
        ("spotted gum bearer for a deck", "spotted_gum"),
        ("spottedgum bearer for a deck", "spotted_gum"),
        ("blackbutt joists on a deck", "blackbutt"),
    ],
)
def test_parser_maps_hardwood_species(question: str, species: str) -> None:
    parsed = parse_query(question)

    assert parsed.timber_type == "hardwood"
    assert parsed.species == species


def test_parser_aliases_decking_member() -> None:
    assert parse_query("decking span for merbau").member_type == "decking_joist"


def test_concrete_numbers_override_vague_phrasing() -> None:
    parsed = parse_query("what timber for a 4.2m 190x45 joist?")

    assert parsed.specificity is Specificity.SPECIFIC


def test_vague_phrasing_without_details_is_vague() -> None:
    parsed = parse_query("what timber should I use")

    assert parsed.specificity is Specificity.VAGUE
    assert parsed.type is QueryType.GENERAL_KNOWLEDGE
    assert parsed.missing == []


def test_classification_without_member_type() -> None:
    assert parse_query("how many nails per stud plate").type is QueryType.SPAN_LOOKUP
    assert parse_query("what nails for treated pine").type is QueryType.FASTENER_LOOKUP
    assert parse_query("h4 treatment levels").type is QueryType.TIMBER_INFO
    assert parse_query("wet area rules").type is QueryType.GENERAL_KNOWLEDGE


def test_missing_never_lists_populated_fields() -> None:
    questions = [
        "140x45 LVL bearer floor",
        "3.6m span bearer",
        "rafter 190x45",
        "hardwood joist deck 2.4m",
        "MGP10 lintel",
    ]
    for question in questions:
        parsed = parse_query(question)
        fields = parsed.structured_fields()
        if "span" in fields or "size" in fields:
            assert "span_or_size" not in parsed.missing
        if "timber_type" in fields:
            assert "timber_type" not in parsed.missing
        if "load_type" in fields:
            assert "load_type" not in parsed.missing


def test_parser_attaches_safety_topics() -> None:
    parsed = parse_query("bearer for an in-ground post hole near the balcony")

    assert parsed.safety_topics == ["in_ground", "load_bearing", "height"]


def test_parser_is_deterministic() -> None:
    parser = QueryParser()
    question = "190x45 spotted gum bearer deck 3.9m at 450 centres"

    assert parser.parse(question) == parser.parse(question)
