"""Static pattern tables used by the question parser.

The tables are built once at import and never mutated; a parser receives the
table it should use, so alternative vocabularies can be injected in tests.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

_I = re.IGNORECASE


@dataclass(frozen=True, slots=True)
class PatternTable:
    size: re.Pattern[str]
    span_metres: re.Pattern[str]
    span_millimetres: re.Pattern[str]
    spacing: re.Pattern[str]
    lvl: re.Pattern[str]
    mgp: re.Pattern[str]
    hardwood: re.Pattern[str]
    member_type: re.Pattern[str]
    load_type: re.Pattern[str]
    meaningful_number: re.Pattern[str]
    vague_phrasing: tuple[re.Pattern[str], ...]
    fastener_keywords: tuple[str, ...]
    timber_info_keywords: tuple[str, ...]
    member_aliases: tuple[tuple[str, str], ...]


DEFAULT_PATTERNS = PatternTable(
    size=re.compile(r"(\d{2,3})\s*x\s*(\d{2,3})", _I),
    # "3.6m", "3 metres"; never "mm".
    span_metres=re.compile(
        r"(?<![\d.])(\d+(?:\.\d+)?)\s*m(?:etres?|eters?)?(?![a-z0-9])", _I
    ),
    span_millimetres=re.compile(
        r"(?<!\d)(\d{3,4})\s*mm(?!\s*(?:centres?|centers?|c/c|spacings?))", _I
    ),
    spacing=re.compile(
        r"(?:at\s+)?(?<!\d)(\d{3})\s*(?:mm\s*)?(?:centres?|centers?|c/c|spacings?)", _I
    ),
    lvl=re.compile(r"\b(lvl|laminated\s*veneer)", _I),
    mgp=re.compile(r"\b(mgp\s*\d{1,2})", _I),
    hardwood=re.compile(
        r"\b(spotted\s*gum|blackbutt|ironbark|merbau|jarrah|tallowwood|hardwood)", _I
    ),
    member_type=re.compile(r"\b(bearer|joist|rafter|lintel|stud|beam|decking)", _I),
    load_type=re.compile(r"\b(floor|deck|roof|balcony|ceiling)", _I),
    meaningful_number=re.compile(r"\d{2,}"),
    vague_phrasing=(
        re.compile(r"^what\s+(timber|wood|material)", _I),
        re.compile(r"^which\s+(is\s+)?(best|better)", _I),
        re.compile(r"^should\s+i\b", _I),
        re.compile(r"^can\s+i\s+use\b", _I),
        re.compile(r"^how\s+do\s+i\b", _I),
        re.compile(r"\?$"),
    ),
    fastener_keywords=("nail", "bolt", "fix", "connect"),
    timber_info_keywords=("treatment", "durability", "species"),
    member_aliases=(("decking", "decking_joist"),),
)
