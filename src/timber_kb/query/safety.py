"""Detection of safety-relevant topics in a question."""

from __future__ import annotations

import re
from collections.abc import Mapping
from types import MappingProxyType

# Declaration order is the output order.
SAFETY_PATTERNS: Mapping[str, re.Pattern[str]] = MappingProxyType(
    {
        "in_ground": re.compile(
            r"\b(in[- ]?ground|below[- ]?ground|buried|post[- ]?hole)", re.IGNORECASE
        ),
        "wet_area": re.compile(
            r"\b(wet[- ]?area|bathroom|shower|laundry|waterproof)", re.IGNORECASE
        ),
        "load_bearing": re.compile(
            r"\b(load[- ]?bearing|structural|support|bearer|beam)", re.IGNORECASE
        ),
        "fixing": re.compile(r"\b(fix|nail|screw|bolt|connect|fasten)", re.IGNORECASE),
        "treatment": re.compile(
            r"\b(treat|h[2-5]|durability|rot|termite|decay)", re.IGNORECASE
        ),
        "height": re.compile(
            r"\b(balcony|balustrade|railing|deck[- ]?height|fall)", re.IGNORECASE
        ),
        "fire": re.compile(r"\b(fire|flame|bushfire|bal[- ]?\d+|ember)", re.IGNORECASE),
    }
)


def detect_safety_topics(
    question: str,
    patterns: Mapping[str, re.Pattern[str]] = SAFETY_PATTERNS,
) -> list[str]:
    return [topic for topic, pattern in patterns.items() if pattern.search(question)]
