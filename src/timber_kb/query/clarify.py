"""Decides whether to ask a follow-up before any lookup runs."""

from __future__ import annotations

import logging
import re

from timber_kb.query.models import ParsedQuery, QueryType, Specificity

logger = logging.getLogger(__name__)

MISSING_FIELD_QUESTIONS: dict[str, str] = {
    "span_or_size": "What span do you need to cover? (e.g., 3.6m)",
    "timber_type": "What timber are you using? ○ LVL ○ Hardwood ○ MGP10 ○ MGP12",
    "load_type": "What's it supporting? ○ Floor ○ Deck ○ Roof ○ Balcony",
    "species": "Which hardwood? ○ Spotted Gum (F27) ○ Blackbutt (F17) ○ Merbau (F14)",
}

_WHAT_TIMBER = re.compile(r"what\s+(timber|wood|material)")
_WHICH_BEST = re.compile(r"which\s+(is\s+)?(best|better)")
_CAN_I_USE = re.compile(r"^can\s+i\s+use")
_HOW_DO_I = re.compile(r"^how\s+do\s+i")
_NUMBER = re.compile(r"\d{2,}")


def vague_clarification(question: str) -> str | None:
    """Multiple-choice clarifier for a vague question; first rule wins."""
    q = question.strip().lower()

    if _WHAT_TIMBER.search(q):
        if "deck" in q:
            return "What matters most for the deck? ○ Durability ○ Cost ○ Appearance"
        if any(word in q for word in ("bearer", "joist", "frame")):
            return "What's the application? ○ Floor ○ Deck ○ Roof"
        return "What are you building? ○ Deck ○ Floor frame ○ Structural ○ Other"

    if _WHICH_BEST.search(q):
        return "What matters most? ○ Strength ○ Cost ○ Durability ○ Appearance"

    if _CAN_I_USE.search(q) and not _NUMBER.search(q):
        return "What's the span and load? (e.g., 3m bearer for deck)"

    if _HOW_DO_I.search(q) and any(word in q for word in ("fix", "attach", "connect")):
        return "What are you fixing to? ○ Timber frame ○ Steel ○ Concrete ○ Masonry"

    return None


def missing_field_question(field: str) -> str | None:
    return MISSING_FIELD_QUESTIONS.get(field)


class ClarificationPolicy:
    """Returns the single follow-up question to ask, or None to proceed."""

    def decide(self, parsed: ParsedQuery, question: str) -> str | None:
        if (
            parsed.specificity is Specificity.VAGUE
            and parsed.type is QueryType.GENERAL_KNOWLEDGE
        ):
            follow_up = vague_clarification(question)
            if follow_up:
                logger.info("Vague question, asking clarifier")
                return follow_up

        if parsed.type is QueryType.SPAN_LOOKUP and parsed.missing:
            # One field at a time so each answer can be merged on its own.
            logger.info("Span lookup missing %s", parsed.missing[0])
            return missing_field_question(parsed.missing[0])

        return None
