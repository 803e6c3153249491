"""Per-user rolling conversation memory."""

from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from datetime import datetime, timedelta
from typing import Any, Protocol

from timber_kb.config import EngineConfig
from timber_kb.types import ConversationTurn, utc_now

logger = logging.getLogger(__name__)


class ConversationStore(Protocol):
    """Storage collaborator for remembered turns."""

    async def get_history(self, user_id: str, limit: int) -> list[ConversationTurn]:
        """Most recent `limit` live turns, oldest first."""

    async def append(self, turn: ConversationTurn) -> None:
        """Append one turn; never rewrites earlier turns."""

    async def purge_expired(self, now: datetime | None = None) -> int:
        """Drop expired turns; returns how many were removed."""


class InMemoryConversationStore:
    """Append-only per-user turn lists with expiry."""

    def __init__(self) -> None:
        self._turns: dict[str, list[ConversationTurn]] = defaultdict(list)

    async def get_history(self, user_id: str, limit: int) -> list[ConversationTurn]:
        if limit <= 0:
            return []
        now = utc_now()
        live = [turn for turn in self._turns.get(user_id, []) if not _expired(turn, now)]
        live.sort(key=lambda turn: turn.created_at)
        return live[-limit:]

    async def append(self, turn: ConversationTurn) -> None:
        self._turns[turn.user_id].append(turn)

    async def purge_expired(self, now: datetime | None = None) -> int:
        now = now or utc_now()
        removed = 0
        for user_id in list(self._turns):
            kept = [turn for turn in self._turns[user_id] if not _expired(turn, now)]
            removed += len(self._turns[user_id]) - len(kept)
            if kept:
                self._turns[user_id] = kept
            else:
                del self._turns[user_id]
        return removed


def _expired(turn: ConversationTurn, now: datetime) -> bool:
    return turn.expires_at is not None and turn.expires_at <= now


class ConversationMemory:
    """Records answered turns and reads recent ones back for prompts."""

    def __init__(self, store: ConversationStore, config: EngineConfig | None = None) -> None:
        self.store = store
        self.config = config or EngineConfig()

    async def record(
        self,
        user_id: str,
        question: str,
        answer: str,
        parsed_context: dict[str, Any] | None = None,
    ) -> ConversationTurn:
        created_at = utc_now()
        turn = ConversationTurn(
            user_id=user_id,
            question=question,
            answer=summarize_answer(answer, self.config.answer_summary_chars),
            parsed_context=parsed_context,
            created_at=created_at,
            expires_at=created_at + timedelta(hours=self.config.memory_ttl_hours),
        )
        await self.store.append(turn)
        logger.debug("Remembered turn for user %s", user_id)
        return turn

    async def history(self, user_id: str, limit: int) -> list[ConversationTurn]:
        return await self.store.get_history(user_id, limit)

    async def purge_expired(self) -> int:
        removed = await self.store.purge_expired()
        if removed:
            logger.info("Purged %d expired conversation turns", removed)
        return removed

    async def purge_periodically(self, interval_seconds: float) -> None:
        """Purge expired turns every `interval_seconds` until cancelled."""
        while True:
            await asyncio.sleep(interval_seconds)
            await self.purge_expired()


def summarize_answer(answer: str, max_chars: int) -> str:
    """Compress an answer for storage by cutting at a word boundary."""
    text = " ".join(answer.split())
    if len(text) <= max_chars:
        return text
    cut = text[: max_chars - 3].rsplit(" ", 1)[0]
    return cut + "..."
