"""Retrieval-augmented fallback for questions the span tables cannot answer."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable
from dataclasses import dataclass, field
from typing import Any, TypeVar

from langchain_core.messages import AIMessage, BaseMessage, HumanMessage
from langchain_core.prompts import ChatPromptTemplate, MessagesPlaceholder

from timber_kb.config import RetrievalConfig
from timber_kb.errors import ProviderError
from timber_kb.retrieval.embedder import Embedder
from timber_kb.retrieval.vector_store import VectorStore
from timber_kb.types import ConversationTurn, ScoredChunk, Source

logger = logging.getLogger(__name__)

T = TypeVar("T")

NO_GUIDANCE_ANSWER = (
    "I couldn't find guidance on that in the indexed documents. "
    "Check the NCC or AS 1684 directly, or ask about a specific member and span."
)

_SYSTEM_PROMPT = """
You are a helpful assistant for a carpentry business in Australia.
Answer using Australian building standards (NCC, AS 1684) and carpentry practice.

Rules:
1) Ground the answer in the reference extracts below and cite them as [n].
2) If the extracts do not cover the question, say you cannot verify it.
3) Keep answers short and practical; include code references where relevant.

Reference extracts:
{context}
""".strip()

_PROMPT = ChatPromptTemplate.from_messages(
    [
        ("system", _SYSTEM_PROMPT),
        MessagesPlaceholder(variable_name="chat_history", optional=True),
        ("human", "{question}"),
    ]
)


@dataclass(slots=True)
class RagAnswer:
    answer: str
    sources: list[Source] = field(default_factory=list)
    hits: list[ScoredChunk] = field(default_factory=list)
    error: str | None = None

    @property
    def failed(self) -> bool:
        return self.error is not None


class RetrievalAugmentedAnswerer:
    """Embeds the question, retrieves chunks and asks the completion model.

    Every provider call is bounded by `timeout_seconds`. Provider failures
    and timeouts come back as a labelled answer with `error` set instead of
    raising. Without an LLM the answer is built extractively from the top
    chunks, which keeps local runs deterministic.
    """

    def __init__(
        self,
        *,
        embedder: Embedder,
        vector_store: VectorStore,
        llm: Any | None = None,
        config: RetrievalConfig | None = None,
        timeout_seconds: float = 20.0,
    ) -> None:
        self.embedder = embedder
        self.vector_store = vector_store
        self.llm = llm
        self.config = config or RetrievalConfig()
        self.timeout_seconds = timeout_seconds

    async def answer(
        self,
        question: str,
        history: list[ConversationTurn],
        *,
        organization_id: str | None = None,
    ) -> RagAnswer:
        try:
            vector = await self._bounded("embedding", self.embedder.aembed_query(question))
            hits = await self._bounded(
                "search",
                self.vector_store.similarity_search(
                    vector, self.config.top_k, organization_id=organization_id
                ),
            )
            if self.llm is None:
                text = _extractive_answer(hits)
            else:
                text = await self._bounded(
                    "completion", self._complete(question, hits, history)
                )
        except ProviderError as exc:
            logger.warning("Retrieval fallback failed: %s", exc)
            return RagAnswer(answer=exc.as_answer(), error=str(exc))

        return RagAnswer(answer=text, sources=distinct_sources(hits), hits=hits)

    def build_messages(
        self,
        question: str,
        hits: list[ScoredChunk],
        history: list[ConversationTurn],
    ) -> list[BaseMessage]:
        chat_history: list[BaseMessage] = []
        for turn in history:
            chat_history.append(HumanMessage(content=turn.question))
            chat_history.append(AIMessage(content=turn.answer))
        return _PROMPT.format_messages(
            context=_format_context(hits),
            chat_history=chat_history,
            question=question,
        )

    async def _complete(
        self,
        question: str,
        hits: list[ScoredChunk],
        history: list[ConversationTurn],
    ) -> str:
        response = await self.llm.ainvoke(self.build_messages(question, hits, history))
        text = _message_text(response)
        if not text:
            raise ProviderError("completion", "empty response")
        return text

    async def _bounded(self, provider: str, awaitable: Awaitable[T]) -> T:
        try:
            return await asyncio.wait_for(awaitable, timeout=self.timeout_seconds)
        except ProviderError:
            raise
        except asyncio.TimeoutError as exc:
            raise ProviderError(
                provider, f"timed out after {self.timeout_seconds:g}s"
            ) from exc
        except Exception as exc:
            raise ProviderError(provider, str(exc) or exc.__class__.__name__) from exc


def distinct_sources(hits: list[ScoredChunk]) -> list[Source]:
    sources: list[Source] = []
    seen: set[str] = set()
    for hit in hits:
        if hit.source_title in seen:
            continue
        seen.add(hit.source_title)
        sources.append(Source(title=hit.source_title, url=hit.source_url))
    return sources


def _format_context(hits: list[ScoredChunk]) -> str:
    if not hits:
        return "(no matching extracts)"
    blocks = []
    for idx, hit in enumerate(hits, start=1):
        heading = f" - {hit.chunk.heading}" if hit.chunk.heading else ""
        blocks.append(f"[{idx}] {hit.source_title}{heading}:\n{hit.chunk.content}")
    return "\n\n".join(blocks)


def _extractive_answer(hits: list[ScoredChunk]) -> str:
    if not hits:
        return NO_GUIDANCE_ANSWER
    lines = []
    for idx, hit in enumerate(hits[:3], start=1):
        snippet = _truncate(" ".join(hit.chunk.content.split()), 280)
        lines.append(f"{idx}. {snippet} [{hit.source_title}]")
    return "\n".join(lines)


def _message_text(response: Any) -> str:
    content = getattr(response, "content", response)
    if isinstance(content, list):
        parts = [
            str(item["text"]) if isinstance(item, dict) and "text" in item else str(item)
            for item in content
        ]
        return " ".join(parts).strip()
    return str(content).strip()


def _truncate(text: str, max_length: int) -> str:
    if len(text) <= max_length:
        return text
    return text[: max_length - 3] + "..."
