"""Question answering pipeline: parse, clarify, route, compose, remember."""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from typing import Any

from timber_kb.config import EngineConfig
from timber_kb.engine.composer import (
    attach_sources,
    format_span_answer,
    reaches_span,
    span_sources,
)
from timber_kb.engine.users import UserDirectory
from timber_kb.errors import UnknownUserError
from timber_kb.memory.conversation import ConversationMemory
from timber_kb.obs.tracing import (
    ROUTE_FOLLOW_UP,
    ROUTE_PROVIDER_ERROR,
    ROUTE_RAG,
    ROUTE_SPAN_LOOKUP,
    Timer,
    TraceStore,
)
from timber_kb.query.clarify import ClarificationPolicy
from timber_kb.query.context import merge_context
from timber_kb.query.models import ParsedQuery, QueryType
from timber_kb.query.parser import QueryParser
from timber_kb.retrieval.rag import RetrievalAugmentedAnswerer
from timber_kb.spans.lookup import SpanTableLookup
from timber_kb.types import Source, TimberGradeEntry, User

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class AskResult:
    answer: str
    needs_follow_up: bool
    parsed_context: ParsedQuery
    sources: list[Source] = field(default_factory=list)
    follow_up_question: str | None = None
    advisory: TimberGradeEntry | None = None
    trace_id: str | None = None

    def to_payload(self) -> dict[str, Any]:
        """camelCase JSON-ready view for chat clients."""
        payload: dict[str, Any] = {
            "answer": self.answer,
            "needsFollowUp": self.needs_follow_up,
            "parsedContext": self.parsed_context.model_dump(
                by_alias=True, mode="json", exclude_none=True
            ),
            "sources": [
                {"title": s.title, **({"url": s.url} if s.url else {})}
                for s in self.sources
            ],
            "traceId": self.trace_id,
        }
        if self.follow_up_question is not None:
            payload["followUpQuestion"] = self.follow_up_question
        if self.advisory is not None:
            payload["advisory"] = asdict(self.advisory)
        return payload


class KnowledgeQueryEngine:
    """Answers one question per call; conversation state is caller-carried.

    The previous turn's `ParsedQuery` comes back from the client and is merged
    into the new one. Follow-ups short-circuit before any lookup and are not
    remembered; neither are provider errors, span lookups with no row reaching
    the requested span, or retrieval answers with no extracts behind them.
    """

    def __init__(
        self,
        *,
        users: UserDirectory,
        lookup: SpanTableLookup,
        answerer: RetrievalAugmentedAnswerer,
        memory: ConversationMemory,
        trace_store: TraceStore | None = None,
        parser: QueryParser | None = None,
        policy: ClarificationPolicy | None = None,
        config: EngineConfig | None = None,
    ) -> None:
        self.users = users
        self.lookup = lookup
        self.answerer = answerer
        self.memory = memory
        self.trace_store = trace_store or TraceStore()
        self.parser = parser or QueryParser()
        self.policy = policy or ClarificationPolicy()
        self.config = config or EngineConfig()

    async def ask(
        self,
        user_id: str,
        question: str,
        prior_parsed_context: ParsedQuery | dict[str, Any] | None = None,
    ) -> AskResult:
        user = await self.users.get_user(user_id)
        if user is None:
            raise UnknownUserError(user_id)

        prior = (
            ParsedQuery.model_validate(prior_parsed_context)
            if isinstance(prior_parsed_context, dict)
            else prior_parsed_context
        )

        with Timer() as timer:
            result, route, candidates = await self._answer(user, question, prior)

        record = self.trace_store.create_record(
            user_id=user.user_id,
            question=question,
            route=route,
            answer=result.follow_up_question or result.answer,
            sources=result.sources,
            candidate_count=candidates,
            latency_ms=timer.elapsed_ms,
        )
        result.trace_id = record.trace_id
        logger.info("Answered via %s in %.1f ms", route, timer.elapsed_ms)
        return result

    async def _answer(
        self, user: User, question: str, prior: ParsedQuery | None
    ) -> tuple[AskResult, str, int]:
        parsed = self.parser.parse(question)
        if prior is not None:
            parsed = merge_context(parsed, prior)
        logger.debug(
            "Parsed query: %s", parsed.model_dump_json(by_alias=True, exclude_none=True)
        )

        follow_up = self.policy.decide(parsed, question)
        if follow_up:
            return (
                AskResult(
                    answer="",
                    needs_follow_up=True,
                    follow_up_question=follow_up,
                    parsed_context=parsed,
                ),
                ROUTE_FOLLOW_UP,
                0,
            )

        if parsed.type is QueryType.SPAN_LOOKUP:
            return await self._span_answer(user, question, parsed)
        return await self._rag_answer(user, question, parsed)

    async def _span_answer(
        self, user: User, question: str, parsed: ParsedQuery
    ) -> tuple[AskResult, str, int]:
        results = await self.lookup.lookup(parsed)
        answer = format_span_answer(
            results, parsed, default_spacing=self.config.default_spacing
        )
        advisory = None
        if reaches_span(results, parsed):
            advisory = await self.lookup.grade_advice(results[0])
            await self.memory.record(
                user.user_id, question, answer, parsed.carry_forward()
            )
        return (
            AskResult(
                answer=answer,
                needs_follow_up=False,
                parsed_context=parsed,
                sources=span_sources(results),
                advisory=advisory,
            ),
            ROUTE_SPAN_LOOKUP,
            len(results),
        )

    async def _rag_answer(
        self, user: User, question: str, parsed: ParsedQuery
    ) -> tuple[AskResult, str, int]:
        history = await self.memory.history(
            user.user_id, self.answerer.config.history_limit
        )
        rag = await self.answerer.answer(
            question, history, organization_id=user.organization_id
        )
        answer, sources = attach_sources(rag.answer, rag.sources)
        result = AskResult(
            answer=answer,
            needs_follow_up=False,
            parsed_context=parsed,
            sources=sources,
        )
        if rag.failed:
            return result, ROUTE_PROVIDER_ERROR, 0

        if answer and rag.hits:
            await self.memory.record(
                user.user_id, question, answer, parsed.carry_forward()
            )
        return result, ROUTE_RAG, len(rag.hits)
