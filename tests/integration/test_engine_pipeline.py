import asyncio

import pytest
from langchain_core.messages import AIMessage, HumanMessage
from pydantic import ValidationError

from timber_kb.engine.engine import KnowledgeQueryEngine
from timber_kb.engine.users import InMemoryUserDirectory
from timber_kb.errors import PROVIDER_ERROR_PREFIX, ProviderError, UnknownUserError
from timber_kb.ingest.chunker import MarkdownChunker
from timber_kb.ingest.pipeline import IngestPipeline
from timber_kb.memory.conversation import ConversationMemory, InMemoryConversationStore
from timber_kb.obs.tracing import ROUTE_FOLLOW_UP, ROUTE_PROVIDER_ERROR, TraceStore
from timber_kb.query.clarify import MISSING_FIELD_QUESTIONS
from timber_kb.retrieval.embedder import Embedder, HashingEmbedder
from timber_kb.retrieval.rag import NO_GUIDANCE_ANSWER, RetrievalAugmentedAnswerer
from timber_kb.retrieval.vector_store import InMemoryVectorStore
from timber_kb.spans.lookup import SpanTableLookup
from timber_kb.spans.seed import seed_reference_data
from timber_kb.spans.store import InMemoryReferenceStore
from timber_kb.types import Source, User

_WET_AREAS = (
    "## Wet areas\n\n"
    "Wet areas need a waterproof membrane under tiles in accordance with AS 3740. "
    "The membrane must extend up the walls of the shower recess."
)


class MockLLM:
    def __init__(self, reply: str = "Use a membrane under tiles per AS 3740 [1].") -> None:
        self.reply = reply
        self.calls: list[list[object]] = []

    async def ainvoke(self, messages: list[object]) -> AIMessage:
        self.calls.append(messages)
        return AIMessage(content=self.reply)


class _SlowLLM:
    async def ainvoke(self, messages: list[object]) -> AIMessage:
        await asyncio.sleep(1.0)
        return AIMessage(content="too late")


class _FailingEmbedder(Embedder):
    def embed_documents(self, texts: list[str]) -> list[list[float]]:
        raise ProviderError("embedding", "service unavailable")

    def embed_query(self, text: str) -> list[float]:
        raise ProviderError("embedding", "service unavailable")


def _build_engine(
    *,
    embedder: Embedder | None = None,
    llm: object | None = None,
    timeout_seconds: float = 5.0,
) -> tuple[KnowledgeQueryEngine, InMemoryVectorStore]:
    reference_store = InMemoryReferenceStore()
    asyncio.run(seed_reference_data(reference_store))
    vector_store = InMemoryVectorStore()
    users = InMemoryUserDirectory(
        [User(user_id="u1", organization_id="org-1", role="owner")]
    )
    engine = KnowledgeQueryEngine(
        users=users,
        lookup=SpanTableLookup(reference_store),
        answerer=RetrievalAugmentedAnswerer(
            embedder=embedder or HashingEmbedder(),
            vector_store=vector_store,
            llm=llm,
            timeout_seconds=timeout_seconds,
        ),
        memory=ConversationMemory(InMemoryConversationStore()),
        trace_store=TraceStore(),
    )
    return engine, vector_store


def _history(engine: KnowledgeQueryEngine) -> list[object]:
    return asyncio.run(engine.memory.history("u1", 10))


def test_complete_span_question_answers_from_table() -> None:
    engine, _ = _build_engine()

    result = asyncio.run(engine.ask("u1", "140x45 LVL bearer floor"))

    assert result.needs_follow_up is False
    assert "2.8m max" in result.answer
    assert "Wesbeam E14 Guide" in result.answer
    assert result.sources == [Source(title="Wesbeam E14 Guide")]
    assert result.advisory is not None and result.advisory.grade == "LVL-E14"
    history = _history(engine)
    assert len(history) == 1
    assert history[0].parsed_context["size"] == "140x45"


def test_vague_question_gets_follow_up_and_is_not_remembered() -> None:
    engine, _ = _build_engine()

    result = asyncio.run(engine.ask("u1", "what timber should I use"))

    assert result.needs_follow_up is True
    assert result.follow_up_question
    assert _history(engine) == []
    assert engine.trace_store.get(result.trace_id).route == ROUTE_FOLLOW_UP


def test_partial_span_question_asks_for_timber_first() -> None:
    engine, _ = _build_engine()

    result = asyncio.run(engine.ask("u1", "3.6m span bearer"))

    assert result.needs_follow_up is True
    assert result.parsed_context.missing[0] == "timber_type"
    assert result.follow_up_question == MISSING_FIELD_QUESTIONS["timber_type"]


def test_follow_up_answers_merge_across_turns() -> None:
    engine, _ = _build_engine()

    first = asyncio.run(engine.ask("u1", "3.6m span bearer"))
    second = asyncio.run(
        engine.ask("u1", "LVL", first.to_payload()["parsedContext"])
    )
    third = asyncio.run(engine.ask("u1", "floor", second.parsed_context))

    assert second.follow_up_question == MISSING_FIELD_QUESTIONS["load_type"]
    assert third.needs_follow_up is False
    assert third.parsed_context.member_type == "bearer"
    assert third.parsed_context.span == 3600
    assert third.answer.startswith("190x45 LVL - **3.9m max**")
    assert len(_history(engine)) == 1


def test_span_beyond_every_row_is_reported_as_no_data() -> None:
    engine, _ = _build_engine()

    result = asyncio.run(engine.ask("u1", "6m LVL bearer floor"))

    assert result.answer.startswith("No span data for LVL bearer reaching 6.0m.")
    assert "Check manufacturer specs directly (Wesbeam E14 Guide)" in result.answer
    assert "290x45 LVL - **5.6m max** at 450mm centres (Wesbeam E14 Guide) - falls short" in (
        result.answer
    )
    assert result.advisory is None
    assert _history(engine) == []


def test_member_only_turn_keeps_span_intent() -> None:
    engine, _ = _build_engine()

    first = asyncio.run(engine.ask("u1", "3.6m LVL joist for a floor"))
    second = asyncio.run(engine.ask("u1", "bearer", first.parsed_context))

    assert second.parsed_context.member_type == "bearer"
    assert second.parsed_context.span == 3600
    assert "3.9m max" in second.answer


def test_embedding_failure_returns_labelled_error_without_memory() -> None:
    engine, _ = _build_engine(embedder=_FailingEmbedder())

    result = asyncio.run(engine.ask("u1", "wet area membrane requirements"))

    assert result.answer.startswith(PROVIDER_ERROR_PREFIX)
    assert "embedding" in result.answer
    assert result.sources == []
    assert _history(engine) == []
    assert engine.trace_store.get(result.trace_id).route == ROUTE_PROVIDER_ERROR


def test_completion_timeout_returns_labelled_error() -> None:
    engine, _ = _build_engine(llm=_SlowLLM(), timeout_seconds=0.05)

    result = asyncio.run(engine.ask("u1", "wet area membrane requirements"))

    assert result.answer.startswith(f"{PROVIDER_ERROR_PREFIX} (completion)")
    assert _history(engine) == []


def test_retrieval_answer_uses_documents_history_and_sources() -> None:
    llm = MockLLM()
    engine, vector_store = _build_engine(llm=llm)
    pipeline = IngestPipeline(MarkdownChunker(), HashingEmbedder(), vector_store)
    asyncio.run(
        pipeline.ingest("NCC Wet Areas", _WET_AREAS, source_url="https://example.org/ncc")
    )
    asyncio.run(engine.ask("u1", "140x45 LVL bearer floor"))

    result = asyncio.run(engine.ask("u1", "wet area membrane requirements"))

    assert result.answer == llm.reply
    assert result.sources == [Source(title="NCC Wet Areas", url="https://example.org/ncc")]
    messages = llm.calls[0]
    assert "AS 3740" in messages[0].content
    assert isinstance(messages[1], HumanMessage)
    assert messages[1].content == "140x45 LVL bearer floor"
    assert messages[-1].content == "wet area membrane requirements"
    assert len(_history(engine)) == 2


def test_unknown_user_is_rejected() -> None:
    engine, _ = _build_engine()

    with pytest.raises(UnknownUserError):
        asyncio.run(engine.ask("ghost", "140x45 LVL bearer floor"))


def test_malformed_prior_context_is_rejected() -> None:
    engine, _ = _build_engine()

    with pytest.raises(ValidationError):
        asyncio.run(engine.ask("u1", "LVL", {"memberType": "bearer", "colour": "red"}))


def test_answer_without_extracts_is_not_remembered() -> None:
    engine, _ = _build_engine()

    result = asyncio.run(engine.ask("u1", "wet area membrane requirements"))

    assert result.answer == NO_GUIDANCE_ANSWER
    assert result.sources == []
    assert _history(engine) == []
