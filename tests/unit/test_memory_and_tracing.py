import asyncio
from datetime import timedelta

import pytest

from timber_kb.config import EngineConfig
from timber_kb.memory.conversation import (
    ConversationMemory,
    InMemoryConversationStore,
    summarize_answer,
)
from timber_kb.obs.tracing import (
    ROUTE_FOLLOW_UP,
    ROUTE_PROVIDER_ERROR,
    ROUTE_RAG,
    TraceStore,
)
from timber_kb.types import ConversationTurn, utc_now


def test_history_returns_latest_turns_oldest_first() -> None:
    memory = ConversationMemory(InMemoryConversationStore())
    for i in range(7):
        asyncio.run(memory.record("u1", f"question {i}", f"answer {i}"))
    asyncio.run(memory.record("u2", "other", "other"))

    history = asyncio.run(memory.history("u1", 5))

    assert [turn.question for turn in history] == [f"question {i}" for i in range(2, 7)]
    assert asyncio.run(memory.history("u1", 0)) == []


def test_record_compresses_answer_and_sets_expiry() -> None:
    memory = ConversationMemory(
        InMemoryConversationStore(), EngineConfig(answer_summary_chars=60, memory_ttl_hours=2)
    )

    turn = asyncio.run(
        memory.record("u1", "q", "word " * 40, {"member_type": "bearer"})
    )

    assert len(turn.answer) <= 60
    assert turn.answer.endswith("...")
    assert turn.parsed_context == {"member_type": "bearer"}
    assert turn.expires_at - turn.created_at == timedelta(hours=2)


def test_expired_turns_are_hidden_and_purged() -> None:
    store = InMemoryConversationStore()
    now = utc_now()
    asyncio.run(
        store.append(
            ConversationTurn(
                user_id="u1",
                question="old",
                answer="old",
                created_at=now - timedelta(hours=30),
                expires_at=now - timedelta(hours=6),
            )
        )
    )
    asyncio.run(store.append(ConversationTurn(user_id="u1", question="new", answer="new")))

    assert [turn.question for turn in asyncio.run(store.get_history("u1", 5))] == ["new"]
    assert asyncio.run(store.purge_expired()) == 1
    assert asyncio.run(store.purge_expired()) == 0


def test_summarize_answer_keeps_short_text() -> None:
    assert summarize_answer("  190x45   LVL  ", 500) == "190x45 LVL"


def test_trace_summary_counts_routes() -> None:
    traces = TraceStore()
    samples = ((ROUTE_FOLLOW_UP, 5.0), (ROUTE_RAG, 15.0), (ROUTE_PROVIDER_ERROR, 10.0))
    for route, latency in samples:
        traces.create_record(
            user_id="u1",
            question="q",
            route=route,
            answer="a",
            sources=[],
            candidate_count=0,
            latency_ms=latency,
        )

    summary = traces.summary()

    assert summary["total_requests"] == 3
    assert summary["avg_latency_ms"] == 10.0
    assert summary["follow_up_rate"] == 1 / 3
    assert summary["provider_errors"] == 1
    assert summary["routes"] == {ROUTE_FOLLOW_UP: 1, ROUTE_RAG: 1, ROUTE_PROVIDER_ERROR: 1}


def test_trace_store_evicts_oldest_records() -> None:
    traces = TraceStore(max_records=2)
    ids = [
        traces.create_record(
            user_id="u1",
            question=str(i),
            route=ROUTE_RAG,
            answer="a",
            sources=[],
            candidate_count=1,
            latency_ms=1.0,
        ).trace_id
        for i in range(3)
    ]

    assert [record.trace_id for record in traces.list_recent()] == ids[1:]


def test_periodic_purge_removes_expired_turns_until_cancelled() -> None:
    store = InMemoryConversationStore()
    memory = ConversationMemory(store)
    now = utc_now()
    expired = ConversationTurn(
        user_id="u1",
        question="old",
        answer="old",
        created_at=now - timedelta(hours=30),
        expires_at=now - timedelta(hours=6),
    )
    asyncio.run(store.append(expired))
    asyncio.run(memory.record("u1", "new", "new"))

    async def run_briefly() -> None:
        task = asyncio.create_task(memory.purge_periodically(0.01))
        await asyncio.sleep(0.1)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

    asyncio.run(run_briefly())

    assert asyncio.run(store.purge_expired(now + timedelta(hours=1))) == 0
    assert [turn.question for turn in asyncio.run(memory.history("u1", 10))] == ["new"]
