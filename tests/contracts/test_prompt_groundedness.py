from timber_kb.engine.composer import SAFETY_NOTES
from timber_kb.query.safety import SAFETY_PATTERNS
from timber_kb.retrieval.embedder import HashingEmbedder
from timber_kb.retrieval.rag import _SYSTEM_PROMPT, RetrievalAugmentedAnswerer
from timber_kb.retrieval.vector_store import InMemoryVectorStore
from timber_kb.types import ConversationTurn, KnowledgeChunk, ScoredChunk


def test_prompt_contains_grounding_constraints() -> None:
    assert "Ground the answer in the reference extracts" in _SYSTEM_PROMPT
    assert "cite them as [n]" in _SYSTEM_PROMPT
    assert "cannot verify" in _SYSTEM_PROMPT


def test_prompt_numbers_extracts_and_replays_history() -> None:
    answerer = RetrievalAugmentedAnswerer(
        embedder=HashingEmbedder(), vector_store=InMemoryVectorStore()
    )
    hit = ScoredChunk(
        chunk=KnowledgeChunk(
            chunk_id="ncc-chunk-0000",
            doc_id="ncc",
            content="Balustrades must be at least 1000mm high where a fall exceeds 1m.",
            chunk_index=0,
            embedding=[1.0],
            heading="Barriers",
        ),
        score=0.9,
        source_title="NCC Housing Provisions",
    )
    history = [ConversationTurn(user_id="u1", question="deck height?", answer="Over 1m.")]

    messages = answerer.build_messages("balustrade height?", [hit], history)

    assert "[1] NCC Housing Provisions - Barriers:" in messages[0].content
    assert [m.content for m in messages[1:]] == ["deck height?", "Over 1m.", "balustrade height?"]


def test_every_safety_topic_has_a_note() -> None:
    assert list(SAFETY_NOTES) == list(SAFETY_PATTERNS)
    assert all(note.startswith("**Heads up:**") for note in SAFETY_NOTES.values())
