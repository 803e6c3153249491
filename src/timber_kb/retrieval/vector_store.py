"""Vector store contract and the in-memory adapter."""

from __future__ import annotations

from math import sqrt
from typing import Protocol

from timber_kb.errors import DocumentNotFoundError
from timber_kb.types import KnowledgeChunk, KnowledgeDocument, ScoredChunk


class VectorStore(Protocol):
    """Document/chunk storage with a similarity-search primitive."""

    async def add_document(self, document: KnowledgeDocument) -> None:
        """Register a document before its chunks are stored."""

    async def upsert(self, doc_id: str, chunks: list[KnowledgeChunk]) -> None:
        """Replace the chunks of one document."""

    async def similarity_search(
        self,
        query_embedding: list[float],
        k: int,
        organization_id: str | None = None,
    ) -> list[ScoredChunk]:
        """Best-first chunks from global documents and the caller's organisation."""

    async def get_document(self, doc_id: str) -> KnowledgeDocument | None:
        """Document metadata, if stored."""

    async def list_documents(self, organization_id: str | None) -> list[KnowledgeDocument]:
        """Global documents plus those of `organization_id`."""

    async def chunks_for(self, doc_id: str) -> list[KnowledgeChunk]:
        """Chunks of one document in index order."""

    async def delete_document(self, doc_id: str) -> int:
        """Delete a document and all its chunks; returns chunks removed."""


class InMemoryVectorStore:
    """Deterministic vector store used for tests and local prototyping."""

    def __init__(self) -> None:
        self._documents: dict[str, KnowledgeDocument] = {}
        self._chunks: dict[str, list[KnowledgeChunk]] = {}

    async def add_document(self, document: KnowledgeDocument) -> None:
        self._documents[document.doc_id] = document
        self._chunks.setdefault(document.doc_id, [])

    async def upsert(self, doc_id: str, chunks: list[KnowledgeChunk]) -> None:
        if doc_id not in self._documents:
            raise DocumentNotFoundError(doc_id)
        ordered = sorted(chunks, key=lambda chunk: chunk.chunk_index)
        if [chunk.chunk_index for chunk in ordered] != list(range(len(ordered))):
            raise ValueError("chunk indices must be contiguous from 0")
        if any(chunk.doc_id != doc_id for chunk in ordered):
            raise ValueError("chunks must belong to the target document")
        self._chunks[doc_id] = ordered

    async def similarity_search(
        self,
        query_embedding: list[float],
        k: int,
        organization_id: str | None = None,
    ) -> list[ScoredChunk]:
        scored: list[ScoredChunk] = []
        for doc_id, chunks in self._chunks.items():
            document = self._documents[doc_id]
            if not _visible(document, organization_id):
                continue
            for chunk in chunks:
                scored.append(
                    ScoredChunk(
                        chunk=chunk,
                        score=_cosine_similarity(query_embedding, chunk.embedding),
                        source_title=document.title,
                        source_url=document.source_url,
                    )
                )

        ranked = sorted(scored, key=lambda item: item.score, reverse=True)
        for i, item in enumerate(ranked[:k]):
            item.rank = i + 1
        return ranked[:k]

    async def get_document(self, doc_id: str) -> KnowledgeDocument | None:
        return self._documents.get(doc_id)

    async def list_documents(self, organization_id: str | None) -> list[KnowledgeDocument]:
        return [doc for doc in self._documents.values() if _visible(doc, organization_id)]

    async def chunks_for(self, doc_id: str) -> list[KnowledgeChunk]:
        return list(self._chunks.get(doc_id, []))

    async def delete_document(self, doc_id: str) -> int:
        if doc_id not in self._documents:
            raise DocumentNotFoundError(doc_id)
        removed = self._chunks.pop(doc_id, [])
        del self._documents[doc_id]
        return len(removed)


def _visible(document: KnowledgeDocument, organization_id: str | None) -> bool:
    return document.organization_id is None or document.organization_id == organization_id


def _cosine_similarity(a: list[float], b: list[float]) -> float:
    if not a or not b or len(a) != len(b):
        return 0.0
    numerator = sum(x * y for x, y in zip(a, b, strict=True))
    norm_a = sqrt(sum(x * x for x in a))
    norm_b = sqrt(sum(y * y for y in b))
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return numerator / (norm_a * norm_b)
