"""Ingest pipeline: clean -> chunk -> embed -> store."""

from __future__ import annotations

import asyncio
import logging
import uuid

from timber_kb.errors import ProviderError
from timber_kb.ingest.chunker import MarkdownChunker, clean_markdown
from timber_kb.retrieval.embedder import Embedder
from timber_kb.retrieval.vector_store import VectorStore
from timber_kb.types import KnowledgeChunk, KnowledgeDocument

logger = logging.getLogger(__name__)


class IngestPipeline:
    """Coordinates chunker/embedder/vector store stages.

    This class isolates ingestion from query-time retrieval so indexing can be
    executed offline or in batch jobs. Embedding is retried per chunk with
    exponential backoff; a chunk that still fails aborts the document and
    removes whatever was stored for it.
    """

    def __init__(
        self,
        chunker: MarkdownChunker,
        embedder: Embedder,
        vector_store: VectorStore,
        *,
        max_attempts: int = 3,
        backoff_seconds: float = 0.5,
    ) -> None:
        self._chunker = chunker
        self._embedder = embedder
        self._vector_store = vector_store
        self.max_attempts = max_attempts
        self.backoff_seconds = backoff_seconds

    async def ingest(
        self,
        title: str,
        content: str,
        *,
        organization_id: str | None = None,
        source_url: str | None = None,
        doc_id: str | None = None,
    ) -> tuple[KnowledgeDocument, list[KnowledgeChunk]]:
        """Ingest one document and return it with its stored chunks."""

        document = KnowledgeDocument(
            doc_id=doc_id or uuid.uuid4().hex,
            title=title,
            organization_id=organization_id,
            source_url=source_url,
        )
        pieces = self._chunker.chunk(clean_markdown(content))
        logger.info("Ingesting %r as %d chunks", title, len(pieces))

        await self._vector_store.add_document(document)
        chunks: list[KnowledgeChunk] = []
        try:
            for piece in pieces:
                embedding = await self._embed_with_retry(piece.content)
                chunks.append(
                    KnowledgeChunk(
                        chunk_id=f"{document.doc_id}-chunk-{piece.index:04d}",
                        doc_id=document.doc_id,
                        content=piece.content,
                        chunk_index=piece.index,
                        embedding=embedding,
                        heading=piece.heading,
                    )
                )
            await self._vector_store.upsert(document.doc_id, chunks)
        except ProviderError:
            await self._vector_store.delete_document(document.doc_id)
            raise
        return document, chunks

    async def _embed_with_retry(self, text: str) -> list[float]:
        delay = self.backoff_seconds
        for attempt in range(1, self.max_attempts + 1):
            try:
                return await self._embedder.aembed_query(text)
            except ProviderError as exc:
                if attempt == self.max_attempts:
                    raise
                logger.warning(
                    "Embedding attempt %d/%d failed: %s", attempt, self.max_attempts, exc
                )
                await asyncio.sleep(delay)
                delay *= 2
        raise ProviderError("embedding", "no attempts made")
