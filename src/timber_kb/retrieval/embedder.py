"""Embedding abstractions, a deterministic baseline and a LangChain adapter."""

from __future__ import annotations

import asyncio
import re
from abc import ABC, abstractmethod
from hashlib import blake2b
from math import sqrt
from typing import Any

from timber_kb.errors import ProviderError

# Words, numbers and joined forms such as "pre-drilled", "3.6" or "c/c".
_TOKEN = re.compile(r"[a-z0-9]+(?:[.\-/][a-z0-9]+)*")


class Embedder(ABC):
    """Embedder interface used by ingestion and the retrieval fallback."""

    @abstractmethod
    def embed_documents(self, texts: list[str]) -> list[list[float]]:
        """Embed many documents."""

    @abstractmethod
    def embed_query(self, text: str) -> list[float]:
        """Embed one query."""

    async def aembed_query(self, text: str) -> list[float]:
        return await asyncio.to_thread(self.embed_query, text)


class HashingEmbedder(Embedder):
    """Deterministic sparse-like embedding without external model calls.

    Used for local runs and tests. Text with no tokens cannot be embedded and
    raises `ProviderError` instead of returning a zero vector.
    """

    def __init__(self, dimension: int = 256) -> None:
        self.dimension = dimension

    def embed_documents(self, texts: list[str]) -> list[list[float]]:
        return [self._embed(text) for text in texts]

    def embed_query(self, text: str) -> list[float]:
        return self._embed(text)

    def _embed(self, text: str) -> list[float]:
        tokens = _TOKEN.findall(text.lower())
        if not tokens:
            raise ProviderError("embedding", "cannot embed empty text")

        buckets = [0.0] * self.dimension
        for token in tokens:
            digest = blake2b(token.encode("utf-8"), digest_size=8).digest()
            bucket = int.from_bytes(digest[:4], "little") % self.dimension
            buckets[bucket] += 1.0 if digest[4] & 1 == 0 else -1.0

        length = sqrt(sum(weight * weight for weight in buckets))
        if length == 0:
            # Opposite-signed collisions cancelled out; keep a unit vector.
            buckets[0] = 1.0
            return buckets
        return [weight / length for weight in buckets]


class LangChainEmbedder(Embedder):
    """Wraps a `langchain_core.embeddings.Embeddings` model.

    Provider exceptions and all-zero vectors surface as `ProviderError`.
    """

    def __init__(self, embeddings: Any, *, max_chars: int = 8000) -> None:
        self._embeddings = embeddings
        self.max_chars = max_chars

    def embed_documents(self, texts: list[str]) -> list[list[float]]:
        try:
            vectors = self._embeddings.embed_documents([t[: self.max_chars] for t in texts])
        except Exception as exc:
            raise ProviderError("embedding", str(exc)) from exc
        return [_checked(vector) for vector in vectors]

    def embed_query(self, text: str) -> list[float]:
        try:
            vector = self._embeddings.embed_query(text[: self.max_chars])
        except Exception as exc:
            raise ProviderError("embedding", str(exc)) from exc
        return _checked(vector)

    async def aembed_query(self, text: str) -> list[float]:
        try:
            vector = await self._embeddings.aembed_query(text[: self.max_chars])
        except Exception as exc:
            raise ProviderError("embedding", str(exc)) from exc
        return _checked(vector)


def _checked(vector: list[float]) -> list[float]:
    if not vector or not any(vector):
        raise ProviderError("embedding", "provider returned an empty vector")
    return [float(value) for value in vector]
