"""Configuration models for the knowledge-query engine."""

from __future__ import annotations

import os

from pydantic import BaseModel, Field


class ChunkingConfig(BaseModel):
    """Configures heading/paragraph/sentence chunking of source documents."""

    max_chunk_chars: int = Field(default=800, ge=200)
    min_chunk_chars: int = Field(default=100, ge=0)
    min_paragraph_chars: int = Field(default=30, ge=0)


class RetrievalConfig(BaseModel):
    """Configures the retrieval-augmented fallback."""

    top_k: int = Field(default=5, ge=1, le=20)
    history_limit: int = Field(default=5, ge=0, le=50)


class EngineConfig(BaseModel):
    """Configures span defaults, provider timeouts and conversation memory."""

    default_spacing: int = Field(default=450, ge=100)
    provider_timeout_seconds: float = Field(default=20.0, gt=0.0)
    memory_ttl_hours: float = Field(default=24.0, gt=0.0)
    answer_summary_chars: int = Field(default=500, ge=50)
    memory_purge_interval_seconds: float = Field(default=3600.0, gt=0.0)


class Settings(BaseModel):
    """Process-level settings resolved from the environment."""

    openai_api_key: str | None = None
    openai_model: str = "gpt-4o-mini"
    openai_embedding_model: str = "text-embedding-3-small"
    log_level: str = "INFO"
    seed_reference_data: bool = True

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            openai_api_key=os.getenv("OPENAI_API_KEY") or None,
            openai_model=os.getenv("OPENAI_MODEL", "gpt-4o-mini"),
            openai_embedding_model=os.getenv(
                "OPENAI_EMBEDDING_MODEL", "text-embedding-3-small"
            ),
            log_level=os.getenv("TIMBER_KB_LOG_LEVEL", "INFO"),
            seed_reference_data=os.getenv("TIMBER_KB_SEED", "1").lower()
            not in {"0", "false", "no"},
        )
