"""Timber knowledge-query engine package."""

from .config import ChunkingConfig, EngineConfig, RetrievalConfig
from .engine.engine import AskResult, KnowledgeQueryEngine
from .query.models import ParsedQuery, QueryType, Specificity

__all__ = [
    "AskResult",
    "ChunkingConfig",
    "EngineConfig",
    "KnowledgeQueryEngine",
    "ParsedQuery",
    "QueryType",
    "RetrievalConfig",
    "Specificity",
]
