"""FastAPI entrypoint for ask/document/span/trace endpoints."""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager, suppress
from dataclasses import asdict
from typing import Any, Literal

from fastapi import FastAPI, HTTPException, Query
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from timber_kb.config import ChunkingConfig, EngineConfig, RetrievalConfig, Settings
from timber_kb.engine.engine import KnowledgeQueryEngine
from timber_kb.engine.users import InMemoryUserDirectory
from timber_kb.errors import (
    DocumentNotFoundError,
    MalformedQueryError,
    PermissionDeniedError,
    ProviderError,
    UnknownUserError,
)
from timber_kb.ingest.chunker import MarkdownChunker
from timber_kb.ingest.pipeline import IngestPipeline
from timber_kb.memory.conversation import ConversationMemory, InMemoryConversationStore
from timber_kb.obs.logs import configure_logging
from timber_kb.obs.tracing import TraceStore
from timber_kb.retrieval.embedder import Embedder, HashingEmbedder, LangChainEmbedder
from timber_kb.retrieval.rag import RetrievalAugmentedAnswerer
from timber_kb.retrieval.vector_store import InMemoryVectorStore
from timber_kb.spans.lookup import SpanTableLookup
from timber_kb.spans.seed import seed_reference_data
from timber_kb.spans.store import InMemoryReferenceStore
from timber_kb.types import User


def _create_llm(settings: Settings) -> Any:
    if not settings.openai_api_key:
        return None

    from langchain_openai import ChatOpenAI

    return ChatOpenAI(model=settings.openai_model, temperature=0)


def _create_embedder(settings: Settings) -> Embedder:
    if not settings.openai_api_key:
        return HashingEmbedder()

    from langchain_openai import OpenAIEmbeddings

    return LangChainEmbedder(OpenAIEmbeddings(model=settings.openai_embedding_model))


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class AskRequest(_CamelModel):
    user_id: str = Field(min_length=1)
    question: str = Field(min_length=1)
    prior_parsed_context: dict[str, Any] | None = None


class UserRequest(_CamelModel):
    organization_id: str = Field(min_length=1)
    role: Literal["owner", "worker"] = "worker"


class DocumentRequest(_CamelModel):
    user_id: str = Field(min_length=1)
    title: str = Field(min_length=1)
    content: str = Field(min_length=1)
    source_url: str | None = None


_settings = Settings.from_env()
configure_logging(_settings.log_level)

_engine_config = EngineConfig()
_users = InMemoryUserDirectory()
_reference_store = InMemoryReferenceStore()
_embedder = _create_embedder(_settings)
_vector_store = InMemoryVectorStore()
_ingest_pipeline = IngestPipeline(
    MarkdownChunker(ChunkingConfig()), _embedder, _vector_store
)
_llm = _create_llm(_settings)
_trace_store = TraceStore()
_engine = KnowledgeQueryEngine(
    users=_users,
    lookup=SpanTableLookup(
        _reference_store, default_spacing=_engine_config.default_spacing
    ),
    answerer=RetrievalAugmentedAnswerer(
        embedder=_embedder,
        vector_store=_vector_store,
        llm=_llm,
        config=RetrievalConfig(),
        timeout_seconds=_engine_config.provider_timeout_seconds,
    ),
    memory=ConversationMemory(InMemoryConversationStore(), _engine_config),
    trace_store=_trace_store,
    config=_engine_config,
)


@asynccontextmanager
async def _lifespan(_: FastAPI):
    if _settings.seed_reference_data:
        await seed_reference_data(_reference_store)
    purge_task = asyncio.create_task(
        _engine.memory.purge_periodically(_engine_config.memory_purge_interval_seconds)
    )
    try:
        yield
    finally:
        purge_task.cancel()
        with suppress(asyncio.CancelledError):
            await purge_task


app = FastAPI(title="Timber Knowledge Engine", version="0.1.0", lifespan=_lifespan)


async def _require_user(user_id: str) -> User:
    user = await _users.get_user(user_id)
    if user is None:
        raise HTTPException(status_code=404, detail=f"User not found: {user_id}")
    return user


@app.get("/health")
async def health() -> dict[str, Any]:
    return {
        "status": "ok",
        "llm_configured": _llm is not None,
        "answer_mode": "llm" if _llm is not None else "extractive",
        "trace_count": len(_trace_store.list_recent(limit=1000)),
    }


@app.put("/users/{user_id}")
async def register_user(user_id: str, request: UserRequest) -> dict[str, Any]:
    user = User(
        user_id=user_id, organization_id=request.organization_id, role=request.role
    )
    _users.add(user)
    return {"userId": user.user_id, "organizationId": user.organization_id, "role": user.role}


@app.post("/ask")
async def ask(request: AskRequest) -> dict[str, Any]:
    try:
        result = await _engine.ask(
            request.user_id, request.question, request.prior_parsed_context
        )
    except UnknownUserError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except ValidationError as exc:
        raise HTTPException(status_code=422, detail=exc.errors(include_url=False, include_context=False)) from exc
    except MalformedQueryError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    return result.to_payload()


@app.post("/documents")
async def add_document(request: DocumentRequest) -> dict[str, Any]:
    user = await _require_user(request.user_id)
    if not user.is_owner:
        raise HTTPException(status_code=403, detail="Only owners can add documents")
    try:
        document, chunks = await _ingest_pipeline.ingest(
            request.title,
            request.content,
            organization_id=user.organization_id,
            source_url=request.source_url,
        )
    except ProviderError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    return {"docId": document.doc_id, "chunksCreated": len(chunks)}


@app.get("/documents")
async def list_documents(user_id: str = Query(alias="userId")) -> dict[str, Any]:
    user = await _require_user(user_id)
    items = []
    for document in await _vector_store.list_documents(user.organization_id):
        chunks = await _vector_store.chunks_for(document.doc_id)
        items.append(
            {
                "docId": document.doc_id,
                "title": document.title,
                "sourceUrl": document.source_url,
                "uploadedAt": document.uploaded_at.isoformat(),
                "chunkCount": len(chunks),
                "isGlobal": document.organization_id is None,
            }
        )
    return {"items": items}


@app.delete("/documents/{doc_id}")
async def delete_document(doc_id: str, user_id: str = Query(alias="userId")) -> dict[str, Any]:
    user = await _require_user(user_id)
    try:
        deleted = await _delete_document(user, doc_id)
    except DocumentNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except PermissionDeniedError as exc:
        raise HTTPException(status_code=403, detail=str(exc)) from exc
    return {"success": True, "deletedChunks": deleted}


async def _delete_document(user: User, doc_id: str) -> int:
    if not user.is_owner:
        raise PermissionDeniedError("Only owners can delete documents")
    document = await _vector_store.get_document(doc_id)
    if document is None:
        raise DocumentNotFoundError(doc_id)
    if document.organization_id and document.organization_id != user.organization_id:
        raise PermissionDeniedError("Unauthorized")
    return await _vector_store.delete_document(doc_id)


@app.get("/spans/summary")
async def span_summary() -> dict[str, Any]:
    return await _reference_store.summary()


@app.post("/spans/seed")
async def seed_spans() -> dict[str, int]:
    return await seed_reference_data(_reference_store)


@app.get("/traces")
async def traces(limit: int = 20) -> dict[str, Any]:
    return {"items": [asdict(record) for record in _trace_store.list_recent(limit=limit)]}


@app.get("/traces/{trace_id}")
async def trace_detail(trace_id: str) -> dict[str, Any]:
    try:
        record = _trace_store.get(trace_id)
    except KeyError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return asdict(record)


@app.get("/metrics")
async def metrics() -> dict[str, Any]:
    return _trace_store.summary()
