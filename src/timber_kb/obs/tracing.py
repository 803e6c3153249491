"""Per-question tracing and aggregate metrics."""

from __future__ import annotations

import time
import uuid
from collections import Counter
from dataclasses import dataclass
from math import ceil

from timber_kb.types import Source, utc_now

ROUTE_FOLLOW_UP = "follow_up"
ROUTE_SPAN_LOOKUP = "span_lookup"
ROUTE_RAG = "rag"
ROUTE_PROVIDER_ERROR = "provider_error"


@dataclass(slots=True)
class TraceRecord:
    trace_id: str
    timestamp_utc: str
    user_id: str
    question: str
    route: str
    answer: str
    sources: list[Source]
    candidate_count: int
    latency_ms: float


class TraceStore:
    """Bounded in-memory trace log; the oldest records are evicted first."""

    def __init__(self, max_records: int = 1000) -> None:
        self._records: dict[str, TraceRecord] = {}
        self.max_records = max_records

    def create_record(
        self,
        *,
        user_id: str,
        question: str,
        route: str,
        answer: str,
        sources: list[Source],
        candidate_count: int,
        latency_ms: float,
    ) -> TraceRecord:
        record = TraceRecord(
            trace_id=str(uuid.uuid4()),
            timestamp_utc=utc_now().isoformat(),
            user_id=user_id,
            question=question,
            route=route,
            answer=answer,
            sources=sources,
            candidate_count=candidate_count,
            latency_ms=latency_ms,
        )
        self._records[record.trace_id] = record
        while len(self._records) > self.max_records:
            del self._records[next(iter(self._records))]
        return record

    def get(self, trace_id: str) -> TraceRecord:
        record = self._records.get(trace_id)
        if record is None:
            raise KeyError(f"Trace not found: {trace_id}")
        return record

    def list_recent(self, limit: int = 20) -> list[TraceRecord]:
        return list(self._records.values())[-limit:]

    def summary(self) -> dict[str, object]:
        """Request totals, latency percentiles and per-route counts."""
        routes = Counter(record.route for record in self._records.values())
        latencies = sorted(record.latency_ms for record in self._records.values())
        total = len(latencies)
        return {
            "total_requests": total,
            "avg_latency_ms": sum(latencies) / total if total else 0.0,
            "p95_latency_ms": _nearest_rank(latencies, 0.95),
            "follow_up_rate": routes[ROUTE_FOLLOW_UP] / total if total else 0.0,
            "provider_errors": routes[ROUTE_PROVIDER_ERROR],
            "routes": dict(routes),
        }


def _nearest_rank(ordered: list[float], quantile: float) -> float:
    if not ordered:
        return 0.0
    return ordered[max(0, ceil(quantile * len(ordered)) - 1)]


class Timer:
    """Wall-clock duration of a `with` block in milliseconds."""

    __slots__ = ("_started", "elapsed_ms")

    def __init__(self) -> None:
        self._started: float | None = None
        self.elapsed_ms = 0.0

    def __enter__(self) -> "Timer":
        self._started = time.perf_counter()
        return self

    def __exit__(self, *exc_info: object) -> None:
        if self._started is not None:
            self.elapsed_ms = (time.perf_counter() - self._started) * 1000.0
