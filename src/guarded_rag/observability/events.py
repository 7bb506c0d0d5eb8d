"""Structured pipeline events and the structlog-backed observability sink."""

from __future__ import annotations

import threading
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone

from guarded_rag.config.constants import (
    ANSWER_PREVIEW_CHARS,
    CHUNK_PREVIEW_CHARS,
    QUESTION_PREVIEW_CHARS,
)
from guarded_rag.observability.logger import get_logger

logger = get_logger("events")


def preview(text: str, limit: int) -> str:
    return text if len(text) <= limit else text[:limit] + "..."


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass(frozen=True)
class ObservabilityEvent:
    request_id: str
    user_id: str

    event_type = "EVENT"

    def to_dict(self) -> dict:
        return {"event_type": self.event_type, **asdict(self)}


@dataclass(frozen=True)
class QueryReceivedEvent(ObservabilityEvent):
    collection_id: str
    session_id: str | None
    question_preview: str
    question_length: int
    top_k: int
    score_threshold: float
    reranking_enabled: bool
    reranking_strategy: str = "LLM"
    timestamp: str = field(default_factory=_now)

    event_type = "CHAT_QUERY"

    @classmethod
    def build(
        cls,
        request_id: str,
        user_id: str,
        collection_id: str,
        session_id: str | None,
        question: str,
        top_k: int,
        score_threshold: float,
        reranking_enabled: bool,
    ) -> QueryReceivedEvent:
        return cls(
            request_id=request_id,
            user_id=user_id,
            collection_id=collection_id,
            session_id=session_id,
            question_preview=preview(question, QUESTION_PREVIEW_CHARS),
            question_length=len(question),
            top_k=top_k,
            score_threshold=score_threshold,
            reranking_enabled=reranking_enabled,
        )


@dataclass(frozen=True)
class ContextChunkInfo:
    chunk_id: str
    score: float
    length: int
    content_preview: str

    @classmethod
    def from_text(cls, chunk_id: str, score: float, text: str) -> ContextChunkInfo:
        return cls(
            chunk_id=chunk_id,
            score=score,
            length=len(text),
            content_preview=preview(text, CHUNK_PREVIEW_CHARS),
        )


@dataclass(frozen=True)
class ContextUsageEvent(ObservabilityEvent):
    collection_id: str
    chunks_retrieved: int
    chunks_used: int
    total_context_length: int
    min_score: float
    max_score: float
    avg_score: float
    reranking_applied: bool
    rerank_degraded: bool
    chunks: tuple[ContextChunkInfo, ...] = ()
    timestamp: str = field(default_factory=_now)

    event_type = "CONTEXT_USAGE"


@dataclass(frozen=True)
class AnswerProducedEvent(ObservabilityEvent):
    model: str
    response_length: int
    processing_time_ms: float
    response_preview: str
    timestamp: str = field(default_factory=_now)

    event_type = "AI_RESPONSE"

    @classmethod
    def build(
        cls,
        request_id: str,
        user_id: str,
        model: str,
        answer: str,
        processing_time_ms: float,
    ) -> AnswerProducedEvent:
        return cls(
            request_id=request_id,
            user_id=user_id,
            model=model,
            response_length=len(answer),
            processing_time_ms=round(processing_time_ms, 2),
            response_preview=preview(answer, ANSWER_PREVIEW_CHARS),
        )


@dataclass(frozen=True)
class ErrorEvent(ObservabilityEvent):
    error_type: str
    error_code: str
    error_message: str
    context: dict = field(default_factory=dict)
    stack_trace: str | None = None
    timestamp: str = field(default_factory=_now)

    event_type = "ERROR"


@dataclass(frozen=True)
class PerformanceEvent(ObservabilityEvent):
    operation: str
    duration_ms: float
    success: bool
    metadata: dict = field(default_factory=dict)
    timestamp: str = field(default_factory=_now)

    event_type = "PERFORMANCE"


@dataclass(frozen=True)
class SystemMetrics:
    total_requests: int
    total_errors: int
    error_rate: float


class StructlogEventSink:
    """Logs every event through structlog and keeps process-wide counters."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._total_requests = 0
        self._total_errors = 0

    def emit(self, event: ObservabilityEvent) -> None:
        payload = event.to_dict()
        if isinstance(event, QueryReceivedEvent):
            with self._lock:
                self._total_requests += 1
            logger.info("chat_query", **payload)
        elif isinstance(event, ErrorEvent):
            with self._lock:
                self._total_errors += 1
            logger.error("pipeline_error", **payload)
        elif isinstance(event, ContextUsageEvent):
            logger.info("context_usage", **payload)
        elif isinstance(event, AnswerProducedEvent):
            logger.info("ai_response", **payload)
        elif isinstance(event, PerformanceEvent):
            logger.info("performance", **payload)
        else:
            logger.info("event", **payload)

    def system_metrics(self) -> SystemMetrics:
        with self._lock:
            requests = self._total_requests
            errors = self._total_errors
        return SystemMetrics(
            total_requests=requests,
            total_errors=errors,
            error_rate=errors / requests if requests else 0.0,
        )
