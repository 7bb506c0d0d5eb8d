"""Pydantic models for API request/response serialization."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from guarded_rag.models.domain import ContentType, PipelineResult, ValidationResult


class ChatRequest(BaseModel):
    question: str = Field(min_length=1)
    collection_id: str = Field(min_length=1)
    session_id: str | None = None


class SourceInfo(BaseModel):
    vector_id: str
    document_label: str
    chunk_index: int
    score: float


class RankMovementInfo(BaseModel):
    vector_id: str
    original_rank: int
    new_rank: int
    similarity_score: float
    relevance_score: float
    fused_score: float


class ChatResponse(BaseModel):
    answer: str
    collection_id: str
    session_id: str | None = None
    sources: list[SourceInfo]
    context_chunks_used: int
    min_score: float
    max_score: float
    reranking_applied: bool = False
    rerank_degraded: bool = False
    scoring_fallbacks: int = 0
    rank_movements: list[RankMovementInfo] = Field(default_factory=list)
    trace_id: str

    @classmethod
    def from_result(cls, result: PipelineResult) -> ChatResponse:
        return cls(
            answer=result.answer,
            collection_id=result.collection_id,
            session_id=result.session_id,
            sources=[
                SourceInfo(
                    vector_id=p.candidate_id,
                    document_label=p.document_label,
                    chunk_index=p.chunk_index,
                    score=p.score,
                )
                for p in result.provenance
            ],
            context_chunks_used=result.context_chunks_used,
            min_score=result.min_score,
            max_score=result.max_score,
            reranking_applied=result.reranking_applied,
            rerank_degraded=result.rerank_degraded,
            scoring_fallbacks=result.scoring_fallbacks,
            rank_movements=[
                RankMovementInfo(
                    vector_id=m.candidate_id,
                    original_rank=m.original_rank,
                    new_rank=m.new_rank,
                    similarity_score=m.similarity_score,
                    relevance_score=m.relevance_score,
                    fused_score=m.fused_score,
                )
                for m in result.rank_movements
            ],
            trace_id=result.trace_id,
        )


class ErrorBody(BaseModel):
    code: str
    message: str
    details: dict[str, Any] | None = None


class ApiResponse(BaseModel):
    success: bool
    data: Any | None = None
    error: ErrorBody | None = None


class ChatApiResponse(ApiResponse):
    data: ChatResponse | None = None


class ValidateContentRequest(BaseModel):
    content: str
    content_type: ContentType = ContentType.USER_QUERY


class ViolationInfo(BaseModel):
    kind: str
    pattern: str
    description: str
    severity: str


class ValidateContentResponse(BaseModel):
    valid: bool
    violations: list[ViolationInfo]
    sanitized_content: str
    max_severity: str | None = None

    @classmethod
    def from_result(cls, result: ValidationResult) -> ValidateContentResponse:
        return cls(
            valid=result.valid,
            violations=[ViolationInfo(**v.to_dict()) for v in result.violations],
            sanitized_content=result.sanitized_text,
            max_severity=result.max_severity.value if result.max_severity else None,
        )


class HealthResponse(BaseModel):
    status: str
    collection_count: int
    index_size: int


class MetricsResponse(BaseModel):
    total_requests: int
    total_errors: int
    error_rate: float
