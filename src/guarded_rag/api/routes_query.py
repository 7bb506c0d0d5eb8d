"""Chat query endpoint."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from guarded_rag.api.dependencies import get_query_pipeline, get_request_id, get_settings
from guarded_rag.api.rate_limiter import rate_limit
from guarded_rag.config.settings import Settings
from guarded_rag.models.domain import Query
from guarded_rag.models.schemas import ChatApiResponse, ChatRequest, ChatResponse
from guarded_rag.pipeline.query_pipeline import QueryPipeline

router = APIRouter(prefix="/api/v1/chat")


@router.post("/query", response_model=ChatApiResponse)
async def query(
    request: ChatRequest,
    top_k: int | None = None,
    score_threshold: float | None = None,
    enable_reranking: bool | None = None,
    pipeline: QueryPipeline = Depends(get_query_pipeline),
    settings: Settings = Depends(get_settings),
    request_id: str | None = Depends(get_request_id),
    user_id: str = Depends(rate_limit),
) -> ChatApiResponse:
    """Answer a question from one of the caller's collections.

    Range checks on the query parameters happen in the pipeline so they
    surface as INVALID_PARAMETER errors in the standard envelope.
    """
    result = await pipeline.execute(
        Query(
            question=request.question,
            collection_id=request.collection_id,
            session_id=request.session_id,
            top_k=settings.default_top_k if top_k is None else top_k,
            score_threshold=(
                settings.default_score_threshold if score_threshold is None else score_threshold
            ),
            enable_reranking=(
                settings.default_enable_reranking if enable_reranking is None else enable_reranking
            ),
        ),
        user_id=user_id,
        request_id=request_id,
    )
    return ChatApiResponse(success=True, data=ChatResponse.from_result(result))
