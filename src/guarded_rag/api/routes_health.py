"""Health and process metrics endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from guarded_rag.api.dependencies import (
    get_collection_store,
    get_event_sink,
    get_similarity_search,
)
from guarded_rag.models.schemas import HealthResponse, MetricsResponse
from guarded_rag.observability.events import StructlogEventSink
from guarded_rag.storage.sqlite_collection_store import SQLiteCollectionStore
from guarded_rag.vectorstore.faiss_store import FAISSSimilaritySearch

router = APIRouter()


@router.get("/health", response_model=HealthResponse)
async def health(
    collection_store: SQLiteCollectionStore = Depends(get_collection_store),
    similarity_search: FAISSSimilaritySearch = Depends(get_similarity_search),
) -> HealthResponse:
    return HealthResponse(
        status="ok",
        collection_count=await collection_store.count_collections(),
        index_size=similarity_search.size,
    )


@router.get("/metrics", response_model=MetricsResponse)
async def metrics(sink: StructlogEventSink = Depends(get_event_sink)) -> MetricsResponse:
    m = sink.system_metrics()
    return MetricsResponse(
        total_requests=m.total_requests,
        total_errors=m.total_errors,
        error_rate=m.error_rate,
    )
