"""FastAPI application factory with lifespan management."""

from __future__ import annotations

from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from guarded_rag.api.auth import router as auth_router
from guarded_rag.api.middleware import RequestTimingMiddleware
from guarded_rag.api.rate_limiter import SlidingWindowRateLimiter
from guarded_rag.api.routes_guardrails import router as guardrails_router
from guarded_rag.api.routes_health import router as health_router
from guarded_rag.api.routes_query import router as query_router
from guarded_rag.config.settings import Settings
from guarded_rag.embeddings.openai_embedder import OpenAIEmbedder
from guarded_rag.exceptions import GuardedRAGError, PolicyViolationError
from guarded_rag.generation.answer_generator import AnswerGenerator
from guarded_rag.generation.gemini_provider import GeminiProvider
from guarded_rag.generation.openai_provider import OpenAIChatProvider
from guarded_rag.guardrails.policy_config import build_policy_config
from guarded_rag.guardrails.policy_engine import PolicyEngine
from guarded_rag.models.schemas import ApiResponse, ErrorBody
from guarded_rag.observability.events import StructlogEventSink
from guarded_rag.observability.logger import get_logger, setup_logging
from guarded_rag.pipeline.query_pipeline import QueryPipeline
from guarded_rag.protocols.llm import LLMProvider
from guarded_rag.query.expansion import QueryExpander
from guarded_rag.retrieval.relevance_scorer import LLMRelevanceScorer
from guarded_rag.retrieval.reranker_llm import LLMReranker
from guarded_rag.storage.sqlite_collection_store import SQLiteCollectionStore
from guarded_rag.storage.sqlite_trace_store import SQLiteTraceStore
from guarded_rag.vectorstore.faiss_store import FAISSSimilaritySearch

logger = get_logger("app")


def build_llm(settings: Settings) -> LLMProvider:
    if settings.llm_provider == "openai":
        return OpenAIChatProvider(
            api_key=settings.openai_api_key, model=settings.openai_chat_model
        )
    return GeminiProvider(api_key=settings.google_api_key, model=settings.gemini_model)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings: Settings = app.state.settings
    setup_logging(settings.log_level, settings.json_logs)

    # Ensure data directories exist
    for path in [settings.sqlite_collection_db_path, settings.sqlite_trace_db_path]:
        Path(path).parent.mkdir(parents=True, exist_ok=True)

    # Storage
    collection_store = SQLiteCollectionStore(settings.sqlite_collection_db_path)
    await collection_store.initialize()
    trace_store = SQLiteTraceStore(settings.sqlite_trace_db_path)
    await trace_store.initialize()

    # Embedding + similarity search
    embedder = OpenAIEmbedder(
        api_key=settings.openai_api_key,
        model=settings.embedding_model,
        dimensions=settings.embedding_dimensions,
    )
    similarity_search = FAISSSimilaritySearch(
        dimensions=settings.embedding_dimensions,
        index_path=settings.faiss_index_path,
    )

    # Content policy, built once and shared read-only
    policy_engine = PolicyEngine(
        build_policy_config(
            extra_toxic_terms=settings.policy_extra_toxic_terms,
            extra_org_patterns=settings.policy_extra_org_patterns,
            redaction_token=settings.policy_redaction_token,
        )
    )

    # LLM: answer generation and relevance scoring share one provider
    llm = build_llm(settings)
    reranker = LLMReranker(
        scorer=LLMRelevanceScorer(llm, timeout_seconds=settings.scorer_timeout_seconds),
        max_concurrency=settings.scorer_max_concurrency,
    )
    answer_generator = AnswerGenerator(
        llm=llm,
        temperature=settings.generation_temperature,
        max_tokens=settings.generation_max_tokens,
    )

    event_sink = StructlogEventSink()

    query_pipeline = QueryPipeline(
        policy_engine=policy_engine,
        query_expander=QueryExpander(),
        embedder=embedder,
        similarity_search=similarity_search,
        reranker=reranker,
        answer_generator=answer_generator,
        collection_store=collection_store,
        event_sink=event_sink,
        trace_store=trace_store,
    )

    # Attach to app state
    app.state.query_pipeline = query_pipeline
    app.state.policy_engine = policy_engine
    app.state.collection_store = collection_store
    app.state.similarity_search = similarity_search
    app.state.event_sink = event_sink

    logger.info(
        "startup_complete",
        llm_provider=settings.llm_provider,
        model=llm.model_name,
        collections=await collection_store.count_collections(),
        index_size=similarity_search.size,
    )

    yield

    similarity_search.save()
    logger.info("shutdown_complete")


async def handle_pipeline_error(request: Request, exc: GuardedRAGError) -> JSONResponse:
    details = None
    if isinstance(exc, PolicyViolationError):
        details = {"violations": exc.context["violations"]}
    body = ApiResponse(
        success=False,
        error=ErrorBody(code=exc.code, message=exc.message, details=details),
    )
    return JSONResponse(
        status_code=exc.status_code,
        content=body.model_dump(exclude_none=True),
    )


def create_app(settings: Settings | None = None) -> FastAPI:
    app = FastAPI(
        title="Guarded RAG Pipeline",
        version="1.0.0",
        description="Retrieval, LLM reranking and content guardrails for question answering",
        lifespan=lifespan,
    )
    app.state.settings = settings or Settings()
    app.state.rate_limiter = SlidingWindowRateLimiter()

    app.add_middleware(RequestTimingMiddleware)
    app.add_exception_handler(GuardedRAGError, handle_pipeline_error)
    app.include_router(health_router, tags=["health"])
    app.include_router(auth_router)
    app.include_router(query_router, tags=["query"])
    app.include_router(guardrails_router, tags=["guardrails"])
    return app
