"""Master query pipeline orchestrator: guardrails, retrieval, reranking, generation."""

from __future__ import annotations

import asyncio
import time
import traceback

from guarded_rag.config.constants import (
    COLLECTION_READY_STATUS,
    CONTEXT_SEPARATOR,
    MAX_CANDIDATES,
    NO_CONTEXT_ANSWER,
    RERANK_OVERFETCH_MULTIPLIER,
    SCORE_THRESHOLD_MAX,
    SCORE_THRESHOLD_MIN,
    TOP_K_MAX,
    TOP_K_MIN,
)
from guarded_rag.exceptions import (
    ForbiddenError,
    GenerationError,
    GuardedRAGError,
    InternalProcessingError,
    InvalidParameterError,
    NotFoundError,
    PolicyViolationError,
    PreconditionFailedError,
    RetrievalError,
    UnauthorizedError,
)
from guarded_rag.generation.answer_generator import AnswerGenerator
from guarded_rag.guardrails.policy_engine import PolicyEngine
from guarded_rag.models.domain import (
    Candidate,
    Collection,
    ContentType,
    PipelineResult,
    ProvenanceEntry,
    Query,
    RerankOutcome,
    Severity,
    Trace,
)
from guarded_rag.observability.events import (
    AnswerProducedEvent,
    ContextChunkInfo,
    ContextUsageEvent,
    ErrorEvent,
    ObservabilityEvent,
    PerformanceEvent,
    QueryReceivedEvent,
)
from guarded_rag.observability.logger import get_logger
from guarded_rag.observability.metrics import log_policy_check, log_rerank_metrics
from guarded_rag.observability.tracing import TraceContext
from guarded_rag.protocols.collection_store import CollectionStore
from guarded_rag.protocols.embedder import Embedder
from guarded_rag.protocols.event_sink import EventSink
from guarded_rag.protocols.reranker import Reranker
from guarded_rag.protocols.retriever import SimilaritySearch
from guarded_rag.query.expansion import QueryExpander
from guarded_rag.storage.sqlite_trace_store import SQLiteTraceStore

logger = get_logger("query_pipeline")


class QueryPipeline:
    def __init__(
        self,
        policy_engine: PolicyEngine,
        query_expander: QueryExpander,
        embedder: Embedder,
        similarity_search: SimilaritySearch,
        reranker: Reranker,
        answer_generator: AnswerGenerator,
        collection_store: CollectionStore,
        event_sink: EventSink | None = None,
        trace_store: SQLiteTraceStore | None = None,
    ) -> None:
        self._policy = policy_engine
        self._expander = query_expander
        self._embedder = embedder
        self._search = similarity_search
        self._reranker = reranker
        self._generator = answer_generator
        self._collections = collection_store
        self._sink = event_sink
        self._trace_store = trace_store
        self._background_tasks: set[asyncio.Task] = set()

    async def execute(
        self,
        query: Query,
        user_id: str,
        request_id: str | None = None,
    ) -> PipelineResult:
        trace = TraceContext(trace_id=request_id)
        success = False

        logger.info(
            "processing_query",
            trace_id=trace.trace_id,
            collection_id=query.collection_id,
            question_length=len(query.question),
            top_k=query.top_k,
            reranking=query.enable_reranking,
        )
        self._emit(
            QueryReceivedEvent.build(
                request_id=trace.trace_id,
                user_id=user_id or "unknown",
                collection_id=query.collection_id,
                session_id=query.session_id,
                question=query.question,
                top_k=query.top_k,
                score_threshold=query.score_threshold,
                reranking_enabled=query.enable_reranking,
            )
        )

        try:
            result = await self._run(query, user_id, trace)
            success = True
        except GuardedRAGError as e:
            logger.warning(
                "query_failed",
                trace_id=trace.trace_id,
                error_type=type(e).__name__,
                error_code=e.code,
                error=e.message,
            )
            self._emit(
                ErrorEvent(
                    request_id=trace.trace_id,
                    user_id=user_id or "unknown",
                    error_type=type(e).__name__,
                    error_code=e.code,
                    error_message=e.message,
                    context={
                        "collection_id": query.collection_id,
                        "top_k": query.top_k,
                        **e.context,
                    },
                )
            )
            self._save_trace(trace, query, outcome="error", error_code=e.code)
            raise
        except Exception as e:
            logger.exception(
                "unexpected_pipeline_error",
                trace_id=trace.trace_id,
                error_type=type(e).__name__,
            )
            self._emit(
                ErrorEvent(
                    request_id=trace.trace_id,
                    user_id=user_id or "unknown",
                    error_type="UnexpectedException",
                    error_code=InternalProcessingError.code,
                    error_message=str(e),
                    context={"collection_id": query.collection_id, "top_k": query.top_k},
                    stack_trace=traceback.format_exc(),
                )
            )
            self._save_trace(
                trace, query, outcome="error", error_code=InternalProcessingError.code
            )
            raise InternalProcessingError(
                "Failed to process query",
                context={"trace_id": trace.trace_id},
            ) from e
        finally:
            self._emit(
                PerformanceEvent(
                    request_id=trace.trace_id,
                    user_id=user_id or "unknown",
                    operation="chat_query",
                    duration_ms=round(trace.elapsed_ms, 2),
                    success=success,
                    metadata={
                        "top_k": query.top_k,
                        "enable_reranking": query.enable_reranking,
                        "stages": {s.name: round(s.duration_ms, 2) for s in trace.spans},
                    },
                )
            )

        self._save_trace(
            trace,
            query,
            outcome="answered" if result.context_chunks_used else "no_context",
            context_chunks_used=result.context_chunks_used,
            rerank_degraded=result.rerank_degraded,
        )
        return result

    async def _run(self, query: Query, user_id: str, trace: TraceContext) -> PipelineResult:
        # STEP 1: Parameter validation
        self._validate_parameters(query)

        # STEP 2: Ownership and readiness
        with trace.span("authorization"):
            collection = await self._authorize(query.collection_id, user_id)

        # STEP 3: Question policy check
        self._enforce_policy(query.question, ContentType.USER_QUERY, trace)

        # STEP 4: Query expansion
        expansion = self._expander.expand(query.question)

        # STEP 5: Candidate retrieval
        limit = (
            min(query.top_k * RERANK_OVERFETCH_MULTIPLIER, MAX_CANDIDATES)
            if query.enable_reranking
            else query.top_k
        )
        candidates = await self._retrieve(expansion.text, user_id, query, limit, trace)
        retrieved_count = len(candidates)

        # STEP 6: Conditional rerank
        rerank: RerankOutcome | None = None
        if query.enable_reranking and len(candidates) > 1:
            with trace.span("reranking", input_count=len(candidates)):
                rerank = await self._reranker.rerank_with_report(
                    query.question, candidates, query.top_k
                )
            candidates = rerank.candidates
            log_rerank_metrics(trace.trace_id, rerank, retrieved_count)

        # STEP 7: Nothing relevant: answer without generation
        if not candidates:
            logger.info(
                "no_relevant_context",
                trace_id=trace.trace_id,
                collection_id=query.collection_id,
            )
            return PipelineResult(
                answer=NO_CONTEXT_ANSWER,
                collection_id=query.collection_id,
                session_id=query.session_id,
                provenance=[],
                context_chunks_used=0,
                min_score=0.0,
                max_score=0.0,
                trace_id=trace.trace_id,
            )

        # STEP 8: Context policy check
        context = CONTEXT_SEPARATOR.join(c.text for c in candidates)
        self._enforce_policy(context, ContentType.CONTEXT_CHUNK, trace)

        provenance = self._build_provenance(candidates, collection, rerank)
        scores = [p.score for p in provenance]
        self._emit(
            ContextUsageEvent(
                request_id=trace.trace_id,
                user_id=user_id,
                collection_id=query.collection_id,
                chunks_retrieved=retrieved_count,
                chunks_used=len(candidates),
                total_context_length=len(context),
                min_score=min(scores),
                max_score=max(scores),
                avg_score=sum(scores) / len(scores),
                reranking_applied=rerank is not None,
                rerank_degraded=rerank.degraded if rerank else False,
                chunks=tuple(
                    ContextChunkInfo.from_text(c.candidate_id, p.score, c.text)
                    for c, p in zip(candidates, provenance)
                ),
            )
        )

        # STEP 9: Answer generation with the original question
        generation_start = time.monotonic()
        with trace.span("generation"):
            answer = await self._generate(context, query.question)
        generation_ms = (time.monotonic() - generation_start) * 1000

        # STEP 10: Answer policy check
        self._enforce_policy(answer, ContentType.AI_RESPONSE, trace)
        self._emit(
            AnswerProducedEvent.build(
                request_id=trace.trace_id,
                user_id=user_id,
                model=self._generator.model_name,
                answer=answer,
                processing_time_ms=generation_ms,
            )
        )

        # STEP 11: Result assembly
        logger.info(
            "query_answered",
            trace_id=trace.trace_id,
            collection_id=query.collection_id,
            context_chunks=len(candidates),
            latency_ms=round(trace.elapsed_ms, 2),
        )
        return PipelineResult(
            answer=answer,
            collection_id=query.collection_id,
            session_id=query.session_id,
            provenance=provenance,
            context_chunks_used=len(candidates),
            min_score=min(scores),
            max_score=max(scores),
            reranking_applied=rerank is not None,
            rerank_degraded=rerank.degraded if rerank else False,
            scoring_fallbacks=rerank.scoring_fallbacks if rerank else 0,
            rank_movements=rerank.movements if rerank else [],
            trace_id=trace.trace_id,
        )

    @staticmethod
    def _validate_parameters(query: Query) -> None:
        if not query.question or not query.question.strip():
            raise InvalidParameterError("question must not be empty")
        if not query.collection_id:
            raise InvalidParameterError("collection_id is required")
        if not TOP_K_MIN <= query.top_k <= TOP_K_MAX:
            raise InvalidParameterError(
                f"top_k must be between {TOP_K_MIN} and {TOP_K_MAX}",
                context={"top_k": query.top_k},
            )
        if not SCORE_THRESHOLD_MIN <= query.score_threshold <= SCORE_THRESHOLD_MAX:
            raise InvalidParameterError(
                f"score_threshold must be between {SCORE_THRESHOLD_MIN} and {SCORE_THRESHOLD_MAX}",
                context={"score_threshold": query.score_threshold},
            )

    async def _authorize(self, collection_id: str, user_id: str) -> Collection:
        if not user_id:
            raise UnauthorizedError("Unknown caller")

        collection = await self._collections.find_collection(collection_id)
        if collection is None:
            logger.warning("collection_not_found", collection_id=collection_id)
            raise NotFoundError(
                "Collection not found", context={"collection_id": collection_id}
            )
        if collection.owner_id != user_id:
            logger.warning(
                "collection_access_denied", collection_id=collection_id, user_id=user_id
            )
            raise ForbiddenError("Access denied", context={"collection_id": collection_id})
        if collection.status != COLLECTION_READY_STATUS:
            raise PreconditionFailedError(
                f"Collection is not ready. Current status: {collection.status}",
                context={"collection_id": collection_id, "status": collection.status},
            )
        return collection

    def _enforce_policy(self, text: str, content_type: ContentType, trace: TraceContext) -> None:
        with trace.span(f"policy_{content_type.value.lower()}"):
            try:
                self._policy.enforce(text, content_type)
            except PolicyViolationError as e:
                log_policy_check(trace.trace_id, content_type.value, len(text), e.violations)
                log = (
                    logger.error
                    if any(v.severity == Severity.CRITICAL for v in e.violations)
                    else logger.warning
                )
                log(
                    "policy_violation",
                    trace_id=trace.trace_id,
                    content_type=content_type.value,
                    summary=e.summary,
                    violations=[v.to_dict() for v in e.violations],
                )
                raise

    async def _retrieve(
        self,
        text: str,
        user_id: str,
        query: Query,
        limit: int,
        trace: TraceContext,
    ) -> list[Candidate]:
        try:
            with trace.span("embedding"):
                embedding = await self._embedder.embed_query(text)
            with trace.span("retrieval", limit=limit):
                return await self._search.query(
                    user_id,
                    query.collection_id,
                    embedding,
                    limit,
                    query.score_threshold,
                )
        except GuardedRAGError:
            raise
        except Exception as e:
            raise RetrievalError(
                f"Candidate retrieval failed: {e}",
                context={"collection_id": query.collection_id},
            ) from e

    async def _generate(self, context: str, question: str) -> str:
        try:
            return await self._generator.generate(context, question)
        except GuardedRAGError:
            raise
        except Exception as e:
            raise GenerationError(f"Answer generation failed: {e}") from e

    @staticmethod
    def _build_provenance(
        candidates: list[Candidate],
        collection: Collection,
        rerank: RerankOutcome | None,
    ) -> list[ProvenanceEntry]:
        """One entry per candidate, in the order they are given to generation.

        The score is the one used for ranking: fused when the LLM rerank ran,
        otherwise the similarity score.
        """
        fused = rerank.fused_scores if rerank else {}
        return [
            ProvenanceEntry(
                candidate_id=c.candidate_id,
                document_label=c.document_label or collection.label,
                chunk_index=c.chunk_index,
                score=fused.get(c.candidate_id, c.score),
            )
            for c in candidates
        ]

    def _emit(self, event: ObservabilityEvent) -> None:
        if self._sink is None:
            return
        try:
            self._sink.emit(event)
        except Exception as e:
            logger.warning("event_sink_failed", event_type=event.event_type, error=str(e))

    def _save_trace(
        self,
        trace: TraceContext,
        query: Query,
        outcome: str,
        error_code: str | None = None,
        context_chunks_used: int = 0,
        rerank_degraded: bool = False,
    ) -> None:
        if self._trace_store is None:
            return
        trace_obj = trace.to_trace(
            question=query.question[:200],
            collection_id=query.collection_id,
            outcome=outcome,
            error_code=error_code,
            context_chunks_used=context_chunks_used,
            rerank_degraded=rerank_degraded,
        )
        task = asyncio.create_task(self._persist_trace(trace_obj))
        self._background_tasks.add(task)
        task.add_done_callback(self._background_tasks.discard)

    async def _persist_trace(self, trace_obj: Trace) -> None:
        try:
            await self._trace_store.save_trace(trace_obj)
        except Exception as e:
            logger.warning("trace_save_failed", trace_id=trace_obj.trace_id, error=str(e))
