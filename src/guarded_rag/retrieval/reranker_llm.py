"""LLM reranker: fuse language-model relevance with vector similarity."""

from __future__ import annotations

import asyncio

from guarded_rag.config.constants import (
    FUSION_RELEVANCE_WEIGHT,
    FUSION_SIMILARITY_WEIGHT,
    RERANK_LOG_TOP_N,
)
from guarded_rag.models.domain import (
    Candidate,
    RankMovement,
    RelevanceJudgment,
    RerankOutcome,
    ScoredCandidate,
)
from guarded_rag.observability.events import preview
from guarded_rag.observability.logger import get_logger
from guarded_rag.retrieval.relevance_scorer import LLMRelevanceScorer

logger = get_logger("reranker")


def fuse_scores(relevance: float, similarity: float) -> float:
    """fused = 0.7 * relevance + 0.3 * similarity, similarity clamped to [0, 1]."""
    similarity = max(0.0, min(1.0, similarity))
    return FUSION_RELEVANCE_WEIGHT * relevance + FUSION_SIMILARITY_WEIGHT * similarity


class LLMReranker:
    def __init__(self, scorer: LLMRelevanceScorer, max_concurrency: int = 20) -> None:
        self._scorer = scorer
        self._max_concurrency = max(1, max_concurrency)

    async def rerank(
        self,
        question: str,
        candidates: list[Candidate],
        max_results: int,
    ) -> list[Candidate]:
        outcome = await self.rerank_with_report(question, candidates, max_results)
        return outcome.candidates

    async def rerank_with_report(
        self,
        question: str,
        candidates: list[Candidate],
        max_results: int,
    ) -> RerankOutcome:
        if len(candidates) <= 1:
            return RerankOutcome(
                candidates=list(candidates),
                scored=[],
                movements=[],
                degraded=False,
                scoring_fallbacks=0,
            )

        logger.info(
            "llm_rerank_started",
            candidates=len(candidates),
            question=preview(question, 100),
        )

        try:
            judgments = await self._judge_all(question, candidates)

            scored = [
                ScoredCandidate(
                    candidate=candidate,
                    relevance_score=judgment.score,
                    fused_score=fuse_scores(judgment.score, candidate.score),
                    scoring_fallback=judgment.fallback,
                )
                for candidate, judgment in zip(candidates, judgments, strict=True)
            ]
            # sorted() is stable, so equal fused scores keep retrieval order
            ranked = sorted(scored, key=lambda s: s.fused_score, reverse=True)[:max_results]
            movements = self._rank_movements(scored, ranked)
        except Exception as e:
            logger.warning(
                "llm_rerank_failed",
                error_type=type(e).__name__,
                error=str(e),
            )
            return RerankOutcome(
                candidates=list(candidates[:max_results]),
                scored=[],
                movements=[],
                degraded=True,
                scoring_fallbacks=0,
            )

        outcome = RerankOutcome(
            candidates=[s.candidate for s in ranked],
            scored=ranked,
            movements=movements,
            degraded=False,
            scoring_fallbacks=sum(1 for s in scored if s.scoring_fallback),
        )
        self._log_results(question, outcome)
        return outcome

    async def _judge_all(
        self, question: str, candidates: list[Candidate]
    ) -> list[RelevanceJudgment]:
        """Score every candidate concurrently, results in candidate order."""
        semaphore = asyncio.Semaphore(min(len(candidates), self._max_concurrency))

        async def judge_one(candidate: Candidate) -> RelevanceJudgment:
            async with semaphore:
                return await self._scorer.judge(question, candidate.text)

        tasks = [asyncio.ensure_future(judge_one(c)) for c in candidates]
        try:
            return list(await asyncio.gather(*tasks))
        except BaseException:
            # Abandon outstanding calls; partial scores are discarded.
            for task in tasks:
                task.cancel()
            raise

    @staticmethod
    def _rank_movements(
        scored: list[ScoredCandidate], ranked: list[ScoredCandidate]
    ) -> list[RankMovement]:
        original_rank = {id(s): i for i, s in enumerate(scored, 1)}
        return [
            RankMovement(
                candidate_id=s.candidate.candidate_id,
                original_rank=original_rank[id(s)],
                new_rank=new_rank,
                similarity_score=s.candidate.score,
                relevance_score=s.relevance_score,
                fused_score=s.fused_score,
            )
            for new_rank, s in enumerate(ranked, 1)
        ]

    @staticmethod
    def _log_results(question: str, outcome: RerankOutcome) -> None:
        logger.info(
            "reranked",
            question=preview(question, 80),
            output_count=len(outcome.candidates),
            scoring_fallbacks=outcome.scoring_fallbacks,
            top=[
                {
                    "rank": m.new_rank,
                    "original_rank": m.original_rank,
                    "similarity": round(m.similarity_score, 3),
                    "relevance": round(m.relevance_score, 3),
                    "fused": round(m.fused_score, 3),
                }
                for m in outcome.movements[:RERANK_LOG_TOP_N]
            ],
        )
