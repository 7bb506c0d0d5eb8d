"""Protocol for reranking providers."""

from __future__ import annotations

from typing import Protocol

from guarded_rag.models.domain import Candidate, RerankOutcome


class Reranker(Protocol):
    async def rerank(
        self,
        question: str,
        candidates: list[Candidate],
        max_results: int,
    ) -> list[Candidate]: ...

    async def rerank_with_report(
        self,
        question: str,
        candidates: list[Candidate],
        max_results: int,
    ) -> RerankOutcome: ...
