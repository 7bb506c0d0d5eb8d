"""Protocol for the similarity search collaborator."""

from __future__ import annotations

from typing import Protocol

from guarded_rag.models.domain import Candidate


class SimilaritySearch(Protocol):
    async def query(
        self,
        namespace: str,
        collection_id: str,
        query_embedding: list[float],
        limit: int,
        min_score: float,
    ) -> list[Candidate]:
        """Return at most ``limit`` candidates scoring >= ``min_score``, best first."""
        ...
