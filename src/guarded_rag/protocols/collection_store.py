"""Protocol for collection lookup (ownership and readiness)."""

from __future__ import annotations

from typing import Protocol

from guarded_rag.models.domain import Collection


class CollectionStore(Protocol):
    async def find_collection(self, collection_id: str) -> Collection | None: ...
