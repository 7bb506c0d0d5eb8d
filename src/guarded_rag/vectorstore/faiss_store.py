"""Namespaced FAISS similarity search: one inner-product index per (user namespace, collection)."""

from __future__ import annotations

import asyncio
import json
import os
from dataclasses import asdict, dataclass
from pathlib import Path

import faiss
import numpy as np

from guarded_rag.exceptions import RetrievalError
from guarded_rag.models.domain import Candidate
from guarded_rag.observability.logger import get_logger

logger = get_logger("faiss_store")

_MANIFEST = "manifest.json"


@dataclass(frozen=True)
class IndexedPassage:
    passage_id: str
    text: str
    chunk_index: int
    document_label: str | None = None


class _CollectionIndex:
    def __init__(self, dimensions: int) -> None:
        self.index = faiss.IndexIDMap(faiss.IndexFlatIP(dimensions))
        self.passages: dict[int, IndexedPassage] = {}
        self.id_by_passage: dict[str, int] = {}
        self.next_id = 0


class FAISSSimilaritySearch:
    def __init__(self, dimensions: int, index_path: str | None = None) -> None:
        self._dimensions = dimensions
        self._index_path = index_path
        self._collections: dict[str, _CollectionIndex] = {}
        self._write_lock = asyncio.Lock()

        if index_path:
            self._try_load(index_path)

    @staticmethod
    def _key(namespace: str, collection_id: str) -> str:
        return f"{namespace}::{collection_id}"

    def add(
        self,
        namespace: str,
        collection_id: str,
        passages: list[IndexedPassage],
        embeddings: np.ndarray,
    ) -> None:
        if len(passages) == 0:
            return
        if len(passages) != len(embeddings):
            raise ValueError("passages and embeddings must have the same length")

        key = self._key(namespace, collection_id)
        coll = self._collections.setdefault(key, _CollectionIndex(self._dimensions))

        embeddings = np.array(embeddings, dtype=np.float32)
        faiss.normalize_L2(embeddings)

        # Re-adding a passage id replaces the previous vector
        replaced = [
            coll.id_by_passage[p.passage_id]
            for p in passages
            if p.passage_id in coll.id_by_passage
        ]
        if replaced:
            coll.index.remove_ids(np.array(replaced, dtype=np.int64))

        int_ids = []
        for passage in passages:
            int_id = coll.id_by_passage.get(passage.passage_id)
            if int_id is None:
                int_id = coll.next_id
                coll.next_id += 1
                coll.id_by_passage[passage.passage_id] = int_id
            coll.passages[int_id] = passage
            int_ids.append(int_id)

        coll.index.add_with_ids(embeddings, np.array(int_ids, dtype=np.int64))
        logger.info(
            "faiss_added",
            namespace=namespace,
            collection_id=collection_id,
            count=len(passages),
            total=coll.index.ntotal,
        )

    async def add_safe(
        self,
        namespace: str,
        collection_id: str,
        passages: list[IndexedPassage],
        embeddings: np.ndarray,
    ) -> None:
        async with self._write_lock:
            await asyncio.to_thread(self.add, namespace, collection_id, passages, embeddings)

    def search(
        self,
        namespace: str,
        collection_id: str,
        query_embedding: list[float],
        limit: int,
        min_score: float,
    ) -> list[Candidate]:
        coll = self._collections.get(self._key(namespace, collection_id))
        if coll is None or coll.index.ntotal == 0 or limit <= 0:
            return []

        query = np.array(query_embedding, dtype=np.float32).reshape(1, -1)
        if query.shape[1] != self._dimensions:
            raise RetrievalError(
                f"Query embedding has {query.shape[1]} dimensions, expected {self._dimensions}"
            )
        faiss.normalize_L2(query)
        scores, indices = coll.index.search(query, min(limit, coll.index.ntotal))

        results = []
        for idx, score in zip(indices[0], scores[0]):
            idx = int(idx)
            if idx == -1 or float(score) < min_score:
                continue
            passage = coll.passages.get(idx)
            if passage:
                results.append(
                    Candidate(
                        candidate_id=passage.passage_id,
                        text=passage.text,
                        score=float(score),
                        chunk_index=passage.chunk_index,
                        document_label=passage.document_label,
                    )
                )
        return results

    async def query(
        self,
        namespace: str,
        collection_id: str,
        query_embedding: list[float],
        limit: int,
        min_score: float,
    ) -> list[Candidate]:
        candidates = await asyncio.to_thread(
            self.search, namespace, collection_id, query_embedding, limit, min_score
        )
        logger.info(
            "similarity_search",
            collection_id=collection_id,
            limit=limit,
            min_score=min_score,
            returned=len(candidates),
        )
        return candidates

    def save(self, path: str | None = None) -> None:
        path = path or self._index_path
        if not path:
            return
        Path(path).mkdir(parents=True, exist_ok=True)
        manifest = {}
        for i, (key, coll) in enumerate(sorted(self._collections.items())):
            index_file = f"collection_{i}.faiss"
            faiss.write_index(coll.index, os.path.join(path, index_file))
            manifest[key] = {
                "index_file": index_file,
                "next_id": coll.next_id,
                "passages": {str(k): asdict(p) for k, p in coll.passages.items()},
            }
        with open(os.path.join(path, _MANIFEST), "w") as f:
            json.dump(manifest, f)
        logger.info("faiss_saved", path=path, collections=len(manifest), size=self.size)

    def _try_load(self, path: str) -> None:
        manifest_file = os.path.join(path, _MANIFEST)
        if not os.path.exists(manifest_file):
            return
        with open(manifest_file) as f:
            manifest = json.load(f)
        for key, entry in manifest.items():
            coll = _CollectionIndex(self._dimensions)
            coll.index = faiss.read_index(os.path.join(path, entry["index_file"]))
            coll.next_id = entry["next_id"]
            coll.passages = {
                int(k): IndexedPassage(**v) for k, v in entry["passages"].items()
            }
            coll.id_by_passage = {p.passage_id: k for k, p in coll.passages.items()}
            self._collections[key] = coll
        logger.info("faiss_loaded", path=path, collections=len(self._collections), size=self.size)

    @property
    def size(self) -> int:
        return sum(c.index.ntotal for c in self._collections.values())
