"""Shared test fixtures and fake collaborators."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from pathlib import Path

import pytest

from guarded_rag.config.settings import Settings
from guarded_rag.guardrails.policy_config import default_policy_config
from guarded_rag.guardrails.policy_engine import PolicyEngine
from guarded_rag.models.domain import Candidate, Collection, RelevanceJudgment
from guarded_rag.observability.events import ObservabilityEvent
from guarded_rag.pipeline.query_pipeline import QueryPipeline
from guarded_rag.query.expansion import QueryExpander
from guarded_rag.retrieval.reranker_llm import LLMReranker

OWNER = "user-1"
COLLECTION_ID = "kb-handbook"


class FakeLLM:
    """Scripted LLM: ``reply`` is a string or a callable of the prompt."""

    def __init__(self, reply="7", error: Exception | None = None, delay: float = 0.0):
        self.reply = reply
        self.error = error
        self.delay = delay
        self.prompts: list[str] = []

    @property
    def model_name(self) -> str:
        return "fake-llm"

    async def generate(self, prompt, system=None, temperature=0.1, max_tokens=4096) -> str:
        self.prompts.append(prompt)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.reply(prompt) if callable(self.reply) else self.reply


class FakeScorer:
    """Relevance by passage text; unknown passages get ``default``."""

    def __init__(self, scores: dict[str, float] | None = None, default: float = 0.5):
        self.scores = scores or {}
        self.default = default
        self.calls: list[str] = []

    async def judge(self, question: str, passage: str) -> RelevanceJudgment:
        self.calls.append(passage)
        return RelevanceJudgment(score=self.scores.get(passage, self.default), fallback=False)

    async def score(self, question: str, passage: str) -> float:
        return (await self.judge(question, passage)).score


class FakeEmbedder:
    def __init__(self, error: Exception | None = None):
        self.error = error
        self.texts: list[str] = []

    @property
    def dimensions(self) -> int:
        return 4

    async def embed_query(self, query: str) -> list[float]:
        self.texts.append(query)
        if self.error is not None:
            raise self.error
        return [0.1, 0.2, 0.3, 0.4]


class FakeSearch:
    def __init__(self, candidates: list[Candidate] | None = None, error: Exception | None = None):
        self.candidates = candidates or []
        self.error = error
        self.calls: list[dict] = []

    async def query(self, namespace, collection_id, query_embedding, limit, min_score):
        self.calls.append(
            {
                "namespace": namespace,
                "collection_id": collection_id,
                "limit": limit,
                "min_score": min_score,
            }
        )
        if self.error is not None:
            raise self.error
        return [c for c in self.candidates if c.score >= min_score][:limit]


class FakeGenerator:
    def __init__(self, answer: str = "Refunds are issued within 30 days.", error=None):
        self.answer = answer
        self.error = error
        self.calls: list[tuple[str, str]] = []

    @property
    def model_name(self) -> str:
        return "fake-generator"

    async def generate(self, context: str, question: str) -> str:
        self.calls.append((context, question))
        if self.error is not None:
            raise self.error
        return self.answer


class FakeCollectionStore:
    def __init__(self, *collections: Collection):
        self.collections = {c.collection_id: c for c in collections}

    async def find_collection(self, collection_id: str) -> Collection | None:
        return self.collections.get(collection_id)

    async def count_collections(self) -> int:
        return len(self.collections)


class RecordingSink:
    def __init__(self):
        self.events: list[ObservabilityEvent] = []

    def emit(self, event: ObservabilityEvent) -> None:
        self.events.append(event)

    def of_type(self, event_type: str) -> list[ObservabilityEvent]:
        return [e for e in self.events if e.event_type == event_type]


class FailingSink:
    def emit(self, event: ObservabilityEvent) -> None:
        raise RuntimeError("sink unavailable")


@dataclass
class PipelineHarness:
    search: FakeSearch
    embedder: FakeEmbedder = field(default_factory=FakeEmbedder)
    generator: FakeGenerator = field(default_factory=FakeGenerator)
    scorer: FakeScorer = field(default_factory=FakeScorer)
    collections: FakeCollectionStore = field(default_factory=FakeCollectionStore)
    sink: RecordingSink = field(default_factory=RecordingSink)
    policy: PolicyEngine = field(default_factory=lambda: PolicyEngine(default_policy_config()))

    def build(self, event_sink=..., trace_store=None) -> QueryPipeline:
        """Pass ``event_sink=None`` to run without a sink."""
        return QueryPipeline(
            policy_engine=self.policy,
            query_expander=QueryExpander(),
            embedder=self.embedder,
            similarity_search=self.search,
            reranker=LLMReranker(self.scorer),
            answer_generator=self.generator,
            collection_store=self.collections,
            event_sink=self.sink if event_sink is ... else event_sink,
            trace_store=trace_store,
        )


@pytest.fixture
def settings(tmp_path: Path):
    """Test settings with temp paths."""
    return Settings(
        openai_api_key="test-key",
        google_api_key="test-key",
        sqlite_collection_db_path=str(tmp_path / "collections.db"),
        sqlite_trace_db_path=str(tmp_path / "traces.db"),
        faiss_index_path=str(tmp_path / "faiss_index"),
        api_keys="key-alpha:user-1,key-beta:user-2",
        jwt_secret="test-secret",
        json_logs=False,
    )


@pytest.fixture
def policy_engine():
    return PolicyEngine(default_policy_config())


@pytest.fixture
def sample_candidates():
    """Retrieved passages in similarity order, free of policy triggers."""
    texts = [
        "Refunds are issued within 30 days of purchase.",
        "Store credit can replace a refund on request.",
        "Shipping labels are printed from the orders page.",
        "Gift cards never expire and carry no fees.",
    ]
    return [
        Candidate(
            candidate_id=f"vec-{i}",
            text=text,
            score=round(0.9 - i * 0.1, 2),
            chunk_index=i,
            document_label="refund_policy.md" if i < 2 else None,
        )
        for i, text in enumerate(texts)
    ]


@pytest.fixture
def ready_collection():
    return Collection(
        collection_id=COLLECTION_ID,
        owner_id=OWNER,
        status="ready",
        name="Support handbook",
    )


@pytest.fixture
def harness(sample_candidates, ready_collection):
    return PipelineHarness(
        search=FakeSearch(sample_candidates),
        collections=FakeCollectionStore(ready_collection),
    )
