"""Integration tests for SQLite collection and trace stores."""

from datetime import datetime, timezone
from uuid import uuid4

import pytest

from guarded_rag.models.domain import Collection, Trace
from guarded_rag.storage.sqlite_collection_store import SQLiteCollectionStore
from guarded_rag.storage.sqlite_trace_store import SQLiteTraceStore


@pytest.fixture
async def collection_store(tmp_path):
    store = SQLiteCollectionStore(str(tmp_path / "collections.db"))
    await store.initialize()
    return store


@pytest.fixture
async def trace_store(tmp_path):
    store = SQLiteTraceStore(str(tmp_path / "traces.db"))
    await store.initialize()
    return store


@pytest.mark.asyncio
async def test_save_and_find_collection(collection_store):
    collection = Collection(
        collection_id="kb-1",
        owner_id="user-1",
        status="ready",
        file_name="handbook.pdf",
    )
    await collection_store.save_collection(collection)

    found = await collection_store.find_collection("kb-1")
    assert found is not None
    assert found.owner_id == "user-1"
    assert found.status == "ready"
    assert found.label == "handbook.pdf"
    assert found.created_at.tzinfo is not None


@pytest.mark.asyncio
async def test_find_missing_collection(collection_store):
    assert await collection_store.find_collection("nope") is None


@pytest.mark.asyncio
async def test_status_update_replaces_row(collection_store):
    await collection_store.save_collection(
        Collection(collection_id="kb-1", owner_id="user-1", status="processing")
    )
    await collection_store.save_collection(
        Collection(collection_id="kb-1", owner_id="user-1", status="ready")
    )
    assert (await collection_store.find_collection("kb-1")).status == "ready"
    assert await collection_store.count_collections() == 1


@pytest.mark.asyncio
async def test_list_collections_by_owner(collection_store):
    for i, owner in enumerate(["user-1", "user-2", "user-1"]):
        await collection_store.save_collection(
            Collection(collection_id=f"kb-{i}", owner_id=owner, status="ready")
        )
    owned = await collection_store.list_collections("user-1")
    assert sorted(c.collection_id for c in owned) == ["kb-0", "kb-2"]


@pytest.mark.asyncio
async def test_save_and_get_trace(trace_store):
    trace = Trace(
        trace_id=str(uuid4()),
        question="How long do refunds take?",
        collection_id="kb-1",
        timestamp=datetime.now(timezone.utc),
        latency_ms=150.0,
        outcome="answered",
        error_code=None,
        context_chunks_used=3,
        rerank_degraded=True,
        spans=[{"name": "retrieval", "duration_ms": 50.0}],
    )
    await trace_store.save_trace(trace)
    retrieved = await trace_store.get_trace(trace.trace_id)
    assert retrieved is not None
    assert retrieved.question == "How long do refunds take?"
    assert retrieved.context_chunks_used == 3
    assert retrieved.rerank_degraded is True
    assert retrieved.spans[0]["name"] == "retrieval"


@pytest.mark.asyncio
async def test_recent_traces(trace_store):
    for i in range(5):
        trace = Trace(
            trace_id=str(uuid4()),
            question=f"Question {i}",
            collection_id="kb-1",
            timestamp=datetime.now(timezone.utc),
            latency_ms=100.0,
            outcome="error",
            error_code="NOT_FOUND",
            context_chunks_used=0,
            rerank_degraded=False,
            spans=[],
        )
        await trace_store.save_trace(trace)

    recent = await trace_store.get_recent_traces(limit=3)
    assert len(recent) == 3
    assert recent[0].error_code == "NOT_FOUND"
