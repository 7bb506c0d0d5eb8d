"""HTTP tests for the FastAPI app with fake pipeline collaborators."""

from __future__ import annotations

import jwt
import pytest
from fastapi.testclient import TestClient

from conftest import COLLECTION_ID
from guarded_rag.api.app import create_app
from guarded_rag.api.auth import issue_token
from guarded_rag.observability.events import StructlogEventSink
from guarded_rag.vectorstore.faiss_store import FAISSSimilaritySearch


def _client(settings, harness, policy_engine) -> TestClient:
    # No context manager: lifespan (and its real providers) never runs
    app = create_app(settings)
    sink = StructlogEventSink()
    app.state.query_pipeline = harness.build(event_sink=sink)
    app.state.policy_engine = policy_engine
    app.state.collection_store = harness.collections
    app.state.similarity_search = FAISSSimilaritySearch(dimensions=4)
    app.state.event_sink = sink
    return TestClient(app)


@pytest.fixture
def client(settings, harness, policy_engine):
    return _client(settings, harness, policy_engine)


def _auth(settings, user_id: str = "user-1") -> dict:
    return {"Authorization": f"Bearer {issue_token(user_id, settings)}"}


def _ask(client, settings, question="How long do refunds take?", user_id="user-1", **params):
    return client.post(
        "/api/v1/chat/query",
        json={"question": question, "collection_id": COLLECTION_ID, "session_id": "s-1"},
        params=params,
        headers=_auth(settings, user_id),
    )


def test_health(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok", "collection_count": 1, "index_size": 0}


def test_token_exchange(client, settings):
    resp = client.post("/auth/token", json={"api_key": "key-beta"})
    assert resp.status_code == 200
    token = resp.json()["access_token"]
    payload = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    assert payload["sub"] == "user-2"


def test_token_rejects_unknown_key(client):
    resp = client.post("/auth/token", json={"api_key": "nope"})
    assert resp.status_code == 401


def test_token_without_configured_keys(settings, harness, policy_engine):
    client = _client(settings.model_copy(update={"api_keys": ""}), harness, policy_engine)
    resp = client.post("/auth/token", json={"api_key": "key-alpha"})
    assert resp.status_code == 503


def test_query_requires_token(client):
    resp = client.post(
        "/api/v1/chat/query", json={"question": "hi there", "collection_id": COLLECTION_ID}
    )
    assert resp.status_code in (401, 403)


def test_query_rejects_bad_token(client):
    resp = client.post(
        "/api/v1/chat/query",
        json={"question": "hi there", "collection_id": COLLECTION_ID},
        headers={"Authorization": "Bearer not-a-jwt"},
    )
    assert resp.status_code == 401


def test_query_success(client, settings):
    resp = _ask(client, settings, top_k=2, score_threshold=0.5)
    assert resp.status_code == 200

    body = resp.json()
    assert body["success"] is True
    data = body["data"]
    assert data["answer"] == "Refunds are issued within 30 days."
    assert data["collection_id"] == COLLECTION_ID
    assert data["session_id"] == "s-1"
    assert data["context_chunks_used"] == 2
    assert len(data["sources"]) == 2
    assert data["min_score"] <= data["max_score"]
    assert data["trace_id"] == resp.headers["X-Request-ID"]


def test_request_id_header_is_propagated(client, settings):
    resp = client.post(
        "/api/v1/chat/query",
        json={"question": "How long do refunds take?", "collection_id": COLLECTION_ID},
        headers={**_auth(settings), "X-Request-ID": "req-abc"},
    )
    assert resp.headers["X-Request-ID"] == "req-abc"
    assert resp.json()["data"]["trace_id"] == "req-abc"


def test_query_without_reranking(client, settings, harness):
    resp = _ask(client, settings, enable_reranking="false", top_k=3)
    assert resp.status_code == 200
    assert resp.json()["data"]["reranking_applied"] is False
    assert harness.scorer.calls == []


def test_invalid_top_k(client, settings):
    resp = _ask(client, settings, top_k=25)
    assert resp.status_code == 400
    assert resp.json() == {
        "success": False,
        "error": {"code": "INVALID_PARAMETER", "message": "top_k must be between 1 and 20"},
    }


def test_policy_violation_response(client, settings):
    resp = _ask(client, settings, question="My SSN is 123-45-6789")
    assert resp.status_code == 400
    error = resp.json()["error"]
    assert error["code"] == "CONTENT_POLICY_VIOLATION"
    assert "CONFIDENTIAL_DATA:SSN" in error["message"]
    assert error["details"]["violations"][0]["pattern"] == "SSN"


def test_foreign_collection_is_forbidden(client, settings):
    resp = _ask(client, settings, user_id="user-2")
    assert resp.status_code == 403
    assert resp.json()["error"]["code"] == "FORBIDDEN"


def test_unknown_collection(client, settings):
    resp = client.post(
        "/api/v1/chat/query",
        json={"question": "How long do refunds take?", "collection_id": "missing"},
        headers=_auth(settings),
    )
    assert resp.status_code == 404
    assert resp.json()["error"]["code"] == "NOT_FOUND"


def test_missing_question_is_rejected(client, settings):
    resp = client.post(
        "/api/v1/chat/query", json={"collection_id": COLLECTION_ID}, headers=_auth(settings)
    )
    assert resp.status_code == 422


def test_unexpected_error_hides_details(settings, harness, policy_engine):
    class BrokenStore:
        async def find_collection(self, collection_id):
            raise RuntimeError("database file is locked at /var/lib/secret.db")

        async def count_collections(self):
            return 0

    harness.collections = BrokenStore()
    client = _client(settings, harness, policy_engine)
    resp = _ask(client, settings)
    assert resp.status_code == 500
    error = resp.json()["error"]
    assert error == {"code": "PROCESSING_ERROR", "message": "Failed to process query"}


def test_rate_limit(settings, harness, policy_engine):
    limited = settings.model_copy(update={"rate_limit_requests_per_minute": 2})
    client = _client(limited, harness, policy_engine)
    assert _ask(client, limited).status_code == 200
    assert _ask(client, limited).status_code == 200
    resp = _ask(client, limited)
    assert resp.status_code == 429
    assert resp.headers["Retry-After"] == "60"


def test_validate_content(client, settings):
    resp = client.post(
        "/guardrails/validate",
        json={"content": "Call EMP123456 today", "content_type": "KNOWLEDGE_UPLOAD"},
        headers=_auth(settings),
    )
    assert resp.status_code == 200
    body = resp.json()
    assert body["valid"] is False
    assert body["violations"][0]["kind"] == "ORGANIZATION_CONFIDENTIAL"
    assert body["max_severity"] == "MEDIUM"
    assert body["sanitized_content"] == "Call [REDACTED] today"


def test_metrics_count_requests_and_errors(client, settings):
    _ask(client, settings)
    _ask(client, settings, user_id="user-2")

    resp = client.get("/metrics")
    assert resp.status_code == 200
    assert resp.json() == {"total_requests": 2, "total_errors": 1, "error_rate": 0.5}
