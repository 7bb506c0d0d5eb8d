"""FastAPI dependency injection helpers."""

from __future__ import annotations

from fastapi import Request

from guarded_rag.config.settings import Settings
from guarded_rag.guardrails.policy_engine import PolicyEngine
from guarded_rag.observability.events import StructlogEventSink
from guarded_rag.pipeline.query_pipeline import QueryPipeline
from guarded_rag.storage.sqlite_collection_store import SQLiteCollectionStore
from guarded_rag.vectorstore.faiss_store import FAISSSimilaritySearch


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_query_pipeline(request: Request) -> QueryPipeline:
    return request.app.state.query_pipeline


def get_policy_engine(request: Request) -> PolicyEngine:
    return request.app.state.policy_engine


def get_collection_store(request: Request) -> SQLiteCollectionStore:
    return request.app.state.collection_store


def get_similarity_search(request: Request) -> FAISSSimilaritySearch:
    return request.app.state.similarity_search


def get_event_sink(request: Request) -> StructlogEventSink:
    return request.app.state.event_sink


def get_request_id(request: Request) -> str | None:
    return getattr(request.state, "request_id", None)
