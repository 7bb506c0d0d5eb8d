"""Idempotent database schema creation."""

from __future__ import annotations

import aiosqlite

COLLECTIONS_TABLE = """
CREATE TABLE IF NOT EXISTS collections (
    collection_id TEXT PRIMARY KEY,
    owner_id TEXT NOT NULL,
    status TEXT NOT NULL,
    name TEXT,
    file_name TEXT,
    created_at TEXT NOT NULL
)
"""

COLLECTIONS_OWNER_INDEX = """
CREATE INDEX IF NOT EXISTS idx_collections_owner_id ON collections(owner_id)
"""

TRACES_TABLE = """
CREATE TABLE IF NOT EXISTS traces (
    trace_id TEXT PRIMARY KEY,
    question TEXT NOT NULL,
    collection_id TEXT NOT NULL,
    timestamp TEXT NOT NULL,
    latency_ms REAL NOT NULL,
    outcome TEXT NOT NULL,
    error_code TEXT,
    context_chunks_used INTEGER NOT NULL DEFAULT 0,
    rerank_degraded INTEGER NOT NULL DEFAULT 0,
    spans TEXT NOT NULL DEFAULT '[]'
)
"""

TRACES_TIMESTAMP_INDEX = """
CREATE INDEX IF NOT EXISTS idx_traces_timestamp ON traces(timestamp)
"""


async def initialize_collection_db(db_path: str) -> None:
    async with aiosqlite.connect(db_path) as db:
        await db.execute(COLLECTIONS_TABLE)
        await db.execute(COLLECTIONS_OWNER_INDEX)
        await db.commit()


async def initialize_trace_db(db_path: str) -> None:
    async with aiosqlite.connect(db_path) as db:
        await db.execute(TRACES_TABLE)
        await db.execute(TRACES_TIMESTAMP_INDEX)
        await db.commit()
