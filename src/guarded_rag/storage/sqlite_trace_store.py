"""SQLite-backed pipeline trace store for observability."""

from __future__ import annotations

import json
from datetime import datetime, timezone

import aiosqlite

from guarded_rag.models.domain import Trace
from guarded_rag.storage.migrations import initialize_trace_db


class SQLiteTraceStore:
    def __init__(self, db_path: str) -> None:
        self._db_path = db_path

    async def initialize(self) -> None:
        await initialize_trace_db(self._db_path)

    async def save_trace(self, trace: Trace) -> None:
        async with aiosqlite.connect(self._db_path) as db:
            await db.execute(
                "INSERT OR REPLACE INTO traces "
                "(trace_id, question, collection_id, timestamp, latency_ms, outcome, "
                "error_code, context_chunks_used, rerank_degraded, spans) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    trace.trace_id,
                    trace.question,
                    trace.collection_id,
                    trace.timestamp.isoformat(),
                    trace.latency_ms,
                    trace.outcome,
                    trace.error_code,
                    trace.context_chunks_used,
                    int(trace.rerank_degraded),
                    json.dumps(trace.spans),
                ),
            )
            await db.commit()

    async def get_trace(self, trace_id: str) -> Trace | None:
        async with aiosqlite.connect(self._db_path) as db:
            db.row_factory = aiosqlite.Row
            async with db.execute("SELECT * FROM traces WHERE trace_id = ?", (trace_id,)) as cursor:
                row = await cursor.fetchone()
                if row is None:
                    return None
                return self._row_to_trace(row)

    async def get_recent_traces(self, limit: int = 100) -> list[Trace]:
        async with aiosqlite.connect(self._db_path) as db:
            db.row_factory = aiosqlite.Row
            async with db.execute(
                "SELECT * FROM traces ORDER BY timestamp DESC LIMIT ?", (limit,)
            ) as cursor:
                rows = await cursor.fetchall()
                return [self._row_to_trace(row) for row in rows]

    @staticmethod
    def _row_to_trace(row: aiosqlite.Row) -> Trace:
        return Trace(
            trace_id=row["trace_id"],
            question=row["question"],
            collection_id=row["collection_id"],
            timestamp=datetime.fromisoformat(row["timestamp"]).replace(tzinfo=timezone.utc),
            latency_ms=row["latency_ms"],
            outcome=row["outcome"],
            error_code=row["error_code"],
            context_chunks_used=row["context_chunks_used"],
            rerank_degraded=bool(row["rerank_degraded"]),
            spans=json.loads(row["spans"]),
        )
