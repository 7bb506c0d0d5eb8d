"""SQLite-backed collection metadata store (ownership and readiness)."""

from __future__ import annotations

from datetime import datetime, timezone

import aiosqlite

from guarded_rag.models.domain import Collection
from guarded_rag.storage.migrations import initialize_collection_db


class SQLiteCollectionStore:
    def __init__(self, db_path: str) -> None:
        self._db_path = db_path

    async def initialize(self) -> None:
        await initialize_collection_db(self._db_path)

    async def save_collection(self, collection: Collection) -> str:
        async with aiosqlite.connect(self._db_path) as db:
            await db.execute(
                "INSERT OR REPLACE INTO collections "
                "(collection_id, owner_id, status, name, file_name, created_at) "
                "VALUES (?, ?, ?, ?, ?, ?)",
                (
                    collection.collection_id,
                    collection.owner_id,
                    collection.status,
                    collection.name,
                    collection.file_name,
                    collection.created_at.isoformat(),
                ),
            )
            await db.commit()
        return collection.collection_id

    async def find_collection(self, collection_id: str) -> Collection | None:
        async with aiosqlite.connect(self._db_path) as db:
            db.row_factory = aiosqlite.Row
            async with db.execute(
                "SELECT * FROM collections WHERE collection_id = ?", (collection_id,)
            ) as cursor:
                row = await cursor.fetchone()
                if row is None:
                    return None
                return self._row_to_collection(row)

    async def list_collections(self, owner_id: str) -> list[Collection]:
        async with aiosqlite.connect(self._db_path) as db:
            db.row_factory = aiosqlite.Row
            async with db.execute(
                "SELECT * FROM collections WHERE owner_id = ? ORDER BY created_at",
                (owner_id,),
            ) as cursor:
                rows = await cursor.fetchall()
                return [self._row_to_collection(row) for row in rows]

    async def count_collections(self) -> int:
        async with aiosqlite.connect(self._db_path) as db:
            async with db.execute("SELECT COUNT(*) FROM collections") as cursor:
                row = await cursor.fetchone()
                return row[0] if row else 0

    @staticmethod
    def _row_to_collection(row: aiosqlite.Row) -> Collection:
        created_at = datetime.fromisoformat(row["created_at"])
        if created_at.tzinfo is None:
            created_at = created_at.replace(tzinfo=timezone.utc)
        return Collection(
            collection_id=row["collection_id"],
            owner_id=row["owner_id"],
            status=row["status"],
            name=row["name"],
            file_name=row["file_name"],
            created_at=created_at,
        )
