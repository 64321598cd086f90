import json
import uuid
from datetime import datetime, timezone
from typing import Any

import aiosqlite

from app.errors import DocumentNotFound

CREATE_DOCUMENTS = """
CREATE TABLE IF NOT EXISTS documents (
    collection TEXT NOT NULL,
    id TEXT NOT NULL,
    data TEXT NOT NULL,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    PRIMARY KEY (collection, id)
)
"""

CREATE_COLLECTION_INDEX = """
CREATE INDEX IF NOT EXISTS idx_documents_collection ON documents (collection)
"""

_DDL = [CREATE_DOCUMENTS, CREATE_COLLECTION_INDEX]

_UPSERT = (
    "INSERT INTO documents (collection, id, data) VALUES (?, ?, ?) "
    "ON CONFLICT (collection, id) DO UPDATE SET data = excluded.data"
)


def utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _to_doc(doc_id: str, raw: str) -> dict:
    return {"id": doc_id, **json.loads(raw)}


def _strip_id(data: dict) -> dict:
    return {k: v for k, v in data.items() if k != "id"}


async def _read(conn: aiosqlite.Connection, collection: str, doc_id: str) -> dict | None:
    cursor = await conn.execute(
        "SELECT data FROM documents WHERE collection = ? AND id = ?",
        (collection, doc_id),
    )
    row = await cursor.fetchone()
    return json.loads(row["data"]) if row else None


async def _apply_update(
    conn: aiosqlite.Connection, collection: str, doc_id: str, fields: dict
) -> None:
    current = await _read(conn, collection, doc_id)
    if current is None:
        raise DocumentNotFound(collection, doc_id)
    current.update(_strip_id(fields))
    await conn.execute(
        "UPDATE documents SET data = ? WHERE collection = ? AND id = ?",
        (json.dumps(current), collection, doc_id),
    )


async def _apply_set(
    conn: aiosqlite.Connection, collection: str, doc_id: str, data: dict, merge: bool
) -> None:
    payload = _strip_id(data)
    if merge:
        current = await _read(conn, collection, doc_id) or {}
        current.update(payload)
        payload = current
    await conn.execute(_UPSERT, (collection, doc_id, json.dumps(payload)))


class DocumentStore:
    """Collection-style document database backed by a single SQLite table.

    Documents are JSON objects addressed by ``(collection, id)``. Reads return
    plain dicts with the document id merged in under ``"id"``. The store is
    built once by the process entry point and handed to every component.
    """

    def __init__(self, db_path: str) -> None:
        self.db_path = db_path

    async def _connect(self) -> aiosqlite.Connection:
        conn = await aiosqlite.connect(self.db_path)
        await conn.execute("PRAGMA busy_timeout = 5000")
        conn.row_factory = aiosqlite.Row
        return conn

    async def init(self) -> None:
        """Create the schema. Called once at server startup via FastAPI lifespan."""
        conn = await self._connect()
        try:
            for stmt in _DDL:
                await conn.execute(stmt)
            await conn.commit()
        finally:
            await conn.close()

    @staticmethod
    def new_id() -> str:
        return uuid.uuid4().hex[:20]

    # ------------------------------------------------------------------
    # Single-document operations
    # ------------------------------------------------------------------

    async def get(self, collection: str, doc_id: str) -> dict | None:
        conn = await self._connect()
        try:
            data = await _read(conn, collection, doc_id)
            return {"id": doc_id, **data} if data is not None else None
        finally:
            await conn.close()

    async def set(
        self, collection: str, doc_id: str, data: dict, merge: bool = False
    ) -> None:
        conn = await self._connect()
        try:
            await _apply_set(conn, collection, doc_id, data, merge)
            await conn.commit()
        finally:
            await conn.close()

    async def update(self, collection: str, doc_id: str, fields: dict) -> None:
        """Merge *fields* into an existing document. Raises DocumentNotFound."""
        conn = await self._connect()
        try:
            await _apply_update(conn, collection, doc_id, fields)
            await conn.commit()
        finally:
            await conn.close()

    async def delete(self, collection: str, doc_id: str) -> None:
        conn = await self._connect()
        try:
            await conn.execute(
                "DELETE FROM documents WHERE collection = ? AND id = ?",
                (collection, doc_id),
            )
            await conn.commit()
        finally:
            await conn.close()

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def where(self, collection: str, field: str, op: str, value: Any) -> list[dict]:
        """Query by field equality (``==``) or membership (``in``).

        Rows come back in storage order, which callers must not rely on.
        """
        if op == "==":
            values = [value]
        elif op == "in":
            values = list(value)
            if not values:
                return []
        else:
            raise ValueError(f"Unsupported query operator: {op}")

        placeholders = ", ".join("?" for _ in values)
        conn = await self._connect()
        try:
            rows = await conn.execute(
                "SELECT id, data FROM documents "
                f"WHERE collection = ? AND json_extract(data, ?) IN ({placeholders})",
                (collection, f"$.{field}", *values),
            )
            return [_to_doc(row["id"], row["data"]) for row in await rows.fetchall()]
        finally:
            await conn.close()

    async def all(self, collection: str) -> list[dict]:
        conn = await self._connect()
        try:
            rows = await conn.execute(
                "SELECT id, data FROM documents WHERE collection = ?", (collection,)
            )
            return [_to_doc(row["id"], row["data"]) for row in await rows.fetchall()]
        finally:
            await conn.close()

    def batch(self) -> "WriteBatch":
        return WriteBatch(self)


class WriteBatch:
    """Queue of writes applied atomically by :meth:`commit`."""

    def __init__(self, store: DocumentStore) -> None:
        self._store = store
        self._ops: list[tuple] = []

    def __len__(self) -> int:
        return len(self._ops)

    def set(self, collection: str, doc_id: str, data: dict, merge: bool = False) -> None:
        self._ops.append(("set", collection, doc_id, data, merge))

    def update(self, collection: str, doc_id: str, fields: dict) -> None:
        self._ops.append(("update", collection, doc_id, fields))

    def delete(self, collection: str, doc_id: str) -> None:
        self._ops.append(("delete", collection, doc_id))

    async def commit(self) -> None:
        if not self._ops:
            return
        conn = await self._store._connect()
        try:
            for op in self._ops:
                kind, collection, doc_id = op[:3]
                if kind == "set":
                    await _apply_set(conn, collection, doc_id, op[3], op[4])
                elif kind == "update":
                    await _apply_update(conn, collection, doc_id, op[3])
                else:
                    await conn.execute(
                        "DELETE FROM documents WHERE collection = ? AND id = ?",
                        (collection, doc_id),
                    )
            await conn.commit()
        except Exception:
            await conn.rollback()
            raise
        finally:
            await conn.close()
        self._ops.clear()
