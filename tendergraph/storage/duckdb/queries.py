"""
DuckDB Query Layer

Relational tables for documents, chunks, entities and relations, with
per-owner filtering on every query.
"""

import asyncio
import json
import threading
from pathlib import Path
from typing import Any

import duckdb

from tendergraph.config import RAGConfig
from tendergraph.types import Chunk, DocumentRecord, Entity, Relation

_SCHEMA = [
    """
    CREATE TABLE IF NOT EXISTS documents (
        id VARCHAR NOT NULL,
        owner_id VARCHAR NOT NULL,
        file_name VARCHAR,
        media_type VARCHAR,
        module VARCHAR,
        tender_id VARCHAR,
        status VARCHAR NOT NULL,
        chunks_count INTEGER DEFAULT 0,
        processing_error VARCHAR,
        attempts INTEGER DEFAULT 0,
        created_at VARCHAR,
        updated_at VARCHAR
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS chunks (
        id VARCHAR NOT NULL,
        document_id VARCHAR NOT NULL,
        owner_id VARCHAR NOT NULL,
        chunk_index INTEGER NOT NULL,
        text_content VARCHAR NOT NULL,
        char_start INTEGER NOT NULL,
        char_end INTEGER NOT NULL,
        metadata VARCHAR,
        module VARCHAR,
        tender_id VARCHAR,
        created_at VARCHAR
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS entities (
        id VARCHAR NOT NULL,
        owner_id VARCHAR NOT NULL,
        entity_type VARCHAR NOT NULL,
        name VARCHAR NOT NULL,
        normalized_name VARCHAR NOT NULL,
        external_id VARCHAR,
        external_source VARCHAR,
        data VARCHAR,
        confidence DOUBLE,
        has_embedding BOOLEAN DEFAULT FALSE,
        created_at VARCHAR,
        deleted_at VARCHAR
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS relations (
        id VARCHAR NOT NULL,
        owner_id VARCHAR NOT NULL,
        source_id VARCHAR NOT NULL,
        relation_type VARCHAR NOT NULL,
        target_id VARCHAR NOT NULL,
        data VARCHAR,
        confidence DOUBLE,
        source_document_id VARCHAR,
        created_at VARCHAR
    )
    """,
]


def _value(enum_or_str: Any) -> Any:
    return getattr(enum_or_str, "value", enum_or_str)


class DuckDBQueries:
    """
    DuckDB query layer with multi-tenant support.

    Handles:
    - Document status records
    - Chunk rows (vectors live in LanceDB)
    - Entity rows, soft deletion and the has_embedding flag for backfill
    - Relation edges and both-direction edge lookup for traversal

    Multi-tenancy:
        All queries are filtered by owner_id.

    Thread safety:
        One database file, one parent connection. Each thread gets its own
        cursor since DuckDB connections are not thread-safe and
        asyncio.to_thread() may use different threads.

    Upserts are DELETE + INSERT; uniqueness of (owner, source, type,
    target) is checked before inserting an edge.
    """

    def __init__(self, db_path: Path, config: RAGConfig):
        self.db_path = db_path
        self.config = config
        self._local = threading.local()
        self._conn: duckdb.DuckDBPyConnection | None = None
        self._initialized = False

    async def initialize(self) -> None:
        """Open the database file and create tables."""
        if self._initialized:
            return

        def _init() -> None:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            self._conn = duckdb.connect(str(self.db_path))
            for statement in _SCHEMA:
                self._conn.execute(statement)

        await asyncio.to_thread(_init)
        self._initialized = True

    def _get_conn(self) -> duckdb.DuckDBPyConnection:
        """Get thread-local DuckDB cursor, creating if needed."""
        if not self._initialized or self._conn is None:
            raise RuntimeError("DuckDB not initialized. Call initialize() first.")

        conn = getattr(self._local, "conn", None)
        if conn is None:
            conn = self._conn.cursor()
            self._local.conn = conn
        return conn

    async def close(self) -> None:
        """Close DuckDB connections."""
        self._initialized = False
        conn = getattr(self._local, "conn", None)
        if conn is not None:
            conn.close()
            self._local.conn = None
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    @staticmethod
    def _rows_as_dicts(conn: duckdb.DuckDBPyConnection, rows: list[tuple]) -> list[dict[str, Any]]:
        col_names = [desc[0] for desc in conn.description]
        return [dict(zip(col_names, row)) for row in rows]

    # -------------------------------------------------------------------------
    # Document Operations
    # -------------------------------------------------------------------------

    async def upsert_document(self, doc: DocumentRecord) -> None:
        def _write() -> None:
            conn = self._get_conn()
            conn.execute("BEGIN TRANSACTION")
            try:
                existing = conn.execute(
                    "SELECT created_at FROM documents WHERE id = ? AND owner_id = ?",
                    [doc.id, doc.owner_id],
                ).fetchone()
                conn.execute(
                    "DELETE FROM documents WHERE id = ? AND owner_id = ?",
                    [doc.id, doc.owner_id],
                )
                conn.execute(
                    "INSERT INTO documents VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                    [
                        doc.id,
                        doc.owner_id,
                        doc.file_name,
                        doc.media_type,
                        doc.module,
                        doc.tender_id,
                        _value(doc.status),
                        doc.chunks_count,
                        doc.processing_error,
                        doc.attempts,
                        doc.created_at or (existing[0] if existing else doc.updated_at),
                        doc.updated_at,
                    ],
                )
                conn.execute("COMMIT")
            except Exception:
                conn.execute("ROLLBACK")
                raise

        await asyncio.to_thread(_write)

    async def get_document(self, document_id: str, owner_id: str) -> DocumentRecord | None:
        def _query() -> DocumentRecord | None:
            conn = self._get_conn()
            row = conn.execute(
                "SELECT * FROM documents WHERE id = ? AND owner_id = ?",
                [document_id, owner_id],
            ).fetchone()
            if not row:
                return None
            return self._row_to_document(self._rows_as_dicts(conn, [row])[0])

        return await asyncio.to_thread(_query)

    async def update_document_status(
        self,
        document_id: str,
        owner_id: str,
        status: str,
        updated_at: str,
        *,
        chunks_count: int | None = None,
        error: str | None = None,
        increment_attempts: bool = False,
    ) -> bool:
        """Returns False if the document does not exist for this owner."""

        def _update() -> bool:
            conn = self._get_conn()
            found = conn.execute(
                "SELECT COUNT(*) FROM documents WHERE id = ? AND owner_id = ?",
                [document_id, owner_id],
            ).fetchone()
            if not found or found[0] == 0:
                return False
            conn.execute(
                """
                UPDATE documents SET
                    status = ?,
                    processing_error = ?,
                    updated_at = ?,
                    chunks_count = COALESCE(?, chunks_count),
                    attempts = attempts + ?
                WHERE id = ? AND owner_id = ?
                """,
                [
                    status,
                    error,
                    updated_at,
                    chunks_count,
                    1 if increment_attempts else 0,
                    document_id,
                    owner_id,
                ],
            )
            return True

        return await asyncio.to_thread(_update)

    async def delete_document(self, document_id: str, owner_id: str) -> None:
        def _delete() -> None:
            conn = self._get_conn()
            conn.execute(
                "DELETE FROM chunks WHERE document_id = ? AND owner_id = ?",
                [document_id, owner_id],
            )
            conn.execute(
                "DELETE FROM documents WHERE id = ? AND owner_id = ?",
                [document_id, owner_id],
            )

        await asyncio.to_thread(_delete)

    @staticmethod
    def _row_to_document(row: dict[str, Any]) -> DocumentRecord:
        return DocumentRecord(
            id=row["id"],
            owner_id=row["owner_id"],
            file_name=row.get("file_name"),
            media_type=row.get("media_type"),
            module=row.get("module") or "tenders",
            tender_id=row.get("tender_id"),
            status=row["status"],
            chunks_count=row.get("chunks_count") or 0,
            processing_error=row.get("processing_error"),
            attempts=row.get("attempts") or 0,
            created_at=row.get("created_at"),
            updated_at=row.get("updated_at"),
        )

    # -------------------------------------------------------------------------
    # Chunk Operations
    # -------------------------------------------------------------------------

    async def insert_chunks(self, chunks: list[Chunk], created_at: str) -> None:
        if not chunks:
            return

        def _write() -> None:
            conn = self._get_conn()
            conn.execute("BEGIN TRANSACTION")
            try:
                for c in chunks:
                    conn.execute(
                        "DELETE FROM chunks WHERE id = ? AND owner_id = ?",
                        [c.id, c.owner_id],
                    )
                    conn.execute(
                        "INSERT INTO chunks VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                        [
                            c.id,
                            c.document_id,
                            c.owner_id,
                            c.chunk_index,
                            c.text_content,
                            c.char_start,
                            c.char_end,
                            json.dumps(c.metadata, ensure_ascii=False),
                            c.module,
                            c.tender_id,
                            c.created_at or created_at,
                        ],
                    )
                conn.execute("COMMIT")
            except Exception:
                conn.execute("ROLLBACK")
                raise

        await asyncio.to_thread(_write)

    async def get_document_chunks(
        self, document_id: str, owner_id: str, limit: int | None = None
    ) -> list[Chunk]:
        def _query() -> list[Chunk]:
            conn = self._get_conn()
            sql = (
                "SELECT * FROM chunks WHERE document_id = ? AND owner_id = ? "
                "ORDER BY chunk_index"
            )
            params: list[Any] = [document_id, owner_id]
            if limit is not None:
                sql += " LIMIT ?"
                params.append(limit)
            rows = conn.execute(sql, params).fetchall()
            return [self._row_to_chunk(r) for r in self._rows_as_dicts(conn, rows)]

        return await asyncio.to_thread(_query)

    async def get_chunks_by_ids(self, chunk_ids: list[str], owner_id: str) -> dict[str, Chunk]:
        if not chunk_ids:
            return {}

        def _query() -> dict[str, Chunk]:
            conn = self._get_conn()
            placeholders = ",".join(["?" for _ in chunk_ids])
            rows = conn.execute(
                f"SELECT * FROM chunks WHERE id IN ({placeholders}) AND owner_id = ?",
                [*chunk_ids, owner_id],
            ).fetchall()
            chunks = [self._row_to_chunk(r) for r in self._rows_as_dicts(conn, rows)]
            return {c.id: c for c in chunks}

        return await asyncio.to_thread(_query)

    async def delete_document_chunks(self, document_id: str, owner_id: str) -> int:
        def _delete() -> int:
            conn = self._get_conn()
            count = conn.execute(
                "SELECT COUNT(*) FROM chunks WHERE document_id = ? AND owner_id = ?",
                [document_id, owner_id],
            ).fetchone()
            conn.execute(
                "DELETE FROM chunks WHERE document_id = ? AND owner_id = ?",
                [document_id, owner_id],
            )
            return int(count[0]) if count else 0

        return await asyncio.to_thread(_delete)

    @staticmethod
    def _row_to_chunk(row: dict[str, Any]) -> Chunk:
        metadata = row.get("metadata")
        return Chunk(
            id=row["id"],
            document_id=row["document_id"],
            owner_id=row["owner_id"],
            chunk_index=row["chunk_index"],
            text_content=row["text_content"],
            char_start=row["char_start"],
            char_end=row["char_end"],
            metadata=json.loads(metadata) if metadata else {},
            module=row.get("module"),
            tender_id=row.get("tender_id"),
            created_at=row.get("created_at"),
        )

    # -------------------------------------------------------------------------
    # Entity Operations
    # -------------------------------------------------------------------------

    async def upsert_entity(self, e: Entity, created_at: str) -> None:
        def _write() -> None:
            conn = self._get_conn()
            conn.execute("BEGIN TRANSACTION")
            try:
                conn.execute(
                    "DELETE FROM entities WHERE id = ? AND owner_id = ?", [e.id, e.owner_id]
                )
                conn.execute(
                    "INSERT INTO entities VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                    [
                        e.id,
                        e.owner_id,
                        _value(e.entity_type),
                        e.name,
                        e.normalized_name,
                        e.external_id,
                        e.external_source,
                        json.dumps(e.data, ensure_ascii=False),
                        e.confidence,
                        e.embedding is not None,
                        e.created_at or created_at,
                        e.deleted_at,
                    ],
                )
                conn.execute("COMMIT")
            except Exception:
                conn.execute("ROLLBACK")
                raise

        await asyncio.to_thread(_write)

    async def get_entity(
        self, entity_id: str, owner_id: str, include_deleted: bool = False
    ) -> Entity | None:
        def _query() -> Entity | None:
            conn = self._get_conn()
            sql = "SELECT * FROM entities WHERE id = ? AND owner_id = ?"
            if not include_deleted:
                sql += " AND deleted_at IS NULL"
            row = conn.execute(sql, [entity_id, owner_id]).fetchone()
            if not row:
                return None
            return self._row_to_entity(self._rows_as_dicts(conn, [row])[0])

        return await asyncio.to_thread(_query)

    async def get_entities(self, entity_ids: list[str], owner_id: str) -> dict[str, Entity]:
        """Non-deleted entities keyed by id."""
        if not entity_ids:
            return {}

        def _query() -> dict[str, Entity]:
            conn = self._get_conn()
            placeholders = ",".join(["?" for _ in entity_ids])
            rows = conn.execute(
                f"SELECT * FROM entities WHERE id IN ({placeholders}) "
                "AND owner_id = ? AND deleted_at IS NULL",
                [*entity_ids, owner_id],
            ).fetchall()
            entities = [self._row_to_entity(r) for r in self._rows_as_dicts(conn, rows)]
            return {e.id: e for e in entities}

        return await asyncio.to_thread(_query)

    async def find_entity(
        self, owner_id: str, entity_type: str, normalized_name: str
    ) -> Entity | None:
        def _query() -> Entity | None:
            conn = self._get_conn()
            row = conn.execute(
                """
                SELECT * FROM entities
                WHERE owner_id = ? AND entity_type = ? AND normalized_name = ?
                  AND deleted_at IS NULL
                ORDER BY created_at
                LIMIT 1
                """,
                [owner_id, entity_type, normalized_name],
            ).fetchone()
            if not row:
                return None
            return self._row_to_entity(self._rows_as_dicts(conn, [row])[0])

        return await asyncio.to_thread(_query)

    async def soft_delete_entity(self, entity_id: str, owner_id: str, deleted_at: str) -> bool:
        def _update() -> bool:
            conn = self._get_conn()
            live = conn.execute(
                "SELECT COUNT(*) FROM entities WHERE id = ? AND owner_id = ? "
                "AND deleted_at IS NULL",
                [entity_id, owner_id],
            ).fetchone()
            if not live or live[0] == 0:
                return False
            conn.execute(
                "UPDATE entities SET deleted_at = ? WHERE id = ? AND owner_id = ?",
                [deleted_at, entity_id, owner_id],
            )
            return True

        return await asyncio.to_thread(_update)

    async def list_entities_without_embedding(self, owner_id: str, limit: int) -> list[Entity]:
        def _query() -> list[Entity]:
            conn = self._get_conn()
            rows = conn.execute(
                """
                SELECT * FROM entities
                WHERE owner_id = ? AND deleted_at IS NULL AND NOT has_embedding
                ORDER BY created_at, id
                LIMIT ?
                """,
                [owner_id, limit],
            ).fetchall()
            return [self._row_to_entity(r) for r in self._rows_as_dicts(conn, rows)]

        return await asyncio.to_thread(_query)

    async def count_entities_without_embedding(self, owner_id: str) -> int:
        def _query() -> int:
            conn = self._get_conn()
            row = conn.execute(
                "SELECT COUNT(*) FROM entities "
                "WHERE owner_id = ? AND deleted_at IS NULL AND NOT has_embedding",
                [owner_id],
            ).fetchone()
            return int(row[0]) if row else 0

        return await asyncio.to_thread(_query)

    async def mark_entity_embedded(self, entity_id: str, owner_id: str) -> None:
        def _update() -> None:
            conn = self._get_conn()
            conn.execute(
                "UPDATE entities SET has_embedding = TRUE WHERE id = ? AND owner_id = ?",
                [entity_id, owner_id],
            )

        await asyncio.to_thread(_update)

    @staticmethod
    def _row_to_entity(row: dict[str, Any]) -> Entity:
        data = row.get("data")
        return Entity(
            id=row["id"],
            owner_id=row["owner_id"],
            entity_type=row["entity_type"],
            name=row["name"],
            normalized_name=row["normalized_name"],
            external_id=row.get("external_id"),
            external_source=row.get("external_source"),
            data=json.loads(data) if data else {},
            confidence=row.get("confidence") if row.get("confidence") is not None else 0.8,
            created_at=row.get("created_at"),
            deleted_at=row.get("deleted_at"),
        )

    # -------------------------------------------------------------------------
    # Relation Operations
    # -------------------------------------------------------------------------

    async def insert_relation(self, r: Relation, created_at: str) -> bool:
        def _write() -> bool:
            conn = self._get_conn()
            conn.execute("BEGIN TRANSACTION")
            try:
                existing = conn.execute(
                    """
                    SELECT COUNT(*) FROM relations
                    WHERE owner_id = ? AND source_id = ? AND relation_type = ? AND target_id = ?
                    """,
                    [r.owner_id, r.source_id, _value(r.relation_type), r.target_id],
                ).fetchone()
                if existing and existing[0] > 0:
                    conn.execute("COMMIT")
                    return False
                conn.execute(
                    "INSERT INTO relations VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
                    [
                        r.id,
                        r.owner_id,
                        r.source_id,
                        _value(r.relation_type),
                        r.target_id,
                        json.dumps(r.data, ensure_ascii=False),
                        r.confidence,
                        r.source_document_id,
                        r.created_at or created_at,
                    ],
                )
                conn.execute("COMMIT")
                return True
            except Exception:
                conn.execute("ROLLBACK")
                raise

        return await asyncio.to_thread(_write)

    async def find_relation(
        self, owner_id: str, source_id: str, relation_type: str, target_id: str
    ) -> Relation | None:
        def _query() -> Relation | None:
            conn = self._get_conn()
            row = conn.execute(
                """
                SELECT * FROM relations
                WHERE owner_id = ? AND source_id = ? AND relation_type = ? AND target_id = ?
                LIMIT 1
                """,
                [owner_id, source_id, relation_type, target_id],
            ).fetchone()
            if not row:
                return None
            return self._row_to_relation(self._rows_as_dicts(conn, [row])[0])

        return await asyncio.to_thread(_query)

    async def get_edges(self, entity_id: str, owner_id: str) -> list[Relation]:
        def _query() -> list[Relation]:
            conn = self._get_conn()
            rows = conn.execute(
                """
                SELECT * FROM relations
                WHERE owner_id = ? AND (source_id = ? OR target_id = ?)
                ORDER BY created_at, id
                """,
                [owner_id, entity_id, entity_id],
            ).fetchall()
            return [self._row_to_relation(r) for r in self._rows_as_dicts(conn, rows)]

        return await asyncio.to_thread(_query)

    @staticmethod
    def _row_to_relation(row: dict[str, Any]) -> Relation:
        data = row.get("data")
        return Relation(
            id=row["id"],
            owner_id=row["owner_id"],
            source_id=row["source_id"],
            relation_type=row["relation_type"],
            target_id=row["target_id"],
            data=json.loads(data) if data else {},
            confidence=row.get("confidence") if row.get("confidence") is not None else 0.8,
            source_document_id=row.get("source_document_id"),
            created_at=row.get("created_at"),
        )
