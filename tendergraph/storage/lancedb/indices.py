"""
LanceDB Vector Indices

Manages vector indices for chunks and entities with per-owner filtering.
"""

import asyncio
import threading
from pathlib import Path
from typing import Any

import lancedb
import pyarrow as pa

from tendergraph.config import RAGConfig


class LanceDBIndices:
    """
    Manages LanceDB vector indices for similarity search.

    Tables:
        - chunks: Chunk embeddings (id, owner_id, document_id, chunk_index,
          text, module, tender_id, vector)
        - entities: Entity embeddings (id, owner_id, entity_type, name, vector)

    Multi-tenancy:
        Every row carries owner_id. Searches prefilter on owner_id before
        ranking, so another owner's rows can never appear in results.

    Thread safety:
        Uses thread-local storage for connections since LanceDB connections
        may not be thread-safe and asyncio.to_thread() may use different threads.

    Vector length comes from config.embedding_dimensions.
    """

    @staticmethod
    def _escape_sql_string(value: str) -> str:
        """Escape single quotes for SQL WHERE clauses."""
        return value.replace("'", "''")

    def __init__(self, lancedb_path: Path, config: RAGConfig):
        self.path = lancedb_path
        self.config = config
        self._local = threading.local()
        self._initialized = False

    async def initialize(self) -> None:
        """Initialize LanceDB (marks as ready, connections created per-thread)."""
        if self._initialized:
            return

        def _init() -> None:
            self.path.mkdir(parents=True, exist_ok=True)

        await asyncio.to_thread(_init)
        self._initialized = True

    async def close(self) -> None:
        """Close LanceDB connections."""
        self._initialized = False
        # Clear current thread's connection if it exists
        if hasattr(self._local, "db"):
            self._local.db = None

    def _get_db(self) -> lancedb.DBConnection:
        """Get thread-local LanceDB connection, creating if needed."""
        if not self._initialized:
            raise RuntimeError("LanceDB not initialized. Call initialize() first.")

        db = getattr(self._local, "db", None)
        if db is None:
            db = lancedb.connect(str(self.path))
            self._local.db = db
        return db

    @staticmethod
    def _table_names(db: lancedb.DBConnection) -> set[str]:
        """
        Return table names across LanceDB API variants.

        Recent LanceDB returns a response object from list_tables() with a
        `tables` attribute, while older versions return a plain list.
        """
        listed = db.list_tables()
        tables = getattr(listed, "tables", listed)
        return {str(name) for name in tables}

    def _has_table(self, db: lancedb.DBConnection, table_name: str) -> bool:
        """Check table existence in a LanceDB-version-safe way."""
        return table_name in self._table_names(db)

    # -------------------------------------------------------------------------
    # Schemas
    # -------------------------------------------------------------------------

    def _vector_type(self) -> pa.DataType:
        return pa.list_(pa.float32(), self.config.embedding_dimensions)

    def _chunk_schema(self) -> pa.Schema:
        return pa.schema([
            ("id", pa.string()),
            ("owner_id", pa.string()),
            ("document_id", pa.string()),
            ("chunk_index", pa.int32()),
            ("text", pa.string()),
            ("module", pa.string()),
            ("tender_id", pa.string()),
            ("vector", self._vector_type()),
        ])

    def _entity_schema(self) -> pa.Schema:
        return pa.schema([
            ("id", pa.string()),
            ("owner_id", pa.string()),
            ("entity_type", pa.string()),
            ("name", pa.string()),
            ("vector", self._vector_type()),
        ])

    def _upsert_rows(
        self, table_name: str, schema: pa.Schema, rows: list[dict[str, Any]]
    ) -> None:
        db = self._get_db()
        data = pa.Table.from_pylist(rows, schema=schema)
        if self._has_table(db, table_name):
            table = db.open_table(table_name)
            ids_by_owner: dict[str, list[str]] = {}
            for r in rows:
                ids_by_owner.setdefault(r["owner_id"], []).append(r["id"])
            # Ids are only unique per owner
            for owner_id, owner_ids in ids_by_owner.items():
                ids = ", ".join(f"'{self._escape_sql_string(i)}'" for i in owner_ids)
                table.delete(
                    f"owner_id = '{self._escape_sql_string(owner_id)}' AND id IN ({ids})"
                )
            table.add(data)
        else:
            db.create_table(table_name, data, schema=schema)

    def _delete_where(self, table_name: str, predicate: str) -> None:
        db = self._get_db()
        if self._has_table(db, table_name):
            db.open_table(table_name).delete(predicate)

    def _search(
        self,
        table_name: str,
        query_vector: list[float],
        predicate: str,
        limit: int,
        threshold: float,
    ) -> list[tuple[str, float]]:
        """Return (id, similarity) pairs above threshold, best first."""
        db = self._get_db()
        if not self._has_table(db, table_name) or limit <= 0:
            return []

        table = db.open_table(table_name)
        results = (
            table.search(query_vector)
            .distance_type("cosine")
            .where(predicate, prefilter=True)
            .limit(limit)
            .to_arrow()
        )

        output: list[tuple[str, float]] = []
        for i in range(results.num_rows):
            # Cosine distance = 1 - similarity
            distance = results.column("_distance")[i].as_py()
            similarity = 1 - distance
            if similarity >= threshold:
                output.append((results.column("id")[i].as_py(), similarity))
        output.sort(key=lambda pair: pair[1], reverse=True)
        return output

    # -------------------------------------------------------------------------
    # Chunk Operations
    # -------------------------------------------------------------------------

    async def add_chunks(self, chunks: list[dict[str, Any]]) -> None:
        """
        Add (or replace) chunk vectors.

        Args:
            chunks: Dicts with id, owner_id, document_id, chunk_index, text,
                module, tender_id and vector
        """
        if not chunks:
            return

        def _add() -> None:
            self._upsert_rows("chunks", self._chunk_schema(), chunks)

        await asyncio.to_thread(_add)

    async def delete_document_chunks(self, document_id: str, owner_id: str) -> None:
        def _delete() -> None:
            self._delete_where(
                "chunks",
                f"owner_id = '{self._escape_sql_string(owner_id)}' AND "
                f"document_id = '{self._escape_sql_string(document_id)}'",
            )

        await asyncio.to_thread(_delete)

    async def search_chunks(
        self,
        query_vector: list[float],
        owner_id: str,
        *,
        module: str | None = None,
        tender_id: str | None = None,
        document_id: str | None = None,
        limit: int = 10,
        threshold: float = 0.7,
    ) -> list[tuple[str, float]]:
        """
        Search chunk vectors of one owner, optionally scoped.

        Returns list of (chunk_id, similarity) tuples.
        LanceDB returns distance, we convert to similarity (1 - distance).
        """
        clauses = [f"owner_id = '{self._escape_sql_string(owner_id)}'"]
        if module is not None:
            clauses.append(f"module = '{self._escape_sql_string(module)}'")
        if tender_id is not None:
            clauses.append(f"tender_id = '{self._escape_sql_string(tender_id)}'")
        if document_id is not None:
            clauses.append(f"document_id = '{self._escape_sql_string(document_id)}'")
        predicate = " AND ".join(clauses)

        def _search() -> list[tuple[str, float]]:
            return self._search("chunks", query_vector, predicate, limit, threshold)

        return await asyncio.to_thread(_search)

    # -------------------------------------------------------------------------
    # Entity Operations
    # -------------------------------------------------------------------------

    async def add_entity(self, entity: dict[str, Any]) -> None:
        """Add (or replace) one entity vector."""

        def _add() -> None:
            self._upsert_rows("entities", self._entity_schema(), [entity])

        await asyncio.to_thread(_add)

    async def delete_entity(self, entity_id: str, owner_id: str) -> None:
        def _delete() -> None:
            self._delete_where(
                "entities",
                f"owner_id = '{self._escape_sql_string(owner_id)}' AND "
                f"id = '{self._escape_sql_string(entity_id)}'",
            )

        await asyncio.to_thread(_delete)

    async def search_entities(
        self,
        query_vector: list[float],
        owner_id: str,
        *,
        entity_type: str | None = None,
        limit: int = 10,
        threshold: float = 0.6,
    ) -> list[tuple[str, float]]:
        """Search entity vectors of one owner. Returns (entity_id, similarity)."""
        predicate = f"owner_id = '{self._escape_sql_string(owner_id)}'"
        if entity_type is not None:
            predicate += f" AND entity_type = '{self._escape_sql_string(entity_type)}'"

        def _search() -> list[tuple[str, float]]:
            return self._search("entities", query_vector, predicate, limit, threshold)

        return await asyncio.to_thread(_search)
