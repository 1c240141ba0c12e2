"""
Local Storage Backend

Orchestrates DuckDB tables and LanceDB vector indices in one directory.
"""

import asyncio
import json
import re
from datetime import datetime, timezone
from pathlib import Path

from tendergraph.config import RAGConfig
from tendergraph.storage.base import StorageBackend
from tendergraph.storage.duckdb.queries import DuckDBQueries
from tendergraph.storage.lancedb.indices import LanceDBIndices
from tendergraph.types import (
    Chunk,
    ChunkMatch,
    DocumentRecord,
    DocumentStatus,
    Entity,
    EntityMatch,
    EntityType,
    Relation,
    SearchScope,
)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _value(enum_or_str: object) -> str:
    return str(getattr(enum_or_str, "value", enum_or_str))


class LocalBackend(StorageBackend):
    """
    DuckDB + LanceDB storage backend.

    Directory structure:
        kb_path/
        ├── graph.duckdb        # documents, chunks, entities, relations
        ├── metadata.json       # schema version, embedding dimensions
        └── lancedb/
            ├── chunks.lance/
            └── entities.lance/

    Multi-tenancy:
        Rows carry owner_id; DuckDB queries filter on it and LanceDB
        searches prefilter on it.

    Thread safety:
        Writes are serialized with an asyncio.Lock; DuckDB and LanceDB use
        thread-local connections underneath.
    """

    SCHEMA_VERSION = "1.0.0"

    @staticmethod
    def _is_valid_owner_id(owner_id: str) -> bool:
        """Validate owner_id contains only safe characters."""
        return bool(re.match(r"^[a-zA-Z0-9_.:@-]+$", owner_id))

    def __init__(self, kb_path: Path | str, config: RAGConfig | None = None):
        self._kb_path = Path(kb_path)
        self.config = config or RAGConfig()
        self._duckdb = DuckDBQueries(self._kb_path / "graph.duckdb", self.config)
        self._lancedb = LanceDBIndices(self._kb_path / "lancedb", self.config)
        self._write_lock = asyncio.Lock()
        self._initialized = False

    @property
    def kb_path(self) -> Path:
        """Return the path to the knowledge base directory."""
        return self._kb_path

    async def initialize(self) -> None:
        """Initialize storage backend."""
        if self._initialized:
            return

        def _init() -> None:
            self.kb_path.mkdir(parents=True, exist_ok=True)
            self._check_metadata()

        await asyncio.to_thread(_init)
        await self._duckdb.initialize()
        await self._lancedb.initialize()
        self._initialized = True

    async def close(self) -> None:
        """Close storage backend."""
        await self._lancedb.close()
        await self._duckdb.close()
        self._initialized = False

    def _check_metadata(self) -> None:
        """Create metadata.json, or refuse a directory built for other vector sizes."""
        meta_path = self.kb_path / "metadata.json"
        if not meta_path.exists():
            metadata = {
                "schema_version": self.SCHEMA_VERSION,
                "created_at": _now(),
                "embedding_dimensions": self.config.embedding_dimensions,
            }
            meta_path.write_text(json.dumps(metadata, indent=2))
            return

        metadata = json.loads(meta_path.read_text())
        stored = metadata.get("embedding_dimensions")
        if stored is not None and stored != self.config.embedding_dimensions:
            raise ValueError(
                f"Knowledge base at {self.kb_path} uses {stored}-dimensional vectors, "
                f"config has {self.config.embedding_dimensions}"
            )

    def _check_owner(self, owner_id: str) -> None:
        if not self._is_valid_owner_id(owner_id):
            raise ValueError(
                f"Invalid owner_id: {owner_id!r}. "
                "Allowed: letters, digits and _ . : @ -"
            )

    # -------------------------------------------------------------------------
    # Documents
    # -------------------------------------------------------------------------

    async def upsert_document(self, document: DocumentRecord) -> None:
        self._check_owner(document.owner_id)
        now = _now()
        async with self._write_lock:
            await self._duckdb.upsert_document(
                document.model_copy(update={"updated_at": now})
            )

    async def get_document(self, document_id: str, owner_id: str) -> DocumentRecord | None:
        return await self._duckdb.get_document(document_id, owner_id)

    async def update_document_status(
        self,
        document_id: str,
        owner_id: str,
        status: DocumentStatus,
        *,
        chunks_count: int | None = None,
        error: str | None = None,
        increment_attempts: bool = False,
    ) -> None:
        async with self._write_lock:
            found = await self._duckdb.update_document_status(
                document_id,
                owner_id,
                _value(status),
                _now(),
                chunks_count=chunks_count,
                error=error,
                increment_attempts=increment_attempts,
            )
        if not found:
            raise KeyError(f"Document not found: {document_id}")

    async def delete_document(self, document_id: str, owner_id: str) -> None:
        self._check_owner(owner_id)
        async with self._write_lock:
            await self._lancedb.delete_document_chunks(document_id, owner_id)
            await self._duckdb.delete_document(document_id, owner_id)

    # -------------------------------------------------------------------------
    # Chunks
    # -------------------------------------------------------------------------

    async def upsert_chunks(self, chunks: list[Chunk]) -> None:
        if not chunks:
            return
        for owner_id in {c.owner_id for c in chunks}:
            self._check_owner(owner_id)

        vectors = [
            {
                "id": c.id,
                "owner_id": c.owner_id,
                "document_id": c.document_id,
                "chunk_index": c.chunk_index,
                "text": c.text_content,
                "module": c.module,
                "tender_id": c.tender_id,
                "vector": c.embedding,
            }
            for c in chunks
            if c.embedding is not None
        ]
        async with self._write_lock:
            await self._duckdb.insert_chunks(chunks, _now())
            await self._lancedb.add_chunks(vectors)

    async def get_chunks(
        self, document_id: str, owner_id: str, limit: int | None = None
    ) -> list[Chunk]:
        return await self._duckdb.get_document_chunks(document_id, owner_id, limit)

    async def delete_chunks(self, document_id: str, owner_id: str) -> int:
        self._check_owner(owner_id)
        async with self._write_lock:
            await self._lancedb.delete_document_chunks(document_id, owner_id)
            return await self._duckdb.delete_document_chunks(document_id, owner_id)

    # -------------------------------------------------------------------------
    # Entities
    # -------------------------------------------------------------------------

    async def upsert_entity(self, entity: Entity) -> None:
        self._check_owner(entity.owner_id)
        async with self._write_lock:
            await self._duckdb.upsert_entity(entity, _now())
            if entity.embedding is not None and not entity.is_deleted:
                await self._lancedb.add_entity(self._entity_vector_row(entity, entity.embedding))

    @staticmethod
    def _entity_vector_row(entity: Entity, embedding: list[float]) -> dict:
        return {
            "id": entity.id,
            "owner_id": entity.owner_id,
            "entity_type": _value(entity.entity_type),
            "name": entity.name,
            "vector": embedding,
        }

    async def get_entity(
        self, entity_id: str, owner_id: str, include_deleted: bool = False
    ) -> Entity | None:
        return await self._duckdb.get_entity(entity_id, owner_id, include_deleted)

    async def get_entities(self, entity_ids: list[str], owner_id: str) -> list[Entity]:
        found = await self._duckdb.get_entities(entity_ids, owner_id)
        return [found[i] for i in entity_ids if i in found]

    async def find_entity(
        self, owner_id: str, entity_type: EntityType | str, normalized_name: str
    ) -> Entity | None:
        return await self._duckdb.find_entity(owner_id, _value(entity_type), normalized_name)

    async def soft_delete_entity(self, entity_id: str, owner_id: str) -> bool:
        self._check_owner(owner_id)
        async with self._write_lock:
            deleted = await self._duckdb.soft_delete_entity(entity_id, owner_id, _now())
            if deleted:
                await self._lancedb.delete_entity(entity_id, owner_id)
            return deleted

    async def list_entities_without_embedding(self, owner_id: str, limit: int) -> list[Entity]:
        return await self._duckdb.list_entities_without_embedding(owner_id, limit)

    async def count_entities_without_embedding(self, owner_id: str) -> int:
        return await self._duckdb.count_entities_without_embedding(owner_id)

    async def set_entity_embedding(
        self, entity_id: str, owner_id: str, embedding: list[float]
    ) -> None:
        self._check_owner(owner_id)
        entity = await self._duckdb.get_entity(entity_id, owner_id, include_deleted=True)
        if entity is None:
            raise KeyError(f"Entity not found: {entity_id}")
        async with self._write_lock:
            if not entity.is_deleted:
                await self._lancedb.add_entity(self._entity_vector_row(entity, embedding))
            await self._duckdb.mark_entity_embedded(entity_id, owner_id)

    # -------------------------------------------------------------------------
    # Relations
    # -------------------------------------------------------------------------

    async def insert_relation(self, relation: Relation) -> bool:
        self._check_owner(relation.owner_id)
        async with self._write_lock:
            return await self._duckdb.insert_relation(relation, _now())

    async def find_relation(
        self, owner_id: str, source_id: str, relation_type: str, target_id: str
    ) -> Relation | None:
        return await self._duckdb.find_relation(
            owner_id, source_id, _value(relation_type), target_id
        )

    async def get_edges(self, entity_id: str, owner_id: str) -> list[Relation]:
        return await self._duckdb.get_edges(entity_id, owner_id)

    # -------------------------------------------------------------------------
    # Vector Search
    # -------------------------------------------------------------------------

    async def search_chunks(
        self,
        query_vector: list[float],
        owner_id: str,
        scope: SearchScope | None = None,
        threshold: float = 0.7,
        limit: int = 10,
    ) -> list[ChunkMatch]:
        self._check_owner(owner_id)
        scope = scope or SearchScope()
        hits = await self._lancedb.search_chunks(
            query_vector,
            owner_id,
            module=scope.module,
            tender_id=scope.tender_id,
            document_id=scope.document_id,
            limit=limit,
            threshold=threshold,
        )
        rows = await self._duckdb.get_chunks_by_ids([cid for cid, _ in hits], owner_id)
        # Vectors whose rows are gone (deleted document) are dropped
        return [
            ChunkMatch(chunk=rows[cid], similarity=similarity)
            for cid, similarity in hits
            if cid in rows
        ]

    async def search_entities(
        self,
        query_vector: list[float],
        owner_id: str,
        entity_type: EntityType | str | None = None,
        threshold: float = 0.6,
        limit: int = 10,
    ) -> list[EntityMatch]:
        self._check_owner(owner_id)
        hits = await self._lancedb.search_entities(
            query_vector,
            owner_id,
            entity_type=_value(entity_type) if entity_type is not None else None,
            limit=limit,
            threshold=threshold,
        )
        rows = await self._duckdb.get_entities([eid for eid, _ in hits], owner_id)
        return [
            EntityMatch(entity=rows[eid], similarity=similarity)
            for eid, similarity in hits
            if eid in rows
        ]
