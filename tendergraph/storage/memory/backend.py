"""
In-Memory Storage Backend

Dict-backed implementation of StorageBackend with numpy cosine search.
Suitable for tests and for embedding the library in short-lived
processes; nothing is persisted.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone

import numpy as np

from tendergraph.storage.base import StorageBackend
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


def _enum_value(value: object) -> str:
    return str(getattr(value, "value", value))


def _cosine_similarities(query: list[float], matrix: np.ndarray) -> np.ndarray:
    """Cosine similarity of one query against each row of matrix."""
    q = np.asarray(query, dtype=np.float64)
    q_norm = np.linalg.norm(q)
    row_norms = np.linalg.norm(matrix, axis=1)
    denom = row_norms * q_norm
    with np.errstate(divide="ignore", invalid="ignore"):
        sims = np.where(denom > 0, matrix @ q / denom, 0.0)
    return sims


class InMemoryBackend(StorageBackend):
    """
    In-memory storage backend.

    Records are keyed by (owner_id, id) and copied on the way in and out,
    so owners with colliding ids never touch each other's rows. A single
    asyncio.Lock serializes writes.
    """

    def __init__(self) -> None:
        self._documents: dict[tuple[str, str], DocumentRecord] = {}
        self._chunks: dict[tuple[str, str], Chunk] = {}
        self._entities: dict[tuple[str, str], Entity] = {}
        self._relations: dict[tuple[str, str], Relation] = {}
        self._lock = asyncio.Lock()

    async def initialize(self) -> None:
        """Nothing to set up."""

    async def close(self) -> None:
        """Nothing to release."""

    # -------------------------------------------------------------------------
    # Documents
    # -------------------------------------------------------------------------

    async def upsert_document(self, document: DocumentRecord) -> None:
        async with self._lock:
            now = _now()
            key = (document.owner_id, document.id)
            existing = self._documents.get(key)
            self._documents[key] = document.model_copy(
                update={
                    "created_at": document.created_at
                    or (existing.created_at if existing else now),
                    "updated_at": now,
                },
                deep=True,
            )

    async def get_document(self, document_id: str, owner_id: str) -> DocumentRecord | None:
        doc = self._documents.get((owner_id, document_id))
        if doc is None:
            return None
        return doc.model_copy(deep=True)

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
        async with self._lock:
            doc = self._documents.get((owner_id, document_id))
            if doc is None:
                raise KeyError(f"Document not found: {document_id}")
            update: dict = {
                "status": _enum_value(status),
                "processing_error": error,
                "updated_at": _now(),
            }
            if chunks_count is not None:
                update["chunks_count"] = chunks_count
            if increment_attempts:
                update["attempts"] = doc.attempts + 1
            self._documents[(owner_id, document_id)] = doc.model_copy(update=update)

    async def delete_document(self, document_id: str, owner_id: str) -> None:
        async with self._lock:
            if self._documents.pop((owner_id, document_id), None) is None:
                return
            self._drop_chunks(document_id, owner_id)

    # -------------------------------------------------------------------------
    # Chunks
    # -------------------------------------------------------------------------

    async def upsert_chunks(self, chunks: list[Chunk]) -> None:
        async with self._lock:
            for chunk in chunks:
                self._chunks[(chunk.owner_id, chunk.id)] = chunk.model_copy(
                    update={"created_at": chunk.created_at or _now()}, deep=True
                )

    async def get_chunks(
        self, document_id: str, owner_id: str, limit: int | None = None
    ) -> list[Chunk]:
        rows = sorted(
            (
                c
                for c in self._chunks.values()
                if c.document_id == document_id and c.owner_id == owner_id
            ),
            key=lambda c: c.chunk_index,
        )
        if limit is not None:
            rows = rows[:limit]
        return [c.model_copy(deep=True) for c in rows]

    async def delete_chunks(self, document_id: str, owner_id: str) -> int:
        async with self._lock:
            return self._drop_chunks(document_id, owner_id)

    def _drop_chunks(self, document_id: str, owner_id: str) -> int:
        doomed = [
            key
            for key, c in self._chunks.items()
            if c.document_id == document_id and c.owner_id == owner_id
        ]
        for key in doomed:
            del self._chunks[key]
        return len(doomed)

    # -------------------------------------------------------------------------
    # Entities
    # -------------------------------------------------------------------------

    async def upsert_entity(self, entity: Entity) -> None:
        async with self._lock:
            self._entities[(entity.owner_id, entity.id)] = entity.model_copy(
                update={"created_at": entity.created_at or _now()}, deep=True
            )

    async def get_entity(
        self, entity_id: str, owner_id: str, include_deleted: bool = False
    ) -> Entity | None:
        entity = self._entities.get((owner_id, entity_id))
        if entity is None:
            return None
        if entity.is_deleted and not include_deleted:
            return None
        return entity.model_copy(deep=True)

    async def get_entities(self, entity_ids: list[str], owner_id: str) -> list[Entity]:
        found = []
        for entity_id in entity_ids:
            entity = await self.get_entity(entity_id, owner_id)
            if entity is not None:
                found.append(entity)
        return found

    async def find_entity(
        self, owner_id: str, entity_type: EntityType | str, normalized_name: str
    ) -> Entity | None:
        wanted_type = _enum_value(entity_type)
        for entity in self._entities.values():
            if (
                entity.owner_id == owner_id
                and not entity.is_deleted
                and entity.entity_type == wanted_type
                and entity.normalized_name == normalized_name
            ):
                return entity.model_copy(deep=True)
        return None

    async def soft_delete_entity(self, entity_id: str, owner_id: str) -> bool:
        async with self._lock:
            entity = self._entities.get((owner_id, entity_id))
            if entity is None or entity.is_deleted:
                return False
            self._entities[(owner_id, entity_id)] = entity.model_copy(
                update={"deleted_at": _now()}
            )
            return True

    def _pending_embedding(self, owner_id: str) -> list[Entity]:
        return sorted(
            (
                e
                for e in self._entities.values()
                if e.owner_id == owner_id and not e.is_deleted and e.embedding is None
            ),
            key=lambda e: (e.created_at or "", e.id),
        )

    async def list_entities_without_embedding(self, owner_id: str, limit: int) -> list[Entity]:
        return [e.model_copy(deep=True) for e in self._pending_embedding(owner_id)[:limit]]

    async def count_entities_without_embedding(self, owner_id: str) -> int:
        return len(self._pending_embedding(owner_id))

    async def set_entity_embedding(
        self, entity_id: str, owner_id: str, embedding: list[float]
    ) -> None:
        async with self._lock:
            entity = self._entities.get((owner_id, entity_id))
            if entity is None:
                raise KeyError(f"Entity not found: {entity_id}")
            self._entities[(owner_id, entity_id)] = entity.model_copy(
                update={"embedding": list(embedding)}
            )

    # -------------------------------------------------------------------------
    # Relations
    # -------------------------------------------------------------------------

    async def insert_relation(self, relation: Relation) -> bool:
        async with self._lock:
            for existing in self._relations.values():
                if existing.owner_id == relation.owner_id and existing.key == relation.key:
                    return False
            self._relations[(relation.owner_id, relation.id)] = relation.model_copy(
                update={"created_at": relation.created_at or _now()}, deep=True
            )
            return True

    async def find_relation(
        self, owner_id: str, source_id: str, relation_type: str, target_id: str
    ) -> Relation | None:
        key = (source_id, _enum_value(relation_type), target_id)
        for relation in self._relations.values():
            if relation.owner_id == owner_id and relation.key == key:
                return relation.model_copy(deep=True)
        return None

    async def get_edges(self, entity_id: str, owner_id: str) -> list[Relation]:
        return [
            r.model_copy(deep=True)
            for r in self._relations.values()
            if r.owner_id == owner_id and entity_id in (r.source_id, r.target_id)
        ]

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
        candidates = [
            c
            for c in self._chunks.values()
            if c.owner_id == owner_id
            and c.embedding is not None
            and (scope is None or scope.matches(c))
        ]
        ranked = self._rank(query_vector, candidates, threshold, limit)
        return [
            ChunkMatch(chunk=c.model_copy(update={"embedding": None}), similarity=s)
            for c, s in ranked
        ]

    async def search_entities(
        self,
        query_vector: list[float],
        owner_id: str,
        entity_type: EntityType | str | None = None,
        threshold: float = 0.6,
        limit: int = 10,
    ) -> list[EntityMatch]:
        wanted_type = _enum_value(entity_type) if entity_type is not None else None
        candidates = [
            e
            for e in self._entities.values()
            if e.owner_id == owner_id
            and not e.is_deleted
            and e.embedding is not None
            and (wanted_type is None or e.entity_type == wanted_type)
        ]
        ranked = self._rank(query_vector, candidates, threshold, limit)
        return [
            EntityMatch(entity=e.model_copy(update={"embedding": None}), similarity=s)
            for e, s in ranked
        ]

    @staticmethod
    def _rank(query_vector, records, threshold: float, limit: int):
        if not records or limit <= 0:
            return []
        matrix = np.asarray([r.embedding for r in records], dtype=np.float64)
        sims = _cosine_similarities(query_vector, matrix)
        # Stable sort keeps insertion order among equal scores
        order = np.argsort(-sims, kind="stable")
        ranked = []
        for idx in order:
            similarity = float(sims[idx])
            if similarity < threshold:
                break
            ranked.append((records[idx], similarity))
            if len(ranked) >= limit:
                break
        return ranked
