"""
Abstract Storage Backend Interface

Defines the contract for all storage backends.
"""

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
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


class StorageBackend(ABC):
    """
    Abstract interface for storage backends.

    Implementations: InMemoryBackend (dicts + numpy), LocalBackend
    (DuckDB + LanceDB).

    Multi-tenancy:
        Every read, search and delete takes an owner_id. No operation ever
        returns or touches rows of a different owner. Writes carry the
        owner on the record itself.

    Lifecycle:
        backend = LocalBackend(path, config)
        await backend.initialize()
        # ... operations ...
        await backend.close()

    Or using context manager:
        async with LocalBackend(path, config) as backend:
            await backend.upsert_entity(entity)
    """

    @abstractmethod
    async def initialize(self) -> None:
        """Initialize storage (create directories, tables, indices)."""
        ...

    @abstractmethod
    async def close(self) -> None:
        """Close storage and release resources."""
        ...

    async def __aenter__(self) -> "StorageBackend":
        await self.initialize()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    # -------------------------------------------------------------------------
    # Documents
    # -------------------------------------------------------------------------

    @abstractmethod
    async def upsert_document(self, document: "DocumentRecord") -> None:
        """Insert or replace a document record."""
        ...

    @abstractmethod
    async def get_document(self, document_id: str, owner_id: str) -> "DocumentRecord | None":
        ...

    @abstractmethod
    async def update_document_status(
        self,
        document_id: str,
        owner_id: str,
        status: "DocumentStatus",
        *,
        chunks_count: int | None = None,
        error: str | None = None,
        increment_attempts: bool = False,
    ) -> None:
        """
        Move a document to a new status.

        ``error`` replaces the stored processing error (None clears it).
        """
        ...

    @abstractmethod
    async def delete_document(self, document_id: str, owner_id: str) -> None:
        """Delete a document record and, in cascade, its chunks."""
        ...

    # -------------------------------------------------------------------------
    # Chunks
    # -------------------------------------------------------------------------

    async def upsert_chunk(self, chunk: "Chunk") -> None:
        """Persist one chunk with its vector."""
        await self.upsert_chunks([chunk])

    @abstractmethod
    async def upsert_chunks(self, chunks: list["Chunk"]) -> None:
        """Persist chunks with their vectors, in the given order."""
        ...

    @abstractmethod
    async def get_chunks(
        self, document_id: str, owner_id: str, limit: int | None = None
    ) -> list["Chunk"]:
        """Chunks of a document ordered by chunk_index."""
        ...

    @abstractmethod
    async def delete_chunks(self, document_id: str, owner_id: str) -> int:
        """Delete all chunks of a document. Returns the number removed."""
        ...

    # -------------------------------------------------------------------------
    # Entities
    # -------------------------------------------------------------------------

    @abstractmethod
    async def upsert_entity(self, entity: "Entity") -> None:
        """Persist an entity; its vector is indexed only when present."""
        ...

    @abstractmethod
    async def get_entity(
        self, entity_id: str, owner_id: str, include_deleted: bool = False
    ) -> "Entity | None":
        ...

    @abstractmethod
    async def get_entities(self, entity_ids: list[str], owner_id: str) -> list["Entity"]:
        """Non-deleted entities among the given ids."""
        ...

    @abstractmethod
    async def find_entity(
        self, owner_id: str, entity_type: "EntityType | str", normalized_name: str
    ) -> "Entity | None":
        """The non-deleted entity with this (owner, type, normalized name), if any."""
        ...

    @abstractmethod
    async def soft_delete_entity(self, entity_id: str, owner_id: str) -> bool:
        """Mark an entity deleted. Relations to it are kept."""
        ...

    @abstractmethod
    async def list_entities_without_embedding(
        self, owner_id: str, limit: int
    ) -> list["Entity"]:
        """Non-deleted entities still waiting for a vector, oldest first."""
        ...

    @abstractmethod
    async def count_entities_without_embedding(self, owner_id: str) -> int:
        ...

    @abstractmethod
    async def set_entity_embedding(
        self, entity_id: str, owner_id: str, embedding: list[float]
    ) -> None:
        ...

    # -------------------------------------------------------------------------
    # Relations
    # -------------------------------------------------------------------------

    @abstractmethod
    async def insert_relation(self, relation: "Relation") -> bool:
        """
        Insert an edge.

        Returns False without writing if (source, type, target) already exists.
        """
        ...

    @abstractmethod
    async def find_relation(
        self, owner_id: str, source_id: str, relation_type: str, target_id: str
    ) -> "Relation | None":
        ...

    @abstractmethod
    async def get_edges(self, entity_id: str, owner_id: str) -> list["Relation"]:
        """All relations where the entity is source or target."""
        ...

    # -------------------------------------------------------------------------
    # Vector Search
    # -------------------------------------------------------------------------

    @abstractmethod
    async def search_chunks(
        self,
        query_vector: list[float],
        owner_id: str,
        scope: "SearchScope | None" = None,
        threshold: float = 0.7,
        limit: int = 10,
    ) -> list["ChunkMatch"]:
        """
        Chunks with cosine similarity >= threshold, best first, at most limit.
        """
        ...

    @abstractmethod
    async def search_entities(
        self,
        query_vector: list[float],
        owner_id: str,
        entity_type: "EntityType | str | None" = None,
        threshold: float = 0.6,
        limit: int = 10,
    ) -> list["EntityMatch"]:
        """
        Non-deleted entities with cosine similarity >= threshold, best first.
        """
        ...
