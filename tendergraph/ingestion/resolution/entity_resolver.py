"""
Entity Resolver

Deduplicates extracted entities against the store by exact
(owner, type, normalized name) match before they enter the graph.

For each candidate, strictly in order:
    1. Look up a live entity with the same owner, type and normalized name
    2. Reuse its id, or embed "{type}: {name}. {data}" and insert a new row
    3. Record display name and normalized name -> id in the batch

The returned ResolutionBatch is local to one extraction run; relation
insertion consumes it afterwards.
"""

import logging
from uuid import uuid4

from tendergraph.errors import EmbeddingServiceError
from tendergraph.providers.base import EmbeddingProvider
from tendergraph.storage.base import StorageBackend
from tendergraph.types import Entity, ExtractedEntity, ResolutionBatch
from tendergraph.utils.text import format_entity_embedding_text, normalize_entity_name

logger = logging.getLogger(__name__)


class EntityResolver:
    """
    Exact-match entity resolution.

    Usage:
        resolver = EntityResolver(storage, embeddings)
        batch = await resolver.resolve(extraction.entities, owner_id)
        entity_id = batch.resolve("ООО Ромашка")

    An entity whose embedding call fails is still inserted, with
    embedding=None, and picked up later by the embedding backfill.
    """

    def __init__(self, storage: StorageBackend, embeddings: EmbeddingProvider):
        self.storage = storage
        self.embeddings = embeddings

    async def resolve_one(
        self, candidate: ExtractedEntity, owner_id: str
    ) -> tuple[str, bool]:
        """
        Resolve a single candidate.

        Returns:
            (entity_id, created)
        """
        normalized = candidate.normalized_name or normalize_entity_name(candidate.name)
        existing = await self.storage.find_entity(owner_id, candidate.entity_type, normalized)
        if existing is not None:
            return existing.id, False

        embedding: list[float] | None
        try:
            embedding = await self.embeddings.embed(
                format_entity_embedding_text(
                    str(candidate.entity_type), candidate.name, candidate.data
                )
            )
        except (EmbeddingServiceError, ValueError) as e:
            logger.warning(f"Embedding failed for entity '{candidate.name}', deferring: {e}")
            embedding = None

        entity = Entity(
            id=str(uuid4()),
            owner_id=owner_id,
            entity_type=candidate.entity_type,
            name=candidate.name,
            normalized_name=normalized,
            external_id=candidate.external_id,
            external_source=candidate.external_source,
            data=candidate.data,
            confidence=candidate.confidence,
            embedding=embedding,
        )
        await self.storage.upsert_entity(entity)
        return entity.id, True

    async def resolve(
        self, candidates: list[ExtractedEntity], owner_id: str
    ) -> ResolutionBatch:
        """
        Resolve candidates sequentially.

        Args:
            candidates: Extracted entities, in extraction order
            owner_id: Tenant

        Returns:
            Name -> id mapping for this run
        """
        batch = ResolutionBatch()
        for candidate in candidates:
            entity_id, created = await self.resolve_one(candidate, owner_id)
            batch.register(candidate.name, candidate.normalized_name, entity_id, created)

        logger.info(
            f"Resolved {len(candidates)} entities: "
            f"{len(batch.created_ids)} new, {len(batch.reused_ids)} existing"
        )
        return batch
