"""
Knowledge Graph Store

Relation insertion from a resolution batch, and bounded breadth-first
traversal over typed edges.

Traversal:
    - Follows edges in both directions from the start entity
    - Keeps a visited map keyed by entity id; a node is expanded once,
      at the shallowest depth it was reached
    - Reports each edge once, tagged with the hop count at which it was
      first reached
    - Skips edges whose endpoint is missing or soft-deleted

Cycles (e.g. mutual REFERENCES edges) therefore cannot loop, and the
depth bound caps the work.
"""

import logging
from collections import deque
from uuid import uuid4

from tendergraph.errors import MissingGraphEndpoint
from tendergraph.storage.base import StorageBackend
from tendergraph.types import Entity, ExtractedRelation, Relation, RelationHop, ResolutionBatch

logger = logging.getLogger(__name__)


class KnowledgeGraphStore:
    """
    Graph operations on top of a StorageBackend.

    Usage:
        graph = KnowledgeGraphStore(storage)
        created = await graph.insert_relations(extraction.relations, batch, owner_id)
        hops = await graph.get_relations(entity_id, owner_id, max_depth=2)
    """

    def __init__(self, storage: StorageBackend):
        self.storage = storage

    # -------------------------------------------------------------------------
    # Insertion
    # -------------------------------------------------------------------------

    async def insert_relation(
        self,
        relation: ExtractedRelation,
        batch: ResolutionBatch,
        owner_id: str,
        source_document_id: str | None = None,
    ) -> Relation | None:
        """
        Insert an extracted relation whose endpoints are named in the batch.

        Returns:
            The new Relation, or None if an endpoint did not resolve or the
            (source, type, target) edge already exists
        """
        source_id = batch.resolve(relation.source_name)
        target_id = batch.resolve(relation.target_name)
        if source_id is None or target_id is None:
            missing = [
                name
                for name, resolved in (
                    (relation.source_name, source_id),
                    (relation.target_name, target_id),
                )
                if resolved is None
            ]
            skipped = MissingGraphEndpoint(relation.source_name, relation.target_name, missing)
            logger.warning(str(skipped))
            return None

        edge = Relation(
            id=str(uuid4()),
            owner_id=owner_id,
            source_id=source_id,
            relation_type=relation.relation_type,
            target_id=target_id,
            data=relation.data,
            confidence=relation.confidence,
            source_document_id=source_document_id,
        )
        if not await self.storage.insert_relation(edge):
            logger.debug(
                f"Relation already exists: {relation.source_name} "
                f"-{relation.relation_type}-> {relation.target_name}"
            )
            return None
        return edge

    async def insert_relations(
        self,
        relations: list[ExtractedRelation],
        batch: ResolutionBatch,
        owner_id: str,
        source_document_id: str | None = None,
    ) -> int:
        """Insert relations in order. Returns the number of edges created."""
        created = 0
        for relation in relations:
            if await self.insert_relation(relation, batch, owner_id, source_document_id):
                created += 1
        return created

    async def add_relation(self, relation: Relation) -> bool:
        """
        Insert a relation between existing entity ids.

        Returns:
            False if the edge already exists

        Raises:
            MissingGraphEndpoint: If either entity is absent or soft-deleted
        """
        source = await self.storage.get_entity(relation.source_id, relation.owner_id)
        target = await self.storage.get_entity(relation.target_id, relation.owner_id)
        missing = [
            entity_id
            for entity_id, found in (
                (relation.source_id, source),
                (relation.target_id, target),
            )
            if found is None
        ]
        if missing:
            raise MissingGraphEndpoint(relation.source_id, relation.target_id, missing)
        return await self.storage.insert_relation(relation)

    # -------------------------------------------------------------------------
    # Traversal
    # -------------------------------------------------------------------------

    async def get_relations(
        self, entity_id: str, owner_id: str, max_depth: int = 2
    ) -> list[RelationHop]:
        """
        Breadth-first traversal from an entity.

        Args:
            entity_id: Start entity (must be live)
            owner_id: Tenant
            max_depth: Maximum hop count; <= 0 returns []

        Returns:
            Edges in breadth-first order, each with the depth it was reached at
        """
        if max_depth <= 0:
            return []

        cache: dict[str, Entity | None] = {}

        async def live(eid: str) -> Entity | None:
            if eid not in cache:
                cache[eid] = await self.storage.get_entity(eid, owner_id)
            return cache[eid]

        if await live(entity_id) is None:
            return []

        visited: dict[str, int] = {entity_id: 0}
        seen_edges: set[str] = set()
        hops: list[RelationHop] = []
        queue: deque[tuple[str, int]] = deque([(entity_id, 0)])

        while queue:
            node, depth = queue.popleft()
            if depth >= max_depth:
                continue

            for edge in await self.storage.get_edges(node, owner_id):
                if edge.id in seen_edges:
                    continue
                source = await live(edge.source_id)
                target = await live(edge.target_id)
                if source is None or target is None:
                    continue

                seen_edges.add(edge.id)
                hops.append(
                    RelationHop(
                        relation_id=edge.id,
                        from_id=source.id,
                        from_name=source.name,
                        from_type=str(source.entity_type),
                        relation_type=str(edge.relation_type),
                        to_id=target.id,
                        to_name=target.name,
                        to_type=str(target.entity_type),
                        depth=depth + 1,
                    )
                )

                neighbor = edge.target_id if edge.source_id == node else edge.source_id
                if neighbor not in visited:
                    visited[neighbor] = depth + 1
                    queue.append((neighbor, depth + 1))

        return hops
