"""
Context Assembler (Graph-RAG)

Merges chunk hits, entity hits and the entities' graph neighbourhoods into
one GraphRAGContext.

Steps:
    1. Embed the query once
    2. Run chunk search (scoped, default module "tenders") and entity search
       concurrently
    3. Traverse depth-1 relations around the top entities
    4. Deduplicate relations by (from, type, to)

An empty context (no chunks and no entities) means "no relevant
information"; consumers answer that directly instead of calling the model.
"""

from __future__ import annotations

import asyncio
import json
import logging

from tendergraph.config import RAGConfig
from tendergraph.graph.store import KnowledgeGraphStore
from tendergraph.providers.base import EmbeddingProvider
from tendergraph.storage.base import StorageBackend
from tendergraph.types import (
    ContextChunk,
    ContextEntity,
    GraphRAGContext,
    RelationHop,
    SearchScope,
)

logger = logging.getLogger(__name__)


class ContextAssembler:
    """
    Builds GraphRAGContext for a query.

    Args:
        storage: Owner-scoped vector store
        embeddings: Query embedder
        graph: Traversal over stored relations
        config: Limits and thresholds (context_*)
    """

    def __init__(
        self,
        storage: StorageBackend,
        embeddings: EmbeddingProvider,
        graph: KnowledgeGraphStore,
        config: RAGConfig | None = None,
    ) -> None:
        self.storage = storage
        self.embeddings = embeddings
        self.graph = graph
        self.config = config or RAGConfig()

    async def build(
        self,
        query: str,
        owner_id: str,
        *,
        scope: SearchScope | None = None,
        max_chunks: int | None = None,
        max_entities: int | None = None,
    ) -> GraphRAGContext:
        """
        Assemble context for a query.

        Args:
            query: Natural-language question
            owner_id: Tenant
            scope: Chunk search scope (defaults to the configured module)
            max_chunks: Chunk hit limit (default context_max_chunks)
            max_entities: Entity hit limit (default context_max_entities)

        Raises:
            ValueError: If query is blank
            EmbeddingServiceError: If the query cannot be embedded
        """
        if not query or not query.strip():
            raise ValueError("Query must not be empty")

        scope = scope or SearchScope(module=self.config.default_module)
        max_chunks = max_chunks if max_chunks is not None else self.config.context_max_chunks
        max_entities = (
            max_entities if max_entities is not None else self.config.context_max_entities
        )

        query_vector = await self.embeddings.embed(query)

        chunk_hits, entity_hits = await asyncio.gather(
            self.storage.search_chunks(
                query_vector,
                owner_id,
                scope=scope,
                threshold=self.config.context_chunk_threshold,
                limit=max_chunks,
            ),
            self.storage.search_entities(
                query_vector,
                owner_id,
                threshold=self.config.entity_search_threshold,
                limit=max_entities,
            ),
        )

        top_entities = entity_hits[: self.config.context_expand_entities]
        neighbourhoods = await asyncio.gather(
            *(
                self.graph.get_relations(
                    hit.entity.id, owner_id, max_depth=self.config.context_relation_depth
                )
                for hit in top_entities
            )
        )

        relations: list[RelationHop] = []
        seen: set[tuple[str, str, str]] = set()
        for hops in neighbourhoods:
            for hop in hops:
                key = (hop.from_id, hop.relation_type, hop.to_id)
                if key in seen:
                    continue
                seen.add(key)
                relations.append(hop)

        context = GraphRAGContext(
            query=query,
            chunks=[
                ContextChunk(
                    chunk_id=hit.chunk.id,
                    document_id=hit.chunk.document_id,
                    text=hit.chunk.text_content,
                    similarity=hit.similarity,
                )
                for hit in chunk_hits
            ],
            entities=[
                ContextEntity(
                    id=hit.entity.id,
                    entity_type=str(hit.entity.entity_type),
                    name=hit.entity.name,
                    data=hit.entity.data,
                    similarity=hit.similarity,
                )
                for hit in entity_hits
            ],
            relations=relations,
        )
        logger.info(
            f"Context for query: {len(context.chunks)} chunks, "
            f"{len(context.entities)} entities, {len(context.relations)} relations"
        )
        return context


def format_context_for_prompt(context: GraphRAGContext, preview_chars: int = 500) -> str:
    """
    Render context as labelled prompt sections.

    Sections with no content are omitted. Chunk text is truncated to
    preview_chars characters.
    """
    parts: list[str] = []

    if context.chunks:
        lines = ["## DOCUMENTS"]
        for i, chunk in enumerate(context.chunks, 1):
            preview = chunk.text[:preview_chars]
            if len(chunk.text) > preview_chars:
                preview += "..."
            lines.append(
                f"[{i}] (document {chunk.document_id}, relevance {chunk.similarity:.0%})\n{preview}"
            )
        parts.append("\n\n".join(lines))

    if context.entities:
        lines = ["## ENTITIES"]
        for entity in context.entities:
            line = f"- [{entity.entity_type}] {entity.name}"
            if entity.data:
                line += f": {json.dumps(entity.data, ensure_ascii=False)}"
            lines.append(line)
        parts.append("\n".join(lines))

    if context.relations:
        lines = ["## RELATIONS"]
        for hop in context.relations:
            lines.append(f"- {hop.from_name} --[{hop.relation_type}]--> {hop.to_name}")
        parts.append("\n".join(lines))

    return "\n\n".join(parts)
