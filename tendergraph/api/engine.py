"""
TenderGraph - Primary Entry Point

The TenderGraph class wires storage, providers and the ingestion and query
engines together and exposes every operation as one owner-scoped method.

Dependencies are constructed once and injected; nothing is a module-level
singleton. from_config() builds the default stack (OpenAI chat and
embeddings, Gemini vision, DuckDB + LanceDB or in-memory storage).

Example:
    >>> engine = TenderGraph.from_config(RAGConfig(), "./kb")
    >>> async with engine:
    ...     await engine.process_document("doc-1", data, "application/pdf", "user-1",
    ...                                   tender_id="t-42")
    ...     verdict = await engine.check_compliance("user-1", supplier, tender)
    >>> print(verdict.is_compliant, verdict.overall_score)

    # Or with sync API
    >>> result = engine.answer_sync("Which certificates are required?", "user-1")
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import TYPE_CHECKING, Any, Callable

from tendergraph.config import RAGConfig
from tendergraph.graph.store import KnowledgeGraphStore
from tendergraph.ingestion.extraction import EntityExtractor, TextExtractor
from tendergraph.ingestion.processor import DocumentProcessor
from tendergraph.ingestion.resolution import EntityResolver
from tendergraph.query import ComplianceEngine, ContextAssembler, QAEngine, SmartSearch

if TYPE_CHECKING:
    from tendergraph.providers.base import EmbeddingProvider, LLMProvider, VisionProvider
    from tendergraph.storage.base import StorageBackend
    from tendergraph.types import (
        BackfillResult,
        ChunkMatch,
        ComplianceCheckResult,
        DocumentRecord,
        EnrichmentResult,
        EntityMatch,
        EntityType,
        GraphRAGContext,
        ProcessingResult,
        QAResult,
        Relation,
        RelationHop,
        RiskAnalysis,
        SearchScope,
        SmartSearchResult,
        SupplierProfile,
        TenderProfile,
    )

logger = logging.getLogger(__name__)


def create_llm_provider(config: RAGConfig, model: str | None = None) -> "LLMProvider":
    """Create the chat model provider named by config.llm_provider."""
    provider = config.llm_provider.lower()

    if provider == "openai":
        from tendergraph.providers.llm.openai import OpenAILLMProvider
        return OpenAILLMProvider(
            api_key=config.openai_api_key,
            model=model or config.llm_model,
            base_url=config.llm_base_url,
        )
    raise ValueError(f"Unknown LLM provider: {provider}")


def create_embedding_provider(config: RAGConfig) -> "EmbeddingProvider":
    """Create the embedding provider named by config.embedding_provider."""
    provider = config.embedding_provider.lower()

    if provider == "openai":
        from tendergraph.providers.embedding.openai import OpenAIEmbeddingProvider
        return OpenAIEmbeddingProvider(
            api_key=config.openai_api_key,
            model=config.embedding_model,
            dimensions=config.embedding_dimensions,
            batch_size=config.embedding_batch_size,
        )
    raise ValueError(f"Unknown embedding provider: {provider}")


def create_vision_provider(config: RAGConfig) -> "VisionProvider":
    """Create the vision provider named by config.vision_provider."""
    provider = config.vision_provider.lower()

    if provider == "google":
        from tendergraph.providers.vision.gemini import GeminiVisionProvider
        return GeminiVisionProvider(api_key=config.google_api_key, model=config.vision_model)
    raise ValueError(f"Unknown vision provider: {provider}")


class TenderGraph:
    """
    Graph-RAG engine for tender documents.

    Args:
        storage: Storage backend (initialized by the engine's lifecycle)
        llm: Main chat model
        embeddings: Embedding model
        vision: Optional image transcription model
        fast_llm: Model for short insights (defaults to llm)
        config: Configuration (defaults to RAGConfig())
    """

    def __init__(
        self,
        storage: "StorageBackend",
        llm: "LLMProvider",
        embeddings: "EmbeddingProvider",
        *,
        vision: "VisionProvider | None" = None,
        fast_llm: "LLMProvider | None" = None,
        config: RAGConfig | None = None,
    ) -> None:
        self._config = config or RAGConfig()
        self._storage = storage
        self._llm = llm
        self._embeddings = embeddings

        self.graph = KnowledgeGraphStore(storage)
        self.processor = DocumentProcessor(
            storage=storage,
            text_extractor=TextExtractor(vision, self._config),
            embeddings=embeddings,
            entity_extractor=EntityExtractor(llm, self._config),
            resolver=EntityResolver(storage, embeddings),
            graph=self.graph,
            llm=llm,
            config=self._config,
        )
        self.assembler = ContextAssembler(storage, embeddings, self.graph, self._config)
        self.qa = QAEngine(self.assembler, llm, self._config)
        self.compliance = ComplianceEngine(
            storage, embeddings, self.graph, self.assembler, llm, self._config
        )
        self.smart_search_engine = SmartSearch(
            storage, embeddings, fast_llm or llm, self._config
        )
        self._initialized = False

    @classmethod
    def from_config(
        cls,
        config: RAGConfig | None = None,
        kb_path: str | Path | None = None,
    ) -> "TenderGraph":
        """
        Build an engine with the default providers.

        Args:
            config: Configuration (defaults to RAGConfig())
            kb_path: Knowledge base directory for DuckDB + LanceDB storage;
                None keeps everything in memory
        """
        config = config or RAGConfig()

        storage: StorageBackend
        if kb_path is not None:
            from tendergraph.storage.local.backend import LocalBackend
            storage = LocalBackend(kb_path, config)
        else:
            from tendergraph.storage.memory.backend import InMemoryBackend
            storage = InMemoryBackend()

        vision = None
        if config.google_api_key:
            vision = create_vision_provider(config)
        else:
            logger.info("No Google API key configured; image documents are unsupported")

        return cls(
            storage,
            create_llm_provider(config),
            create_embedding_provider(config),
            vision=vision,
            fast_llm=create_llm_provider(config, model=config.llm_model_fast),
            config=config,
        )

    # === Lifecycle ===

    async def initialize(self) -> None:
        if self._initialized:
            return
        await self._storage.initialize()
        self._initialized = True

    async def close(self) -> None:
        """Release storage resources."""
        if self._initialized:
            await self._storage.close()
            self._initialized = False

    async def __aenter__(self) -> "TenderGraph":
        await self.initialize()
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    # === Properties ===

    @property
    def config(self) -> RAGConfig:
        """Current configuration."""
        return self._config

    @property
    def storage(self) -> "StorageBackend":
        return self._storage

    # === Ingestion ===

    async def process_document(
        self,
        document_id: str,
        data: bytes,
        media_type: str,
        owner_id: str,
        *,
        file_name: str | None = None,
        module: str | None = None,
        tender_id: str | None = None,
        extract_entities: bool = True,
        on_progress: Callable[[str, float], None] | None = None,
    ) -> "ProcessingResult":
        """Ingest a document: extract, chunk, embed, persist, enrich."""
        await self.initialize()
        return await self.processor.process_document(
            document_id,
            data,
            media_type,
            owner_id,
            file_name=file_name,
            module=module,
            tender_id=tender_id,
            extract_entities=extract_entities,
            on_progress=on_progress,
        )

    async def extract_and_save_from_document(
        self, document_id: str, owner_id: str
    ) -> "EnrichmentResult":
        await self.initialize()
        return await self.processor.extract_and_save_from_document(document_id, owner_id)

    async def summarize_document(self, document_id: str, owner_id: str) -> str:
        await self.initialize()
        return await self.processor.summarize_document(document_id, owner_id)

    async def backfill_entity_embeddings(
        self,
        owner_id: str,
        batch_size: int | None = None,
        max_batches: int | None = None,
    ) -> "BackfillResult":
        """Embed entities that were stored without a vector."""
        await self.initialize()
        return await self.processor.backfill_entity_embeddings(
            owner_id, batch_size=batch_size, max_batches=max_batches
        )

    # === Query ===

    async def build_context(
        self,
        query: str,
        owner_id: str,
        *,
        scope: "SearchScope | None" = None,
        max_chunks: int | None = None,
        max_entities: int | None = None,
    ) -> "GraphRAGContext":
        await self.initialize()
        return await self.assembler.build(
            query, owner_id, scope=scope, max_chunks=max_chunks, max_entities=max_entities
        )

    async def answer(
        self, question: str, owner_id: str, scope: "SearchScope | None" = None
    ) -> "QAResult":
        """Answer a question from the owner's documents and graph."""
        await self.initialize()
        return await self.qa.answer(question, owner_id, scope=scope)

    async def check_compliance(
        self,
        owner_id: str,
        supplier: "SupplierProfile",
        tender: "TenderProfile",
    ) -> "ComplianceCheckResult":
        """Check a supplier against a tender's requirements."""
        await self.initialize()
        return await self.compliance.check_compliance(owner_id, supplier, tender)

    async def analyze_risks(self, owner_id: str, tender_id: str) -> "RiskAnalysis":
        await self.initialize()
        return await self.compliance.analyze_risks(owner_id, tender_id)

    async def summarize_tender(self, owner_id: str, tender_id: str) -> str:
        await self.initialize()
        return await self.compliance.summarize_tender(owner_id, tender_id)

    async def smart_search(
        self, query: str, owner_id: str, scope: "SearchScope | None" = None
    ) -> "SmartSearchResult":
        """Chunk search with short insights about the results."""
        await self.initialize()
        return await self.smart_search_engine.search(query, owner_id, scope=scope)

    async def search_chunks(
        self,
        query: str,
        owner_id: str,
        *,
        scope: "SearchScope | None" = None,
        threshold: float | None = None,
        limit: int = 10,
    ) -> list["ChunkMatch"]:
        """Search chunks by semantic similarity."""
        await self.initialize()
        vector = await self._embeddings.embed(query)
        return await self._storage.search_chunks(
            vector,
            owner_id,
            scope=scope,
            threshold=self._config.chunk_search_threshold if threshold is None else threshold,
            limit=limit,
        )

    async def search_entities(
        self,
        query: str,
        owner_id: str,
        *,
        entity_type: "EntityType | str | None" = None,
        threshold: float | None = None,
        limit: int = 10,
    ) -> list["EntityMatch"]:
        """Search entities by semantic similarity."""
        await self.initialize()
        vector = await self._embeddings.embed(query)
        return await self._storage.search_entities(
            vector,
            owner_id,
            entity_type=entity_type,
            threshold=self._config.entity_search_threshold if threshold is None else threshold,
            limit=limit,
        )

    async def get_relations(
        self, entity_id: str, owner_id: str, max_depth: int | None = None
    ) -> list["RelationHop"]:
        """Relations reachable from an entity within max_depth hops."""
        await self.initialize()
        depth = self._config.relation_max_depth if max_depth is None else max_depth
        return await self.graph.get_relations(entity_id, owner_id, max_depth=depth)

    # === Data Access ===

    async def get_document(self, document_id: str, owner_id: str) -> "DocumentRecord | None":
        await self.initialize()
        return await self._storage.get_document(document_id, owner_id)

    async def delete_document(self, document_id: str, owner_id: str) -> None:
        """Delete a document and its chunks."""
        await self.initialize()
        await self._storage.delete_document(document_id, owner_id)

    async def add_relation(self, relation: "Relation") -> bool:
        await self.initialize()
        return await self.graph.add_relation(relation)

    async def soft_delete_entity(self, entity_id: str, owner_id: str) -> bool:
        await self.initialize()
        return await self._storage.soft_delete_entity(entity_id, owner_id)

    # Sync wrappers
    def process_document_sync(self, *args: Any, **kwargs: Any) -> "ProcessingResult":
        """Sync wrapper for process_document."""
        return asyncio.run(self.process_document(*args, **kwargs))

    def answer_sync(self, question: str, owner_id: str, **kwargs: Any) -> "QAResult":
        """Sync wrapper for answer."""
        return asyncio.run(self.answer(question, owner_id, **kwargs))
