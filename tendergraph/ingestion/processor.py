"""
Document Processor

Drives ingestion of one uploaded document and the follow-up enrichment.

Pipeline:
    1. Status -> processing (attempts + 1), previous chunks deleted
    2. Text extraction (PDF, image, plain text)
    3. Chunking with overlap
    4. Chunk embedding, in index order
    5. Chunk persistence, status -> completed
    6. Enrichment: entity/relation extraction over the first chunks,
       resolution, relation insertion

Steps 1-5 are all-or-nothing per run: any failure moves the document to
"failed" with the error message and returns a structured failure. A retry
starts from scratch. Enrichment failures are logged and never fail the
document.

Example:
    >>> processor = DocumentProcessor(storage, extractor, embeddings, ...)
    >>> result = await processor.process_document("doc-1", pdf_bytes,
    ...     "application/pdf", owner_id="user-1", tender_id="t-42")
    >>> print(result.success, result.chunks_count)
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Callable

from tendergraph.errors import ExtractionFailed, NoChunksProduced
from tendergraph.ingestion.chunking import chunk_text
from tendergraph.types import (
    BackfillResult,
    Chunk,
    DocumentRecord,
    DocumentStatus,
    EnrichmentResult,
    ProcessingResult,
)
from tendergraph.utils.text import format_entity_embedding_text, generate_chunk_id

if TYPE_CHECKING:
    from tendergraph.config import RAGConfig
    from tendergraph.graph.store import KnowledgeGraphStore
    from tendergraph.ingestion.extraction import EntityExtractor, TextExtractor
    from tendergraph.ingestion.resolution import EntityResolver
    from tendergraph.providers.base import EmbeddingProvider, LLMProvider
    from tendergraph.storage.base import StorageBackend

logger = logging.getLogger(__name__)


SUMMARY_TRUNCATION_MARK = "...[truncated]"
SUMMARY_FALLBACK = "Could not create a document summary."

DOCUMENT_SUMMARY_PROMPT = """Create a structured summary of the following document in {language}.

Include:
1. Short description (2-3 sentences)
2. Main points and requirements (as a list)
3. Key dates and deadlines (if any)
4. Important amounts and prices (if any)
5. Contact information (if any)

Document:
{text}"""


def _non_blank_length(text: str) -> int:
    return sum(1 for ch in text if not ch.isspace())


class DocumentProcessor:
    """
    Ingestion driver.

    Args:
        storage: Document, chunk and graph persistence
        text_extractor: Raw bytes -> text
        embeddings: Chunk and entity embedder
        entity_extractor: Text -> candidate entities/relations
        resolver: Candidates -> persisted entity ids
        graph: Relation insertion
        llm: Model used for document summaries
        config: Chunking and extraction limits
    """

    def __init__(
        self,
        storage: StorageBackend,
        text_extractor: TextExtractor,
        embeddings: EmbeddingProvider,
        entity_extractor: EntityExtractor,
        resolver: EntityResolver,
        graph: KnowledgeGraphStore,
        llm: LLMProvider,
        config: RAGConfig,
    ) -> None:
        self.storage = storage
        self.text_extractor = text_extractor
        self.embeddings = embeddings
        self.entity_extractor = entity_extractor
        self.resolver = resolver
        self.graph = graph
        self.llm = llm
        self.config = config

    # -------------------------------------------------------------------------
    # Ingestion
    # -------------------------------------------------------------------------

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
    ) -> ProcessingResult:
        """
        Ingest a document. Never raises; failures are recorded on the
        document and returned.

        Args:
            document_id: Document identifier (created if unknown)
            data: Raw file bytes
            media_type: MIME type, e.g. "application/pdf"
            owner_id: Tenant
            file_name: Original file name
            module: Application module (default from config or the stored document)
            tender_id: Tender the document belongs to
            extract_entities: Run enrichment after a successful ingestion
            on_progress: Optional callback(stage, progress 0..1)
        """

        def report(stage: str, progress: float) -> None:
            if on_progress:
                on_progress(stage, progress)

        try:
            document = await self._prepare_document(
                document_id, owner_id, file_name, media_type, module, tender_id
            )
        except Exception as e:
            logger.exception(f"Could not register document {document_id}")
            return ProcessingResult(document_id=document_id, success=False, error=str(e))

        try:
            report("extraction", 0.0)
            removed = await self.storage.delete_chunks(document_id, owner_id)
            if removed:
                logger.info(f"Removed {removed} chunks from a previous run of {document_id}")

            text = await self.text_extractor.extract(data, media_type)
            if _non_blank_length(text) < self.config.min_extracted_text_length:
                raise ExtractionFailed(
                    f"Extracted text is too short ({_non_blank_length(text)} characters)"
                )
            report("extraction", 1.0)

            report("chunking", 0.0)
            spans = chunk_text(
                text,
                max_chunk_size=self.config.chunk_max_size,
                min_chunk_size=self.config.chunk_min_size,
                overlap_size=self.config.chunk_overlap_size,
                search_window=self.config.chunk_search_window,
            )
            if not spans:
                raise NoChunksProduced(f"No chunks produced for document {document_id}")
            report("chunking", 1.0)

            report("embedding", 0.0)
            vectors = await self.embeddings.embed_many([span.text for span in spans])
            report("embedding", 1.0)

            chunks = [
                Chunk(
                    id=generate_chunk_id(document_id, index),
                    document_id=document_id,
                    owner_id=owner_id,
                    chunk_index=index,
                    text_content=span.text,
                    char_start=span.start,
                    char_end=span.end,
                    embedding=vector,
                    metadata={"word_count": len(span.text.split())},
                    module=document.module,
                    tender_id=document.tender_id,
                )
                for index, (span, vector) in enumerate(zip(spans, vectors))
            ]
            await self.storage.upsert_chunks(chunks)
            await self.storage.update_document_status(
                document_id, owner_id, DocumentStatus.COMPLETED, chunks_count=len(chunks)
            )
        except Exception as e:
            logger.exception(f"Processing failed for document {document_id}: {e}")
            await self._mark_failed(document_id, owner_id, str(e))
            return ProcessingResult(document_id=document_id, success=False, error=str(e))

        logger.info(f"Processed document {document_id}: {len(chunks)} chunks")

        enrichment = None
        if extract_entities:
            report("enrichment", 0.0)
            enrichment = await self.extract_and_save_from_document(document_id, owner_id)
            report("enrichment", 1.0)

        return ProcessingResult(
            document_id=document_id,
            success=True,
            chunks_count=len(chunks),
            enrichment=enrichment,
        )

    async def _prepare_document(
        self,
        document_id: str,
        owner_id: str,
        file_name: str | None,
        media_type: str,
        module: str | None,
        tender_id: str | None,
    ) -> DocumentRecord:
        existing = await self.storage.get_document(document_id, owner_id)
        if existing is None:
            document = DocumentRecord(
                id=document_id,
                owner_id=owner_id,
                file_name=file_name,
                media_type=media_type,
                module=module or self.config.default_module,
                tender_id=tender_id,
            )
        else:
            document = existing.model_copy(
                update={
                    "file_name": file_name or existing.file_name,
                    "media_type": media_type,
                    "module": module or existing.module,
                    "tender_id": tender_id if tender_id is not None else existing.tender_id,
                }
            )
        await self.storage.upsert_document(document)
        await self.storage.update_document_status(
            document_id,
            owner_id,
            DocumentStatus.PROCESSING,
            error=None,
            increment_attempts=True,
        )
        return document

    async def _mark_failed(self, document_id: str, owner_id: str, error: str) -> None:
        try:
            await self.storage.update_document_status(
                document_id, owner_id, DocumentStatus.FAILED, error=error
            )
        except Exception as e:
            logger.error(f"Could not record failure for document {document_id}: {e}")

    # -------------------------------------------------------------------------
    # Enrichment
    # -------------------------------------------------------------------------

    async def extract_and_save_from_document(
        self, document_id: str, owner_id: str
    ) -> EnrichmentResult:
        """
        Extract entities and relations from the first chunks of a document
        and save them to the graph.

        Non-fatal: failures are logged and the counts reached so far returned.
        """
        result = EnrichmentResult()
        try:
            chunks = await self.storage.get_chunks(
                document_id, owner_id, limit=self.config.extraction_max_chunks
            )
            if not chunks:
                logger.info(f"No chunks to enrich for document {document_id}")
                return result

            document = await self.storage.get_document(document_id, owner_id)
            context = f"Document: {document.file_name}" if document and document.file_name else None

            extraction = await self.entity_extractor.extract(
                "\n\n".join(chunk.text_content for chunk in chunks), context=context
            )
            result.entities_extracted = len(extraction.entities)
            result.relations_extracted = len(extraction.relations)
            if extraction.is_empty():
                return result

            batch = await self.resolver.resolve(extraction.entities, owner_id)
            result.entities_created = len(batch.created_ids)
            result.entities_reused = len(batch.reused_ids)

            created = await self.graph.insert_relations(
                extraction.relations, batch, owner_id, source_document_id=document_id
            )
            result.relations_created = created
            result.relations_skipped = len(extraction.relations) - created
        except Exception as e:
            logger.exception(f"Enrichment failed for document {document_id}: {e}")
            return result

        logger.info(
            f"Enriched document {document_id}: {result.entities_created} new entities, "
            f"{result.relations_created} relations"
        )
        return result

    async def summarize_document(self, document_id: str, owner_id: str) -> str:
        """
        Summarize a processed document from its chunks.

        Raises:
            NoChunksProduced: If the document has no chunks
        """
        chunks = await self.storage.get_chunks(document_id, owner_id)
        if not chunks:
            raise NoChunksProduced(f"No chunks found for document {document_id}")

        text = "\n\n".join(chunk.text_content for chunk in chunks)
        if len(text) > self.config.summary_max_chars:
            text = text[: self.config.summary_max_chars] + SUMMARY_TRUNCATION_MARK

        try:
            summary = await self.llm.generate(
                DOCUMENT_SUMMARY_PROMPT.format(
                    language=self.config.response_language, text=text
                ),
                temperature=0.3,
            )
        except Exception as e:
            logger.warning(f"Document summary failed for {document_id}: {e}")
            return SUMMARY_FALLBACK
        return summary.strip() or SUMMARY_FALLBACK

    # -------------------------------------------------------------------------
    # Maintenance
    # -------------------------------------------------------------------------

    async def backfill_entity_embeddings(
        self,
        owner_id: str,
        batch_size: int | None = None,
        max_batches: int | None = None,
    ) -> BackfillResult:
        """
        Embed entities stored without a vector.

        Works in slices of batch_size, oldest first. Already-embedded
        entities are never touched, so running it twice is harmless. An
        embedding failure stops the run and is reported in the result.
        """
        batch_size = batch_size or self.config.backfill_batch_size
        if batch_size <= 0:
            raise ValueError(f"batch_size must be positive, got {batch_size}")

        result = BackfillResult()
        while max_batches is None or result.batches < max_batches:
            pending = await self.storage.list_entities_without_embedding(owner_id, batch_size)
            if not pending:
                break

            texts = [
                format_entity_embedding_text(str(e.entity_type), e.name, e.data)
                for e in pending
            ]
            try:
                vectors = await self.embeddings.embed_many(texts)
            except Exception as e:
                logger.warning(f"Embedding backfill stopped: {e}")
                result.error = str(e)
                break

            for entity, vector in zip(pending, vectors):
                await self.storage.set_entity_embedding(entity.id, owner_id, vector)
            result.processed += len(pending)
            result.batches += 1

            if len(pending) < batch_size:
                break

        result.remaining = await self.storage.count_entities_without_embedding(owner_id)
        logger.info(
            f"Backfilled {result.processed} entity embeddings, {result.remaining} remaining"
        )
        return result
