"""
Ingestion Module

Turns uploaded documents into chunks, vectors and graph entities.

Modules:
    chunking: Boundary-aware chunking with overlap
    extraction: Text extraction and entity/relation extraction
    resolution: Entity deduplication against the store
    processor: Ingestion driver, enrichment, summaries, embedding backfill
"""

from tendergraph.ingestion.chunking import chunk_text
from tendergraph.ingestion.extraction import EntityExtractor, TextExtractor
from tendergraph.ingestion.processor import DocumentProcessor
from tendergraph.ingestion.resolution import EntityResolver

__all__ = [
    "chunk_text",
    "DocumentProcessor",
    "EntityExtractor",
    "EntityResolver",
    "TextExtractor",
]
