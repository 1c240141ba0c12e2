"""
Document Chunking

Transforms extracted document text into overlapping chunks for embedding.

Modules:
    text: Sentence-aligned plain text chunking (800 / 100 / 100 defaults)

Key Features:
    - Cuts after ". ", "! ", "? ", blank lines or newlines when possible
    - Fixed overlap between neighbours for retrieval continuity
    - Offsets into the source text on every span
"""

from tendergraph.ingestion.chunking.text import DELIMITERS, chunk_text

__all__ = ["chunk_text", "DELIMITERS"]
