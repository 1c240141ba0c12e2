"""
Extraction

Modules:
    text: File bytes -> plain text (pypdf, vision model, decoding)
    entities: Text -> typed entities and relations (structured-output LLM call)
"""

from tendergraph.ingestion.extraction.entities import (
    EntityExtractor,
    ExtractionPayload,
    build_extraction_prompt,
    validate_extraction,
)
from tendergraph.ingestion.extraction.text import TextExtractor, parse_media_type

__all__ = [
    "EntityExtractor",
    "ExtractionPayload",
    "build_extraction_prompt",
    "validate_extraction",
    "TextExtractor",
    "parse_media_type",
]
