"""
Utility Functions

Helper functions used throughout the package.

Note: Cosine similarity for persistent storage is handled by LanceDB's
vector search; only the in-memory backend computes it with numpy.

Modules:
    text: Entity name normalization and embedding text
"""

from tendergraph.utils.text import (
    clean_entity_name,
    format_entity_embedding_text,
    generate_chunk_id,
    normalize_entity_name,
    normalize_relation_type,
)

__all__ = [
    "clean_entity_name",
    "format_entity_embedding_text",
    "generate_chunk_id",
    "normalize_entity_name",
    "normalize_relation_type",
]
