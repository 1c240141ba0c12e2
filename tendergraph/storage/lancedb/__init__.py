"""
LanceDB Vector Indices

Vector search for semantic retrieval.

Modules:
    indices: Vector index management

Index Schemas:
    chunks.lance:
        id, owner_id, document_id, chunk_index, text, module, tender_id, vector

    entities.lance:
        id, owner_id, entity_type, name, vector

Features:
    - Cosine similarity search
    - Owner prefiltering, plus module / tender / document / entity type filters
"""

from tendergraph.storage.lancedb.indices import LanceDBIndices

__all__ = ["LanceDBIndices"]
