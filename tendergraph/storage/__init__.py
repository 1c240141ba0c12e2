"""
Storage Backends

Owner-scoped persistence for documents, chunks, entities and relations,
plus cosine vector search.

Modules:
    base: Abstract storage interface
    memory/: Dict + numpy implementation (tests, short-lived processes)
    local/: DuckDB + LanceDB implementation
    lancedb/: Vector search indices
    duckdb/: Relational tables

Knowledge Base Directory Structure (LocalBackend):
    my_kb/
    ├── metadata.json           # schema version and vector size
    ├── graph.duckdb            # documents, chunks, entities, relations
    └── lancedb/                # vector indices
        ├── chunks.lance/
        └── entities.lance/

Design Principles:
    - Zero infrastructure (embedded databases)
    - Portable (knowledge base is just a directory)
    - Tenant isolation on every call
"""

from tendergraph.storage.base import StorageBackend
from tendergraph.storage.memory.backend import InMemoryBackend


def __getattr__(name: str):
    """Lazy import of the local backend to avoid loading DuckDB/LanceDB eagerly."""
    if name == "LocalBackend":
        from tendergraph.storage.local.backend import LocalBackend
        return LocalBackend
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = [
    "StorageBackend",
    "InMemoryBackend",
    "LocalBackend",
]
