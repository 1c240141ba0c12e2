"""
DuckDB Query Layer

Relational storage in a single DuckDB file.

Modules:
    queries: SQL query implementations

Tables:
    documents, chunks, entities, relations (all carry owner_id)

Query Patterns:
    - Entity lookup by (owner, type, normalized name), live rows only
    - Chunks of a document in index order
    - Edges touching an entity in either direction

    -- edges for traversal
    SELECT * FROM relations
    WHERE owner_id = ? AND (source_id = ? OR target_id = ?)
"""

from tendergraph.storage.duckdb.queries import DuckDBQueries

__all__ = ["DuckDBQueries"]
