"""
Entity Resolution

Modules:
    entity_resolver: Exact (owner, type, normalized name) deduplication
"""

from tendergraph.ingestion.resolution.entity_resolver import EntityResolver

__all__ = ["EntityResolver"]
