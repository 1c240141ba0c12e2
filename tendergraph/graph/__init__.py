"""
Knowledge Graph

Modules:
    store: Relation insertion and bounded breadth-first traversal
"""

from tendergraph.graph.store import KnowledgeGraphStore

__all__ = ["KnowledgeGraphStore"]
