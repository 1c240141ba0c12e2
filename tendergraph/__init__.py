"""
TenderGraph - Graph-RAG Retrieval Core

An embeddable Python library that turns tender and supplier documents into
searchable chunks, builds a typed knowledge graph of entities and relations,
and combines vector search with graph traversal for question answering and
compliance checks.

Example:
    >>> from tendergraph import TenderGraph, RAGConfig
    >>> engine = TenderGraph.from_config(RAGConfig(), "./kb")
    >>> async with engine:
    ...     await engine.process_document("doc-1", data, "application/pdf", "user-1")
    ...     result = await engine.answer("Which certificates are required?", "user-1")
    >>> print(result.answer)

Main Classes:
    TenderGraph: Facade wiring storage, providers and engines together
    RAGConfig: Configuration management
"""

__version__ = "0.1.0"

# Public API - lazy imports to avoid loading optional dependencies
def __getattr__(name: str):
    """Lazy import public API components."""

    if name == "TenderGraph":
        from tendergraph.api.engine import TenderGraph
        return TenderGraph

    if name == "RAGConfig":
        from tendergraph.config.settings import RAGConfig
        return RAGConfig

    if name == "chunk_text":
        from tendergraph.ingestion.chunking import chunk_text
        return chunk_text

    # Types
    if name in (
        "Chunk",
        "Entity",
        "Relation",
        "DocumentRecord",
        "GraphRAGContext",
        "ComplianceCheckResult",
        "QAResult",
    ):
        from tendergraph import types
        return getattr(types, name)

    raise AttributeError(f"module 'tendergraph' has no attribute {name!r}")


__all__ = [
    # Main classes
    "TenderGraph",
    "RAGConfig",

    # Functions
    "chunk_text",

    # Types
    "Chunk",
    "Entity",
    "Relation",
    "DocumentRecord",
    "GraphRAGContext",
    "ComplianceCheckResult",
    "QAResult",

    # Version
    "__version__",
]
