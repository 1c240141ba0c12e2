"""
Embedding Provider Implementations

Modules:
    openai: OpenAI embeddings (text-embedding-3-small)

Each provider implements the EmbeddingProvider interface with:
    - embed(): Single text embedding
    - embed_many(): Batched embedding generation
    - dimensions: Vector dimensionality
    - model_name: Current model identifier

Sync SDK methods are wrapped with asyncio.to_thread for async compatibility.

Example:
    >>> from tendergraph.providers.embedding import OpenAIEmbeddingProvider
    >>> provider = OpenAIEmbeddingProvider(model="text-embedding-3-small")
    >>> vectors = await provider.embed_many(["Hello", "World"])
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from tendergraph.providers.embedding.openai import OpenAIEmbeddingProvider


def __getattr__(name: str):
    """Lazy import of providers to avoid requiring all dependencies."""
    if name == "OpenAIEmbeddingProvider":
        from tendergraph.providers.embedding.openai import OpenAIEmbeddingProvider
        return OpenAIEmbeddingProvider
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = ["OpenAIEmbeddingProvider"]
