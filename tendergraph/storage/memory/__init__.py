"""
In-memory storage backend (dicts + numpy cosine similarity).
"""

from tendergraph.storage.memory.backend import InMemoryBackend

__all__ = ["InMemoryBackend"]
