"""
Local storage backend (DuckDB tables + LanceDB vectors in one directory).
"""

from tendergraph.storage.local.backend import LocalBackend

__all__ = ["LocalBackend"]
