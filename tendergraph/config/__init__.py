"""
Configuration System

Manages configuration for TenderGraph with a layered approach.

Configuration Priority (highest to lowest):
    1. Programmatic (passed to RAGConfig())
    2. Environment variables (TENDERGRAPH_* prefix)
    3. Config file (RAGConfig.from_file)
    4. Built-in defaults
"""

from tendergraph.config.settings import RAGConfig

__all__ = ["RAGConfig"]
