"""
Public API

Modules:
    engine: TenderGraph facade and provider factories
"""

from tendergraph.api.engine import TenderGraph

__all__ = ["TenderGraph"]
