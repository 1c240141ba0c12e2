"""
Query Module

Graph-RAG retrieval and answering.

Modules:
    context_builder: Merges chunk hits, entity hits and graph neighbourhoods
    qa: Question answering from assembled context
    compliance: Supplier compliance checks, risk analysis, tender summaries
    search: Chunk search with short insights
"""

from tendergraph.query.compliance import ComplianceEngine
from tendergraph.query.context_builder import ContextAssembler, format_context_for_prompt
from tendergraph.query.qa import QAEngine
from tendergraph.query.search import SmartSearch

__all__ = [
    "ComplianceEngine",
    "ContextAssembler",
    "QAEngine",
    "SmartSearch",
    "format_context_for_prompt",
]
