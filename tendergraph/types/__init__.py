"""
Type Definitions

Pydantic models for all data structures.

Storage Models (persisted to DuckDB/LanceDB or the in-memory backend):
    - DocumentRecord, DocumentStatus - Ingestion state of a document
    - Chunk - Overlapping slices of a document's text
    - Entity, EntityType - Typed named objects
    - Relation, RelationType - Directed typed edges between entities

Extraction Models (used during ingestion pipeline):
    - TextSpan - Chunker output
    - ExtractedEntity, ExtractedRelation - Raw extraction output, by name
    - ExtractionResult, ResolutionBatch - Extraction and name -> id mapping

Query Models:
    - ChunkMatch, EntityMatch, SearchScope - Vector search
    - RelationHop - Graph traversal output
    - GraphRAGContext - Assembled retrieval context
    - QAResult, ComplianceCheckResult, RiskAnalysis, SmartSearchResult, SearchInsights
"""

from tendergraph.types.chunks import (
    Chunk,
    ChunkMatch,
    DocumentRecord,
    DocumentStatus,
    SearchScope,
    TextSpan,
)
from tendergraph.types.entities import (
    ENTITY_TYPE_ALIASES,
    Entity,
    EntityMatch,
    EntityType,
    ExtractedEntity,
    parse_entity_type,
)
from tendergraph.types.relations import (
    ExtractedRelation,
    Relation,
    RelationHop,
    RelationType,
)
from tendergraph.types.results import (
    BackfillResult,
    ComplianceCheckResult,
    ContextChunk,
    ContextEntity,
    EnrichmentResult,
    ExtractionResult,
    GraphRAGContext,
    ProcessingResult,
    QAResult,
    RequirementCheck,
    RequirementStatus,
    ResolutionBatch,
    Risk,
    RiskAnalysis,
    RiskSeverity,
    SearchInsights,
    SmartSearchResult,
    SupplierProfile,
    TenderProfile,
)

__all__ = [
    # Storage Models
    "DocumentRecord",
    "DocumentStatus",
    "Chunk",
    "Entity",
    "EntityType",
    "ENTITY_TYPE_ALIASES",
    "parse_entity_type",
    "Relation",
    "RelationType",
    # Extraction Models
    "TextSpan",
    "ExtractedEntity",
    "ExtractedRelation",
    "ExtractionResult",
    "ResolutionBatch",
    "ProcessingResult",
    "EnrichmentResult",
    "BackfillResult",
    # Query Models
    "SearchScope",
    "ChunkMatch",
    "EntityMatch",
    "RelationHop",
    "ContextChunk",
    "ContextEntity",
    "GraphRAGContext",
    "QAResult",
    "SupplierProfile",
    "TenderProfile",
    "RequirementStatus",
    "RequirementCheck",
    "ComplianceCheckResult",
    "RiskSeverity",
    "Risk",
    "RiskAnalysis",
    "SearchInsights",
    "SmartSearchResult",
]
