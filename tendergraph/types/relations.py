"""
Relation Types

Relations are directed, typed edges between two entities.

Storage Models:
    - Relation: Persisted edge (source, type, target) with provenance
    - RelationType: Closed relation vocabulary

Extraction Models:
    - ExtractedRelation: Edge between entity *names*, before resolution

Traversal Models:
    - RelationHop: One edge reached during breadth-first traversal
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class RelationType(str, Enum):
    """Relation vocabulary between entities."""

    HAS_CERT = "HAS_CERT"  # supplier holds a certificate
    REQUIRES_CERT = "REQUIRES_CERT"  # tender requires a certificate
    SUPPLIES = "SUPPLIES"  # supplier delivers a product
    WORKS_FOR = "WORKS_FOR"  # person works for an organization
    VIOLATES = "VIOLATES"
    PARTICIPATES = "PARTICIPATES"  # participates in a tender
    REFERENCES = "REFERENCES"  # refers to a document or standard
    REQUIRES = "REQUIRES"  # requires a document to be present


class Relation(BaseModel):
    """
    A persisted relation in the knowledge graph.

    (source_id, relation_type, target_id) is unique.
    """

    id: str
    owner_id: str
    source_id: str
    relation_type: RelationType
    target_id: str
    data: dict[str, Any] = Field(default_factory=dict)
    confidence: float = Field(default=0.8, ge=0.0, le=1.0)
    source_document_id: str | None = None
    created_at: str | None = None

    model_config = ConfigDict(use_enum_values=True)

    @property
    def key(self) -> tuple[str, str, str]:
        """Identity of the edge."""
        relation_type = getattr(self.relation_type, "value", self.relation_type)
        return (self.source_id, relation_type, self.target_id)


class ExtractedRelation(BaseModel):
    """A candidate relation whose endpoints are referenced by name."""

    source_name: str = Field(..., min_length=1)
    relation_type: RelationType
    target_name: str = Field(..., min_length=1)
    data: dict[str, Any] = Field(default_factory=dict)
    confidence: float = Field(default=0.8, ge=0.0, le=1.0)

    model_config = ConfigDict(use_enum_values=True)


class RelationHop(BaseModel):
    """
    One edge reached by graph traversal.

    ``depth`` is the hop count from the start entity at which the edge was
    first reached (1 = adjacent).
    """

    relation_id: str
    from_id: str
    from_name: str
    from_type: str
    relation_type: str
    to_id: str
    to_name: str
    to_type: str
    depth: int
