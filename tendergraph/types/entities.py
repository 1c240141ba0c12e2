"""
Entity Types

Entities are named real-world objects found in tender and supplier documents.

Storage Models:
    - Entity: Persisted entity with normalized name and vector
    - EntityType: Closed classification vocabulary

Extraction Models (used during ingestion):
    - ExtractedEntity: Candidate entity from the language model, before resolution

Search Models:
    - EntityMatch: Entity search hit with cosine similarity
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class EntityType(str, Enum):
    """
    Entity classification types.

    Suppliers are companies bidding on or delivering tenders; organizations
    are customers and government bodies.
    """

    SUPPLIER = "supplier"
    ORGANIZATION = "organization"
    PERSON = "person"
    CERTIFICATE = "certificate"
    STANDARD = "standard"  # GOST, TU, SanPiN, ISO norms
    PRODUCT = "product"
    DOCUMENT = "document"
    LICENSE = "license"
    REQUIREMENT = "requirement"


# Labels the model tends to produce instead of the canonical vocabulary
ENTITY_TYPE_ALIASES: dict[str, EntityType] = {
    "gost": EntityType.STANDARD,
    "company": EntityType.SUPPLIER,
    "vendor": EntityType.SUPPLIER,
    "customer": EntityType.ORGANIZATION,
    "cert": EntityType.CERTIFICATE,
    "permit": EntityType.LICENSE,
}


def parse_entity_type(label: Any) -> EntityType | None:
    """Map a free-form type label to EntityType, or None if unknown."""
    if not isinstance(label, str):
        return None
    key = label.strip().lower()
    try:
        return EntityType(key)
    except ValueError:
        return ENTITY_TYPE_ALIASES.get(key)


class Entity(BaseModel):
    """
    A persisted entity in the knowledge graph.

    Attributes:
        id: Unique identifier
        owner_id: Tenant owning the entity
        entity_type: Classification
        name: Display name as extracted
        normalized_name: Lower-cased, punctuation and legal-form free key
        external_id: Registry identifier (e.g. INN)
        external_source: Label of the registry
        data: Free-form structured attributes
        confidence: Extraction confidence in [0, 1]
        embedding: Vector, None until embedded (see backfill)
        deleted_at: Soft-deletion timestamp
    """

    id: str
    owner_id: str
    entity_type: EntityType
    name: str
    normalized_name: str
    external_id: str | None = None
    external_source: str | None = None
    data: dict[str, Any] = Field(default_factory=dict)
    confidence: float = Field(default=0.8, ge=0.0, le=1.0)
    embedding: list[float] | None = None
    created_at: str | None = None
    deleted_at: str | None = None

    model_config = ConfigDict(use_enum_values=True)

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None


# -----------------------------------------------------------------------------
# Extraction Models (used during ingestion pipeline)
# -----------------------------------------------------------------------------


class ExtractedEntity(BaseModel):
    """
    A candidate entity returned by the extractor.

    Relations refer to candidates by ``name``; ids are assigned downstream
    by the resolver.
    """

    entity_type: EntityType
    name: str = Field(..., min_length=1)
    normalized_name: str
    external_id: str | None = None
    external_source: str | None = None
    data: dict[str, Any] = Field(default_factory=dict)
    confidence: float = Field(default=0.8, ge=0.0, le=1.0)

    model_config = ConfigDict(use_enum_values=True)


class EntityMatch(BaseModel):
    """
    Result from semantic entity search.

    Attributes:
        entity: The matched entity (embedding not populated)
        similarity: Cosine similarity to the query vector
    """

    entity: Entity
    similarity: float
