"""
Pipeline and Query Result Types

Ingestion Models:
    - ExtractionResult: Entities and relations returned by the extractor
    - ResolutionBatch: Name -> id mapping produced by one resolution run
    - ProcessingResult: Outcome of process_document()
    - EnrichmentResult: Counts from entity/relation enrichment
    - BackfillResult: Counts from an embedding backfill run

Query Models:
    - GraphRAGContext: Chunks, entities and relations for one query
    - QAResult: Answer to a free-form question
    - ComplianceCheckResult: Supplier vs. tender verdict
    - RiskAnalysis: Risks identified for a tender
    - SmartSearchResult: Chunk hits plus short insights

Language model responses are untrusted: the compliance and risk models
coerce malformed fields to safe values instead of failing validation.
"""

from enum import Enum
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from tendergraph.types.chunks import ChunkMatch
from tendergraph.types.entities import ExtractedEntity
from tendergraph.types.relations import ExtractedRelation, RelationHop
from tendergraph.utils.text import normalize_entity_name


# -----------------------------------------------------------------------------
# Ingestion
# -----------------------------------------------------------------------------


class ExtractionResult(BaseModel):
    """Output of one entity extraction call."""

    entities: list[ExtractedEntity] = Field(default_factory=list)
    relations: list[ExtractedRelation] = Field(default_factory=list)

    def is_empty(self) -> bool:
        return not self.entities and not self.relations


class ResolutionBatch(BaseModel):
    """
    Mapping from extracted entity names to persisted entity ids.

    Local to one extraction run. Both the display name and its normalized
    form are registered, so relations may refer to either spelling.
    """

    name_to_id: dict[str, str] = Field(default_factory=dict)
    created_ids: list[str] = Field(default_factory=list)
    reused_ids: list[str] = Field(default_factory=list)

    def register(
        self, name: str, normalized_name: str, entity_id: str, created: bool
    ) -> None:
        self.name_to_id[name] = entity_id
        if normalized_name:
            self.name_to_id.setdefault(normalized_name, entity_id)
        if created:
            self.created_ids.append(entity_id)
        else:
            self.reused_ids.append(entity_id)

    def resolve(self, name: str) -> str | None:
        """Look up an id by exact name, then by normalized name."""
        if name in self.name_to_id:
            return self.name_to_id[name]
        normalized = normalize_entity_name(name)
        if not normalized:
            return None
        return self.name_to_id.get(normalized)

    def __len__(self) -> int:
        return len(self.created_ids) + len(self.reused_ids)


class EnrichmentResult(BaseModel):
    """Counts from extracting and saving entities for one document."""

    entities_extracted: int = 0
    entities_created: int = 0
    entities_reused: int = 0
    relations_extracted: int = 0
    relations_created: int = 0
    relations_skipped: int = 0


class ProcessingResult(BaseModel):
    """
    Outcome of document ingestion.

    Attributes:
        document_id: Processed document
        success: Whether the document reached "completed"
        chunks_count: Chunks persisted
        error: Failure message when success is False
        enrichment: Entity/relation counts, None when enrichment was skipped
    """

    document_id: str
    success: bool
    chunks_count: int = 0
    error: str | None = None
    enrichment: EnrichmentResult | None = None


class BackfillResult(BaseModel):
    """Counts from one embedding backfill run."""

    processed: int = 0
    batches: int = 0
    remaining: int = 0
    error: str | None = None


# -----------------------------------------------------------------------------
# Graph-RAG context
# -----------------------------------------------------------------------------


class ContextChunk(BaseModel):
    """A chunk hit carried into the prompt."""

    chunk_id: str
    document_id: str
    text: str
    similarity: float


class ContextEntity(BaseModel):
    """An entity hit carried into the prompt."""

    id: str
    entity_type: str
    name: str
    data: dict[str, Any] = Field(default_factory=dict)
    similarity: float = 0.0


class GraphRAGContext(BaseModel):
    """
    Everything retrieved for one query.

    Relations are unique by (from, type, to).
    """

    query: str
    chunks: list[ContextChunk] = Field(default_factory=list)
    entities: list[ContextEntity] = Field(default_factory=list)
    relations: list[RelationHop] = Field(default_factory=list)

    def is_empty(self) -> bool:
        """No chunk hits and no entity hits: nothing relevant was found."""
        return not self.chunks and not self.entities


class QAResult(BaseModel):
    """
    Answer to a free-form question.

    status is "answered", "no_context" (nothing retrieved, model not
    called) or "degraded" (model call failed).
    """

    answer: str
    status: str = "answered"
    context: GraphRAGContext | None = None


# -----------------------------------------------------------------------------
# Compliance
# -----------------------------------------------------------------------------


class SupplierProfile(BaseModel):
    """Supplier under review."""

    name: str = Field(..., min_length=1)
    inn: str | None = Field(default=None, description="Taxpayer number, if known")
    description: str | None = None


class TenderProfile(BaseModel):
    """Tender the supplier is checked against."""

    id: str
    title: str
    description: str | None = None
    requirements: list[str] = Field(
        default_factory=list, description="Requirements known outside the documents"
    )


class RequirementStatus(str, Enum):
    MET = "met"
    NOT_MET = "not_met"
    PARTIAL = "partial"
    UNKNOWN = "unknown"


def _string_list(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [str(item).strip() for item in value if str(item).strip()]


class RequirementCheck(BaseModel):
    """Verdict for one tender requirement."""

    requirement: str
    status: RequirementStatus = RequirementStatus.UNKNOWN
    details: str = ""
    related_entities: list[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("related_entities", "relatedEntities"),
        serialization_alias="relatedEntities",
    )

    model_config = ConfigDict(use_enum_values=True)

    @field_validator("status", mode="before")
    @classmethod
    def _coerce_status(cls, value: Any) -> Any:
        if isinstance(value, RequirementStatus):
            return value
        label = str(value or "").strip().lower().replace("-", "_").replace(" ", "_")
        try:
            return RequirementStatus(label)
        except ValueError:
            return RequirementStatus.UNKNOWN

    @field_validator("details", mode="before")
    @classmethod
    def _coerce_details(cls, value: Any) -> str:
        return "" if value is None else str(value)

    @field_validator("related_entities", mode="before")
    @classmethod
    def _coerce_entities(cls, value: Any) -> list[str]:
        return _string_list(value)


class ComplianceCheckResult(BaseModel):
    """
    Supplier vs. tender compliance verdict.

    Accepts both snake_case and the camelCase keys the model is asked to
    produce; ``model_dump(by_alias=True)`` emits camelCase.
    """

    is_compliant: bool = Field(
        default=False,
        validation_alias=AliasChoices("is_compliant", "isCompliant"),
        serialization_alias="isCompliant",
    )
    overall_score: int = Field(
        default=0,
        ge=0,
        le=100,
        validation_alias=AliasChoices("overall_score", "overallScore"),
        serialization_alias="overallScore",
    )
    requirements: list[RequirementCheck] = Field(default_factory=list)
    missing_documents: list[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("missing_documents", "missingDocuments"),
        serialization_alias="missingDocuments",
    )
    recommendations: list[str] = Field(default_factory=list)
    degraded: bool = False

    @field_validator("is_compliant", mode="before")
    @classmethod
    def _coerce_bool(cls, value: Any) -> bool:
        return value is True

    @field_validator("overall_score", mode="before")
    @classmethod
    def _clamp_score(cls, value: Any) -> int:
        try:
            score = int(round(float(value)))
        except (TypeError, ValueError):
            return 0
        return max(0, min(100, score))

    @field_validator("requirements", mode="before")
    @classmethod
    def _drop_malformed(cls, value: Any) -> list[Any]:
        if not isinstance(value, list):
            return []
        return [
            item
            for item in value
            if isinstance(item, RequirementCheck)
            or (isinstance(item, dict) and str(item.get("requirement") or "").strip())
        ]

    @field_validator("missing_documents", "recommendations", mode="before")
    @classmethod
    def _coerce_list(cls, value: Any) -> list[str]:
        return _string_list(value)


# -----------------------------------------------------------------------------
# Risk analysis
# -----------------------------------------------------------------------------


class RiskSeverity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


def _coerce_severity(value: Any) -> RiskSeverity:
    if isinstance(value, RiskSeverity):
        return value
    try:
        return RiskSeverity(str(value or "").strip().lower())
    except ValueError:
        return RiskSeverity.MEDIUM


class Risk(BaseModel):
    """One identified risk."""

    type: str = ""
    severity: RiskSeverity = RiskSeverity.MEDIUM
    description: str = ""
    mitigation: str = ""

    model_config = ConfigDict(use_enum_values=True)

    @field_validator("severity", mode="before")
    @classmethod
    def _severity(cls, value: Any) -> RiskSeverity:
        return _coerce_severity(value)

    @field_validator("type", "description", "mitigation", mode="before")
    @classmethod
    def _text(cls, value: Any) -> str:
        return "" if value is None else str(value)


class RiskAnalysis(BaseModel):
    """Risks for a tender with an overall level."""

    risks: list[Risk] = Field(default_factory=list)
    overall_risk: RiskSeverity = Field(
        default=RiskSeverity.MEDIUM,
        validation_alias=AliasChoices("overall_risk", "overallRisk"),
        serialization_alias="overallRisk",
    )
    degraded: bool = False
    message: str | None = None

    model_config = ConfigDict(use_enum_values=True)

    @field_validator("risks", mode="before")
    @classmethod
    def _drop_malformed(cls, value: Any) -> list[Any]:
        if not isinstance(value, list):
            return []
        return [item for item in value if isinstance(item, (dict, Risk))]

    @field_validator("overall_risk", mode="before")
    @classmethod
    def _overall(cls, value: Any) -> RiskSeverity:
        return _coerce_severity(value)


# -----------------------------------------------------------------------------
# Smart search
# -----------------------------------------------------------------------------


class SmartSearchResult(BaseModel):
    """Chunk hits with one or two short insights."""

    query: str
    results: list[ChunkMatch] = Field(default_factory=list)
    insights: list[str] = Field(default_factory=list)



class SearchInsights(BaseModel):
    """Model answer for search insights; non-string items are dropped."""

    insights: list[str] = Field(default_factory=list)

    @field_validator("insights", mode="before")
    @classmethod
    def _strings_only(cls, value: Any) -> list[str]:
        if not isinstance(value, list):
            return []
        return [item.strip() for item in value if isinstance(item, str) and item.strip()]
