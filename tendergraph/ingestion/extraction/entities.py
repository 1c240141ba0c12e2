"""
Entity and Relation Extractor

Asks the language model for typed entities and typed relations in one
structured-output call, then validates the answer item by item.

Relations reference entities by name; ids are assigned later by the
resolver. Extraction is enrichment: any service or parse error is logged
and yields an empty ExtractionResult.

Example:
    >>> extractor = EntityExtractor(llm, config)
    >>> result = await extractor.extract("ООО Ромашка имеет сертификат ХАССП")
    >>> [(e.entity_type, e.name) for e in result.entities]
    [('supplier', 'ООО Ромашка'), ('certificate', 'Сертификат ХАССП')]
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, Field, ValidationError, field_validator

from tendergraph.config import RAGConfig
from tendergraph.errors import LanguageModelParseError
from tendergraph.types import (
    EntityType,
    ExtractedEntity,
    ExtractedRelation,
    ExtractionResult,
    RelationType,
    parse_entity_type,
)
from tendergraph.utils.text import (
    clean_entity_name,
    normalize_entity_name,
    normalize_relation_type,
)

if TYPE_CHECKING:
    from tendergraph.providers.base import LLMProvider

logger = logging.getLogger(__name__)


# -----------------------------------------------------------------------------
# Prompts
# -----------------------------------------------------------------------------

_EXTRACTION_SYSTEM_PROMPT = """\
You build a knowledge graph from procurement (tender) documents and supplier paperwork.
Extract named entities and the relations between them. Reply with a single JSON object only."""

_ENTITY_TYPE_GUIDE = {
    EntityType.SUPPLIER: "Suppliers and companies (LLC/OOO, sole traders/IP)",
    EntityType.ORGANIZATION: "Customers, government bodies, regulators",
    EntityType.PERSON: "People (directors, contact persons)",
    EntityType.CERTIFICATE: "Certificates (HACCP/ХАССП, ISO 9001, declarations of conformity)",
    EntityType.STANDARD: "Standards and norms (GOST/ГОСТ Р, TU/ТУ, SanPiN/СанПиН)",
    EntityType.PRODUCT: "Goods and products",
    EntityType.DOCUMENT: "Named documents (contracts, protocols, specifications)",
    EntityType.LICENSE: "Licenses and permits",
    EntityType.REQUIREMENT: "Requirements placed on participants",
}

_RELATION_TYPE_GUIDE = {
    RelationType.HAS_CERT: "a company holds a certificate",
    RelationType.REQUIRES_CERT: "a tender requires a certificate",
    RelationType.SUPPLIES: "a company supplies a product",
    RelationType.WORKS_FOR: "a person works for an organization",
    RelationType.VIOLATES: "an entity violates a requirement or standard",
    RelationType.PARTICIPATES: "a company participates in a tender",
    RelationType.REFERENCES: "something refers to a document or standard",
    RelationType.REQUIRES: "something requires a document to be present",
}

_EXTRACTION_USER_TEMPLATE = """\
{context_block}TEXT:
{text}

Entity types:
{entity_types}

Relation types:
{relation_types}

Rules:
- Use names exactly as written in the text (keep the original language).
- "externalId"/"externalSource" hold registry identifiers such as an INN, OGRN or certificate number.
- "confidence" is a number between 0 and 1.
- Relations may only connect entities listed in "entities", referenced by their "name".

Reply ONLY with JSON of this shape:
{{
  "entities": [
    {{
      "type": "supplier",
      "name": "ООО Ромашка",
      "externalId": "1234567890",
      "externalSource": "INN",
      "data": {{"address": "Moscow"}},
      "confidence": 0.95
    }}
  ],
  "relations": [
    {{
      "fromEntityName": "ООО Ромашка",
      "relationType": "HAS_CERT",
      "toEntityName": "Сертификат ХАССП",
      "data": {{}},
      "confidence": 0.9
    }}
  ]
}}"""


def build_extraction_prompt(text: str, context: str | None = None) -> str:
    """Render the user prompt listing both closed vocabularies."""
    entity_types = "\n".join(f"- {t.value}: {desc}" for t, desc in _ENTITY_TYPE_GUIDE.items())
    relation_types = "\n".join(f"- {t.value}: {desc}" for t, desc in _RELATION_TYPE_GUIDE.items())
    context_block = f"CONTEXT: {context}\n\n" if context else ""
    return _EXTRACTION_USER_TEMPLATE.format(
        context_block=context_block,
        text=text,
        entity_types=entity_types,
        relation_types=relation_types,
    )


# -----------------------------------------------------------------------------
# Response validation
# -----------------------------------------------------------------------------


def _confidence(value: Any, default: float) -> float:
    if isinstance(value, bool):
        return default
    try:
        confidence = float(value)
    except (TypeError, ValueError):
        return default
    if confidence != confidence:  # NaN
        return default
    return max(0.0, min(1.0, confidence))


def _optional_str(value: Any) -> str | None:
    if value is None or isinstance(value, (dict, list)):
        return None
    text = str(value).strip()
    return text or None


def _parse_entity(item: Any, default_confidence: float) -> ExtractedEntity | None:
    if not isinstance(item, dict):
        return None
    entity_type = parse_entity_type(item.get("type"))
    raw_name = item.get("name")
    if entity_type is None or not isinstance(raw_name, str):
        return None
    name = clean_entity_name(raw_name)
    normalized = normalize_entity_name(name)
    if not name or not normalized:
        return None
    data = item.get("data")
    try:
        return ExtractedEntity(
            entity_type=entity_type,
            name=name,
            normalized_name=normalized,
            external_id=_optional_str(item.get("externalId", item.get("external_id"))),
            external_source=_optional_str(
                item.get("externalSource", item.get("external_source"))
            ),
            data=data if isinstance(data, dict) else {},
            confidence=_confidence(item.get("confidence"), default_confidence),
        )
    except ValidationError:
        return None


def _parse_relation(item: Any, default_confidence: float) -> ExtractedRelation | None:
    if not isinstance(item, dict):
        return None
    source = item.get("fromEntityName", item.get("from"))
    target = item.get("toEntityName", item.get("to"))
    label = item.get("relationType", item.get("type"))
    if not all(isinstance(v, str) for v in (source, target, label)):
        return None
    try:
        relation_type = RelationType(normalize_relation_type(label))
    except ValueError:
        return None
    source, target = clean_entity_name(source), clean_entity_name(target)
    if not source or not target:
        return None
    if normalize_entity_name(source) == normalize_entity_name(target):
        return None
    data = item.get("data")
    try:
        return ExtractedRelation(
            source_name=source,
            relation_type=relation_type,
            target_name=target,
            data=data if isinstance(data, dict) else {},
            confidence=_confidence(item.get("confidence"), default_confidence),
        )
    except ValidationError:
        return None


class ExtractionPayload(BaseModel):
    """Raw model answer; items are validated one by one afterwards."""

    entities: list[Any] = Field(default_factory=list)
    relations: list[Any] = Field(default_factory=list)

    @field_validator("entities", "relations", mode="before")
    @classmethod
    def _list_or_empty(cls, value: Any) -> list[Any]:
        return value if isinstance(value, list) else []


def validate_extraction(
    payload: ExtractionPayload, default_confidence: float = 0.8
) -> ExtractionResult:
    """
    Validate a structured model answer into an ExtractionResult.

    Invalid items are dropped individually; entities repeated under the
    same (type, normalized name) keep their first occurrence.
    """
    entities: list[ExtractedEntity] = []
    seen: set[tuple[str, str]] = set()
    for item in payload.entities:
        entity = _parse_entity(item, default_confidence)
        if entity is None:
            continue
        key = (str(entity.entity_type), entity.normalized_name)
        if key in seen:
            continue
        seen.add(key)
        entities.append(entity)

    relations: list[ExtractedRelation] = []
    for item in payload.relations:
        relation = _parse_relation(item, default_confidence)
        if relation is not None:
            relations.append(relation)

    return ExtractionResult(entities=entities, relations=relations)


# -----------------------------------------------------------------------------
# Extractor
# -----------------------------------------------------------------------------


class EntityExtractor:
    """
    Best-effort entity/relation extraction.

    Args:
        llm: Provider used for structured output
        config: Supplies extraction_max_chars and extraction_default_confidence
    """

    def __init__(self, llm: "LLMProvider", config: RAGConfig | None = None):
        self.llm = llm
        self.config = config or RAGConfig()

    async def extract(self, text: str, context: str | None = None) -> ExtractionResult:
        """
        Extract entities and relations from text.

        Args:
            text: Source text, truncated to extraction_max_chars
            context: Optional hint, e.g. the document's file name

        Returns:
            Validated extraction; empty on any failure
        """
        if not text or not text.strip():
            return ExtractionResult()

        prompt = build_extraction_prompt(text[: self.config.extraction_max_chars], context)
        try:
            payload = await self.llm.generate_structured(
                prompt,
                ExtractionPayload,
                system=_EXTRACTION_SYSTEM_PROMPT,
            )
            result = validate_extraction(payload, self.config.extraction_default_confidence)
        except LanguageModelParseError as e:
            logger.warning(f"Entity extraction returned unusable output: {e}")
            return ExtractionResult()
        except Exception as e:
            logger.error(f"Entity extraction failed: {e}")
            return ExtractionResult()

        logger.info(
            f"Extracted {len(result.entities)} entities, {len(result.relations)} relations"
        )
        return result
