"""Tests for entity/relation extraction."""

import json

import pytest
from pydantic import ValidationError

from conftest import FakeLLMProvider
from tendergraph.config import RAGConfig
from tendergraph.ingestion.extraction import (
    EntityExtractor,
    ExtractionPayload,
    build_extraction_prompt,
    validate_extraction,
)

RESPONSE = json.dumps(
    {
        "entities": [
            {
                "type": "supplier",
                "name": 'ООО "Ромашка"',
                "externalId": "7701234567",
                "externalSource": "INN",
                "confidence": 0.95,
            },
            {"type": "certificate", "name": "Сертификат ХАССП"},
            {"type": "gost", "name": "ГОСТ Р 51705.1-2001"},
            {"type": "supplier", "name": "Ромашка ООО"},
            {"type": "planet", "name": "Марс"},
            {"type": "person", "name": "   "},
        ],
        "relations": [
            {
                "fromEntityName": 'ООО "Ромашка"',
                "relationType": "has cert",
                "toEntityName": "Сертификат ХАССП",
            },
            {"from": "Ромашка", "type": "REFERENCES", "to": "ГОСТ Р 51705.1-2001"},
            {"fromEntityName": "Ромашка", "relationType": "LOVES", "toEntityName": "Марс"},
            {"fromEntityName": "Ромашка", "relationType": "SUPPLIES", "toEntityName": "ООО Ромашка"},
        ],
    },
    ensure_ascii=False,
)


def _validate(raw, **kwargs):
    return validate_extraction(ExtractionPayload.model_validate_json(raw), **kwargs)


class TestValidateExtraction:
    """Item-by-item validation."""

    def test_entities_validated_and_deduplicated(self):
        result = _validate(RESPONSE)
        assert [(e.entity_type, e.name) for e in result.entities] == [
            ("supplier", 'ООО "Ромашка"'),
            ("certificate", "Сертификат ХАССП"),
            ("standard", "ГОСТ Р 51705.1-2001"),
        ]

    def test_entity_fields(self):
        supplier = _validate(RESPONSE).entities[0]
        assert supplier.normalized_name == "ромашка"
        assert supplier.external_id == "7701234567"
        assert supplier.external_source == "INN"
        assert supplier.confidence == 0.95

    def test_default_confidence(self):
        result = _validate(RESPONSE, default_confidence=0.5)
        assert result.entities[1].confidence == 0.5

    def test_relations_validated(self):
        """Unknown types and self-loops are dropped; labels are normalized."""
        result = _validate(RESPONSE)
        assert [(r.source_name, r.relation_type, r.target_name) for r in result.relations] == [
            ('ООО "Ромашка"', "HAS_CERT", "Сертификат ХАССП"),
            ("Ромашка", "REFERENCES", "ГОСТ Р 51705.1-2001"),
        ]

    def test_confidence_clamped(self):
        raw = json.dumps({"entities": [{"type": "product", "name": "Молоко", "confidence": 7}]})
        assert _validate(raw).entities[0].confidence == 1.0

    def test_missing_lists(self):
        result = _validate('{"entities": "none"}')
        assert result.is_empty()

    def test_not_json(self):
        with pytest.raises(ValidationError):
            ExtractionPayload.model_validate_json("Sorry, no entities")


class TestBuildExtractionPrompt:

    def test_lists_vocabularies(self):
        prompt = build_extraction_prompt("Текст", context="Document: tz.pdf")
        assert "CONTEXT: Document: tz.pdf" in prompt
        assert "- certificate:" in prompt
        assert "- HAS_CERT:" in prompt
        assert "Текст" in prompt


class TestEntityExtractor:

    @pytest.mark.asyncio
    async def test_extract(self):
        llm = FakeLLMProvider(RESPONSE)
        result = await EntityExtractor(llm, RAGConfig()).extract("ООО Ромашка имеет ХАССП")
        assert len(result.entities) == 3
        assert llm.calls[0]["schema"] is ExtractionPayload

    @pytest.mark.asyncio
    async def test_text_truncated(self):
        llm = FakeLLMProvider('{"entities": []}')
        config = RAGConfig(extraction_max_chars=50)
        await EntityExtractor(llm, config).extract("я" * 500)
        assert "я" * 50 in llm.calls[0]["prompt"]
        assert "я" * 51 not in llm.calls[0]["prompt"]

    @pytest.mark.asyncio
    async def test_blank_text_skips_model(self):
        llm = FakeLLMProvider(RESPONSE)
        result = await EntityExtractor(llm).extract("  ")
        assert result.is_empty()
        assert llm.calls == []

    @pytest.mark.asyncio
    async def test_unparseable_output_is_empty(self):
        result = await EntityExtractor(FakeLLMProvider("not json")).extract("text")
        assert result.is_empty()

    @pytest.mark.asyncio
    async def test_service_error_is_empty(self):
        llm = FakeLLMProvider(RuntimeError("rate limited"))
        result = await EntityExtractor(llm).extract("text")
        assert result.is_empty()
