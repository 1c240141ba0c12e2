"""Tests for ComplianceEngine."""

import json

import pytest

from conftest import FakeEmbeddingProvider, FakeLLMProvider, bag_of_words_vector
from tendergraph.config import RAGConfig
from tendergraph.graph import KnowledgeGraphStore
from tendergraph.query import ComplianceEngine, ContextAssembler
from tendergraph.query.compliance import (
    COMPLIANCE_FALLBACK_RECOMMENDATION,
    NO_SUPPORTING_DOCUMENT,
    NO_TENDER_DOCUMENTS,
    RISK_CONTEXT_QUERY,
    SUMMARY_CONTEXT_QUERY,
)
from tendergraph.storage import InMemoryBackend
from tendergraph.types import (
    Chunk,
    ComplianceCheckResult,
    Entity,
    Relation,
    RiskAnalysis,
    SupplierProfile,
    TenderProfile,
)

OWNER = "user-1"
SUPPLIER = SupplierProfile(name="ООО Ромашка")
TENDER = TenderProfile(id="t-1", title="Поставка молочной продукции")


def _verdict(**overrides):
    verdict = {
        "isCompliant": True,
        "overallScore": 90,
        "requirements": [
            {
                "requirement": "Сертификат ХАССП",
                "status": "met",
                "details": "есть",
                "relatedEntities": ["Сертификат ХАССП"],
            },
        ],
        "missingDocuments": [],
        "recommendations": [],
    }
    verdict.update(overrides)
    return json.dumps(verdict, ensure_ascii=False)


def _chunk(chunk_id, text, tender_id, vector_text):
    return Chunk(
        id=chunk_id,
        document_id=f"doc-{tender_id}",
        owner_id=OWNER,
        chunk_index=0,
        text_content=text,
        char_start=0,
        char_end=len(text),
        embedding=bag_of_words_vector(vector_text),
        module="tenders",
        tender_id=tender_id,
    )


def _entity(entity_id, name, entity_type, vector_text):
    return Entity(
        id=entity_id,
        owner_id=OWNER,
        entity_type=entity_type,
        name=name,
        normalized_name=name.lower(),
        embedding=bag_of_words_vector(vector_text),
    )


async def _seeded(config):
    storage = InMemoryBackend()
    await storage.upsert_entity(_entity("s", "ООО Ромашка", "supplier", "ООО Ромашка"))
    await storage.upsert_entity(
        _entity("c", "Сертификат ХАССП", "certificate", "Сертификат ХАССП")
    )
    await storage.upsert_entity(
        _entity("l", "Лицензия на перевозку", "license", "ООО Ромашка лицензия")
    )
    await storage.insert_relation(
        Relation(id="r1", owner_id=OWNER, source_id="s", relation_type="HAS_CERT", target_id="c")
    )
    await storage.upsert_chunks(
        [
            _chunk(
                "t1-req",
                "Участник обязан предоставить сертификат ХАССП.",
                "t-1",
                config.compliance_requirement_query,
            ),
            _chunk(
                "t2-req",
                "Требования другого тендера.",
                "t-2",
                config.compliance_requirement_query,
            ),
        ]
    )
    return storage


def _engine(storage, llm, config, embeddings=None):
    embeddings = embeddings or FakeEmbeddingProvider()
    graph = KnowledgeGraphStore(storage)
    assembler = ContextAssembler(storage, embeddings, graph, config)
    return ComplianceEngine(storage, embeddings, graph, assembler, llm, config)


class TestCheckCompliance:

    @pytest.mark.asyncio
    async def test_prompt_gathers_certificates_and_requirements(self):
        config = RAGConfig()
        llm = FakeLLMProvider(_verdict())
        engine = _engine(await _seeded(config), llm, config)

        await engine.check_compliance(OWNER, SUPPLIER, TENDER)

        prompt = llm.calls[0]["prompt"]
        assert "Name: ООО Ромашка" in prompt
        assert "INN: not found" in prompt
        assert "- Сертификат ХАССП" in prompt
        assert "- Лицензия на перевозку" in prompt
        assert "Участник обязан предоставить сертификат ХАССП." in prompt
        assert "Требования другого тендера." not in prompt
        assert llm.calls[0]["schema"] is ComplianceCheckResult

    @pytest.mark.asyncio
    async def test_inn_and_known_requirements_included(self):
        config = RAGConfig()
        llm = FakeLLMProvider(_verdict())
        engine = _engine(InMemoryBackend(), llm, config)
        tender = TenderProfile(id="t-9", title="T", requirements=["Опыт работы 3 года"])

        await engine.check_compliance(
            OWNER, SupplierProfile(name="Лютик", inn="7701234567"), tender
        )

        prompt = llm.calls[0]["prompt"]
        assert "INN: 7701234567" in prompt
        assert "Опыт работы 3 года" in prompt
        assert "SUPPLIER CERTIFICATES AND LICENSES:\nnot found" in prompt

    @pytest.mark.asyncio
    async def test_requirements_truncated(self):
        config = RAGConfig(compliance_requirements_max_chars=20)
        llm = FakeLLMProvider(_verdict())
        engine = _engine(InMemoryBackend(), llm, config)
        tender = TenderProfile(id="t-9", title="T", requirements=["x" * 100])

        await engine.check_compliance(OWNER, SUPPLIER, tender)

        assert "x" * 20 in llm.calls[0]["prompt"]
        assert "x" * 21 not in llm.calls[0]["prompt"]

    @pytest.mark.asyncio
    async def test_compliant_verdict(self):
        config = RAGConfig()
        engine = _engine(await _seeded(config), FakeLLMProvider(_verdict()), config)
        result = await engine.check_compliance(OWNER, SUPPLIER, TENDER)
        assert result.is_compliant is True
        assert result.overall_score == 90
        assert result.degraded is False

    @pytest.mark.asyncio
    async def test_low_score_not_compliant(self):
        config = RAGConfig()
        llm = FakeLLMProvider(_verdict(overallScore=60))
        result = await _engine(await _seeded(config), llm, config).check_compliance(
            OWNER, SUPPLIER, TENDER
        )
        assert result.is_compliant is False
        assert result.overall_score == 60

    @pytest.mark.asyncio
    async def test_not_met_requirement_overrides_model(self):
        """A requirement marked not_met makes the verdict non-compliant."""
        config = RAGConfig()
        llm = FakeLLMProvider(
            _verdict(
                overallScore=95,
                requirements=[
                    {"requirement": "Сертификат ХАССП", "status": "met"},
                    {"requirement": "Лицензия ФСБ", "status": "not_met"},
                ],
                missingDocuments=["Выписка ЕГРЮЛ"],
            )
        )
        result = await _engine(await _seeded(config), llm, config).check_compliance(
            OWNER, SUPPLIER, TENDER
        )
        assert result.is_compliant is False
        assert result.missing_documents == ["Выписка ЕГРЮЛ", "Лицензия ФСБ"]

    @pytest.mark.asyncio
    async def test_no_certificates_not_compliant(self):
        """A required certificate the supplier does not hold is listed as missing."""
        config = RAGConfig()
        storage = InMemoryBackend()
        await storage.upsert_chunks(
            [
                _chunk(
                    "t1-req",
                    "Участник обязан предоставить сертификат ХАССП.",
                    "t-1",
                    config.compliance_requirement_query,
                )
            ]
        )
        llm = FakeLLMProvider(_verdict())

        result = await _engine(storage, llm, config).check_compliance(OWNER, SUPPLIER, TENDER)

        assert "SUPPLIER CERTIFICATES AND LICENSES:\nnot found" in llm.calls[0]["prompt"]
        assert result.is_compliant is False
        assert result.missing_documents == ["Сертификат ХАССП"]
        assert result.requirements[0].status == "not_met"
        assert result.requirements[0].details == NO_SUPPORTING_DOCUMENT
        assert result.degraded is False

    @pytest.mark.asyncio
    async def test_unheld_license_downgraded(self):
        config = RAGConfig()
        llm = FakeLLMProvider(
            _verdict(
                requirements=[
                    {
                        "requirement": "Сертификат ХАССП",
                        "status": "met",
                        "relatedEntities": ["Сертификат ХАССП"],
                    },
                    {
                        "requirement": "Лицензия ФСБ",
                        "status": "partial",
                        "relatedEntities": ["Лицензия ФСБ"],
                    },
                ]
            )
        )
        result = await _engine(await _seeded(config), llm, config).check_compliance(
            OWNER, SUPPLIER, TENDER
        )
        assert result.is_compliant is False
        assert [check.status for check in result.requirements] == ["met", "not_met"]
        assert result.missing_documents == ["Лицензия ФСБ"]

    @pytest.mark.asyncio
    async def test_non_document_requirement_kept(self):
        """Requirements that ask for no certificate or license are not downgraded."""
        config = RAGConfig()
        llm = FakeLLMProvider(
            _verdict(requirements=[{"requirement": "Опыт работы 3 года", "status": "met"}])
        )
        result = await _engine(InMemoryBackend(), llm, config).check_compliance(
            OWNER, SUPPLIER, TENDER
        )
        assert result.is_compliant is True
        assert result.missing_documents == []

    @pytest.mark.asyncio
    async def test_pass_score_configurable(self):
        config = RAGConfig(compliance_pass_score=50)
        llm = FakeLLMProvider(_verdict(overallScore=60))
        result = await _engine(await _seeded(config), llm, config).check_compliance(
            OWNER, SUPPLIER, TENDER
        )
        assert result.is_compliant is True

    @pytest.mark.asyncio
    async def test_unparseable_verdict_is_conservative(self):
        config = RAGConfig()
        llm = FakeLLMProvider("The supplier looks fine to me!")
        result = await _engine(await _seeded(config), llm, config).check_compliance(
            OWNER, SUPPLIER, TENDER
        )
        assert result.is_compliant is False
        assert result.overall_score == 0
        assert result.recommendations == [COMPLIANCE_FALLBACK_RECOMMENDATION]
        assert result.degraded is True

    @pytest.mark.asyncio
    async def test_model_error_is_conservative(self):
        config = RAGConfig()
        llm = FakeLLMProvider(TimeoutError("model timed out"))
        result = await _engine(await _seeded(config), llm, config).check_compliance(
            OWNER, SUPPLIER, TENDER
        )
        assert result.is_compliant is False
        assert result.degraded is True

    @pytest.mark.asyncio
    async def test_embedding_error_is_conservative(self):
        config = RAGConfig()
        llm = FakeLLMProvider(_verdict())
        engine = _engine(
            await _seeded(config), llm, config, embeddings=FakeEmbeddingProvider(fail=True)
        )
        result = await engine.check_compliance(OWNER, SUPPLIER, TENDER)
        assert result.is_compliant is False
        assert result.degraded is True
        assert llm.calls == []


class TestAnalyzeRisks:

    @pytest.mark.asyncio
    async def test_risks_parsed(self):
        config = RAGConfig()
        storage = InMemoryBackend()
        await storage.upsert_chunks(
            [_chunk("risk", "Штраф 10% за срыв сроков поставки.", "t-1", RISK_CONTEXT_QUERY)]
        )
        llm = FakeLLMProvider(
            json.dumps(
                {
                    "risks": [
                        {
                            "type": "financial",
                            "severity": "high",
                            "description": "Штраф 10%",
                            "mitigation": "Резерв по срокам",
                        }
                    ],
                    "overallRisk": "high",
                },
                ensure_ascii=False,
            )
        )

        analysis = await _engine(storage, llm, config).analyze_risks(OWNER, "t-1")

        assert analysis.overall_risk == "high"
        assert analysis.risks[0].severity == "high"
        assert analysis.degraded is False
        assert "Штраф 10% за срыв сроков поставки." in llm.calls[0]["prompt"]
        assert llm.calls[0]["schema"] is RiskAnalysis

    @pytest.mark.asyncio
    async def test_parse_failure_defaults(self):
        config = RAGConfig()
        storage = InMemoryBackend()
        await storage.upsert_chunks(
            [_chunk("risk", "Штраф 10% за срыв сроков поставки.", "t-1", RISK_CONTEXT_QUERY)]
        )
        analysis = await _engine(storage, FakeLLMProvider("no json"), config).analyze_risks(
            OWNER, "t-1"
        )
        assert analysis.risks == []
        assert analysis.overall_risk == "medium"
        assert analysis.degraded is True

    @pytest.mark.asyncio
    async def test_no_documents_skips_model(self):
        llm = FakeLLMProvider(
            json.dumps({"risks": [{"type": "legal", "severity": "high"}], "overallRisk": "high"})
        )
        analysis = await _engine(InMemoryBackend(), llm, RAGConfig()).analyze_risks(OWNER, "t-1")
        assert llm.calls == []
        assert analysis.risks == []
        assert analysis.message == NO_TENDER_DOCUMENTS


class TestSummarizeTender:

    @pytest.mark.asyncio
    async def test_no_documents(self):
        llm = FakeLLMProvider("unused")
        summary = await _engine(InMemoryBackend(), llm, RAGConfig()).summarize_tender(OWNER, "t-1")
        assert summary == NO_TENDER_DOCUMENTS
        assert llm.calls == []

    @pytest.mark.asyncio
    async def test_summary_generated(self):
        storage = InMemoryBackend()
        await storage.upsert_chunks(
            [_chunk("sum", "НМЦК 1 500 000 руб.", "t-1", SUMMARY_CONTEXT_QUERY)]
        )
        llm = FakeLLMProvider("  Сводка по тендеру  ")
        summary = await _engine(storage, llm, RAGConfig()).summarize_tender(OWNER, "t-1")
        assert summary == "Сводка по тендеру"
        assert "НМЦК 1 500 000 руб." in llm.calls[0]["prompt"]
