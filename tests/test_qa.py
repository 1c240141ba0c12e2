"""Tests for QAEngine."""

from unittest.mock import AsyncMock

import pytest

from conftest import FakeLLMProvider
from tendergraph.config import RAGConfig
from tendergraph.errors import EmbeddingServiceError
from tendergraph.query import QAEngine
from tendergraph.query.qa import FALLBACK_ANSWER, NO_CONTEXT_ANSWER
from tendergraph.types import ContextChunk, GraphRAGContext

OWNER = "user-1"


def _context(query="Какие сертификаты нужны?"):
    return GraphRAGContext(
        query=query,
        chunks=[
            ContextChunk(
                chunk_id="c1",
                document_id="doc-1",
                text="Участник должен иметь сертификат ХАССП.",
                similarity=0.9,
            )
        ],
    )


def _engine(context, llm, config=None):
    assembler = AsyncMock()
    assembler.build = AsyncMock(return_value=context)
    return QAEngine(assembler, llm, config or RAGConfig()), assembler


class TestQAEngine:

    @pytest.mark.asyncio
    async def test_answers_from_context(self):
        llm = FakeLLMProvider("Нужен сертификат ХАССП (документ doc-1).")
        engine, _ = _engine(_context(), llm)

        result = await engine.answer("Какие сертификаты нужны?", OWNER)

        assert result.status == "answered"
        assert result.answer == "Нужен сертификат ХАССП (документ doc-1)."
        assert result.context is not None
        prompt = llm.calls[0]["prompt"]
        assert "Участник должен иметь сертификат ХАССП." in prompt
        assert "QUESTION: Какие сертификаты нужны?" in prompt
        assert "Answer in Russian" in llm.calls[0]["system"]

    @pytest.mark.asyncio
    async def test_empty_context_skips_model(self):
        llm = FakeLLMProvider("should not be used")
        engine, _ = _engine(GraphRAGContext(query="q"), llm)

        result = await engine.answer("Что-нибудь?", OWNER)

        assert result.status == "no_context"
        assert result.answer == NO_CONTEXT_ANSWER
        assert llm.calls == []

    @pytest.mark.asyncio
    async def test_model_failure_degrades(self):
        engine, _ = _engine(_context(), FakeLLMProvider(RuntimeError("503")))
        result = await engine.answer("Какие сертификаты нужны?", OWNER)
        assert result.status == "degraded"
        assert result.answer == FALLBACK_ANSWER

    @pytest.mark.asyncio
    async def test_empty_model_answer_degrades(self):
        engine, _ = _engine(_context(), FakeLLMProvider("   "))
        result = await engine.answer("Какие сертификаты нужны?", OWNER)
        assert result.status == "degraded"

    @pytest.mark.asyncio
    async def test_retrieval_failure_degrades(self):
        llm = FakeLLMProvider("unused")
        engine, assembler = _engine(None, llm)
        assembler.build.side_effect = EmbeddingServiceError("quota")

        result = await engine.answer("Какие сертификаты нужны?", OWNER)

        assert result.status == "degraded"
        assert llm.calls == []

    @pytest.mark.asyncio
    async def test_scope_passed_through(self):
        engine, assembler = _engine(_context(), FakeLLMProvider("ok"))
        await engine.answer("Вопрос", OWNER, scope="sentinel")
        assembler.build.assert_awaited_once_with("Вопрос", OWNER, scope="sentinel")

    @pytest.mark.asyncio
    async def test_blank_question(self):
        engine, _ = _engine(_context(), FakeLLMProvider("ok"))
        with pytest.raises(ValueError):
            await engine.answer(" ", OWNER)

    @pytest.mark.asyncio
    async def test_response_language_configurable(self):
        llm = FakeLLMProvider("Certificate HACCP is required.")
        engine, _ = _engine(_context(), llm, RAGConfig(response_language="English"))
        await engine.answer("Which certificates?", OWNER)
        assert "Answer in English" in llm.calls[0]["system"]
