"""
Question Answering

Answers free-form questions from assembled Graph-RAG context.

Outcomes:
    - answered: the model answered from context
    - no_context: nothing relevant retrieved; the model is not called
    - degraded: retrieval or generation failed; a labelled fallback is returned
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from tendergraph.query.context_builder import format_context_for_prompt
from tendergraph.types import GraphRAGContext, QAResult, SearchScope

if TYPE_CHECKING:
    from tendergraph.config import RAGConfig
    from tendergraph.providers.base import LLMProvider
    from tendergraph.query.context_builder import ContextAssembler

logger = logging.getLogger(__name__)


NO_CONTEXT_ANSWER = "No relevant information was found in the knowledge base for this question."
FALLBACK_ANSWER = "Could not generate an answer. Please try again later."


QA_SYSTEM_PROMPT = """You are an assistant for tender and procurement analysis.

PRINCIPLES:
1. Answer ONLY from the provided context
2. Give a detailed answer when the context allows it
3. If the context is insufficient, say so honestly
4. Reference the documents and entities you rely on
5. Answer in {language}"""


QA_USER_PROMPT = """CONTEXT:
{context}

QUESTION: {question}

Answer the question using the context above."""


class QAEngine:
    """
    Graph-RAG question answering.

    Usage:
        qa = QAEngine(assembler, llm, config)
        result = await qa.answer("Which certificates does Romashka hold?", owner_id)
    """

    def __init__(
        self,
        assembler: ContextAssembler,
        llm: LLMProvider,
        config: RAGConfig,
    ) -> None:
        self.assembler = assembler
        self.llm = llm
        self.config = config

    async def answer(
        self,
        question: str,
        owner_id: str,
        scope: SearchScope | None = None,
    ) -> QAResult:
        """
        Answer a question.

        Args:
            question: Natural-language question
            owner_id: Tenant
            scope: Optional chunk search scope

        Raises:
            ValueError: If question is blank
        """
        if not question or not question.strip():
            raise ValueError("Question must not be empty")

        try:
            context = await self.assembler.build(question, owner_id, scope=scope)
        except Exception as e:
            logger.warning(f"Context assembly failed: {e}")
            return QAResult(answer=FALLBACK_ANSWER, status="degraded")

        if context.is_empty():
            logger.info("No context found; answering without the model")
            return QAResult(answer=NO_CONTEXT_ANSWER, status="no_context", context=context)

        return await self._generate(question, context)

    async def _generate(self, question: str, context: GraphRAGContext) -> QAResult:
        prompt = QA_USER_PROMPT.format(
            context=format_context_for_prompt(
                context, preview_chars=self.config.context_chunk_preview_chars
            ),
            question=question,
        )
        try:
            answer = await self.llm.generate(
                prompt,
                system=QA_SYSTEM_PROMPT.format(language=self.config.response_language),
                temperature=0.3,
            )
        except Exception as e:
            logger.warning(f"Answer generation failed: {e}")
            return QAResult(answer=FALLBACK_ANSWER, status="degraded", context=context)

        answer = (answer or "").strip()
        if not answer:
            logger.warning("Answer generation returned empty text")
            return QAResult(answer=FALLBACK_ANSWER, status="degraded", context=context)
        return QAResult(answer=answer, status="answered", context=context)
