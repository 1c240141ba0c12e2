"""
Smart Search

Chunk search with one or two short model-generated insights about the hits.
Insights are enrichment only: when generation fails the hits are still
returned, with no insights.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from tendergraph.types import ChunkMatch, SearchInsights, SearchScope, SmartSearchResult

if TYPE_CHECKING:
    from tendergraph.config import RAGConfig
    from tendergraph.providers.base import EmbeddingProvider, LLMProvider
    from tendergraph.storage.base import StorageBackend

logger = logging.getLogger(__name__)


NOTHING_FOUND = "Nothing found for this query"
MAX_INSIGHTS = 2
HIT_PREVIEW_CHARS = 300


INSIGHT_PROMPT = """The user searched for: "{query}"

Found fragments:
{hits}

Give 1-2 useful insights based on what was found, in {language}.

Respond with a single JSON object:
{{"insights": ["insight 1"]}}"""


class SmartSearch:
    """
    Scoped chunk search with insights.

    The llm should be a fast model (RAGConfig.llm_model_fast).
    """

    def __init__(
        self,
        storage: StorageBackend,
        embeddings: EmbeddingProvider,
        llm: LLMProvider,
        config: RAGConfig,
    ) -> None:
        self.storage = storage
        self.embeddings = embeddings
        self.llm = llm
        self.config = config

    async def search(
        self,
        query: str,
        owner_id: str,
        scope: SearchScope | None = None,
    ) -> SmartSearchResult:
        """
        Search chunks and describe the results.

        Raises:
            ValueError: If query is blank
            EmbeddingServiceError: If the query cannot be embedded
        """
        if not query or not query.strip():
            raise ValueError("Query must not be empty")

        vector = await self.embeddings.embed(query)
        hits = await self.storage.search_chunks(
            vector,
            owner_id,
            scope=scope,
            threshold=self.config.smart_search_threshold,
            limit=self.config.smart_search_limit,
        )

        if not hits:
            return SmartSearchResult(query=query, results=[], insights=[NOTHING_FOUND])

        return SmartSearchResult(
            query=query, results=hits, insights=await self._insights(query, hits)
        )

    async def _insights(self, query: str, hits: list[ChunkMatch]) -> list[str]:
        lines = "\n".join(
            f"- {hit.chunk.text_content[:HIT_PREVIEW_CHARS]}" for hit in hits
        )
        prompt = INSIGHT_PROMPT.format(
            query=query, hits=lines, language=self.config.response_language
        )
        try:
            answer = await self.llm.generate_structured(
                prompt, SearchInsights, temperature=0.3, max_tokens=512
            )
        except Exception as e:
            logger.warning(f"Insight generation failed: {e}")
            return []
        return answer.insights[:MAX_INSIGHTS]
