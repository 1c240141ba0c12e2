"""
OpenAI Embedding Provider (LangChain-based)

Implements EmbeddingProvider interface using LangChain's OpenAIEmbeddings.

Supports:
    - Single text embedding (embed)
    - Batched embedding generation (embed_many)

Models:
    - text-embedding-3-small: 1536 dimensions (default)
    - text-embedding-3-large: 3072 dimensions

Every returned vector is checked against the configured dimensionality;
failures surface as EmbeddingServiceError, never as a zero vector.

Example:
    >>> provider = OpenAIEmbeddingProvider(model="text-embedding-3-small")
    >>> vectors = await provider.embed_many(["Поставка молока", "Сертификат ХАССП"])
    >>> print(len(vectors[0]))
    1536
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from tendergraph.errors import EmbeddingServiceError
from tendergraph.providers.base import EmbeddingProvider

if TYPE_CHECKING:
    from langchain_openai import OpenAIEmbeddings

logger = logging.getLogger(__name__)


# Model dimensions mapping
MODEL_DIMENSIONS = {
    "text-embedding-3-large": 3072,
    "text-embedding-3-small": 1536,
    "text-embedding-ada-002": 1536,
}

DEFAULT_MODEL = "text-embedding-3-small"


def _get_openai_embeddings(
    api_key: str | None = None,
    model: str = DEFAULT_MODEL,
    dimensions: int | None = None,
) -> "OpenAIEmbeddings":
    """
    Get an OpenAIEmbeddings instance.

    Uses lazy import to avoid requiring langchain-openai unless actually used.

    Args:
        api_key: Optional API key. If not provided, uses OPENAI_API_KEY env var.
        model: Model name to use.
        dimensions: Requested output dimensionality (text-embedding-3 models).

    Returns:
        OpenAIEmbeddings instance

    Raises:
        ImportError: If langchain-openai package is not installed
    """
    try:
        from langchain_openai import OpenAIEmbeddings
    except ImportError:
        raise ImportError(
            "OpenAI embedding provider requires the 'langchain-openai' package. "
            "Install with: pip install langchain-openai"
        )

    kwargs: dict = {"model": model}
    if dimensions is not None and model.startswith("text-embedding-3"):
        kwargs["dimensions"] = dimensions
    if api_key:
        from pydantic import SecretStr
        kwargs["api_key"] = SecretStr(api_key)
    return OpenAIEmbeddings(**kwargs)


class OpenAIEmbeddingProvider(EmbeddingProvider):
    """
    OpenAI embedding provider implementation using LangChain.

    Args:
        api_key: OpenAI API key. If None, uses OPENAI_API_KEY environment variable.
        model: Model to use (default: "text-embedding-3-small")
        dimensions: Expected vector length; defaults to the model's native size
        batch_size: Texts per API call in embed_many
    """

    def __init__(
        self,
        api_key: str | None = None,
        model: str = DEFAULT_MODEL,
        dimensions: int | None = None,
        batch_size: int = 100,
    ) -> None:
        if batch_size < 1:
            raise ValueError("batch_size must be positive")
        self._api_key = api_key
        self._model = model
        self._dimensions = dimensions or MODEL_DIMENSIONS.get(model, 1536)
        self._batch_size = batch_size
        # Lazy initialization
        self._client: OpenAIEmbeddings | None = None

    def _get_client(self) -> "OpenAIEmbeddings":
        """Get or create the OpenAIEmbeddings client."""
        if self._client is None:
            self._client = _get_openai_embeddings(
                api_key=self._api_key,
                model=self._model,
                dimensions=self._dimensions,
            )
        return self._client

    @property
    def dimensions(self) -> int:
        """Embedding dimensions for the current model."""
        return self._dimensions

    @property
    def model_name(self) -> str:
        """Current model name."""
        return self._model

    def _check_vector(self, vector: list[float] | None) -> list[float]:
        if not vector:
            raise EmbeddingServiceError(f"{self._model} returned an empty vector")
        if len(vector) != self._dimensions:
            raise EmbeddingServiceError(
                f"{self._model} returned {len(vector)} dimensions, expected {self._dimensions}"
            )
        return [float(v) for v in vector]

    async def embed(self, text: str) -> list[float]:
        """
        Generate embedding for a single text.

        Raises:
            ValueError: If text is empty or blank
            EmbeddingServiceError: On service failure or malformed vector
        """
        if not text or not text.strip():
            raise ValueError("Cannot embed empty text")

        client = self._get_client()
        try:
            # LangChain's embed_query is synchronous, run in thread pool
            vector = await asyncio.to_thread(client.embed_query, text)
        except Exception as e:
            raise EmbeddingServiceError(f"Embedding request failed: {e}") from e
        return self._check_vector(vector)

    async def embed_many(self, texts: list[str]) -> list[list[float]]:
        """
        Generate embeddings for multiple texts in batches.

        Args:
            texts: Texts to embed

        Returns:
            List of embedding vectors (same order as input)
        """
        if not texts:
            return []
        if any(not t or not t.strip() for t in texts):
            raise ValueError("Cannot embed empty text")

        client = self._get_client()
        vectors: list[list[float]] = []
        for start in range(0, len(texts), self._batch_size):
            batch = texts[start : start + self._batch_size]
            try:
                # LangChain's embed_documents is synchronous, run in thread pool
                result = await asyncio.to_thread(client.embed_documents, batch)
            except Exception as e:
                raise EmbeddingServiceError(f"Embedding request failed: {e}") from e
            if len(result) != len(batch):
                raise EmbeddingServiceError(
                    f"{self._model} returned {len(result)} vectors for {len(batch)} texts"
                )
            vectors.extend(self._check_vector(v) for v in result)
            logger.debug(f"Embedded batch of {len(batch)} texts")
        return vectors

    def with_model(self, model: str) -> "OpenAIEmbeddingProvider":
        """
        Return a new provider instance with a different model.

        Args:
            model: New model name to use

        Returns:
            New OpenAIEmbeddingProvider with the specified model
        """
        return OpenAIEmbeddingProvider(
            api_key=self._api_key, model=model, batch_size=self._batch_size
        )
