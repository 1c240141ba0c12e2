"""
Abstract Provider Interfaces

Base classes for LLM, embedding and vision providers.
"""

from abc import ABC, abstractmethod
from typing import TypeVar

from pydantic import BaseModel

T = TypeVar("T", bound=BaseModel)


class LLMProvider(ABC):
    """Abstract interface for LLM providers."""

    @abstractmethod
    async def generate(
        self,
        prompt: str,
        *,
        system: str | None = None,
        temperature: float = 0.0,
        max_tokens: int = 4096,
    ) -> str:
        """Generate a text completion."""
        ...

    @abstractmethod
    async def generate_structured(
        self,
        prompt: str,
        schema: type[T],
        *,
        system: str | None = None,
        temperature: float = 0.0,
        max_tokens: int = 4096,
    ) -> T:
        """
        Generate a response validated against a Pydantic schema.

        Raises:
            LanguageModelParseError: If the response is not valid JSON
                or does not match the schema
        """
        ...

    @property
    @abstractmethod
    def model_name(self) -> str:
        """Current model name."""
        ...


class EmbeddingProvider(ABC):
    """
    Abstract interface for embedding providers.

    Implementations raise ValueError for empty/blank input and
    EmbeddingServiceError for service failures or malformed vectors.
    They never return a zero vector in place of a failed call.
    """

    @abstractmethod
    async def embed(self, text: str) -> list[float]:
        """Generate embedding for a single text."""
        ...

    @abstractmethod
    async def embed_many(self, texts: list[str]) -> list[list[float]]:
        """Generate embeddings for texts, preserving order."""
        ...

    @property
    @abstractmethod
    def dimensions(self) -> int:
        """Embedding dimensions."""
        ...

    @property
    @abstractmethod
    def model_name(self) -> str:
        """Current model name."""
        ...


class VisionProvider(ABC):
    """Abstract interface for multimodal transcription providers."""

    @abstractmethod
    async def transcribe(
        self,
        data: bytes,
        media_type: str,
        *,
        instruction: str,
        max_tokens: int = 4096,
    ) -> str:
        """Return the text content of an image (or other binary document)."""
        ...

    @property
    @abstractmethod
    def model_name(self) -> str:
        """Current model name."""
        ...
