"""Shared fakes for provider-dependent tests."""

import hashlib
import re

import pytest
from pydantic import ValidationError

from tendergraph.config import RAGConfig
from tendergraph.errors import EmbeddingServiceError, LanguageModelParseError
from tendergraph.providers.base import EmbeddingProvider, LLMProvider, VisionProvider

FAKE_DIMENSIONS = 64

_TOKEN = re.compile(r"\w+")


def bag_of_words_vector(text: str, dimensions: int = FAKE_DIMENSIONS) -> list[float]:
    """Deterministic hashed bag-of-words vector; shared words raise cosine similarity."""
    vector = [0.0] * dimensions
    for token in _TOKEN.findall(text.lower()):
        bucket = int(hashlib.md5(token.encode("utf-8")).hexdigest(), 16) % dimensions
        vector[bucket] += 1.0
    if not any(vector):
        vector[0] = 1.0
    return vector


class FakeEmbeddingProvider(EmbeddingProvider):
    """Embeds with bag_of_words_vector and records every input."""

    def __init__(self, dimensions: int = FAKE_DIMENSIONS, fail: bool = False):
        self._dimensions = dimensions
        self.fail = fail
        self.calls: list[str] = []

    async def embed(self, text: str) -> list[float]:
        if not text or not text.strip():
            raise ValueError("Cannot embed empty text")
        self.calls.append(text)
        if self.fail:
            raise EmbeddingServiceError("embedding quota exceeded")
        return bag_of_words_vector(text, self._dimensions)

    async def embed_many(self, texts: list[str]) -> list[list[float]]:
        return [await self.embed(text) for text in texts]

    @property
    def dimensions(self) -> int:
        return self._dimensions

    @property
    def model_name(self) -> str:
        return "fake-embedding"


class FakeLLMProvider(LLMProvider):
    """
    Returns scripted responses in order, repeating the last one.

    An Exception instance in the script is raised instead of returned.
    Structured calls validate the scripted text against the schema.
    """

    def __init__(self, *responses):
        self.responses = list(responses) or [""]
        self.calls: list[dict] = []

    def _next(self, prompt: str, system: str | None, schema=None):
        self.calls.append({"prompt": prompt, "system": system, "schema": schema})
        index = min(len(self.calls) - 1, len(self.responses) - 1)
        response = self.responses[index]
        if isinstance(response, Exception):
            raise response
        return response

    async def generate(
        self,
        prompt: str,
        *,
        system: str | None = None,
        temperature: float = 0.0,
        max_tokens: int = 4096,
    ) -> str:
        return self._next(prompt, system)

    async def generate_structured(
        self,
        prompt: str,
        schema,
        *,
        system: str | None = None,
        temperature: float = 0.0,
        max_tokens: int = 4096,
    ):
        response = self._next(prompt, system, schema)
        try:
            return schema.model_validate_json(response)
        except ValidationError as e:
            raise LanguageModelParseError(str(e)) from e

    @property
    def model_name(self) -> str:
        return "fake-llm"


class FakeVisionProvider(VisionProvider):
    def __init__(self, text: str = "", error: Exception | None = None):
        self.text = text
        self.error = error
        self.calls: list[tuple[bytes, str]] = []

    async def transcribe(
        self,
        data: bytes,
        media_type: str,
        *,
        instruction: str,
        max_tokens: int = 4096,
    ) -> str:
        self.calls.append((data, media_type))
        if self.error is not None:
            raise self.error
        return self.text

    @property
    def model_name(self) -> str:
        return "fake-vision"


@pytest.fixture
def config() -> RAGConfig:
    """Config with small vectors and no keys from the environment."""
    return RAGConfig(
        embedding_dimensions=FAKE_DIMENSIONS,
        openai_api_key=None,
        google_api_key=None,
    )


@pytest.fixture
def embeddings() -> FakeEmbeddingProvider:
    return FakeEmbeddingProvider()
