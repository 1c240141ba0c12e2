"""
LLM, Embedding and Vision Providers

Provider-agnostic interfaces for model operations.

Modules:
    base: Abstract provider interfaces
    llm/: LLM provider implementations
    embedding/: Embedding provider implementations
    vision/: Multimodal transcription implementations

Supported Providers:
    - LLM: OpenAI (gpt-4o, gpt-4o-mini) via LangChain, any OpenAI-compatible URL
    - Embedding: OpenAI (text-embedding-3-small) via LangChain
    - Vision: Google Gemini via google-genai

Design:
    - All providers implement abstract interfaces
    - Lazy import to avoid requiring all dependencies
    - Instances are constructed once and passed into components

Example:
    >>> from tendergraph.providers import LLMProvider, EmbeddingProvider
    >>> from tendergraph.providers.llm import OpenAILLMProvider
    >>> from tendergraph.providers.embedding import OpenAIEmbeddingProvider
"""

from tendergraph.providers.base import EmbeddingProvider, LLMProvider, VisionProvider

__all__ = ["LLMProvider", "EmbeddingProvider", "VisionProvider"]
