"""
Vision Provider Implementations

Modules:
    gemini: Google Gemini via google-genai (gemini-2.5-flash)

Example:
    >>> from tendergraph.providers.vision import GeminiVisionProvider
    >>> provider = GeminiVisionProvider()
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from tendergraph.providers.vision.gemini import GeminiVisionProvider


def __getattr__(name: str):
    """Lazy import of providers to avoid requiring all dependencies."""
    if name == "GeminiVisionProvider":
        from tendergraph.providers.vision.gemini import GeminiVisionProvider
        return GeminiVisionProvider
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = ["GeminiVisionProvider"]
