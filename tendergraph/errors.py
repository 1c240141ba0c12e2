"""
Error Taxonomy

Exceptions raised across the ingestion, enrichment and query paths.

Ingestion path (fatal to one document, recorded as ``failed``):
    - UnsupportedMediaType
    - ExtractionFailed
    - EmbeddingServiceError
    - NoChunksProduced

Enrichment / query path (logged, degraded to defaults):
    - LanguageModelParseError
    - MissingGraphEndpoint
"""

from __future__ import annotations


class TenderGraphError(Exception):
    """Base class for all library errors."""


class UnsupportedMediaType(TenderGraphError):
    """The declared media type has no text extraction strategy."""

    def __init__(self, media_type: str) -> None:
        self.media_type = media_type
        super().__init__(f"Unsupported file type: {media_type}")


class ExtractionFailed(TenderGraphError):
    """Text extraction errored or returned nothing for a non-empty input."""


class EmbeddingServiceError(TenderGraphError):
    """The embedding service failed (quota, auth, network, bad response)."""


class NoChunksProduced(TenderGraphError):
    """Chunking produced no segments for the extracted text."""


class LanguageModelParseError(TenderGraphError):
    """A language model response did not match the expected JSON shape."""


class MissingGraphEndpoint(TenderGraphError):
    """A relation endpoint could not be resolved to a live entity."""

    def __init__(self, source: str, target: str, missing: list[str]) -> None:
        self.source = source
        self.target = target
        self.missing = missing
        super().__init__(
            f"Relation skipped: missing entity {', '.join(missing)} "
            f"({source} -> {target})"
        )
