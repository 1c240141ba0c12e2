"""
Chunk and Document Types

Chunks are contiguous, overlapping slices of a document's extracted text.

Storage Models:
    - Chunk: Persisted chunk with offsets, vector and metadata
    - DocumentRecord: Ingestion state of an uploaded document

Search Models:
    - SearchScope: Module / tender / document filter for chunk search
    - ChunkMatch: Chunk search hit with cosine similarity

Chunker Output:
    - TextSpan: (text, start, end) triple produced by chunk_text()
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


@dataclass(frozen=True)
class TextSpan:
    """A slice of source text with its character offsets."""

    text: str
    start: int
    end: int

    def __len__(self) -> int:
        return self.end - self.start


class DocumentStatus(str, Enum):
    """Ingestion lifecycle: pending -> processing -> completed | failed."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class DocumentRecord(BaseModel):
    """
    Processing record for one uploaded document.

    Attributes:
        id: Document identifier supplied by the surrounding application
        owner_id: Tenant owning the document and everything derived from it
        module: Application module the document belongs to (e.g. "tenders")
        tender_id: Optional tender the document is attached to
        status: Current ingestion state
        chunks_count: Chunks persisted by the last successful run
        processing_error: Message of the last failure
        attempts: Number of processing runs started
    """

    id: str
    owner_id: str
    file_name: str | None = None
    media_type: str | None = None
    module: str = "tenders"
    tender_id: str | None = None
    status: DocumentStatus = DocumentStatus.PENDING
    chunks_count: int = 0
    processing_error: str | None = None
    attempts: int = 0
    created_at: str | None = None
    updated_at: str | None = None

    model_config = ConfigDict(use_enum_values=True)


class Chunk(BaseModel):
    """
    A persisted text chunk.

    Chunks of one document never share an index but overlap in character
    range by the configured overlap window.
    """

    id: str
    document_id: str
    owner_id: str
    chunk_index: int
    text_content: str
    char_start: int
    char_end: int
    embedding: list[float] | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    module: str | None = None
    tender_id: str | None = None
    created_at: str | None = None


class SearchScope(BaseModel):
    """Optional filters narrowing chunk search within one owner's rows."""

    module: str | None = None
    tender_id: str | None = None
    document_id: str | None = None

    def matches(self, chunk: Chunk) -> bool:
        """Whether a chunk falls inside this scope."""
        if self.module is not None and chunk.module != self.module:
            return False
        if self.tender_id is not None and chunk.tender_id != self.tender_id:
            return False
        if self.document_id is not None and chunk.document_id != self.document_id:
            return False
        return True


class ChunkMatch(BaseModel):
    """
    Result from semantic chunk search.

    Attributes:
        chunk: The matched chunk (embedding not populated)
        similarity: Cosine similarity to the query vector
    """

    chunk: Chunk
    similarity: float
