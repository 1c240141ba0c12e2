"""
Text Extraction

Turns an uploaded file into a single plain-text stream, dispatching on the
declared media type:

    application/pdf     -> pypdf page text (worker thread)
    image/*             -> vision model transcription
    text/plain,
    text/markdown,
    text/csv            -> decoded with the declared charset (UTF-8 default)

Anything else raises UnsupportedMediaType. Parser or service errors, and
empty output for non-empty input, raise ExtractionFailed.
"""

from __future__ import annotations

import asyncio
import io
import logging

from pypdf import PdfReader

from tendergraph.config import RAGConfig
from tendergraph.errors import ExtractionFailed, UnsupportedMediaType
from tendergraph.providers.base import VisionProvider

logger = logging.getLogger(__name__)

TEXT_MEDIA_TYPES = frozenset({"text/plain", "text/markdown", "text/csv"})

IMAGE_TRANSCRIPTION_INSTRUCTION = """Extract all text from this document image.
Preserve the structure and formatting (headings, lists, tables, line breaks).
Return only the text, with no comments or explanations."""


def parse_media_type(media_type: str) -> tuple[str, dict[str, str]]:
    """
    Split a media type into its lower-cased essence and parameters.

    >>> parse_media_type("Text/Plain; charset=windows-1251")
    ('text/plain', {'charset': 'windows-1251'})
    """
    essence, *raw_params = media_type.split(";")
    params: dict[str, str] = {}
    for raw in raw_params:
        key, sep, value = raw.partition("=")
        if sep:
            params[key.strip().lower()] = value.strip().strip('"')
    return essence.strip().lower(), params


def _read_pdf(data: bytes) -> str:
    reader = PdfReader(io.BytesIO(data))
    pages = []
    for page in reader.pages:
        page_text = page.extract_text() or ""
        if page_text.strip():
            pages.append(page_text.strip())
    logger.debug(f"Extracted text from {len(pages)}/{len(reader.pages)} PDF pages")
    return "\n\n".join(pages)


class TextExtractor:
    """
    Extracts text from PDF, image and plain text uploads.

    Args:
        vision: Provider used for images; None disables image support
        config: Supplies vision_max_tokens
    """

    def __init__(self, vision: VisionProvider | None = None, config: RAGConfig | None = None):
        self.vision = vision
        self.config = config or RAGConfig()

    async def extract(self, data: bytes, media_type: str) -> str:
        """
        Extract text from raw file bytes.

        Raises:
            UnsupportedMediaType: No strategy for the media type
            ExtractionFailed: The parser or service failed, or returned nothing
        """
        essence, params = parse_media_type(media_type)

        if essence == "application/pdf":
            text = await self._extract_pdf(data)
        elif essence.startswith("image/"):
            text = await self._extract_image(data, essence)
        elif essence in TEXT_MEDIA_TYPES:
            text = self._decode(data, params.get("charset", "utf-8"))
        else:
            raise UnsupportedMediaType(media_type)

        if data and not text.strip():
            raise ExtractionFailed(f"No text could be extracted from {essence} content")
        return text

    async def _extract_pdf(self, data: bytes) -> str:
        try:
            return await asyncio.to_thread(_read_pdf, data)
        except Exception as e:
            raise ExtractionFailed(f"Failed to extract text from PDF: {e}") from e

    async def _extract_image(self, data: bytes, media_type: str) -> str:
        if self.vision is None:
            raise UnsupportedMediaType(media_type)
        try:
            return await self.vision.transcribe(
                data,
                media_type,
                instruction=IMAGE_TRANSCRIPTION_INSTRUCTION,
                max_tokens=self.config.vision_max_tokens,
            )
        except Exception as e:
            raise ExtractionFailed(f"Failed to extract text from image: {e}") from e

    @staticmethod
    def _decode(data: bytes, charset: str) -> str:
        try:
            return data.decode(charset)
        except (LookupError, UnicodeDecodeError) as e:
            raise ExtractionFailed(f"Cannot decode text as {charset}: {e}") from e
