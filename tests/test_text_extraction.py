"""Tests for TextExtractor."""

import io
from unittest.mock import patch

import pytest
from pypdf import PdfWriter

from conftest import FakeVisionProvider
from tendergraph.errors import ExtractionFailed, UnsupportedMediaType
from tendergraph.ingestion.extraction import TextExtractor, parse_media_type


def _blank_pdf() -> bytes:
    writer = PdfWriter()
    writer.add_blank_page(width=72, height=72)
    buffer = io.BytesIO()
    writer.write(buffer)
    return buffer.getvalue()


class TestParseMediaType:

    def test_essence_and_charset(self):
        assert parse_media_type("Text/Plain; charset=windows-1251") == (
            "text/plain",
            {"charset": "windows-1251"},
        )

    def test_no_parameters(self):
        assert parse_media_type("application/pdf") == ("application/pdf", {})


class TestPlainText:

    @pytest.mark.asyncio
    async def test_utf8_default(self):
        extractor = TextExtractor()
        text = await extractor.extract("Требования к участникам".encode("utf-8"), "text/plain")
        assert text == "Требования к участникам"

    @pytest.mark.asyncio
    async def test_declared_charset(self):
        extractor = TextExtractor()
        data = "Техническое задание".encode("cp1251")
        text = await extractor.extract(data, "text/plain; charset=windows-1251")
        assert text == "Техническое задание"

    @pytest.mark.asyncio
    async def test_markdown(self):
        text = await TextExtractor().extract(b"# Title", "text/markdown")
        assert text == "# Title"

    @pytest.mark.asyncio
    async def test_undecodable(self):
        with pytest.raises(ExtractionFailed):
            await TextExtractor().extract(b"\xff\xfe\xfa", "text/plain")

    @pytest.mark.asyncio
    async def test_unknown_charset(self):
        with pytest.raises(ExtractionFailed):
            await TextExtractor().extract(b"abc", "text/plain; charset=klingon")

    @pytest.mark.asyncio
    async def test_whitespace_only_content(self):
        with pytest.raises(ExtractionFailed):
            await TextExtractor().extract(b"   \n ", "text/plain")


class TestPdf:

    @pytest.mark.asyncio
    async def test_page_text_returned(self):
        with patch(
            "tendergraph.ingestion.extraction.text._read_pdf",
            return_value="Page one\n\nPage two",
        ):
            text = await TextExtractor().extract(b"%PDF-fake", "application/pdf")
        assert text == "Page one\n\nPage two"

    @pytest.mark.asyncio
    async def test_pdf_without_text(self):
        """A scanned or blank PDF yields no text and fails."""
        with pytest.raises(ExtractionFailed):
            await TextExtractor().extract(_blank_pdf(), "application/pdf")

    @pytest.mark.asyncio
    async def test_corrupt_pdf(self):
        with pytest.raises(ExtractionFailed):
            await TextExtractor().extract(b"definitely not a pdf", "application/pdf")


class TestImages:

    @pytest.mark.asyncio
    async def test_vision_transcription(self):
        vision = FakeVisionProvider(text="Сертификат соответствия № 123")
        text = await TextExtractor(vision=vision).extract(b"\x89PNG", "image/png")
        assert text == "Сертификат соответствия № 123"
        assert vision.calls == [(b"\x89PNG", "image/png")]

    @pytest.mark.asyncio
    async def test_no_vision_provider(self):
        with pytest.raises(UnsupportedMediaType):
            await TextExtractor().extract(b"\x89PNG", "image/png")

    @pytest.mark.asyncio
    async def test_vision_failure(self):
        vision = FakeVisionProvider(error=RuntimeError("quota"))
        with pytest.raises(ExtractionFailed):
            await TextExtractor(vision=vision).extract(b"\x89PNG", "image/jpeg")

    @pytest.mark.asyncio
    async def test_empty_transcription(self):
        vision = FakeVisionProvider(text="")
        with pytest.raises(ExtractionFailed):
            await TextExtractor(vision=vision).extract(b"\x89PNG", "image/png")


class TestUnsupported:

    @pytest.mark.asyncio
    async def test_unsupported_media_type(self):
        with pytest.raises(UnsupportedMediaType) as exc_info:
            await TextExtractor().extract(b"PK", "application/zip")
        assert exc_info.value.media_type == "application/zip"
        assert "Unsupported file type" in str(exc_info.value)
