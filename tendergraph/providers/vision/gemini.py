"""
Gemini Vision Provider

Transcribes images (scans, photos of certificates, screenshots of tender
pages) to text with the google-genai SDK. The raw bytes are sent inline
together with an instruction; the model "reads" the image and returns
plain text.

Example:
    >>> provider = GeminiVisionProvider(model="gemini-2.5-flash")
    >>> text = await provider.transcribe(
    ...     png_bytes, "image/png", instruction="Return the text only."
    ... )
"""

from __future__ import annotations

import logging
import os
from typing import TYPE_CHECKING, Any

from tendergraph.providers.base import VisionProvider

if TYPE_CHECKING:
    from google import genai

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gemini-2.5-flash"


def _get_genai_client(api_key: str | None = None) -> "genai.Client":
    """
    Get a google-genai client.

    Raises:
        ImportError: If google-genai package is not installed
        ValueError: If API key is not provided and not in environment
    """
    try:
        from google import genai
    except ImportError:
        raise ImportError(
            "Image transcription requires the 'google-genai' package. "
            "Install with: pip install google-genai"
        )

    resolved_api_key = api_key or os.environ.get("GOOGLE_API_KEY")
    if not resolved_api_key:
        raise ValueError(
            "Google API key required. Provide api_key parameter or set GOOGLE_API_KEY env var."
        )
    return genai.Client(api_key=resolved_api_key)


class GeminiVisionProvider(VisionProvider):
    """
    Gemini multimodal provider.

    Args:
        api_key: Google API key. If None, uses GOOGLE_API_KEY env var.
        model: Gemini model to use (default: gemini-2.5-flash)
    """

    def __init__(self, api_key: str | None = None, model: str = DEFAULT_MODEL) -> None:
        self._api_key = api_key
        self._model = model
        # Lazy initialization
        self._client: Any = None

    def _get_client(self) -> Any:
        if self._client is None:
            self._client = _get_genai_client(self._api_key)
        return self._client

    @property
    def model_name(self) -> str:
        """Current model name."""
        return self._model

    async def transcribe(
        self,
        data: bytes,
        media_type: str,
        *,
        instruction: str,
        max_tokens: int = 4096,
    ) -> str:
        """
        Transcribe binary content to text.

        Args:
            data: Raw file bytes
            media_type: MIME type of data, e.g. "image/jpeg"
            instruction: What to return (structure preserved, text only)
            max_tokens: Upper bound on output tokens

        Returns:
            Transcribed text ("" if the model returned nothing)
        """
        from google.genai import types

        client = self._get_client()
        response = await client.aio.models.generate_content(
            model=self._model,
            contents=[
                types.Part.from_bytes(data=data, mime_type=media_type),
                instruction,
            ],
            config=types.GenerateContentConfig(max_output_tokens=max_tokens),
        )
        text = response.text or ""
        logger.debug(f"{self._model} transcribed {len(data)} bytes into {len(text)} chars")
        return text
