"""
OpenAI LLM Provider (LangChain-based)

Implements LLMProvider interface using LangChain's ChatOpenAI.

Supports:
    - Text generation (generate)
    - Structured output (generate_structured) via with_structured_output
      in JSON mode, validated against a Pydantic schema
    - Any OpenAI-compatible endpoint through base_url (e.g. OpenRouter)

Models:
    - gpt-4o: Best quality, used for extraction, QA and compliance
    - gpt-4o-mini: Fast and cheap, used for search insights

Example:
    >>> provider = OpenAILLMProvider(api_key="sk-...", model="gpt-4o")
    >>> response = await provider.generate("What is 2+2?")
    >>> print(response)
    "4"

    >>> class Answer(BaseModel):
    ...     value: int
    >>> result = await provider.generate_structured("2+2 as JSON", Answer)
    >>> result.value
    4
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, TypeVar

from pydantic import BaseModel, ValidationError

from tendergraph.errors import LanguageModelParseError
from tendergraph.providers.base import LLMProvider

if TYPE_CHECKING:
    from langchain_openai import ChatOpenAI

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)


def _get_chat_openai(
    api_key: str | None = None,
    model: str = "gpt-4o",
    temperature: float = 0.0,
    base_url: str | None = None,
    max_tokens: int | None = None,
) -> "ChatOpenAI":
    """
    Get a ChatOpenAI instance.

    Uses lazy import to avoid requiring langchain-openai unless actually used.

    Args:
        api_key: Optional API key. If not provided, uses OPENAI_API_KEY env var.
        model: Model name to use.
        temperature: Sampling temperature.
        base_url: Optional OpenAI-compatible endpoint.
        max_tokens: Optional response token limit.

    Returns:
        ChatOpenAI instance

    Raises:
        ImportError: If langchain-openai package is not installed
    """
    try:
        from langchain_openai import ChatOpenAI
    except ImportError:
        raise ImportError(
            "OpenAI provider requires the 'langchain-openai' package. "
            "Install with: pip install langchain-openai"
        )

    kwargs: dict[str, Any] = {"model": model, "temperature": temperature}
    if api_key:
        kwargs["api_key"] = api_key
    if base_url:
        kwargs["base_url"] = base_url
    if max_tokens:
        kwargs["max_tokens"] = max_tokens

    return ChatOpenAI(**kwargs)


class OpenAILLMProvider(LLMProvider):
    """
    OpenAI LLM provider implementation using LangChain.

    Args:
        api_key: OpenAI API key. If None, uses OPENAI_API_KEY environment variable.
        model: Model to use (default: "gpt-4o")
        base_url: Optional OpenAI-compatible base URL
    """

    def __init__(
        self,
        api_key: str | None = None,
        model: str = "gpt-4o",
        base_url: str | None = None,
    ) -> None:
        self._api_key = api_key
        self._model = model
        self._base_url = base_url

    @property
    def model_name(self) -> str:
        """Current model name."""
        return self._model

    async def generate(
        self,
        prompt: str,
        *,
        system: str | None = None,
        temperature: float = 0.0,
        max_tokens: int = 4096,
    ) -> str:
        """
        Generate a text completion.

        Args:
            prompt: User prompt/question
            system: Optional system message for context
            temperature: Sampling temperature (0.0 = deterministic)
            max_tokens: Maximum tokens in response

        Returns:
            Generated text response
        """
        base_client = _get_chat_openai(
            api_key=self._api_key,
            model=self._model,
            temperature=temperature,
            base_url=self._base_url,
        )
        client = base_client.bind(max_tokens=max_tokens)

        response = await client.ainvoke(_messages(prompt, system))
        output_text = str(response.content)
        logger.debug(f"{self._model} returned {len(output_text)} chars")
        return output_text

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
        Generate a structured response matching a Pydantic schema.

        Uses LangChain's with_structured_output in JSON mode; the prompt
        must describe the expected JSON shape.

        Args:
            prompt: User prompt/question
            schema: Pydantic model class defining expected structure
            system: Optional system message
            temperature: Sampling temperature
            max_tokens: Maximum tokens in response

        Returns:
            Instance of schema class populated with generated values

        Raises:
            LanguageModelParseError: If the response does not parse or validate
        """
        client = _get_chat_openai(
            api_key=self._api_key,
            model=self._model,
            temperature=temperature,
            base_url=self._base_url,
            max_tokens=max_tokens,
        )
        structured_client = client.with_structured_output(
            schema, method="json_mode", include_raw=True
        )
        result = await structured_client.ainvoke(_messages(prompt, system))

        parsing_error = result.get("parsing_error")
        parsed = result.get("parsed")
        if parsing_error is not None or parsed is None:
            raise LanguageModelParseError(
                f"{self._model} returned no valid {schema.__name__}: {parsing_error}"
            )
        if not isinstance(parsed, schema):
            try:
                parsed = schema.model_validate(parsed)
            except ValidationError as e:
                raise LanguageModelParseError(str(e)) from e

        logger.debug(f"{self._model} returned structured {schema.__name__}")
        return parsed

    def with_model(self, model: str) -> "OpenAILLMProvider":
        """
        Return a new provider instance with a different model.

        Useful for switching between quality tiers (e.g., gpt-4o vs gpt-4o-mini).

        Args:
            model: New model name to use

        Returns:
            New OpenAILLMProvider with the specified model
        """
        return OpenAILLMProvider(api_key=self._api_key, model=model, base_url=self._base_url)


def _messages(prompt: str, system: str | None) -> list:
    from langchain_core.messages import BaseMessage, HumanMessage, SystemMessage

    messages: list[BaseMessage] = []
    if system:
        messages.append(SystemMessage(content=system))
    messages.append(HumanMessage(content=prompt))
    return messages
